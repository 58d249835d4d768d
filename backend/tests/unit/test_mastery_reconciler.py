"""
Unit tests for mastery reconciliation.

Tests:
- Whole-source precedence between explicit records and coverage
- Ties and empty inputs
- Synthetic validated cells on the group roster
- Session numbering and comment grouping/ordering
"""

from datetime import date, datetime, timezone
from types import SimpleNamespace

import pytest

from hifz.enums.progress import ActivityProgram, MasterySource, MasteryStatus, SortOrder
from hifz.services.progress.chapters import reference_verse_counts
from hifz.services.progress.mastery_reconciler import (
    DerivedFromCoverage,
    ExplicitStatus,
    build_roster_statuses,
    choose_source,
    group_comments,
    number_sessions,
    parse_status,
    reconcile_mastery,
)


@pytest.fixture
def verse_counts():
    return reference_verse_counts()


class TestParseStatus:
    @pytest.mark.parametrize(
        "code,expected",
        [
            ("V", MasteryStatus.VALIDATED),
            ("S", MasteryStatus.RECITED_TO_PEER),
            ("90%", MasteryStatus.NEARLY_ACQUIRED),
            ("AM", MasteryStatus.TO_MEMORIZE),
            (None, None),
            ("ZZ", None),
        ],
        ids=["validated", "peer", "nearly", "to_memorize", "none", "unknown"],
    )
    def test_parse_status(self, code, expected):
        assert parse_status(code) == expected


class TestSourcePrecedence:
    """One whole source wins per learner."""

    def test_coverage_wins_when_it_accounts_for_more_verses(
        self, make_record, make_entry, verse_counts
    ):
        records = [make_record(67, "V")]  # 30 verses
        entries = [make_entry(2, 1, 80)]  # 80 verses, chapter not complete

        summary = reconcile_mastery(records, entries, verse_counts)

        assert summary.source == MasterySource.COVERAGE
        assert summary.validated_chapters == 0
        assert summary.in_progress_chapters == 1
        assert summary.verses_validated == 80
        assert summary.verses_from_mastery == 30
        assert summary.verses_from_coverage == 80

    def test_explicit_wins_when_it_accounts_for_more_verses(
        self, make_record, make_entry, verse_counts
    ):
        records = [
            make_record(18, "V"),  # 110
            make_record(114, "V"),  # 6
            make_record(112, "S"),  # 4
        ]
        entries = [make_entry(2, 1, 80)]

        summary = reconcile_mastery(records, entries, verse_counts)

        assert summary.source == MasterySource.EXPLICIT
        assert summary.validated_chapters == 3
        assert summary.validated_chapter_numbers == [18, 112, 114]
        assert summary.verses_validated == 120

    def test_tie_goes_to_explicit(self, make_record, make_entry, verse_counts):
        records = [make_record(114, "V")]  # 6 verses
        entries = [make_entry(2, 1, 6)]  # 6 verses

        source = choose_source(records, entries, verse_counts)

        assert isinstance(source, ExplicitStatus)
        assert source.validated == (114,)

    def test_coverage_only(self, make_entry, verse_counts):
        source = choose_source([], [make_entry(1, 1, 7), make_entry(2, 1, 3)], verse_counts)

        assert isinstance(source, DerivedFromCoverage)
        assert source.validated == (1,)
        assert source.in_progress == (2,)
        assert source.verses == 10

    def test_no_data(self, verse_counts):
        summary = reconcile_mastery([], [], verse_counts)

        assert summary.source == MasterySource.NONE
        assert summary.validated_chapters == 0
        assert summary.in_progress_chapters == 0
        assert summary.verses_validated == 0

    def test_in_progress_records_alone_still_select_explicit(self, make_record, verse_counts):
        summary = reconcile_mastery([make_record(2, "AM")], [], verse_counts)

        assert summary.source == MasterySource.EXPLICIT
        assert summary.validated_chapters == 0
        assert summary.in_progress_chapters == 1

    def test_non_memorization_entries_are_ignored(self, make_record, make_entry, verse_counts):
        records = [make_record(1, "V")]
        entries = [make_entry(2, 1, 200, program=ActivityProgram.REVISION)]

        summary = reconcile_mastery(records, entries, verse_counts)

        assert summary.source == MasterySource.EXPLICIT
        assert summary.verses_from_coverage == 0

    def test_assumed_known_is_neither_validated_nor_in_progress(
        self, make_record, verse_counts
    ):
        summary = reconcile_mastery([make_record(36, "X")], [], verse_counts)

        assert summary.validated_chapters == 0
        assert summary.in_progress_chapters == 0


class TestRosterStatuses:
    """Tests for roster cells including synthetic validations."""

    def test_complete_chapter_without_record_gets_synthetic_cell(
        self, make_record, make_entry, verse_counts
    ):
        records = [make_record(1, "V", validated_week=5), make_record(2, "50%")]
        entries = [make_entry(112, 1, 4), make_entry(113, 1, 2)]

        cells = build_roster_statuses(records, entries, verse_counts)[1]

        assert [c.chapter_number for c in cells] == [1, 2, 112]
        synthetic = cells[2]
        assert synthetic.status == MasteryStatus.VALIDATED
        assert synthetic.validated_week is None
        assert synthetic.synthetic is True
        assert cells[0].validated_week == 5
        assert cells[0].synthetic is False

    def test_explicit_record_is_not_overridden(self, make_record, make_entry, verse_counts):
        records = [make_record(112, "AM")]
        entries = [make_entry(112, 1, 4)]

        cells = build_roster_statuses(records, entries, verse_counts)[1]

        assert len(cells) == 1
        assert cells[0].status == MasteryStatus.TO_MEMORIZE
        assert cells[0].synthetic is False

    def test_learners_are_kept_apart(self, make_entry, verse_counts):
        entries = [make_entry(114, 1, 6, learner_id=1), make_entry(114, 1, 3, learner_id=2)]

        statuses = build_roster_statuses([], entries, verse_counts)

        assert [c.chapter_number for c in statuses[1]] == [114]
        assert statuses.get(2, []) == []

    def test_non_memorization_entries_do_not_inject(self, make_entry, verse_counts):
        entries = [make_entry(114, 1, 6, program=ActivityProgram.READING)]

        assert build_roster_statuses([], entries, verse_counts) == {}

    def test_unknown_status_codes_are_skipped(self, make_record, verse_counts):
        assert build_roster_statuses([make_record(1, "??")], [], verse_counts) == {}


# ============================================================================
# Comments
# ============================================================================


def _session(session_id, day):
    return SimpleNamespace(id=session_id, session_date=day)


def _comment(comment_id, session_id, created_at, chapter=1, learner_id=1):
    return SimpleNamespace(
        id=comment_id,
        session_id=session_id,
        learner_id=learner_id,
        chapter_number=chapter,
        verse_start=None,
        verse_end=None,
        status=None,
        comment=f"comment {comment_id}",
        created_at=created_at,
    )


@pytest.fixture
def sessions():
    return [_session(11, date(2024, 3, 10)), _session(10, date(2024, 3, 3))]


class TestCommentGrouping:
    def test_sessions_are_numbered_chronologically(self, sessions):
        assert number_sessions(sessions) == {10: 1, 11: 2}

    def test_same_day_sessions_are_numbered_by_id(self):
        same_day = [_session(5, date(2024, 3, 3)), _session(4, date(2024, 3, 3))]

        assert number_sessions(same_day) == {4: 1, 5: 2}

    def test_ascending_order_follows_session_date(self, sessions):
        comments = [
            _comment(1, 11, datetime(2024, 3, 10, 9, tzinfo=timezone.utc)),
            _comment(2, 10, datetime(2024, 3, 12, 9, tzinfo=timezone.utc)),
        ]

        grouped = group_comments(comments, sessions, SortOrder.ASC)
        views = grouped[1][1]

        assert [v.id for v in views] == [2, 1]
        assert [v.session_number for v in views] == [1, 2]
        assert views[0].iso_week == 9

    def test_descending_order(self, sessions):
        comments = [
            _comment(1, 10, datetime(2024, 3, 3, 9, tzinfo=timezone.utc)),
            _comment(2, 11, datetime(2024, 3, 10, 9, tzinfo=timezone.utc)),
        ]

        views = group_comments(comments, sessions, SortOrder.DESC)[1][1]

        assert [v.id for v in views] == [2, 1]

    def test_same_session_orders_by_creation_time(self, sessions):
        comments = [
            _comment(1, 10, datetime(2024, 3, 3, 11, tzinfo=timezone.utc)),
            _comment(2, 10, datetime(2024, 3, 3, 9)),  # naive, treated as UTC
        ]

        views = group_comments(comments, sessions)[1][1]

        assert [v.id for v in views] == [2, 1]

    def test_grouped_by_learner_then_chapter(self, sessions):
        at = datetime(2024, 3, 3, 9, tzinfo=timezone.utc)
        comments = [
            _comment(1, 10, at, chapter=1, learner_id=1),
            _comment(2, 10, at, chapter=2, learner_id=1),
            _comment(3, 10, at, chapter=1, learner_id=2),
        ]

        grouped = group_comments(comments, sessions)

        assert set(grouped) == {1, 2}
        assert set(grouped[1]) == {1, 2}
        assert [v.id for v in grouped[2][1]] == [3]

    def test_comments_of_unknown_sessions_are_skipped(self, sessions):
        comments = [_comment(1, 99, datetime(2024, 3, 3, tzinfo=timezone.utc))]

        assert group_comments(comments, sessions) == {}
