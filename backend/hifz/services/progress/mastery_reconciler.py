"""
Mastery Status Reconciler

Two independent sources describe what a learner has memorized:

- ExplicitStatus: MasteryRecord rows a supervisor set per chapter.
- DerivedFromCoverage: chapters fully covered by memorization entries.

One whole source is picked per learner, never merged chapter by chapter.
Explicit records win when they exist and account for at least as many
verses as coverage does (ties favor explicit); otherwise coverage wins when
there is any; otherwise every count is zero.

The group roster additionally shows fully covered chapters that have no
record as synthetic "V" cells. Those are rebuilt on every read and never
written back.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Sequence, Union

from hifz.enums.progress import (
    IN_PROGRESS_STATUSES,
    VALIDATED_STATUSES,
    ActivityProgram,
    MasterySource,
    MasteryStatus,
    SortOrder,
)
from hifz.models.progress import CommentView, MasteryCell, MasterySummary
from hifz.services.progress.verse_sets import (
    chapter_coverage,
    complete_chapters,
    program_key,
)
from hifz.services.progress.weeks import ensure_utc, iso_week_number

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExplicitStatus:
    """Supervisor records are authoritative."""

    validated: tuple[int, ...]
    in_progress: tuple[int, ...]
    verses: int


@dataclass(frozen=True)
class DerivedFromCoverage:
    """Coverage of memorization entries is authoritative."""

    validated: tuple[int, ...]
    in_progress: tuple[int, ...]
    verses: int


MasterySourceData = Union[ExplicitStatus, DerivedFromCoverage, None]


def parse_status(value) -> Optional[MasteryStatus]:
    """Stored status code → MasteryStatus, None for unknown codes."""
    if value is None or isinstance(value, MasteryStatus):
        return value
    try:
        return MasteryStatus(value)
    except ValueError:
        logger.warning(f"Ignoring unknown mastery status code {value!r}")
        return None


def memorization_only(entries: Iterable) -> list:
    return [
        entry
        for entry in entries
        if program_key(entry.program) == ActivityProgram.MEMORIZATION.value
    ]


def verses_from_mastery(records: Iterable, verse_counts: Mapping[int, int]) -> int:
    """Sum of verse counts of chapters whose status is validated."""
    return sum(
        verse_counts.get(record.chapter_number, 0)
        for record in records
        if parse_status(record.status) in VALIDATED_STATUSES
    )


def _explicit_source(records: Sequence, verse_counts: Mapping[int, int]) -> ExplicitStatus:
    validated = []
    in_progress = []
    for record in records:
        status = parse_status(record.status)
        if status in VALIDATED_STATUSES:
            validated.append(record.chapter_number)
        elif status in IN_PROGRESS_STATUSES:
            in_progress.append(record.chapter_number)
    return ExplicitStatus(
        validated=tuple(sorted(validated)),
        in_progress=tuple(sorted(in_progress)),
        verses=verses_from_mastery(records, verse_counts),
    )


def _coverage_source(
    coverage: Mapping[int, set[int]], verse_counts: Mapping[int, int]
) -> DerivedFromCoverage:
    complete = complete_chapters(coverage, verse_counts)
    in_progress = sorted(
        chapter
        for chapter, covered in coverage.items()
        if chapter in verse_counts and 0 < len(covered) < verse_counts[chapter]
    )
    return DerivedFromCoverage(
        validated=tuple(complete),
        in_progress=tuple(in_progress),
        verses=sum(len(covered) for covered in coverage.values()),
    )


def choose_source(
    records: Sequence,
    entries: Iterable,
    verse_counts: Mapping[int, int],
) -> MasterySourceData:
    """
    Pick the authoritative source for one learner.

    Args:
        records: The learner's MasteryRecord rows.
        entries: The learner's progress entries (non-memorization ones are
            ignored).
        verse_counts: Chapter number → verse count.
    """
    coverage = chapter_coverage(memorization_only(entries))
    explicit = _explicit_source(records, verse_counts) if records else None
    derived = _coverage_source(coverage, verse_counts) if coverage else None

    if explicit is not None and explicit.verses >= (derived.verses if derived else 0):
        return explicit
    return derived


def reconcile_mastery(
    records: Sequence,
    entries: Iterable,
    verse_counts: Mapping[int, int],
) -> MasterySummary:
    """Reconciled mastery counts for one learner."""
    entries = list(entries)
    from_mastery = verses_from_mastery(records, verse_counts)
    source = choose_source(records, entries, verse_counts)
    from_coverage = sum(
        len(covered) for covered in chapter_coverage(memorization_only(entries)).values()
    )

    if source is None:
        return MasterySummary(
            verses_from_mastery=from_mastery, verses_from_coverage=from_coverage
        )

    logger.debug(
        f"Mastery source {type(source).__name__}: "
        f"mastery={from_mastery} coverage={from_coverage}"
    )
    return MasterySummary(
        source=(
            MasterySource.EXPLICIT
            if isinstance(source, ExplicitStatus)
            else MasterySource.COVERAGE
        ),
        validated_chapters=len(source.validated),
        in_progress_chapters=len(source.in_progress),
        validated_chapter_numbers=list(source.validated),
        verses_validated=source.verses,
        verses_from_mastery=from_mastery,
        verses_from_coverage=from_coverage,
    )


def build_roster_statuses(
    records: Iterable,
    entries: Iterable,
    verse_counts: Mapping[int, int],
) -> dict[int, list[MasteryCell]]:
    """
    Per-learner chapter cells for the group roster.

    Explicit records come first; any chapter fully covered by memorization
    entries without a record is added as a synthetic validated cell with no
    validation week.
    """
    by_learner: dict[int, dict[int, MasteryCell]] = defaultdict(dict)
    for record in records:
        status = parse_status(record.status)
        if status is None:
            continue
        by_learner[record.learner_id][record.chapter_number] = MasteryCell(
            chapter_number=record.chapter_number,
            status=status,
            validated_week=record.validated_week,
        )

    entries_by_learner: dict[int, list] = defaultdict(list)
    for entry in memorization_only(entries):
        entries_by_learner[entry.learner_id].append(entry)

    for learner_id, learner_entries in entries_by_learner.items():
        cells = by_learner[learner_id]
        for chapter in complete_chapters(chapter_coverage(learner_entries), verse_counts):
            if chapter not in cells:
                cells[chapter] = MasteryCell(
                    chapter_number=chapter,
                    status=MasteryStatus.VALIDATED,
                    validated_week=None,
                    synthetic=True,
                )

    return {
        learner_id: [cells[chapter] for chapter in sorted(cells)]
        for learner_id, cells in by_learner.items()
    }


def number_sessions(sessions: Iterable) -> dict[int, int]:
    """Session id → 1-based chronological number within its group."""
    ordered = sorted(sessions, key=lambda s: (s.session_date, s.id))
    return {session.id: index for index, session in enumerate(ordered, start=1)}


def comment_view(comment, session, session_number: int) -> CommentView:
    return CommentView(
        id=comment.id,
        session_id=session.id,
        session_number=session_number,
        session_date=session.session_date,
        iso_week=iso_week_number(session.session_date),
        learner_id=comment.learner_id,
        chapter_number=comment.chapter_number,
        verse_start=comment.verse_start,
        verse_end=comment.verse_end,
        status=parse_status(comment.status),
        comment=comment.comment,
        created_at=ensure_utc(comment.created_at),
    )


def group_comments(
    comments: Iterable,
    sessions: Iterable,
    order: SortOrder = SortOrder.ASC,
) -> dict[int, dict[int, list[CommentView]]]:
    """
    Group comments by learner then chapter, annotated with session info.

    Comments whose session is not among `sessions` are skipped.
    """
    sessions = list(sessions)
    numbers = number_sessions(sessions)
    by_id = {session.id: session for session in sessions}

    grouped: dict[int, dict[int, list[CommentView]]] = defaultdict(lambda: defaultdict(list))
    for comment in comments:
        session = by_id.get(comment.session_id)
        if session is None:
            continue
        grouped[comment.learner_id][comment.chapter_number].append(
            comment_view(comment, session, numbers[session.id])
        )

    reverse = order == SortOrder.DESC
    return {
        learner_id: {
            chapter: sorted(
                views,
                key=lambda v: (v.session_date, v.session_number, v.created_at, v.id),
                reverse=reverse,
            )
            for chapter, views in chapters.items()
        }
        for learner_id, chapters in grouped.items()
    }
