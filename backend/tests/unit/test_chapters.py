"""
Unit tests for chapter reference data and range validation.
"""

import pytest

from hifz.middleware.error_handling import ValidationError
from hifz.services.progress.chapters import (
    CHAPTER_COUNT,
    LAST_PAGE,
    reference_chapters,
    reference_verse_counts,
    validate_chapter,
    validate_verse_range,
    verse_counts_from_rows,
)
from hifz.services.progress.verse_sets import TOTAL_VERSES


@pytest.fixture
def verse_counts():
    return reference_verse_counts()


class TestReferenceData:
    def test_chapter_count(self):
        assert len(reference_chapters()) == CHAPTER_COUNT

    def test_total_verses(self, verse_counts):
        assert sum(verse_counts.values()) == TOTAL_VERSES

    @pytest.mark.parametrize(
        "chapter,verses",
        [(1, 7), (2, 286), (36, 83), (112, 4), (114, 6)],
        ids=["opening", "longest", "middle", "short", "last"],
    )
    def test_known_verse_counts(self, verse_counts, chapter, verses):
        assert verse_counts[chapter] == verses

    def test_page_ranges_are_ordered(self):
        chapters = reference_chapters()

        assert chapters[0].page_start == 1
        assert chapters[-1].page_end == LAST_PAGE
        for chapter in chapters:
            assert 1 <= chapter.page_start <= chapter.page_end <= LAST_PAGE
        for earlier, later in zip(chapters, chapters[1:]):
            assert earlier.page_start <= later.page_start

    def test_stored_rows_take_precedence(self):
        class Row:
            def __init__(self, number, verse_count):
                self.number = number
                self.verse_count = verse_count

        assert verse_counts_from_rows([Row(1, 7), Row(2, 286)]) == {1: 7, 2: 286}

    def test_empty_table_falls_back_to_reference(self, verse_counts):
        assert verse_counts_from_rows([]) == verse_counts


class TestValidation:
    def test_valid_chapter_returns_verse_count(self, verse_counts):
        assert validate_chapter(verse_counts, 1) == 7

    @pytest.mark.parametrize("chapter", [None, 0, 115], ids=["missing", "zero", "past_last"])
    def test_invalid_chapter(self, verse_counts, chapter):
        with pytest.raises(ValidationError):
            validate_chapter(verse_counts, chapter)

    def test_full_chapter_range(self, verse_counts):
        validate_verse_range(verse_counts, 1, 1, 7)

    @pytest.mark.parametrize(
        "start,end",
        [(0, 3), (3, 2), (1, 8), (None, 3), (1, None)],
        ids=["zero_start", "inverted", "past_last_verse", "missing_start", "missing_end"],
    )
    def test_invalid_range(self, verse_counts, start, end):
        with pytest.raises(ValidationError) as exc_info:
            validate_verse_range(verse_counts, 1, start, end)

        assert exc_info.value.status_code == 422
