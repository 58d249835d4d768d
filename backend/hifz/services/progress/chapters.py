"""
Chapter Reference Data

Verse counts and mushaf start pages for the 114 chapters (Madani mushaf,
604 pages, 6236 verses), plus the validation helpers shared by every write
that references a chapter or a verse range.

Usage:
    from hifz.services.progress.chapters import reference_verse_counts, validate_verse_range

    counts = reference_verse_counts()
    validate_verse_range(counts, chapter=1, verse_start=1, verse_end=7)
"""

from dataclasses import dataclass
from typing import Iterable, Mapping, Optional

from hifz.middleware.error_handling import ValidationError

CHAPTER_COUNT = 114

CHAPTER_VERSE_COUNTS: tuple[int, ...] = (
    7, 286, 200, 176, 120, 165, 206, 75, 129, 109,
    123, 111, 43, 52, 99, 128, 111, 110, 98, 135,
    112, 78, 118, 64, 77, 227, 93, 88, 69, 60,
    34, 30, 73, 54, 45, 83, 182, 88, 75, 85,
    54, 53, 89, 59, 37, 35, 38, 29, 18, 45,
    60, 49, 62, 55, 78, 96, 29, 22, 24, 13,
    14, 11, 11, 18, 12, 12, 30, 52, 52, 44,
    28, 28, 20, 56, 40, 31, 50, 40, 46, 42,
    29, 19, 36, 25, 22, 17, 19, 26, 30, 20,
    15, 21, 11, 8, 8, 19, 5, 8, 8, 11,
    11, 8, 3, 9, 5, 4, 7, 3, 6, 3,
    5, 4, 5, 6,
)

CHAPTER_START_PAGES: tuple[int, ...] = (
    1, 2, 50, 77, 106, 128, 151, 177, 187, 208,
    221, 235, 249, 255, 262, 267, 282, 293, 305, 312,
    322, 332, 342, 350, 359, 367, 377, 385, 396, 404,
    411, 415, 418, 428, 434, 440, 446, 453, 458, 467,
    477, 483, 489, 496, 499, 502, 507, 511, 515, 518,
    520, 523, 526, 528, 531, 534, 537, 542, 545, 549,
    551, 553, 554, 556, 558, 560, 562, 564, 566, 568,
    570, 572, 574, 575, 577, 578, 580, 582, 583, 585,
    586, 587, 587, 589, 590, 591, 591, 592, 593, 594,
    595, 595, 596, 596, 597, 597, 598, 598, 599, 599,
    600, 600, 601, 601, 601, 602, 602, 602, 603, 603,
    603, 604, 604, 604,
)

LAST_PAGE = 604


@dataclass(frozen=True)
class ChapterInfo:
    """Immutable reference row for one chapter."""

    number: int
    verse_count: int
    page_start: int
    page_end: int


def reference_chapters() -> list[ChapterInfo]:
    """
    Build the 114 reference rows.

    page_end is approximated from the next chapter's start page: a chapter
    ends on the page before its successor starts, or on the same page when
    both start on it.
    """
    chapters = []
    for index, (verse_count, page_start) in enumerate(
        zip(CHAPTER_VERSE_COUNTS, CHAPTER_START_PAGES)
    ):
        if index + 1 < CHAPTER_COUNT:
            next_start = CHAPTER_START_PAGES[index + 1]
            page_end = max(page_start, next_start - 1)
        else:
            page_end = LAST_PAGE
        chapters.append(
            ChapterInfo(
                number=index + 1,
                verse_count=verse_count,
                page_start=page_start,
                page_end=page_end,
            )
        )
    return chapters


def reference_verse_counts() -> dict[int, int]:
    """Chapter number → verse count, from the built-in table."""
    return {number: count for number, count in enumerate(CHAPTER_VERSE_COUNTS, start=1)}


def verse_counts_from_rows(rows: Iterable) -> dict[int, int]:
    """
    Chapter number → verse count from stored Chapter rows.

    Falls back to the built-in table when the chapters table is empty.
    """
    counts = {row.number: row.verse_count for row in rows}
    return counts or reference_verse_counts()


def validate_chapter(verse_counts: Mapping[int, int], chapter: Optional[int]) -> int:
    """
    Ensure a chapter number exists.

    Returns:
        The chapter's verse count.

    Raises:
        ValidationError: If the number is missing or outside 1..114.
    """
    if chapter is None:
        raise ValidationError("Chapter number is required")
    if chapter not in verse_counts:
        raise ValidationError(
            f"Chapter {chapter} does not exist",
            details={"chapter": chapter, "min": 1, "max": CHAPTER_COUNT},
        )
    return verse_counts[chapter]


def validate_verse_range(
    verse_counts: Mapping[int, int],
    chapter: int,
    verse_start: Optional[int],
    verse_end: Optional[int],
) -> None:
    """
    Ensure 1 <= verse_start <= verse_end <= chapter verse count.

    Raises:
        ValidationError: On a missing bound, an inverted range or a verse
            outside the chapter.
    """
    verse_count = validate_chapter(verse_counts, chapter)
    if verse_start is None or verse_end is None:
        raise ValidationError("Both verse_start and verse_end are required")
    if verse_start > verse_end:
        raise ValidationError(
            "verse_start must not exceed verse_end",
            details={"verse_start": verse_start, "verse_end": verse_end},
        )
    if verse_start < 1 or verse_end > verse_count:
        raise ValidationError(
            f"Verse range {verse_start}-{verse_end} is outside chapter {chapter} (1-{verse_count})",
            details={
                "chapter": chapter,
                "verse_start": verse_start,
                "verse_end": verse_end,
                "verse_count": verse_count,
            },
        )
