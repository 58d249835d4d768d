"""
Verse Set Algebra

Pure functions turning verse-range log entries into deduplicated coverage
sets and the counts derived from them. Entries may overlap or repeat; every
verse of each inclusive range is inserted into a set, so the result does not
depend on entry order and re-logging a range changes nothing.

Entries are any objects exposing `learner_id`, `program`, `chapter_number`,
`verse_start` and `verse_end` (ProgressEntry rows in practice).

Usage:
    from hifz.services.progress.verse_sets import chapter_coverage, summarize_coverage

    coverage = chapter_coverage(entries)
    summary = summarize_coverage(coverage, verse_counts)
"""

import math
from collections import defaultdict
from typing import Iterable, Mapping, Optional

from hifz.models.progress import CoverageSummary

# Maps (chapter_number, verse_number) to its mushaf page
PageMap = Mapping[tuple[int, int], int]

VERSES_PER_PAGE = 15
TOTAL_VERSES = 6236


def program_key(program) -> str:
    """Plain string key for an ActivityProgram or its stored value."""
    return getattr(program, "value", program)


def _verses(entry) -> range:
    return range(entry.verse_start, entry.verse_end + 1)


def build_coverage(entries: Iterable) -> dict[tuple[int, int], set[int]]:
    """Covered verse numbers keyed by (learner_id, chapter_number)."""
    coverage: dict[tuple[int, int], set[int]] = defaultdict(set)
    for entry in entries:
        coverage[(entry.learner_id, entry.chapter_number)].update(_verses(entry))
    return dict(coverage)


def chapter_coverage(entries: Iterable) -> dict[int, set[int]]:
    """Covered verse numbers keyed by chapter, for a single learner's entries."""
    coverage: dict[int, set[int]] = defaultdict(set)
    for entry in entries:
        coverage[entry.chapter_number].update(_verses(entry))
    return dict(coverage)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves going up (2.5 → 3)."""
    return math.floor(value + 0.5)


def is_complete(covered: set[int], verse_count: int) -> bool:
    return verse_count > 0 and len(covered) >= verse_count


def complete_chapters(
    coverage: Mapping[int, set[int]], verse_counts: Mapping[int, int]
) -> list[int]:
    """Chapters whose every verse is covered, in chapter order."""
    return sorted(
        chapter
        for chapter, covered in coverage.items()
        if chapter in verse_counts and is_complete(covered, verse_counts[chapter])
    )


def count_pages(
    coverage: Mapping[int, set[int]],
    page_map: Optional[PageMap] = None,
    verses_per_page: int = VERSES_PER_PAGE,
) -> int:
    """
    Distinct pages touched by the covered verses.

    Without a page map the count is approximated as verses / verses_per_page.
    """
    if page_map:
        pages = {
            page_map[(chapter, verse)]
            for chapter, covered in coverage.items()
            for verse in covered
            if (chapter, verse) in page_map
        }
        return len(pages)
    total = sum(len(covered) for covered in coverage.values())
    return round_half_up(total / verses_per_page)


def summarize_coverage(
    coverage: Mapping[int, set[int]],
    verse_counts: Mapping[int, int],
    page_map: Optional[PageMap] = None,
    verses_per_page: int = VERSES_PER_PAGE,
    total_verses: int = TOTAL_VERSES,
) -> CoverageSummary:
    """
    Derive totals from one learner's per-chapter coverage.

    Args:
        coverage: Chapter number → covered verse numbers.
        verse_counts: Chapter number → verse count.
        page_map: Optional verse → page mapping for exact page counts.
        verses_per_page: Divisor of the page approximation.
        total_verses: Denominator of the percentage.
    """
    total = sum(len(covered) for covered in coverage.values())
    complete = complete_chapters(coverage, verse_counts)
    in_progress = sum(
        1
        for chapter, covered in coverage.items()
        if chapter in verse_counts and 0 < len(covered) < verse_counts[chapter]
    )
    return CoverageSummary(
        total_verses=total,
        complete_chapters=len(complete),
        in_progress_chapters=in_progress,
        complete_chapter_numbers=complete,
        pages=count_pages(coverage, page_map, verses_per_page),
        percentage=round(total / total_verses * 100, 2) if total_verses else 0.0,
    )


def verses_logged_by_program(entries: Iterable) -> dict[str, int]:
    """Distinct verses per activity program across the given entries."""
    seen: dict[str, set[tuple[int, int]]] = defaultdict(set)
    for entry in entries:
        seen[program_key(entry.program)].update(
            (entry.chapter_number, verse) for verse in _verses(entry)
        )
    return {program: len(verses) for program, verses in seen.items()}
