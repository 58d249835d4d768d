#!/usr/bin/env python3
"""
Reference Data Seeding Script

Creates the database tables and seeds the 114 chapters (verse counts and
mushaf page ranges). Optionally loads a verse → page map for exact page
counts in coverage statistics.

Setup:
    1. Ensure PostgreSQL is running, or set DATABASE_URL
       (e.g. sqlite+aiosqlite:///./hifz.db)
    2. Copy .env.example to .env in the project root if needed

Usage:
    # Create tables and seed chapters
    python scripts/seed_reference_data.py

    # Also load the verse page map (CSV with chapter,verse,page columns)
    python scripts/seed_reference_data.py --verse-pages data/verse_pages.csv

    # Show what would be written
    python scripts/seed_reference_data.py --dry-run

Re-running is safe: rows are upserted by their natural keys.
"""

import argparse
import asyncio
import csv
import logging
import sys
from pathlib import Path
from typing import Optional

# Add backend to path for imports (must be before hifz.* imports)
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from dotenv import load_dotenv

project_root = Path(__file__).parent.parent
load_dotenv(project_root / ".env")

from hifz.db.base import async_session_maker, init_db
from hifz.db.models_progress import Chapter, Verse
from hifz.db.upsert import upsert
from hifz.services.progress.chapters import CHAPTER_COUNT, reference_chapters, reference_verse_counts
from hifz.services.progress.verse_sets import TOTAL_VERSES

logger = logging.getLogger("seed_reference_data")


def setup_logging(debug: bool = False) -> None:
    """Configure logging based on debug flag."""
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )
    if not debug:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
        logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)


def read_verse_pages(path: Path) -> list[dict]:
    """
    Read a chapter,verse,page CSV and check it against the verse counts.

    Raises:
        ValueError: On a row referencing a verse that does not exist.
    """
    verse_counts = reference_verse_counts()
    rows = []
    with open(path, newline="") as f:
        for line_no, row in enumerate(csv.DictReader(f), start=2):
            chapter, verse, page = int(row["chapter"]), int(row["verse"]), int(row["page"])
            if not 1 <= verse <= verse_counts.get(chapter, 0):
                raise ValueError(f"{path}:{line_no}: no verse {chapter}:{verse}")
            rows.append({"chapter_number": chapter, "verse_number": verse, "page": page})
    return rows


async def seed(verse_pages: Optional[Path], dry_run: bool) -> None:
    chapters = reference_chapters()
    assert len(chapters) == CHAPTER_COUNT
    assert sum(c.verse_count for c in chapters) == TOTAL_VERSES

    verses = read_verse_pages(verse_pages) if verse_pages else []

    if dry_run:
        logger.info(f"Would seed {len(chapters)} chapters and {len(verses)} verse pages")
        return

    await init_db()
    async with async_session_maker() as db:
        for chapter in chapters:
            await upsert(
                db,
                Chapter,
                ["number"],
                {
                    "number": chapter.number,
                    "verse_count": chapter.verse_count,
                    "page_start": chapter.page_start,
                    "page_end": chapter.page_end,
                },
            )
        for values in verses:
            await upsert(db, Verse, ["chapter_number", "verse_number"], values)
        await db.commit()

    logger.info(f"Seeded {len(chapters)} chapters and {len(verses)} verse pages")


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed chapter reference data")
    parser.add_argument(
        "--verse-pages",
        type=Path,
        default=None,
        help="CSV file with chapter,verse,page columns",
    )
    parser.add_argument("--dry-run", action="store_true", help="Validate only, write nothing")
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    args = parser.parse_args()

    setup_logging(args.debug)
    asyncio.run(seed(args.verse_pages, args.dry_run))


if __name__ == "__main__":
    main()
