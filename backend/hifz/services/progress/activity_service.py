"""
Learner Activity Service

Writes a learner makes about their own work:

- progress entries (verse ranges per activity program), append/delete only
- daily program completions, upserted per (learner, program, day)
- weekly objectives: system defaults provisioned on first listing, custom
  objectives created and retired by the learner
- weekly objective completions, upserted per (objective, week)
- completion cycles, appended with the days elapsed since the previous
  cycle of the same type

Usage:
    service = ActivityService(db)
    entry = await service.log_progress(caller, ProgressEntryCreate(...))
"""

import logging
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hifz.db.models_progress import (
    CompletionCycle,
    DailyActivityCompletion,
    ProgressEntry,
    User,
    WeeklyObjective,
    WeeklyObjectiveCompletion,
)
from hifz.db.upsert import upsert
from hifz.enums.progress import ActivityProgram
from hifz.middleware.error_handling import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from hifz.models.progress import (
    CompletionCycleCreate,
    CompletionCycleResponse,
    CycleStats,
    DailyCompletionUpsert,
    ObjectiveCompletionUpsert,
    ProgressEntryCreate,
    ProgressEntryResponse,
    WeeklyObjectiveCreate,
    WeeklyObjectiveView,
)
from hifz.services.progress.attendance import days_since_previous_cycle, summarize_cycles
from hifz.services.progress.chapters import reference_verse_counts, validate_verse_range
from hifz.services.progress.permissions import is_admin
from hifz.services.progress.weeks import ensure_utc, to_date, week_start

logger = logging.getLogger(__name__)

# Objectives every learner starts with: (name, linked program)
DEFAULT_OBJECTIVES = [("Tafsir", ActivityProgram.TAFSIR)]


class ActivityService:
    """Self-service activity logging for the calling learner."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # =========================================================================
    # Progress Entries
    # =========================================================================

    async def log_progress(
        self,
        caller: User,
        request: ProgressEntryCreate,
        today: Optional[datetime] = None,
    ) -> ProgressEntryResponse:
        """
        Append a verse range for the caller.

        Raises:
            ValidationError: On an unknown chapter or a range outside it.
        """
        validate_verse_range(
            reference_verse_counts(),
            request.chapter_number,
            request.verse_start,
            request.verse_end,
        )
        entry = ProgressEntry(
            learner_id=caller.id,
            program=request.program.value,
            entry_date=request.entry_date or to_date(today or datetime.now(timezone.utc)),
            chapter_number=request.chapter_number,
            verse_start=request.verse_start,
            verse_end=request.verse_end,
            repetitions=request.repetitions,
            note=request.note,
        )
        self.db.add(entry)
        await self.db.flush()
        logger.info(
            f"Learner {caller.id} logged {request.program.value} "
            f"{request.chapter_number}:{request.verse_start}-{request.verse_end}"
        )
        return ProgressEntryResponse.model_validate(entry)

    async def delete_progress(self, caller: User, entry_id: int) -> None:
        """
        Delete one of the caller's entries (administrators may delete any).

        Raises:
            NotFoundError: If the entry does not exist.
            AuthorizationError: If it belongs to someone else.
        """
        entry = await self.db.get(ProgressEntry, entry_id)
        if entry is None:
            raise NotFoundError(f"Progress entry {entry_id} not found")
        if entry.learner_id != caller.id and not is_admin(caller):
            raise AuthorizationError("Cannot delete another learner's entry")
        await self.db.delete(entry)
        await self.db.flush()
        logger.info(f"Progress entry {entry_id} deleted by {caller.id}")

    # =========================================================================
    # Weekly Objectives
    # =========================================================================

    async def ensure_default_objectives(self, learner_id: int) -> bool:
        """
        Create the default objectives for a learner who has none at all.

        Retired objectives count, so defaults are provisioned only once.

        Returns:
            True if defaults were created.
        """
        existing = await self.db.scalar(
            select(func.count())
            .select_from(WeeklyObjective)
            .where(WeeklyObjective.learner_id == learner_id)
        )
        if existing:
            return False

        for name, program in DEFAULT_OBJECTIVES:
            self.db.add(
                WeeklyObjective(
                    learner_id=learner_id,
                    name=name,
                    program=program.value,
                    is_custom=False,
                    is_active=True,
                )
            )
        await self.db.flush()
        logger.info(f"Provisioned {len(DEFAULT_OBJECTIVES)} default objectives for {learner_id}")
        return True

    async def list_objectives(
        self,
        caller: User,
        week_of: Optional[date] = None,
        today: Optional[datetime] = None,
    ) -> list[WeeklyObjectiveView]:
        """Active objectives of the caller with their completion for one week."""
        await self.ensure_default_objectives(caller.id)
        week = week_start(week_of or today or datetime.now(timezone.utc))

        result = await self.db.execute(
            select(WeeklyObjective)
            .where(WeeklyObjective.learner_id == caller.id, WeeklyObjective.is_active.is_(True))
            .order_by(WeeklyObjective.id)
        )
        objectives = list(result.scalars().all())

        result = await self.db.execute(
            select(WeeklyObjectiveCompletion).where(
                WeeklyObjectiveCompletion.objective_id.in_([o.id for o in objectives]),
                WeeklyObjectiveCompletion.week_start == week,
            )
        )
        done = {c.objective_id: c.completed for c in result.scalars().all()}

        return [
            WeeklyObjectiveView(
                id=objective.id,
                name=objective.name,
                program=objective.program,
                is_custom=objective.is_custom,
                week_start=week,
                completed=done.get(objective.id, False),
            )
            for objective in objectives
        ]

    async def create_objective(
        self,
        caller: User,
        request: WeeklyObjectiveCreate,
        today: Optional[datetime] = None,
    ) -> WeeklyObjectiveView:
        """
        Add a custom objective for the caller.

        Raises:
            ValidationError: If the name is empty.
            ConflictError: If an active objective already has this name.
        """
        name = request.name.strip()
        if not name:
            raise ValidationError("Objective name is required")

        duplicate = await self.db.scalar(
            select(WeeklyObjective.id).where(
                WeeklyObjective.learner_id == caller.id,
                WeeklyObjective.name == name,
                WeeklyObjective.is_active.is_(True),
            )
        )
        if duplicate is not None:
            raise ConflictError(
                f"An objective named '{name}' already exists", details={"objective_id": duplicate}
            )

        objective = WeeklyObjective(
            learner_id=caller.id,
            name=name,
            program=request.program.value if request.program else None,
            is_custom=True,
            is_active=True,
        )
        self.db.add(objective)
        await self.db.flush()
        logger.info(f"Learner {caller.id} created objective {objective.id} '{name}'")

        return WeeklyObjectiveView(
            id=objective.id,
            name=objective.name,
            program=objective.program,
            is_custom=True,
            week_start=week_start(today or datetime.now(timezone.utc)),
            completed=False,
        )

    async def deactivate_objective(self, caller: User, objective_id: int) -> None:
        """
        Retire a custom objective; its past completions are kept.

        Raises:
            NotFoundError: If the objective does not exist or is not the caller's.
            ValidationError: If it is a default objective.
        """
        objective = await self.db.get(WeeklyObjective, objective_id)
        if objective is None or objective.learner_id != caller.id:
            raise NotFoundError(
                f"Objective {objective_id} not found", details={"objective_id": objective_id}
            )
        if not objective.is_custom:
            raise ValidationError(
                "Default objectives cannot be removed", details={"objective_id": objective_id}
            )

        objective.is_active = False
        await self.db.flush()
        logger.info(f"Learner {caller.id} retired objective {objective_id}")

    # =========================================================================
    # Completions
    # =========================================================================

    async def set_daily_completion(
        self,
        caller: User,
        request: DailyCompletionUpsert,
        today: Optional[datetime] = None,
    ) -> None:
        day = request.completion_date or to_date(today or datetime.now(timezone.utc))
        await upsert(
            self.db,
            DailyActivityCompletion,
            ["learner_id", "program", "completion_date"],
            {
                "learner_id": caller.id,
                "program": request.program.value,
                "completion_date": day,
                "completed": request.completed,
            },
        )
        await self.db.flush()
        logger.debug(
            f"Daily completion {request.program.value} {day} = {request.completed} "
            f"for learner {caller.id}"
        )

    async def set_objective_completion(
        self,
        caller: User,
        objective_id: int,
        request: ObjectiveCompletionUpsert,
        today: Optional[datetime] = None,
    ) -> None:
        """
        Mark an objective done (or not) for the week containing `week_of`.

        Raises:
            NotFoundError: If the objective does not exist, is retired or is
                not the caller's.
        """
        objective = await self.db.get(WeeklyObjective, objective_id)
        if objective is None or objective.learner_id != caller.id or not objective.is_active:
            raise NotFoundError(
                f"Objective {objective_id} not found", details={"objective_id": objective_id}
            )

        week =week_start(request.week_of or today or datetime.now(timezone.utc))
        await upsert(
            self.db,
            WeeklyObjectiveCompletion,
            ["objective_id", "week_start"],
            {
                "objective_id": objective_id,
                "week_start": week,
                "completed": request.completed,
            },
        )
        await self.db.flush()
        logger.debug(f"Objective {objective_id} week {week} = {request.completed}")

    # =========================================================================
    # Completion Cycles
    # =========================================================================

    async def _previous_cycle_at(
        self, learner_id: int, cycle_type: str, before: datetime
    ) -> Optional[datetime]:
        result = await self.db.execute(
            select(CompletionCycle.completed_at)
            .where(
                CompletionCycle.learner_id == learner_id,
                CompletionCycle.cycle_type == cycle_type,
            )
        )
        earlier = [
            ensure_utc(completed_at)
            for completed_at in result.scalars().all()
            if ensure_utc(completed_at) <= before
        ]
        return max(earlier) if earlier else None

    async def record_cycle(
        self,
        caller: User,
        request: CompletionCycleCreate,
        now: Optional[datetime] = None,
    ) -> CompletionCycleResponse:
        """Append a full pass; days_to_complete counts from the previous one."""
        completed_at = ensure_utc(request.completed_at or now or datetime.now(timezone.utc))
        previous = await self._previous_cycle_at(
            caller.id, request.cycle_type.value, completed_at
        )

        cycle = CompletionCycle(
            learner_id=caller.id,
            cycle_type=request.cycle_type.value,
            completed_at=completed_at,
            days_to_complete=days_since_previous_cycle(previous, completed_at),
            unit_count=request.unit_count,
            notes=request.notes,
        )
        self.db.add(cycle)
        await self.db.flush()
        logger.info(
            f"Learner {caller.id} completed a {request.cycle_type.value} cycle "
            f"({cycle.days_to_complete} days)"
        )
        return CompletionCycleResponse.model_validate(cycle)

    async def get_cycle_stats(
        self, learner_id: int, now: Optional[datetime] = None
    ) -> list[CycleStats]:
        result = await self.db.execute(
            select(CompletionCycle).where(CompletionCycle.learner_id == learner_id)
        )
        return summarize_cycles(
            result.scalars().all(), ensure_utc(now or datetime.now(timezone.utc))
        )
