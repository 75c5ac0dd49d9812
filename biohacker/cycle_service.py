"""
Biohacker - Cycle Service

Business logic for peptide cycles, their generated dose schedules,
dose logging and adherence.
"""

from typing import Optional, List, Dict, Any
from dataclasses import dataclass
from datetime import date, timedelta
import logging

from biohacker.models.documents import (
    Cycle, CycleStatus, DoseEvent, DoseStatus, RecurrenceRule, utcnow
)
from biohacker.protocols.stores import IDoseStore
from biohacker.scheduling import expand_cycle
from biohacker.storage import DoseStore

logger = logging.getLogger(__name__)


@dataclass
class GenerationResult:
    """How many of the generated doses were persisted"""
    generated: int
    count: int
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.count == self.generated

    def to_dict(self) -> Dict[str, Any]:
        body = {"success": self.success, "count": self.count, "generated": self.generated}
        if self.error:
            body["error"] = self.error
        return body


class CycleService:
    """
    Service for managing peptide cycles

    Handles:
    - Cycle CRUD and status transitions
    - Dose schedule generation (idempotent)
    - Dose logging and adherence
    """

    def __init__(self, db, doses: Optional[IDoseStore] = None):
        """
        db should have collections:
        - cycles
        - dose_events

        `doses` replaces the Motor-backed dose store, mainly in tests.
        """
        self.db = db
        self.doses = doses or DoseStore(db)

    # =========================================================================
    # CYCLE LIFECYCLE
    # =========================================================================

    async def create_cycle(
        self,
        user_id: str,
        peptide_name: str,
        dose_amount: str,
        start_date: date,
        end_date: date,
        frequency: RecurrenceRule,
        name: Optional[str] = None,
        notes: Optional[str] = None
    ) -> tuple[Cycle, GenerationResult]:
        """
        Create a cycle and generate its dose schedule
        """
        cycle = Cycle(
            user_id=user_id,
            name=name,
            peptide_name=peptide_name,
            dose_amount=dose_amount,
            start_date=start_date,
            end_date=end_date,
            frequency=frequency,
            notes=notes,
        )

        await self.db.cycles.insert_one(cycle.model_dump(mode="json"))

        generation = await self.generate_doses(cycle)
        return cycle, generation

    async def get_cycle(self, cycle_id: str) -> Optional[Cycle]:
        """Get a cycle by ID"""
        data = await self.db.cycles.find_one({"cycle_id": cycle_id})
        if data:
            return Cycle(**data)
        return None

    async def get_user_cycles(
        self,
        user_id: str,
        status: Optional[CycleStatus] = None,
        limit: int = 50
    ) -> List[Cycle]:
        """A user's cycles, most recent start first"""
        query = {"user_id": user_id}
        if status:
            query["status"] = status.value

        cursor = self.db.cycles.find(query).sort("start_date", -1).limit(limit)
        cycles = []
        async for doc in cursor:
            cycles.append(Cycle(**doc))
        return cycles

    async def _save(self, cycle: Cycle):
        cycle.updated_at = utcnow()
        await self.db.cycles.update_one(
            {"cycle_id": cycle.cycle_id},
            {"$set": cycle.model_dump(mode="json")}
        )

    async def update_cycle(
        self,
        cycle_id: str,
        name: Optional[str] = None,
        dose_amount: Optional[str] = None,
        notes: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        frequency: Optional[RecurrenceRule] = None
    ) -> tuple[Cycle, Optional[GenerationResult]]:
        """
        Edit a cycle

        A new range or frequency regenerates the schedule. Doses already
        generated keep their snapshot; new ones use the edited dose amount.
        """
        cycle = await self.get_cycle(cycle_id)
        if not cycle:
            raise ValueError(f"Cycle {cycle_id} not found")

        if name is not None:
            cycle.name = name
        if dose_amount is not None:
            cycle.dose_amount = dose_amount
        if notes is not None:
            cycle.notes = notes

        schedule_changed = (
            (start_date is not None and start_date != cycle.start_date)
            or (end_date is not None and end_date != cycle.end_date)
            or (frequency is not None and frequency != cycle.frequency)
        )

        if schedule_changed:
            # Re-validate the range through the model
            cycle = Cycle(**{
                **cycle.model_dump(),
                "start_date": start_date or cycle.start_date,
                "end_date": end_date or cycle.end_date,
                "frequency": frequency or cycle.frequency,
            })

        await self._save(cycle)

        if not schedule_changed:
            return cycle, None

        generation = await self.generate_doses(cycle)
        kept_ids = [dose.dose_id for dose in expand_cycle(cycle)]
        pruned = await self.doses.prune_unscheduled(cycle.cycle_id, kept_ids)
        if pruned:
            logger.info(f"Removed {pruned} scheduled doses outside cycle {cycle_id}'s new schedule")

        return cycle, generation

    async def _set_status(self, cycle_id: str, status: CycleStatus) -> Cycle:
        cycle = await self.get_cycle(cycle_id)
        if not cycle:
            raise ValueError(f"Cycle {cycle_id} not found")

        cycle.status = status
        cycle.completed_at = utcnow() if status == CycleStatus.COMPLETED else None
        await self._save(cycle)
        return cycle

    async def pause_cycle(self, cycle_id: str) -> Cycle:
        """Pause an active cycle"""
        return await self._set_status(cycle_id, CycleStatus.PAUSED)

    async def resume_cycle(self, cycle_id: str) -> Cycle:
        """Resume a paused cycle"""
        return await self._set_status(cycle_id, CycleStatus.ACTIVE)

    async def complete_cycle(self, cycle_id: str) -> Cycle:
        """Mark a cycle as finished"""
        return await self._set_status(cycle_id, CycleStatus.COMPLETED)

    async def delete_cycle(self, cycle_id: str) -> int:
        """
        Delete a cycle and every dose it owns

        Returns the number of doses removed.
        """
        removed = await self.doses.delete_for_cycle(cycle_id)
        result = await self.db.cycles.delete_one({"cycle_id": cycle_id})
        if result.deleted_count == 0:
            raise ValueError(f"Cycle {cycle_id} not found")

        logger.info(f"Deleted cycle {cycle_id} and {removed} doses")
        return removed

    # =========================================================================
    # DOSE SCHEDULE
    # =========================================================================

    async def generate_doses(self, cycle: Cycle) -> GenerationResult:
        """
        Expand the cycle and persist each dose

        Each dose is written independently; the result reports how many of
        the generated doses were saved instead of failing all-or-nothing.
        """
        doses = expand_cycle(cycle)

        saved = 0
        for dose in doses:
            result = await self.doses.upsert(dose)
            if result.success:
                saved += 1

        await self.db.cycles.update_one(
            {"cycle_id": cycle.cycle_id},
            {"$set": {"total_expected_doses": len(doses)}}
        )
        cycle.total_expected_doses = len(doses)

        if saved < len(doses):
            logger.warning(f"Cycle {cycle.cycle_id}: only {saved}/{len(doses)} doses saved")
            return GenerationResult(
                generated=len(doses),
                count=saved,
                error=f"Only {saved}/{len(doses)} doses saved"
            )

        return GenerationResult(generated=len(doses), count=saved)

    async def list_doses(self, user_id: str, start: date, end: date) -> List[DoseEvent]:
        """A user's doses in a date window"""
        if end < start:
            raise ValueError("end must be on or after start")
        return await self.doses.list_by_date_range(user_id, start, end)

    # =========================================================================
    # LOGGING
    # =========================================================================

    async def _refresh_logged_count(self, cycle_id: str):
        count = await self.db.dose_events.count_documents({
            "cycle_id": cycle_id,
            "status": DoseStatus.LOGGED.value
        })
        await self.db.cycles.update_one(
            {"cycle_id": cycle_id},
            {"$set": {"doses_logged": count, "updated_at": utcnow().isoformat()}}
        )

    async def update_dose_status(
        self,
        dose_id: str,
        status: DoseStatus,
        notes: Optional[str] = None
    ) -> DoseEvent:
        """Set a dose's status and keep the cycle's logged count in step"""
        result = await self.doses.update_status(dose_id, status, notes)
        if not result.success:
            raise ValueError(result.error or f"Dose {dose_id} not updated")

        dose = await self.doses.get(dose_id)
        await self._refresh_logged_count(dose.cycle_id)
        return dose

    async def toggle_dose(self, dose_id: str, notes: Optional[str] = None) -> DoseEvent:
        """scheduled/missed -> logged, logged -> scheduled"""
        dose = await self.doses.get(dose_id)
        if not dose:
            raise ValueError(f"Dose {dose_id} not found")

        new_status = DoseStatus.SCHEDULED if dose.status == DoseStatus.LOGGED else DoseStatus.LOGGED
        return await self.update_dose_status(dose_id, new_status, notes)

    async def get_dose(self, dose_id: str) -> Optional[DoseEvent]:
        return await self.doses.get(dose_id)

    # =========================================================================
    # AGGREGATION
    # =========================================================================

    async def adherence(
        self,
        user_id: str,
        days: int = 7,
        today: Optional[date] = None
    ) -> float:
        """
        Percentage of due doses logged over the last `days` days

        Returns 100.0 when nothing was due in the window.
        """
        if days < 1:
            raise ValueError("days must be at least 1")

        end = today or utcnow().date()
        start = end - timedelta(days=days - 1)

        due = await self.doses.count(user_id, start, end)
        if due == 0:
            return 100.0

        logged = await self.doses.count(user_id, start, end, status=DoseStatus.LOGGED)
        return round(logged / due * 100, 1)

    async def doses_today_count(self, user_id: str, today: Optional[date] = None) -> int:
        day = today or utcnow().date()
        return await self.doses.count(user_id, day, day)
