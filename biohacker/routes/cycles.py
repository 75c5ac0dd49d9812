"""
Biohacker - Cycle & Dose Endpoints

CRUD for peptide cycles, their generated dose schedules and dose logging.
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field, model_validator
from typing import Optional, List
from datetime import date, timedelta

from biohacker.cycle_service import CycleService
from biohacker.deps import get_database
from biohacker.middleware.auth import get_current_user
from biohacker.models.documents import (
    Cycle, CycleStatus, DoseEvent, DoseStatus, RecurrenceRule, check_cycle_range, utcnow
)
from biohacker.scheduling import expand_cycle

router = APIRouter()

# Longest window /doses will return in one call
MAX_DOSE_WINDOW_DAYS = 366


# =============================================================================
# REQUEST MODELS
# =============================================================================

class CreateCycleRequest(BaseModel):
    """Request to create a cycle"""
    name: Optional[str] = None
    peptide_name: str = Field(..., min_length=1)
    dose_amount: str = Field(..., min_length=1)   # "250mcg"
    start_date: date
    end_date: date
    frequency: RecurrenceRule = Field(default_factory=RecurrenceRule)
    notes: Optional[str] = None

    @model_validator(mode="after")
    def check_range(self) -> "CreateCycleRequest":
        check_cycle_range(self.start_date, self.end_date)
        return self


class UpdateCycleRequest(BaseModel):
    """Partial cycle edit; range/frequency changes regenerate doses"""
    name: Optional[str] = None
    dose_amount: Optional[str] = None
    notes: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    frequency: Optional[RecurrenceRule] = None


class UpdateDoseRequest(BaseModel):
    """Request to set a dose's status"""
    status: DoseStatus
    notes: Optional[str] = None


class ToggleDoseRequest(BaseModel):
    notes: Optional[str] = None


def _cycle_summary(cycle: Cycle) -> dict:
    return {
        "cycle_id": cycle.cycle_id,
        "name": cycle.display_name,
        "peptide_name": cycle.peptide_name,
        "dose_amount": cycle.dose_amount,
        "start_date": cycle.start_date.isoformat(),
        "end_date": cycle.end_date.isoformat(),
        "frequency": cycle.frequency.model_dump(mode="json"),
        "status": cycle.status.value,
        "doses_logged": cycle.doses_logged,
        "total_expected_doses": cycle.total_expected_doses,
        "adherence": cycle.adherence_percent(),
    }


async def _owned_cycle(service: CycleService, cycle_id: str, user: dict) -> Cycle:
    cycle = await service.get_cycle(cycle_id)

    if not cycle:
        raise HTTPException(404, "Cycle not found")

    if cycle.user_id != user["user_id"] and not user.get("is_admin"):
        raise HTTPException(403, "Not authorized to access this cycle")

    return cycle


async def _owned_dose(service: CycleService, dose_id: str, user: dict) -> DoseEvent:
    dose = await service.get_dose(dose_id)

    if not dose:
        raise HTTPException(404, "Dose not found")

    if dose.user_id != user["user_id"] and not user.get("is_admin"):
        raise HTTPException(403, "Not authorized to access this dose")

    return dose


# =============================================================================
# CYCLE ENDPOINTS
# =============================================================================

@router.post("/cycles")
async def create_cycle(
    body: CreateCycleRequest,
    user: dict = Depends(get_current_user)
):
    """Create a cycle and generate its dose schedule"""
    service = CycleService(get_database())

    cycle, generation = await service.create_cycle(
        user_id=user["user_id"],
        name=body.name,
        peptide_name=body.peptide_name,
        dose_amount=body.dose_amount,
        start_date=body.start_date,
        end_date=body.end_date,
        frequency=body.frequency,
        notes=body.notes,
    )

    return {"cycle": _cycle_summary(cycle), "doses": generation.to_dict()}


@router.post("/cycles/preview")
async def preview_cycle(
    body: CreateCycleRequest,
    user: dict = Depends(get_current_user)
):
    """Expand a schedule without saving anything"""
    cycle = Cycle(user_id=user["user_id"], **body.model_dump())
    doses = expand_cycle(cycle)

    return {
        "total": len(doses),
        "doses": [
            {"scheduled_date": d.scheduled_date.isoformat(), "time_label": d.time_label}
            for d in doses
        ],
    }


@router.get("/cycles", response_model=List[dict])
async def list_cycles(
    status: Optional[CycleStatus] = None,
    limit: int = Query(default=50, ge=1, le=200),
    user: dict = Depends(get_current_user)
):
    """List user's cycles"""
    service = CycleService(get_database())
    cycles = await service.get_user_cycles(user["user_id"], status=status, limit=limit)
    return [_cycle_summary(c) for c in cycles]


@router.get("/cycles/{cycle_id}")
async def get_cycle(cycle_id: str, user: dict = Depends(get_current_user)):
    """Get a cycle with full details"""
    service = CycleService(get_database())
    cycle = await _owned_cycle(service, cycle_id, user)
    return cycle.model_dump(mode="json")


@router.patch("/cycles/{cycle_id}")
async def update_cycle(
    cycle_id: str,
    body: UpdateCycleRequest,
    user: dict = Depends(get_current_user)
):
    """Edit a cycle"""
    service = CycleService(get_database())
    await _owned_cycle(service, cycle_id, user)

    changes = {field: getattr(body, field) for field in body.model_fields_set}
    cycle, generation = await service.update_cycle(cycle_id, **changes)

    return {
        "cycle": _cycle_summary(cycle),
        "doses": generation.to_dict() if generation else None,
    }


@router.delete("/cycles/{cycle_id}")
async def delete_cycle(cycle_id: str, user: dict = Depends(get_current_user)):
    """Delete a cycle and all of its doses"""
    service = CycleService(get_database())
    await _owned_cycle(service, cycle_id, user)

    removed = await service.delete_cycle(cycle_id)
    return {"status": "deleted", "doses_removed": removed}


@router.post("/cycles/{cycle_id}/pause")
async def pause_cycle(cycle_id: str, user: dict = Depends(get_current_user)):
    service = CycleService(get_database())
    await _owned_cycle(service, cycle_id, user)
    cycle = await service.pause_cycle(cycle_id)
    return {"status": cycle.status.value}


@router.post("/cycles/{cycle_id}/resume")
async def resume_cycle(cycle_id: str, user: dict = Depends(get_current_user)):
    service = CycleService(get_database())
    await _owned_cycle(service, cycle_id, user)
    cycle = await service.resume_cycle(cycle_id)
    return {"status": cycle.status.value}


@router.post("/cycles/{cycle_id}/complete")
async def complete_cycle(cycle_id: str, user: dict = Depends(get_current_user)):
    service = CycleService(get_database())
    await _owned_cycle(service, cycle_id, user)
    cycle = await service.complete_cycle(cycle_id)
    return {"status": cycle.status.value}


@router.post("/cycles/{cycle_id}/generate-doses")
async def generate_doses(cycle_id: str, user: dict = Depends(get_current_user)):
    """Re-run schedule generation; existing doses are left as they are"""
    service = CycleService(get_database())
    cycle = await _owned_cycle(service, cycle_id, user)
    generation = await service.generate_doses(cycle)
    return generation.to_dict()


# =============================================================================
# DOSE ENDPOINTS
# =============================================================================

@router.get("/doses")
async def list_doses(
    start: Optional[date] = None,
    end: Optional[date] = None,
    user: dict = Depends(get_current_user)
):
    """Doses in a window, defaulting to the coming week"""
    start = start or utcnow().date()
    end = end or start + timedelta(days=6)

    if end < start:
        raise HTTPException(400, "end must be on or after start")
    if (end - start).days >= MAX_DOSE_WINDOW_DAYS:
        raise HTTPException(400, f"Window is limited to {MAX_DOSE_WINDOW_DAYS} days")

    service = CycleService(get_database())
    doses = await service.list_doses(user["user_id"], start, end)
    return [d.model_dump(mode="json") for d in doses]


@router.get("/doses/adherence")
async def dose_adherence(
    days: int = Query(default=7, ge=1, le=365),
    user: dict = Depends(get_current_user)
):
    """Logged vs due doses over the last N days"""
    service = CycleService(get_database())
    percent = await service.adherence(user["user_id"], days=days)
    today_count = await service.doses_today_count(user["user_id"])
    return {"days": days, "adherence": percent, "doses_today": today_count}


@router.patch("/doses/{dose_id}")
async def update_dose(
    dose_id: str,
    body: UpdateDoseRequest,
    user: dict = Depends(get_current_user)
):
    """Log, un-log or miss a dose"""
    service = CycleService(get_database())
    await _owned_dose(service, dose_id, user)
    dose = await service.update_dose_status(dose_id, body.status, body.notes)
    return dose.model_dump(mode="json")


@router.post("/doses/{dose_id}/toggle")
async def toggle_dose(
    dose_id: str,
    body: Optional[ToggleDoseRequest] = None,
    user: dict = Depends(get_current_user)
):
    """Flip a dose between scheduled and logged"""
    service = CycleService(get_database())
    await _owned_dose(service, dose_id, user)
    dose = await service.toggle_dose(dose_id, body.notes if body else None)
    return dose.model_dump(mode="json")
