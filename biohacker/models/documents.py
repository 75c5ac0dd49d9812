"""
Biohacker - Core Data Models

This module contains all Pydantic models for:
- Cycles and their recurrence rules
- Scheduled dose events
- External calendar connections
- Lab reports and AI insights
"""

from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List
from datetime import datetime, date, timezone
from enum import Enum
from uuid import uuid4


def utcnow() -> datetime:
    """Timezone-aware current UTC time"""
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS
# =============================================================================

class FrequencyType(str, Enum):
    """How often a cycle's doses recur"""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class CycleStatus(str, Enum):
    """Lifecycle of a peptide cycle"""
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


class DoseStatus(str, Enum):
    """Fulfillment status of a scheduled dose"""
    SCHEDULED = "scheduled"
    LOGGED = "logged"
    MISSED = "missed"


class CalendarProvider(str, Enum):
    """Supported external calendar providers"""
    GOOGLE = "google"


class SyncStatus(str, Enum):
    """Outcome of the most recent calendar sync"""
    ACTIVE = "active"       # Connected, never synced
    SYNCING = "syncing"     # Token refreshed, batch in progress
    SUCCESS = "success"
    ERROR = "error"


class InsightType(str, Enum):
    """Tone of an AI-generated insight"""
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    CAUTION = "caution"


# Weekday codes, indexed by date.weekday() (Monday == 0)
WEEKDAY_CODES = ["MON", "TUE", "WED", "THU", "FRI", "SAT", "SUN"]

DEFAULT_ROUTE = "SubQ"


# =============================================================================
# CYCLE MODELS
# =============================================================================

class RecurrenceRule(BaseModel):
    """
    How often a dose occurs

    Only the selector relevant to `type` is consulted:
    - daily: `times` (doses per day)
    - weekly: `days` (weekday codes)
    - monthly: `dates` (days of month)
    """
    type: FrequencyType = FrequencyType.DAILY
    times: int = Field(default=1, ge=1)
    days: List[str] = []
    dates: List[int] = []

    @field_validator("days")
    @classmethod
    def normalize_days(cls, v: List[str]) -> List[str]:
        normalized = []
        for code in v:
            code = code.strip().upper()[:3]
            if code not in WEEKDAY_CODES:
                raise ValueError(f"Unknown weekday code: {code}")
            if code not in normalized:
                normalized.append(code)
        return normalized

    @field_validator("dates")
    @classmethod
    def check_dates(cls, v: List[int]) -> List[int]:
        for dom in v:
            if dom < 1 or dom > 31:
                raise ValueError(f"Day of month out of range: {dom}")
        return sorted(set(v))


# Longest cycle, start to end inclusive
MAX_CYCLE_DAYS = 730


def check_cycle_range(start: date, end: date):
    if end < start:
        raise ValueError("end_date must be on or after start_date")
    if (end - start).days >= MAX_CYCLE_DAYS:
        raise ValueError(f"Cycles are limited to {MAX_CYCLE_DAYS} days")


class Cycle(BaseModel):

    """
    A peptide cycle - one peptide, one dose, one schedule, one date range
    """
    cycle_id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: str
    name: Optional[str] = None
    peptide_name: str
    dose_amount: str                        # e.g. "250mcg"
    start_date: date
    end_date: date                          # Inclusive
    frequency: RecurrenceRule = Field(default_factory=RecurrenceRule)
    status: CycleStatus = CycleStatus.ACTIVE
    notes: Optional[str] = None

    doses_logged: int = 0
    total_expected_doses: int = 0

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None

    @model_validator(mode="after")
    def check_range(self) -> "Cycle":
        check_cycle_range(self.start_date, self.end_date)
        return self

    @property
    def display_name(self) -> str:
        return self.name or self.peptide_name

    def adherence_percent(self) -> Optional[float]:
        """Logged doses as a percentage of expected, None if nothing expected"""
        if not self.total_expected_doses:
            return None
        return round(self.doses_logged / self.total_expected_doses * 100, 1)


class DoseEvent(BaseModel):
    """
    A single scheduled dose

    Peptide name and dose amount are a snapshot of the cycle at generation
    time; later edits to the cycle do not rewrite existing doses.
    """
    dose_id: str
    cycle_id: str
    user_id: str
    peptide_name: str
    dose_amount: str
    route: str = DEFAULT_ROUTE
    time_label: str                         # HH:MM, 24-hour
    scheduled_date: date
    status: DoseStatus = DoseStatus.SCHEDULED
    notes: Optional[str] = None
    logged_at: Optional[datetime] = None

    @staticmethod
    def make_id(cycle_id: str, scheduled_date: date, time_label: str) -> str:
        """Deterministic composite key (cycle, date, time)"""
        return f"{cycle_id}-{scheduled_date.isoformat()}-{time_label}"


# =============================================================================
# CALENDAR MODELS
# =============================================================================

class CalendarConnection(BaseModel):
    """
    OAuth link between a user and an external calendar account
    One per (user_id, provider)
    """
    user_id: str
    provider: CalendarProvider = CalendarProvider.GOOGLE
    access_token: str
    refresh_token: Optional[str] = None
    token_expiry: datetime
    calendar_email: Optional[str] = None
    calendar_name: Optional[str] = None

    sync_enabled: bool = True
    sync_status: SyncStatus = SyncStatus.ACTIVE
    last_sync_at: Optional[datetime] = None
    sync_error: Optional[str] = None
    sync_started_at: Optional[datetime] = None   # Held while a sync runs

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator("token_expiry", "last_sync_at", "sync_started_at")
    @classmethod
    def assume_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        # Naive timestamps are stored as UTC
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return self.token_expiry <= (now or utcnow())

    def public_view(self) -> dict:
        """Connection fields safe to return to the frontend (no tokens)"""
        return {
            "provider": self.provider.value,
            "calendar_email": self.calendar_email,
            "calendar_name": self.calendar_name,
            "sync_enabled": self.sync_enabled,
            "sync_status": self.sync_status.value,
            "last_sync_at": self.last_sync_at.isoformat() if self.last_sync_at else None,
            "sync_error": self.sync_error,
        }


# =============================================================================
# LAB & INSIGHT MODELS
# =============================================================================

class LabMarker(BaseModel):
    """A single biomarker reading from a lab report"""
    marker_name: str
    value: Optional[float] = None
    unit: Optional[str] = None
    reference_min: Optional[float] = None
    reference_max: Optional[float] = None

    def is_out_of_range(self) -> bool:
        if self.value is None:
            return False
        if self.reference_min is not None and self.value < self.reference_min:
            return True
        if self.reference_max is not None and self.value > self.reference_max:
            return True
        return False


class LabReport(BaseModel):
    """A dated set of lab markers"""
    report_id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: str
    test_date: Optional[date] = None
    lab_name: Optional[str] = None
    markers: List[LabMarker] = []
    created_at: datetime = Field(default_factory=utcnow)


class Insight(BaseModel):
    """An AI-generated observation over cycles and labs"""
    type: InsightType = InsightType.NEUTRAL
    title: str
    insight: str
    recommendation: Optional[str] = None
