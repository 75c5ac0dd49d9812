"""
Biohacker - Dose Expander

Turns a cycle's recurrence rule into the concrete list of dose events
covering every day of the cycle, both endpoints included.
"""

from typing import Iterator, List, Optional
from datetime import date, timedelta

from biohacker.models.documents import (
    Cycle, DoseEvent, DoseStatus, FrequencyType, RecurrenceRule, WEEKDAY_CODES
)


# Fixed clock times per number of daily doses
DAILY_SLOTS = {
    1: ["08:00"],
    2: ["08:00", "20:00"],
}
DAILY_SLOTS_MAX = ["06:00", "12:00", "20:00"]

# Weekly and monthly doses happen once, in the morning
SINGLE_SLOT = "08:00"


def daily_slots(times: int) -> List[str]:
    """Time labels for a daily rule: 1 -> 1 slot, 2 -> 2 slots, else 3"""
    if times <= 1:
        return DAILY_SLOTS[1]
    return DAILY_SLOTS.get(times, DAILY_SLOTS_MAX)


def iter_days(start: date, end: date) -> Iterator[date]:
    """Every calendar day from start to end inclusive"""
    for offset in range((end - start).days + 1):
        yield start + timedelta(days=offset)


def slots_for_day(rule: RecurrenceRule, day: date) -> List[str]:
    """Time labels the rule schedules on a given day (possibly none)"""
    if rule.type == FrequencyType.DAILY:
        return daily_slots(rule.times)

    if rule.type == FrequencyType.WEEKLY:
        if WEEKDAY_CODES[day.weekday()] in rule.days:
            return [SINGLE_SLOT]
        return []

    if rule.type == FrequencyType.MONTHLY:
        if day.day in rule.dates:
            return [SINGLE_SLOT]
        return []

    return []


def expand_cycle(
    cycle: Cycle,
    start: Optional[date] = None,
    end: Optional[date] = None
) -> List[DoseEvent]:
    """
    Expand a cycle into its dose events

    Args:
        cycle: Cycle with frequency, start and end dates
        start: Optional lower bound (defaults to cycle.start_date)
        end: Optional upper bound (defaults to cycle.end_date)

    Returns:
        Dose events ordered by date then time; dose_ids are deterministic
        so re-expanding the same cycle yields the same keys.
    """
    range_start = max(start, cycle.start_date) if start else cycle.start_date
    range_end = min(end, cycle.end_date) if end else cycle.end_date

    doses = []
    for day in iter_days(range_start, range_end):
        for time_label in slots_for_day(cycle.frequency, day):
            doses.append(DoseEvent(
                dose_id=DoseEvent.make_id(cycle.cycle_id, day, time_label),
                cycle_id=cycle.cycle_id,
                user_id=cycle.user_id,
                peptide_name=cycle.peptide_name,
                dose_amount=cycle.dose_amount,
                time_label=time_label,
                scheduled_date=day,
                status=DoseStatus.SCHEDULED,
            ))

    return doses

