"""
Biohacker - Dose Scheduling
"""

from .dose_expander import expand_cycle, daily_slots

__all__ = ["expand_cycle", "daily_slots"]
