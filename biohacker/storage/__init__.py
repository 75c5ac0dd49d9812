"""
Biohacker - MongoDB-backed stores
"""

from .dose_store import DoseStore
from .connection_store import ConnectionStore

__all__ = ["DoseStore", "ConnectionStore"]
