"""
Status and Type Enums

Stored as plain strings. Job status is open-ended: unknown values read back
from the database are kept as-is and only compared for equality.
"""

from enum import Enum


class JobStatus(str, Enum):
    """Maintenance job status"""
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class SettlementStatus(str, Enum):
    """Settlement lifecycle: open -> paid (terminal)"""
    OPEN = "open"
    PAID = "paid"


class SettlementType(str, Enum):
    """Who the settlement pays out to"""
    REP = "rep"
    TECH = "tech"
