"""
Committee Ledger - Source Package

A local-first ledger for rotating savings committees (ROSCAs): members pay
a fixed contribution every month and one shareholder takes the whole pool
each month until everyone has won once.

DESIGN PRINCIPLES:
1. Derived figures are computed, never stored
2. Every multi-step change is one transaction
3. Rules are checked before anything is written
4. Every change is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Committee Ledger Team"

from committee_ledger.ledger import dumps_backup, loads_backup
from committee_ledger.models import (
    Committee,
    Draw,
    LedgerSnapshot,
    Member,
    Pair,
    PayerType,
    Payment,
    PaymentStatus,
    Shareholder,
    ShareholderRef,
    ShareType,
)
from committee_ledger.orchestrator import CommitteeLedgerService, create_app_components
from committee_ledger.services.storage import (
    ConflictError,
    EntityStore,
    InMemoryEntityStore,
    LedgerError,
    NotFoundError,
    SqliteEntityStore,
    StorageError,
    StoreNotOpenError,
)

__all__ = [
    "Committee",
    "CommitteeLedgerService",
    "ConflictError",
    "Draw",
    "EntityStore",
    "InMemoryEntityStore",
    "LedgerError",
    "LedgerSnapshot",
    "Member",
    "NotFoundError",
    "Pair",
    "PayerType",
    "Payment",
    "PaymentStatus",
    "Shareholder",
    "ShareholderRef",
    "ShareType",
    "SqliteEntityStore",
    "StorageError",
    "StoreNotOpenError",
    "create_app_components",
    "dumps_backup",
    "loads_backup",
]
