"""
Ledger Package

Domain engines of the committee ledger: committee CRUD, half-share
pairing, payments, draws, cascading deletes and backup.
"""

from committee_ledger.ledger import calculator
from committee_ledger.ledger.backup import BackupService, dumps_backup, loads_backup
from committee_ledger.ledger.cascade import CascadeManager
from committee_ledger.ledger.committees import CommitteeRegistry
from committee_ledger.ledger.draws import DrawEligibilityEngine
from committee_ledger.ledger.pairing import PairingEngine
from committee_ledger.ledger.payments import PaymentLedger

__all__ = [
    "BackupService",
    "CascadeManager",
    "CommitteeRegistry",
    "DrawEligibilityEngine",
    "PairingEngine",
    "PaymentLedger",
    "calculator",
    "dumps_backup",
    "loads_backup",
]
