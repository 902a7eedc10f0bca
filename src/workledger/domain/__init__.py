"""Domain layer for workledger application.

Services that touch storage (WorkforceService, BackupRestoreManager,
SchemaMigrationGate) are imported from their modules directly, since the
storage mappers import the entities defined here.
"""

from workledger.domain.store import EntityStore
from workledger.domain.validation import RejectionReason, ValidationResult, validate

__all__ = [
    "EntityStore",
    "RejectionReason",
    "ValidationResult",
    "validate",
]
