"""
saledger/__init__.py

saledger: Hash-Chained Witness Ledger for Security Association Lifecycle Events

Every create / update / delete / status change of an IPsec SA is sealed
into an append-only, proof-of-work chain. The block hash returned by
Ledger.append() is the witness the owning service stores next to the
canonical record.
"""

__version__ = "0.3.0"

from saledger.core.block import (
    Block,
    DraftBlock,
    GENESIS_PREVIOUS_HASH,
    draft,
    recompute_hash,
)
from saledger.core.canonical import canonicalize, digest
from saledger.core.exceptions import (
    IntegrityError,
    LedgerError,
    OutboxError,
    SALedgerError,
    SealTimeoutError,
    ValidationError,
)
from saledger.core.models import LifecycleAction, Protocol, SAEvent, SAStatus, hash_secret_key
from saledger.core.sealing import seal
from saledger.ledger import (
    BlockJournal,
    Ledger,
    Outbox,
    ValidationReport,
    WitnessService,
)
from saledger.audit import IntegrityAuditor
from saledger.config import LedgerConfig

__all__ = [
    # Core types
    "Block",
    "DraftBlock",
    "Ledger",
    "SAEvent",
    "ValidationReport",
    # Operations
    "draft",
    "seal",
    "recompute_hash",
    "digest",
    "canonicalize",
    "hash_secret_key",
    # Services
    "BlockJournal",
    "IntegrityAuditor",
    "LedgerConfig",
    "Outbox",
    "WitnessService",
    # Vocabulary
    "LifecycleAction",
    "Protocol",
    "SAStatus",
    # Errors
    "SALedgerError",
    "IntegrityError",
    "LedgerError",
    "OutboxError",
    "SealTimeoutError",
    "ValidationError",
    # Constants
    "GENESIS_PREVIOUS_HASH",
]
