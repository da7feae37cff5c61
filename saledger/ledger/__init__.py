"""
saledger Ledger - Append-only, proof-of-work sealed witness chain.

The ledger is the tamper-evidence record for every SA lifecycle event.
"""

from saledger.ledger.journal import BlockJournal
from saledger.ledger.ledger import Ledger, ValidationReport, validate_blocks
from saledger.ledger.outbox import Outbox, OutboxEntry, WitnessService

__all__ = [
    "BlockJournal",
    "Ledger",
    "Outbox",
    "OutboxEntry",
    "ValidationReport",
    "WitnessService",
    "validate_blocks",
]
