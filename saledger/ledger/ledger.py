"""
saledger/ledger/ledger.py

The SA witness ledger.

Ledger contract: append() MUST, in this exact order:
  1. Acquire the append lock        (one writer at a time)
  2. Read the tip                   (index, hash)
  3. Draft the next block           index = tip.index + 1, timestamp = now
  4. Seal it                        proof-of-work under self.difficulty
  5. Write it to the journal        only if a journal is configured
  6. Publish it                     under the state lock, after the write
  7. Return its hash                the witness for the canonical record

Readers (validate, get_by_hash, snapshot) take only the state lock, which
is never held during sealing. A reader therefore either sees a block fully
sealed and linked, or does not see it at all.

No module-level instance. Construct one at startup and pass it around.
"""

import asyncio
import copy
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from saledger.core.block import (
    Block,
    GENESIS_PAYLOAD,
    GENESIS_PREVIOUS_HASH,
    draft,
    meets_difficulty,
    recompute_hash,
)
from saledger.core.exceptions import IntegrityError, LedgerError
from saledger.core.models import SAEvent
from saledger.core.sealing import seal
from saledger.core.time import now_ms
from saledger.ledger.journal import BlockJournal


logger = logging.getLogger(__name__)

DEFAULT_DIFFICULTY = 2


# ─────────────────────────────────────────────────────────────
# Validation result
# ─────────────────────────────────────────────────────────────

@dataclass
class ValidationReport:
    """
    Outcome of one validation walk.

    bool(report) is True iff valid. On failure, failed_index is the first
    offending block and reason names the broken rule.
    """
    valid:        bool
    checked:      int
    failed_index: Optional[int] = None
    reason:       Optional[str] = None

    def __bool__(self) -> bool:
        return self.valid

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid":        self.valid,
            "checked":      self.checked,
            "failed_index": self.failed_index,
            "reason":       self.reason,
        }


def validate_blocks(blocks: List[Block], difficulty: int) -> ValidationReport:
    """
    Walk a chain from genesis to tip.

    Checks, per block:
        genesis        index 0, previous_hash "0", hash recomputes
        index          equals position
        hash           recomputes from stored fields
        linkage        previous_hash equals predecessor's hash
        proof-of-work  hash has `difficulty` leading '0's (non-genesis)

    Stops at the first violation. Never raises.
    """
    def fail(i: int, reason: str) -> ValidationReport:
        return ValidationReport(valid=False, checked=i + 1, failed_index=i, reason=reason)

    for i, block in enumerate(blocks):
        if block.index != i:
            return fail(i, f"index mismatch: expected {i}, got {block.index!r}")

        try:
            expected_hash = recompute_hash(block)
        except (TypeError, ValueError, AttributeError) as exc:
            return fail(i, f"block fields cannot be hashed: {exc}")
        if block.hash != expected_hash:
            return fail(i, "stored hash does not match recomputed hash")

        if block.is_genesis:
            if block.previous_hash != GENESIS_PREVIOUS_HASH:
                return fail(i, "genesis previous_hash is not the sentinel")
            continue

        if block.previous_hash != blocks[i - 1].hash:
            return fail(i, "previous_hash does not link to predecessor")
        if not meets_difficulty(block.hash, difficulty):
            return fail(i, f"hash does not meet difficulty {difficulty}")

    return ValidationReport(valid=True, checked=len(blocks))


# ─────────────────────────────────────────────────────────────
# Ledger
# ─────────────────────────────────────────────────────────────

class Ledger:
    """
    Append-only, proof-of-work sealed chain of SA event witnesses.

    Lifecycle:
        Ledger(...)        → empty
        genesis()          → ready (one block)
        append(payload)    → ready (one more block)

    Thread-safe (single process). Appends are serialized; reads are not
    blocked by an in-flight seal.
    """

    def __init__(
        self,
        difficulty:   int = DEFAULT_DIFFICULTY,
        journal:      Optional[Union[BlockJournal, str, Path]] = None,
        max_attempts: Optional[int] = None,
        seal_timeout: Optional[float] = None,
        clock:        Callable[[], int] = now_ms,
    ) -> None:
        if not isinstance(difficulty, int) or difficulty < 0:
            raise ValueError(f"difficulty must be a non-negative int, got {difficulty!r}")
        if journal is not None and not isinstance(journal, BlockJournal):
            journal = BlockJournal(journal)

        self._difficulty   = difficulty
        self._journal      = journal
        self._max_attempts = max_attempts
        self._seal_timeout = seal_timeout
        self._clock        = clock

        self._append_lock: threading.Lock = threading.Lock()
        self._state_lock:  threading.Lock = threading.Lock()
        self._blocks:      List[Block]    = []

    # ── Construction ──────────────────────────────────────────

    @classmethod
    def create(cls, **kwargs: Any) -> "Ledger":
        """Construct a ledger and seal its genesis block."""
        ledger = cls(**kwargs)
        ledger.genesis()
        return ledger

    @classmethod
    def open(cls, journal_path: Union[str, Path], **kwargs: Any) -> "Ledger":
        """
        Rebuild a ledger from its journal, or start a new one.

        Every replayed block is re-validated under the given difficulty.
        Raises IntegrityError if the persisted chain is broken, and
        LedgerError if the journal cannot be parsed.
        """
        journal = BlockJournal(journal_path)
        ledger  = cls(journal=journal, **kwargs)

        blocks = journal.load()
        if not blocks:
            ledger.genesis()
            logger.info("Started new ledger at %s", journal.path)
            return ledger

        report = validate_blocks(blocks, ledger.difficulty)
        if not report:
            raise IntegrityError(
                "journal failed integrity verification",
                {
                    "path":         str(journal.path),
                    "failed_index": report.failed_index,
                    "reason":       report.reason,
                },
            )
        if journal.dropped_tail:
            journal.rewrite(blocks)

        ledger._blocks = blocks
        logger.info(
            "Restored %d blocks from %s (tip=%s)",
            len(blocks), journal.path, blocks[-1].hash,
        )
        return ledger

    # ── Public API ────────────────────────────────────────────

    @property
    def difficulty(self) -> int:
        return self._difficulty

    @property
    def journal(self) -> Optional[BlockJournal]:
        return self._journal

    def genesis(self) -> Block:
        """
        Seal and publish the fixed first block.

        The genesis hash is the plain digest; no difficulty condition applies.
        Raises LedgerError if the chain already has blocks.
        """
        with self._append_lock:
            if self._chain():
                raise LedgerError("genesis block already exists")
            block = seal(
                draft(0, self._clock(), GENESIS_PAYLOAD, GENESIS_PREVIOUS_HASH),
                difficulty=0,
            )
            self._commit(block)
        logger.info("Genesis block sealed: hash=%s", block.hash)
        return copy.deepcopy(block)

    def append(self, payload: Any) -> str:
        """
        Witness one event. Returns the new block's hash.

        Raises:
            LedgerError:      no genesis block, or the journal write failed.
            SealTimeoutError: the seal bound was exceeded (retryable).
            ValidationError:  payload has no canonical JSON form.

        On any failure the chain is unchanged.
        """
        if isinstance(payload, SAEvent):
            payload = payload.to_dict()

        with self._append_lock:
            chain = self._chain()
            if not chain:
                raise LedgerError("ledger has no genesis block")
            tip = chain[-1]

            block = seal(
                draft(tip.index + 1, self._clock(), payload, tip.hash),
                difficulty=   self._difficulty,
                max_attempts= self._max_attempts,
                timeout=      self._seal_timeout,
            )
            self._commit(block)

        logger.info(
            "Appended block index=%d nonce=%d hash=%s",
            block.index, block.nonce, block.hash,
        )
        return block.hash

    async def append_async(self, payload: Any) -> str:
        """
        Awaitable append. Sealing runs on the default executor so the
        event loop keeps serving other work during the nonce search.
        """
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.append, payload)

    def validate(self) -> bool:
        """True if the whole chain is intact. Never raises."""
        return self.validate_report().valid

    def validate_report(self) -> ValidationReport:
        """Full validation walk with the first violation, if any."""
        report = validate_blocks(self._chain(), self._difficulty)
        if not report:
            logger.warning(
                "Ledger validation failed at index %s: %s",
                report.failed_index, report.reason,
            )
        return report

    def get_by_hash(self, block_hash: Any) -> Optional[Block]:
        """First block whose hash equals block_hash, else None. Never raises."""
        if not isinstance(block_hash, str):
            return None
        for block in self._chain():
            if block.hash == block_hash:
                return copy.deepcopy(block)
        return None

    def snapshot(self) -> List[Block]:
        """Deep copy of the chain, genesis first."""
        return copy.deepcopy(self._chain())

    @property
    def tip(self) -> Optional[Block]:
        chain = self._chain()
        return copy.deepcopy(chain[-1]) if chain else None

    def __len__(self) -> int:
        return len(self._chain())

    def get_stats(self) -> Dict[str, Any]:
        """Return current ledger state snapshot."""
        chain = self._chain()
        return {
            "total_blocks":    len(chain),
            "difficulty":      self._difficulty,
            "tip_hash":        chain[-1].hash if chain else None,
            "first_timestamp": chain[0].timestamp if chain else None,
            "last_timestamp":  chain[-1].timestamp if chain else None,
            "journal":         str(self._journal.path) if self._journal else None,
        }

    # ── Internal ──────────────────────────────────────────────

    def _chain(self) -> List[Block]:
        with self._state_lock:
            return list(self._blocks)

    def _commit(self, block: Block) -> None:
        """Write-ahead, then publish. Caller holds the append lock."""
        if self._journal is not None:
            self._journal.append(block)
        with self._state_lock:
            self._blocks.append(block)
