"""
saledger/ledger/outbox.py

Outbox protocol between the canonical SA store and the ledger.

WitnessService.witness() MUST, in this exact order:
  1. Record the event as PENDING in the outbox
  2. Append the event to the ledger
  3. Mark the outbox entry WITNESSED with the returned hash

If step 2 or 3 fails the entry stays PENDING and reconcile() retries it.
A PENDING entry is the "recorded but not yet witnessed" state of a
canonical record; WITNESSED entries carry the hash to store next to it.
"""

import json
import logging
import os
import threading
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Union

from saledger.core.exceptions import LedgerError, OutboxError
from saledger.core.models import LifecycleAction, SAEvent, SAStatus, VALID_ACTIONS
from saledger.ledger.ledger import Ledger


logger = logging.getLogger(__name__)


class OutboxState:
    PENDING   = "pending"
    WITNESSED = "witnessed"


@dataclass
class OutboxEntry:
    """One lifecycle event awaiting, or holding, its witness hash."""
    event_id:     str
    action:       str
    event:        SAEvent
    state:        str = OutboxState.PENDING
    witness_hash: Optional[str] = None

    @property
    def witnessed(self) -> bool:
        return self.state == OutboxState.WITNESSED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id":     self.event_id,
            "action":       self.action,
            "event":        self.event.to_dict(),
            "state":        self.state,
            "witness_hash": self.witness_hash,
        }


class Outbox:
    """
    Ordered record of lifecycle events and their witness state.

    With a path, every transition is appended to a JSONL file and replayed
    on construction, so pending entries survive a restart.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None) -> None:
        self.path = Path(path) if path is not None else None
        self._lock:    threading.Lock         = threading.Lock()
        self._entries: Dict[str, OutboxEntry] = {}

        if self.path is not None and self.path.exists():
            self._replay()

    def record_pending(self, action: str, event: SAEvent) -> OutboxEntry:
        if action not in VALID_ACTIONS:
            raise OutboxError(
                f"unknown lifecycle action '{action}'",
                {"valid": ",".join(sorted(VALID_ACTIONS))},
            )
        entry = OutboxEntry(
            event_id= f"evt-{uuid.uuid4()}",
            action=   action,
            event=    event,
        )
        with self._lock:
            self._write({"op": "pending", **entry.to_dict()})
            self._entries[entry.event_id] = entry
        return entry

    def mark_witnessed(self, event_id: str, witness_hash: str) -> OutboxEntry:
        with self._lock:
            entry = self._entries.get(event_id)
            if entry is None:
                raise OutboxError("unknown outbox entry", {"event_id": event_id})
            self._write({
                "op":           "witnessed",
                "event_id":     event_id,
                "witness_hash": witness_hash,
            })
            entry.state        = OutboxState.WITNESSED
            entry.witness_hash = witness_hash
        return entry

    def get(self, event_id: str) -> Optional[OutboxEntry]:
        with self._lock:
            return self._entries.get(event_id)

    def pending(self) -> List[OutboxEntry]:
        with self._lock:
            return [e for e in self._entries.values() if not e.witnessed]

    # ── Internal ──────────────────────────────────────────────

    def _write(self, record: Dict[str, Any]) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(json.dumps(record) + "\n")
                f.flush()
                os.fsync(f.fileno())
        except OSError as exc:
            raise OutboxError(
                f"outbox write failed: {exc}", {"path": str(self.path)}
            ) from exc

    def _replay(self) -> None:
        with open(self.path, "r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    record = json.loads(line)
                    if record["op"] == "pending":
                        self._entries[record["event_id"]] = OutboxEntry(
                            event_id= record["event_id"],
                            action=   record["action"],
                            event=    SAEvent.from_dict(record["event"]),
                        )
                    elif record["op"] == "witnessed":
                        entry = self._entries[record["event_id"]]
                        entry.state        = OutboxState.WITNESSED
                        entry.witness_hash = record["witness_hash"]
                    else:
                        raise ValueError(f"unknown op {record['op']!r}")
                except (json.JSONDecodeError, KeyError, ValueError) as exc:
                    raise OutboxError(
                        f"invalid outbox line {line_num}: {exc}",
                        {"path": str(self.path)},
                    ) from exc


class WitnessService:
    """
    The owning service's side of the witness protocol.

    Pairs each canonical SA write with a ledger append through the outbox,
    so a crash between the two leaves a retryable PENDING entry rather than
    a silently unwitnessed record.

    An entry is claimed while its append is in flight; reconcile() skips
    claimed entries, so no event is witnessed twice.
    """

    def __init__(self, ledger: Ledger, outbox: Optional[Outbox] = None) -> None:
        self.ledger = ledger
        self.outbox = outbox if outbox is not None else Outbox()
        self._lock:      threading.Lock = threading.Lock()
        self._in_flight: Set[str]       = set()

    def witness(self, action: str, event: SAEvent) -> OutboxEntry:
        """
        Record, append, mark. Ledger failures propagate after the entry
        has been left PENDING for reconcile().
        """
        with self._lock:
            entry = self.outbox.record_pending(action, event)
            self._in_flight.add(entry.event_id)
        try:
            witness_hash = self.ledger.append(event)
            return self.outbox.mark_witnessed(entry.event_id, witness_hash)
        finally:
            self._release(entry.event_id)

    def record_create(self, event: SAEvent) -> OutboxEntry:
        return self.witness(LifecycleAction.CREATE, event)

    def record_update(self, event: SAEvent) -> OutboxEntry:
        return self.witness(LifecycleAction.UPDATE, event)

    def record_status_change(self, event: SAEvent, status: str) -> OutboxEntry:
        return self.witness(LifecycleAction.STATUS_CHANGE, event.with_status(status))

    def record_delete(self, event: SAEvent) -> OutboxEntry:
        return self.witness(LifecycleAction.DELETE, event.with_status(SAStatus.DELETED))

    def reconcile(self) -> List[OutboxEntry]:
        """
        Retry every unclaimed PENDING entry, oldest first.

        Returns the entries witnessed by this pass. Entries whose append
        fails with a ledger error stay PENDING for the next pass; entries
        still being witnessed elsewhere are left alone.
        """
        witnessed: List[OutboxEntry] = []
        for entry in self.outbox.pending():
            if not self._claim(entry):
                continue
            try:
                witness_hash = self.ledger.append(entry.event)
            except LedgerError as exc:
                logger.warning(
                    "Reconcile left %s pending: %s", entry.event_id, exc,
                )
                continue
            finally:
                self._release(entry.event_id)
            witnessed.append(self.outbox.mark_witnessed(entry.event_id, witness_hash))

        if witnessed:
            logger.info("Reconciled %d pending events", len(witnessed))
        return witnessed

    def verify_witness(self, witness_hash: str, event: SAEvent) -> bool:
        """True if witness_hash is in a valid chain and witnesses exactly `event`."""
        block = self.ledger.get_by_hash(witness_hash)
        if block is None or block.payload != event.to_dict():
            return False
        return self.ledger.validate()

    # ── Internal ──────────────────────────────────────────────

    def _claim(self, entry: OutboxEntry) -> bool:
        with self._lock:
            if entry.event_id in self._in_flight or entry.witnessed:
                return False
            self._in_flight.add(entry.event_id)
            return True

    def _release(self, event_id: str) -> None:
        with self._lock:
            self._in_flight.discard(event_id)
