"""
saledger/core/models.py

SA Event Model

An SAEvent is the payload witnessed by one block: a snapshot of a single
Security Association lifecycle event.

CONTRACTS
    key_hash   = SHA-256 hex of the raw secret key. The raw key NEVER
                 enters an event, a block, or the journal.
    protocol   = one of Protocol.*  ("ESP", "AH")
    status     = one of SAStatus.*  ("active", "expired", "pending", "deleted")
    timestamp  = wall-clock time of the event, integer milliseconds
    to_dict()  = the ONLY payload form handed to the ledger
"""

import hashlib
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set

from saledger.core.exceptions import ValidationError
from saledger.core.time import now_ms


_KEY_HASH_RE = re.compile(r"^[0-9a-f]{64}$")

# SPI is a 32-bit field on the wire
_SPI_MAX = 2 ** 32 - 1


# ─────────────────────────────────────────────────────────────
# Vocabulary
# ─────────────────────────────────────────────────────────────

class Protocol:
    """IPsec protocol tags."""
    ESP = "ESP"
    AH  = "AH"


class SAStatus:
    """SA status values. DELETED is only ever recorded, never stored."""
    ACTIVE  = "active"
    EXPIRED = "expired"
    PENDING = "pending"
    DELETED = "deleted"


class LifecycleAction:
    """Lifecycle actions carried by the outbox."""
    CREATE        = "CREATE"
    UPDATE        = "UPDATE"
    DELETE        = "DELETE"
    STATUS_CHANGE = "STATUS_CHANGE"


_VALID_PROTOCOLS: Set[str] = {Protocol.ESP, Protocol.AH}

_VALID_STATUSES: Set[str] = {
    SAStatus.ACTIVE,
    SAStatus.EXPIRED,
    SAStatus.PENDING,
    SAStatus.DELETED,
}

VALID_ACTIONS: Set[str] = {
    LifecycleAction.CREATE,
    LifecycleAction.UPDATE,
    LifecycleAction.DELETE,
    LifecycleAction.STATUS_CHANGE,
}


def hash_secret_key(secret_key: str) -> str:
    """SHA-256 hex of a raw SA secret key."""
    return hashlib.sha256(secret_key.encode("utf-8")).hexdigest()


# ─────────────────────────────────────────────────────────────
# SchemaValidationResult
# ─────────────────────────────────────────────────────────────

@dataclass
class SchemaValidationResult:
    """
    Result of SAEvent.validate_schema().

    Returned, not raised, so callers can choose hard fail vs log.
    bool(result) is True iff valid.
    """
    valid:  bool
    errors: List[str]

    def __bool__(self) -> bool:
        return self.valid

    def __repr__(self) -> str:
        if self.valid:
            return "SchemaValidationResult(VALID)"
        return f"SchemaValidationResult(INVALID, errors={self.errors})"


# ─────────────────────────────────────────────────────────────
# SAEvent
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SAEvent:
    """One SA lifecycle event, ready to be witnessed."""

    destination_address: str
    spi:                 int
    protocol:            str
    algorithm:           str
    key_hash:            str
    lifetime:            int
    status:              str
    timestamp:           int

    # ── Constructor ───────────────────────────────────────────

    @classmethod
    def create(
        cls,
        destination_address: str,
        spi:                 int,
        protocol:            str,
        algorithm:           str,
        lifetime:            int,
        status:              str = SAStatus.ACTIVE,
        secret_key:          Optional[str] = None,
        key_hash:            Optional[str] = None,
        timestamp:           Optional[int] = None,
    ) -> "SAEvent":
        """
        Build a validated event.

        Exactly one of secret_key / key_hash must be given. A secret_key is
        hashed here and then dropped.

        Raises ValidationError on any schema violation.
        """
        if (secret_key is None) == (key_hash is None):
            raise ValidationError("exactly one of secret_key or key_hash is required")
        if secret_key is not None:
            key_hash = hash_secret_key(secret_key)

        event = cls(
            destination_address= destination_address,
            spi=                 spi,
            protocol=            protocol,
            algorithm=           algorithm,
            key_hash=            key_hash,
            lifetime=            lifetime,
            status=              status,
            timestamp=           now_ms() if timestamp is None else timestamp,
        )
        result = event.validate_schema()
        if not result:
            raise ValidationError("invalid SA event", {"errors": "; ".join(result.errors)})
        return event

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SAEvent":
        """
        Deserialize a payload dict. Trusts the data; call validate_schema()
        before relying on field formats.
        """
        return cls(
            destination_address= data["destination_address"],
            spi=                 data["spi"],
            protocol=            data["protocol"],
            algorithm=           data["algorithm"],
            key_hash=            data["key_hash"],
            lifetime=            data["lifetime"],
            status=              data["status"],
            timestamp=           data["timestamp"],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "destination_address": self.destination_address,
            "spi":                 self.spi,
            "protocol":            self.protocol,
            "algorithm":           self.algorithm,
            "key_hash":            self.key_hash,
            "lifetime":            self.lifetime,
            "status":              self.status,
            "timestamp":           self.timestamp,
        }

    def with_status(self, status: str, timestamp: Optional[int] = None) -> "SAEvent":
        """Same SA, new status, stamped at a new event time."""
        return SAEvent.create(
            destination_address= self.destination_address,
            spi=                 self.spi,
            protocol=            self.protocol,
            algorithm=           self.algorithm,
            lifetime=            self.lifetime,
            status=              status,
            key_hash=            self.key_hash,
            timestamp=           timestamp,
        )

    # ── Schema Validation ─────────────────────────────────────

    def validate_schema(self) -> SchemaValidationResult:
        """Check every field against the event contracts above."""
        errors: List[str] = []

        if not isinstance(self.destination_address, str) or not self.destination_address:
            errors.append("destination_address must be a non-empty string")

        # bool is an int subclass; reject it explicitly
        if (
            not isinstance(self.spi, int)
            or isinstance(self.spi, bool)
            or not 0 <= self.spi <= _SPI_MAX
        ):
            errors.append(f"spi must be an int in [0, {_SPI_MAX}], got {self.spi!r}")

        if self.protocol not in _VALID_PROTOCOLS:
            errors.append(
                f"protocol '{self.protocol}' not in {sorted(_VALID_PROTOCOLS)}"
            )

        if not isinstance(self.algorithm, str) or not self.algorithm:
            errors.append("algorithm must be a non-empty string")

        if not isinstance(self.key_hash, str) or not _KEY_HASH_RE.match(self.key_hash):
            errors.append("key_hash must be 64 lowercase hex characters")

        if (
            not isinstance(self.lifetime, int)
            or isinstance(self.lifetime, bool)
            or self.lifetime <= 0
        ):
            errors.append(f"lifetime must be a positive int, got {self.lifetime!r}")

        if self.status not in _VALID_STATUSES:
            errors.append(
                f"status '{self.status}' not in {sorted(_VALID_STATUSES)}"
            )

        if (
            not isinstance(self.timestamp, int)
            or isinstance(self.timestamp, bool)
            or self.timestamp < 0
        ):
            errors.append(f"timestamp must be a non-negative int, got {self.timestamp!r}")

        return SchemaValidationResult(valid=len(errors) == 0, errors=errors)
