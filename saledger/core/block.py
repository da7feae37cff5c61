"""
saledger/core/block.py

Block Model: two lifecycle states.

    DraftBlock  mutable. nonce starts at 0; the sealer walks it upward.
                Consumed by seal(); a consumed draft cannot be sealed again.
    Block       frozen. Produced only by seal() (or from_dict() when a
                journal is replayed). Never mutated afterwards.

HASH SURFACE
    hash = digest(index, previous_hash, timestamp, payload, nonce)
    See saledger/core/canonical.py. No other hash computation exists.
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict

from saledger.core.canonical import canonicalize, digest
from saledger.core.exceptions import LedgerError, ValidationError


GENESIS_PREVIOUS_HASH = "0"
GENESIS_PAYLOAD       = "Genesis Block"

HASH_HEX_LENGTH = 64


@dataclass
class DraftBlock:
    """An unsealed block. Its hash is not meaningful until sealed."""

    index:         int
    timestamp:     int
    payload:       Any
    previous_hash: str
    nonce:         int = 0

    _consumed: bool = field(default=False, repr=False, compare=False)

    @property
    def consumed(self) -> bool:
        return self._consumed

    def compute_hash(self) -> str:
        return digest(
            self.index,
            self.previous_hash,
            self.timestamp,
            self.payload,
            self.nonce,
        )

    def consume(self, nonce: int, block_hash: str) -> "Block":
        """
        Freeze this draft into a Block. Called by the sealer only.
        Raises LedgerError if the draft was already sealed.
        """
        if self._consumed:
            raise LedgerError(
                "draft already sealed", {"index": self.index}
            )
        self._consumed = True
        self.nonce     = nonce
        return Block(
            index=         self.index,
            timestamp=     self.timestamp,
            payload=       self.payload,
            previous_hash= self.previous_hash,
            nonce=         nonce,
            hash=          block_hash,
        )


@dataclass(frozen=True)
class Block:
    """A sealed, immutable ledger block."""

    index:         int
    timestamp:     int
    payload:       Any
    previous_hash: str
    nonce:         int
    hash:          str

    @property
    def is_genesis(self) -> bool:
        return self.index == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index":         self.index,
            "timestamp":     self.timestamp,
            "payload":       self.payload,
            "previous_hash": self.previous_hash,
            "nonce":         self.nonce,
            "hash":          self.hash,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Block":
        """
        Deserialize a journal line. Trusts the data: the stored hash is
        taken as-is, so replay MUST validate the chain afterwards.
        """
        return cls(
            index=         data["index"],
            timestamp=     data["timestamp"],
            payload=       data["payload"],
            previous_hash= data["previous_hash"],
            nonce=         data["nonce"],
            hash=          data["hash"],
        )


def draft(index: int, timestamp: int, payload: Any, previous_hash: str) -> DraftBlock:
    """
    Build an unsealed block with nonce 0.

    The payload is deep-copied so later changes by the caller cannot reach
    the chain. Raises ValidationError for malformed fields or a payload that
    has no canonical JSON form.
    """
    if not isinstance(index, int) or isinstance(index, bool) or index < 0:
        raise ValidationError(f"index must be a non-negative int, got {index!r}")
    if not isinstance(timestamp, int) or isinstance(timestamp, bool):
        raise ValidationError(f"timestamp must be an int, got {timestamp!r}")
    if not isinstance(previous_hash, str) or not previous_hash:
        raise ValidationError("previous_hash must be a non-empty string")
    # jcs raises AttributeError on non-str mapping keys
    try:
        canonicalize(payload)
    except (TypeError, ValueError, AttributeError) as exc:
        raise ValidationError(f"payload is not JSON-serializable: {exc}") from exc

    return DraftBlock(
        index=         index,
        timestamp=     timestamp,
        payload=       copy.deepcopy(payload),
        previous_hash= previous_hash,
    )


def recompute_hash(block: Block) -> str:
    """Recompute a sealed block's hash from its stored fields."""
    return digest(
        block.index,
        block.previous_hash,
        block.timestamp,
        block.payload,
        block.nonce,
    )


def meets_difficulty(block_hash: str, difficulty: int) -> bool:
    """True if block_hash starts with `difficulty` '0' hex characters."""
    return block_hash.startswith("0" * difficulty)


def is_hash_hex(value: Any) -> bool:
    """True for a 64-char lowercase hex string."""
    if not isinstance(value, str) or len(value) != HASH_HEX_LENGTH:
        return False
    return all(c in "0123456789abcdef" for c in value)
