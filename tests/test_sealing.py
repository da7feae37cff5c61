"""
tests/test_sealing.py

Hash adapter, draft construction and the proof-of-work search.
"""

import pytest

from saledger import LedgerError, SealTimeoutError, ValidationError
from saledger.core.block import DraftBlock, draft, is_hash_hex, meets_difficulty, recompute_hash
from saledger.core.canonical import canonicalize, digest
from saledger.core.sealing import seal


def make_draft(index: int = 1, payload=None) -> DraftBlock:
    return draft(
        index=         index,
        timestamp=     1_700_000_000_000,
        payload=       payload if payload is not None else {"spi": 256, "status": "active"},
        previous_hash= "a" * 64,
    )


# ─────────────────────────────────────────────────────────────
# Hash adapter
# ─────────────────────────────────────────────────────────────

class TestDigest:

    def test_digest_is_64_lowercase_hex(self):
        h = digest(0, "0", 1, "Genesis Block", 0)
        assert is_hash_hex(h)

    def test_digest_is_deterministic(self):
        args = (3, "b" * 64, 1_700_000_000_000, {"spi": 1}, 42)
        assert digest(*args) == digest(*args)

    def test_payload_key_order_does_not_matter(self):
        a = {"spi": 256, "protocol": "ESP", "status": "active"}
        b = {"status": "active", "protocol": "ESP", "spi": 256}
        assert digest(1, "0", 5, a, 0) == digest(1, "0", 5, b, 0)

    @pytest.mark.parametrize("position", range(5))
    def test_every_input_changes_digest(self, position):
        base    = [1, "c" * 64, 1000, {"spi": 1}, 0]
        changed = list(base)
        changed[position] = [2, "d" * 64, 1001, {"spi": 2}, 1][position]
        assert digest(*base) != digest(*changed)

    def test_canonical_form_is_compact_and_sorted(self):
        assert canonicalize({"b": 1, "a": [1, 2]}) == b'{"a":[1,2],"b":1}'


# ─────────────────────────────────────────────────────────────
# Drafts
# ─────────────────────────────────────────────────────────────

class TestDraft:

    def test_draft_starts_at_nonce_zero(self):
        d = make_draft()
        assert d.nonce == 0
        assert not d.consumed

    @pytest.mark.parametrize("index", [-1, "1", 1.5, True])
    def test_bad_index_rejected(self, index):
        with pytest.raises(ValidationError):
            draft(index, 1, {}, "0")

    def test_bad_timestamp_rejected(self):
        with pytest.raises(ValidationError):
            draft(1, "yesterday", {}, "0")

    def test_empty_previous_hash_rejected(self):
        with pytest.raises(ValidationError):
            draft(1, 1, {}, "")

    @pytest.mark.parametrize("payload", [
        {"when": object()},
        {1: "a"},
        {1: "a", "b": 2},
    ])
    def test_unserializable_payload_rejected(self, payload):
        with pytest.raises(ValidationError):
            draft(1, 1, payload, "0")

    def test_draft_copies_payload(self):
        payload = {"status": "active"}
        d = draft(1, 1, payload, "0")
        payload["status"] = "expired"
        assert d.payload == {"status": "active"}


# ─────────────────────────────────────────────────────────────
# Sealing
# ─────────────────────────────────────────────────────────────

class TestSeal:

    def test_difficulty_zero_seals_immediately(self):
        block = seal(make_draft(), 0)
        assert block.nonce == 0
        assert block.hash == recompute_hash(block)

    @pytest.mark.parametrize("difficulty", [1, 2, 3])
    def test_hash_meets_difficulty(self, difficulty):
        block = seal(make_draft(), difficulty)
        assert block.hash[:difficulty] == "0" * difficulty
        assert block.hash == recompute_hash(block)

    def test_seal_finds_first_qualifying_nonce(self):
        block = seal(make_draft(), 2)
        d = make_draft()
        for nonce in range(block.nonce):
            d.nonce = nonce
            assert not meets_difficulty(d.compute_hash(), 2)

    def test_seal_is_deterministic(self):
        assert seal(make_draft(), 2) == seal(make_draft(), 2)

    def test_sealed_block_keeps_draft_fields(self):
        d = make_draft(index=4)
        block = seal(d, 1)
        assert (block.index, block.timestamp, block.previous_hash) == (
            4, 1_700_000_000_000, "a" * 64,
        )
        assert block.payload == {"spi": 256, "status": "active"}

    def test_draft_consumed_after_seal(self):
        d = make_draft()
        seal(d, 1)
        assert d.consumed
        with pytest.raises(LedgerError):
            seal(d, 1)

    def test_negative_difficulty_rejected(self):
        with pytest.raises(ValueError):
            seal(make_draft(), -1)

    def test_attempt_bound_raises_retryable_error(self):
        d = make_draft()
        with pytest.raises(SealTimeoutError) as exc_info:
            seal(d, 8, max_attempts=1)
        assert exc_info.value.retryable is True
        assert isinstance(exc_info.value, LedgerError)

    def test_draft_reusable_after_bound_hit(self):
        d = make_draft()
        with pytest.raises(SealTimeoutError):
            seal(d, 8, max_attempts=1)
        assert not d.consumed
        assert d.nonce == 0
        block = seal(d, 2)
        assert block.hash.startswith("00")

    def test_time_bound_raises(self):
        with pytest.raises(SealTimeoutError):
            seal(make_draft(), 64, timeout=0.01)
