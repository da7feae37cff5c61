"""
saledger/core/sealing.py

Proof-of-work sealing.

seal() MUST, in this exact order:
  1. Start at nonce 0 and hash the draft
  2. Increment the nonce until the hash has `difficulty` leading '0's
  3. Freeze the draft into a Block and return it

Expected attempts: 16 ** difficulty. difficulty 0 never searches.
Pure CPU work. No I/O, no locks.
"""

import logging
import time
from typing import Optional

from saledger.core.block import Block, DraftBlock, meets_difficulty
from saledger.core.exceptions import LedgerError, SealTimeoutError


logger = logging.getLogger(__name__)

# Deadline checks cost a clock read; only take one every N attempts.
_TIMEOUT_CHECK_EVERY = 1024


def seal(
    draft:        DraftBlock,
    difficulty:   int,
    max_attempts: Optional[int] = None,
    timeout:      Optional[float] = None,
) -> Block:
    """
    Search for a nonce that satisfies the difficulty condition.

    Args:
        draft:        Unsealed block. Consumed on success.
        difficulty:   Required count of leading '0' hex characters (>= 0).
        max_attempts: Give up after this many hashes.
        timeout:      Give up after this many seconds.

    Returns:
        The sealed, frozen Block.

    Raises:
        ValueError:       difficulty is negative.
        LedgerError:      draft was already sealed.
        SealTimeoutError: a bound was hit. Retryable; the draft is left
                          unconsumed and its nonce is reset to 0.
    """
    if not isinstance(difficulty, int) or difficulty < 0:
        raise ValueError(f"difficulty must be a non-negative int, got {difficulty!r}")
    if draft.consumed:
        raise LedgerError("draft already sealed", {"index": draft.index})

    deadline = time.monotonic() + timeout if timeout is not None else None

    nonce       = 0
    draft.nonce = nonce
    block_hash  = draft.compute_hash()
    attempts    = 1

    while not meets_difficulty(block_hash, difficulty):
        if max_attempts is not None and attempts >= max_attempts:
            draft.nonce = 0
            raise SealTimeoutError(
                "seal exceeded attempt bound",
                {"index": draft.index, "attempts": attempts},
            )
        if (
            deadline is not None
            and attempts % _TIMEOUT_CHECK_EVERY == 0
            and time.monotonic() >= deadline
        ):
            draft.nonce = 0
            raise SealTimeoutError(
                "seal exceeded time bound",
                {"index": draft.index, "attempts": attempts, "timeout": timeout},
            )
        nonce      += 1
        draft.nonce = nonce
        block_hash  = draft.compute_hash()
        attempts   += 1

    block = draft.consume(nonce, block_hash)
    logger.debug(
        "Block sealed: index=%d hash=%s attempts=%d",
        block.index, block.hash, attempts,
    )
    return block
