"""
saledger/core/canonical.py

Canonical JSON Encoding (RFC 8785, JCS) and the block digest.

This is the ONLY canonicalization permitted in saledger.
Every block hash MUST be computed through digest() below.

RFC 8785: https://www.rfc-editor.org/rfc/rfc8785
"""

import hashlib
from typing import Any

import jcs


def canonicalize(obj: Any) -> bytes:
    """
    Encode a value to RFC 8785 canonical JSON bytes.

    Output is deterministic regardless of key insertion order.
    All values must be JSON-primitive (str, int, float, bool, None, list, dict).

    Returns:
        UTF-8 encoded canonical JSON bytes.
    """
    return jcs.canonicalize(obj)


def canonical_hash(obj: Any) -> str:
    """
    SHA-256 of the RFC 8785 canonical form.

    Returns:
        Lowercase hex-encoded SHA-256 digest (64 characters).
    """
    return hashlib.sha256(canonicalize(obj)).hexdigest()


def digest(
    index:         int,
    previous_hash: str,
    timestamp:     int,
    payload:       Any,
    nonce:         int,
) -> str:
    """
    Hash the five hashed fields of a block.

    The hash surface is a canonical JSON object, so two payloads with the
    same content always hash the same way whatever their key order.
    """
    return canonical_hash({
        "index":         index,
        "previous_hash": previous_hash,
        "timestamp":     timestamp,
        "payload":       payload,
        "nonce":         nonce,
    })
