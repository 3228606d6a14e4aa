"""
BIP340 tagged hashes and the Schnorr challenge scalar.

    tagged_hash(tag, data) = SHA-256(SHA-256(tag) || SHA-256(tag) || data)
    e = int(tagged_hash("BIP0340/challenge", Rx || Px || m)) mod n

The tag prefix acts as domain separation, so a challenge hash can never
collide with a hash computed for another protocol.
"""

from __future__ import annotations

import hashlib

from npub.crypto.curve import N

CHALLENGE_TAG = "BIP0340/challenge"

# Precomputed SHA-256("BIP0340/challenge"), used twice as the hash prefix
_CHALLENGE_PREFIX = hashlib.sha256(CHALLENGE_TAG.encode("ascii")).digest() * 2


def tagged_hash(tag: str, data: bytes) -> bytes:
    """BIP340 tagged hash of ``data`` under ``tag``."""
    tag_hash = hashlib.sha256(tag.encode("utf-8")).digest()
    return hashlib.sha256(tag_hash + tag_hash + data).digest()


def compute_challenge(rx: int, px: int, m: bytes) -> int:
    """Challenge scalar for signature nonce x ``rx``, owner ``px``, message ``m``.

    ``rx`` and ``px`` are serialized as 32-byte big-endian values.
    """
    data = rx.to_bytes(32, "big") + px.to_bytes(32, "big") + m
    digest = hashlib.sha256(_CHALLENGE_PREFIX + data).digest()
    return int.from_bytes(digest, "big") % N
