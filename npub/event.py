"""
Nostr event serialization — the authenticated message an owner signs.

Event ID (NIP-01):
    SHA-256 of the compact JSON array [0, pubkey, created_at, kind, tags, content]

Authentication event (what authorizes an operation):
    [0,"<owner hex64>",0,96024,[],"<operation digest hex64>"]

No whitespace, lowercase fixed-width hex, no 0x prefix. Byte-identical output
for identical inputs — the signature covers the SHA-256 of exactly these bytes.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from typing import Any

from npub import AUTH_EVENT_CREATED_AT, AUTH_EVENT_KIND, DIGEST_SIZE, SIGNATURE_SIZE
from npub.crypto.schnorr import split_signature, verify

_UINT256_LIMIT = 1 << 256


def to_hex64(value: int) -> str:
    """Encode a uint256 as 64 lowercase hex chars, zero-padded."""
    if not isinstance(value, int) or value < 0 or value >= _UINT256_LIMIT:
        raise ValueError(f"Not a uint256: {value!r}")
    return format(value, "064x")


def serialize_event(
    pubkey_hex: str,
    created_at: int,
    kind: int,
    tags: list,
    content: str,
) -> bytes:
    """Serialize an event for hashing (compact JSON, UTF-8)."""
    serialized = json.dumps(
        [0, pubkey_hex, created_at, kind, tags, content],
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return serialized.encode("utf-8")


def compute_event_id(
    pubkey_hex: str,
    created_at: int,
    kind: int,
    tags: list,
    content: str,
) -> str:
    """Compute the Nostr event ID (SHA-256 of the serialized event array)."""
    data = serialize_event(pubkey_hex, created_at, kind, tags, content)
    return hashlib.sha256(data).hexdigest()


def _check_digest(digest: bytes) -> None:
    if not isinstance(digest, (bytes, bytearray)) or len(digest) != DIGEST_SIZE:
        raise ValueError(f"Operation digest must be {DIGEST_SIZE} bytes")


def build_auth_event(owner: int, digest: bytes) -> bytes:
    """Canonical authentication event bytes for (owner, operation digest)."""
    _check_digest(digest)
    return serialize_event(
        to_hex64(owner),
        AUTH_EVENT_CREATED_AT,
        AUTH_EVENT_KIND,
        [],
        bytes(digest).hex(),
    )


def auth_event_hash(owner: int, digest: bytes) -> bytes:
    """SHA-256 of the authentication event — the message the owner signs."""
    return hashlib.sha256(build_auth_event(owner, digest)).digest()


@dataclass(frozen=True)
class AuthenticatedEvent:
    """An authentication event binding an owner key to an operation digest.

    Attributes:
        owner: x-only owner public key.
        digest: 32-byte hash of the operation being authorized.
    """

    owner: int
    digest: bytes

    def __post_init__(self) -> None:
        to_hex64(self.owner)
        _check_digest(self.digest)

    @property
    def serialized(self) -> bytes:
        return build_auth_event(self.owner, self.digest)

    @property
    def hash(self) -> bytes:
        return hashlib.sha256(self.serialized).digest()

    def to_dict(self, signature: bytes | None = None) -> dict[str, Any]:
        """Nostr wire form of the event (signed if a signature is given)."""
        event: dict[str, Any] = {
            "id": self.hash.hex(),
            "pubkey": to_hex64(self.owner),
            "created_at": AUTH_EVENT_CREATED_AT,
            "kind": AUTH_EVENT_KIND,
            "tags": [],
            "content": self.digest.hex(),
        }
        if signature is not None:
            event["sig"] = signature.hex()
        return event


def verify_event_signature(event: dict) -> bool:
    """Verify a Nostr event's Schnorr signature.

    Recomputes the event ID and checks the signature against the pubkey.
    Returns True if valid, False otherwise.
    """
    try:
        pubkey_hex = event.get("pubkey", "")
        sig_hex = event.get("sig", "")
        if len(pubkey_hex) != 64 or len(sig_hex) != SIGNATURE_SIZE * 2:
            return False

        expected_id = compute_event_id(
            pubkey_hex,
            event["created_at"],
            event["kind"],
            event["tags"],
            event["content"],
        )
        if expected_id != event.get("id", ""):
            return False

        rx, s = split_signature(bytes.fromhex(sig_hex))
        return verify(int(pubkey_hex, 16), rx, s, bytes.fromhex(expected_id))
    except (KeyError, TypeError, ValueError, AttributeError):
        return False
