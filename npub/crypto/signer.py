"""
Signer adapter — produces BIP340 signatures with the secp256k1 C bindings.

The signer is an external collaborator (normally a wallet or browser
extension). This adapter exists for tooling and interop tests. It never
generates or stores keys; the caller supplies the 32-byte secret.

Requires secp256k1 (C bindings). Will raise ImportError if the library is
unavailable — install with: pip install npub-account[signer]
"""

from __future__ import annotations

from npub import DIGEST_SIZE
from npub.event import auth_event_hash


def _import_secp256k1():
    """Import secp256k1 C bindings. Raises ImportError if unavailable."""
    try:
        import secp256k1
        return secp256k1
    except ImportError:
        raise ImportError(
            "secp256k1 is required for signing. "
            "Install with: pip install npub-account[signer]"
        )


def privkey_to_owner(privkey: bytes) -> int:
    """Derive the x-only owner key (as an integer) from a 32-byte secret."""
    lib = _import_secp256k1()
    pk = lib.PrivateKey(privkey)
    # x-only pubkey: strip the 02/03 prefix byte
    full = pk.pubkey.serialize(compressed=True)
    return int.from_bytes(full[1:], "big")


def sign_digest(digest: bytes, privkey: bytes) -> bytes:
    """BIP340-sign a 32-byte message. Returns the 64-byte signature."""
    if len(digest) != DIGEST_SIZE:
        raise ValueError(f"Digest must be {DIGEST_SIZE} bytes, got {len(digest)}")
    lib = _import_secp256k1()
    pk = lib.PrivateKey(privkey)
    return pk.schnorr_sign(digest, bip340tag=None, raw=True)


def sign_auth_event(privkey: bytes, operation_digest: bytes) -> tuple[int, bytes]:
    """Sign the authentication event for ``operation_digest``.

    Returns (owner, signature) — exactly what an account verifier consumes.
    """
    owner = privkey_to_owner(privkey)
    return owner, sign_digest(auth_event_hash(owner, operation_digest), privkey)
