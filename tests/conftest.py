"""
Shared fixtures and a pure-Python BIP340 reference signer.

The signer follows the BIP340 signing algorithm directly so that tests can
produce genuine signatures without the secp256k1 C bindings. Secret key 1
gives owner = G.x (G has even y).
"""

from __future__ import annotations

import hashlib

import pytest

from npub.accounts import AccountRegistry
from npub.auth import AccountAuthenticator
from npub.crypto.challenge import tagged_hash
from npub.crypto.curve import GX, N, has_even_y, point_mul
from npub.event import auth_event_hash

# Check if secp256k1 C bindings are available
try:
    import secp256k1  # noqa: F401
    HAS_SECP256K1 = True
except ImportError:
    HAS_SECP256K1 = False

requires_secp256k1 = pytest.mark.skipif(
    not HAS_SECP256K1,
    reason="secp256k1 C bindings not installed (pip install secp256k1)",
)

SECRET_ONE = (1).to_bytes(32, "big")
OWNER_ONE = GX


def _xor(a: bytes, b: bytes) -> bytes:
    return bytes(x ^ y for x, y in zip(a, b))


def bip340_sign(secret: bytes, msg: bytes, aux: bytes = b"\x00" * 32) -> bytes:
    """Reference BIP340 signature of 32-byte ``msg`` under ``secret``."""
    d0 = int.from_bytes(secret, "big")
    assert 0 < d0 < N
    pub = point_mul(d0)
    d = d0 if has_even_y(pub) else N - d0

    t = _xor(d.to_bytes(32, "big"), tagged_hash("BIP0340/aux", aux))
    px = pub[0].to_bytes(32, "big")
    k0 = int.from_bytes(tagged_hash("BIP0340/nonce", t + px + msg), "big") % N
    assert k0 != 0
    r = point_mul(k0)
    k = k0 if has_even_y(r) else N - k0

    rx = r[0].to_bytes(32, "big")
    e = int.from_bytes(tagged_hash("BIP0340/challenge", rx + px + msg), "big") % N
    return rx + ((k + e * d) % N).to_bytes(32, "big")


def owner_of(secret: bytes) -> int:
    return point_mul(int.from_bytes(secret, "big"))[0]


def sign_operation(secret: bytes, digest: bytes) -> tuple[int, bytes]:
    """Sign the authentication event for ``digest``. Returns (owner, signature)."""
    owner = owner_of(secret)
    return owner, bip340_sign(secret, auth_event_hash(owner, digest))


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def op_digest():
    """A 32-byte operation digest."""
    return hashlib.sha256(b"transfer 1 unit").digest()


@pytest.fixture
def signed_op(op_digest):
    """(owner, signature, digest) signed with secret key 1."""
    owner, signature = sign_operation(SECRET_ONE, op_digest)
    return owner, signature, op_digest


@pytest.fixture
def memory_registry():
    """In-memory AccountRegistry."""
    return AccountRegistry()


@pytest.fixture
def tmp_registry(tmp_path):
    """AccountRegistry persisted under a temp directory."""
    return AccountRegistry(root=tmp_path / "npub")


@pytest.fixture
def authenticator(tmp_registry):
    return AccountAuthenticator(tmp_registry)
