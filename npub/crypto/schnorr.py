"""
BIP340 Schnorr signature verification over secp256k1.

Direct two-scalar-multiplication form:

    P  = lift_x(px)                     (even y)
    e  = challenge(rx, px, m)
    R' = s*G - e*P
    valid iff R' != infinity, R'.x == rx, R'.y even

Two call-site contracts:
    verify_strict() raises a SignatureError subclass naming the failed check.
    verify()        returns False for any failure. Never raises on bad input.

Range checks run before any hashing or curve arithmetic.
"""

from __future__ import annotations

import logging

from npub import DIGEST_SIZE
from npub.crypto.challenge import compute_challenge
from npub.crypto.curve import G, N, P, has_even_y, lift_x, point_mul, point_sub
from npub.errors import (
    FieldOutOfRange,
    InvalidOwner,
    MalformedDigestLength,
    PointLiftFailure,
    ScalarOutOfRange,
    SignatureError,
    VerificationMismatch,
)

log = logging.getLogger(__name__)


def check_ranges(px: int, rx: int, s: int) -> None:
    """Validate signature inputs without touching hashes or the curve.

    Raises InvalidOwner, FieldOutOfRange or ScalarOutOfRange.
    """
    if px == 0:
        raise InvalidOwner("Owner key must be nonzero")
    if not 0 < px < P:
        raise FieldOutOfRange("px is not a field element")
    if not 0 <= rx < P:
        raise FieldOutOfRange("rx is not a field element")
    if not 0 <= s < N:
        raise ScalarOutOfRange("s is not below the group order")


def verify_strict(px: int, rx: int, s: int, m: bytes) -> None:
    """Verify a BIP340 signature (rx, s) by x-only key ``px`` over 32-byte ``m``.

    Returns None on success.

    Raises:
        MalformedDigestLength: m is not 32 bytes.
        InvalidOwner / FieldOutOfRange / ScalarOutOfRange: inputs out of range.
        PointLiftFailure: px is not the x-coordinate of a curve point.
        VerificationMismatch: the verification equation does not hold.
    """
    if not isinstance(m, (bytes, bytearray)) or len(m) != DIGEST_SIZE:
        raise MalformedDigestLength(f"Message must be {DIGEST_SIZE} bytes")
    check_ranges(px, rx, s)

    py, ok = lift_x(px)
    if not ok:
        raise PointLiftFailure(f"No curve point with x={px:064x}")
    pub = (px, py)

    e = compute_challenge(rx, px, bytes(m))
    r = point_sub(point_mul(s, G), point_mul(e, pub))

    if r is None:
        raise VerificationMismatch("R is the point at infinity")
    if r[0] != rx:
        raise VerificationMismatch("R.x does not match rx")
    if not has_even_y(r):
        raise VerificationMismatch("R.y is odd")


def verify(px: int, rx: int, s: int, m: bytes) -> bool:
    """Tolerant form of verify_strict(): True iff the signature is valid."""
    try:
        verify_strict(px, rx, s, m)
    except SignatureError as e:
        log.debug("Schnorr verification failed: %s", e.check)
        return False
    except TypeError:
        return False
    return True


def split_signature(signature: bytes) -> tuple[int, int]:
    """Split a 64-byte signature into (rx, s) integers."""
    return (
        int.from_bytes(signature[:32], "big"),
        int.from_bytes(signature[32:64], "big"),
    )
