"""
secp256k1 field/scalar arithmetic and x-only point lifting.

Curve:  y^2 = x^3 + 7 over GF(p)
Points: affine (x, y) tuples; ``None`` is the point at infinity.

Pure Python integers — no overflow, no external dependencies. Not
constant-time; only used for verification of public data.

Square roots use the p ≡ 3 (mod 4) shortcut: y = a^((p+1)/4) mod p.
"""

from __future__ import annotations

from typing import Optional, Tuple

# Field prime and group order
P = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEFFFFFC2F
N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

GX = 0x79BE667EF9DCBBAC55A06295CE870B07029BFCDB2DCE28D959F2815B16F81798
GY = 0x483ADA7726A3C4655DA4FBFC0E1108A8FD17B448A68554199C47D08FFB10D4B8

Point = Optional[Tuple[int, int]]

G: Point = (GX, GY)

_SQRT_EXP = (P + 1) // 4


# ---------------------------------------------------------------------------
# Modular arithmetic
# ---------------------------------------------------------------------------

def mod_add(a: int, b: int, m: int = P) -> int:
    return (a + b) % m


def mod_mul(a: int, b: int, m: int = P) -> int:
    return (a * b) % m


def mod_pow(base: int, exp: int, m: int = P) -> int:
    return pow(base, exp, m)


def mod_inverse(a: int, m: int = P) -> int:
    """Multiplicative inverse of a modulo prime m."""
    a %= m
    if a == 0:
        raise ZeroDivisionError(f"No inverse for 0 mod {m:#x}")
    return pow(a, m - 2, m)


# ---------------------------------------------------------------------------
# Point lifting
# ---------------------------------------------------------------------------

def lift_x(x: int, strict: bool = True) -> tuple[int, bool]:
    """Recover the even-y point for an x-coordinate.

    Returns ``(y, ok)``. ``ok`` is False (and y is 0) when ``x >= p`` or,
    in strict mode, when x^3 + 7 is not a quadratic residue.

    With ``strict=False`` the candidate root is returned without being
    squared back, so an x with no curve point yields a meaningless y.
    """
    if x < 0 or x >= P:
        return 0, False

    y2 = (pow(x, 3, P) + 7) % P
    y = pow(y2, _SQRT_EXP, P)

    if strict and (y * y) % P != y2:
        return 0, False

    return (y if y & 1 == 0 else P - y), True


def is_on_curve(point: Point) -> bool:
    if point is None:
        return True
    x, y = point
    return 0 <= x < P and 0 <= y < P and (y * y - pow(x, 3, P) - 7) % P == 0


def has_even_y(point: Point) -> bool:
    return point is not None and point[1] % 2 == 0


# ---------------------------------------------------------------------------
# Group law
# ---------------------------------------------------------------------------

def point_neg(point: Point) -> Point:
    if point is None:
        return None
    return point[0], (P - point[1]) % P


def point_add(p1: Point, p2: Point) -> Point:
    """Add two affine points."""
    if p1 is None:
        return p2
    if p2 is None:
        return p1

    x1, y1 = p1
    x2, y2 = p2

    if x1 == x2:
        if (y1 + y2) % P == 0:
            return None  # P + (-P)
        # Doubling: lambda = 3x^2 / 2y
        lam = (3 * x1 * x1 * mod_inverse(2 * y1)) % P
    else:
        lam = ((y2 - y1) * mod_inverse(x2 - x1)) % P

    x3 = (lam * lam - x1 - x2) % P
    y3 = (lam * (x1 - x3) - y1) % P
    return x3, y3


def point_mul(k: int, point: Point = G) -> Point:
    """Scalar multiplication k * point (double-and-add)."""
    k %= N
    result: Point = None
    addend = point
    while k:
        if k & 1:
            result = point_add(result, addend)
        addend = point_add(addend, addend)
        k >>= 1
    return result


def point_sub(p1: Point, p2: Point) -> Point:
    return point_add(p1, point_neg(p2))
