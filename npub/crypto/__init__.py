"""
Cryptographic core — secp256k1 arithmetic and BIP340 Schnorr verification.

Provides:
    - lift_x / point_add / point_mul — curve math over secp256k1
    - tagged_hash / compute_challenge — BIP340 challenge hashing
    - verify / verify_strict — Schnorr verification (tolerant / raising)

All modules are pure Python and stdlib only, except signer.py which
requires the `secp256k1` C bindings.
Install with: pip install npub-account[signer]
"""

from npub.crypto.curve import (
    G,
    N,
    P,
    lift_x,
    mod_inverse,
    point_add,
    point_mul,
)
from npub.crypto.challenge import compute_challenge, tagged_hash
from npub.crypto.schnorr import check_ranges, verify, verify_strict

__all__ = [
    "G",
    "N",
    "P",
    "lift_x",
    "mod_inverse",
    "point_add",
    "point_mul",
    "compute_challenge",
    "tagged_hash",
    "check_ranges",
    "verify",
    "verify_strict",
]
