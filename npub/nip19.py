"""
NIP-19 ``npub`` encoding of owner keys (bech32, BIP-173).

    npub1<data><checksum>  where data = 32-byte x-only key in 5-bit groups

Owner keys travel as npub strings in user-facing surfaces (CLI, HTTP) and as
integers everywhere else. parse_owner() accepts either form.
"""

from __future__ import annotations

from npub.errors import Bech32Error
from npub.event import to_hex64

NPUB_HRP = "npub"

_CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
_GENERATOR = [0x3B6A57B2, 0x26508E6D, 0x1EA119FA, 0x3D4233DD, 0x2A1462B3]


def _polymod(values: list[int]) -> int:
    chk = 1
    for v in values:
        b = chk >> 25
        chk = (chk & 0x1FFFFFF) << 5 ^ v
        for i in range(5):
            chk ^= _GENERATOR[i] if ((b >> i) & 1) else 0
    return chk


def _hrp_expand(hrp: str) -> list[int]:
    return [ord(x) >> 5 for x in hrp] + [0] + [ord(x) & 31 for x in hrp]


def _convertbits(data: list[int], frombits: int, tobits: int, pad: bool = True) -> list[int]:
    acc, bits, ret = 0, 0, []
    maxv = (1 << tobits) - 1
    for value in data:
        if value < 0 or value >> frombits:
            raise Bech32Error(f"Invalid {frombits}-bit value: {value}")
        acc = (acc << frombits) | value
        bits += frombits
        while bits >= tobits:
            bits -= tobits
            ret.append((acc >> bits) & maxv)
    if pad:
        if bits:
            ret.append((acc << (tobits - bits)) & maxv)
    elif bits >= frombits or ((acc << (tobits - bits)) & maxv):
        raise Bech32Error("Invalid padding")
    return ret


def bech32_encode(hrp: str, data: bytes) -> str:
    data_5bit = _convertbits(list(data), 8, 5)
    polymod = _polymod(_hrp_expand(hrp) + data_5bit + [0] * 6) ^ 1
    checksum = [(polymod >> 5 * (5 - i)) & 31 for i in range(6)]
    return hrp + "1" + "".join(_CHARSET[d] for d in data_5bit + checksum)


def bech32_decode(value: str) -> tuple[str, bytes]:
    """Decode a bech32 string into (hrp, data bytes).

    Raises Bech32Error on mixed case, bad characters or checksum mismatch.
    """
    if value.lower() != value and value.upper() != value:
        raise Bech32Error("Mixed-case bech32 string")
    value = value.lower()
    pos = value.rfind("1")
    if pos < 1 or pos + 7 > len(value):
        raise Bech32Error("Missing separator or checksum")

    hrp = value[:pos]
    try:
        data = [_CHARSET.index(c) for c in value[pos + 1:]]
    except ValueError:
        raise Bech32Error(f"Invalid character in {value!r}")

    if _polymod(_hrp_expand(hrp) + data) != 1:
        raise Bech32Error("Checksum mismatch")

    return hrp, bytes(_convertbits(data[:-6], 5, 8, pad=False))


def encode_npub(owner: int) -> str:
    """Encode an owner key as ``npub1...``."""
    return bech32_encode(NPUB_HRP, bytes.fromhex(to_hex64(owner)))


def decode_npub(npub: str) -> int:
    """Decode ``npub1...`` to the owner key integer."""
    hrp, data = bech32_decode(npub.strip())
    if hrp != NPUB_HRP:
        raise Bech32Error(f"Expected '{NPUB_HRP}' prefix, got {hrp!r}")
    if len(data) != 32:
        raise Bech32Error(f"npub payload must be 32 bytes, got {len(data)}")
    return int.from_bytes(data, "big")


def parse_owner(value: str) -> int:
    """Parse an owner key given as npub, 0x-hex or bare hex.

    Raises ValueError (Bech32Error for bad npub strings).
    """
    value = value.strip()
    if value.lower().startswith(NPUB_HRP + "1"):
        return decode_npub(value)
    if value.lower().startswith("0x"):
        value = value[2:]
    if not value or len(value) > 64:
        raise ValueError(f"Invalid owner key: {value!r}")
    try:
        return int(value, 16)
    except ValueError:
        raise ValueError(f"Invalid hex in owner key: {value!r}")
