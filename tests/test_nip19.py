"""
Tests for npub.nip19 — bech32 npub encoding of owner keys.

Classes:
    TestNpub
    TestBech32Errors
    TestParseOwner
"""

from __future__ import annotations

import pytest

from npub.crypto.curve import GX
from npub.errors import Bech32Error
from npub.nip19 import bech32_decode, bech32_encode, decode_npub, encode_npub, parse_owner

# Example from NIP-19
NIP19_HEX = "7e7e9c42a91bfef19fa929e5fda1b72e0ebc1a4c1141673e2794234d86addf4e"
NIP19_NPUB = "npub10elfcs4fr0l0r8af98jlmgdh9c8tcxjvz9qkw038js35mp4dma8qzvjptg"


class TestNpub:

    def test_encode_known_vector(self):
        assert encode_npub(int(NIP19_HEX, 16)) == NIP19_NPUB

    def test_decode_known_vector(self):
        assert decode_npub(NIP19_NPUB) == int(NIP19_HEX, 16)

    def test_uppercase_accepted(self):
        assert decode_npub(NIP19_NPUB.upper()) == int(NIP19_HEX, 16)

    def test_small_key_keeps_leading_zeros(self):
        npub = encode_npub(1)
        assert npub.startswith("npub1")
        assert decode_npub(npub) == 1

    def test_generator(self):
        assert decode_npub(encode_npub(GX)) == GX


class TestBech32Errors:

    def test_bad_checksum(self):
        corrupted = NIP19_NPUB[:-1] + ("q" if NIP19_NPUB[-1] != "q" else "p")
        with pytest.raises(Bech32Error):
            decode_npub(corrupted)

    def test_mixed_case(self):
        with pytest.raises(Bech32Error):
            decode_npub(NIP19_NPUB[:10] + NIP19_NPUB[10:].upper())

    def test_invalid_character(self):
        with pytest.raises(Bech32Error):
            bech32_decode("npub1bbbbbbbbbbbbbbb")

    def test_wrong_hrp(self):
        nsec_like = bech32_encode("nsec", bytes.fromhex(NIP19_HEX))
        with pytest.raises(Bech32Error, match="npub"):
            decode_npub(nsec_like)

    def test_wrong_length(self):
        short = bech32_encode("npub", b"\x01" * 20)
        with pytest.raises(Bech32Error, match="32 bytes"):
            decode_npub(short)

    def test_is_value_error(self):
        with pytest.raises(ValueError):
            decode_npub("npub1")


class TestParseOwner:

    def test_npub(self):
        assert parse_owner(NIP19_NPUB) == int(NIP19_HEX, 16)

    def test_hex(self):
        assert parse_owner(NIP19_HEX) == int(NIP19_HEX, 16)
        assert parse_owner("0x" + NIP19_HEX.upper()) == int(NIP19_HEX, 16)

    def test_whitespace(self):
        assert parse_owner(f"  {NIP19_HEX}\n") == int(NIP19_HEX, 16)

    def test_rejects_garbage(self):
        for bad in ("", "0x", "xyz", "a" * 65):
            with pytest.raises(ValueError):
                parse_owner(bad)
