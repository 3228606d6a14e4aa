"""
Tests for npub.auth — the signature-gated authorization flow.

Classes:
    TestVerifyNostrSignature
    TestAccountAuthenticator
"""

from __future__ import annotations

import hashlib
from unittest.mock import patch

import pytest

from conftest import SECRET_ONE, bip340_sign, requires_secp256k1, sign_operation
from npub.auth import AccountAuthenticator, Authorization, try_verify_nostr_signature, verify_nostr_signature
from npub.crypto.curve import GX, N, P
from npub.errors import (
    CreationFailed,
    FieldOutOfRange,
    InvalidOwner,
    MalformedDigestLength,
    MalformedSignatureLength,
    ScalarOutOfRange,
    SignatureError,
    VerificationMismatch,
)


# ---------------------------------------------------------------------------
# TestVerifyNostrSignature
# ---------------------------------------------------------------------------

class TestVerifyNostrSignature:

    def test_valid(self, signed_op):
        owner, signature, digest = signed_op
        assert owner == GX
        verify_nostr_signature(owner, signature, digest)
        assert try_verify_nostr_signature(owner, signature, digest)

    def test_signature_over_raw_digest_rejected(self, op_digest):
        """The owner signs the event hash, not the operation digest itself."""
        signature = bip340_sign(SECRET_ONE, op_digest)
        with pytest.raises(VerificationMismatch):
            verify_nostr_signature(GX, signature, op_digest)

    def test_other_digest_rejected(self, signed_op):
        owner, signature, _ = signed_op
        other = hashlib.sha256(b"transfer 2 units").digest()
        assert not try_verify_nostr_signature(owner, signature, other)

    def test_other_owner_rejected(self, signed_op):
        _, signature, digest = signed_op
        other_owner, _ = sign_operation(b"\x02" * 32, digest)
        assert not try_verify_nostr_signature(other_owner, signature, digest)

    def test_signature_length(self, signed_op):
        owner, signature, digest = signed_op
        for bad in (signature[:63], signature + b"\x00", b""):
            with pytest.raises(MalformedSignatureLength):
                verify_nostr_signature(owner, bad, digest)

    def test_length_checked_before_owner(self, op_digest):
        with pytest.raises(MalformedSignatureLength):
            verify_nostr_signature(0, b"\x00" * 10, op_digest)

    def test_zero_owner(self, op_digest):
        with pytest.raises(InvalidOwner) as exc:
            verify_nostr_signature(0, b"\x01" * 64, op_digest)
        assert exc.value.check == "owner"

    def test_digest_length(self, signed_op):
        owner, signature, _ = signed_op
        with pytest.raises(MalformedDigestLength):
            verify_nostr_signature(owner, signature, b"\x00" * 31)

    def test_ranges(self, op_digest):
        with pytest.raises(FieldOutOfRange):
            verify_nostr_signature(P, b"\x01" * 64, op_digest)
        with pytest.raises(FieldOutOfRange):
            verify_nostr_signature(GX, P.to_bytes(32, "big") + b"\x01" * 32, op_digest)
        with pytest.raises(ScalarOutOfRange):
            verify_nostr_signature(GX, b"\x01" * 32 + N.to_bytes(32, "big"), op_digest)

    def test_ranges_checked_before_hashing(self, op_digest):
        with patch("npub.auth.auth_event_hash") as mock_hash:
            with pytest.raises(ScalarOutOfRange):
                verify_nostr_signature(GX, b"\x01" * 32 + b"\xff" * 32, op_digest)
            mock_hash.assert_not_called()

    def test_tolerant_form_never_raises(self, op_digest):
        assert not try_verify_nostr_signature(0, b"", op_digest)
        assert not try_verify_nostr_signature(GX, b"\x00" * 64, b"")
        assert not try_verify_nostr_signature(GX, None, op_digest)
        assert not try_verify_nostr_signature("owner", b"\x01" * 64, op_digest)

    @requires_secp256k1
    def test_c_signer_interop(self, op_digest):
        from npub.crypto.signer import sign_auth_event

        owner, signature = sign_auth_event(b"\x09" * 32, op_digest)
        verify_nostr_signature(owner, signature, op_digest)


# ---------------------------------------------------------------------------
# TestAccountAuthenticator
# ---------------------------------------------------------------------------

class TestAccountAuthenticator:

    def test_authorize_creates_then_returns(self, authenticator, signed_op):
        owner, signature, digest = signed_op
        first = authenticator.authorize(owner, 0, signature, digest)
        assert isinstance(first, Authorization)
        assert first.is_new
        assert first.identifier == authenticator.registry.get_address(owner, 0)

        second = authenticator.authorize(owner, 0, signature, digest)
        assert not second.is_new
        assert second.identifier == first.identifier

    def test_rejected_signature_creates_nothing(self, authenticator, signed_op):
        owner, signature, digest = signed_op
        forged = signature[:32] + ((int.from_bytes(signature[32:], "big") + 1) % N).to_bytes(32, "big")
        with pytest.raises(SignatureError):
            authenticator.authorize(owner, 0, forged, digest)
        assert len(authenticator.registry) == 0
        assert authenticator.try_authorize(owner, 0, forged, digest) is None

    def test_try_authorize_success(self, authenticator, signed_op):
        owner, signature, digest = signed_op
        result = authenticator.try_authorize(owner, 3, signature, digest)
        assert result is not None
        assert result.salt == 3

    def test_creation_failure_propagates(self, signed_op):
        from npub.accounts import AccountRegistry

        def fail(record):
            raise RuntimeError("backend down")

        authenticator = AccountAuthenticator(AccountRegistry(materializer=fail))
        owner, signature, digest = signed_op
        with pytest.raises(CreationFailed):
            authenticator.authorize(owner, 0, signature, digest)
