"""
Authorization — a Nostr signature as the sole credential for an account.

Flow:
    (owner, salt, signature, operation digest)
      -> validate lengths, owner, ranges     (no hashing yet)
      -> m = SHA-256(authentication event(owner, digest))
      -> BIP340 verify(owner, rx, s, m)
      -> registry.create_or_get(owner, salt)

verify_nostr_signature() raises a SignatureError naming the failed check;
try_verify_nostr_signature() returns False for any failure.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from npub import DIGEST_SIZE, SIGNATURE_SIZE
from npub.accounts import AccountRegistry
from npub.crypto.schnorr import check_ranges, split_signature, verify_strict
from npub.errors import (
    InvalidOwner,
    MalformedDigestLength,
    MalformedSignatureLength,
    SignatureError,
)
from npub.event import auth_event_hash

log = logging.getLogger(__name__)


def verify_nostr_signature(owner: int, signature: bytes, digest: bytes) -> None:
    """Check that ``owner`` signed the authentication event for ``digest``.

    Raises:
        MalformedSignatureLength: signature is not 64 bytes.
        InvalidOwner: owner is zero.
        MalformedDigestLength: digest is not 32 bytes.
        FieldOutOfRange / ScalarOutOfRange / PointLiftFailure /
        VerificationMismatch: from the Schnorr verifier.
    """
    if not isinstance(signature, (bytes, bytearray)) or len(signature) != SIGNATURE_SIZE:
        raise MalformedSignatureLength(
            f"Signature must be {SIGNATURE_SIZE} bytes, got {len(signature or b'')}"
        )
    if owner == 0:
        raise InvalidOwner("Owner key must be nonzero")
    if not isinstance(digest, (bytes, bytearray)) or len(digest) != DIGEST_SIZE:
        raise MalformedDigestLength(f"Operation digest must be {DIGEST_SIZE} bytes")

    rx, s = split_signature(bytes(signature))
    check_ranges(owner, rx, s)

    verify_strict(owner, rx, s, auth_event_hash(owner, bytes(digest)))


def try_verify_nostr_signature(owner: int, signature: bytes, digest: bytes) -> bool:
    """Tolerant form of verify_nostr_signature()."""
    try:
        verify_nostr_signature(owner, signature, digest)
    except SignatureError:
        return False
    except TypeError:
        return False
    return True


@dataclass(frozen=True)
class Authorization:
    """Result of a successful authorization.

    Attributes:
        identifier: The account bound to (owner, salt).
        owner: The verified owner key.
        salt: The account salt.
        is_new: True only for the call that materialized the account.
    """

    identifier: str
    owner: int
    salt: int
    is_new: bool


class AccountAuthenticator:
    """Gate account resolution behind a Nostr signature.

    Usage:
        auth = AccountAuthenticator(AccountRegistry())
        result = auth.authorize(owner, salt, signature, op_digest)
        result.identifier  # account authorized by this signature
    """

    def __init__(self, registry: AccountRegistry) -> None:
        self.registry = registry

    def authorize(
        self,
        owner: int,
        salt: int,
        signature: bytes,
        digest: bytes,
    ) -> Authorization:
        """Verify the signature, then create or fetch the owner's account.

        Verification failures are terminal; nothing is created. Raises
        SignatureError subclasses, or CreationFailed from the registry.
        """
        try:
            verify_nostr_signature(owner, signature, digest)
        except SignatureError as e:
            log.warning("Rejected authorization for %s: %s", f"{owner:064x}"[:12], e.check)
            raise

        identifier, is_new = self.registry.create_or_get(owner, salt)
        return Authorization(identifier=identifier, owner=owner, salt=salt, is_new=is_new)

    def try_authorize(
        self,
        owner: int,
        salt: int,
        signature: bytes,
        digest: bytes,
    ) -> Authorization | None:
        """Like authorize(), but returns None on signature failure."""
        try:
            return self.authorize(owner, salt, signature, digest)
        except SignatureError:
            return None
