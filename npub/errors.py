"""
Error taxonomy.

Signature errors carry a ``check`` attribute naming the validation step that
failed, so strict call sites can report it and tolerant call sites can
collapse every failure to ``False``.
"""

from __future__ import annotations


class NpubError(Exception):
    """Base class for all npub errors."""


class SignatureError(NpubError):
    """A signature or its inputs failed verification."""

    check = "signature"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.check)


class MalformedSignatureLength(SignatureError):
    check = "signature_length"


class MalformedDigestLength(SignatureError):
    check = "digest_length"


class FieldOutOfRange(SignatureError):
    """px or rx is not a field element (>= p)."""

    check = "field_range"


class ScalarOutOfRange(SignatureError):
    """s is not a scalar (>= n)."""

    check = "scalar_range"


class InvalidOwner(SignatureError):
    """Owner key is zero."""

    check = "owner"


class PointLiftFailure(SignatureError):
    """x has no point on the curve."""

    check = "lift_x"


class VerificationMismatch(SignatureError):
    """Arithmetic verification check failed."""

    check = "verification"


class RegistryError(NpubError):
    """Error in account registry operations."""


class CreationFailed(RegistryError):
    """Materializing an account record failed; nothing was published."""


class Bech32Error(ValueError):
    """Malformed bech32 / NIP-19 string."""
