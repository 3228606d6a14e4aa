"""
Request handlers for the account API.

Each handler is a pure function: (request_data, dependencies) → (status_code, response_dict).
No HTTP plumbing — that lives in server.py.
"""

from __future__ import annotations

import json
import re
from typing import Any

from npub import API_MAX_BODY_BYTES, __version__
from npub.auth import verify_nostr_signature
from npub.errors import (
    CreationFailed,
    MalformedDigestLength,
    MalformedSignatureLength,
    SignatureError,
)
from npub.nip19 import encode_npub, parse_owner

_HEX_RE = re.compile(r"^(?:0x)?[0-9a-fA-F]*$")

# Signature failures that mean "malformed request" rather than "not authorized"
_MALFORMED = (MalformedSignatureLength, MalformedDigestLength)


def _parse_salt(value: Any) -> int:
    """Salt as decimal string/int or 0x-hex string. Raises ValueError."""
    if isinstance(value, bool):
        raise ValueError("Salt must be an integer")
    if isinstance(value, int):
        salt = value
    elif isinstance(value, str):
        value = value.strip()
        salt = int(value, 16) if value.lower().startswith("0x") else int(value)
    else:
        raise ValueError("Salt must be an integer")
    if not 0 <= salt < 1 << 256:
        raise ValueError("Salt must be a uint256")
    return salt


def _parse_hex(value: Any, name: str) -> bytes:
    if not isinstance(value, str) or not _HEX_RE.match(value):
        raise ValueError(f"'{name}' must be a hex string")
    if value.lower().startswith("0x"):
        value = value[2:]
    return bytes.fromhex(value)


def _parse_json(body: bytes) -> tuple[dict | None, tuple[int, dict] | None]:
    """Decode a JSON object body. Returns (data, None) or (None, error response)."""
    if not body:
        return None, (400, {"error": "Empty request body"})
    if len(body) > API_MAX_BODY_BYTES:
        return None, (413, {"error": f"Payload too large (max {API_MAX_BODY_BYTES} bytes)"})
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, ValueError):
        return None, (400, {"error": "Invalid JSON"})
    if not isinstance(data, dict):
        return None, (400, {"error": "Request body must be a JSON object"})
    return data, None


def _parse_credential(data: dict) -> tuple[int, bytes, bytes]:
    """Pull (owner, signature, digest) out of a request. Raises ValueError."""
    for field in ("owner", "signature", "digest"):
        if field not in data:
            raise ValueError(f"Missing '{field}'")
    if not isinstance(data["owner"], str):
        raise ValueError("'owner' must be an npub or hex string")
    owner = parse_owner(data["owner"])
    signature = _parse_hex(data["signature"], "signature")
    digest = _parse_hex(data["digest"], "digest")
    return owner, signature, digest


def handle_status(registry: Any) -> tuple[int, dict]:
    """GET /status — service health check."""
    result: dict[str, Any] = {
        "service": "npub-account-api",
        "version": __version__,
        "healthy": True,
    }
    try:
        result["accounts"] = len(registry)
        result["implementation"] = registry.implementation
    except Exception:
        result["accounts"] = "unavailable"
        result["healthy"] = False
    return 200, result


def handle_address(
    owner_str: str,
    query: dict[str, list[str]],
    registry: Any,
) -> tuple[int, dict]:
    """GET /address/<owner>?salt=N — predict (or look up) an account identifier.

    ``owner`` may be an npub or hex; salt defaults to 0.
    """
    try:
        owner = parse_owner(owner_str)
        salt = _parse_salt(query.get("salt", ["0"])[0])
        address = registry.get_address(owner, salt)
    except (ValueError, SignatureError) as e:
        return 400, {"error": f"Invalid request: {e}"}

    return 200, {
        "owner": f"{owner:064x}",
        "npub": encode_npub(owner),
        "salt": str(salt),
        "address": address,
        "exists": registry.contains(owner, salt),
    }


def handle_verify(body: bytes) -> tuple[int, dict]:
    """POST /verify — check an authentication signature without creating anything.

    Body: {"owner": "<npub|hex>", "signature": "<128 hex>", "digest": "<64 hex>"}
    """
    data, error = _parse_json(body)
    if error:
        return error

    try:
        owner, signature, digest = _parse_credential(data)
    except ValueError as e:
        return 400, {"error": str(e)}

    try:
        verify_nostr_signature(owner, signature, digest)
    except _MALFORMED as e:
        return 400, {"valid": False, "check": e.check, "error": str(e)}
    except SignatureError as e:
        return 401, {"valid": False, "check": e.check}

    return 200, {"valid": True, "owner": f"{owner:064x}"}


def handle_create_account(body: bytes, authenticator: Any) -> tuple[int, dict]:
    """POST /accounts — signature-authorized create-or-get.

    Body: {"owner", "salt", "signature", "digest"}. Returns 201 for the call
    that created the account, 200 if it already existed.
    """
    data, error = _parse_json(body)
    if error:
        return error

    try:
        owner, signature, digest = _parse_credential(data)
        salt = _parse_salt(data.get("salt", 0))
    except ValueError as e:
        return 400, {"error": str(e)}

    try:
        result = authenticator.authorize(owner, salt, signature, digest)
    except _MALFORMED as e:
        return 400, {"error": str(e), "check": e.check}
    except SignatureError as e:
        return 401, {"error": "Signature verification failed", "check": e.check}
    except CreationFailed as e:
        return 500, {"error": str(e)}

    return (201 if result.is_new else 200), {
        "address": result.identifier,
        "owner": f"{owner:064x}",
        "salt": str(salt),
        "is_new": result.is_new,
        "implementation": authenticator.registry.implementation,
    }
