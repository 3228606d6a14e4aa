"""
Relay transport — signed operations shipped as Nostr events.

Envelope: kind 96124 (distinct from the 96024 authentication kind), empty
tags, content = JSON of the operation with integers tagged as
``{"__bigint__": "<decimal>"}`` so that uint256 fields survive JavaScript
consumers. The envelope is signed by a throwaway relay key; the operation
itself carries the owner's authentication signature.

Requires websockets for relay communication and secp256k1 for signing
envelopes. Install with: pip install npub-account[relay,signer]
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any

from npub import DEFAULT_RELAYS, ENVELOPE_EVENT_KIND
from npub.event import compute_event_id, verify_event_signature

log = logging.getLogger(__name__)

_BIGINT_KEY = "__bigint__"


# ---------------------------------------------------------------------------
# Content encoding
# ---------------------------------------------------------------------------

def _tag_ints(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return {_BIGINT_KEY: str(value)}
    if isinstance(value, dict):
        return {k: _tag_ints(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_tag_ints(v) for v in value]
    return value


def _untag_ints(obj: dict) -> Any:
    if set(obj) == {_BIGINT_KEY}:
        return int(obj[_BIGINT_KEY])
    return obj


def stringify_with_bigint(operation: dict) -> str:
    """Serialize an operation, tagging every integer as a bigint."""
    return json.dumps(_tag_ints(operation), separators=(",", ":"))


def parse_with_bigint(content: str) -> Any:
    """Inverse of stringify_with_bigint()."""
    return json.loads(content, object_hook=_untag_ints)


# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------

def create_operation_envelope(
    privkey: bytes,
    operation: dict,
    created_at: int | None = None,
) -> dict[str, Any]:
    """Create a signed kind-96124 event carrying ``operation``.

    Returns a Nostr event dict ready to send to relays.
    """
    from npub.crypto.signer import privkey_to_owner, sign_digest

    pubkey_hex = format(privkey_to_owner(privkey), "064x")
    created_at = int(time.time()) if created_at is None else created_at
    content = stringify_with_bigint(operation)

    event_id = compute_event_id(pubkey_hex, created_at, ENVELOPE_EVENT_KIND, [], content)
    sig = sign_digest(bytes.fromhex(event_id), privkey)

    return {
        "id": event_id,
        "pubkey": pubkey_hex,
        "created_at": created_at,
        "kind": ENVELOPE_EVENT_KIND,
        "tags": [],
        "content": content,
        "sig": sig.hex(),
    }


def parse_operation_envelope(event: dict) -> dict[str, Any] | None:
    """Extract the operation from an envelope event.

    Returns None if the event isn't a valid operation envelope.
    Verifies the event signature before trusting content.
    """
    if not isinstance(event, dict) or event.get("kind") != ENVELOPE_EVENT_KIND:
        return None

    if not verify_event_signature(event):
        log.warning(
            "Rejected envelope with invalid signature from %s",
            str(event.get("pubkey", "unknown"))[:12],
        )
        return None

    try:
        operation = parse_with_bigint(event.get("content", ""))
    except (json.JSONDecodeError, TypeError, ValueError):
        return None

    if not isinstance(operation, dict):
        return None
    return operation


# ---------------------------------------------------------------------------
# Relay communication
# ---------------------------------------------------------------------------

class NostrRelay:
    """Async Nostr relay client via websockets."""

    def __init__(self, url: str) -> None:
        self.url = url
        self._ws = None

    async def connect(self) -> None:
        """Connect to the relay."""
        try:
            import websockets
        except ImportError:
            raise ImportError(
                "websockets is required for Nostr relay communication. "
                "Install with: pip install npub-account[relay]"
            )
        self._ws = await websockets.connect(self.url)
        log.info("Connected to relay %s", self.url)

    async def close(self) -> None:
        if self._ws:
            await self._ws.close()
            self._ws = None

    async def publish(self, event: dict) -> None:
        """Publish an event to the relay."""
        if not self._ws:
            raise RuntimeError("Not connected to relay")
        await self._ws.send(json.dumps(["EVENT", event]))
        log.debug("Published event %s to %s", event.get("id", "")[:12], self.url)

    async def subscribe(self, sub_id: str, filters: dict) -> None:
        """Subscribe to events matching the given filters."""
        if not self._ws:
            raise RuntimeError("Not connected to relay")
        await self._ws.send(json.dumps(["REQ", sub_id, filters]))
        log.debug("Subscribed %s on %s", sub_id, self.url)

    async def receive(self) -> list:
        """Receive the next message from the relay. Returns parsed JSON array."""
        if not self._ws:
            raise RuntimeError("Not connected to relay")
        raw = await self._ws.recv()
        return json.loads(raw)


async def publish_operation(
    privkey: bytes,
    operation: dict,
    relays: list[str] | None = None,
) -> dict[str, Any]:
    """Publish an operation envelope to every relay. Returns the event.

    Raises RuntimeError if no relay accepted the connection.
    """
    relay_urls = relays or DEFAULT_RELAYS
    event = create_operation_envelope(privkey, operation)
    delivered = 0

    for url in relay_urls:
        relay = NostrRelay(url)
        try:
            await relay.connect()
            await relay.publish(event)
            delivered += 1
            log.info("Published operation %s to %s", event["id"][:12], url)
        except Exception as e:
            log.warning("Failed to publish to %s: %s", url, e)
        finally:
            await relay.close()

    if not delivered:
        raise RuntimeError("Operation was not delivered to any relay")
    return event


async def collect_operations(
    relays: list[str] | None = None,
    timeout: float = 10.0,
    since: int | None = None,
) -> list[dict[str, Any]]:
    """Collect operation envelopes from relays.

    Subscribes to kind-96124 events, collects for ``timeout`` seconds or
    until every relay sends EOSE, and returns the verified operations,
    deduplicated by event id.
    """
    relay_urls = relays or DEFAULT_RELAYS
    operations: dict[str, dict] = {}  # keyed by event id for dedup
    filters: dict[str, Any] = {"kinds": [ENVELOPE_EVENT_KIND]}
    if since is not None:
        filters["since"] = since

    async def _query_relay(url: str) -> None:
        relay = NostrRelay(url)
        loop = asyncio.get_running_loop()
        try:
            await relay.connect()
            await relay.subscribe("npub-operations", filters)

            deadline = loop.time() + timeout
            while loop.time() < deadline:
                try:
                    msg = await asyncio.wait_for(
                        relay.receive(),
                        timeout=max(0.1, deadline - loop.time()),
                    )
                except asyncio.TimeoutError:
                    break

                if isinstance(msg, list) and len(msg) >= 3 and msg[0] == "EVENT":
                    operation = parse_operation_envelope(msg[2])
                    if operation is not None:
                        operations[msg[2]["id"]] = operation
                elif isinstance(msg, list) and msg and msg[0] == "EOSE":
                    break  # End of stored events
        except Exception as e:
            log.warning("Relay %s error: %s", url, e)
        finally:
            await relay.close()

    await asyncio.gather(*(_query_relay(url) for url in relay_urls))
    return list(operations.values())
