"""
npub CLI — Nostr keys as account credentials.

Commands:
  npub address     - Predict the account identifier for (owner, salt)
  npub event       - Print the authentication event an owner signs for a digest
  npub verify      - Verify an owner's signature over an operation digest
  npub sign        - Sign an operation digest (dev only; key from NPUB_SECRET_KEY)
  npub create      - Signature-authorized create-or-get of an account
  npub list        - List materialized accounts
  npub encode      - Encode a hex owner key as npub
  npub decode      - Decode an npub to hex
  npub api start   - Start the account API HTTP server
  npub api status  - Show account API service status
  npub relay listen - Collect signed operation envelopes from Nostr relays
"""

from __future__ import annotations

import argparse
import logging
import os
import sys


def _parse_owner_arg(value: str) -> int:
    from npub.nip19 import parse_owner

    try:
        return parse_owner(value)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def _parse_hex_arg(value: str, name: str, size: int) -> bytes:
    if value.lower().startswith("0x"):
        value = value[2:]
    try:
        data = bytes.fromhex(value)
    except ValueError:
        print(f"Error: {name} must be hex", file=sys.stderr)
        sys.exit(1)
    if len(data) != size:
        print(f"Error: {name} must be {size} bytes, got {len(data)}", file=sys.stderr)
        sys.exit(1)
    return data


def _parse_salt_arg(value: str) -> int:
    try:
        salt = int(value, 16) if value.lower().startswith("0x") else int(value)
    except ValueError:
        print(f"Error: Invalid salt: {value}", file=sys.stderr)
        sys.exit(1)
    if not 0 <= salt < 1 << 256:
        print("Error: Salt must be a uint256", file=sys.stderr)
        sys.exit(1)
    return salt


def _load_secret_key() -> bytes:
    """Secret key from NPUB_SECRET_KEY (never from argv — visible in ps/proc)."""
    from npub import SECRET_KEY_ENV_VAR

    raw = os.environ.get(SECRET_KEY_ENV_VAR, "").strip()
    if not raw:
        print(f"Error: Set {SECRET_KEY_ENV_VAR} to a 32-byte hex secret key.", file=sys.stderr)
        sys.exit(1)
    return _parse_hex_arg(raw, SECRET_KEY_ENV_VAR, 32)


def _open_registry():
    from npub.accounts import AccountRegistry, default_root
    from npub.errors import RegistryError

    try:
        return AccountRegistry(default_root())
    except RegistryError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def cmd_address(args: argparse.Namespace) -> None:
    """Print the identifier (owner, salt) resolves to, created or not."""
    from npub.accounts import derive_identifier
    from npub.errors import SignatureError
    from npub.nip19 import encode_npub

    owner = _parse_owner_arg(args.owner)
    salt = _parse_salt_arg(args.salt)

    try:
        identifier = derive_identifier(owner, salt)
    except (SignatureError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print(identifier)
    if args.verbose:
        print(f"  owner: {owner:064x}", file=sys.stderr)
        print(f"  npub:  {encode_npub(owner)}", file=sys.stderr)
        print(f"  salt:  {salt}", file=sys.stderr)


def cmd_event(args: argparse.Namespace) -> None:
    """Print the canonical authentication event and its hash."""
    from npub.event import AuthenticatedEvent

    owner = _parse_owner_arg(args.owner)
    digest = _parse_hex_arg(args.digest, "digest", 32)

    try:
        event = AuthenticatedEvent(owner, digest)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print(event.serialized.decode("utf-8"))
    print(f"  hash: {event.hash.hex()}")


def cmd_verify(args: argparse.Namespace) -> None:
    """Verify a signature over the authentication event for a digest."""
    from npub.auth import verify_nostr_signature
    from npub.errors import SignatureError

    owner = _parse_owner_arg(args.owner)
    digest = _parse_hex_arg(args.digest, "digest", 32)
    signature = _parse_hex_arg(args.signature, "signature", 64)

    try:
        verify_nostr_signature(owner, signature, digest)
    except SignatureError as e:
        print(f"FAIL: signature rejected ({e.check})", file=sys.stderr)
        sys.exit(1)

    print(f"OK: signature valid for {owner:064x}")


def cmd_sign(args: argparse.Namespace) -> None:
    """Sign an operation digest with NPUB_SECRET_KEY (development only)."""
    from npub.nip19 import encode_npub

    digest = _parse_hex_arg(args.digest, "digest", 32)
    privkey = _load_secret_key()

    try:
        from npub.crypto.signer import sign_auth_event
        owner, signature = sign_auth_event(privkey, digest)
    except ImportError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except ValueError as e:
        print(f"Error: Signing failed: {e}", file=sys.stderr)
        sys.exit(1)

    print(signature.hex())
    print(f"  owner: {owner:064x}", file=sys.stderr)
    print(f"  npub:  {encode_npub(owner)}", file=sys.stderr)


def cmd_create(args: argparse.Namespace) -> None:
    """Verify a signature, then create (or fetch) the owner's account."""
    from npub.auth import AccountAuthenticator
    from npub.errors import CreationFailed, SignatureError

    owner = _parse_owner_arg(args.owner)
    salt = _parse_salt_arg(args.salt)
    digest = _parse_hex_arg(args.digest, "digest", 32)
    signature = _parse_hex_arg(args.signature, "signature", 64)

    authenticator = AccountAuthenticator(_open_registry())
    try:
        result = authenticator.authorize(owner, salt, signature, digest)
    except SignatureError as e:
        print(f"FAIL: signature rejected ({e.check})", file=sys.stderr)
        sys.exit(1)
    except CreationFailed as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    state = "created" if result.is_new else "exists"
    print(f"{result.identifier}  ({state})")


def cmd_list(args: argparse.Namespace) -> None:
    """List all materialized accounts."""
    registry = _open_registry()
    records = registry.records()

    if not records:
        print("No accounts.")
        return

    print(f"Accounts: {len(records)} (implementation {registry.implementation})\n")
    for record in records:
        owner_hex = f"{record.owner:064x}"
        line = f"  {record.identifier}  owner={owner_hex[:16]}..."
        if record.salt:
            line += f"  salt={record.salt}"
        line += f"  {record.created_at[:19]}"
        print(line)


def cmd_encode(args: argparse.Namespace) -> None:
    """Encode an owner key as npub."""
    from npub.nip19 import encode_npub

    owner = _parse_owner_arg(args.owner)
    try:
        print(encode_npub(owner))
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def cmd_decode(args: argparse.Namespace) -> None:
    """Decode an npub to 64-char hex."""
    from npub.nip19 import decode_npub

    try:
        owner = decode_npub(args.npub)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    print(f"{owner:064x}")


def cmd_api_start(args: argparse.Namespace) -> None:
    """Start the account API HTTP server."""
    from npub.api import run_api

    run_api(host=args.host, port=args.port, registry=_open_registry())


def cmd_api_status(args: argparse.Namespace) -> None:
    """Show account API service status."""
    import json
    import urllib.error
    import urllib.request

    url = f"http://{args.host}:{args.port}/status"

    try:
        req = urllib.request.Request(url, method="GET")
        with urllib.request.urlopen(req, timeout=5) as resp:
            data = json.loads(resp.read().decode())
    except urllib.error.URLError as e:
        print(f"Error: Cannot reach API at {url}: {e.reason}", file=sys.stderr)
        sys.exit(1)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"npub account API — {url}")
    print(f"  healthy:        {'yes' if data.get('healthy') else 'NO'}")
    print(f"  version:        {data.get('version', '?')}")
    print(f"  accounts:       {data.get('accounts', '?')}")
    print(f"  implementation: {data.get('implementation', '?')}")


def cmd_relay_listen(args: argparse.Namespace) -> None:
    """Collect verified operation envelopes from relays and print them."""
    import asyncio
    import json

    from npub.relay import collect_operations

    relays = args.relay or None
    try:
        operations = asyncio.run(collect_operations(relays, timeout=args.timeout))
    except ImportError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if not operations:
        print("No operations received.")
        return

    print(f"Received {len(operations)} operation(s)\n")
    for op in operations:
        print(json.dumps(op, default=str, sort_keys=True))


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="npub",
        description="npub — Nostr keys as the sole credential for ledger accounts.",
    )
    from npub import API_DEFAULT_HOST, API_DEFAULT_PORT, __version__
    parser.add_argument("--version", action="version", version=f"npub {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command")

    # address
    p_addr = sub.add_parser("address", help="Predict the account identifier for an owner")
    p_addr.add_argument("owner", help="Owner key (npub or hex)")
    p_addr.add_argument("--salt", default="0", help="Account salt (default: 0)")

    # event
    p_event = sub.add_parser("event", help="Print the authentication event for a digest")
    p_event.add_argument("owner", help="Owner key (npub or hex)")
    p_event.add_argument("digest", help="32-byte operation digest (hex)")

    # verify
    p_verify = sub.add_parser("verify", help="Verify a signature over an operation digest")
    p_verify.add_argument("owner", help="Owner key (npub or hex)")
    p_verify.add_argument("signature", help="64-byte signature (hex)")
    p_verify.add_argument("digest", help="32-byte operation digest (hex)")

    # sign
    p_sign = sub.add_parser("sign", help="Sign a digest with NPUB_SECRET_KEY (dev only)")
    p_sign.add_argument("digest", help="32-byte operation digest (hex)")

    # create
    p_create = sub.add_parser("create", help="Signature-authorized create-or-get")
    p_create.add_argument("owner", help="Owner key (npub or hex)")
    p_create.add_argument("signature", help="64-byte signature (hex)")
    p_create.add_argument("digest", help="32-byte operation digest (hex)")
    p_create.add_argument("--salt", default="0", help="Account salt (default: 0)")

    # list
    sub.add_parser("list", help="List materialized accounts")

    # encode / decode
    p_enc = sub.add_parser("encode", help="Encode a hex owner key as npub")
    p_enc.add_argument("owner", help="Owner key (hex)")

    p_dec = sub.add_parser("decode", help="Decode an npub to hex")
    p_dec.add_argument("npub", help="npub1... string")

    # api (with subcommands)
    p_api = sub.add_parser("api", help="Account API HTTP server")
    api_sub = p_api.add_subparsers(dest="api_command")

    p_api_start = api_sub.add_parser("start", help="Start the account API server")
    p_api_start.add_argument("--port", type=int, default=API_DEFAULT_PORT, help=f"Listen port (default: {API_DEFAULT_PORT})")
    p_api_start.add_argument("--host", default=API_DEFAULT_HOST, help=f"Bind address (default: {API_DEFAULT_HOST})")

    p_api_status = api_sub.add_parser("status", help="Show API service status")
    p_api_status.add_argument("--port", type=int, default=API_DEFAULT_PORT, help=f"API port (default: {API_DEFAULT_PORT})")
    p_api_status.add_argument("--host", default=API_DEFAULT_HOST, help=f"API host (default: {API_DEFAULT_HOST})")

    # relay (with subcommands)
    p_relay = sub.add_parser("relay", help="Nostr relay transport")
    relay_sub = p_relay.add_subparsers(dest="relay_command")

    p_rl = relay_sub.add_parser("listen", help="Collect operation envelopes from relays")
    p_rl.add_argument("--relay", action="append", help="Nostr relay URL (repeatable)")
    p_rl.add_argument("--timeout", type=float, default=10.0, help="Seconds to listen (default: 10)")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not args.command:
        print("npub — Nostr keys as account credentials")
        print()
        print("Usage:")
        print("  npub address <npub|hex> [--salt N]")
        print("  npub event <owner> <digest>")
        print("  npub verify <owner> <signature> <digest>")
        print("  NPUB_SECRET_KEY=... npub sign <digest>")
        print("  npub create <owner> <signature> <digest> [--salt N]")
        print("  npub list")
        print("  npub encode <hex>")
        print("  npub decode <npub>")
        print("  npub api start [--port N] [--host ADDR]")
        print("  npub api status")
        print("  npub relay listen [--relay wss://...] [--timeout S]")
        print()
        print("Run 'npub <command> --help' for details on any command.")
        sys.exit(0)

    # Handle api subcommands
    if args.command == "api":
        api_commands = {
            "start": cmd_api_start,
            "status": cmd_api_status,
        }
        ac = getattr(args, "api_command", None)
        if not ac:
            print("Usage: npub api {start|status}")
            sys.exit(0)
        api_commands[ac](args)
        return

    # Handle relay subcommands
    if args.command == "relay":
        relay_commands = {
            "listen": cmd_relay_listen,
        }
        rc = getattr(args, "relay_command", None)
        if not rc:
            print("Usage: npub relay {listen}")
            sys.exit(0)
        relay_commands[rc](args)
        return

    commands = {
        "address": cmd_address,
        "event": cmd_event,
        "verify": cmd_verify,
        "sign": cmd_sign,
        "create": cmd_create,
        "list": cmd_list,
        "encode": cmd_encode,
        "decode": cmd_decode,
    }

    commands[args.command](args)


if __name__ == "__main__":
    main()
