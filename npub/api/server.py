"""
HTTP server for the account API.

Uses stdlib http.server — zero external dependencies.
Routes requests to handler functions in handlers.py.
"""

from __future__ import annotations

import json
import logging
import re
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any
from urllib.parse import parse_qs, urlsplit

from npub import API_DEFAULT_HOST, API_DEFAULT_PORT, API_MAX_BODY_BYTES
from npub.accounts import AccountRegistry
from npub.api.handlers import (
    handle_address,
    handle_create_account,
    handle_status,
    handle_verify,
)
from npub.auth import AccountAuthenticator

logger = logging.getLogger(__name__)

# Route patterns
_ADDRESS_RE = re.compile(r"^/address/([0-9A-Za-z]+)$")


class AccountAPIHandler(BaseHTTPRequestHandler):
    """HTTP request handler for the account API.

    Server-level dependencies (registry, authenticator) are attached to the
    server instance and accessed via self.server.
    """

    # http.server access lines go to the debug log, not stderr
    def log_message(self, format: str, *args: Any) -> None:
        logger.debug(format, *args)

    def _send_json(self, status: int, data: dict) -> None:
        body = json.dumps(data, indent=2).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _read_body(self) -> bytes | None:
        """Read the request body. Returns None if it exceeds the limit."""
        try:
            length = int(self.headers.get("Content-Length", 0))
        except ValueError:
            length = 0
        if length > API_MAX_BODY_BYTES:
            return None
        if length <= 0:
            return b""
        return self.rfile.read(length)

    def do_GET(self) -> None:
        url = urlsplit(self.path)
        path = url.path
        server = self.server  # type: ignore[attr-defined]

        # GET /status
        if path == "/status":
            code, data = handle_status(server.registry)
            self._send_json(code, data)
            return

        # GET /address/<owner>?salt=N
        m = _ADDRESS_RE.match(path)
        if m:
            code, data = handle_address(m.group(1), parse_qs(url.query), server.registry)
            self._send_json(code, data)
            return

        self._send_json(404, {"error": "Not found"})

    def do_POST(self) -> None:
        path = urlsplit(self.path).path
        server = self.server  # type: ignore[attr-defined]

        body = self._read_body()
        if body is None:
            self.close_connection = True
            self._send_json(413, {"error": f"Payload too large (max {API_MAX_BODY_BYTES} bytes)"})
            return

        # POST /verify
        if path == "/verify":
            code, data = handle_verify(body)
            self._send_json(code, data)
            return

        # POST /accounts
        if path == "/accounts":
            code, data = handle_create_account(body, server.authenticator)
            self._send_json(code, data)
            return

        self._send_json(404, {"error": "Not found"})


class AccountAPIServer(HTTPServer):
    """HTTPServer subclass that carries API dependencies."""

    def __init__(self, address: tuple[str, int], registry: AccountRegistry) -> None:
        super().__init__(address, AccountAPIHandler)
        self.registry = registry
        self.authenticator = AccountAuthenticator(registry)


def run_api(
    host: str = API_DEFAULT_HOST,
    port: int = API_DEFAULT_PORT,
    registry: AccountRegistry | None = None,
) -> None:
    """Start the account API server (blocking).

    Args:
        host: Bind address (default 127.0.0.1)
        port: Listen port (default 8080)
        registry: AccountRegistry instance (persistent default if not provided)
    """
    from npub.accounts import default_root

    if registry is None:
        registry = AccountRegistry(default_root())

    server = AccountAPIServer((host, port), registry)

    print(f"npub account API listening on http://{host}:{port}")
    print("  GET  /status                  — service health")
    print("  GET  /address/<owner>?salt=N  — predict account identifier")
    print("  POST /verify                  — check an authentication signature")
    print("  POST /accounts                — signature-authorized create-or-get")

    try:
        server.serve_forever()
    except KeyboardInterrupt:
        print("\nShutting down...")
    finally:
        server.server_close()
