"""
npub — Nostr keys as the sole credential for programmable ledger accounts.

Architecture:
    Verify:   BIP340 Schnorr over secp256k1, x-only owner keys (npub/crypto)
    Message:  [0,"<owner>",0,96024,[],"<digest>"] Nostr event, SHA-256'd (npub/event.py)
    Accounts: content-addressed identifier per (owner, salt), idempotent registry
    Bridge:   npub CLI, HTTP lookup service, kind-96124 relay envelopes
"""

__version__ = "0.1.0"

# Authentication event (what the owner signs)
AUTH_EVENT_KIND = 96024
AUTH_EVENT_CREATED_AT = 0

# Transport envelope carrying a signed operation over relays. Deliberately a
# different kind from AUTH_EVENT_KIND; do not unify.
ENVELOPE_EVENT_KIND = 96124

SIGNATURE_SIZE = 64  # Rx (32) + s (32)
DIGEST_SIZE = 32

# Fixed implementation descriptor hashed into every account identifier.
# Identity handle only; the behavior version is tracked separately.
ACCOUNT_DESCRIPTOR = b"npub-account-proxy/1"
ACCOUNT_DEFAULT_IMPLEMENTATION = "npub-account/1"

DEFAULT_RELAYS = [
    "wss://relay.primal.net",
    "wss://nos.lol",
    "wss://relay.damus.io",
]

# HTTP service
API_DEFAULT_HOST = "127.0.0.1"
API_DEFAULT_PORT = 8080
API_MAX_BODY_BYTES = 64 * 1024

# State root (override with NPUB_HOME)
HOME_ENV_VAR = "NPUB_HOME"
SECRET_KEY_ENV_VAR = "NPUB_SECRET_KEY"
