"""
npub account API — address lookup and signature-authorized accounts over HTTP.

Zero external dependencies — stdlib only.
"""

from npub.api.server import run_api

__all__ = ["run_api"]
