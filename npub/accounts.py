"""
Account derivation and the idempotent create-or-get registry.

Identifier (content-addressed, CREATE2-style):
    code_hash  = SHA-256(descriptor)
    identifier = "0x" + last 20 bytes of SHA-256(0xff || code_hash || salt32 || owner32)

The identifier depends only on (descriptor, salt, owner), so it can be
predicted before an account exists and never changes afterwards.

Registry state per (owner, salt): Absent -> Present, once, never deleted.
create_or_get() is serialized per key with a per-key lock; different keys
do not wait on each other except for the short index write. A key lock
is dropped once no caller holds or waits on it.

Optional persistence: <root>/accounts.json with atomic writes
(temp file + os.replace). A failed write or materializer leaves no record.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
import threading
import weakref
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

from npub import ACCOUNT_DEFAULT_IMPLEMENTATION, ACCOUNT_DESCRIPTOR, HOME_ENV_VAR
from npub.crypto.curve import P
from npub.errors import CreationFailed, FieldOutOfRange, InvalidOwner, RegistryError

log = logging.getLogger(__name__)

_UINT256_LIMIT = 1 << 256
_CREATE2_PREFIX = b"\xff"

Materializer = Callable[["AccountRecord"], None]


def default_root() -> Path:
    """State root: $NPUB_HOME or ~/.npub."""
    env = os.environ.get(HOME_ENV_VAR, "").strip()
    return Path(env) if env else Path.home() / ".npub"


def _validate_key(owner: int, salt: int) -> None:
    if not isinstance(owner, int) or not isinstance(salt, int):
        raise TypeError("owner and salt must be integers")
    if owner == 0:
        raise InvalidOwner("Owner key must be nonzero")
    if not 0 < owner < P:
        raise FieldOutOfRange("Owner key is not a field element")
    if not 0 <= salt < _UINT256_LIMIT:
        raise ValueError(f"Salt must be a uint256, got {salt}")


def derive_identifier(owner: int, salt: int, descriptor: bytes = ACCOUNT_DESCRIPTOR) -> str:
    """Deterministic account identifier for (owner, salt).

    Pure: no registry access. Raises InvalidOwner / FieldOutOfRange / ValueError
    for keys that can never own an account.
    """
    _validate_key(owner, salt)
    code_hash = hashlib.sha256(descriptor).digest()
    digest = hashlib.sha256(
        _CREATE2_PREFIX
        + code_hash
        + salt.to_bytes(32, "big")
        + owner.to_bytes(32, "big")
    ).digest()
    return "0x" + digest[-20:].hex()


def _record_key(owner: int, salt: int) -> str:
    return f"{owner:064x}:{salt:064x}"


@dataclass(frozen=True)
class AccountRecord:
    """A materialized account.

    Attributes:
        identifier: The content-addressed account identifier ("0x" + 40 hex).
        owner: x-only owner key.
        salt: Caller-chosen uint256 salt.
        created_at: ISO 8601 timestamp of materialization.
    """

    identifier: str
    owner: int
    salt: int
    created_at: str

    def to_dict(self) -> dict:
        d = asdict(self)
        d["owner"] = f"{self.owner:064x}"
        d["salt"] = str(self.salt)
        return d

    @classmethod
    def from_dict(cls, d: dict) -> AccountRecord:
        return cls(
            identifier=d["identifier"],
            owner=int(d["owner"], 16),
            salt=int(d["salt"]),
            created_at=d["created_at"],
        )


class AccountRegistry:
    """Idempotent create-or-get store keyed by (owner, salt).

    Thread-safe. In-memory unless ``root`` is given, in which case records
    are persisted to ``<root>/accounts.json``.

    Usage:
        registry = AccountRegistry()
        address = registry.get_address(owner, 0)
        identifier, is_new = registry.create_or_get(owner, 0)
        assert identifier == address and is_new
    """

    def __init__(
        self,
        root: str | Path | None = None,
        descriptor: bytes = ACCOUNT_DESCRIPTOR,
        materializer: Optional[Materializer] = None,
    ) -> None:
        self._descriptor = descriptor
        self._materializer = materializer
        self._path = Path(root) / "accounts.json" if root else None

        self._records: dict[str, AccountRecord] = {}
        self._by_identifier: dict[str, str] = {}
        self._implementation = ACCOUNT_DEFAULT_IMPLEMENTATION

        self._lock = threading.Lock()  # guards the maps and the key-lock table
        self._write_lock = threading.Lock()  # serializes index writes
        # Entries live only while some caller holds or waits on the lock
        self._key_locks: weakref.WeakValueDictionary[str, threading.Lock] = (
            weakref.WeakValueDictionary()
        )

        self._load()

    # -- persistence --------------------------------------------------------

    def _load(self) -> None:
        """Load records from disk. Missing file means an empty registry."""
        if self._path is None or not self._path.is_file():
            return
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
            records = [AccountRecord.from_dict(r) for r in raw.get("accounts", [])]
            implementation = raw.get("implementation", ACCOUNT_DEFAULT_IMPLEMENTATION)
        except (json.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError) as e:
            raise RegistryError(f"Corrupt registry index {self._path}: {e}") from e

        for record in records:
            key = _record_key(record.owner, record.salt)
            self._records[key] = record
            self._by_identifier[record.identifier] = key
        self._implementation = implementation

    def _save(self, records: list[AccountRecord], implementation: str) -> None:
        """Atomically write the index (temp + rename)."""
        if self._path is None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        data = json.dumps(
            {
                "implementation": implementation,
                "accounts": [r.to_dict() for r in records],
            },
            indent=2,
            sort_keys=True,
        )
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self._path.parent), suffix=".tmp", prefix=".accounts_"
        )
        try:
            os.write(fd, data.encode("utf-8"))
            os.fsync(fd)
            os.close(fd)
            os.replace(tmp_path, str(self._path))
        except Exception:
            try:
                os.close(fd)
            except OSError:
                pass
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

    # -- derivation ---------------------------------------------------------

    def get_address(self, owner: int, salt: int) -> str:
        """Identifier for (owner, salt), whether or not it has been created."""
        return derive_identifier(owner, salt, self._descriptor)

    # -- creation -----------------------------------------------------------

    def _key_lock(self, key: str) -> threading.Lock:
        with self._lock:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = self._key_locks[key] = threading.Lock()
            return lock

    def create_or_get(self, owner: int, salt: int) -> tuple[str, bool]:
        """Return (identifier, is_new), materializing the account if absent.

        Exactly one caller per (owner, salt) ever sees is_new=True.

        Raises:
            InvalidOwner / FieldOutOfRange / ValueError: invalid key.
            CreationFailed: the materializer or index write failed. No
                record is published and the next call may retry.
        """
        identifier = self.get_address(owner, salt)
        key = _record_key(owner, salt)

        with self._lock:
            existing = self._records.get(key)
        if existing is not None:
            log.debug("Account %s already exists", existing.identifier[:14])
            return existing.identifier, False

        with self._key_lock(key):
            with self._lock:
                existing = self._records.get(key)
            if existing is not None:
                return existing.identifier, False

            record = AccountRecord(
                identifier=identifier,
                owner=owner,
                salt=salt,
                created_at=datetime.now(timezone.utc).isoformat(),
            )
            try:
                if self._materializer is not None:
                    self._materializer(record)
                self._publish(key, record)
            except Exception as e:
                log.error(
                    "Failed to create account %s for %s: %s",
                    identifier[:14], f"{owner:064x}"[:12], e,
                )
                raise CreationFailed(
                    f"Account creation failed for {identifier}: {e}"
                ) from e

        log.info(
            "Created account %s for owner %s (salt %d)",
            identifier[:14], f"{owner:064x}"[:12], salt,
        )
        return identifier, True

    def _publish(self, key: str, record: AccountRecord) -> None:
        """Persist then expose a new record. Nothing is visible on failure."""
        with self._write_lock:
            with self._lock:
                snapshot = list(self._records.values())
                implementation = self._implementation
            self._save(snapshot + [record], implementation)
            with self._lock:
                self._records[key] = record
                self._by_identifier[record.identifier] = key

    # -- lookups ------------------------------------------------------------

    def get(self, owner: int, salt: int) -> AccountRecord | None:
        with self._lock:
            return self._records.get(_record_key(owner, salt))

    def contains(self, owner: int, salt: int) -> bool:
        return self.get(owner, salt) is not None

    def lookup(self, identifier: str) -> AccountRecord | None:
        """Reverse lookup: find a materialized record by identifier."""
        with self._lock:
            key = self._by_identifier.get(identifier.lower())
            return self._records.get(key) if key else None

    def records(self) -> list[AccountRecord]:
        """All materialized records, oldest first."""
        with self._lock:
            return sorted(self._records.values(), key=lambda r: r.created_at)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    # -- behavior indirection -----------------------------------------------

    @property
    def implementation(self) -> str:
        """Current behavior version behind every account identifier."""
        with self._lock:
            return self._implementation

    def upgrade_implementation(self, implementation: str) -> None:
        """Swap the behavior version. Identifiers and owners are untouched."""
        if not implementation:
            raise ValueError("Implementation version must be non-empty")
        with self._write_lock:
            with self._lock:
                snapshot = list(self._records.values())
            self._save(snapshot, implementation)
            with self._lock:
                previous, self._implementation = self._implementation, implementation
        log.info("Account implementation upgraded %s -> %s", previous, implementation)

    def implementation_for(self, identifier: str) -> str:
        """Behavior version serving a materialized account.

        Raises RegistryError if the identifier has not been created.
        """
        if self.lookup(identifier) is None:
            raise RegistryError(f"Unknown account: {identifier}")
        return self.implementation
