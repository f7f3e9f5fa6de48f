"""
Persistence Gateway

DESIGN DECISION: The stores never touch a storage tier directly.
They read and write typed values through this gateway, which:
1. Keeps the in-memory snapshot of every key (authoritative for the session)
2. Writes through to the local tier
3. Mirrors every write to the remote replica, fire-and-forget: mirror
   writes run on a single background worker, in submission order, so a
   slow or unreachable replica never delays the caller
4. Wraps every value in a schema-versioned JSON envelope

Failures are swallowed HERE, at the boundary, and logged as audit events.
A broken disk or an offline replica must never crash a mutation: the
in-memory state stays correct for the rest of the session.

Envelope format:

    {"schema_version": 1, "value": <json payload>}

A value with an unknown version or malformed JSON is treated as absent.
"""

import json
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any, Optional, TypeVar
from uuid import UUID

from pydantic import TypeAdapter, ValidationError

from coupon_tracker.audit import AuditLogger
from coupon_tracker.services.storage.interface import KeyValueStoreInterface


SCHEMA_VERSION = 1

T = TypeVar("T")


class SnapshotError(ValueError):
    """A stored value could not be decoded."""
    pass


class StorageKeys:
    """Logical keys of the persisted state."""

    DELETED_RECORDS = "deletedRecords"
    TYPES = "types"
    LISTS_INFO = "lists.info"
    LISTS_SELECTED = "lists.selected"

    RECORDS_PREFIX = "records."
    CATEGORIES_PREFIX = "categories."
    DEFAULT_CURRENCY_PREFIX = "defaultCurrency."

    @classmethod
    def records(cls, list_id: UUID) -> str:
        return f"{cls.RECORDS_PREFIX}{list_id}"

    @classmethod
    def categories(cls, list_id: UUID) -> str:
        return f"{cls.CATEGORIES_PREFIX}{list_id}"

    @classmethod
    def default_currency(cls, list_id: UUID) -> str:
        return f"{cls.DEFAULT_CURRENCY_PREFIX}{list_id}"

    @classmethod
    def is_tracked(cls, key: str) -> bool:
        """Whether a key belongs to this application's state."""
        if key in (cls.DELETED_RECORDS, cls.TYPES, cls.LISTS_INFO, cls.LISTS_SELECTED):
            return True
        return key.startswith((
            cls.RECORDS_PREFIX,
            cls.CATEGORIES_PREFIX,
            cls.DEFAULT_CURRENCY_PREFIX,
        ))


def encode_envelope(payload: Any) -> str:
    """Serialize a JSON-compatible payload into a versioned envelope."""
    return json.dumps(
        {"schema_version": SCHEMA_VERSION, "value": payload},
        ensure_ascii=False,
        sort_keys=True,
    )


def decode_envelope(raw: str) -> Any:
    """
    Extract the payload from a versioned envelope.

    Raises:
        SnapshotError: If the envelope is malformed or from an unknown version
    """
    try:
        data = json.loads(raw)
    except (TypeError, json.JSONDecodeError) as e:
        raise SnapshotError(f"Invalid JSON: {e}")

    if not isinstance(data, dict) or "value" not in data:
        raise SnapshotError("Missing envelope")
    if data.get("schema_version") != SCHEMA_VERSION:
        raise SnapshotError(f"Unsupported schema version: {data.get('schema_version')!r}")
    return data["value"]


class PersistenceGateway:
    """
    Typed, mirrored access to the persisted keys.

    Payloads are kept in memory in their JSON form (lists, dicts, strings),
    which is also what the sync reconciler compares against the replica.
    """

    def __init__(
        self,
        local: KeyValueStoreInterface,
        remote: Optional[KeyValueStoreInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        """
        Initialize the gateway.

        Args:
            local: Local storage tier (source of the session's state)
            remote: Remote replica. If None, nothing is mirrored.
            audit_logger: Where swallowed failures are reported
        """
        self._local = local
        self._remote = remote
        self._audit_logger = audit_logger or AuditLogger()
        self._memory: dict[str, Any] = {}
        self._pending: list[Future] = []
        self._mirror: Optional[ThreadPoolExecutor] = None
        if remote is not None:
            self._mirror = ThreadPoolExecutor(max_workers=1, thread_name_prefix="coupon-mirror")

    @property
    def has_remote(self) -> bool:
        return self._remote is not None

    # -------------------------------------------------------------------------
    # Raw payload access
    # -------------------------------------------------------------------------

    def read(self, key: str) -> Any:
        """
        Current payload for a key, or None when absent.

        The local tier is only read the first time a key is requested.
        """
        if key not in self._memory:
            self._memory[key] = self._read_tier(self._local, key, tier="local")
        return self._memory[key]

    def write(self, key: str, payload: Any, mirror: bool = True) -> None:
        """
        Replace a key in memory, then persist locally and mirror remotely.

        With mirror=False the replica is left alone (used for first-run
        seeds, which must not overwrite state another device already pushed).
        """
        self._memory[key] = payload
        try:
            raw = encode_envelope(payload)
        except (TypeError, ValueError) as e:
            self._audit_logger.log_persistence_failed(key, "serialization", str(e))
            return

        self._write_tier(self._local, key, raw, tier="local")
        if mirror and self._remote is not None:
            self._submit(self._write_tier, self._remote, key, raw, "remote")

    def remove(self, key: str) -> None:
        """Drop a key from memory and from both tiers."""
        self._memory[key] = None
        self._delete_tier(self._local, key, "local")
        if self._remote is not None:
            self._submit(self._delete_tier, self._remote, key, "remote")

    def flush(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for queued mirror writes to reach the replica.

        Returns:
            True if nothing is left pending
        """
        pending = [f for f in self._pending if not f.done()]
        if pending:
            wait(pending, timeout=timeout)
        self._pending = [f for f in self._pending if not f.done()]
        return not self._pending

    def close(self) -> None:
        """Finish queued mirror writes and stop the mirror worker."""
        if self._mirror is None:
            return
        self._mirror.shutdown(wait=True)
        self._mirror = None
        self._pending = []

    # -------------------------------------------------------------------------
    # Typed access
    # -------------------------------------------------------------------------

    def read_typed(self, key: str, adapter: TypeAdapter, default: T) -> T:
        """
        Decode a key into its entity type.

        Unreadable snapshots degrade to `default` and are logged.
        """
        payload = self.read(key)
        if payload is None:
            return default
        try:
            return adapter.validate_python(payload)
        except ValidationError as e:
            self._audit_logger.log_snapshot_discarded(key, str(e))
            return default

    def write_typed(self, key: str, adapter: TypeAdapter, value: Any, mirror: bool = True) -> None:
        """Encode an entity value and write it."""
        self.write(key, adapter.dump_python(value, mode="json"), mirror=mirror)

    # -------------------------------------------------------------------------
    # Sync support
    # -------------------------------------------------------------------------

    def read_remote(self, key: str) -> Any:
        """
        Payload currently held by the replica, or None.

        Unreachable replicas and unreadable values both read as None.
        Queued mirror writes are flushed first so the replica is never
        older than this device's own writes.
        """
        if self._remote is None:
            return None
        self.flush()
        return self._read_tier(self._remote, key, tier="remote")

    def replace_from_remote(self, key: str, payload: Any) -> None:
        """Adopt a remote payload: memory and local tier, no mirror back."""
        self._memory[key] = payload
        try:
            self._write_tier(self._local, key, encode_envelope(payload), tier="local")
        except (TypeError, ValueError) as e:
            self._audit_logger.log_persistence_failed(key, "serialization", str(e))

    def tracked_keys(self) -> list[str]:
        """Every application key known to memory, the local tier or the replica."""
        self.flush()
        keys = {key for key, payload in self._memory.items() if payload is not None}
        for tier_name, tier in (("local", self._local), ("remote", self._remote)):
            if tier is None:
                continue
            try:
                keys.update(tier.keys())
            except Exception as e:
                self._audit_logger.log_persistence_failed("*", tier_name, str(e))
        return sorted(key for key in keys if StorageKeys.is_tracked(key))

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _read_tier(self, store: KeyValueStoreInterface, key: str, tier: str) -> Any:
        try:
            raw = store.get(key)
        except Exception as e:
            self._audit_logger.log_persistence_failed(key, tier, str(e))
            return None
        if raw is None:
            return None
        try:
            return decode_envelope(raw)
        except SnapshotError as e:
            self._audit_logger.log_snapshot_discarded(key, str(e))
            return None

    def _write_tier(self, store: KeyValueStoreInterface, key: str, raw: str, tier: str) -> None:
        try:
            store.set(key, raw)
        except Exception as e:
            self._audit_logger.log_persistence_failed(key, tier, str(e))

    def _delete_tier(self, store: KeyValueStoreInterface, key: str, tier: str) -> None:
        try:
            store.delete(key)
        except Exception as e:
            self._audit_logger.log_persistence_failed(key, tier, str(e))

    def _submit(self, fn, *args) -> None:
        if self._mirror is None:
            # Closed: mirror inline
            fn(*args)
            return
        self._pending = [f for f in self._pending if not f.done()]
        self._pending.append(self._mirror.submit(fn, *args))
