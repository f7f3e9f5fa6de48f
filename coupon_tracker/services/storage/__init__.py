"""
Storage Services Package

Provides the abstract key-value interface, its local and Google Sheets
implementations, and the persistence gateway the stores write through.
"""

from coupon_tracker.services.storage.interface import (
    ConnectionError,
    KeyValueStoreInterface,
    NotFoundError,
    PayloadTooLargeError,
    StorageError,
)
from coupon_tracker.services.storage.local import (
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
)
from coupon_tracker.services.storage.google_sheets import (
    GoogleSheetsClient,
    MAX_CELL_CHARS,
    GoogleSheetsKeyValueStore,
)
from coupon_tracker.services.storage.persistence import (
    SCHEMA_VERSION,
    PersistenceGateway,
    SnapshotError,
    StorageKeys,
    decode_envelope,
    encode_envelope,
)

__all__ = [
    # Interfaces
    "KeyValueStoreInterface",
    # Exceptions
    "ConnectionError",
    "NotFoundError",
    "PayloadTooLargeError",
    "SnapshotError",
    "StorageError",
    # Local implementations
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    # Google Sheets replica
    "GoogleSheetsClient",
    "GoogleSheetsKeyValueStore",
    "MAX_CELL_CHARS",
    # Gateway
    "SCHEMA_VERSION",
    "PersistenceGateway",
    "StorageKeys",
    "decode_envelope",
    "encode_envelope",
]
