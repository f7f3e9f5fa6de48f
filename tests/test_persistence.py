"""Tests for storage tiers and the persistence gateway."""

import json
import threading
from unittest.mock import MagicMock

import pytest
from pydantic import TypeAdapter

from coupon_tracker.models.audit import AuditEventType
from coupon_tracker.models.coupon import Coupon
from coupon_tracker.services.storage import (
    ConnectionError,
    GoogleSheetsKeyValueStore,
    MAX_CELL_CHARS,
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    NotFoundError,
    PayloadTooLargeError,
    PersistenceGateway,
    SnapshotError,
    StorageError,
    StorageKeys,
    decode_envelope,
    encode_envelope,
)

COUPONS = TypeAdapter(list[Coupon])


class BlockingKeyValueStore(InMemoryKeyValueStore):
    """A replica whose writes hang until released."""

    def __init__(self):
        super().__init__()
        self.release = threading.Event()

    def set(self, key: str, value: str) -> None:
        self.release.wait(timeout=5)
        super().set(key, value)


class TestEnvelope:
    """Tests for the schema-versioned envelope."""

    def test_envelope_carries_version(self):
        raw = encode_envelope(["a", "b"])
        assert json.loads(raw) == {"schema_version": 1, "value": ["a", "b"]}
        assert decode_envelope(raw) == ["a", "b"]

    @pytest.mark.parametrize("raw", [
        "not json",
        json.dumps(["no", "envelope"]),
        json.dumps({"schema_version": 99, "value": []}),
        json.dumps({"schema_version": 1}),
    ])
    def test_bad_envelopes(self, raw):
        with pytest.raises(SnapshotError):
            decode_envelope(raw)


class TestStorageKeys:
    """Tests for key naming."""

    def test_tracked_keys(self):
        assert StorageKeys.is_tracked("records.123")
        assert StorageKeys.is_tracked("categories.123")
        assert StorageKeys.is_tracked("defaultCurrency.123")
        assert StorageKeys.is_tracked("lists.info")
        assert StorageKeys.is_tracked("deletedRecords")
        assert not StorageKeys.is_tracked("somethingElse")

    def test_error_hierarchy(self):
        assert issubclass(NotFoundError, StorageError)
        assert issubclass(ConnectionError, StorageError)


class TestJsonFileStore:
    """Tests for the local JSON file tier."""

    def test_set_get_delete(self, tmp_path):
        store = JsonFileKeyValueStore(tmp_path / "data")
        assert store.get("types") is None
        store.set("types", "value")
        assert store.get("types") == "value"
        assert (tmp_path / "data" / "types.json").exists()
        assert store.keys() == ["types"]
        assert store.delete("types") is True
        assert store.delete("types") is False

    def test_overwrite_leaves_no_temp_files(self, tmp_path):
        store = JsonFileKeyValueStore(tmp_path)
        store.set("lists.info", "one")
        store.set("lists.info", "two")
        assert store.get("lists.info") == "two"
        assert [p.name for p in tmp_path.iterdir()] == ["lists.info.json"]

    @pytest.mark.parametrize("key", ["../escape", "a/b", "", ".hidden"])
    def test_rejects_unsafe_keys(self, tmp_path, key):
        with pytest.raises(StorageError):
            JsonFileKeyValueStore(tmp_path).set(key, "x")


class TestGoogleSheetsStore:
    """Tests for the replica tier against a mocked worksheet."""

    @pytest.fixture
    def sheet(self):
        sheet = MagicMock()
        sheet.get_all_values.return_value = [
            ["key", "value", "updated_at"],
            ["types", "old", "2024-01-01T00:00:00+00:00"],
        ]
        return sheet

    @pytest.fixture
    def store(self, sheet):
        client = MagicMock()
        client.get_replica_sheet.return_value = sheet
        return GoogleSheetsKeyValueStore(client)

    def test_get(self, store):
        assert store.get("types") == "old"
        assert store.get("missing") is None

    def test_set_updates_row_in_place(self, store, sheet):
        store.set("types", "new")
        kwargs = sheet.update.call_args.kwargs
        assert kwargs["range_name"] == "A2:C2"
        assert kwargs["values"][0][:2] == ["types", "new"]
        sheet.append_row.assert_not_called()

    def test_set_appends_new_key(self, store, sheet):
        store.set("lists.info", "v")
        row = sheet.append_row.call_args.args[0]
        assert row[:2] == ["lists.info", "v"]

    def test_delete_and_keys(self, store, sheet):
        assert store.keys() == ["types"]
        assert store.delete("types") is True
        sheet.delete_rows.assert_called_once_with(2)
        assert store.delete("missing") is False

    def test_errors_are_wrapped(self, store, sheet):
        sheet.get_all_values.side_effect = RuntimeError("quota")
        with pytest.raises(StorageError):
            store.keys()

    def test_oversize_value_is_refused_without_calling_the_api(self, store, sheet):
        with pytest.raises(PayloadTooLargeError):
            store.set("records.abc", "x" * (MAX_CELL_CHARS + 1))
        sheet.get_all_values.assert_not_called()
        sheet.append_row.assert_not_called()

    def test_value_at_the_limit_is_written(self, store, sheet):
        store.set("records.abc", "x" * MAX_CELL_CHARS)
        sheet.append_row.assert_called_once()


class TestPersistenceGateway:
    """Tests for the gateway's write-through and failure handling."""

    def test_write_goes_to_both_tiers(self, gateway, local_store, remote_store):
        gateway.write(StorageKeys.TYPES, ["Gift Cards"])
        gateway.flush()
        assert decode_envelope(local_store.get(StorageKeys.TYPES)) == ["Gift Cards"]
        assert decode_envelope(remote_store.get(StorageKeys.TYPES)) == ["Gift Cards"]

    def test_read_loads_local_once(self, audit_logger):
        local = InMemoryKeyValueStore({StorageKeys.TYPES: encode_envelope(["A"])})
        gateway = PersistenceGateway(local, audit_logger=audit_logger)
        assert gateway.read(StorageKeys.TYPES) == ["A"]
        local.set(StorageKeys.TYPES, encode_envelope(["B"]))
        assert gateway.read(StorageKeys.TYPES) == ["A"]

    def test_typed_round_trip(self, gateway):
        coupon = Coupon(name="Coffee", code="X")
        gateway.write_typed("records.abc", COUPONS, [coupon])
        assert gateway.read_typed("records.abc", COUPONS, []) == [coupon]

    def test_malformed_snapshot_degrades_to_default(self, audit_logger, events):
        local = InMemoryKeyValueStore({"records.abc": "{broken"})
        gateway = PersistenceGateway(local, audit_logger=audit_logger)
        assert gateway.read_typed("records.abc", COUPONS, []) == []
        assert events[-1].event_type == AuditEventType.SNAPSHOT_DISCARDED

    def test_invalid_entities_degrade_to_default(self, audit_logger, events):
        local = InMemoryKeyValueStore({"records.abc": encode_envelope([{"remaining_value": "-5"}])})
        gateway = PersistenceGateway(local, audit_logger=audit_logger)
        assert gateway.read_typed("records.abc", COUPONS, []) == []
        assert events[-1].event_type == AuditEventType.SNAPSHOT_DISCARDED

    def test_remote_failure_never_breaks_local_write(self, local_store, failing_store, audit_logger, events):
        gateway = PersistenceGateway(local_store, remote=failing_store, audit_logger=audit_logger)
        gateway.write(StorageKeys.TYPES, ["A"])
        gateway.flush()
        assert gateway.read(StorageKeys.TYPES) == ["A"]
        assert decode_envelope(local_store.get(StorageKeys.TYPES)) == ["A"]
        failure = events[-1]
        assert failure.event_type == AuditEventType.PERSISTENCE_FAILED
        assert failure.details["tier"] == "remote"

    def test_local_failure_keeps_memory(self, failing_store, audit_logger, events):
        gateway = PersistenceGateway(failing_store, audit_logger=audit_logger)
        gateway.write(StorageKeys.TYPES, ["A"])
        assert gateway.read(StorageKeys.TYPES) == ["A"]
        assert events[-1].event_type == AuditEventType.PERSISTENCE_FAILED

    def test_unmirrored_write(self, gateway, remote_store):
        gateway.write(StorageKeys.TYPES, ["A"], mirror=False)
        gateway.flush()
        assert remote_store.get(StorageKeys.TYPES) is None

    def test_remove(self, gateway, local_store, remote_store):
        gateway.write(StorageKeys.TYPES, ["A"])
        gateway.remove(StorageKeys.TYPES)
        gateway.flush()
        assert gateway.read(StorageKeys.TYPES) is None
        assert local_store.get(StorageKeys.TYPES) is None
        assert remote_store.get(StorageKeys.TYPES) is None

    def test_tracked_keys_union(self, gateway, local_store, remote_store):
        local_store.set("records.a", encode_envelope([]))
        remote_store.set("records.b", encode_envelope([]))
        remote_store.set("unrelated", "x")
        assert gateway.tracked_keys() == ["records.a", "records.b"]

    def test_slow_remote_does_not_delay_write(self, local_store, audit_logger):
        remote = BlockingKeyValueStore()
        gateway = PersistenceGateway(local_store, remote=remote, audit_logger=audit_logger)
        try:
            gateway.write(StorageKeys.TYPES, ["A"])
            assert gateway.read(StorageKeys.TYPES) == ["A"]
            assert decode_envelope(local_store.get(StorageKeys.TYPES)) == ["A"]
            assert remote.get(StorageKeys.TYPES) is None

            remote.release.set()
            assert gateway.flush(timeout=5) is True
            assert decode_envelope(remote.get(StorageKeys.TYPES)) == ["A"]
        finally:
            remote.release.set()
            gateway.close()

    def test_mirror_keeps_write_order(self, gateway, remote_store):
        for value in (["A"], ["B"], ["C"]):
            gateway.write(StorageKeys.TYPES, value)
        gateway.flush()
        assert decode_envelope(remote_store.get(StorageKeys.TYPES)) == ["C"]

    def test_remote_read_waits_for_own_writes(self, gateway):
        gateway.write(StorageKeys.TYPES, ["A"])
        assert gateway.read_remote(StorageKeys.TYPES) == ["A"]

    def test_closed_gateway_mirrors_inline(self, gateway, remote_store):
        gateway.close()
        gateway.write(StorageKeys.TYPES, ["A"])
        assert decode_envelope(remote_store.get(StorageKeys.TYPES)) == ["A"]
