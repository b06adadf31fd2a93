"""Tests for key-value storage, loading, backups and the debounced saver."""

import json
import time

import pytest

from ledgerbook.models.ledger import ReceiveTransaction
from ledgerbook.services.persistence import (
    BackupImportError,
    DebouncedSaver,
    build_backup,
    collection_records,
    dirty_keys_for,
    load_state,
    parse_backup,
)
from ledgerbook.services.storage import (
    CorruptDataError,
    InMemoryStorage,
    LocalJsonStorage,
    SerializationError,
    StorageError,
    StorageKey,
)
from ledgerbook.state import AppState, add_person


class FailingStorage(InMemoryStorage):
    """Storage whose writes always fail."""

    def write(self, key, value):
        raise StorageError("quota exceeded")


@pytest.fixture
def state():
    return AppState(
        persons=("A", "B"),
        transactions=(ReceiveTransaction(person="A", amount=5, currency="usd"),),
    )


class TestLocalJsonStorage:
    """Tests for the file backend."""

    def test_write_then_read(self, tmp_path):
        """Test that a value survives a write."""
        storage = LocalJsonStorage(tmp_path)
        storage.write(StorageKey.PERSONS, ["A", "یوان"])
        assert storage.read(StorageKey.PERSONS) == ["A", "یوان"]
        assert (tmp_path / "persons.json").exists()

    def test_missing_key_reads_none(self, tmp_path):
        """Test that an absent key is None, not an error."""
        assert LocalJsonStorage(tmp_path).read(StorageKey.SETTINGS) is None

    def test_corrupt_file(self, tmp_path):
        """Test that undecodable JSON raises CorruptDataError."""
        (tmp_path / "transactions.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(CorruptDataError):
            LocalJsonStorage(tmp_path).read(StorageKey.TRANSACTIONS)

    def test_unserializable_value(self, tmp_path):
        """Test that non-JSON values raise SerializationError."""
        with pytest.raises(SerializationError):
            LocalJsonStorage(tmp_path).write(StorageKey.PRODUCTS, [object()])

    def test_write_is_whole_value_and_leaves_no_temp_files(self, tmp_path):
        """Test that a second write replaces the first completely."""
        storage = LocalJsonStorage(tmp_path)
        storage.write(StorageKey.PERSONS, ["A", "B", "C"])
        storage.write(StorageKey.PERSONS, ["D"])
        assert storage.read(StorageKey.PERSONS) == ["D"]
        assert [p.name for p in tmp_path.iterdir()] == ["persons.json"]

    def test_keys_and_delete(self, tmp_path):
        """Test listing and removing keys."""
        storage = LocalJsonStorage(tmp_path)
        storage.write(StorageKey.SETTINGS, {})
        assert storage.keys() == [StorageKey.SETTINGS]
        assert storage.delete(StorageKey.SETTINGS)
        assert not storage.delete(StorageKey.SETTINGS)


class TestLoadState:
    """Tests for rebuilding state from storage."""

    def test_empty_storage_gives_defaults(self):
        """Test the defaults when nothing is stored."""
        loaded = load_state(InMemoryStorage())
        assert loaded.state.persons == ("JACK", "AMiR", "JD", "Khalil")
        assert loaded.state.transactions == ()
        assert loaded.skipped == 0

    def test_bad_records_skipped(self):
        """Test that malformed stored records are left out of the ledger but kept."""
        storage = InMemoryStorage({
            StorageKey.TRANSACTIONS: [
                {"type": "receive", "person": "A", "amount": 5, "currency": "usd", "id": "6f1c1f5e-8a7e-4f33-9d55-2b1c1c1e2a11"},
                {"type": "pay", "person": "A", "amount": "x", "currency": "usd"},
            ],
            StorageKey.PERSONS: ["A"],
        })
        loaded = load_state(storage)
        assert len(loaded.state.transactions) == 1
        assert loaded.skipped == 1
        assert not loaded.needs_save
        assert loaded.state.unreadable == (
            {"type": "pay", "person": "A", "amount": "x", "currency": "usd"},
        )

    def test_missing_ids_request_save(self):
        """Test that records without ids are flagged for re-saving."""
        storage = InMemoryStorage({
            StorageKey.TRANSACTIONS: [{"type": "pay", "person": "A", "amount": 1, "currency": "usd"}],
        })
        assert load_state(storage).needs_save

    def test_legacy_ids_are_stable(self):
        """Test that loading the same id-less records twice gives the same ids."""
        storage = InMemoryStorage({
            StorageKey.TRANSACTIONS: [
                {"type": "pay", "person": "A", "amount": 1, "currency": "usd"},
                {"type": "pay", "person": "A", "amount": 1, "currency": "usd"},
            ],
        })
        first = load_state(storage).state.transactions
        second = load_state(storage).state.transactions
        assert [t.id for t in first] == [t.id for t in second]
        assert first[0].id != first[1].id

    def test_unreadable_records_written_back(self):
        """Test that saving keeps records the ledger could not read."""
        broken = {"type": "pay", "person": "A", "amount": "x", "currency": "usd"}
        storage = InMemoryStorage({
            StorageKey.TRANSACTIONS: [
                {"type": "pay", "person": "A", "amount": 1, "currency": "usd"},
                broken,
            ],
        })
        records = collection_records(load_state(storage).state)[StorageKey.TRANSACTIONS]
        assert len(records) == 2
        assert broken in records

    def test_unreadable_records_left_out_of_backup(self):
        """Test that an exported backup only carries readable records."""
        state = AppState(unreadable=({"type": "pay"},))
        assert build_backup(state)["transactions"] == []

    def test_categories_from_settings(self):
        """Test that stored categories are restored."""
        storage = InMemoryStorage({
            StorageKey.SETTINGS: {"categories": [{"key": "k", "label": "K"}], "theme": "dark"},
        })
        loaded = load_state(storage)
        assert [c.key for c in loaded.state.categories] == ["k"]
        assert loaded.state.settings["theme"] == "dark"

    def test_round_trip_through_records(self, state):
        """Test that saved collections load back to the same state."""
        storage = InMemoryStorage(collection_records(state))
        loaded = load_state(storage).state
        assert loaded.persons == state.persons
        assert loaded.transactions == state.transactions
        assert loaded.categories == state.categories


class TestBackup:
    """Tests for backup export and import parsing."""

    def test_build_backup_shape(self, state):
        """Test the backup keys."""
        backup = build_backup(state)
        assert set(backup) == {"transactions", "persons", "products", "settings", "timestamp"}
        assert backup["transactions"][0]["person"] == "A"
        json.dumps(backup)

    def test_parse_accepts_exported_backup(self, state):
        """Test that an exported backup imports."""
        backup = parse_backup(json.dumps(build_backup(state)))
        assert backup.persons == ["A", "B"]
        assert len(backup.transactions) == 1

    def test_malformed_json_rejected(self):
        """Test that broken JSON is a BackupImportError."""
        with pytest.raises(BackupImportError):
            parse_backup("{oops")

    def test_non_object_rejected(self):
        """Test that the top level must be an object."""
        with pytest.raises(BackupImportError):
            parse_backup("[1, 2]")

    def test_any_bad_record_rejects_all(self):
        """Test that import is all or nothing."""
        raw = {"transactions": [{"type": "pay", "person": "A", "amount": "zero", "currency": "usd"}]}
        with pytest.raises(BackupImportError, match="transactions"):
            parse_backup(raw)

    def test_dirty_keys_only_present(self):
        """Test that absent collections are not rewritten."""
        backup = parse_backup({"persons": ["A"], "settings": {}})
        assert list(dirty_keys_for(backup)) == [StorageKey.PERSONS, StorageKey.SETTINGS]


class TestDebouncedSaver:
    """Tests for coalesced persistence."""

    def test_immediate_mode_writes(self, state):
        """Test that a zero delay writes synchronously."""
        storage = InMemoryStorage()
        saver = DebouncedSaver(storage, snapshot=lambda: state, delay=0)
        saver.mark_dirty(StorageKey.PERSONS)
        assert storage.read(StorageKey.PERSONS) == ["A", "B"]
        assert saver.pending == set()

    def test_burst_collapses_to_one_write(self, state):
        """Test that repeated changes in the quiet period write once."""
        storage = InMemoryStorage()
        current = {"state": state}
        saver = DebouncedSaver(storage, snapshot=lambda: current["state"], delay=0.2)

        for name in ("C", "D", "E"):
            current["state"] = add_person(current["state"], name)
            saver.mark_dirty(StorageKey.PERSONS)

        assert storage.write_count == 0
        deadline = time.monotonic() + 5
        while storage.write_count == 0 and time.monotonic() < deadline:
            time.sleep(0.01)

        assert storage.write_count == 1
        assert storage.read(StorageKey.PERSONS) == ["A", "B", "C", "D", "E"]

    def test_flush_writes_pending(self, state):
        """Test that flush does not wait for the timer."""
        storage = InMemoryStorage()
        saver = DebouncedSaver(storage, snapshot=lambda: state, delay=60)
        saver.mark_dirty(StorageKey.TRANSACTIONS, StorageKey.PERSONS)
        assert saver.pending == {StorageKey.TRANSACTIONS, StorageKey.PERSONS}
        saver.flush()
        assert saver.pending == set()
        assert len(storage.read(StorageKey.TRANSACTIONS)) == 1

    def test_periodic_backup(self, state):
        """Test that every Nth write also stores a backup."""
        storage = InMemoryStorage()
        saver = DebouncedSaver(storage, snapshot=lambda: state, delay=0, backup_every=2)
        saver.mark_dirty(StorageKey.PERSONS)
        assert storage.read(StorageKey.BACKUP) is None
        saver.mark_dirty(StorageKey.PERSONS)
        assert storage.read(StorageKey.BACKUP)["persons"] == ["A", "B"]

    def test_failure_is_reported_not_raised(self, state):
        """Test that a failed write notifies and keeps the key pending."""
        errors = []
        saver = DebouncedSaver(
            FailingStorage(),
            snapshot=lambda: state,
            delay=0,
            on_error=lambda key, exc: errors.append((key, str(exc))),
        )
        saver.mark_dirty(StorageKey.PERSONS)
        assert errors == [(StorageKey.PERSONS, "quota exceeded")]
        assert saver.pending == {StorageKey.PERSONS}
