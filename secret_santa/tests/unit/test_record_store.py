"""
tests/unit/test_record_store.py — Memory and JSON-file record store backends.

What this file proves:
  - a missing collection loads as []
  - save() overwrites the whole collection and load() sees exactly that
  - save(expected_version=...) rejects a writer whose snapshot is stale,
    and leaves the stored data untouched
  - loaded records are copies; mutating them does not change the store
  - the JSON backend keeps the array-per-file layout and leaves no temp files
  - unknown collection names are rejected

The SQL backend needs an app context and lives in
tests/integration/test_sql_record_store.py.
"""

from __future__ import annotations

import json

import pytest

from secret_santa.app.errors import AppError, ErrorCode
from secret_santa.app.storage.record_store import (
    GROUPS,
    USERS,
    JsonFileRecordStore,
    MemoryRecordStore,
    create_record_store,
)


@pytest.fixture(params=["memory", "json"])
def store(request, tmp_path):
    if request.param == "memory":
        return MemoryRecordStore()
    return JsonFileRecordStore(tmp_path)


def test_missing_collection_loads_empty(store):
    assert store.load(USERS) == []
    assert store.load(GROUPS) == []


def test_save_then_load_returns_records(store):
    records = [{"id": "1", "name": "Alice"}, {"id": "2", "name": "Bob"}]
    store.save(USERS, records)

    assert store.load(USERS) == records
    assert store.load(GROUPS) == []


def test_save_overwrites_whole_collection(store):
    store.save(USERS, [{"id": "1"}, {"id": "2"}])
    store.save(USERS, [{"id": "3"}])

    assert store.load(USERS) == [{"id": "3"}]


def test_version_changes_on_save(store):
    before = store.load_snapshot(GROUPS).version
    store.save(GROUPS, [{"id": "g"}])
    after = store.load_snapshot(GROUPS).version

    assert before != after


def test_save_with_current_version_succeeds(store):
    snapshot = store.load_snapshot(GROUPS)
    snapshot.records.append({"id": "g1"})

    store.save(GROUPS, snapshot.records, expected_version=snapshot.version)

    assert store.load(GROUPS) == [{"id": "g1"}]


def test_stale_write_is_rejected(store):
    # Two handlers read the same snapshot; the second one to save loses.
    first = store.load_snapshot(GROUPS)
    second = store.load_snapshot(GROUPS)

    first.records.append({"id": "from-first"})
    store.save(GROUPS, first.records, expected_version=first.version)

    second.records.append({"id": "from-second"})
    with pytest.raises(AppError) as exc_info:
        store.save(GROUPS, second.records, expected_version=second.version)

    err = exc_info.value
    assert err.code == ErrorCode.STALE_WRITE
    assert err.http_status == 409
    assert store.load(GROUPS) == [{"id": "from-first"}]


def test_loaded_records_are_independent_copies(store):
    store.save(USERS, [{"id": "1", "groups": []}])

    loaded = store.load(USERS)
    loaded[0]["groups"].append("g1")

    assert store.load(USERS) == [{"id": "1", "groups": []}]


def test_clear_drops_every_collection(store):
    store.save(USERS, [{"id": "1"}])
    store.save(GROUPS, [{"id": "g"}])

    store.clear()

    assert store.load(USERS) == []
    assert store.load(GROUPS) == []


def test_unknown_collection_is_rejected(store):
    with pytest.raises(ValueError):
        store.load("wishes")
    with pytest.raises(ValueError):
        store.save("wishes", [])


# ── JSON backend specifics ─────────────────────────────────────────────────

def test_json_store_writes_one_array_file_per_collection(tmp_path):
    store = JsonFileRecordStore(tmp_path)
    store.save(USERS, [{"id": "1", "name": "Zoë"}])

    path = tmp_path / "users.json"
    assert json.loads(path.read_text(encoding="utf-8")) == [{"id": "1", "name": "Zoë"}]
    assert sorted(p.name for p in tmp_path.iterdir()) == ["users.json"]


def test_json_store_reads_existing_files(tmp_path):
    (tmp_path / "groups.json").write_text('[{"id": "g1", "code": "ABC234"}]', encoding="utf-8")

    store = JsonFileRecordStore(tmp_path)

    assert store.load(GROUPS) == [{"id": "g1", "code": "ABC234"}]


def test_json_store_treats_empty_file_as_empty_collection(tmp_path):
    (tmp_path / "users.json").write_text("", encoding="utf-8")

    assert JsonFileRecordStore(tmp_path).load(USERS) == []


def test_json_store_rejects_non_array_file(tmp_path):
    (tmp_path / "users.json").write_text('{"id": "1"}', encoding="utf-8")

    with pytest.raises(ValueError):
        JsonFileRecordStore(tmp_path).load(USERS)


def test_json_store_detects_external_edit(tmp_path):
    store = JsonFileRecordStore(tmp_path)
    store.save(GROUPS, [])
    snapshot = store.load_snapshot(GROUPS)

    # Another process rewrites the file.
    (tmp_path / "groups.json").write_text('[{"id": "other"}]', encoding="utf-8")

    with pytest.raises(AppError) as exc_info:
        store.save(GROUPS, [{"id": "mine"}], expected_version=snapshot.version)
    assert exc_info.value.code == ErrorCode.STALE_WRITE


def test_json_store_creates_data_dir(tmp_path):
    data_dir = tmp_path / "nested" / "data"
    JsonFileRecordStore(data_dir).save(USERS, [])

    assert (data_dir / "users.json").exists()


# ── factory ────────────────────────────────────────────────────────────────

def test_factory_builds_configured_backend(tmp_path):
    assert isinstance(create_record_store({"RECORD_STORE_BACKEND": "memory"}), MemoryRecordStore)
    assert isinstance(
        create_record_store({"RECORD_STORE_BACKEND": "json", "DATA_DIR": str(tmp_path)}),
        JsonFileRecordStore,
    )


def test_factory_rejects_unknown_backend():
    with pytest.raises(ValueError):
        create_record_store({"RECORD_STORE_BACKEND": "redis"})
