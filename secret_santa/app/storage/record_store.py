"""
storage/record_store.py — Durable storage for the users and groups collections.

Contract:
  load(collection)            → list of records (a complete snapshot)
  load_snapshot(collection)   → Snapshot(records, version)
  save(collection, records, expected_version=None)
                              → atomic whole-collection overwrite, returns the
                                new version stamp

There are no partial updates and no indices; callers scan the list.
Every service runs read-modify-write: load a snapshot, change the records,
save with expected_version=snapshot.version. If another writer saved in
between, save() raises STALE_WRITE (409) and writes nothing, so the second
writer can no longer silently overwrite the first one's change.

There is no cross-collection atomicity. A user update and a group update are
two independent saves.

Backends (RECORD_STORE_BACKEND):
  json    one JSON array file per collection under DATA_DIR; writes go through
          a temp file + os.replace so readers never see a torn file
  sql     one row per collection in collection_snapshots (Flask-SQLAlchemy);
          the version check is part of the UPDATE statement
  memory  process-local, used by unit tests
"""

from __future__ import annotations

import copy
import hashlib
import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from secret_santa.app.errors import AppError, ErrorCode

logger = logging.getLogger(__name__)

USERS = "users"
GROUPS = "groups"
COLLECTIONS = (USERS, GROUPS)


@dataclass(frozen=True)
class Snapshot:
    records: list[dict]
    version: str


def _check_collection(collection: str) -> None:
    if collection not in COLLECTIONS:
        raise ValueError(f"Unknown collection {collection!r}; expected one of {COLLECTIONS}.")


def _stale_write(collection: str) -> AppError:
    logger.warning("Rejected stale write to the %s collection", collection)
    return AppError(
        ErrorCode.STALE_WRITE,
        f"The {collection} data was changed by another request. Please try again.",
        409,
    )


class RecordStore(ABC):

    def load(self, collection: str) -> list[dict]:
        """Returns the records of `collection`; a missing collection is empty."""
        return self.load_snapshot(collection).records

    @abstractmethod
    def load_snapshot(self, collection: str) -> Snapshot:
        ...

    @abstractmethod
    def save(
            self,
            collection: str,
            records: list[dict],
            expected_version: str | None = None,
    ) -> str:
        ...

    @abstractmethod
    def clear(self) -> None:
        """Drops every collection."""


# ── memory ─────────────────────────────────────────────────────────────────

class MemoryRecordStore(RecordStore):

    def __init__(self) -> None:
        self._data: dict[str, list[dict]] = {}
        self._versions: dict[str, int] = {}
        self._lock = threading.Lock()

    def load_snapshot(self, collection: str) -> Snapshot:
        _check_collection(collection)
        with self._lock:
            return Snapshot(
                records=copy.deepcopy(self._data.get(collection, [])),
                version=str(self._versions.get(collection, 0)),
            )

    def save(self, collection, records, expected_version=None) -> str:
        _check_collection(collection)
        with self._lock:
            current = self._versions.get(collection, 0)
            if expected_version is not None and expected_version != str(current):
                raise _stale_write(collection)
            self._data[collection] = copy.deepcopy(list(records))
            self._versions[collection] = current + 1
            return str(current + 1)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
            self._versions.clear()


# ── json ───────────────────────────────────────────────────────────────────

class JsonFileRecordStore(RecordStore):
    """
    Stores each collection as DATA_DIR/<collection>.json holding a JSON array.

    The version stamp is the SHA-256 of the file bytes. A per-collection lock
    makes compare-and-write atomic inside one process; separate processes
    sharing DATA_DIR are not coordinated.
    """

    def __init__(self, data_dir: str | os.PathLike) -> None:
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self._locks = {name: threading.Lock() for name in COLLECTIONS}

    def _path(self, collection: str) -> Path:
        return self.data_dir / f"{collection}.json"

    @staticmethod
    def _digest(raw: bytes) -> str:
        return hashlib.sha256(raw).hexdigest()

    def _read(self, collection: str) -> tuple[bytes, list[dict]]:
        path = self._path(collection)
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            return b"", []
        if not raw.strip():
            return raw, []
        records = json.loads(raw.decode("utf-8"))
        if not isinstance(records, list):
            raise ValueError(f"{path} does not contain a JSON array.")
        return raw, records

    def load_snapshot(self, collection: str) -> Snapshot:
        _check_collection(collection)
        raw, records = self._read(collection)
        return Snapshot(records=records, version=self._digest(raw))

    def save(self, collection, records, expected_version=None) -> str:
        _check_collection(collection)
        payload = json.dumps(list(records), indent=2, ensure_ascii=False).encode("utf-8")

        with self._locks[collection]:
            if expected_version is not None:
                raw, _ = self._read(collection)
                if self._digest(raw) != expected_version:
                    raise _stale_write(collection)

            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{collection}.",
                suffix=".tmp",
                dir=self.data_dir,
            )
            try:
                with os.fdopen(fd, "wb") as fh:
                    fh.write(payload)
                    fh.flush()
                    os.fsync(fh.fileno())
                os.replace(tmp_name, self._path(collection))
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise

        return self._digest(payload)

    def clear(self) -> None:
        for collection in COLLECTIONS:
            with self._locks[collection]:
                self._path(collection).unlink(missing_ok=True)


# ── sql ────────────────────────────────────────────────────────────────────

class SqlRecordStore(RecordStore):
    """
    Stores each collection as one CollectionSnapshot row.

    Requires an app context when no session is passed in; the default
    session is Flask-SQLAlchemy's scoped db.session. Every save commits.
    """

    def __init__(self, session=None) -> None:
        self._session = session

    @property
    def session(self):
        if self._session is not None:
            return self._session
        from secret_santa.app.extensions import db
        return db.session

    def _get_row(self, collection: str):
        from secret_santa.app.models.collection_snapshot import CollectionSnapshot

        stmt = (
            select(CollectionSnapshot)
            .where(CollectionSnapshot.name == collection)
            .execution_options(populate_existing=True)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def load_snapshot(self, collection: str) -> Snapshot:
        _check_collection(collection)
        row = self._get_row(collection)
        if row is None:
            return Snapshot(records=[], version="0")
        return Snapshot(records=copy.deepcopy(row.records), version=str(row.version))

    def save(self, collection, records, expected_version=None) -> str:
        from secret_santa.app.models.collection_snapshot import CollectionSnapshot

        _check_collection(collection)
        session = self.session
        records = copy.deepcopy(list(records))

        try:
            row = self._get_row(collection)
            if row is None:
                if expected_version not in (None, "0"):
                    raise _stale_write(collection)
                session.add(CollectionSnapshot(name=collection, version=1, records=records))
                new_version = 1
            elif expected_version is None:
                new_version = row.version + 1
                row.records = records
                row.version = new_version
            else:
                expected = int(expected_version)
                result = session.execute(
                    update(CollectionSnapshot)
                    .where(
                        CollectionSnapshot.name == collection,
                        CollectionSnapshot.version == expected,
                    )
                    .values(records=records, version=expected + 1)
                )
                if result.rowcount != 1:
                    raise _stale_write(collection)
                new_version = expected + 1
            session.commit()
        except IntegrityError:
            # Another writer inserted the first row for this collection.
            session.rollback()
            raise _stale_write(collection)
        except AppError:
            session.rollback()
            raise

        return str(new_version)

    def clear(self) -> None:
        from secret_santa.app.models.collection_snapshot import CollectionSnapshot

        self.session.query(CollectionSnapshot).delete()
        self.session.commit()


# ── factory ────────────────────────────────────────────────────────────────

def create_record_store(config) -> RecordStore:
    """Builds the backend named by config["RECORD_STORE_BACKEND"]."""
    backend = config.get("RECORD_STORE_BACKEND", "json")
    if backend == "json":
        return JsonFileRecordStore(config["DATA_DIR"])
    if backend == "sql":
        return SqlRecordStore()
    if backend == "memory":
        return MemoryRecordStore()
    raise ValueError(f"Unknown RECORD_STORE_BACKEND {backend!r}.")


def current_record_store() -> RecordStore:
    """The RecordStore attached to the running Flask app."""
    from flask import current_app
    return current_app.extensions["record_store"]
