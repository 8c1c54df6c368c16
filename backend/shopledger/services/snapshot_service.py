# Overview: Durable snapshot persistence for the embedded store; slot I/O, retries and backup verification.

"""
Snapshot persistence

The whole SQLite store is serialized to one byte blob and written to a
single keyed slot (overwrite-on-save). The blob is the unit of crash
recovery and the same bytes are what a backup download contains.

Invariants:
- A snapshot is only ever written after the commit it describes.
- A failed write never unwinds the commit; it is logged, kept as
  `last_error`, flagged `pending` and retried on the next commit.
- A blob is only swapped into the live store after it has been fully
  loaded and verified in a scratch database.
"""

from __future__ import annotations

import logging
import os
import sqlite3
import tempfile
import time
from pathlib import Path

from sqlalchemy import create_engine, inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from ..errors import RestoreError, SnapshotPersistError

logger = logging.getLogger(__name__)

SQLITE_HEADER = b"SQLite format 3\x00"


class SnapshotSlot:
    """A host-provided durable key-value slot holding exactly one blob."""

    key: str

    def read(self) -> bytes | None:
        raise NotImplementedError

    def write(self, blob: bytes) -> None:
        """Overwrite the slot. Raises OSError on failure."""
        raise NotImplementedError


class FileSnapshotSlot(SnapshotSlot):
    """Slot backed by `<directory>/<key>.sqlite`, replaced atomically on save."""

    def __init__(self, directory: str | os.PathLike, key: str):
        self.directory = Path(directory)
        self.key = key

    @property
    def path(self) -> Path:
        return self.directory / f"{self.key}.sqlite"

    def read(self) -> bytes | None:
        try:
            return self.path.read_bytes()
        except FileNotFoundError:
            return None

    def write(self, blob: bytes) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{self.key}-", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(blob)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self.path)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise


class MemorySnapshotSlot(SnapshotSlot):
    """In-process slot for tests and throwaway terminals."""

    def __init__(self, blob: bytes | None = None, key: str = "memory"):
        self.key = key
        self.blob = blob
        self.writes = 0

    def read(self) -> bytes | None:
        return self.blob

    def write(self, blob: bytes) -> None:
        self.blob = bytes(blob)
        self.writes += 1


def build_slot(config) -> SnapshotSlot:
    directory = config.get("SNAPSHOT_DIR")
    if not directory:
        return MemorySnapshotSlot(key=config.get("SNAPSHOT_KEY", "memory"))
    return FileSnapshotSlot(directory, config["SNAPSHOT_KEY"])


class SnapshotManager:
    """Writes serialized store blobs to a slot with retry and failure tracking."""

    def __init__(self, slot: SnapshotSlot, *, attempts: int = 3, backoff_base: float = 0.1):
        self.slot = slot
        self.attempts = max(1, attempts)
        self.backoff_base = backoff_base
        self.pending = False
        self.last_error: SnapshotPersistError | None = None

    def load(self) -> bytes | None:
        return self.slot.read()

    def persist(self, blob: bytes) -> SnapshotPersistError | None:
        """
        Write the blob, retrying with exponential backoff.

        Returns None on success, or the SnapshotPersistError describing the
        failure (also kept on `last_error`). Never raises for I/O failures.
        """
        last_exc: OSError | None = None
        for attempt in range(self.attempts):
            try:
                self.slot.write(blob)
            except OSError as exc:
                last_exc = exc
                logger.warning(
                    "Snapshot write to slot %r failed (attempt %d/%d): %s",
                    self.slot.key, attempt + 1, self.attempts, exc,
                )
                if attempt < self.attempts - 1 and self.backoff_base:
                    time.sleep(self.backoff_base * (2 ** attempt))
                continue

            if self.pending:
                logger.info("Pending snapshot for slot %r written", self.slot.key)
            self.pending = False
            self.last_error = None
            return None

        error = SnapshotPersistError(
            "Snapshot could not be persisted; the committed data is only in memory",
            details={"slot": self.slot.key, "attempts": self.attempts, "reason": str(last_exc)},
        )
        self.pending = True
        self.last_error = error
        logger.error("Snapshot persist failed for slot %r after %d attempts: %s",
                     self.slot.key, self.attempts, last_exc)
        return error


def verify_snapshot(blob: bytes, metadata) -> None:
    """
    Fully load a blob into a scratch database and check it is a ledger store.

    Raises RestoreError if the bytes are not SQLite, fail the integrity
    check, or lack any table/column the current models need.
    """
    if not isinstance(blob, (bytes, bytearray)) or not blob:
        raise RestoreError("Backup file is empty")
    if not bytes(blob[:16]) == SQLITE_HEADER:
        raise RestoreError("Backup file is not a SQLite database")

    engine = create_engine("sqlite://", poolclass=StaticPool)
    try:
        with engine.connect() as conn:
            conn.connection.driver_connection.deserialize(bytes(blob))
            status = conn.exec_driver_sql("PRAGMA integrity_check").scalar()
            if status != "ok":
                raise RestoreError("Backup file failed the integrity check", details={"integrity_check": status})

            inspector = inspect(conn)
            tables = set(inspector.get_table_names())
            missing_tables = sorted(t.name for t in metadata.sorted_tables if t.name not in tables)
            if missing_tables:
                raise RestoreError("Backup file is missing ledger tables", details={"missing_tables": missing_tables})

            missing_columns = {}
            for table in metadata.sorted_tables:
                present = {c["name"] for c in inspector.get_columns(table.name)}
                absent = sorted(c.name for c in table.columns if c.name not in present)
                if absent:
                    missing_columns[table.name] = absent
            if missing_columns:
                raise RestoreError("Backup file has an incompatible schema", details={"missing_columns": missing_columns})
    except (sqlite3.Error, SQLAlchemyError, ValueError, OverflowError) as exc:
        raise RestoreError("Backup file is unreadable or corrupted", details={"reason": str(exc)}) from exc
    finally:
        engine.dispose()
