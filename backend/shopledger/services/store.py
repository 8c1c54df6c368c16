# Overview: The ledger store handle; transaction boundary, snapshot hooks and restore.

"""
LedgerStore

Explicit handle over the embedded SQLite store. Opened once by the app
factory, injected into every service call, closed at shutdown.

- transaction(): commit-or-rollback boundary. Any failure rolls back the
  whole unit; SQLAlchemy errors surface as StorageWriteError.
- After every successful commit the full store is serialized and persisted
  (best effort, see SnapshotManager).
- restore(): verify a backup in a scratch database, then swap it in; if
  anything fails the previous store is put back byte for byte.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..errors import LedgerError, RestoreError, SnapshotPersistError, StorageWriteError
from .snapshot_service import SnapshotManager, verify_snapshot

logger = logging.getLogger(__name__)


class Transaction:
    """Yielded by LedgerStore.transaction(); carries the post-commit snapshot outcome."""

    def __init__(self, session):
        self.session = session
        self.committed = False
        self.snapshot_error: SnapshotPersistError | None = None


class LedgerStore:
    def __init__(self, database, snapshots: SnapshotManager):
        self._db = database
        self.snapshots = snapshots
        self.engine = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self, engine) -> "LedgerStore":
        """
        Rehydrate from the last snapshot if there is one, then apply the
        schema (a no-op for tables that already exist).
        """
        self.engine = engine
        blob = self.snapshots.load()
        if blob:
            verify_snapshot(blob, self._db.metadata)
            self._deserialize(blob)
            logger.info("Ledger store rehydrated from slot %r (%d bytes)", self.snapshots.slot.key, len(blob))
        else:
            logger.info("No snapshot in slot %r; starting with an empty ledger", self.snapshots.slot.key)
        self._db.metadata.create_all(bind=self.engine)
        return self

    def close(self) -> None:
        if self.engine is None:
            return
        if self.snapshots.pending:
            self.persist_snapshot()
        self.engine.dispose()
        self.engine = None

    @property
    def session(self):
        return self._db.session

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @contextmanager
    def transaction(self, *, persist: bool = True):
        txn = Transaction(self.session)
        try:
            yield txn
            txn.session.commit()
        except LedgerError:
            txn.session.rollback()
            raise
        except SQLAlchemyError as exc:
            txn.session.rollback()
            logger.warning("Ledger transaction rolled back: %s", exc)
            raise StorageWriteError("Storage write failed; no changes were applied", details={"reason": str(exc)}) from exc
        except Exception:
            txn.session.rollback()
            raise

        txn.committed = True
        if persist:
            txn.snapshot_error = self.persist_snapshot()

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def serialize(self) -> bytes:
        with self.engine.connect() as conn:
            return bytes(conn.connection.driver_connection.serialize())

    def _deserialize(self, blob: bytes) -> None:
        with self.engine.connect() as conn:
            conn.connection.driver_connection.deserialize(bytes(blob))

    def persist_snapshot(self) -> SnapshotPersistError | None:
        return self.snapshots.persist(self.serialize())

    def export_backup(self) -> bytes:
        """The same bytes a snapshot write would produce, for download."""
        return self.serialize()

    def restore(self, blob: bytes) -> None:
        """
        Replace the entire store (and its durable snapshot) with a backup.

        Raises RestoreError and leaves the live store untouched when the blob
        is malformed or the swap cannot be completed.
        """
        verify_snapshot(blob, self._db.metadata)

        self.session.remove()
        previous = self.serialize()
        try:
            self._deserialize(blob)
            self._db.metadata.create_all(bind=self.engine)
        except SQLAlchemyError as exc:
            self._deserialize(previous)
            raise RestoreError("Backup could not be loaded", details={"reason": str(exc)}) from exc

        error = self.persist_snapshot()
        if error is not None:
            # Memory and slot must agree; put the old store back
            self._deserialize(previous)
            raise RestoreError(
                "Backup loaded but could not be persisted; previous data kept",
                details=error.details,
            )
        logger.info("Ledger store restored from backup (%d bytes)", len(blob))


def get_store() -> LedgerStore:
    return current_app.extensions["ledger_store"]
