# backend/shopledger/config.py
from __future__ import annotations
import os

from sqlalchemy.pool import StaticPool


class Config:
    # The whole ledger lives in one in-memory SQLite connection; durability
    # comes from the snapshot slot below, not from the database file.
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SQLALCHEMY_ENGINE_OPTIONS = {
        "poolclass": StaticPool,
        "connect_args": {"check_same_thread": False},
    }
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Durable snapshot slot: one file per deployment, overwritten on save
    SNAPSHOT_DIR = os.environ.get("SNAPSHOT_DIR", "instance")
    SNAPSHOT_KEY = os.environ.get("SNAPSHOT_KEY", "pos_ledger_db")
    SNAPSHOT_RETRY_ATTEMPTS = int(os.environ.get("SNAPSHOT_RETRY_ATTEMPTS", "3"))
    SNAPSHOT_RETRY_BACKOFF = float(os.environ.get("SNAPSHOT_RETRY_BACKOFF", "0.1"))

    DEFAULT_PAYMENT_METHOD = os.environ.get("DEFAULT_PAYMENT_METHOD", "cash")

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


class TestConfig(Config):
    TESTING = True
    # conftest hands in a MemorySnapshotSlot, so nothing touches disk
    SNAPSHOT_DIR = None
    SNAPSHOT_RETRY_ATTEMPTS = 2
    SNAPSHOT_RETRY_BACKOFF = 0.0
