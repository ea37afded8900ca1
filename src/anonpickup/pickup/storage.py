"""Ledger storage for package records and the nullifier set.

Two backends implement ``LedgerStore``: an in-process store guarded by a
lock, and a SQLite store where the nullifier table's primary key enforces
uniqueness. ``commit_pickup`` records a nullifier and the ``PICKED_UP``
transition in a single transaction on both.
"""

import logging
import sqlite3
import threading
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional

from ..crypto.field import FieldElement
from ..errors import (
    InvalidStateError,
    NullifierReusedError,
    PackageNotFoundError,
    StorageError,
)
from .package import PackageRecord, PackageStatus

MEMORY_DATABASE = ":memory:"


class LedgerStore(ABC):
    """Durable home of package records and used nullifiers."""

    @abstractmethod
    def insert_package(self, record: PackageRecord) -> None:
        """Store a new record; ``InvalidStateError`` if the id exists."""

    @abstractmethod
    def get_package(self, package_id: str) -> Optional[PackageRecord]:
        """Return a copy of the record, or None."""

    @abstractmethod
    def save_package(self, record: PackageRecord, expected_status: PackageStatus) -> None:
        """Replace a record whose stored status is still ``expected_status``."""

    @abstractmethod
    def list_packages(self, status: Optional[PackageStatus] = None) -> List[PackageRecord]:
        """Records ordered by creation time, optionally filtered by status."""

    @abstractmethod
    def nullifier_exists(self, nullifier: FieldElement) -> bool:
        """Check whether a nullifier has been recorded."""

    @abstractmethod
    def consume_nullifier(self, nullifier: FieldElement, package_id: str) -> bool:
        """Insert a nullifier; False if it was already present."""

    @abstractmethod
    def commit_pickup(self, record: PackageRecord, nullifier: FieldElement) -> None:
        """Record ``nullifier`` and save ``record`` atomically.

        Raises ``NullifierReusedError`` if the nullifier is known and
        ``InvalidStateError`` if the stored record left ``STORE_COMMITTED``.
        Nothing is written in either case.
        """

    @abstractmethod
    def count_nullifiers(self) -> int:
        """Number of recorded nullifiers."""

    def close(self) -> None:
        """Release resources."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class InMemoryLedgerStore(LedgerStore):
    """Ledger kept in process memory."""

    def __init__(self):
        self._packages: Dict[str, PackageRecord] = {}
        self._nullifiers: Dict[int, str] = {}
        self._lock = threading.RLock()

    def insert_package(self, record: PackageRecord) -> None:
        with self._lock:
            if record.package_id in self._packages:
                raise InvalidStateError(
                    f"Package {record.package_id} already registered",
                    current_state=self._packages[record.package_id].status.value,
                )
            self._packages[record.package_id] = record.copy()

    def get_package(self, package_id: str) -> Optional[PackageRecord]:
        with self._lock:
            record = self._packages.get(package_id)
            return record.copy() if record is not None else None

    def save_package(self, record: PackageRecord, expected_status: PackageStatus) -> None:
        with self._lock:
            self._check_status(record.package_id, expected_status)
            self._packages[record.package_id] = record.copy()

    def list_packages(self, status: Optional[PackageStatus] = None) -> List[PackageRecord]:
        with self._lock:
            records = [
                r.copy() for r in self._packages.values() if status is None or r.status is status
            ]
        return sorted(records, key=lambda r: (r.created_at, r.package_id))

    def nullifier_exists(self, nullifier: FieldElement) -> bool:
        with self._lock:
            return int(nullifier) in self._nullifiers

    def consume_nullifier(self, nullifier: FieldElement, package_id: str) -> bool:
        with self._lock:
            if int(nullifier) in self._nullifiers:
                return False
            self._nullifiers[int(nullifier)] = package_id
            return True

    def commit_pickup(self, record: PackageRecord, nullifier: FieldElement) -> None:
        with self._lock:
            self._check_status(record.package_id, PackageStatus.STORE_COMMITTED)
            if not self.consume_nullifier(nullifier, record.package_id):
                raise NullifierReusedError("Nullifier already used")
            self._packages[record.package_id] = record.copy()

    def count_nullifiers(self) -> int:
        with self._lock:
            return len(self._nullifiers)

    def _check_status(self, package_id: str, expected_status: PackageStatus) -> None:
        current = self._packages.get(package_id)
        if current is None:
            raise PackageNotFoundError(f"Package {package_id} not found")
        if current.status is not expected_status:
            raise InvalidStateError(
                f"Package {package_id} is {current.status.value}, expected {expected_status.value}",
                current_state=current.status.value,
            )


_COLUMNS = (
    "package_id",
    "buyer_commitment",
    "seller_commitment",
    "store_commitment",
    "store_address",
    "item_price",
    "shipping_fee",
    "min_age_required",
    "created_at",
    "expires_at",
    "status",
    "pickup_credential",
    "nullifier",
    "picked_up_at",
    "seller",
)


class SQLiteLedgerStore(LedgerStore):
    """SQLite ledger.

    One connection shared under a lock, autocommit mode with explicit
    transactions, and WAL journaling for file databases.
    """

    def __init__(self, database_path: str = MEMORY_DATABASE, connection_timeout: float = 30.0):
        self.database_path = database_path
        self._lock = threading.RLock()
        self._logger = logging.getLogger(__name__)

        if database_path != MEMORY_DATABASE:
            Path(database_path).parent.mkdir(parents=True, exist_ok=True)

        try:
            self._connection = sqlite3.connect(
                database_path,
                timeout=connection_timeout,
                isolation_level=None,  # transactions are explicit
                check_same_thread=False,
            )
            self._connection.row_factory = sqlite3.Row
            if database_path != MEMORY_DATABASE:
                self._connection.execute("PRAGMA journal_mode = WAL")
            self._connection.execute("PRAGMA synchronous = FULL")
            self._create_tables()
        except sqlite3.Error as e:
            raise StorageError(
                f"Failed to open ledger database: {e}",
                storage_type="sqlite",
                operation="connect",
                cause=e,
            ) from e

        self._logger.info(f"Connected to ledger database: {database_path}")

    def _create_tables(self) -> None:
        tables = [
            """
            CREATE TABLE IF NOT EXISTS packages (
                package_id TEXT PRIMARY KEY,
                buyer_commitment TEXT NOT NULL,
                seller_commitment TEXT NOT NULL,
                store_commitment TEXT,
                store_address TEXT NOT NULL,
                item_price INTEGER NOT NULL,
                shipping_fee INTEGER NOT NULL,
                min_age_required INTEGER NOT NULL,
                created_at REAL NOT NULL,
                expires_at REAL NOT NULL,
                status TEXT NOT NULL,
                pickup_credential TEXT,
                nullifier TEXT,
                picked_up_at REAL,
                seller TEXT
            )
            """,
            """
            CREATE TABLE IF NOT EXISTS nullifiers (
                nullifier TEXT PRIMARY KEY,
                package_id TEXT NOT NULL,
                recorded_at REAL NOT NULL
            )
            """,
            "CREATE INDEX IF NOT EXISTS idx_packages_status ON packages(status)",
        ]
        for table_sql in tables:
            self._connection.execute(table_sql)

    def _execute(self, operation: str, query: str, params=()) -> sqlite3.Cursor:
        try:
            return self._connection.execute(query, params)
        except sqlite3.Error as e:
            raise StorageError(
                f"Query failed: {e}", storage_type="sqlite", operation=operation, cause=e
            ) from e

    def insert_package(self, record: PackageRecord) -> None:
        placeholders = ", ".join(f":{c}" for c in _COLUMNS)
        query = f"INSERT INTO packages ({', '.join(_COLUMNS)}) VALUES ({placeholders})"
        with self._lock:
            try:
                self._connection.execute(query, record.to_dict())
            except sqlite3.IntegrityError:
                existing = self.get_package(record.package_id)
                raise InvalidStateError(
                    f"Package {record.package_id} already registered",
                    current_state=existing.status.value if existing else None,
                ) from None
            except sqlite3.Error as e:
                raise StorageError(
                    f"Insert failed: {e}", storage_type="sqlite", operation="insert", cause=e
                ) from e

    def get_package(self, package_id: str) -> Optional[PackageRecord]:
        with self._lock:
            row = self._execute(
                "get", "SELECT * FROM packages WHERE package_id = ?", (package_id,)
            ).fetchone()
        return PackageRecord.from_dict(dict(row)) if row is not None else None

    def save_package(self, record: PackageRecord, expected_status: PackageStatus) -> None:
        with self._lock:
            self._transaction("save", lambda: self._update(record, expected_status))

    def list_packages(self, status: Optional[PackageStatus] = None) -> List[PackageRecord]:
        with self._lock:
            if status is None:
                rows = self._execute(
                    "list", "SELECT * FROM packages ORDER BY created_at, package_id"
                ).fetchall()
            else:
                rows = self._execute(
                    "list",
                    "SELECT * FROM packages WHERE status = ? ORDER BY created_at, package_id",
                    (status.value,),
                ).fetchall()
        return [PackageRecord.from_dict(dict(row)) for row in rows]

    def nullifier_exists(self, nullifier: FieldElement) -> bool:
        with self._lock:
            row = self._execute(
                "nullifier_exists",
                "SELECT 1 FROM nullifiers WHERE nullifier = ?",
                (nullifier.to_hex(),),
            ).fetchone()
        return row is not None

    def consume_nullifier(self, nullifier: FieldElement, package_id: str) -> bool:
        with self._lock:
            try:
                self._connection.execute(
                    "INSERT INTO nullifiers (nullifier, package_id, recorded_at) VALUES (?, ?, ?)",
                    (nullifier.to_hex(), package_id, time.time()),
                )
                return True
            except sqlite3.IntegrityError:
                return False
            except sqlite3.Error as e:
                raise StorageError(
                    f"Nullifier insert failed: {e}",
                    storage_type="sqlite",
                    operation="consume_nullifier",
                    cause=e,
                ) from e

    def commit_pickup(self, record: PackageRecord, nullifier: FieldElement) -> None:
        def apply():
            self._update(record, PackageStatus.STORE_COMMITTED)
            if not self.consume_nullifier(nullifier, record.package_id):
                raise NullifierReusedError("Nullifier already used")

        with self._lock:
            self._transaction("commit_pickup", apply)

    def count_nullifiers(self) -> int:
        with self._lock:
            return self._execute("count", "SELECT COUNT(*) FROM nullifiers").fetchone()[0]

    def close(self) -> None:
        with self._lock:
            if self._connection is not None:
                try:
                    self._connection.close()
                    self._logger.info("Disconnected from ledger database")
                except sqlite3.Error as e:
                    self._logger.error(f"Error closing ledger database: {e}")
                self._connection = None

    def _update(self, record: PackageRecord, expected_status: PackageStatus) -> None:
        assignments = ", ".join(f"{c} = :{c}" for c in _COLUMNS if c != "package_id")
        params = record.to_dict()
        params["expected_status"] = expected_status.value
        cursor = self._connection.execute(
            f"UPDATE packages SET {assignments} "
            "WHERE package_id = :package_id AND status = :expected_status",
            params,
        )
        if cursor.rowcount == 1:
            return
        current = self._connection.execute(
            "SELECT status FROM packages WHERE package_id = ?", (record.package_id,)
        ).fetchone()
        if current is None:
            raise PackageNotFoundError(f"Package {record.package_id} not found")
        raise InvalidStateError(
            f"Package {record.package_id} is {current['status']}, "
            f"expected {expected_status.value}",
            current_state=current["status"],
        )

    def _transaction(self, operation: str, apply) -> None:
        try:
            self._connection.execute("BEGIN IMMEDIATE TRANSACTION")
        except sqlite3.Error as e:
            raise StorageError(
                f"Transaction failed: {e}", storage_type="sqlite", operation=operation, cause=e
            ) from e
        try:
            apply()
            self._connection.execute("COMMIT")
        except sqlite3.Error as e:
            self._connection.execute("ROLLBACK")
            raise StorageError(
                f"Transaction failed: {e}", storage_type="sqlite", operation=operation, cause=e
            ) from e
        except Exception:
            self._connection.execute("ROLLBACK")
            raise
