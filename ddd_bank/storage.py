"""
Storage Module

Key/value persistence for ledger records. Each table maps a record id to
a JSON document; balances travel as decimal strings so no float ever
touches money. InMemoryStorage backs the tests, SQLiteStorage the
running service.
"""

from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional, Any, Tuple, Union
from decimal import Decimal
from datetime import date, datetime, timezone
from enum import Enum
import sqlite3
import json
import threading
from dataclasses import dataclass, fields
from pathlib import Path
from contextlib import contextmanager


# (table, record_id, data); data None means delete
BatchOperation = Tuple[str, str, Optional[Dict[str, Any]]]


def _copy(data: Dict[str, Any]) -> Dict[str, Any]:
    return json.loads(json.dumps(data, default=str))


@dataclass
class StorageRecord:
    """Common fields of clients, accounts and accesses"""
    id: str
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        """Flatten to JSON-friendly values"""
        result = {f.name: getattr(self, f.name) for f in fields(self)}
        for key, value in result.items():
            if isinstance(value, (datetime, date)):
                result[key] = value.isoformat()
            elif isinstance(value, Decimal):
                result[key] = str(value)
            elif isinstance(value, Enum):
                result[key] = value.value
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StorageRecord':
        data = dict(data)
        for key in ('created_at', 'updated_at'):
            if isinstance(data.get(key), str):
                data[key] = datetime.fromisoformat(data[key])
        return cls(**data)


def matches(record: Dict[str, Any], filters: Dict[str, Any]) -> bool:
    """True if every filter key is present in the record with an equal value"""
    return all(key in record and record[key] == value for key, value in filters.items())


class StorageInterface(ABC):
    """Operations the repository and unit of work need from a backend"""

    @abstractmethod
    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Insert or replace one record"""
        pass

    @abstractmethod
    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Return a copy of one record, or None"""
        pass

    @abstractmethod
    def load_all(self, table: str) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    def delete(self, table: str, record_id: str) -> bool:
        """Remove one record; False if it was not there"""
        pass

    @abstractmethod
    def exists(self, table: str, record_id: str) -> bool:
        pass

    @abstractmethod
    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Records whose fields equal all given filter values"""
        pass

    @abstractmethod
    def close(self) -> None:
        pass

    # Backends without real transactions keep these no-ops

    def begin_transaction(self) -> None:
        pass

    def commit(self) -> None:
        pass

    def rollback(self) -> None:
        pass

    @contextmanager
    def atomic(self):
        """Run the block in one backend transaction, rolled back if it raises"""
        self.begin_transaction()
        try:
            yield
            self.commit()
        except Exception:
            self.rollback()
            raise

    def apply_batch(self, operations: Iterable[BatchOperation]) -> None:
        """
        Apply the saves and deletes of a committed unit of work

        Readers must observe either none of the batch or all of it.
        """
        with self.atomic():
            for table, record_id, data in operations:
                if data is None:
                    self.delete(table, record_id)
                else:
                    self.save(table, record_id, data)


class InMemoryStorage(StorageInterface):
    """Dict-of-dicts backend; records go in and come out as copies"""

    def __init__(self):
        self._data: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = threading.RLock()

    def _rows(self, table: str) -> Dict[str, Dict[str, Any]]:
        return self._data.setdefault(table, {})

    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        with self._lock:
            self._rows(table)[record_id] = _copy(data)

    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            record = self._rows(table).get(record_id)
            return _copy(record) if record is not None else None

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        return self.find(table, {})

    def delete(self, table: str, record_id: str) -> bool:
        with self._lock:
            return self._rows(table).pop(record_id, None) is not None

    def exists(self, table: str, record_id: str) -> bool:
        with self._lock:
            return record_id in self._rows(table)

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        with self._lock:
            return [_copy(record) for record in self._rows(table).values() if matches(record, filters)]

    def close(self) -> None:
        pass

    def apply_batch(self, operations: Iterable[BatchOperation]) -> None:
        """Swap in the whole batch while holding the lock once"""
        # Copy first: a record that fails to serialize must not leave half a batch behind
        prepared = [
            (table, record_id, None if data is None else _copy(data))
            for table, record_id, data in operations
        ]
        with self._lock:
            for table, record_id, data in prepared:
                if data is None:
                    self._rows(table).pop(record_id, None)
                else:
                    self._rows(table)[record_id] = data


class SQLiteStorage(StorageInterface):
    """
    One SQLite table per record type: id, JSON document and timestamps

    A single connection is shared by all threads and guarded by an RLock.
    Writes outside atomic() commit immediately.
    """

    def __init__(self, db_path: Union[str, Path] = ":memory:"):
        self.db_path = str(db_path)
        self._connection = sqlite3.connect(self.db_path, check_same_thread=False, isolation_level='DEFERRED')
        self._connection.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._in_transaction = False
        self._tables = set()

        if self.db_path != ":memory:":
            with self._lock:
                self._connection.execute("PRAGMA journal_mode = WAL")
                self._connection.execute("PRAGMA synchronous = NORMAL")
                self._connection.commit()

    def _ensure_table(self, table: str) -> None:
        with self._lock:
            if table in self._tables:
                return
            self._connection.execute(f"""
                CREATE TABLE IF NOT EXISTS {table} (
                    id TEXT PRIMARY KEY,
                    data TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            self._connection.execute(f"CREATE INDEX IF NOT EXISTS idx_{table}_created_at ON {table}(created_at)")
            self._connection.commit()
            self._tables.add(table)

    def _query(self, table: str, sql: str, params: Tuple = ()) -> sqlite3.Cursor:
        with self._lock:
            self._ensure_table(table)
            return self._connection.execute(sql, params)

    def _write(self, table: str, sql: str, params: Tuple) -> sqlite3.Cursor:
        with self._lock:
            cursor = self._query(table, sql, params)
            if not self._in_transaction:
                self._connection.commit()
            return cursor

    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        now = datetime.now(timezone.utc).isoformat()
        # Replacing a row keeps its original created_at
        self._write(table, f"""
            INSERT OR REPLACE INTO {table} (id, data, created_at, updated_at)
            VALUES (?, ?, COALESCE((SELECT created_at FROM {table} WHERE id = ?), ?), ?)
        """, (record_id, json.dumps(data, default=str), record_id, now, now))

    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            row = self._query(table, f"SELECT data FROM {table} WHERE id = ?", (record_id,)).fetchone()
        return json.loads(row['data']) if row else None

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """All records, oldest first"""
        with self._lock:
            rows = self._query(table, f"SELECT data FROM {table} ORDER BY created_at").fetchall()
        return [json.loads(row['data']) for row in rows]

    def delete(self, table: str, record_id: str) -> bool:
        return self._write(table, f"DELETE FROM {table} WHERE id = ?", (record_id,)).rowcount > 0

    def exists(self, table: str, record_id: str) -> bool:
        with self._lock:
            cursor = self._query(table, f"SELECT 1 FROM {table} WHERE id = ? LIMIT 1", (record_id,))
            return cursor.fetchone() is not None

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        return [record for record in self.load_all(table) if matches(record, filters)]

    def begin_transaction(self) -> None:
        # The DEFERRED connection opens the SQL transaction on the first write
        with self._lock:
            self._in_transaction = True

    def commit(self) -> None:
        with self._lock:
            if self._in_transaction:
                self._connection.commit()
                self._in_transaction = False

    def rollback(self) -> None:
        with self._lock:
            if self._in_transaction:
                self._connection.rollback()
                self._in_transaction = False

    def apply_batch(self, operations: Iterable[BatchOperation]) -> None:
        """Write the batch in one SQLite transaction under the connection lock"""
        operations = list(operations)
        with self._lock:
            # CREATE TABLE commits on its own, so it must run before the transaction opens
            for table in {table for table, _, _ in operations}:
                self._ensure_table(table)
            super().apply_batch(operations)

    def close(self) -> None:
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None


def create_storage(database_url: str) -> StorageInterface:
    """
    Pick a backend for a database URL

    Args:
        database_url: "memory://" (or empty) for InMemoryStorage,
            "sqlite:///<path>" for a file and "sqlite://" for an
            in-process SQLite database
    """
    if database_url in ("", "memory://"):
        return InMemoryStorage()
    if database_url.startswith("sqlite:///"):
        return SQLiteStorage(database_url[len("sqlite:///"):] or ":memory:")
    if database_url == "sqlite://":
        return SQLiteStorage(":memory:")
    raise ValueError(f"Unsupported database URL: {database_url}")
