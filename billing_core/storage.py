"""
Storage Backend Module

Records are JSON documents keyed by id, grouped in tables. Contracts,
payment events and sent messages are the tables the billing engine uses;
the fields they are looked up by are kept in indexed columns by the SQLite
backend. Decimal values are stored as strings.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Any, Set, Tuple, Union
from decimal import Decimal
from datetime import datetime, timezone
import sqlite3
import json
import threading
from dataclasses import dataclass
from pathlib import Path
from contextlib import contextmanager


# Fields each table is queried by
INDEXED_FIELDS: Dict[str, Tuple[str, ...]] = {
    "contracts": ("kind", "status"),
    "payment_events": ("contract_id",),
    "sent_messages": ("contract_id", "sent_on"),
}


@dataclass
class StorageRecord:
    """Base class for all stored records"""
    id: str
    created_at: datetime
    updated_at: datetime

    def base_dict(self) -> Dict[str, Any]:
        """Identity and timestamp fields in storage form"""
        return {
            'id': self.id,
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat()
        }


def decimal_to_str(value: Optional[Decimal]) -> Optional[str]:
    """Store Decimals as strings so no precision is lost in JSON"""
    if value is None:
        return None
    return str(value)


def _copy(data: Dict[str, Any]) -> Dict[str, Any]:
    return json.loads(json.dumps(data, default=str))


def _matches(record: Dict[str, Any], filters: Dict[str, Any]) -> bool:
    return all(key in record and record[key] == value for key, value in filters.items())


class StorageInterface(ABC):
    """
    Document store used by the billing managers

    Loaded records are detached copies; mutating them never changes what is
    stored until they are saved again.
    """

    @abstractmethod
    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Insert or replace a record"""

    @abstractmethod
    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Record by id, None when missing"""

    @abstractmethod
    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Every record of a table in insertion order"""

    @abstractmethod
    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Records whose fields equal every filter value"""

    @abstractmethod
    def delete(self, table: str, record_id: str) -> bool:
        """Remove a record; False when it did not exist"""

    @abstractmethod
    def close(self) -> None:
        pass

    def exists(self, table: str, record_id: str) -> bool:
        return self.load(table, record_id) is not None

    def count(self, table: str) -> int:
        return len(self.load_all(table))

    def delete_where(self, table: str, filters: Dict[str, Any]) -> int:
        """
        Remove every record matching the filters

        Returns:
            Number of records removed
        """
        removed = 0
        for record in self.find(table, filters):
            if self.delete(table, record['id']):
                removed += 1
        return removed

    def begin_transaction(self) -> None:
        pass

    def commit(self) -> None:
        pass

    def rollback(self) -> None:
        pass

    @contextmanager
    def atomic(self):
        """
        Group writes so they are applied together or not at all

        Blocks may nest; inner blocks join the outermost one, which alone
        commits or rolls back.
        """
        self.begin_transaction()
        try:
            yield
        except BaseException:
            self.rollback()
            raise
        self.commit()


class InMemoryStorage(StorageInterface):
    """Dictionary-backed storage for tests and the development server"""

    def __init__(self):
        self._tables: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = threading.RLock()
        self._snapshot: Optional[Dict[str, Dict[str, Dict[str, Any]]]] = None
        self._depth = 0

    def _table(self, table: str) -> Dict[str, Dict[str, Any]]:
        return self._tables.setdefault(table, {})

    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        with self._lock:
            self._table(table)[record_id] = _copy(data)

    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            record = self._table(table).get(record_id)
            return _copy(record) if record is not None else None

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        with self._lock:
            return [_copy(record) for record in self._table(table).values()]

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        with self._lock:
            return [_copy(record) for record in self._table(table).values()
                    if _matches(record, filters)]

    def delete(self, table: str, record_id: str) -> bool:
        with self._lock:
            return self._table(table).pop(record_id, None) is not None

    def begin_transaction(self) -> None:
        self._lock.acquire()
        if self._depth == 0:
            self._snapshot = _copy(self._tables)
        self._depth += 1

    def commit(self) -> None:
        self._depth -= 1
        if self._depth == 0:
            self._snapshot = None
        self._lock.release()

    def rollback(self) -> None:
        self._depth -= 1
        if self._depth == 0 and self._snapshot is not None:
            self._tables = self._snapshot
            self._snapshot = None
        self._lock.release()

    def close(self) -> None:
        pass


class SQLiteStorage(StorageInterface):
    """
    SQLite storage

    Each table holds the JSON document plus one column per indexed field,
    so contract, payment and message lookups filter in SQL.
    """

    def __init__(self, db_path: Union[str, Path] = ":memory:"):
        self.db_path = str(db_path)
        self._connection = sqlite3.connect(self.db_path, check_same_thread=False,
                                           isolation_level='DEFERRED')
        self._connection.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._depth = 0
        self._known_tables: Set[str] = set()

        if self.db_path != ":memory:":
            with self._lock:
                self._connection.execute("PRAGMA journal_mode = WAL")
                self._connection.execute("PRAGMA synchronous = NORMAL")
                self._connection.commit()

    def _columns(self, table: str) -> Tuple[str, ...]:
        return INDEXED_FIELDS.get(table, ())

    def _ensure_table(self, table: str) -> None:
        if table in self._known_tables:
            return
        columns = "".join(f", {name} TEXT" for name in self._columns(table))
        self._connection.execute(f"""
            CREATE TABLE IF NOT EXISTS {table} (
                id TEXT PRIMARY KEY,
                data TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL{columns}
            )
        """)
        for name in self._columns(table):
            self._connection.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{table}_{name} ON {table}({name})")
        self._known_tables.add(table)
        self._autocommit()

    def _autocommit(self) -> None:
        if self._depth == 0:
            self._connection.commit()

    def _split_filters(self, table: str, filters: Dict[str, Any]):
        """Filters answerable in SQL, and the ones checked on the documents"""
        indexed = {k: v for k, v in filters.items() if k in self._columns(table)}
        rest = {k: v for k, v in filters.items() if k not in indexed}
        return indexed, rest

    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        with self._lock:
            self._ensure_table(table)
            now = datetime.now(timezone.utc).isoformat()
            columns = self._columns(table)
            names = "".join(f", {name}" for name in columns)
            marks = ", ?" * len(columns)
            values = tuple(None if data.get(name) is None else str(data[name]) for name in columns)

            self._connection.execute(f"""
                INSERT OR REPLACE INTO {table} (id, data, created_at, updated_at{names})
                VALUES (?, ?, COALESCE((SELECT created_at FROM {table} WHERE id = ?), ?), ?{marks})
            """, (record_id, json.dumps(data, default=str), record_id, now, now) + values)
            self._autocommit()

    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            self._ensure_table(table)
            row = self._connection.execute(
                f"SELECT data FROM {table} WHERE id = ?", (record_id,)).fetchone()
            return json.loads(row['data']) if row else None

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        return self.find(table, {})

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        indexed, rest = self._split_filters(table, filters)
        where = " AND ".join(f"{name} = ?" for name in indexed) or "1 = 1"
        with self._lock:
            self._ensure_table(table)
            rows = self._connection.execute(
                f"SELECT data FROM {table} WHERE {where} ORDER BY created_at, rowid",
                tuple(str(v) for v in indexed.values())
            ).fetchall()
        records = [json.loads(row['data']) for row in rows]
        return [r for r in records if _matches(r, rest)] if rest else records

    def delete(self, table: str, record_id: str) -> bool:
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(f"DELETE FROM {table} WHERE id = ?", (record_id,))
            self._autocommit()
            return cursor.rowcount > 0

    def delete_where(self, table: str, filters: Dict[str, Any]) -> int:
        indexed, rest = self._split_filters(table, filters)
        if rest or not indexed:
            return super().delete_where(table, filters)
        where = " AND ".join(f"{name} = ?" for name in indexed)
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(f"DELETE FROM {table} WHERE {where}",
                                              tuple(str(v) for v in indexed.values()))
            self._autocommit()
            return cursor.rowcount

    def exists(self, table: str, record_id: str) -> bool:
        with self._lock:
            self._ensure_table(table)
            row = self._connection.execute(
                f"SELECT 1 FROM {table} WHERE id = ? LIMIT 1", (record_id,)).fetchone()
            return row is not None

    def count(self, table: str) -> int:
        with self._lock:
            self._ensure_table(table)
            return self._connection.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]

    def begin_transaction(self) -> None:
        self._lock.acquire()
        self._depth += 1

    def commit(self) -> None:
        self._depth -= 1
        if self._depth == 0:
            self._connection.commit()
        self._lock.release()

    def rollback(self) -> None:
        self._depth -= 1
        if self._depth == 0:
            self._connection.rollback()
            # Tables created inside the transaction are gone too
            self._known_tables.clear()
        self._lock.release()

    def close(self) -> None:
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None
