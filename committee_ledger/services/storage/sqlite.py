"""
SQLite Entity Store

DESIGN DECISION: SQLite is the default durable backend because:
1. It is an embedded, single-file store - no server, matching a local-first app
2. It has real transactions (BEGIN IMMEDIATE / COMMIT / ROLLBACK)
3. It ships with Python

Each collection is one table. The record itself is kept as a JSON body;
the columns used by the secondary indexes (committee_id, payer_id,
payer_type) are copied out of the record on every write so lookups can
use a real SQL index.

Blocking sqlite3 calls run in a worker thread via asyncio.to_thread. One
connection is shared and guarded by an asyncio.Lock; the ledger has a
single writer.
"""

import asyncio
import json
import sqlite3
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterable, Optional

import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from committee_ledger.services.storage.interface import (
    ALL_COLLECTIONS,
    Collection,
    EntityStore,
    Index,
    LedgerError,
    NotFoundError,
    Record,
    StorageError,
    StorageTransaction,
    T,
    index_key_for,
    require_index,
)


logger = structlog.get_logger(__name__)

# SQL columns backing each index
INDEX_COLUMNS: dict[Index, tuple[str, ...]] = {
    Index.COMMITTEE_ID: ("committee_id",),
    Index.PAYER: ("payer_id", "payer_type"),
}


def _schema_statements() -> list[str]:
    statements = []
    for collection in ALL_COLLECTIONS:
        table = collection.value
        statements.append(
            f"""
            CREATE TABLE IF NOT EXISTS {table} (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                committee_id INTEGER,
                payer_id INTEGER,
                payer_type TEXT,
                body TEXT NOT NULL
            )
            """
        )
        statements.append(
            f"CREATE INDEX IF NOT EXISTS ix_{table}_committee ON {table} (committee_id)"
        )
    statements.append(
        "CREATE INDEX IF NOT EXISTS ix_payments_payer ON payments (payer_id, payer_type)"
    )
    return statements


def _index_columns(record: Record) -> tuple[Optional[int], Optional[int], Optional[str]]:
    return (
        record.get("committeeId"),
        record.get("payerId"),
        record.get("payerType"),
    )


def _body(record: Record) -> str:
    return json.dumps({k: v for k, v in record.items() if k != "id"})


def _row_to_record(row: sqlite3.Row) -> Record:
    record = json.loads(row["body"])
    return {"id": row["id"], **record}


class _SqliteTransaction(StorageTransaction):

    def __init__(self, store: "SqliteEntityStore", collections: Iterable[Collection]):
        super().__init__(collections)
        self._store = store

    async def create(self, collection: Collection, record: Record) -> int:
        table = self._check_scope(collection).value
        committee_id, payer_id, payer_type = _index_columns(record)
        record_id = record.get("id")
        try:
            cursor = await self._store._execute(
                f"INSERT INTO {table} (id, committee_id, payer_id, payer_type, body) "
                "VALUES (?, ?, ?, ?, ?)",
                (record_id, committee_id, payer_id, payer_type, _body(record)),
            )
        except sqlite3.IntegrityError as e:
            raise StorageError(f"Duplicate id {record_id} in {table}") from e
        return cursor.lastrowid

    async def replace(self, collection: Collection, record: Record) -> None:
        table = self._check_scope(collection).value
        committee_id, payer_id, payer_type = _index_columns(record)
        cursor = await self._store._execute(
            f"UPDATE {table} SET committee_id = ?, payer_id = ?, payer_type = ?, body = ? "
            "WHERE id = ?",
            (committee_id, payer_id, payer_type, _body(record), record.get("id")),
        )
        if cursor.rowcount == 0:
            raise NotFoundError(f"No record {record.get('id')} in {table}")

    async def delete(self, collection: Collection, record_id: int) -> None:
        table = self._check_scope(collection).value
        await self._store._execute(f"DELETE FROM {table} WHERE id = ?", (record_id,))

    async def get(self, collection: Collection, record_id: int) -> Optional[Record]:
        table = self._check_scope(collection).value
        rows = await self._store._fetch_all(
            f"SELECT id, body FROM {table} WHERE id = ?", (record_id,)
        )
        return _row_to_record(rows[0]) if rows else None

    async def get_all(self, collection: Collection) -> list[Record]:
        table = self._check_scope(collection).value
        rows = await self._store._fetch_all(f"SELECT id, body FROM {table} ORDER BY id")
        return [_row_to_record(row) for row in rows]

    async def get_by_index(
        self,
        collection: Collection,
        index: Index,
        key: Any,
    ) -> list[Record]:
        collection = self._check_scope(collection)
        index = Index(index)
        require_index(collection, index)
        columns = INDEX_COLUMNS[index]
        where = " AND ".join(f"{column} = ?" for column in columns)
        rows = await self._store._fetch_all(
            f"SELECT id, body FROM {collection.value} WHERE {where} ORDER BY id",
            index_key_for(index, key),
        )
        return [_row_to_record(row) for row in rows]

    async def clear(self, collection: Collection) -> None:
        table = self._check_scope(collection).value
        await self._store._execute(f"DELETE FROM {table}")


class SqliteEntityStore(EntityStore):
    """
    Entity store backed by one SQLite file.

    AUTOINCREMENT keeps ids from ever being reused, even after deletes or
    a clear().
    """

    def __init__(self, database_path: str):
        self._path = database_path
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = asyncio.Lock()

    @property
    def path(self) -> str:
        return self._path

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @retry(
        retry=retry_if_exception_type(sqlite3.OperationalError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
        reraise=True,
    )
    def _connect(self) -> sqlite3.Connection:
        """
        Open the database and create the schema.

        Retries "database is locked" style failures while another
        process finishes its write.
        """
        conn = sqlite3.connect(
            str(Path(self._path).expanduser()),
            check_same_thread=False,
            isolation_level=None,
        )
        try:
            conn.row_factory = sqlite3.Row
            conn.execute("BEGIN IMMEDIATE")
            for statement in _schema_statements():
                conn.execute(statement)
            conn.execute("COMMIT")
        except sqlite3.Error:
            conn.close()
            raise
        return conn

    async def open(self) -> None:
        if self._conn is not None:
            return
        try:
            self._conn = await asyncio.to_thread(self._connect)
        except sqlite3.Error as e:
            raise StorageError(f"Failed to open ledger database {self._path}: {e}") from e
        logger.debug("sqlite_store_opened", path=self._path)

    async def close(self) -> None:
        if self._conn is None:
            return
        async with self._lock:
            conn, self._conn = self._conn, None
            await asyncio.to_thread(conn.close)
        logger.debug("sqlite_store_closed", path=self._path)

    async def _execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        try:
            return await asyncio.to_thread(self._conn.execute, sql, params)
        except sqlite3.IntegrityError:
            raise
        except sqlite3.Error as e:
            raise StorageError(f"SQLite statement failed: {e}") from e

    async def _fetch_all(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        def run() -> list[sqlite3.Row]:
            return self._conn.execute(sql, params).fetchall()

        try:
            return await asyncio.to_thread(run)
        except sqlite3.Error as e:
            raise StorageError(f"SQLite query failed: {e}") from e

    async def run_transaction(
        self,
        collections: Iterable[Collection],
        body: Callable[[StorageTransaction], Awaitable[T]],
    ) -> T:
        self._require_open()
        async with self._lock:
            await self._execute("BEGIN IMMEDIATE")
            try:
                result = await body(_SqliteTransaction(self, collections))
            except LedgerError:
                await self._rollback()
                raise
            except Exception as e:
                await self._rollback()
                raise StorageError(f"Transaction failed: {e}") from e
            except BaseException:
                await self._rollback()
                raise
            try:
                await self._execute("COMMIT")
            except StorageError:
                await self._rollback()
                raise
            return result

    async def _rollback(self) -> None:
        try:
            await asyncio.to_thread(self._conn.execute, "ROLLBACK")
        except sqlite3.Error as e:
            # no transaction left to roll back (sqlite already aborted it)
            logger.warning("sqlite_rollback_failed", error=str(e), path=self._path)
