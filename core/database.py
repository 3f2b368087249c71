# core/database.py
"""
Database layer for the Quill classifier store.
Handles PostgreSQL (or SQLite) access to the classifier table and owns the
transaction boundaries for checkout and checkin.
"""

import re
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import psycopg2

from core.errors import StoreError
from utils.config import get_config

DRIVER_ERRORS = (psycopg2.Error, sqlite3.Error)

SQLITE_PREFIX = 'sqlite:///'
POSTGRES_PREFIXES = ('postgresql://', 'postgres://')
IDENTIFIER_PATTERN = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')


@dataclass
class ModelRecord:
    """Raw classifier row as read at the start of an exclusive session"""
    id: int
    payload: Optional[bytes] = None
    bootstrapped: bool = False

    @property
    def has_payload(self) -> bool:
        return self.payload is not None


class StoreTransaction:
    """A manual-commit transaction on its own connection"""

    def __init__(self, conn, model_id: Optional[int] = None, operation: str = 'transaction'):
        self.conn = conn
        self.model_id = model_id
        self.operation = operation
        self.committed = False
        self.closed = False

    def execute(self, query: str, params: Tuple = ()):
        """Execute a statement inside the transaction, return the cursor"""
        cursor = self.conn.cursor()
        cursor.execute(query, params)
        return cursor

    def commit(self) -> None:
        """Commit; on failure roll back and raise StoreError"""
        try:
            self.conn.commit()
        except DRIVER_ERRORS as e:
            self.abort()
            raise StoreError(f"Commit failed for classifier {self.model_id}: {e}",
                             self.model_id, self.operation) from e
        self.committed = True

    def rollback(self) -> None:
        try:
            self.conn.rollback()
        except DRIVER_ERRORS as e:
            raise StoreError(f"Rollback failed for classifier {self.model_id}: {e}",
                             self.model_id, self.operation) from e

    def abort(self) -> None:
        """Roll back and close, used while another error is propagating"""
        if self.closed:
            return
        try:
            self.conn.rollback()
        except DRIVER_ERRORS as e:
            print(f"   ⚠️ Rollback failed for classifier {self.model_id}: {e}")
        finally:
            self.close()

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self.conn.close()

    def __enter__(self) -> 'StoreTransaction':
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        # Anything not explicitly committed is rolled back
        if self.committed:
            self.close()
        else:
            self.abort()
        return False


class ClassifierDatabase:
    """Classifier table operations over PostgreSQL or SQLite"""

    def __init__(self, connection_string: Optional[str] = None,
                 table_name: Optional[str] = None,
                 connect_timeout: Optional[float] = None):
        """
        Initialize database connection

        Args:
            connection_string: postgresql://... or sqlite:///path URL
            table_name: Classifier table name
            connect_timeout: Seconds to wait for a connection (and SQLite locks)
        """
        self.config = get_config()
        self.connection_string = connection_string or self.config.database_url
        self.table_name = table_name or self.config.table_name
        self.connect_timeout = connect_timeout if connect_timeout is not None else self.config.connect_timeout

        if not IDENTIFIER_PATTERN.match(self.table_name):
            raise ValueError(f"Invalid table name: {self.table_name!r}")

        if self.connection_string.startswith(SQLITE_PREFIX):
            self.backend = 'sqlite'
            self.sqlite_path = self.connection_string[len(SQLITE_PREFIX):]
            if not self.sqlite_path or self.sqlite_path == ':memory:':
                raise ValueError("SQLite store needs a file path; in-memory databases are per-connection")
            Path(self.sqlite_path).parent.mkdir(parents=True, exist_ok=True)
            placeholder = '?'
        elif self.connection_string.startswith(POSTGRES_PREFIXES):
            self.backend = 'postgresql'
            placeholder = '%s'
        else:
            raise ValueError(f"Unsupported database URL: {self.connection_string}")

        self.queries = self._build_queries(placeholder)
        self._test_connection()
        if self.backend == 'sqlite':
            self._enable_wal()

    def _build_queries(self, p: str) -> Dict[str, str]:
        table = self.table_name
        blob_type = 'BLOB' if self.backend == 'sqlite' else 'BYTEA'
        # SQLite holds the write lock from BEGIN IMMEDIATE instead
        row_lock = '' if self.backend == 'sqlite' else ' FOR UPDATE'
        return {
            'create_table': f"""
                CREATE TABLE IF NOT EXISTS {table} (
                    id INTEGER PRIMARY KEY,
                    payload {blob_type}
                );
            """,
            'select_payload': f"SELECT payload FROM {table} WHERE id = {p};",
            'lock_payload': f"SELECT payload FROM {table} WHERE id = {p}{row_lock};",
            'insert_bare': f"INSERT INTO {table} (id) VALUES ({p});",
            'update_payload': f"UPDATE {table} SET payload = {p} WHERE id = {p};",
            'delete': f"DELETE FROM {table} WHERE id = {p};",
            'list': f"SELECT id, LENGTH(payload) FROM {table} ORDER BY id;",
            'stats': f"""
                SELECT COUNT(*), COUNT(payload),
                       COALESCE(SUM(LENGTH(payload)), 0),
                       COALESCE(MAX(LENGTH(payload)), 0)
                FROM {table};
            """,
        }

    def _test_connection(self) -> None:
        """Test database connection"""
        version_query = "SELECT sqlite_version();" if self.backend == 'sqlite' else "SELECT version();"
        try:
            with self.get_connection(autocommit=True) as conn:
                cursor = conn.cursor()
                cursor.execute(version_query)
                version = cursor.fetchone()[0]
                print(f"✅ Connected to {self.backend}: {version}")
        except DRIVER_ERRORS as e:
            raise StoreError(f"❌ Database connection failed: {e}", operation='connect') from e

    def _enable_wal(self) -> None:
        """Switch the SQLite file to write-ahead logging so reads never wait on a writer"""
        try:
            with self.get_connection(autocommit=True) as conn:
                cursor = conn.cursor()
                cursor.execute("PRAGMA journal_mode=WAL;")
                mode = cursor.fetchone()[0]
        except DRIVER_ERRORS as e:
            raise StoreError(f"❌ Could not enable WAL journal: {e}", operation='connect') from e

        if mode.lower() != 'wal':
            raise StoreError(f"❌ SQLite refused WAL journal mode (got {mode})", operation='connect')

    def _connect(self):
        """Open a raw driver connection"""
        if self.backend == 'sqlite':
            return sqlite3.connect(self.sqlite_path, timeout=self.connect_timeout)
        return psycopg2.connect(self.connection_string, connect_timeout=int(self.connect_timeout))

    def _open(self, autocommit: bool):
        conn = self._connect()
        if self.backend == 'sqlite':
            # Transactions are opened explicitly with BEGIN IMMEDIATE
            conn.isolation_level = None
        else:
            conn.autocommit = autocommit
        return conn

    @contextmanager
    def get_connection(self, autocommit: bool = False):
        """Get database connection with automatic cleanup"""
        conn = None
        try:
            conn = self._open(autocommit)
            yield conn
        except Exception:
            if conn is not None and not autocommit:
                conn.rollback()
            raise
        finally:
            if conn is not None:
                conn.close()

    def create_tables(self) -> None:
        """Create the classifier table"""
        try:
            with self.get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute(self.queries['create_table'])
                conn.commit()
        except DRIVER_ERRORS as e:
            raise StoreError(f"Could not create table {self.table_name}: {e}", operation='create_tables') from e

        print(f"✅ Classifier table '{self.table_name}' ready")

    # Exclusive sessions
    def begin_transaction(self, model_id: Optional[int] = None,
                          operation: str = 'transaction') -> StoreTransaction:
        """
        Open a new manual-commit transaction

        Args:
            model_id: Model identity the transaction is for (error context)
            operation: Operation name (error context)

        Returns:
            Open transaction, to be committed or used as a context manager
        """
        try:
            conn = self._open(autocommit=False)
        except DRIVER_ERRORS as e:
            raise StoreError(f"Could not connect to classifier store: {e}", model_id, operation) from e

        transaction = StoreTransaction(conn, model_id, operation)

        if self.backend == 'sqlite':
            try:
                transaction.execute("BEGIN IMMEDIATE;")
            except DRIVER_ERRORS as e:
                transaction.close()
                raise StoreError(f"Could not begin transaction for classifier {model_id}: {e}",
                                 model_id, operation) from e

        return transaction

    def begin_exclusive_session(self, model_id: int) -> Tuple[ModelRecord, StoreTransaction]:
        """
        Select the classifier row inside a new transaction, inserting a bare
        row if none exists yet

        Args:
            model_id: Model identity

        Returns:
            The raw record and the still-open transaction
        """
        transaction = self.begin_transaction(model_id, 'checkout')

        try:
            row = transaction.execute(self.queries['lock_payload'], (model_id,)).fetchone()

            if row is None:
                transaction.execute(self.queries['insert_bare'], (model_id,))
                record = ModelRecord(id=model_id, bootstrapped=True)
            else:
                record = ModelRecord(id=model_id, payload=_as_bytes(row[0]))

        except DRIVER_ERRORS as e:
            transaction.abort()
            raise StoreError(f"Couldn't get trainer data for classifier {model_id}: {e}",
                             model_id, 'checkout') from e

        return record, transaction

    def commit_session(self, transaction: StoreTransaction, model_id: int, payload: bytes) -> None:
        """
        Write a new payload within the given transaction, then commit

        Args:
            transaction: Open transaction from begin_transaction()
            model_id: Model identity
            payload: Encoded payload bytes
        """
        try:
            cursor = transaction.execute(self.queries['update_payload'], (payload, model_id))
            updated = cursor.rowcount
        except DRIVER_ERRORS as e:
            transaction.abort()
            raise StoreError(f"Could not persist trainer/classifier for classifier {model_id}: {e}",
                             model_id, 'checkin') from e

        if updated == 0:
            transaction.abort()
            raise StoreError(f"No row for classifier {model_id}; it must be checked out first",
                             model_id, 'checkin')

        transaction.commit()

    # Lockless reads
    def read_snapshot(self, model_id: int) -> Optional[bytes]:
        """
        Read the committed payload without a transaction

        Args:
            model_id: Model identity

        Returns:
            Payload bytes, or None if there is no row or no payload yet
        """
        try:
            with self.get_connection(autocommit=True) as conn:
                cursor = conn.cursor()
                cursor.execute(self.queries['select_payload'], (model_id,))
                row = cursor.fetchone()
        except DRIVER_ERRORS as e:
            raise StoreError(f"Could not retrieve classifier {model_id}: {e}", model_id, 'read') from e

        if row is None:
            return None
        return _as_bytes(row[0])

    # Administration
    def list_models(self) -> List[Tuple[int, Optional[int]]]:
        """
        List classifier rows

        Returns:
            (id, payload size in bytes or None) tuples sorted by id
        """
        try:
            with self.get_connection(autocommit=True) as conn:
                cursor = conn.cursor()
                cursor.execute(self.queries['list'])
                return [(row[0], row[1]) for row in cursor.fetchall()]
        except DRIVER_ERRORS as e:
            raise StoreError(f"Could not list classifiers: {e}", operation='list') from e

    def delete_model(self, model_id: int) -> bool:
        """
        Delete a classifier row

        Returns:
            True if a row was deleted
        """
        try:
            with self.get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute(self.queries['delete'], (model_id,))
                deleted = cursor.rowcount
                conn.commit()
        except DRIVER_ERRORS as e:
            raise StoreError(f"Could not delete classifier {model_id}: {e}", model_id, 'delete') from e

        return deleted > 0

    def get_store_stats(self) -> Dict[str, Any]:
        """
        Get classifier table statistics

        Returns:
            Dictionary with row and payload statistics
        """
        try:
            with self.get_connection(autocommit=True) as conn:
                cursor = conn.cursor()
                cursor.execute(self.queries['stats'])
                total, trained, total_bytes, largest = cursor.fetchone()
        except DRIVER_ERRORS as e:
            raise StoreError(f"Could not read store statistics: {e}", operation='stats') from e

        return {
            'total_models': total,
            'trained_models': trained,
            'untrained_models': total - trained,
            'total_payload_bytes': int(total_bytes),
            'largest_payload_bytes': int(largest)
        }


def _as_bytes(value) -> Optional[bytes]:
    # psycopg2 hands bytea back as memoryview
    if value is None:
        return None
    return bytes(value)


# Convenience functions
def create_database(connection_string: Optional[str] = None) -> ClassifierDatabase:
    """Create and return database instance"""
    return ClassifierDatabase(connection_string)


def initialize_database(connection_string: Optional[str] = None) -> bool:
    """Initialize database with the classifier table"""
    try:
        db = ClassifierDatabase(connection_string)
        db.create_tables()
        return True
    except (StoreError, ValueError) as e:
        print(f"❌ Database initialization failed: {e}")
        return False
