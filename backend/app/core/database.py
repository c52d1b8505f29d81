"""
Conexión a base de datos PostgreSQL (Supabase)

`Database` owns a psycopg2 connection pool for the lifetime of the process.
It is built once at startup and handed to every repository; nothing in this
module keeps a global connection or client.

Repositories use two entry points:
- connection(conn): borrow a pooled connection for a single statement, or
  reuse the caller's connection when one is passed in
- transaction(): a connection whose statements commit or roll back together

Author: TM3
Updated: 2025-10-17
"""
import logging
import threading
import time
from contextlib import contextmanager
from typing import Iterator, Optional

import psycopg2
from psycopg2.extras import RealDictCursor
from psycopg2.pool import ThreadedConnectionPool

logger = logging.getLogger(__name__)


class DatabaseNotConfigured(Exception):
    pass


def connect_with_retry(database_url: str, max_retries: int = 3, retry_delay: float = 1.0):
    """
    Open a psycopg2 connection with automatic retry on SSL/connection failures

    Supabase occasionally drops SSL connections; this retries with
    exponential backoff before giving up.

    Args:
        database_url: Postgres connection string
        max_retries: Maximum number of connection attempts (default: 3)
        retry_delay: Initial delay between retries in seconds (default: 1.0)

    Returns:
        psycopg2 connection with RealDictCursor

    Raises:
        psycopg2.OperationalError: If all retry attempts fail
    """
    if not database_url:
        raise DatabaseNotConfigured("DATABASE_URL not configured")

    last_error = None

    for attempt in range(1, max_retries + 1):
        try:
            logger.debug(f"Database connection attempt {attempt}/{max_retries}")
            conn = psycopg2.connect(database_url, cursor_factory=RealDictCursor)
            logger.debug(f"Database connection successful on attempt {attempt}")
            return conn

        except psycopg2.OperationalError as e:
            last_error = e
            error_msg = str(e)

            if "SSL connection has been closed unexpectedly" in error_msg:
                logger.warning(f"SSL connection error on attempt {attempt}/{max_retries}: {error_msg}")
            else:
                logger.warning(f"Connection error on attempt {attempt}/{max_retries}: {error_msg}")

            # Don't retry on last attempt
            if attempt < max_retries:
                delay = retry_delay * (2 ** (attempt - 1))
                logger.info(f"Retrying in {delay:.2f} seconds...")
                time.sleep(delay)
            else:
                logger.error(f"All {max_retries} connection attempts failed")

    raise last_error


class RetryingConnectionPool(ThreadedConnectionPool):
    """Thread-safe pool whose new connections go through connect_with_retry"""

    def __init__(self, minconn: int, maxconn: int, database_url: str):
        self._database_url = database_url
        super().__init__(minconn, maxconn, database_url)

    def _connect(self, key=None):
        conn = connect_with_retry(self._database_url)
        if key is not None:
            self._used[key] = conn
            self._rused[id(conn)] = key
        else:
            self._pool.append(conn)
        return conn


class Database:
    """
    Pooled access to the Supabase Postgres database.

    At most `max_connections` callers hold a connection at once; the next
    one blocks until a connection is returned. Pooled connections are
    checked with SELECT 1 on checkout and replaced when the server dropped
    them.

    Usage:
        db = Database(settings.DATABASE_URL)

        with db.connection() as conn:
            with conn.cursor() as cursor:
                cursor.execute("SELECT 1")

        with db.transaction() as conn:
            repo.create(..., conn=conn)
            other_repo.update(..., conn=conn)
    """

    def __init__(self, database_url: str, min_connections: int = 1, max_connections: int = 10):
        if not database_url:
            raise DatabaseNotConfigured("DATABASE_URL not configured")
        self._max_connections = max_connections
        self._available = threading.BoundedSemaphore(max_connections)
        self._pool = RetryingConnectionPool(min_connections, max_connections, database_url)

    @contextmanager
    def connection(self, conn=None) -> Iterator:
        """
        Yield `conn` untouched when given, otherwise a pooled connection that
        commits on success and rolls back on error.
        """
        if conn is not None:
            yield conn
            return

        with self.transaction() as owned:
            yield owned

    @staticmethod
    def _is_alive(conn) -> bool:
        if conn.closed:
            return False
        try:
            with conn.cursor() as cursor:
                cursor.execute("SELECT 1")
        except (psycopg2.OperationalError, psycopg2.InterfaceError) as e:
            logger.warning(f"Discarding stale pooled connection: {e}")
            return False
        return True

    def _checkout(self):
        for _ in range(self._max_connections + 1):
            conn = self._pool.getconn()
            if self._is_alive(conn):
                return conn
            self._pool.putconn(conn, close=True)

        raise psycopg2.OperationalError("No live database connection available")

    @contextmanager
    def transaction(self) -> Iterator:
        with self._available:
            conn = self._checkout()
            try:
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                raise
            finally:
                self._pool.putconn(conn, close=bool(conn.closed))

    def ping(self) -> Optional[float]:
        """Run SELECT 1 and return the latency in milliseconds"""
        start = time.time()
        with self.connection() as conn:
            with conn.cursor() as cursor:
                cursor.execute("SELECT 1")
                cursor.fetchone()
        return round((time.time() - start) * 1000, 2)

    def close(self):
        self._pool.closeall()
