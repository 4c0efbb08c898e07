"""PostgreSQL access for Click People.

One process-wide psycopg2 ThreadedConnectionPool, created on first use.
Repositories borrow a connection with get_db() and must give it back with
release_db(). Importing this module never touches the network.
"""
import os
import logging
import threading

import psycopg2
from psycopg2 import pool
from psycopg2.extras import RealDictCursor


logger = logging.getLogger('clickpeople.database')

POOL_MIN_CONN = int(os.environ.get('DB_POOL_MIN_CONN', '2'))
POOL_MAX_CONN = int(os.environ.get('DB_POOL_MAX_CONN', '8'))
POOL_GETCONN_TIMEOUT = int(os.environ.get('DB_POOL_TIMEOUT', '10'))
CONNECT_ATTEMPTS = 3

_pool = None
_pool_lock = threading.Lock()

_BROKEN_CONNECTION = (psycopg2.OperationalError, psycopg2.InterfaceError, psycopg2.DatabaseError)


def _database_url():
    url = os.environ.get('DATABASE_URL')
    if not url:
        raise ValueError('DATABASE_URL is not set; point it at the PostgreSQL database')
    return url


def _get_pool():
    global _pool
    with _pool_lock:
        if _pool is None:
            _pool = pool.ThreadedConnectionPool(
                POOL_MIN_CONN, POOL_MAX_CONN,
                dsn=_database_url(),
                connect_timeout=5,
                keepalives=1,
                keepalives_idle=30,
                keepalives_interval=10,
                keepalives_count=5,
            )
            logger.info(f'PostgreSQL pool ready ({POOL_MIN_CONN}-{POOL_MAX_CONN} connections)')
        return _pool


def _borrow(timeout=None):
    """Take a connection from the pool, waiting at most `timeout` seconds.

    getconn() can hang on an unreachable server, so it runs on a daemon
    thread and the caller gives up after the timeout.
    """
    timeout = POOL_GETCONN_TIMEOUT if timeout is None else timeout
    outcome = {}

    def _take():
        try:
            outcome['conn'] = _get_pool().getconn()
        except Exception as e:
            outcome['error'] = e

    worker = threading.Thread(target=_take, daemon=True)
    worker.start()
    worker.join(timeout)

    if worker.is_alive():
        raise psycopg2.OperationalError(f'No database connection available after {timeout}s')
    if 'error' in outcome:
        raise outcome['error']
    return outcome['conn']


def _discard(conn):
    try:
        _get_pool().putconn(conn, close=True)
    except psycopg2.Error as e:
        logger.debug(f'Could not close discarded connection: {e}')


def get_db():
    """Borrow a live connection, replacing stale ones (up to CONNECT_ATTEMPTS)."""
    failure = None
    for attempt in range(1, CONNECT_ATTEMPTS + 1):
        conn = _borrow()
        try:
            with conn.cursor() as health:
                health.execute('SELECT 1')
            conn.rollback()
        except _BROKEN_CONNECTION as e:
            failure = e
            logger.warning(f'Dropping stale connection ({attempt}/{CONNECT_ATTEMPTS}): {e}')
            _discard(conn)
            continue
        return conn

    raise psycopg2.OperationalError(
        f'No healthy database connection after {CONNECT_ATTEMPTS} attempts: {failure}')


def release_db(conn):
    """Give a connection back; closed connections are dropped from the pool."""
    if conn is None or _pool is None:
        return
    if conn.closed:
        _discard(conn)
        return
    try:
        _pool.putconn(conn)
    except psycopg2.Error:
        _discard(conn)


def get_cursor(conn):
    """Cursor whose rows come back as dicts keyed by column name."""
    return conn.cursor(cursor_factory=RealDictCursor)


def init_db():
    """Create the schema unless approval_requests already exists.

    Returns True when tables were created.
    """
    conn = get_db()
    cursor = get_cursor(conn)
    try:
        cursor.execute(
            "SELECT EXISTS (SELECT 1 FROM information_schema.tables "
            "WHERE table_schema = 'public' AND table_name = 'approval_requests')"
        )
        if cursor.fetchone()['exists']:
            logger.info('Schema present, nothing to create')
            return False

        from migrations.init_schema import create_schema
        create_schema(conn, cursor)
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        release_db(conn)

    logger.info('Schema created')
    return True


def dict_from_row(row):
    """Plain dict copy of a RealDictCursor row (None stays None)."""
    return None if row is None else dict(row)
