"""Shared plumbing for the psycopg2 repositories.

Every repository borrows a pooled connection per call and hands it back when
done. Reads never commit; writes commit on success and roll back on any
error. A unit of work that spans several statements goes through
`execute_many`:

    class RequestRepository(BaseRepository):
        def close(self, request_id):
            def _work(cursor):
                cursor.execute('UPDATE approval_steps SET ... WHERE request_id = %s', (request_id,))
                cursor.execute('UPDATE approval_requests SET ... WHERE id = %s', (request_id,))
                return cursor.rowcount == 1
            return self.execute_many(_work)
"""

from contextlib import contextmanager

from database import get_db, get_cursor, release_db, dict_from_row


class BaseRepository:

    @contextmanager
    def _cursor(self, write=False):
        conn = get_db()
        try:
            yield get_cursor(conn)
            if write:
                conn.commit()
        except Exception:
            if write:
                conn.rollback()
            raise
        finally:
            release_db(conn)

    def query_one(self, sql, params=None):
        """First row as a dict, or None."""
        with self._cursor() as cursor:
            cursor.execute(sql, params or ())
            row = cursor.fetchone()
        return dict_from_row(row) if row else None

    def query_all(self, sql, params=None):
        with self._cursor() as cursor:
            cursor.execute(sql, params or ())
            rows = cursor.fetchall()
        return [dict_from_row(r) for r in rows]

    def execute(self, sql, params=None, returning=False):
        """Run one write statement in its own transaction.

        Returns the RETURNING row as a dict when `returning` is set,
        otherwise the number of affected rows.
        """
        with self._cursor(write=True) as cursor:
            cursor.execute(sql, params or ())
            if not returning:
                return cursor.rowcount
            row = cursor.fetchone()
        return dict_from_row(row) if row else None

    def execute_guarded(self, sql, params=None):
        """Conditional UPDATE whose WHERE clause carries the expected state.

        False means no row matched: someone else changed it first.
        """
        return self.execute(sql, params) > 0

    def execute_many(self, callback):
        """Run `callback(cursor)` as one transaction and return its result.

        Anything raised inside the callback rolls every statement back.
        """
        with self._cursor(write=True) as cursor:
            return callback(cursor)
