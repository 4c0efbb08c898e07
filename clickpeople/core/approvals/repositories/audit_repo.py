"""approval_audit_log: one row per engine event, never updated or deleted."""

import json
import logging
from core.base_repository import BaseRepository

logger = logging.getLogger('clickpeople.core.approvals.audit_repo')

_AUDIT_SELECT = '''
    SELECT entry.*, actor.name AS actor_name,
           req.request_type, req.entity_type, req.entity_id
    FROM approval_audit_log entry
    LEFT JOIN users actor ON actor.id = entry.actor_id
    LEFT JOIN approval_requests req ON req.id = entry.request_id
'''


class AuditRepository(BaseRepository):

    def log(self, request_id, action, actor_id=None, actor_type='user', details=None):
        """Record one event for a request and return the new entry id."""
        details_json = json.dumps(details, default=str) if details else '{}'
        row = self.execute(
            'INSERT INTO approval_audit_log (request_id, action, actor_id, actor_type, details) '
            'VALUES (%s, %s, %s, %s, %s::jsonb) RETURNING id',
            (request_id, action, actor_id, actor_type, details_json),
            returning=True,
        )
        if row is None:
            return None
        return row['id']

    def get_for_request(self, request_id):
        """Trail of a single request, oldest event first."""
        return self.query_all(
            _AUDIT_SELECT + ' WHERE entry.request_id = %s ORDER BY entry.created_at, entry.id',
            (request_id,),
        )

    def get_global(self, limit=100, offset=0, action=None, actor_id=None):
        """Newest events across all requests, optionally narrowed by action or actor."""
        filters = [('entry.action = %s', action), ('entry.actor_id = %s', actor_id)]
        active = [(clause, value) for clause, value in filters if value]

        sql = _AUDIT_SELECT
        if active:
            sql += ' WHERE ' + ' AND '.join(clause for clause, _ in active)
        sql += ' ORDER BY entry.created_at DESC, entry.id DESC LIMIT %s OFFSET %s'

        params = [value for _, value in active] + [limit, offset]
        return self.query_all(sql, params)
