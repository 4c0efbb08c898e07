"""Repository for approval_requests and approval_steps (the step ledger).

Every decision is a conditional UPDATE: the WHERE clause carries the state
the caller observed, so two concurrent deciders can never both win.
"""

import json
import logging

from psycopg2 import errors

from core.base_repository import BaseRepository
from core.approvals.exceptions import AlreadyPendingError
from core.approvals.models import ApprovalRequest, ApprovalStep

logger = logging.getLogger('clickpeople.core.approvals.request_repo')


class _StaleParent(Exception):
    """Parent request moved on between read and write; roll the unit back."""


class RequestRepository(BaseRepository):

    # ── Reads ──

    def get_by_id(self, request_id):
        row = self.query_one('SELECT * FROM approval_requests WHERE id = %s', (request_id,))
        return ApprovalRequest.from_row(row) if row else None

    def get_step(self, step_id):
        row = self.query_one('SELECT * FROM approval_steps WHERE id = %s', (step_id,))
        return ApprovalStep.from_row(row) if row else None

    def get_steps(self, request_id):
        rows = self.query_all('''
            SELECT * FROM approval_steps
            WHERE request_id = %s
            ORDER BY step_number
        ''', (request_id,))
        return [ApprovalStep.from_row(r) for r in rows]

    def get_pending_for_subject(self, request_type, entity_type, entity_id):
        """Id of an open request of this type for the subject, or None."""
        row = self.query_one('''
            SELECT id FROM approval_requests
            WHERE request_type = %s AND entity_type = %s AND entity_id = %s
            AND status = 'PENDING'
            ORDER BY id
            LIMIT 1
        ''', (request_type, entity_type, entity_id))
        return row['id'] if row else None

    def list_requests(self, request_type=None, status=None, creator_id=None,
                      limit=100, offset=0):
        wheres = []
        params = []
        if request_type:
            wheres.append('request_type = %s')
            params.append(request_type)
        if status:
            wheres.append('status = %s')
            params.append(status)
        if creator_id:
            wheres.append('creator_id = %s')
            params.append(creator_id)
        where_clause = ('WHERE ' + ' AND '.join(wheres)) if wheres else ''
        params.extend([limit, offset])
        rows = self.query_all(f'''
            SELECT * FROM approval_requests
            {where_clause}
            ORDER BY created_at DESC, id DESC
            LIMIT %s OFFSET %s
        ''', params)
        return [ApprovalRequest.from_row(r) for r in rows]

    def list_pending(self, request_type=None):
        """All PENDING requests, oldest first."""
        if request_type:
            rows = self.query_all('''
                SELECT * FROM approval_requests
                WHERE status = 'PENDING' AND request_type = %s
                ORDER BY created_at, id
            ''', (request_type,))
        else:
            rows = self.query_all('''
                SELECT * FROM approval_requests
                WHERE status = 'PENDING'
                ORDER BY created_at, id
            ''')
        return [ApprovalRequest.from_row(r) for r in rows]

    # ── Writes ──

    def create_with_steps(self, request_type, subject, creator_id, stages,
                          flow_version=None, auto_approve=None):
        """Insert a request and one step per stage in one transaction.

        auto_approve: optional {'approver_id', 'comment', 'steps'}; the first
        `steps` steps (default 1) are stored APPROVED. When that covers every
        stage the request is born APPROVED.

        The partial unique index on open requests turns a concurrent second
        request for the same subject into AlreadyPendingError.
        """
        pre_approved = auto_approve.get('steps', 1) if auto_approve else 0
        pre_approved = min(pre_approved, len(stages))
        completed = pre_approved == len(stages)
        status = 'APPROVED' if completed else 'PENDING'
        start_step = len(stages) if completed else pre_approved + 1

        def _work(cursor):
            cursor.execute('''
                INSERT INTO approval_requests
                    (request_type, creator_id, entity_type, entity_id, area_id, payload,
                     status, current_step_number, flow_version, resolved_at)
                VALUES (%s, %s, %s, %s, %s, %s::jsonb, %s, %s, %s,
                        CASE WHEN %s THEN NOW() END)
                RETURNING *
            ''', (
                request_type, creator_id, subject.entity_type, subject.entity_id,
                subject.area_id, json.dumps(subject.payload or {}, default=str),
                status, start_step, flow_version, completed,
            ))
            request_row = dict(cursor.fetchone())

            for number, stage in enumerate(stages, start=1):
                if number <= pre_approved:
                    cursor.execute('''
                        INSERT INTO approval_steps
                            (request_id, step_number, stage, status, approver_id, decided_at, comment)
                        VALUES (%s, %s, %s, 'APPROVED', %s, NOW(), %s)
                    ''', (request_row['id'], number, stage,
                          auto_approve['approver_id'], auto_approve.get('comment')))
                else:
                    cursor.execute('''
                        INSERT INTO approval_steps (request_id, step_number, stage, status)
                        VALUES (%s, %s, %s, 'PENDING')
                    ''', (request_row['id'], number, stage))
            return request_row

        try:
            row = self.execute_many(_work)
        except errors.UniqueViolation:
            existing = self.get_pending_for_subject(request_type, subject.entity_type, subject.entity_id)
            logger.info(f'Concurrent {request_type} request for {subject.entity_type} '
                        f'#{subject.entity_id} lost to #{existing}')
            raise AlreadyPendingError(
                request_type, subject.entity_type, subject.entity_id, existing) from None
        return ApprovalRequest.from_row(row)

    def approve_step(self, request_id, step_id, step_number, approver_id,
                     comment=None, admin_override=False, is_last=False):
        """Approve a PENDING step and advance (or complete) its request.

        Returns False when another decider got there first. Nothing is
        written in that case.
        """
        def _work(cursor):
            if not self._decide_step(cursor, request_id, step_id, 'APPROVED',
                                     approver_id, comment, admin_override):
                return False
            if is_last:
                cursor.execute('''
                    UPDATE approval_requests
                    SET status = 'APPROVED', resolved_at = NOW(), updated_at = NOW()
                    WHERE id = %s AND status = 'PENDING' AND current_step_number = %s
                ''', (request_id, step_number))
            else:
                cursor.execute('''
                    UPDATE approval_requests
                    SET current_step_number = %s, updated_at = NOW()
                    WHERE id = %s AND status = 'PENDING' AND current_step_number = %s
                ''', (step_number + 1, request_id, step_number))
            if cursor.rowcount != 1:
                raise _StaleParent()
            return True

        return self._run_decision(_work, request_id, step_id)

    def reject_step(self, request_id, step_id, step_number, approver_id,
                    comment, admin_override=False):
        """Reject a PENDING step and close its request as REJECTED."""
        def _work(cursor):
            if not self._decide_step(cursor, request_id, step_id, 'REJECTED',
                                     approver_id, comment, admin_override):
                return False
            cursor.execute('''
                UPDATE approval_requests
                SET status = 'REJECTED', resolved_at = NOW(), updated_at = NOW()
                WHERE id = %s AND status = 'PENDING' AND current_step_number = %s
            ''', (request_id, step_number))
            if cursor.rowcount != 1:
                raise _StaleParent()
            return True

        return self._run_decision(_work, request_id, step_id)

    def record_side_effect(self, request_id, status, error=None):
        """Store the outcome of the terminal action on the request."""
        return self.execute_guarded('''
            UPDATE approval_requests
            SET side_effect_status = %s, side_effect_error = %s, updated_at = NOW()
            WHERE id = %s
        ''', (status, error, request_id))

    # ── Internals ──

    @staticmethod
    def _decide_step(cursor, request_id, step_id, status, approver_id, comment, admin_override):
        cursor.execute('''
            UPDATE approval_steps
            SET status = %s, approver_id = %s, decided_at = NOW(),
                comment = %s, admin_override = %s
            WHERE id = %s AND request_id = %s AND status = 'PENDING'
        ''', (status, approver_id, comment, admin_override, step_id, request_id))
        return cursor.rowcount == 1

    def _run_decision(self, work, request_id, step_id):
        try:
            decided = self.execute_many(work)
        except _StaleParent:
            decided = False
        if not decided:
            logger.info(f'Step {step_id} of request {request_id} was decided concurrently')
        return decided
