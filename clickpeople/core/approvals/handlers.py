"""Approval event handlers: append every engine event to the audit log.

Registered at startup via register_approval_hooks().
"""

import logging

logger = logging.getLogger('clickpeople.core.approvals.handlers')

_AUDIT_ACTIONS = {
    'approval.request_created': 'request_created',
    'approval.step_approved': 'step_approved',
    'approval.step_rejected': 'step_rejected',
    'approval.request_completed': 'request_completed',
}


def register_approval_hooks(audit_repo=None):
    """Register all approval event handlers. Call once at startup."""
    from core.approvals.hooks import on, FLOWS_UPDATED

    if audit_repo is None:
        from core.approvals.repositories import AuditRepository
        audit_repo = AuditRepository()

    for event_type, action in _AUDIT_ACTIONS.items():
        on(event_type, _audit_handler(audit_repo, action))
    on(FLOWS_UPDATED, _on_flows_updated)

    logger.info('Approval audit hooks registered')


def _audit_handler(audit_repo, action):
    def handler(payload):
        details = {k: v for k, v in payload.items() if k not in ('request_id', 'actor_id')}
        audit_repo.log(
            payload.get('request_id'), action,
            actor_id=payload.get('actor_id'),
            details=details,
        )
    handler.__name__ = f'audit_{action}'
    return handler


def _on_flows_updated(payload):
    verb = 'reset' if payload.get('reset') else 'updated'
    logger.info(f"Approval flows {verb} to version {payload.get('version')} by user {payload.get('actor_id')}")
