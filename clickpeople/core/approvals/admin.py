"""Administrator-only operations: approval flows and the global audit log.

Reading flows needs no privilege; changing them or browsing the audit log
does. The guard runs before any repository is touched.
"""

import logging

from . import hooks
from .exceptions import NotAuthorizedError
from .flow_config import FlowConfigStore

logger = logging.getLogger('clickpeople.core.approvals.admin')


def _require_admin(actor, action):
    if actor is None or not actor.is_admin:
        actor_id = getattr(actor, 'id', None)
        logger.warning(f'User {actor_id} denied: {action} requires admin')
        raise NotAuthorizedError(f'{action} requires administrator access')


def update_approval_flows(new_flows, actor, store=None):
    """Replace every flow. Returns the saved FlowsDocument."""
    _require_admin(actor, 'Updating approval flows')
    doc = (store or FlowConfigStore()).set_flows(new_flows, actor)
    hooks.fire(hooks.FLOWS_UPDATED, {
        'actor_id': actor.id, 'version': doc.version, 'reset': False,
    })
    return doc


def reset_approval_flows(actor, store=None):
    """Restore the built-in flows. Returns the saved FlowsDocument."""
    _require_admin(actor, 'Resetting approval flows')
    doc = (store or FlowConfigStore()).reset_flows(actor)
    hooks.fire(hooks.FLOWS_UPDATED, {
        'actor_id': actor.id, 'version': doc.version, 'reset': True,
    })
    return doc


AUDIT_PAGE_MAX = 100


def get_audit_log(actor, limit=50, offset=0, action=None, actor_id=None, audit_repo=None):
    """Newest audit entries across every request, at most AUDIT_PAGE_MAX per page."""
    _require_admin(actor, 'Viewing the audit log')
    limit = max(1, min(int(limit), AUDIT_PAGE_MAX))
    offset = max(0, int(offset))
    if audit_repo is None:
        from .repositories import AuditRepository
        audit_repo = AuditRepository()
    return audit_repo.get_global(limit=limit, offset=offset, action=action, actor_id=actor_id)
