"""In-process callback registry for approval events.

Usage:
    from core.approvals.hooks import on, fire

    on('approval.request_completed', my_handler)
    fire('approval.request_completed', {'request_id': 1, 'status': 'APPROVED'})

Events:
    approval.request_created    -- request and its ledger were created
    approval.step_approved      -- one step approved
    approval.step_rejected      -- one step rejected (request closes)
    approval.request_completed  -- request reached APPROVED or REJECTED
    approval.flows_updated      -- admin saved or reset the flow document

Handlers run after the transaction committed. A failing handler is logged
and never affects the decision that fired it.
"""

import logging

logger = logging.getLogger('clickpeople.core.approvals.hooks')

REQUEST_CREATED = 'approval.request_created'
STEP_APPROVED = 'approval.step_approved'
STEP_REJECTED = 'approval.step_rejected'
REQUEST_COMPLETED = 'approval.request_completed'
FLOWS_UPDATED = 'approval.flows_updated'

_registry: dict[str, list] = {}


def _name(callback) -> str:
    return getattr(callback, '__name__', repr(callback))


def on(event_type: str, callback):
    """Subscribe `callback(payload)` to `event_type`; order of registration is kept."""
    _registry.setdefault(event_type, []).append(callback)
    logger.debug(f'{_name(callback)} subscribed to {event_type}')


def fire(event_type: str, payload: dict):
    # Snapshot: a handler may subscribe or clear while we iterate
    for callback in tuple(_registry.get(event_type, ())):
        try:
            callback(payload)
        except Exception as e:
            logger.error(f'{event_type} handler {_name(callback)} failed: {e}', exc_info=True)


def clear(event_type: str = None):
    """Drop the handlers of one event type, or of every type."""
    if event_type is None:
        _registry.clear()
    else:
        _registry.pop(event_type, None)
