"""Wire the approval engine for a running process.

    from bootstrap import build_engine
    engine = build_engine()

Sets up logging, optionally creates the schema, registers the audit hooks
and the provider side effects.
"""

import os
import logging

from core.utils.logging_config import setup_logging

logger = logging.getLogger('clickpeople.bootstrap')

_hooks_registered = False


def build_engine(init_schema=False, register_hooks=True, config=None):
    """Return a ready ApprovalEngine backed by PostgreSQL."""
    global _hooks_registered

    setup_logging(os.environ.get('LOG_LEVEL', 'INFO'))

    if init_schema:
        from database import init_db
        init_db()

    from core.approvals.engine import ApprovalEngine
    from core.approvals.side_effects import SideEffectDispatcher
    from hr.providers.approval_actions import register_provider_actions

    dispatcher = SideEffectDispatcher()
    register_provider_actions(dispatcher)

    if register_hooks and not _hooks_registered:
        from core.approvals.handlers import register_approval_hooks
        register_approval_hooks()
        _hooks_registered = True

    engine = ApprovalEngine(dispatcher=dispatcher, config=config)
    logger.info('Approval engine ready')
    return engine
