"""
Side-Effect Dispatcher

Maps a request type to the single action that runs once its request is fully
approved (e.g. TERMINATION deactivates the provider). Handlers are plain
callables taking the request's SubjectRef; they are registered by the domain
modules that own the subject (see hr.providers.approval_actions).
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Dict, Tuple

from .models import RequestType, SubjectRef, parse_request_type

logger = logging.getLogger('clickpeople.core.approvals.side_effects')

Handler = Callable[[SubjectRef], object]


@dataclass(frozen=True)
class DispatchResult:
    ok: bool
    action: Optional[str] = None
    error: Optional[str] = None


class SideEffectDispatcher:
    """Zero or one handler per request type."""

    def __init__(self):
        self._handlers: Dict[RequestType, Tuple[str, Handler]] = {}

    def register(self, request_type, handler: Handler, name: str = None):
        rt = parse_request_type(request_type)
        name = name or getattr(handler, '__name__', repr(handler))
        if rt in self._handlers:
            logger.info(f'Replacing side effect for {rt.value}: {self._handlers[rt][0]} -> {name}')
        self._handlers[rt] = (name, handler)
        logger.debug(f'Registered side effect for {rt.value}: {name}')

    def handler_for(self, request_type) -> Optional[str]:
        """Name of the registered action, or None."""
        entry = self._handlers.get(parse_request_type(request_type))
        return entry[0] if entry else None

    def on_fully_approved(self, request_type, subject: SubjectRef) -> DispatchResult:
        """Run the action for `request_type`. Failures are returned, not raised."""
        entry = self._handlers.get(parse_request_type(request_type))
        if not entry:
            return DispatchResult(ok=True)

        name, handler = entry
        try:
            handler(subject)
        except Exception as e:
            logger.error(
                f'Side effect {name} failed for {subject.entity_type} #{subject.entity_id}: {e}',
                exc_info=True,
            )
            return DispatchResult(ok=False, action=name, error=str(e))

        logger.info(f'Side effect {name} applied to {subject.entity_type} #{subject.entity_id}')
        return DispatchResult(ok=True, action=name)
