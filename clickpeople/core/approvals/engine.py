"""ApprovalEngine: core orchestrator for the approval workflow.

All approval logic flows through this class. Domain modules (providers,
purchases, hiring) NEVER touch approval_requests/approval_steps directly.

A request is a ledger of steps, one per configured stage. The actionable step
is derived, not stored: the lowest-numbered PENDING step while the request is
PENDING. Who may act on it is resolved against the organization directory on
every check.
"""

import logging

from . import hooks
from .config import get_config
from .exceptions import (
    ValidationError, AlreadyPendingError, NotAuthorizedError,
    InvalidStateError, FlowDisabledError, SideEffectError, UnresolvedStageError,
)
from .models import (
    Actor, SubjectRef, ApprovalRequest, ApprovalResult, CanActResult,
    RequestType, RequestStatus, SideEffectStatus, POSITION_LEVELS,
    actionable_step, parse_request_type, stage_label,
)
from .resolver import AuthorizationContext
from core.utils.logging_config import log_with_context

logger = logging.getLogger('clickpeople.core.approvals.engine')

AUTO_APPROVE_COMMENT = 'Auto-aprovado (Diretor da área)'
CFO_AUTO_APPROVE_COMMENT = 'Auto-aprovado (CFO)'


class ApprovalEngine:

    def __init__(self, flow_store=None, request_repo=None, resolver=None,
                 dispatcher=None, area_repo=None, config=None, audit_repo=None):
        if area_repo is None:
            from core.organization.repositories import AreaRepository
            area_repo = AreaRepository()
        if flow_store is None:
            from .flow_config import FlowConfigStore
            flow_store = FlowConfigStore(area_repo=area_repo)
        if request_repo is None:
            from .repositories import RequestRepository
            request_repo = RequestRepository()
        if resolver is None:
            from .resolver import ApproverResolver
            resolver = ApproverResolver(area_repo, config)
        if dispatcher is None:
            from .side_effects import SideEffectDispatcher
            dispatcher = SideEffectDispatcher()
        if audit_repo is None:
            from .repositories import AuditRepository
            audit_repo = AuditRepository()

        self._area_repo = area_repo
        self._flow_store = flow_store
        self._request_repo = request_repo
        self._resolver = resolver
        self._dispatcher = dispatcher
        self._config = config
        self._audit_repo = audit_repo

    @property
    def config(self):
        return self._config or get_config()

    @property
    def dispatcher(self):
        return self._dispatcher

    # ════════════════════════════════════════════
    # Public API
    # ════════════════════════════════════════════

    def create_request(self, request_type, subject: SubjectRef, creator: Actor) -> ApprovalRequest:
        """Open a request and materialize one PENDING step per stage.

        1. Load the flow (must be enabled)
        2. Refuse a second open request for the same subject and type
        3. Insert request + steps in one transaction (the unique index on
           open requests settles concurrent creations)
        4. Fire approval.request_created
        5. A request born APPROVED (CFO purchase) completes right away
        """
        rt = parse_request_type(request_type)
        if not subject.entity_type or subject.entity_id is None:
            raise ValidationError('Request subject needs entity_type and entity_id')
        if subject.area_id is None:
            raise ValidationError('Request subject needs the area it belongs to')

        flow = self._flow_store.get_flow(rt)
        if not flow.enabled:
            raise FlowDisabledError(rt.value)

        existing = self._request_repo.get_pending_for_subject(
            rt.value, subject.entity_type, subject.entity_id)
        if existing:
            raise AlreadyPendingError(rt.value, subject.entity_type, subject.entity_id, existing)

        auto_approve = self._auto_approval(rt, flow, subject, creator)

        request = self._request_repo.create_with_steps(
            rt.value, subject, creator.id, flow.stages,
            flow_version=flow.version, auto_approve=auto_approve,
        )

        auto_steps = auto_approve.get('steps', 1) if auto_approve else 0
        log_with_context(
            logger, logging.INFO,
            f'Request #{request.id} created: {rt.value} for {subject.entity_type} #{subject.entity_id}'
            f' ({len(flow.stages)} steps, {auto_steps} auto-approved)',
            request_id=request.id, request_type=rt.value, creator_id=creator.id,
            flow_version=flow.version,
        )
        hooks.fire(hooks.REQUEST_CREATED, {
            'request_id': request.id, 'request_type': rt.value,
            'entity_type': subject.entity_type, 'entity_id': subject.entity_id,
            'actor_id': creator.id, 'stages': list(flow.stages),
            'flow_version': flow.version, 'auto_approved_first_step': auto_steps > 0,
            'auto_approved_steps': auto_steps,
        })

        if request.status == RequestStatus.APPROVED:
            last_step = self._request_repo.get_steps(request.id)[-1]
            return self._complete(request, last_step, creator, False).request
        return request

    def can_act(self, request_id, actor: Actor) -> CanActResult:
        """Whether `actor` may decide the request's current step right now."""
        request = self._request_repo.get_by_id(request_id)
        if not request:
            raise InvalidStateError(f'Request #{request_id} not found')
        step = actionable_step(request, self._request_repo.get_steps(request.id))
        if step is None:
            return CanActResult(actionable=False)
        return self._authorize(request, step, actor)

    def approve(self, step_id, actor: Actor, comment=None) -> ApprovalResult:
        """Approve the current step of a request.

        On the last step the request becomes APPROVED and its side effect runs
        before returning. If that action fails the approval stays committed
        and SideEffectError is raised carrying the result.
        """
        request, step, steps = self._load_actionable(step_id)
        self._check_flow_not_frozen(request)
        check = self._authorize(request, step, actor)
        if not check.actionable:
            raise NotAuthorizedError(
                f'User {actor.id} cannot approve step {step.step_number} of request #{request.id}')

        total = max(s.step_number for s in steps)
        is_last = step.step_number == total
        decided = self._request_repo.approve_step(
            request.id, step.id, step.step_number, actor.id,
            comment=comment, admin_override=check.is_admin_override, is_last=is_last,
        )
        if not decided:
            raise InvalidStateError(
                f'Step {step.step_number} of request #{request.id} was already decided')

        log_with_context(
            logger, logging.INFO,
            f'Request #{request.id} step {step.step_number}/{total} ({step.stage}) approved by user {actor.id}'
            f'{" (admin override)" if check.is_admin_override else ""}',
            request_id=request.id, step_id=step.id, actor_id=actor.id,
        )
        hooks.fire(hooks.STEP_APPROVED, self._event(
            request, step, actor, comment, check.is_admin_override))

        if not is_last:
            next_step = next(s for s in steps if s.step_number == step.step_number + 1)
            return ApprovalResult(
                is_fully_approved=False,
                request=self._request_repo.get_by_id(request.id),
                next_stage=stage_label(next_step.stage),
                next_step_number=next_step.step_number,
                is_admin_override=check.is_admin_override,
            )

        return self._complete(request, step, actor, check.is_admin_override)

    def reject(self, step_id, actor: Actor, comment) -> ApprovalRequest:
        """Reject the current step. The request ends REJECTED."""
        # The comment is checked before state and authorization: a short
        # comment is a ValidationError whoever sends it.
        min_length = self.config.REJECT_COMMENT_MIN_LENGTH
        comment = (comment or '').strip()
        if len(comment) < min_length:
            raise ValidationError(
                f'A rejection comment of at least {min_length} characters is required')

        request, step, _ = self._load_actionable(step_id)
        self._check_flow_not_frozen(request)
        check = self._authorize(request, step, actor)
        if not check.actionable:
            raise NotAuthorizedError(
                f'User {actor.id} cannot reject step {step.step_number} of request #{request.id}')
        if check.is_admin_override and not self.config.ADMIN_OVERRIDE_CAN_REJECT:
            raise NotAuthorizedError('Admin override does not cover rejections')

        decided = self._request_repo.reject_step(
            request.id, step.id, step.step_number, actor.id,
            comment, admin_override=check.is_admin_override,
        )
        if not decided:
            raise InvalidStateError(
                f'Step {step.step_number} of request #{request.id} was already decided')

        log_with_context(
            logger, logging.INFO,
            f'Request #{request.id} rejected at step {step.step_number} ({step.stage}) by user {actor.id}',
            request_id=request.id, step_id=step.id, actor_id=actor.id,
        )
        payload = self._event(request, step, actor, comment, check.is_admin_override)
        hooks.fire(hooks.STEP_REJECTED, payload)
        hooks.fire(hooks.REQUEST_COMPLETED, dict(payload, status=RequestStatus.REJECTED.value))
        return self._request_repo.get_by_id(request.id)

    # ── Read paths ──

    def get_request(self, request_id):
        return self._request_repo.get_by_id(request_id)

    def get_steps(self, request_id):
        return self._request_repo.get_steps(request_id)

    def get_request_detail(self, request_id):
        """Request with its full ledger and the step currently awaiting a decision."""
        request = self._request_repo.get_by_id(request_id)
        if not request:
            return None
        steps = self._request_repo.get_steps(request_id)
        return {
            'request': request,
            'steps': steps,
            'current_step': actionable_step(request, steps),
            'total_steps': len(steps),
        }

    def get_audit_trail(self, request_id):
        """Audit entries of one request, oldest first. InvalidStateError if unknown."""
        if not self._request_repo.get_by_id(request_id):
            raise InvalidStateError(f'Request #{request_id} not found')
        return self._audit_repo.get_for_request(request_id)

    def list_requests(self, request_type=None, status=None, creator_id=None,
                      limit=100, offset=0):
        if request_type:
            request_type = parse_request_type(request_type).value
        if status:
            try:
                status = RequestStatus(str(status).upper()).value
            except ValueError:
                raise ValidationError(f'Unknown request status: {status!r}') from None
        return self._request_repo.list_requests(
            request_type=request_type, status=status, creator_id=creator_id,
            limit=limit, offset=offset,
        )

    def get_pending_for_actor(self, actor: Actor, request_type=None):
        """PENDING requests whose current step `actor` may decide.

        Returns [{'request', 'step', 'is_admin_override'}], oldest first.
        A request whose current stage no longer maps to an area is logged at
        ERROR and left out; can_act/approve on it still raise.
        """
        if request_type:
            request_type = parse_request_type(request_type).value
        pending = []
        for request in self._request_repo.list_pending(request_type):
            step = actionable_step(request, self._request_repo.get_steps(request.id))
            if step is None:
                continue
            try:
                check = self._authorize(request, step, actor)
            except UnresolvedStageError as e:
                logger.error(f'Request #{request.id} left out of approval queues: {e}')
                continue
            if check.actionable:
                pending.append({
                    'request': request,
                    'step': step,
                    'is_admin_override': check.is_admin_override,
                })
        return pending

    # ════════════════════════════════════════════
    # Internal helpers
    # ════════════════════════════════════════════

    def _load_actionable(self, step_id):
        step = self._request_repo.get_step(step_id)
        if not step:
            raise InvalidStateError(f'Step {step_id} not found')
        request = self._request_repo.get_by_id(step.request_id)
        if not request:
            raise InvalidStateError(f'Request #{step.request_id} not found')
        if request.is_terminal:
            raise InvalidStateError(
                f'Request #{request.id} is already {request.status.value}')
        steps = self._request_repo.get_steps(request.id)
        current = actionable_step(request, steps)
        if current is None or current.id != step.id:
            raise InvalidStateError(
                f'Step {step.step_number} is not the current step of request #{request.id}')
        return request, current, steps

    def _check_flow_not_frozen(self, request):
        if not self.config.FREEZE_IN_FLIGHT_WHEN_DISABLED:
            return
        if not self._flow_store.get_flow(request.request_type).enabled:
            raise FlowDisabledError(request.request_type.value)

    def _authorize(self, request, step, actor) -> CanActResult:
        resolution = self._resolver.resolve_approvers(
            step.stage, AuthorizationContext(request_area_id=request.area_id, actor=actor))
        is_approver = actor.id in resolution.approver_ids
        is_override = not is_approver and resolution.is_admin_override_allowed
        return CanActResult(
            actionable=is_approver or is_override,
            step=step,
            approvers=resolution.approver_ids,
            is_admin_override=is_override,
            resolution=resolution,
        )

    def _auto_approval(self, rt, flow, subject, creator):
        """Steps the creator's own position approves at creation, or None."""
        config = self.config
        if (config.AUTO_APPROVE_CFO_PURCHASE and rt == RequestType.PURCHASE
                and self._creator_level(creator) >= POSITION_LEVELS['CFO']):
            return {'approver_id': creator.id, 'comment': CFO_AUTO_APPROVE_COMMENT,
                    'steps': len(flow.stages)}
        if config.AUTO_APPROVE_OWN_AREA and self._directs_request_area(flow.stages[0], subject, creator):
            return {'approver_id': creator.id, 'comment': AUTO_APPROVE_COMMENT}
        return None

    def _creator_level(self, creator) -> int:
        users = self._area_repo.get_users([creator.id])
        if not users:
            return 0
        return users[0].get('hierarchy_level') or 0

    def _directs_request_area(self, first_stage, subject, creator) -> bool:
        resolution = self._resolver.resolve_approvers(
            first_stage, AuthorizationContext(request_area_id=subject.area_id, actor=creator))
        return resolution.resolved_via == 'director' and creator.id in resolution.approver_ids

    def _complete(self, request, step, actor, is_admin_override) -> ApprovalResult:
        """Run the side effect of a request this caller just moved to APPROVED."""
        dispatch = self._dispatcher.on_fully_approved(request.request_type, request.subject)
        if dispatch.action:
            status = SideEffectStatus.DONE if dispatch.ok else SideEffectStatus.FAILED
            self._request_repo.record_side_effect(request.id, status.value, dispatch.error)

        result = ApprovalResult(
            is_fully_approved=True,
            request=self._request_repo.get_by_id(request.id),
            is_admin_override=is_admin_override,
        )
        logger.info(f'Request #{request.id} fully approved')
        hooks.fire(hooks.REQUEST_COMPLETED, dict(
            self._event(request, step, actor, None, is_admin_override),
            status=RequestStatus.APPROVED.value,
            side_effect=dispatch.action, side_effect_ok=dispatch.ok,
        ))

        if not dispatch.ok:
            logger.error(
                f'Request #{request.id} approved but side effect {dispatch.action} failed: {dispatch.error}')
            raise SideEffectError(request.id, dispatch.action, dispatch.error, result=result)
        return result

    @staticmethod
    def _event(request, step, actor, comment, is_admin_override):
        return {
            'request_id': request.id,
            'request_type': request.request_type.value,
            'entity_type': request.entity_type,
            'entity_id': request.entity_id,
            'step_id': step.id,
            'step_number': step.step_number,
            'stage': step.stage,
            'actor_id': actor.id,
            'comment': comment,
            'admin_override': is_admin_override,
        }
