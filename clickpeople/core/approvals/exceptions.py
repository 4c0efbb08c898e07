"""
Approval engine exceptions.

Every failure of a flow-config, resolver or engine operation is one of these.
`InvalidStateError` is expected under concurrent use: callers should refresh
and retry, not treat it as a bug.
"""


class ApprovalError(Exception):
    """Base error for the approval engine."""


class ValidationError(ApprovalError):
    """Malformed configuration or input."""

    def __init__(self, message, errors=None):
        super().__init__(message)
        self.errors = errors or []


class AlreadyPendingError(ValidationError):
    """Subject already has a pending request of the same type."""

    def __init__(self, request_type, entity_type, entity_id, existing_id):
        self.request_type = request_type
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.existing_id = existing_id
        super().__init__(
            f'{entity_type}/{entity_id} already has pending {request_type} request #{existing_id}'
        )


class UnresolvedStageError(ApprovalError):
    """A stage (or the request area) references an area that does not exist."""

    def __init__(self, stage, detail=None):
        self.stage = stage
        msg = f"Stage '{stage}' does not map to any existing area"
        if detail:
            msg += f': {detail}'
        super().__init__(msg)


class NotAuthorizedError(ApprovalError):
    """Caller lacks approver or admin capability."""


class InvalidStateError(ApprovalError):
    """Stale or out-of-order action: lost race, already decided, terminal parent."""


class FlowDisabledError(ApprovalError):
    """The request type's flow is administratively disabled."""

    def __init__(self, request_type):
        self.request_type = request_type
        super().__init__(f'Approval flow for {request_type} is disabled')


class SideEffectError(ApprovalError):
    """Terminal action failed after the approval was committed.

    The approval is NOT rolled back. `result` carries the ApprovalResult of
    the committed approval so the caller can still report success for it.
    """

    def __init__(self, request_id, action, cause, result=None):
        self.request_id = request_id
        self.action = action
        self.cause = cause
        self.result = result
        super().__init__(
            f'Request #{request_id} approved, but side effect {action!r} failed: {cause}'
        )
