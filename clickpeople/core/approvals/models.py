"""
Approval Engine Data Models

Enums and data classes for requests, steps and the values the engine
returns. These are used for internal data transfer, not ORM models.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List, Dict, Any, FrozenSet
from enum import Enum

from .exceptions import ValidationError


# Symbolic first stage of every flow: the area the request belongs to
REQUEST_AREA = 'REQUEST_AREA'
REQUEST_AREA_LABEL = 'Área da Solicitação'


class RequestType(Enum):
    """Kinds of request that go through an approval flow."""
    RECESS = "RECESS"
    TERMINATION = "TERMINATION"
    HIRING = "HIRING"
    PURCHASE = "PURCHASE"
    REMUNERATION = "REMUNERATION"


class RequestStatus(Enum):
    """Overall status of an approval request."""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class StepStatus(Enum):
    """Status of one step of the ledger."""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class SideEffectStatus(Enum):
    """Outcome of the terminal action of a fully approved request."""
    NONE = "NONE"
    DONE = "DONE"
    FAILED = "FAILED"


class ApprovalRole(Enum):
    """Hierarchy roles that can approve."""
    AREA_DIRECTOR = "AREA_DIRECTOR"
    HR_DIRECTOR = "HR_DIRECTOR"
    CFO = "CFO"
    CEO = "CEO"


POSITION_LEVELS = {
    'ANALYST': 10,
    'MANAGER': 50,
    'HEAD': 70,
    'DIRECTOR': 80,
    'HR_DIRECTOR': 90,
    'CFO': 95,
    'CEO': 100,
}

ROLE_MIN_LEVELS = {
    ApprovalRole.AREA_DIRECTOR: POSITION_LEVELS['DIRECTOR'],
    ApprovalRole.HR_DIRECTOR: POSITION_LEVELS['HR_DIRECTOR'],
    ApprovalRole.CFO: POSITION_LEVELS['CFO'],
    ApprovalRole.CEO: POSITION_LEVELS['CEO'],
}

REQUEST_TYPE_LABELS = {
    RequestType.RECESS: 'Recesso/Férias',
    RequestType.TERMINATION: 'Desligamento',
    RequestType.HIRING: 'Contratação',
    RequestType.PURCHASE: 'Solicitação de Compra',
    RequestType.REMUNERATION: 'Mudança de Remuneração',
}

ROLE_LABELS = {
    ApprovalRole.AREA_DIRECTOR: 'Diretor da Área',
    ApprovalRole.HR_DIRECTOR: 'Diretor RH',
    ApprovalRole.CFO: 'CFO',
    ApprovalRole.CEO: 'CEO',
}


def parse_request_type(value) -> RequestType:
    """Coerce a string/enum to RequestType, ValidationError otherwise."""
    if isinstance(value, RequestType):
        return value
    try:
        return RequestType(str(value).strip().upper())
    except ValueError:
        raise ValidationError(f'Unknown request type: {value!r}') from None


def parse_role(value) -> ApprovalRole:
    if isinstance(value, ApprovalRole):
        return value
    try:
        return ApprovalRole(str(value).strip().upper())
    except ValueError:
        raise ValidationError(f'Unknown approval role: {value!r}') from None


# ── Presentation labels ──
# Only called at presentation boundaries. Unknown codes raise instead of
# leaking the raw code into the UI.

def request_type_label(request_type) -> str:
    try:
        return REQUEST_TYPE_LABELS[RequestType(getattr(request_type, 'value', request_type))]
    except (ValueError, KeyError):
        raise ValueError(f'No label for request type {request_type!r}') from None


def role_label(role) -> str:
    try:
        return ROLE_LABELS[ApprovalRole(getattr(role, 'value', role))]
    except (ValueError, KeyError):
        raise ValueError(f'No label for approval role {role!r}') from None


def stage_label(stage: str) -> str:
    """Display name of a stage: the requester-area marker or the area name."""
    if stage == REQUEST_AREA:
        return REQUEST_AREA_LABEL
    return stage


@dataclass(frozen=True)
class Actor:
    """Acting identity, as supplied by the session provider."""
    id: int
    is_admin: bool = False
    name: Optional[str] = None


@dataclass
class SubjectRef:
    """Domain object that asked for the workflow (provider, purchase, ...)."""
    entity_type: str
    entity_id: int
    area_id: Optional[int] = None
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ApprovalStep:
    """One materialized stage of a request's ledger.

    Maps to approval_steps table.
    """
    id: Optional[int] = None
    request_id: int = 0
    step_number: int = 0
    stage: str = ""
    status: StepStatus = StepStatus.PENDING
    approver_id: Optional[int] = None
    decided_at: Optional[datetime] = None
    comment: Optional[str] = None
    admin_override: bool = False
    created_at: Optional[datetime] = None

    def __post_init__(self):
        """Convert string status to enum if needed."""
        if isinstance(self.status, str):
            self.status = StepStatus(self.status)

    @property
    def is_pending(self) -> bool:
        return self.status == StepStatus.PENDING

    @property
    def stage_label(self) -> str:
        return stage_label(self.stage)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'ApprovalStep':
        return cls(
            id=row['id'],
            request_id=row['request_id'],
            step_number=row['step_number'],
            stage=row['stage'],
            status=row['status'],
            approver_id=row.get('approver_id'),
            decided_at=row.get('decided_at'),
            comment=row.get('comment'),
            admin_override=bool(row.get('admin_override')),
            created_at=row.get('created_at'),
        )


@dataclass
class ApprovalRequest:
    """One instance of a workflow.

    Maps to approval_requests table.
    """
    id: Optional[int] = None
    request_type: RequestType = RequestType.RECESS
    creator_id: int = 0

    # Subject (owned by the domain object that asked for approval)
    entity_type: str = ""
    entity_id: int = 0
    area_id: Optional[int] = None
    payload: Dict[str, Any] = field(default_factory=dict)

    status: RequestStatus = RequestStatus.PENDING
    current_step_number: int = 1
    flow_version: Optional[int] = None

    side_effect_status: SideEffectStatus = SideEffectStatus.NONE
    side_effect_error: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    def __post_init__(self):
        """Convert string enums if needed."""
        if isinstance(self.request_type, str):
            self.request_type = RequestType(self.request_type)
        if isinstance(self.status, str):
            self.status = RequestStatus(self.status)
        if isinstance(self.side_effect_status, str):
            self.side_effect_status = SideEffectStatus(self.side_effect_status)

    @property
    def is_terminal(self) -> bool:
        return self.status != RequestStatus.PENDING

    @property
    def subject(self) -> SubjectRef:
        return SubjectRef(
            entity_type=self.entity_type,
            entity_id=self.entity_id,
            area_id=self.area_id,
            payload=dict(self.payload or {}),
        )

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'ApprovalRequest':
        return cls(
            id=row['id'],
            request_type=row['request_type'],
            creator_id=row['creator_id'],
            entity_type=row['entity_type'],
            entity_id=row['entity_id'],
            area_id=row.get('area_id'),
            payload=row.get('payload') or {},
            status=row['status'],
            current_step_number=row['current_step_number'],
            flow_version=row.get('flow_version'),
            side_effect_status=row.get('side_effect_status') or SideEffectStatus.NONE,
            side_effect_error=row.get('side_effect_error'),
            created_at=row.get('created_at'),
            updated_at=row.get('updated_at'),
            resolved_at=row.get('resolved_at'),
        )


def actionable_step(request: ApprovalRequest, steps: List[ApprovalStep]) -> Optional[ApprovalStep]:
    """Lowest-numbered PENDING step, or None when the request is terminal."""
    if request.is_terminal:
        return None
    pending = [s for s in steps if s.is_pending]
    if not pending:
        return None
    return min(pending, key=lambda s: s.step_number)


@dataclass(frozen=True)
class ApproverResolution:
    """Who may act on a stage, computed at evaluation time."""
    stage: str
    area_name: Optional[str]
    approver_ids: FrozenSet[int] = frozenset()
    is_admin_override_allowed: bool = False
    resolved_via: str = 'director'   # director | c_level | fallback
    escalated: bool = False


@dataclass
class CanActResult:
    actionable: bool
    step: Optional[ApprovalStep] = None
    approvers: FrozenSet[int] = frozenset()
    is_admin_override: bool = False
    resolution: Optional[ApproverResolution] = None


@dataclass
class ApprovalResult:
    """Outcome of a successful approve()."""
    is_fully_approved: bool
    request: Optional[ApprovalRequest] = None
    next_stage: Optional[str] = None
    next_step_number: Optional[int] = None
    is_admin_override: bool = False
