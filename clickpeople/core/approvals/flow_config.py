"""
Flow Configuration Store

Per request type, the ordered list of stages a request must pass. The whole
set of flows is one versioned document stored under the APPROVAL_FLOWS key of
system_config:

    {
        "version": 3,
        "lastUpdatedAt": "2026-03-01T12:00:00+00:00",
        "lastUpdatedBy": 7,
        "flows": {"PURCHASE": {"enabled": true, "steps": ["REQUEST_AREA", "Financeiro"]}, ...}
    }

Values handed out are frozen; every write replaces the document and bumps
its version.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Dict, Union, Tuple

from .exceptions import ValidationError, InvalidStateError
from .models import (
    RequestType, REQUEST_AREA, REQUEST_AREA_LABEL,
    parse_request_type, request_type_label,
)

logger = logging.getLogger('clickpeople.core.approvals.flow_config')

MIN_STAGES = 2
DEFAULT_VERSION = 1
SYSTEM_ACTOR = 'system'

DEFAULT_FLOWS: Dict[RequestType, Tuple[str, ...]] = {
    RequestType.RECESS: (REQUEST_AREA, 'RH', 'Diretoria'),
    RequestType.TERMINATION: (REQUEST_AREA, 'RH', 'Diretoria'),
    RequestType.HIRING: (REQUEST_AREA, 'RH', 'Financeiro', 'Diretoria'),
    RequestType.PURCHASE: (REQUEST_AREA, 'Financeiro'),
    RequestType.REMUNERATION: (REQUEST_AREA, 'RH', 'Financeiro', 'Diretoria'),
}


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class FlowConfig:
    """Stages of one request type, as of a given document version."""
    request_type: RequestType
    stages: Tuple[str, ...]
    enabled: bool = True
    version: int = DEFAULT_VERSION
    last_updated_by: Union[int, str, None] = SYSTEM_ACTOR
    last_updated_at: Optional[str] = None

    @property
    def step_count(self) -> int:
        return len(self.stages)

    def to_dict(self) -> dict:
        return {'enabled': self.enabled, 'steps': list(self.stages)}


@dataclass(frozen=True)
class FlowsDocument:
    """All five flows plus the document's version stamp."""
    version: int
    last_updated_by: Union[int, str, None]
    last_updated_at: Optional[str]
    flows: Dict[RequestType, FlowConfig] = field(default_factory=dict)

    def get(self, request_type) -> FlowConfig:
        return self.flows[parse_request_type(request_type)]

    def to_dict(self) -> dict:
        return {
            'version': self.version,
            'lastUpdatedAt': self.last_updated_at,
            'lastUpdatedBy': self.last_updated_by,
            'flows': {rt.value: self.flows[rt].to_dict() for rt in RequestType},
        }


def validate_stages(stages, request_type=None) -> list[str]:
    """Structural problems of one stage list (empty list when valid)."""
    label = request_type_label(request_type) if request_type else 'Flow'
    if not isinstance(stages, (list, tuple)):
        return [f'{label}: steps must be a list']

    errors = []
    if len(stages) < MIN_STAGES:
        errors.append(f'{label}: at least {MIN_STAGES} steps are required')
    if any(not isinstance(s, str) or not s.strip() for s in stages):
        errors.append(f'{label}: steps must be non-empty area names')
        return errors
    if stages and stages[0] != REQUEST_AREA:
        errors.append(f'{label}: the first step must be "{REQUEST_AREA_LABEL}"')
    for prev, cur in zip(stages, stages[1:]):
        if prev == cur:
            errors.append(f'{label}: consecutive duplicate step "{cur}"')
            break
    return errors


def _parse_entry(request_type: RequestType, entry, version, last_updated_by,
                 last_updated_at) -> Tuple[Optional[FlowConfig], list]:
    label = request_type_label(request_type)
    if entry is None:
        return None, [f'{label}: flow is missing']
    if not isinstance(entry, dict):
        return None, [f'{label}: flow must be an object']
    enabled = entry.get('enabled', True)
    if not isinstance(enabled, bool):
        return None, [f'{label}: enabled must be a boolean']
    steps = entry.get('steps')
    errors = validate_stages(steps, request_type)
    if errors:
        return None, errors
    return FlowConfig(
        request_type=request_type,
        stages=tuple(steps),
        enabled=enabled,
        version=version,
        last_updated_by=last_updated_by,
        last_updated_at=last_updated_at,
    ), []


def parse_flows(raw_flows: dict, version=DEFAULT_VERSION, last_updated_by=SYSTEM_ACTOR,
                last_updated_at=None) -> Dict[RequestType, FlowConfig]:
    """Validate a {TYPE: {enabled, steps}} mapping covering every request type.

    Raises ValidationError listing every problem found.
    """
    if not isinstance(raw_flows, dict):
        raise ValidationError('Flows must be a mapping of request type to flow')

    errors = []
    by_type = {}
    for key, value in raw_flows.items():
        try:
            by_type[parse_request_type(key)] = value
        except ValidationError as e:
            errors.append(str(e))

    flows = {}
    for rt in RequestType:
        flow, entry_errors = _parse_entry(
            rt, by_type.get(rt), version, last_updated_by, last_updated_at
        )
        errors.extend(entry_errors)
        if flow:
            flows[rt] = flow

    if errors:
        raise ValidationError('Invalid approval flows', errors=errors)
    return flows


def default_document(version=DEFAULT_VERSION, last_updated_by=SYSTEM_ACTOR,
                     last_updated_at=None) -> FlowsDocument:
    """Built-in flows wrapped in a document."""
    return FlowsDocument(
        version=version,
        last_updated_by=last_updated_by,
        last_updated_at=last_updated_at,
        flows={
            rt: FlowConfig(rt, stages, True, version, last_updated_by, last_updated_at)
            for rt, stages in DEFAULT_FLOWS.items()
        },
    )


class FlowConfigStore:
    """Reads and writes the APPROVAL_FLOWS document.

    Reads never fail on bad stored data: each type that does not validate
    falls back to its built-in default, with a warning.
    """

    def __init__(self, repo=None, area_repo=None):
        if repo is None:
            from .repositories import FlowConfigRepository
            repo = FlowConfigRepository()
        if area_repo is None:
            from core.organization.repositories import AreaRepository
            area_repo = AreaRepository()
        self._repo = repo
        self._area_repo = area_repo

    # ── Reads ──

    def get_flows(self) -> FlowsDocument:
        row = self._repo.get()
        if not row:
            return default_document()

        value = row.get('value')
        if not isinstance(value, dict):
            value = {}
        version = row.get('version') or value.get('version') or DEFAULT_VERSION
        updated_by = value.get('lastUpdatedBy', row.get('updated_by'))
        updated_at = value.get('lastUpdatedAt')
        raw_flows = value.get('flows')
        if not isinstance(raw_flows, dict):
            raw_flows = {}

        flows = {}
        for rt in RequestType:
            flow, errors = _parse_entry(rt, raw_flows.get(rt.value), version, updated_by, updated_at)
            if errors:
                logger.warning(
                    f'Stored flow for {rt.value} is invalid ({"; ".join(errors)}), '
                    f'using built-in default'
                )
                flow = FlowConfig(rt, DEFAULT_FLOWS[rt], True, version, updated_by, updated_at)
            flows[rt] = flow

        return FlowsDocument(version, updated_by, updated_at, flows)

    def get_flow(self, request_type) -> FlowConfig:
        return self.get_flows().get(request_type)

    def get_configurable_areas(self) -> list[dict]:
        """Stage choices for flow editors: the request area, then every area."""
        choices = [{
            'id': REQUEST_AREA,
            'name': REQUEST_AREA_LABEL,
            'description': 'A área do prestador/solicitante',
            'director': None,
            'c_level': None,
        }]
        for area in self._area_repo.get_all():
            director = _person(area.get('director_id'), area.get('director_name'))
            c_level = _person(area.get('c_level_id'), area.get('c_level_name'))
            if director:
                description = f"Responsável: {director['name']}"
            elif c_level:
                description = f"C-Level: {c_level['name']}"
            else:
                description = 'Sem responsável definido'
            choices.append({
                'id': area['name'],
                'name': area['name'],
                'description': description,
                'director': director,
                'c_level': c_level,
            })
        return choices

    # ── Writes ──

    def set_flows(self, new_flows: dict, actor) -> FlowsDocument:
        """Replace all flows. Every request type must be present."""
        parse_flows(new_flows)
        self._check_areas_exist(new_flows)
        doc = self._write(
            lambda version, stamp: FlowsDocument(
                version, actor.id, stamp,
                parse_flows(new_flows, version, actor.id, stamp),
            ),
            actor,
        )
        logger.info(f'Approval flows updated to version {doc.version} by user {actor.id}')
        return doc

    def reset_flows(self, actor) -> FlowsDocument:
        """Restore the built-in flows."""
        doc = self._write(
            lambda version, stamp: default_document(version, actor.id, stamp),
            actor,
        )
        logger.info(f'Approval flows reset to defaults (version {doc.version}) by user {actor.id}')
        return doc

    def _write(self, build, actor) -> FlowsDocument:
        current = self._repo.get()
        expected = current['version'] if current else None
        new_version = (expected or DEFAULT_VERSION) + 1
        doc = build(new_version, _utcnow_iso())
        if not self._repo.save_versioned(doc.to_dict(), new_version, expected, actor.id):
            raise InvalidStateError(
                'Approval flows were changed by someone else, reload and try again'
            )
        return doc

    def _check_areas_exist(self, new_flows: dict):
        names = set()
        for entry in new_flows.values():
            names.update(s for s in entry['steps'] if s != REQUEST_AREA)
        missing = sorted(names - self._area_repo.get_names(names))
        if missing:
            raise ValidationError(
                f"Areas not found: {', '.join(missing)}",
                errors=[f'Unknown area: {name}' for name in missing],
            )


def _person(user_id, name) -> Optional[dict]:
    if user_id is None:
        return None
    return {'id': user_id, 'name': name}
