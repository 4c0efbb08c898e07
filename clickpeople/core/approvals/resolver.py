"""
Approver Resolver

Maps a stage (REQUEST_AREA or an area name) to the identities allowed to act
on it, against the organization directory as it is right now. Nothing is
cached: a director replaced mid-flow is picked up on the next check.

Resolution chain per area: director -> c-level -> fallback role.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .config import get_config
from .exceptions import UnresolvedStageError
from .models import (
    Actor, ApproverResolution, REQUEST_AREA, ROLE_MIN_LEVELS, parse_role,
)

logger = logging.getLogger('clickpeople.core.approvals.resolver')


@dataclass(frozen=True)
class AuthorizationContext:
    """Per-call inputs: the request's area and who is asking (if anyone)."""
    request_area_id: Optional[int] = None
    actor: Optional[Actor] = None

    @property
    def is_admin(self) -> bool:
        return bool(self.actor and self.actor.is_admin)


class ApproverResolver:

    def __init__(self, area_repo=None, config=None):
        if area_repo is None:
            from core.organization.repositories import AreaRepository
            area_repo = AreaRepository()
        self._area_repo = area_repo
        self._config = config

    @property
    def config(self):
        return self._config or get_config()

    def resolve_approvers(self, stage: str, context: AuthorizationContext) -> ApproverResolution:
        """Who may act on `stage` for a request in context.request_area_id.

        Raises:
            UnresolvedStageError: the stage or the request area names no existing area.
        """
        area = self._find_area(stage, context)

        if _is_present(area, 'director'):
            return self._resolution(stage, area, {area['director_id']}, 'director', context)
        if _is_present(area, 'c_level'):
            return self._resolution(stage, area, {area['c_level_id']}, 'c_level', context)

        role = parse_role(self.config.FALLBACK_ROLE)
        approver_ids = set(self._area_repo.get_users_by_min_level(ROLE_MIN_LEVELS[role]))
        logger.warning(
            f"Area '{area['name']}' (stage {stage}) has no director or c-level, "
            f"escalating to {role.value}: {sorted(approver_ids) or 'nobody'}"
        )
        return self._resolution(stage, area, approver_ids, 'fallback', context, escalated=True)

    def potential_approvers(self, stage: str, context: AuthorizationContext) -> list[dict]:
        """Directory records (id, name) of whoever resolves for `stage`."""
        resolution = self.resolve_approvers(stage, context)
        return [
            {'id': u['id'], 'name': u['name']}
            for u in self._area_repo.get_users(resolution.approver_ids)
        ]

    def _find_area(self, stage, context):
        if stage == REQUEST_AREA:
            if context.request_area_id is None:
                logger.error(f'Cannot resolve {REQUEST_AREA}: request has no area')
                raise UnresolvedStageError(stage, 'request has no area')
            area = self._area_repo.get_by_id(context.request_area_id)
            if not area:
                logger.error(f'Request area {context.request_area_id} no longer exists')
                raise UnresolvedStageError(stage, f'area id {context.request_area_id} not found')
            return area

        area = self._area_repo.get_by_name(stage)
        if not area:
            logger.error(f"Stage '{stage}' names no existing area")
            raise UnresolvedStageError(stage)
        return area

    @staticmethod
    def _resolution(stage, area, approver_ids, via, context, escalated=False):
        return ApproverResolution(
            stage=stage,
            area_name=area['name'],
            approver_ids=frozenset(approver_ids),
            is_admin_override_allowed=context.is_admin,
            resolved_via=via,
            escalated=escalated,
        )


def _is_present(area, prefix):
    """Designated user is set and not deactivated."""
    return area.get(f'{prefix}_id') is not None and area.get(f'{prefix}_active', True) is not False
