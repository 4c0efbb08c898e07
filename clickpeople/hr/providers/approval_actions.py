"""What a fully approved request does to a provider.

TERMINATION -> provider deactivated
REMUNERATION -> provider salary set to payload['new_salary']

register_provider_actions() wires both onto a SideEffectDispatcher.
"""

import logging
from decimal import Decimal, InvalidOperation

from core.approvals.models import RequestType

logger = logging.getLogger('clickpeople.hr.providers.approval_actions')

PROVIDER_ENTITY = 'provider'


def _check_subject(subject):
    if subject.entity_type != PROVIDER_ENTITY:
        raise ValueError(f'Expected a provider subject, got {subject.entity_type!r}')


def deactivate_provider(subject, repo=None):
    _check_subject(subject)
    if repo is None:
        from hr.providers.repositories import ProviderRepository
        repo = ProviderRepository()
    if not repo.deactivate(subject.entity_id):
        raise LookupError(f'Provider #{subject.entity_id} not found')
    logger.info(f'Provider #{subject.entity_id} deactivated after approved termination')


def apply_remuneration(subject, repo=None):
    """Set the provider's salary to the approved new value."""
    _check_subject(subject)
    raw = (subject.payload or {}).get('new_salary')
    try:
        new_salary = Decimal(str(raw))
    except InvalidOperation:
        new_salary = None
    if new_salary is None or not new_salary.is_finite() or new_salary < 0:
        raise ValueError(f'Invalid new_salary {raw!r} for provider #{subject.entity_id}')

    if repo is None:
        from hr.providers.repositories import ProviderRepository
        repo = ProviderRepository()
    if not repo.update_salary(subject.entity_id, new_salary):
        raise LookupError(f'Provider #{subject.entity_id} not found')
    logger.info(f'Provider #{subject.entity_id} salary set to {new_salary}')


def register_provider_actions(dispatcher, repo=None):
    """Register the provider side effects on `dispatcher`."""
    dispatcher.register(
        RequestType.TERMINATION,
        lambda subject: deactivate_provider(subject, repo),
        name='deactivate_provider',
    )
    dispatcher.register(
        RequestType.REMUNERATION,
        lambda subject: apply_remuneration(subject, repo),
        name='apply_remuneration',
    )
