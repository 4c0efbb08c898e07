"""Approval engine repositories."""
from .flow_config_repo import FlowConfigRepository, APPROVAL_FLOWS_KEY
from .request_repo import RequestRepository
from .audit_repo import AuditRepository

__all__ = [
    'FlowConfigRepository', 'APPROVAL_FLOWS_KEY', 'RequestRepository', 'AuditRepository',
]
