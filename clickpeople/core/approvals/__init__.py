"""Approval engine module.

Entry point is ApprovalEngine; see bootstrap.build_engine() for a fully
wired instance (hooks + provider side effects).
"""
from .engine import ApprovalEngine
from .flow_config import FlowConfigStore, FlowConfig, FlowsDocument, DEFAULT_FLOWS
from .resolver import ApproverResolver, AuthorizationContext
from .side_effects import SideEffectDispatcher, DispatchResult

__all__ = [
    'ApprovalEngine', 'FlowConfigStore', 'FlowConfig', 'FlowsDocument', 'DEFAULT_FLOWS',
    'ApproverResolver', 'AuthorizationContext', 'SideEffectDispatcher', 'DispatchResult',
]
