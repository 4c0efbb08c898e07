"""
Approval Engine Configuration

Environment variables and settings for the approval engine.
"""

import os
from dataclasses import dataclass
from typing import Optional


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() == 'true'


@dataclass(frozen=True)
class ApprovalConfig:
    """Approval engine settings."""

    # Rejections must explain themselves
    REJECT_COMMENT_MIN_LENGTH: int = 3

    # Role that acts when an area has neither director nor c-level
    FALLBACK_ROLE: str = 'CEO'

    # Admin override always covers approve; reject is a separate switch
    ADMIN_OVERRIDE_CAN_REJECT: bool = True

    # Disabling a flow blocks new requests; this also freezes in-flight ones
    FREEZE_IN_FLIGHT_WHEN_DISABLED: bool = False

    # Creator who directs the request area approves step 1 on creation
    AUTO_APPROVE_OWN_AREA: bool = False

    # PURCHASE created by a CFO-level user is approved outright
    AUTO_APPROVE_CFO_PURCHASE: bool = False

    @classmethod
    def from_env(cls) -> 'ApprovalConfig':
        """Load configuration from environment variables."""
        return cls(
            REJECT_COMMENT_MIN_LENGTH=int(os.environ.get(
                'APPROVAL_REJECT_COMMENT_MIN_LENGTH', '3'
            )),
            FALLBACK_ROLE=os.environ.get(
                'APPROVAL_FALLBACK_ROLE', 'CEO'
            ).strip().upper(),
            ADMIN_OVERRIDE_CAN_REJECT=_env_bool(
                'APPROVAL_ADMIN_OVERRIDE_CAN_REJECT', 'true'
            ),
            FREEZE_IN_FLIGHT_WHEN_DISABLED=_env_bool(
                'APPROVAL_FREEZE_IN_FLIGHT_WHEN_DISABLED', 'false'
            ),
            AUTO_APPROVE_OWN_AREA=_env_bool(
                'APPROVAL_AUTO_APPROVE_OWN_AREA', 'false'
            ),
            AUTO_APPROVE_CFO_PURCHASE=_env_bool(
                'APPROVAL_AUTO_APPROVE_CFO_PURCHASE', 'false'
            ),
        )


# Default configuration instance
_default_config: Optional[ApprovalConfig] = None


def get_config() -> ApprovalConfig:
    """Get the default configuration instance."""
    global _default_config
    if _default_config is None:
        _default_config = ApprovalConfig.from_env()
    return _default_config


def reset_config():
    """Reset configuration (for testing)."""
    global _default_config
    _default_config = None
