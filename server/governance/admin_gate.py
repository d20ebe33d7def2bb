"""Admin-group check for mutating policy operations.

Read-only discovery and previews skip this gate. Every create, update and
delete passes through it before its approval token is even looked at.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from server.auth import Caller
from server.config import ApprovalConfig

logger = logging.getLogger(__name__)


class IdentityProvider(Protocol):
    def current_caller(self) -> Caller: ...


@dataclass(frozen=True)
class GateDecision:
    allowed: bool
    caller: Optional[Caller] = None
    reason: str = ""


class AdminGate:
    """Allows a caller only if they belong to the configured admin group."""

    def __init__(self, approval_config: ApprovalConfig, identity: IdentityProvider):
        self._admin_group = approval_config.admin_group
        self._identity = identity

    @property
    def admin_group(self) -> str:
        return self._admin_group

    def check(self) -> GateDecision:
        try:
            caller = self._identity.current_caller()
        except Exception as e:
            # Fail closed: no identity, no mutation.
            logger.warning(f"Admin gate: could not resolve caller identity: {e}")
            return GateDecision(
                allowed=False, reason="Could not resolve caller identity."
            )

        if caller.in_group(self._admin_group):
            return GateDecision(allowed=True, caller=caller)

        logger.warning(
            f"Admin gate: denied '{caller.identity}' "
            f"(not a member of '{self._admin_group}')"
        )
        return GateDecision(
            allowed=False,
            caller=caller,
            reason=(
                f"User '{caller.identity}' is not a member of the "
                f"'{self._admin_group}' group required to change FGAC policies."
            ),
        )
