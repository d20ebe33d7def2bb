"""Gated entry point for FGAC policy mutations.

Every create, update and delete runs the same sequence and stops at the
first failure:

1. Admin gate           -> PermissionDeniedError
2. Request shape        -> ChangeRequestError
3. Token present        -> MissingApprovalTokenError
4. Token verification   -> InvalidOrExpiredTokenError (reason logged only)
5. Policy store call    -> result, or the store's own error unchanged
"""
import logging
from typing import Any, Mapping, Optional, Protocol, Union

from server.governance.admin_gate import AdminGate
from server.governance.changes import ChangeRequest, PolicyAction, SecurableType
from server.governance.tokens import ApprovalTokenCodec
from server.policy_store import build_policy_info, build_update
from server.utils.errors import (
    InvalidOrExpiredTokenError,
    MissingApprovalTokenError,
    PermissionDeniedError,
)

logger = logging.getLogger(__name__)

# A validated request, or the raw parameters of a mutating call
ChangeInput = Union[ChangeRequest, Mapping[str, Any]]


class PolicyBackend(Protocol):
    def create_policy(self, policy_info: dict[str, Any]) -> dict: ...

    def update_policy(
        self,
        name: str,
        securable_type: SecurableType,
        securable_fullname: str,
        policy_info: dict[str, Any],
        update_mask: str,
    ) -> dict: ...

    def delete_policy(
        self, name: str, securable_type: SecurableType, securable_fullname: str
    ) -> None: ...


class MutationDispatcher:
    """Validates authorization and approval, then forwards to the policy store.

    Stateless: no retries, and no record of consumed tokens.
    """

    def __init__(
        self, codec: ApprovalTokenCodec, gate: AdminGate, backend: PolicyBackend
    ):
        self._codec = codec
        self._gate = gate
        self._backend = backend

    def _admit(
        self,
        action: PolicyAction,
        change: ChangeInput,
        approval_token: Optional[str],
    ) -> ChangeRequest:
        decision = self._gate.check()
        if not decision.allowed:
            raise PermissionDeniedError(decision.reason)

        request = self._as_request(action, change)

        if not approval_token:
            raise MissingApprovalTokenError(
                f"{request.action.value} requires an approval_token."
            )

        check = self._codec.decode_and_verify(approval_token, request.token_params())
        if not check.valid:
            logger.warning(
                f"Rejected approval token for {request.action.value} of "
                f"'{request.policy_name}' by '{decision.caller.identity}': "
                f"{check.failure.value} ({check.detail})"
            )
            raise InvalidOrExpiredTokenError()

        logger.info(
            f"Approved {request.action.value} of '{request.policy_name}' "
            f"on {request.scope} by '{decision.caller.identity}'"
        )
        return request

    def execute(
        self,
        action: PolicyAction,
        change: ChangeInput,
        approval_token: Optional[str],
    ) -> Any:
        """Run ``change`` if the caller is an admin and the token matches it.

        ``change`` may be a ChangeRequest or the raw call parameters; raw
        parameters are only validated once the caller has passed the gate.
        """
        request = self._admit(action, change, approval_token)

        if request.action == PolicyAction.CREATE:
            return self._backend.create_policy(build_policy_info(request))

        if request.action == PolicyAction.UPDATE:
            policy_info, update_mask = build_update(request)
            return self._backend.update_policy(
                request.policy_name,
                request.securable_type,
                request.securable_fullname,
                policy_info,
                update_mask,
            )

        self._backend.delete_policy(
            request.policy_name, request.securable_type, request.securable_fullname
        )
        return None

    def create(self, change: ChangeInput, approval_token: Optional[str]) -> dict:
        return self.execute(PolicyAction.CREATE, change, approval_token)

    def update(self, change: ChangeInput, approval_token: Optional[str]) -> dict:
        return self.execute(PolicyAction.UPDATE, change, approval_token)

    def delete(self, change: ChangeInput, approval_token: Optional[str]) -> None:
        self.execute(PolicyAction.DELETE, change, approval_token)

    @staticmethod
    def _as_request(action: PolicyAction, change: ChangeInput) -> ChangeRequest:
        if isinstance(change, ChangeRequest):
            request = change
        else:
            params = dict(change)
            request = ChangeRequest(action=params.pop("action", action), **params)
        if request.action != action:
            raise ValueError(
                f"Expected a {action.value} request, got {request.action.value}"
            )
        return request
