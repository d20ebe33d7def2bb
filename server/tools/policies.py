"""FGAC policy change tools — preview, then create/update/delete with approval.

Workflow:
1. fgac_preview_policy_change renders the equivalent SQL and returns an
   approval_token (valid 10 minutes, bound to these exact parameters).
2. A human reads the preview and approves it out of band.
3. The matching fgac_create_policy / fgac_update_policy / fgac_delete_policy
   call is made with identical parameters plus the approval_token.
"""
import json
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from mcp.server.fastmcp import FastMCP
from server.auth import WorkspaceAuth
from server.config import ApprovalConfig, config
from server.governance.admin_gate import AdminGate
from server.governance.changes import ChangeRequest, PolicyAction
from server.governance.dispatcher import MutationDispatcher
from server.governance.preview import PreviewService
from server.governance.tokens import ApprovalTokenCodec
from server.policy_store import PolicyStore
from server.utils.errors import handle_error


class PolicyTargetInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)
    policy_name: str = Field(..., description="Policy name", min_length=1)
    securable_type: str = Field(
        ..., description="Securable the policy is attached to: CATALOG, SCHEMA or TABLE"
    )
    securable_fullname: str = Field(
        ...,
        description="Fully qualified securable name (e.g., 'prod.finance')",
        min_length=1,
    )


class PolicyFieldsInput(PolicyTargetInput):
    to_principals: Optional[list[str]] = Field(
        default=None, description="Users/groups the policy applies to"
    )
    except_principals: Optional[list[str]] = Field(
        default=None, description="Users/groups exempt from the policy"
    )
    comment: Optional[str] = Field(default=None, description="Policy comment")


class CreatePolicyInput(PolicyFieldsInput):
    policy_type: str = Field(..., description="COLUMN_MASK or ROW_FILTER")
    function_name: str = Field(
        ...,
        description="Fully qualified masking/filter UDF (e.g., 'prod.finance.mask_ssn')",
    )
    tag_name: str = Field(..., description="Governed tag key to match columns on")
    tag_value: Optional[str] = Field(
        default=None, description="Tag value to match; omit to match any value"
    )
    approval_token: Optional[str] = Field(
        default=None, description="Token from fgac_preview_policy_change"
    )


class UpdatePolicyInput(PolicyFieldsInput):
    approval_token: Optional[str] = Field(
        default=None, description="Token from fgac_preview_policy_change"
    )


class DeletePolicyInput(PolicyTargetInput):
    approval_token: Optional[str] = Field(
        default=None, description="Token from fgac_preview_policy_change"
    )


class PreviewChangeInput(PolicyFieldsInput):
    action: str = Field(..., description="CREATE, UPDATE or DELETE")
    policy_type: Optional[str] = Field(
        default=None, description="CREATE only: COLUMN_MASK or ROW_FILTER"
    )
    function_name: Optional[str] = Field(
        default=None, description="CREATE only: fully qualified masking/filter UDF"
    )
    tag_name: Optional[str] = Field(
        default=None, description="CREATE only: governed tag key to match columns on"
    )
    tag_value: Optional[str] = Field(
        default=None, description="CREATE only: tag value to match"
    )


def call_params(params: BaseModel) -> dict:
    """The change parameters of a tool call, without the approval token."""
    return params.model_dump(exclude={"action", "approval_token"})


def to_change_request(action: str, params: BaseModel) -> ChangeRequest:
    """Build the ChangeRequest for ``action`` from a tool input model."""
    return ChangeRequest(action=action, **call_params(params))


def build_dispatcher(
    codec: ApprovalTokenCodec, approval_config: ApprovalConfig
) -> MutationDispatcher:
    """Wire a dispatcher for the current request's credentials."""
    auth = WorkspaceAuth(obo=config.use_obo)
    return MutationDispatcher(
        codec,
        AdminGate(approval_config, auth),
        PolicyStore(auth.workspace_client),
    )


def register_policy_tools(
    mcp: FastMCP, codec: ApprovalTokenCodec, approval_config: ApprovalConfig
):
    previews = PreviewService(codec, approval_config)

    @mcp.tool(
        name="fgac_preview_policy_change",
        annotations={
            "title": "Preview FGAC Policy Change",
            "readOnlyHint": True,
            "destructiveHint": False,
            "idempotentHint": False,
            "openWorldHint": False,
        },
    )
    async def fgac_preview_policy_change(params: PreviewChangeInput) -> str:
        """Preview a CREATE, UPDATE or DELETE of a column-mask or row-filter policy.

        Makes no changes. Returns the equivalent SQL, warnings, and an
        approval_token. Show the preview to a human; only after they approve,
        call the matching create/update/delete tool with the SAME parameters
        and the approval_token. The token expires after 10 minutes.
        """
        try:
            preview = previews.preview(to_change_request(params.action, params))
            return json.dumps(preview.as_dict(), indent=2)
        except Exception as e:
            return handle_error(e)

    @mcp.tool(
        name="fgac_create_policy",
        annotations={
            "title": "Create FGAC Policy",
            "readOnlyHint": False,
            "destructiveHint": False,
            "idempotentHint": False,
            "openWorldHint": False,
        },
    )
    async def fgac_create_policy(params: CreatePolicyInput) -> str:
        """Create a column-mask or row-filter policy. Requires admin group
        membership and a human-approved approval_token from
        fgac_preview_policy_change with identical parameters."""
        try:
            result = build_dispatcher(codec, approval_config).create(
                call_params(params), params.approval_token
            )
            return json.dumps(
                {"status": "created", "policy": result}, indent=2, default=str
            )
        except Exception as e:
            return handle_error(e)

    @mcp.tool(
        name="fgac_update_policy",
        annotations={
            "title": "Update FGAC Policy",
            "readOnlyHint": False,
            "destructiveHint": True,
            "idempotentHint": True,
            "openWorldHint": False,
        },
    )
    async def fgac_update_policy(params: UpdatePolicyInput) -> str:
        """Update a policy's principals or comment. Requires admin group
        membership and a human-approved approval_token from
        fgac_preview_policy_change with identical parameters."""
        try:
            result = build_dispatcher(codec, approval_config).update(
                call_params(params), params.approval_token
            )
            request = to_change_request(PolicyAction.UPDATE, params)
            return json.dumps(
                {
                    "status": "updated",
                    "updated_fields": request.updated_fields(),
                    "policy": result,
                },
                indent=2,
                default=str,
            )
        except Exception as e:
            return handle_error(e)

    @mcp.tool(
        name="fgac_delete_policy",
        annotations={
            "title": "Delete FGAC Policy",
            "readOnlyHint": False,
            "destructiveHint": True,
            "idempotentHint": False,
            "openWorldHint": False,
        },
    )
    async def fgac_delete_policy(params: DeletePolicyInput) -> str:
        """Delete a policy. This is irreversible. Requires admin group
        membership and a human-approved approval_token from
        fgac_preview_policy_change with identical parameters."""
        try:
            build_dispatcher(codec, approval_config).delete(
                call_params(params), params.approval_token
            )
            request = to_change_request(PolicyAction.DELETE, params)
            return (
                f"Policy '{request.policy_name}' deleted from {request.scope}."
            )
        except Exception as e:
            return handle_error(e)
