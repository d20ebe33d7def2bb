"""Read-only FGAC discovery tools — existing policies, UDFs, quotas, caller identity.

None of these change workspace state, so they skip the admin gate and need
no approval token. Agents should use them before previewing a change.
"""
import json
from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Optional
from mcp.server.fastmcp import FastMCP
from server.auth import WorkspaceAuth
from server.config import ApprovalConfig, config
from server.governance.changes import PolicyType, SecurableType
from server.policy_store import PolicyStore
from server.utils.errors import handle_error
from server.utils.formatting import (
    ResponseFormat,
    format_function_list,
    format_policy,
    format_policy_list,
)


class SecurableInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)
    securable_type: SecurableType = Field(
        default=SecurableType.SCHEMA,
        description="Type of securable: CATALOG, SCHEMA or TABLE",
    )
    securable_fullname: str = Field(
        ...,
        description="Fully qualified name (e.g., 'prod', 'prod.finance', 'prod.finance.customers')",
        min_length=1,
    )

    @field_validator("securable_type", mode="before")
    @classmethod
    def upper_securable_type(cls, v):
        return v.strip().upper() if isinstance(v, str) else v


class ListPoliciesInput(SecurableInput):
    include_inherited: bool = Field(
        default=True,
        description="Also list policies inherited from parent catalog/schema",
    )
    policy_type: Optional[PolicyType] = Field(
        default=None, description="Filter by COLUMN_MASK or ROW_FILTER"
    )
    response_format: ResponseFormat = Field(default=ResponseFormat.MARKDOWN)

    @field_validator("policy_type", mode="before")
    @classmethod
    def upper_policy_type(cls, v):
        return v.strip().upper() if isinstance(v, str) else v


class GetPolicyInput(SecurableInput):
    policy_name: str = Field(..., description="Policy name", min_length=1)
    response_format: ResponseFormat = Field(default=ResponseFormat.MARKDOWN)


class TablePoliciesInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)
    table_fullname: str = Field(
        ..., description="Table name as 'catalog.schema.table'", min_length=1
    )


class ListFunctionsInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)
    catalog: str = Field(..., description="Catalog holding the masking/filter UDFs")
    schema_name: str = Field(..., description="Schema holding the masking/filter UDFs")
    response_format: ResponseFormat = Field(default=ResponseFormat.MARKDOWN)


def split_table_policies(policies: list[dict], table_fullname: str) -> tuple[list, list]:
    """Split policies into (defined on the table, inherited from a parent)."""
    direct, inherited = [], []
    for p in policies:
        if p.get("on_securable_fullname") == table_fullname:
            direct.append(p)
        else:
            inherited.append(p)
    return direct, inherited


def register_discovery_tools(mcp: FastMCP, approval_config: ApprovalConfig):

    @mcp.tool(
        name="fgac_whoami",
        annotations={
            "title": "Show Caller Identity and Admin Status",
            "readOnlyHint": True,
            "destructiveHint": False,
            "idempotentHint": True,
            "openWorldHint": False,
        },
    )
    async def fgac_whoami() -> str:
        """Show the current user, their groups, and whether they may change FGAC policies.

        Policy changes require membership in the configured admin group.
        """
        try:
            caller = WorkspaceAuth(obo=config.use_obo).current_caller()
            return json.dumps(
                {
                    "user": caller.identity,
                    "groups": sorted(caller.groups),
                    "admin_group": approval_config.admin_group,
                    "can_modify_policies": caller.in_group(approval_config.admin_group),
                },
                indent=2,
            )
        except Exception as e:
            return handle_error(e)

    @mcp.tool(
        name="fgac_list_policies",
        annotations={
            "title": "List FGAC Policies",
            "readOnlyHint": True,
            "destructiveHint": False,
            "idempotentHint": True,
            "openWorldHint": False,
        },
    )
    async def fgac_list_policies(params: ListPoliciesInput) -> str:
        """List column-mask and row-filter policies on a catalog, schema or table.

        Includes policies inherited from parent securables unless
        include_inherited is false.
        """
        try:
            store = PolicyStore(WorkspaceAuth(obo=config.use_obo).workspace_client)
            policies = store.list_policies(
                params.securable_type,
                params.securable_fullname,
                include_inherited=params.include_inherited,
                policy_type=params.policy_type,
            )
            scope = f"{params.securable_type.value} `{params.securable_fullname}`"
            return format_policy_list(policies, scope, fmt=params.response_format)
        except Exception as e:
            return handle_error(e)

    @mcp.tool(
        name="fgac_get_policy",
        annotations={
            "title": "Get FGAC Policy",
            "readOnlyHint": True,
            "destructiveHint": False,
            "idempotentHint": True,
            "openWorldHint": False,
        },
    )
    async def fgac_get_policy(params: GetPolicyInput) -> str:
        """Get one policy's definition: type, function, principals and tag match."""
        try:
            store = PolicyStore(WorkspaceAuth(obo=config.use_obo).workspace_client)
            policy = store.get_policy(
                params.policy_name, params.securable_type, params.securable_fullname
            )
            return format_policy(policy, fmt=params.response_format)
        except Exception as e:
            return handle_error(e)

    @mcp.tool(
        name="fgac_get_table_policies",
        annotations={
            "title": "Get Policies Affecting a Table",
            "readOnlyHint": True,
            "destructiveHint": False,
            "idempotentHint": True,
            "openWorldHint": False,
        },
    )
    async def fgac_get_table_policies(params: TablePoliciesInput) -> str:
        """Show every policy that applies to a table, split into policies defined
        on the table itself and policies inherited from its schema or catalog."""
        try:
            store = PolicyStore(WorkspaceAuth(obo=config.use_obo).workspace_client)
            policies = store.list_policies(
                SecurableType.TABLE, params.table_fullname, include_inherited=True
            )
            direct, inherited = split_table_policies(policies, params.table_fullname)
            return json.dumps(
                {
                    "table": params.table_fullname,
                    "direct_policies": direct,
                    "inherited_policies": inherited,
                },
                indent=2,
                default=str,
            )
        except Exception as e:
            return handle_error(e)

    @mcp.tool(
        name="fgac_list_masking_functions",
        annotations={
            "title": "List Masking / Filter Functions",
            "readOnlyHint": True,
            "destructiveHint": False,
            "idempotentHint": True,
            "openWorldHint": False,
        },
    )
    async def fgac_list_masking_functions(params: ListFunctionsInput) -> str:
        """List the UDFs in a schema that can be used as column masks or row filters.

        Previews do not check that a function exists; use this first.
        """
        try:
            store = PolicyStore(WorkspaceAuth(obo=config.use_obo).workspace_client)
            functions = store.list_functions(params.catalog, params.schema_name)
            return format_function_list(
                functions,
                f"{params.catalog}.{params.schema_name}",
                fmt=params.response_format,
            )
        except Exception as e:
            return handle_error(e)

    @mcp.tool(
        name="fgac_check_policy_quota",
        annotations={
            "title": "Check Policy Quota",
            "readOnlyHint": True,
            "destructiveHint": False,
            "idempotentHint": True,
            "openWorldHint": False,
        },
    )
    async def fgac_check_policy_quota(params: SecurableInput) -> str:
        """Check how many more policies can be attached directly to a securable.

        Limits: 10 per catalog, 10 per schema, 5 per table.
        """
        try:
            store = PolicyStore(WorkspaceAuth(obo=config.use_obo).workspace_client)
            quota = store.check_quota(params.securable_type, params.securable_fullname)
            return json.dumps(quota, indent=2)
        except Exception as e:
            return handle_error(e)
