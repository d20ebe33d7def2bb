"""Unity Catalog FGAC policies API client.

Thin wrapper over the workspace REST API. Errors raised by the SDK
(NotFound, PermissionDenied, BadRequest, ...) propagate unchanged, and
nothing here retries: a repeated mutation must go back through preview.
"""
import logging
from typing import Any, Optional
from urllib.parse import quote

from databricks.sdk import WorkspaceClient

from server.governance.changes import ChangeRequest, PolicyType, SecurableType
from server.governance.preview import (
    FILTER_COLUMN_ALIAS,
    MASK_COLUMN_ALIAS,
    match_condition,
)

logger = logging.getLogger(__name__)

POLICIES_PATH = "/api/2.1/unity-catalog/policies"

# Policy type names used by the REST API
API_POLICY_TYPES: dict[PolicyType, str] = {
    PolicyType.COLUMN_MASK: "POLICY_TYPE_COLUMN_MASK",
    PolicyType.ROW_FILTER: "POLICY_TYPE_ROW_FILTER",
}

# Maximum number of policies attached directly to one securable
POLICY_QUOTAS: dict[SecurableType, int] = {
    SecurableType.CATALOG: 10,
    SecurableType.SCHEMA: 10,
    SecurableType.TABLE: 5,
}


def _securable_path(securable_type: SecurableType, securable_fullname: str) -> str:
    return (
        f"{POLICIES_PATH}/{SecurableType(securable_type).value}/"
        f"{quote(securable_fullname, safe='.')}"
    )


def build_policy_info(request: ChangeRequest) -> dict[str, Any]:
    """Translate a CREATE request into a PolicyInfo body."""
    info: dict[str, Any] = {
        "name": request.policy_name,
        "policy_type": API_POLICY_TYPES[request.policy_type],
        "on_securable_type": request.securable_type.value,
        "on_securable_fullname": request.securable_fullname,
        "for_securable_type": SecurableType.TABLE.value,
        "to_principals": list(request.to_principals),
    }
    if request.except_principals:
        info["except_principals"] = list(request.except_principals)
    if request.comment:
        info["comment"] = request.comment

    condition = match_condition(request.tag_name, request.tag_value)
    if request.policy_type == PolicyType.COLUMN_MASK:
        info["column_mask"] = {
            "function_name": request.function_name,
            "on_column": MASK_COLUMN_ALIAS,
        }
        info["match_columns"] = [{"alias": MASK_COLUMN_ALIAS, "condition": condition}]
    else:
        info["row_filter"] = {
            "function_name": request.function_name,
            "using": [{"alias": FILTER_COLUMN_ALIAS}],
        }
        info["match_columns"] = [{"alias": FILTER_COLUMN_ALIAS, "condition": condition}]
    return info


def build_update(request: ChangeRequest) -> tuple[dict[str, Any], str]:
    """Translate an UPDATE request into (partial PolicyInfo, update_mask)."""
    info: dict[str, Any] = {
        "name": request.policy_name,
        "on_securable_type": request.securable_type.value,
        "on_securable_fullname": request.securable_fullname,
    }
    for name in request.updated_fields():
        value = getattr(request, name)
        info[name] = list(value) if isinstance(value, tuple) else value
    return info, ",".join(request.updated_fields())


class PolicyStore:
    """CRUD over FGAC policies attached to catalogs, schemas and tables."""

    def __init__(self, workspace_client: WorkspaceClient):
        self._ws = workspace_client

    def list_policies(
        self,
        securable_type: SecurableType,
        securable_fullname: str,
        include_inherited: bool = True,
        policy_type: Optional[PolicyType] = None,
    ) -> list[dict]:
        """List policies on a securable, following pagination."""
        path = _securable_path(securable_type, securable_fullname)
        query: dict[str, Any] = {"include_inherited": str(include_inherited).lower()}
        policies: list[dict] = []
        while True:
            result = self._ws.api_client.do("GET", path, query=query) or {}
            policies.extend(result.get("policies", []))
            next_token = result.get("next_page_token")
            if not next_token:
                break
            query = {**query, "page_token": next_token}

        if policy_type is not None:
            wanted = API_POLICY_TYPES[PolicyType(policy_type)]
            policies = [p for p in policies if p.get("policy_type") == wanted]
        return policies

    def get_policy(
        self, name: str, securable_type: SecurableType, securable_fullname: str
    ) -> dict:
        path = f"{_securable_path(securable_type, securable_fullname)}/{quote(name, safe='')}"
        return self._ws.api_client.do("GET", path)

    def create_policy(self, policy_info: dict[str, Any]) -> dict:
        logger.info(
            f"Creating policy '{policy_info['name']}' on "
            f"{policy_info['on_securable_type']} {policy_info['on_securable_fullname']}"
        )
        return self._ws.api_client.do("POST", POLICIES_PATH, body=policy_info)

    def update_policy(
        self,
        name: str,
        securable_type: SecurableType,
        securable_fullname: str,
        policy_info: dict[str, Any],
        update_mask: str,
    ) -> dict:
        path = f"{_securable_path(securable_type, securable_fullname)}/{quote(name, safe='')}"
        logger.info(f"Updating policy '{name}' ({update_mask})")
        return self._ws.api_client.do(
            "PATCH", path, query={"update_mask": update_mask}, body=policy_info
        )

    def delete_policy(
        self, name: str, securable_type: SecurableType, securable_fullname: str
    ) -> None:
        path = f"{_securable_path(securable_type, securable_fullname)}/{quote(name, safe='')}"
        logger.info(
            f"Deleting policy '{name}' on "
            f"{SecurableType(securable_type).value} {securable_fullname}"
        )
        self._ws.api_client.do("DELETE", path)

    def check_quota(
        self, securable_type: SecurableType, securable_fullname: str
    ) -> dict[str, Any]:
        """Count policies attached directly to a securable against its quota."""
        securable_type = SecurableType(securable_type)
        direct = self.list_policies(
            securable_type, securable_fullname, include_inherited=False
        )
        limit = POLICY_QUOTAS[securable_type]
        return {
            "securable_type": securable_type.value,
            "securable_fullname": securable_fullname,
            "current": len(direct),
            "max": limit,
            "remaining": max(limit - len(direct), 0),
            "can_create": len(direct) < limit,
        }

    def list_functions(self, catalog: str, schema: str) -> list[dict]:
        """List UDFs in a schema that can serve as masks or row filters."""
        functions = []
        for fn in self._ws.functions.list(catalog_name=catalog, schema_name=schema):
            params = fn.input_params.parameters if fn.input_params else None
            functions.append(
                {
                    "full_name": fn.full_name,
                    "returns": fn.full_data_type or (fn.data_type.value if fn.data_type else None),
                    "parameters": [p.name for p in params or []],
                    "comment": fn.comment,
                }
            )
        return functions
