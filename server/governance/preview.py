"""Policy change previews.

Renders the Databricks SQL equivalent of a ChangeRequest for a human to
review and issues the approval token that authorizes exactly that change.
Nothing here talks to the workspace, so previews are safe to repeat.
"""
import logging
from dataclasses import dataclass, field

from server.config import ApprovalConfig
from server.governance.changes import ChangeRequest, PolicyAction, PolicyType
from server.governance.tokens import ApprovalTokenCodec

logger = logging.getLogger(__name__)

# Column aliases used in MATCH COLUMNS; the policy store uses the same ones.
MASK_COLUMN_ALIAS = "masked_col"
FILTER_COLUMN_ALIAS = "filter_col"


@dataclass(frozen=True)
class PolicyPreview:
    """What a human sees before approving a change."""

    request: ChangeRequest
    description: str
    approval_token: str
    warnings: list[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "action": self.request.action.value,
            "policy_name": self.request.policy_name,
            "securable": self.request.scope,
            "equivalent_sql": self.description,
            "warnings": self.warnings,
            "requires_approval": True,
            "approval_token": self.approval_token,
        }


def quote_identifier(name: str) -> str:
    return "`" + name.replace("`", "``") + "`"


def quote_string(value: str) -> str:
    return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"


def match_condition(tag_name: str, tag_value: str = None) -> str:
    """Tag selector used in MATCH COLUMNS."""
    if tag_value:
        return f"hasTagValue({quote_string(tag_name)}, {quote_string(tag_value)})"
    return f"hasTag({quote_string(tag_name)})"


def _principal_list(principals) -> str:
    return ", ".join(quote_identifier(p) for p in principals)


def render_sql(request: ChangeRequest) -> str:
    """Render the SQL statement equivalent to ``request``."""
    on_clause = f"ON {request.securable_type.value} {request.securable_fullname}"

    if request.action == PolicyAction.DELETE:
        return f"DROP POLICY {quote_identifier(request.policy_name)} {on_clause};"

    if request.action == PolicyAction.UPDATE:
        # ALTER POLICY does not exist; updates go through the policies API.
        lines = [
            f"-- UPDATE POLICY {quote_identifier(request.policy_name)} {on_clause}"
        ]
        if request.to_principals is not None:
            lines.append(f"-- SET TO {_principal_list(request.to_principals)}")
        if request.except_principals is not None:
            if request.except_principals:
                lines.append(
                    f"-- SET EXCEPT {_principal_list(request.except_principals)}"
                )
            else:
                lines.append("-- CLEAR EXCEPT")
        if request.comment is not None:
            lines.append(f"-- SET COMMENT {quote_string(request.comment)}")
        return "\n".join(lines)

    lines = [
        f"CREATE OR REPLACE POLICY {quote_identifier(request.policy_name)}",
        on_clause,
    ]
    if request.comment:
        lines.append(f"COMMENT {quote_string(request.comment)}")

    if request.policy_type == PolicyType.COLUMN_MASK:
        lines.append(f"COLUMN MASK {request.function_name}")
        alias = MASK_COLUMN_ALIAS
    else:
        lines.append(f"ROW FILTER {request.function_name}")
        alias = FILTER_COLUMN_ALIAS

    lines.append(f"TO {_principal_list(request.to_principals)}")
    if request.except_principals:
        lines.append(f"EXCEPT {_principal_list(request.except_principals)}")
    lines.append("FOR TABLES")
    lines.append(
        f"MATCH COLUMNS {match_condition(request.tag_name, request.tag_value)} AS {alias}"
    )
    if request.policy_type == PolicyType.COLUMN_MASK:
        lines.append(f"ON COLUMN {alias};")
    else:
        lines.append(f"USING COLUMNS ({alias});")
    return "\n".join(lines)


class PreviewService:
    """Builds previews and signs approval tokens for them."""

    def __init__(self, codec: ApprovalTokenCodec, approval_config: ApprovalConfig):
        self._codec = codec
        self._admin_group = approval_config.admin_group

    def _warnings(self, request: ChangeRequest) -> list[str]:
        warnings = []
        if request.action == PolicyAction.DELETE:
            warnings.append(
                "Dropping a policy is irreversible: data it protects becomes "
                "visible to everyone with SELECT on the affected tables."
            )
        elif request.action == PolicyAction.CREATE:
            if not request.except_principals:
                warnings.append(
                    "No EXCEPT principals: every member of the TO principals, "
                    "administrators included, is subject to this policy."
                )
            elif self._admin_group not in request.except_principals:
                warnings.append(
                    f"Admin group '{self._admin_group}' is not exempted; "
                    "administrators will also see filtered or masked data."
                )
        elif request.to_principals is not None:
            warnings.append(
                "to_principals replaces the existing list; principals left out "
                "are no longer subject to this policy."
            )
        return warnings

    def preview(self, request: ChangeRequest) -> PolicyPreview:
        """Describe ``request`` and issue a token bound to it."""
        token = self._codec.encode(request.token_params())
        logger.info(
            f"Previewed {request.action.value} of policy '{request.policy_name}' "
            f"on {request.scope} (token valid {self._codec.ttl_seconds}s)"
        )
        return PolicyPreview(
            request=request,
            description=render_sql(request),
            approval_token=token,
            warnings=self._warnings(request),
        )
