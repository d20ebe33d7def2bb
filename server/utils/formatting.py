"""Response formatting helpers."""
import json
from enum import Enum
from typing import Any

# Short labels for the REST policy type names
_TYPE_LABELS = {
    "POLICY_TYPE_COLUMN_MASK": "column mask",
    "POLICY_TYPE_ROW_FILTER": "row filter",
}


class ResponseFormat(str, Enum):
    MARKDOWN = "markdown"
    JSON = "json"


def _principals(values: Any) -> str:
    if not values:
        return "-"
    return ", ".join(f"`{v}`" for v in values)


def _function_name(policy: dict) -> str:
    spec = policy.get("column_mask") or policy.get("row_filter") or {}
    return spec.get("function_name", "")


def format_policy_list(
    policies: list[dict],
    scope: str,
    fmt: ResponseFormat = ResponseFormat.MARKDOWN,
) -> str:
    if fmt == ResponseFormat.JSON:
        return json.dumps(
            {"scope": scope, "policy_count": len(policies), "policies": policies},
            indent=2,
            default=str,
        )
    if not policies:
        return f"_No FGAC policies found on {scope}._"
    lines = [f"## FGAC Policies on {scope}\n"]
    lines.append(f"**{len(policies)} policy(ies)**\n")
    lines.append("| Name | Type | Defined On | Function | To | Except |")
    lines.append("| --- | --- | --- | --- | --- | --- |")
    for p in policies:
        defined_on = (
            f"{p.get('on_securable_type', '')} {p.get('on_securable_fullname', '')}"
        ).strip()
        lines.append(
            f"| {p.get('name', '')} "
            f"| {_TYPE_LABELS.get(p.get('policy_type'), p.get('policy_type', ''))} "
            f"| {defined_on} "
            f"| {_function_name(p)} "
            f"| {_principals(p.get('to_principals'))} "
            f"| {_principals(p.get('except_principals'))} |"
        )
    return "\n".join(lines)


def format_policy(policy: dict, fmt: ResponseFormat = ResponseFormat.MARKDOWN) -> str:
    if fmt == ResponseFormat.JSON:
        return json.dumps(policy, indent=2, default=str)
    lines = [f"## Policy `{policy.get('name', 'unknown')}`\n"]
    lines.append(
        f"- **Type**: {_TYPE_LABELS.get(policy.get('policy_type'), policy.get('policy_type'))}"
    )
    lines.append(
        f"- **Defined on**: {policy.get('on_securable_type')} "
        f"`{policy.get('on_securable_fullname')}`"
    )
    lines.append(f"- **Function**: `{_function_name(policy)}`")
    lines.append(f"- **To**: {_principals(policy.get('to_principals'))}")
    lines.append(f"- **Except**: {_principals(policy.get('except_principals'))}")
    for match in policy.get("match_columns") or []:
        lines.append(f"- **Match**: `{match.get('condition')}` AS `{match.get('alias')}`")
    if policy.get("comment"):
        lines.append(f"- **Comment**: {policy['comment']}")
    return "\n".join(lines)


def format_function_list(
    functions: list[dict],
    schema: str,
    fmt: ResponseFormat = ResponseFormat.MARKDOWN,
) -> str:
    if fmt == ResponseFormat.JSON:
        return json.dumps(functions, indent=2, default=str)
    if not functions:
        return f"_No functions found in {schema}._"
    lines = [f"## Functions in `{schema}`\n"]
    for fn in functions:
        params = ", ".join(fn.get("parameters") or [])
        lines.append(f"- **{fn['full_name']}**({params}) -> {fn.get('returns') or '?'}")
        if fn.get("comment"):
            lines.append(f"  - {fn['comment']}")
    return "\n".join(lines)
