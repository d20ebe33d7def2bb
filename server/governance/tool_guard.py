"""Tool-level access control with allow/deny lists.

Enforces per-tool permissions before tool function execution.
Configurable via env vars or YAML governance config. This layer decides
which tools an agent can see at all; the admin gate and approval tokens
still guard every mutation that gets through it.
"""
import logging
from dataclasses import dataclass, field
from typing import Optional

logger = logging.getLogger(__name__)


# Tool categories for bulk allow/deny (all 10 tools)
TOOL_CATEGORIES: dict[str, list[str]] = {
    "identity": [
        "fgac_whoami",
    ],
    "policy_read": [
        "fgac_list_policies",
        "fgac_get_policy",
        "fgac_get_table_policies",
        "fgac_check_policy_quota",
    ],
    "function_read": [
        "fgac_list_masking_functions",
    ],
    "policy_preview": [
        "fgac_preview_policy_change",
    ],
    "policy_write": [
        "fgac_create_policy",
        "fgac_update_policy",
        "fgac_delete_policy",
    ],
}

# Pre-built tool profiles
TOOL_PROFILES: dict[str, list[str]] = {
    "read_only": [
        "identity",
        "policy_read",
        "function_read",
    ],
    "reviewer": [
        "identity",
        "policy_read",
        "function_read",
        "policy_preview",
    ],
    "admin": list(TOOL_CATEGORIES.keys()),
}


@dataclass
class ToolAccessPolicy:
    """Resolved tool access policy."""

    allowed_tools: set[str] = field(default_factory=set)
    denied_tools: set[str] = field(default_factory=set)

    def is_tool_allowed(self, tool_name: str) -> bool:
        """Check if a specific tool is allowed.

        Logic:
        1. If deny list has entries and tool is in deny list -> DENIED
        2. If allow list has entries and tool is NOT in allow list -> DENIED
        3. If neither list has entries -> ALLOWED
        """
        if self.denied_tools and tool_name in self.denied_tools:
            return False
        if self.allowed_tools and tool_name not in self.allowed_tools:
            return False
        return True


def resolve_tool_policy(
    profile: Optional[str] = None,
    allowed_categories: Optional[list[str]] = None,
    denied_categories: Optional[list[str]] = None,
    allowed_tools: Optional[list[str]] = None,
    denied_tools: Optional[list[str]] = None,
) -> ToolAccessPolicy:
    """Resolve a tool access policy from profile + overrides.

    Priority order (later overrides earlier):
    1. Profile expands to category list
    2. allowed_categories / denied_categories override profile
    3. allowed_tools / denied_tools override everything (individual tool names)
    """
    policy = ToolAccessPolicy()

    if profile:
        if profile in TOOL_PROFILES:
            for cat in TOOL_PROFILES[profile]:
                policy.allowed_tools.update(TOOL_CATEGORIES[cat])
        else:
            logger.warning(f"Unknown tool profile: {profile}")

    for cat in allowed_categories or []:
        if cat in TOOL_CATEGORIES:
            policy.allowed_tools.update(TOOL_CATEGORIES[cat])
        else:
            logger.warning(f"Unknown tool category: {cat}")

    for cat in denied_categories or []:
        if cat in TOOL_CATEGORIES:
            policy.denied_tools.update(TOOL_CATEGORIES[cat])
        else:
            logger.warning(f"Unknown tool category: {cat}")

    if allowed_tools:
        policy.allowed_tools.update(allowed_tools)

    if denied_tools:
        policy.denied_tools.update(denied_tools)

    return policy
