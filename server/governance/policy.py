"""Tool governance policy loading.

Loads config from env vars (primary) and optional YAML file.
"""
import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from server.governance.tool_guard import ToolAccessPolicy, resolve_tool_policy

logger = logging.getLogger(__name__)


@dataclass
class GovernanceConfig:
    """Parsed governance configuration."""

    tool_profile: Optional[str] = None
    tool_allowed_categories: Optional[list[str]] = None
    tool_denied_categories: Optional[list[str]] = None
    tool_allowed_tools: Optional[list[str]] = None
    tool_denied_tools: Optional[list[str]] = None


@dataclass
class GovernancePolicy:
    """Resolved governance policy — the runtime enforcement object."""

    tool_policy: ToolAccessPolicy
    _config: GovernanceConfig = field(repr=False)

    @property
    def is_active(self) -> bool:
        return bool(self.tool_policy.allowed_tools or self.tool_policy.denied_tools)

    def check_tool_access(self, tool_name: str) -> tuple[bool, str]:
        """Check if a tool is accessible. Returns (allowed, error_msg)."""
        if self.tool_policy.is_tool_allowed(tool_name):
            return True, ""
        return False, (
            f"Tool '{tool_name}' is not permitted by the current governance policy. "
            f"Contact your administrator to request access."
        )


def _load_yaml_config(path: str) -> dict:
    """Load governance config from YAML file."""
    config_path = Path(path)
    if not config_path.exists():
        logger.warning(f"Governance config file not found: {path}")
        return {}

    with open(config_path) as f:
        return yaml.safe_load(f) or {}


def _parse_env_list(env_var: str) -> Optional[list[str]]:
    """Parse comma-separated env var into list. Returns None if unset."""
    val = os.environ.get(env_var, "").strip()
    if not val:
        return None
    return [item.strip() for item in val.split(",") if item.strip()]


def load_governance_config() -> GovernanceConfig:
    """Load governance config from env vars + optional YAML.

    Env vars take precedence over YAML for all settings.
    """
    config = GovernanceConfig()

    yaml_path = os.environ.get("FGAC_GOVERNANCE_CONFIG", "")
    yaml_data = {}
    if yaml_path:
        yaml_data = _load_yaml_config(yaml_path)

    tool_section = yaml_data.get("tools", {}) or {}
    config.tool_profile = os.environ.get(
        "FGAC_TOOL_PROFILE", tool_section.get("profile")
    ) or None
    config.tool_allowed_categories = _parse_env_list(
        "FGAC_TOOL_ALLOWED_CATEGORIES"
    ) or (tool_section.get("allowed_categories"))
    config.tool_denied_categories = _parse_env_list(
        "FGAC_TOOL_DENIED_CATEGORIES"
    ) or (tool_section.get("denied_categories"))
    config.tool_allowed_tools = _parse_env_list("FGAC_TOOL_ALLOWED") or (
        tool_section.get("allowed_tools")
    )
    config.tool_denied_tools = _parse_env_list("FGAC_TOOL_DENIED") or (
        tool_section.get("denied_tools")
    )

    return config


def build_governance_policy(
    config: GovernanceConfig = None,
) -> GovernancePolicy:
    """Build the runtime governance policy from config.

    With no tool settings at all every tool is exposed; mutations are still
    guarded by the admin gate and approval tokens.
    """
    if config is None:
        config = load_governance_config()

    tool_policy = resolve_tool_policy(
        profile=config.tool_profile,
        allowed_categories=config.tool_allowed_categories,
        denied_categories=config.tool_denied_categories,
        allowed_tools=config.tool_allowed_tools,
        denied_tools=config.tool_denied_tools,
    )

    logger.info(
        f"Tool governance: tool_profile={config.tool_profile}, "
        f"tool_allow={len(tool_policy.allowed_tools)}, "
        f"tool_deny={len(tool_policy.denied_tools)}"
    )
    return GovernancePolicy(tool_policy=tool_policy, _config=config)
