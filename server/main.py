"""FGAC Policy MCP Server — main entry point.

10 tools, 2 prompts. Tool-level governance plus an admin-group gate and
human-approved, signed approval tokens for every policy mutation.
"""
import logging
from contextlib import asynccontextmanager
from mcp.server.fastmcp import FastMCP
from server.config import config
from server.governance.policy import build_governance_policy
from server.governance.tokens import ApprovalTokenCodec

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Read once at startup; never re-read from the environment afterwards.
approval_config = config.approval_config()
codec = ApprovalTokenCodec(approval_config)


@asynccontextmanager
async def app_lifespan(server: FastMCP):
    """Log startup configuration and warn about insecure defaults."""
    if approval_config.uses_default_secret:
        logger.warning(
            "FGAC_APPROVAL_SECRET is not set: approval tokens are signed with the "
            "built-in development secret. Set it before handling real data."
        )
    logger.info(
        f"FGAC Policy MCP Server started (admin_group={approval_config.admin_group}, "
        f"token_ttl={approval_config.token_ttl_seconds}s, "
        f"workspace={config.workspace_host or 'default auth'})"
    )
    yield {}
    logger.info("FGAC Policy MCP Server stopped")


mcp = FastMCP(
    "fgac_policy_mcp",
    lifespan=app_lifespan,
    stateless_http=True,
    host="0.0.0.0",
    port=config.app_port,
)

# Build tool governance policy (env vars + optional YAML)
governance = build_governance_policy()

# Register all tool modules
from server.tools.discovery import register_discovery_tools
from server.tools.policies import register_policy_tools
from server.prompts.templates import register_prompts

register_discovery_tools(mcp, approval_config)
register_policy_tools(mcp, codec, approval_config)  # preview + gated mutations
register_prompts(mcp)


def _apply_tool_governance(mcp_instance: FastMCP):
    """Apply tool-level governance middleware by wrapping ToolManager.call_tool.

    Intercepts every tool invocation to check tool access permissions
    before the handler executes. Only active when tool governance is configured
    (tool_profile, tool_allowed, or tool_denied env vars are set).
    """
    if not governance.is_active:
        logger.info("Tool-level governance: inactive (no tool restrictions configured)")
        return

    original_call_tool = mcp_instance._tool_manager.call_tool

    async def governed_call_tool(name, arguments, context=None, convert_result=False):
        allowed, error_msg = governance.check_tool_access(name)
        if not allowed:
            return [{"type": "text", "text": f"Error: {error_msg}"}]
        return await original_call_tool(name, arguments, context, convert_result)

    mcp_instance._tool_manager.call_tool = governed_call_tool
    logger.info(
        f"Tool-level governance: active "
        f"(allow={len(governance.tool_policy.allowed_tools)}, "
        f"deny={len(governance.tool_policy.denied_tools)})"
    )


_apply_tool_governance(mcp)


def main():
    mcp.run(transport="streamable-http")


if __name__ == "__main__":
    main()
