"""End-to-end MCP protocol tests using MCP client."""
import pytest
import os

LIVE_E2E = os.environ.get("FGAC_E2E_TEST", "false").lower() == "true"
MCP_SERVER_URL = os.environ.get("MCP_SERVER_URL", "http://localhost:8000/mcp")


@pytest.mark.skipif(not LIVE_E2E, reason="E2E tests disabled")
class TestMCPProtocol:

    async def test_list_tools(self):
        """Verify all 10 expected tools are registered."""
        from mcp import ClientSession
        from mcp.client.streamable_http import streamablehttp_client

        async with streamablehttp_client(MCP_SERVER_URL) as (read, write, _):
            async with ClientSession(read, write) as session:
                await session.initialize()
                tools = await session.list_tools()
                tool_names = [t.name for t in tools.tools]

                expected_tools = [
                    # Identity (1)
                    "fgac_whoami",
                    # Discovery (5)
                    "fgac_list_policies",
                    "fgac_get_policy",
                    "fgac_get_table_policies",
                    "fgac_list_masking_functions",
                    "fgac_check_policy_quota",
                    # Preview (1)
                    "fgac_preview_policy_change",
                    # Gated mutations (3)
                    "fgac_create_policy",
                    "fgac_update_policy",
                    "fgac_delete_policy",
                ]
                for tool in expected_tools:
                    assert tool in tool_names, f"Missing tool: {tool}"
                assert len(tool_names) == 10

    async def test_list_prompts(self):
        """Verify both prompt templates are registered."""
        from mcp import ClientSession
        from mcp.client.streamable_http import streamablehttp_client

        async with streamablehttp_client(MCP_SERVER_URL) as (read, write, _):
            async with ClientSession(read, write) as session:
                await session.initialize()
                prompts = await session.list_prompts()
                prompt_names = [p.name for p in prompts.prompts]
                assert "fgac_policy_change_workflow" in prompt_names
                assert "fgac_mask_pii_columns" in prompt_names

    async def test_mutation_without_token_is_refused(self):
        """A delete with no approval token never reaches the workspace."""
        from mcp import ClientSession
        from mcp.client.streamable_http import streamablehttp_client

        async with streamablehttp_client(MCP_SERVER_URL) as (read, write, _):
            async with ClientSession(read, write) as session:
                await session.initialize()
                result = await session.call_tool(
                    "fgac_delete_policy",
                    arguments={
                        "params": {
                            "policy_name": "e2e_does_not_exist",
                            "securable_type": "CATALOG",
                            "securable_fullname": "e2e",
                        }
                    },
                )
                text = result.content[0].text
                assert text.startswith("Error [")
                assert "MISSING_APPROVAL_TOKEN" in text or "PERMISSION_DENIED" in text
