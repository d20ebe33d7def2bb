"""Reusable prompt templates for FGAC governance workflows."""
from mcp.server.fastmcp import FastMCP


def register_prompts(mcp: FastMCP):

    @mcp.prompt("fgac_policy_change_workflow")
    async def policy_change_workflow() -> str:
        """Human-in-the-loop workflow for creating, updating or deleting FGAC policies."""
        return """You are changing Unity Catalog FGAC (column mask / row filter) policies.
Every change needs a human's explicit approval. Follow these steps:

1. **Discover**: Call fgac_list_policies and fgac_get_table_policies to see what already applies
2. **Check functions**: Call fgac_list_masking_functions to confirm the masking/filter UDF exists
3. **Check quota**: Call fgac_check_policy_quota before creating a new policy
4. **Preview**: Call fgac_preview_policy_change with the full set of parameters
5. **Ask the human**: Show them the equivalent_sql and every warning verbatim.
   Wait for an explicit "approve". Do not approve on their behalf.
6. **Execute**: Call fgac_create_policy / fgac_update_policy / fgac_delete_policy with
   EXACTLY the parameters you previewed plus the approval_token
7. **Verify**: Call fgac_get_policy or fgac_list_policies to confirm the result

Rules:
- Approval tokens expire 10 minutes after the preview; if one is rejected, preview again
- Changing any parameter after the preview invalidates the token
- Only members of the configured admin group can execute changes (check with fgac_whoami)"""

    @mcp.prompt("fgac_mask_pii_columns")
    async def mask_pii_columns() -> str:
        """Guide for masking tagged PII columns across a schema."""
        return """You are protecting PII columns with a column-mask policy.

Pattern:
- Columns are selected by governed tag (e.g., pii_type = 'ssn'), not by name
- One policy on the SCHEMA covers every current and future table in it
- Exempt the admin group (and any break-glass group) with except_principals

Steps:
1. Confirm the tag key/value used on the PII columns
2. Pick a masking UDF with fgac_list_masking_functions (it must take the column value)
3. Preview with action=CREATE, policy_type=COLUMN_MASK, securable_type=SCHEMA
4. Get human approval, then call fgac_create_policy with the same parameters"""
