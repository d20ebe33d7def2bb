"""Guardrails for FGAC policy changes.

Two layers:
- Tool-level access control (per-tool allow/deny with pre-built profiles)
- Mutation guard: admin-group check plus a signed, time-limited approval
  token issued by a preview and bound to the exact change it describes
"""
