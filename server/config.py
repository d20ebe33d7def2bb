"""Configuration for the FGAC Policy MCP Server.

Server settings come from environment variables. The approval settings are
copied once into an ApprovalConfig that is handed to the token codec and the
admin gate at construction time.
"""
import os
from dataclasses import dataclass, field

DEFAULT_APPROVAL_SECRET = "fgac-insecure-dev-secret"
DEFAULT_ADMIN_GROUP = "admins"

# Approval tokens are valid for 10 minutes after preview.
TOKEN_TTL_SECONDS = 600


@dataclass(frozen=True)
class ApprovalConfig:
    """Settings for the approval-token guardrail."""

    secret: bytes
    admin_group: str = DEFAULT_ADMIN_GROUP
    token_ttl_seconds: int = TOKEN_TTL_SECONDS

    def __post_init__(self):
        if not self.secret:
            raise ValueError("Approval secret must not be empty")
        if not self.admin_group:
            raise ValueError("Admin group name must not be empty")

    @property
    def uses_default_secret(self) -> bool:
        return self.secret == DEFAULT_APPROVAL_SECRET.encode()


@dataclass
class FgacConfig:
    """Server configuration loaded from environment variables."""

    # Databricks workspace
    workspace_host: str = field(
        default_factory=lambda: os.environ.get("DATABRICKS_HOST", "")
    )
    use_obo: bool = field(
        default_factory=lambda: os.environ.get("FGAC_USE_OBO", "true").lower()
        == "true"
    )

    # Approval guardrail
    approval_secret: str = field(
        default_factory=lambda: os.environ.get(
            "FGAC_APPROVAL_SECRET", DEFAULT_APPROVAL_SECRET
        )
    )
    admin_group: str = field(
        default_factory=lambda: os.environ.get("FGAC_ADMIN_GROUP", DEFAULT_ADMIN_GROUP)
    )

    # HTTP transport
    app_port: int = field(
        default_factory=lambda: int(os.environ.get("APP_PORT", "8000"))
    )

    def approval_config(self) -> ApprovalConfig:
        return ApprovalConfig(
            secret=self.approval_secret.encode(),
            admin_group=self.admin_group,
        )


config = FgacConfig()
