"""Databricks OAuth authentication and caller identity."""
import logging
from dataclasses import dataclass, field
from typing import Optional

from databricks.sdk import WorkspaceClient
from databricks.sdk.credentials_provider import ModelServingUserCredentials

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Caller:
    """The user behind the current request and the groups they belong to."""

    identity: str
    groups: frozenset[str] = field(default_factory=frozenset)

    def in_group(self, group: str) -> bool:
        return group in self.groups


class WorkspaceAuth:
    """Manages authentication to the Databricks workspace."""

    def __init__(self, obo: bool = True, workspace_client: Optional[WorkspaceClient] = None):
        if workspace_client is not None:
            self._ws = workspace_client
        elif obo:
            self._ws = WorkspaceClient(credentials_strategy=ModelServingUserCredentials())
        else:
            self._ws = WorkspaceClient()

    @property
    def workspace_client(self) -> WorkspaceClient:
        return self._ws

    def current_caller(self) -> Caller:
        """Look up the calling user and their group memberships.

        Always a fresh SCIM lookup; memberships are never cached.
        """
        me = self._ws.current_user.me()
        groups = frozenset(g.display for g in (me.groups or []) if g.display)
        return Caller(identity=me.user_name or me.id or "unknown", groups=groups)
