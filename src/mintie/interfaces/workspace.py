"""Abstract interface for per-workspace configuration lookup."""

from typing import Protocol

from ..models.workspace import WorkspaceConfig


class WorkspaceConfigStore(Protocol):
    """Read-only lookup of workspace assistant settings."""

    async def get_workspace_config(self, team_id: str | None) -> WorkspaceConfig:
        """
        Return the configuration for a workspace.

        Args:
            team_id: Slack team ID (None falls back to the default workspace)

        Raises:
            WorkspaceNotConfiguredError: If no configuration exists
        """
        ...
