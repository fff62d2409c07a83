"""Workspace configuration store backed by the config file.

Each Slack workspace (team) maps to a Mintlify subdomain and assistant API
key. When an event carries no team ID, or the team is unknown, the
configured default workspace is used if there is one.
"""

from __future__ import annotations

import structlog

from ...config.schema import MintieConfig, WorkspaceSettings
from ...models.workspace import WorkspaceConfig
from ...utils.async_helpers import WorkspaceNotConfiguredError

log = structlog.get_logger()


def construct_documentation_url(
    subdomain: str,
    custom_domain: str | None = None,
    base_path: str = "",
) -> str:
    """Build the public docs URL for a Mintlify site.

    Example:
        >>> construct_documentation_url("acme")
        'https://acme.mintlify.app'
        >>> construct_documentation_url("acme", "docs.acme.com", "/guides")
        'https://docs.acme.com/guides'
    """
    host = custom_domain.strip().rstrip("/") if custom_domain else f"{subdomain}.mintlify.app"
    if host.startswith(("http://", "https://")):
        host = host.split("://", 1)[1]

    path = base_path.strip().strip("/")
    return f"https://{host}/{path}" if path else f"https://{host}"


class StaticWorkspaceStore:
    """WorkspaceConfigStore over the ``workspaces`` config section.

    Example:
        store = StaticWorkspaceStore(config)
        workspace = await store.get_workspace_config("T0123")
    """

    def __init__(self, config: MintieConfig) -> None:
        self._workspaces = dict(config.workspaces)
        self._default = config.default_workspace

    async def get_workspace_config(self, team_id: str | None) -> WorkspaceConfig:
        """Resolve the settings for a team.

        Raises:
            WorkspaceNotConfiguredError: If neither the team nor a default is configured.
        """
        key = team_id if team_id in self._workspaces else self._default
        if key is None or key not in self._workspaces:
            raise WorkspaceNotConfiguredError(f"No assistant configured for workspace {team_id}")

        if key != team_id:
            log.debug("workspace_default_used", team_id=team_id, workspace=key)

        return self._resolve(team_id or key, self._workspaces[key])

    @staticmethod
    def _resolve(team_id: str, settings: WorkspaceSettings) -> WorkspaceConfig:
        docs_base_url = settings.docs_base_url or construct_documentation_url(
            settings.subdomain,
            settings.custom_domain,
            settings.base_path,
        )
        return WorkspaceConfig(
            team_id=team_id,
            subdomain=settings.subdomain,
            api_key=settings.api_key,
            docs_base_url=docs_base_url,
        )
