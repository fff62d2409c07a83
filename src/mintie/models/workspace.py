"""Data models for per-workspace configuration."""

from dataclasses import dataclass


@dataclass(frozen=True)
class WorkspaceConfig:
    """Resolved assistant settings for one Slack workspace."""

    team_id: str
    subdomain: str
    api_key: str
    docs_base_url: str
