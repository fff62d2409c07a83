"""Pydantic models for configuration schema."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DOCS_BASE_URL = "https://mintlify.com/docs/"
DEFAULT_ASSISTANT_API_URL = "https://leaves.mintlify.com/api/discovery/v1/assistant"


class SlackConfig(BaseModel):
    """Slack-specific configuration."""

    bot_token: str
    app_token: str
    ask_channel: str = "ask-ai"
    answer_mentions: bool = True
    answer_direct_messages: bool = True
    thread_history_limit: int = Field(50, ge=1, le=200)

    @field_validator("bot_token")
    @classmethod
    def validate_bot_token(cls, v: str) -> str:
        """Validate Slack bot token format."""
        if not v.startswith("xoxb-"):
            raise ValueError("Bot token must start with xoxb-")
        return v

    @field_validator("app_token")
    @classmethod
    def validate_app_token(cls, v: str) -> str:
        """Validate Slack app token format."""
        if not v.startswith("xapp-"):
            raise ValueError("App token must start with xapp-")
        return v

    @field_validator("ask_channel")
    @classmethod
    def strip_channel_prefix(cls, v: str) -> str:
        """Accept channel names with or without a leading #."""
        return v.lstrip("#")


class AssistantConfig(BaseModel):
    """Documentation assistant HTTP API configuration."""

    api_url: str = DEFAULT_ASSISTANT_API_URL
    user_agent: str = "Mintlify-Slack-Bot/1.0"
    timeout: float = Field(60.0, ge=5.0, le=300.0)

    @field_validator("api_url")
    @classmethod
    def validate_api_url(cls, v: str) -> str:
        """Validate the assistant API URL."""
        from ..utils.security import validate_http_url

        if not validate_http_url(v):
            raise ValueError(f"Invalid assistant API URL: {v}")
        return v.rstrip("/")


class ReplyConfig(BaseModel):
    """Progressive reply behaviour."""

    initial_status: str = "Thinking."
    statuses: list[str] = Field(
        default_factory=lambda: ["Thinking.", "Thinking..", "Thinking..."],
        min_length=1,
    )
    status_interval: float = Field(1.0, ge=0.01, le=10.0)
    split_threshold: int = Field(3000, ge=100, le=40000)
    split_window: int = Field(200, ge=0, le=2000)
    docs_base_url: str = DEFAULT_DOCS_BASE_URL
    error_text: str = "Sorry, I encountered an error while processing your request."


class WorkspaceSettings(BaseModel):
    """Assistant settings stored for one Slack workspace."""

    subdomain: str
    api_key: str
    docs_base_url: str | None = None
    custom_domain: str | None = None
    base_path: str = ""

    @field_validator("subdomain")
    @classmethod
    def validate_subdomain(cls, v: str) -> str:
        """Subdomains are interpolated into URLs and must be plain labels."""
        if not v or any(c in v for c in "/?#@: "):
            raise ValueError(f"Invalid subdomain: {v!r}")
        return v


class FileLoggingConfig(BaseModel):
    """File logging configuration."""

    enabled: bool = False
    path: Path = Path("/var/log/mintie/mintie.log")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["json", "console"] = "json"
    file: FileLoggingConfig = FileLoggingConfig()


class RuntimeConfig(BaseModel):
    """Runtime configuration."""

    max_concurrent: int = Field(5, ge=1, le=50, description="Max concurrent replies")
    dedup_ttl: float = Field(600.0, ge=1.0, description="Seconds a handled event is remembered")


class MintieConfig(BaseSettings):
    """Root configuration for Mintie."""

    slack: SlackConfig
    assistant: AssistantConfig = AssistantConfig()
    reply: ReplyConfig = ReplyConfig()
    workspaces: dict[str, WorkspaceSettings] = {}
    default_workspace: str | None = None
    logging: LoggingConfig = LoggingConfig()
    runtime: RuntimeConfig = RuntimeConfig()

    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",
    )
