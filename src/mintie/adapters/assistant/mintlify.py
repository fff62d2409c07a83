"""Mintlify documentation assistant adapter.

This module implements the AssistantBackend protocol over the Mintlify
discovery API using httpx.

The response body is returned as-is; decoding is the ResponseParser's job.
Non-2xx responses are not raised: their body is handed back so the user
sees the upstream error text instead of a generic apology.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from ...config.schema import AssistantConfig
from ...models.message import AssistantRequest
from ...models.workspace import WorkspaceConfig
from ...utils.async_helpers import TransportError
from ...utils.security import SecretRedactor, truncate_error

log = structlog.get_logger()


class MintlifyError(TransportError):
    """Raised when the assistant API cannot be reached."""


class MintlifyClient:
    """Mintlify assistant client implementing the AssistantBackend protocol.

    Requests are never retried: the assistant call is not idempotent from
    the user's point of view.

    Example:
        client = MintlifyClient(AssistantConfig())
        raw = await client.send(workspace, request)
        await client.aclose()
    """

    def __init__(
        self,
        config: AssistantConfig,
        client: httpx.AsyncClient | None = None,
        redactor: SecretRedactor | None = None,
    ) -> None:
        """Initialize the Mintlify client.

        Args:
            config: Assistant API configuration.
            client: HTTP client. If None, creates one with the configured timeout.
            redactor: Secret redactor for logged error text. If None, creates default.
        """
        self._config = config
        self._client = client or httpx.AsyncClient(timeout=config.timeout)
        self._redactor = redactor or SecretRedactor()

    def endpoint_for(self, workspace: WorkspaceConfig) -> str:
        """Return the message endpoint for a workspace's assistant."""
        return f"{self._config.api_url}/{workspace.subdomain}/message"

    def headers_for(self, workspace: WorkspaceConfig) -> dict[str, str]:
        """Return request headers, including the workspace API key."""
        return {
            "Content-Type": "application/json",
            "Authorization": workspace.api_key,
            "User-Agent": self._config.user_agent,
        }

    async def send(self, workspace: WorkspaceConfig, request: AssistantRequest) -> str:
        """Send a question and return the raw response body.

        Args:
            workspace: Workspace whose assistant answers.
            request: Request body.

        Returns:
            Response body text, even for non-2xx statuses.

        Raises:
            MintlifyError: On network failure or timeout.
        """
        url = self.endpoint_for(workspace)
        payload: dict[str, Any] = request.to_dict()

        try:
            response = await self._client.post(
                url,
                json=payload,
                headers=self.headers_for(workspace),
            )
        except httpx.TimeoutException as e:
            log.error("assistant_timeout", team_id=workspace.team_id, timeout=self._config.timeout)
            raise MintlifyError(f"Assistant request timed out: {truncate_error(e)}") from e
        except httpx.HTTPError as e:
            log.error(
                "assistant_request_failed",
                team_id=workspace.team_id,
                error=self._redactor.redact(truncate_error(e)),
            )
            raise MintlifyError(f"Assistant request failed: {truncate_error(e)}") from e

        body = response.text
        if not response.is_success:
            log.warning(
                "assistant_error_status",
                team_id=workspace.team_id,
                status=response.status_code,
                body=self._redactor.redact(body[:200]),
            )
        else:
            log.debug(
                "assistant_response",
                team_id=workspace.team_id,
                status=response.status_code,
                length=len(body),
            )
        return body

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()
