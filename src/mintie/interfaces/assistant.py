"""Abstract interface for documentation assistant backends."""

from typing import Protocol

from ..models.message import AssistantRequest
from ..models.workspace import WorkspaceConfig


class AssistantBackend(Protocol):
    """Abstract interface for documentation assistant backends.

    Implementations return the raw response body as text. Non-2xx responses
    still yield their body; only transport-level failures raise.
    """

    async def send(self, workspace: WorkspaceConfig, request: AssistantRequest) -> str:
        """
        Send a question to the assistant and return the raw response body.

        Args:
            workspace: Workspace whose assistant should answer
            request: Request body (fingerprint and conversation)

        Returns:
            Raw response body (structured JSON or line-protocol text)

        Raises:
            TransportError: On network or timeout failure
        """
        ...
