"""Core provider abstractions.

This module defines the seam between the agent loop and an LLM backend:
- ProviderError: transport or decode failure of one model round trip
- ChatProvider: abstract base class for all provider implementations

No pydantic-ai dependency here: pure foundation layer.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence

from gatekeep.agent.messages import AssistantMessage, Message
from gatekeep.agent.tools import ToolSpec


class ProviderError(Exception):
    """A model round trip failed (transport, HTTP status, or undecodable response)."""

    def __init__(self, message: str) -> None:
        """Initialize ProviderError with a message."""
        self.message = message
        super().__init__(message)


class ChatProvider(ABC):
    """Abstract base class for all chat providers.

    One call is one model round trip: the full history and the tool catalog go in,
    exactly one assistant message comes out.
    """

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Model identifier used for display and pricing."""
        ...

    @abstractmethod
    async def call(
        self,
        messages: Sequence[Message],
        tools: Sequence[ToolSpec],
    ) -> AssistantMessage:
        """Send the conversation to the model and return its reply.

        Args:
            messages: Full conversation history, oldest first
            tools: Tool catalog offered to the model

        Returns:
            The assistant message (content and/or tool calls, plus usage)

        Raises:
            ProviderError: If the request fails or the response cannot be decoded
        """
        ...
