"""Conversation messages exchanged between a review worker and the model.

A conversation is an append-only list of TimedMessage entries. Each message is one
variant of a tagged union discriminated by ``role``:

- system: review instructions and workflow
- user: the assembled review request
- assistant: model output, optionally carrying tool calls
- tool: the result of one tool call, tied to the call id
- custom: anything else the runtime injects (e.g. a nudge after an empty reply)
"""

import json
from datetime import UTC, datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from gatekeep.types import TokenUsage


class ToolCall(BaseModel):
    """A single tool invocation requested by the model."""

    id: str
    name: str
    arguments: str = Field(default="{}", description="Raw JSON argument payload")

    model_config = ConfigDict(frozen=True)

    def parse_arguments(self) -> dict[str, Any]:
        """Decode the raw argument payload.

        Returns:
            Arguments as a dict (an empty payload means no arguments)

        Raises:
            ValueError: If the payload is not a JSON object
        """
        if not self.arguments.strip():
            return {}
        decoded = json.loads(self.arguments)
        if not isinstance(decoded, dict):
            raise ValueError(f"expected a JSON object, got {type(decoded).__name__}")
        return decoded


class SystemMessage(BaseModel):
    role: Literal["system"] = "system"
    content: str

    model_config = ConfigDict(frozen=True)


class UserMessage(BaseModel):
    role: Literal["user"] = "user"
    content: str

    model_config = ConfigDict(frozen=True)


class AssistantMessage(BaseModel):
    """Model output. ``usage`` is filled in by the provider when it is known."""

    role: Literal["assistant"] = "assistant"
    content: str = ""
    tool_calls: list[ToolCall] = Field(default_factory=list)
    usage: TokenUsage | None = None

    model_config = ConfigDict(frozen=True)

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)


class ToolMessage(BaseModel):
    role: Literal["tool"] = "tool"
    tool_call_id: str
    name: str
    content: str

    model_config = ConfigDict(frozen=True)


class CustomMessage(BaseModel):
    """Runtime-injected message with a free-form body."""

    role: Literal["custom"] = "custom"
    name: str
    body: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    @property
    def content(self) -> str | None:
        value = self.body.get("content")
        return value if isinstance(value, str) else None


Message = Annotated[
    SystemMessage | UserMessage | AssistantMessage | ToolMessage | CustomMessage,
    Field(discriminator="role"),
]


class TimedMessage(BaseModel):
    """A message plus when it was appended, relative to the start of the task."""

    message: Message
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    elapsed_secs: float = 0.0

    model_config = ConfigDict(frozen=True)
