"""Pydantic AI provider implementation.

Uses pydantic-ai's direct model API for single round trips: gatekeep owns the
conversation loop, so the provider only translates our message history and tool
catalog into pydantic-ai request parts and the response back into an
AssistantMessage.
"""

import logging
import time
from collections.abc import Sequence
from typing import Any

from pydantic_ai.direct import model_request
from pydantic_ai.messages import (
    ModelMessage,
    ModelRequest,
    ModelRequestPart,
    ModelResponse,
    SystemPromptPart,
    TextPart,
    ToolCallPart,
    ToolReturnPart,
    UserPromptPart,
)
from pydantic_ai.models import KnownModelName, Model, ModelRequestParameters
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.openai import OpenAIProvider
from pydantic_ai.settings import ModelSettings
from pydantic_ai.tools import ToolDefinition

from gatekeep.agent.messages import (
    AssistantMessage,
    CustomMessage,
    Message,
    SystemMessage,
    ToolCall,
    ToolMessage,
    UserMessage,
)
from gatekeep.agent.tools import ToolSpec
from gatekeep.providers.base import ChatProvider, ProviderError
from gatekeep.providers.config import LlmConfig
from gatekeep.providers.pricing import calculate_cost
from gatekeep.types import TokenUsage

logger = logging.getLogger(__name__)


class PydanticAIProvider(ChatProvider):
    """ChatProvider backed by any pydantic-ai model.

    Example:
        # OpenAI-compatible endpoint (OpenRouter)
        provider = PydanticAIProvider.from_config(LlmConfig(), api_key="sk-...")

        # Any pydantic-ai shorthand, credentials from the backend's env vars
        provider = PydanticAIProvider(model="anthropic:claude-sonnet-4-5")
    """

    def __init__(
        self,
        model: Model | KnownModelName | str,
        settings: ModelSettings | None = None,
    ) -> None:
        """Initialize provider with a model and request settings.

        Args:
            model: pydantic-ai model object or "provider:model" shorthand
            settings: Model settings sent with every request
        """
        self._model = model
        self._settings = settings
        self._model_name, self._provider_name = self._parse_model_name(model)

    @classmethod
    def from_config(cls, config: LlmConfig, api_key: str | None = None) -> "PydanticAIProvider":
        """Build a provider from the ``[llm]`` config table.

        Args:
            config: LLM configuration
            api_key: API key for the OpenAI-compatible endpoint (if any)

        Returns:
            Configured provider
        """
        model: Model | str
        if config.base_url:
            _, _, model_name = config.model.rpartition(":")
            model = OpenAIChatModel(
                model_name,
                provider=OpenAIProvider(base_url=config.base_url, api_key=api_key),
            )
        else:
            model = config.model
        return cls(model=model, settings=build_settings(config))

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def provider_name(self) -> str:
        return self._provider_name

    def _parse_model_name(self, model: Model | KnownModelName | str) -> tuple[str, str]:
        """Extract model name and provider from model identifier.

        Args:
            model: Model specification

        Returns:
            Tuple of (model_name, provider_name)
        """
        if isinstance(model, Model):
            return (model.model_name, model.system)

        # Shorthand like "anthropic:claude-sonnet-4-5"
        if ":" in model:
            provider, model_name = model.split(":", 1)
            return (model_name, provider)
        return (model, "unknown")

    async def call(
        self,
        messages: Sequence[Message],
        tools: Sequence[ToolSpec],
    ) -> AssistantMessage:
        """Run one model round trip.

        Raises:
            ProviderError: On any transport, HTTP or decode failure
        """
        parameters = ModelRequestParameters(
            function_tools=[to_tool_definition(spec) for spec in tools],
            allow_text_output=True,
        )
        start = time.monotonic()
        try:
            response = await model_request(
                self._model,
                to_model_messages(messages),
                model_settings=self._settings,
                model_request_parameters=parameters,
            )
        except Exception as e:
            target = f"{self._provider_name}:{self._model_name}"
            raise ProviderError(f"{target} request failed: {e}") from e
        logger.debug("Model %s replied in %.2fs", self._model_name, time.monotonic() - start)
        return self._to_assistant_message(response)

    def _to_assistant_message(self, response: ModelResponse) -> AssistantMessage:
        content = "".join(part.content for part in response.parts if isinstance(part, TextPart))
        tool_calls = [
            ToolCall(id=part.tool_call_id, name=part.tool_name, arguments=part.args_as_json_str())
            for part in response.parts
            if isinstance(part, ToolCallPart)
        ]

        request_usage = response.usage
        usage = TokenUsage(
            input_tokens=request_usage.input_tokens,
            output_tokens=request_usage.output_tokens,
            total_tokens=request_usage.input_tokens + request_usage.output_tokens,
            cache_read_tokens=request_usage.cache_read_tokens,
            cache_write_tokens=request_usage.cache_write_tokens,
            requests=1,
            tool_calls=len(tool_calls),
        )
        usage = usage.model_copy(update={"cost_usd": calculate_cost(usage, self._model_name)})
        return AssistantMessage(content=content, tool_calls=tool_calls, usage=usage)


def build_settings(config: LlmConfig) -> ModelSettings:
    """Map the ``[llm]`` table onto pydantic-ai ModelSettings."""
    settings = ModelSettings(timeout=config.timeout_seconds)
    if config.temperature is not None:
        settings["temperature"] = config.temperature
    if config.max_tokens is not None:
        settings["max_tokens"] = config.max_tokens
    if config.headers:
        settings["extra_headers"] = dict(config.headers)

    body: dict[str, Any] = dict(config.body)
    if "parallel_tool_calls" in body:
        settings["parallel_tool_calls"] = bool(body.pop("parallel_tool_calls"))
    if body:
        settings["extra_body"] = body
    return settings


def to_tool_definition(spec: ToolSpec) -> ToolDefinition:
    return ToolDefinition(
        name=spec.name,
        description=spec.description,
        parameters_json_schema=spec.parameters,
    )


def to_model_messages(messages: Sequence[Message]) -> list[ModelMessage]:
    """Convert gatekeep history into pydantic-ai request/response messages.

    Consecutive system/user/tool/custom messages are merged into one ModelRequest;
    each assistant message becomes one ModelResponse.
    """
    result: list[ModelMessage] = []
    pending: list[ModelRequestPart] = []

    for message in messages:
        if isinstance(message, AssistantMessage):
            if pending:
                result.append(ModelRequest(parts=pending))
                pending = []
            result.append(_to_model_response(message))
        elif isinstance(message, SystemMessage):
            pending.append(SystemPromptPart(content=message.content))
        elif isinstance(message, UserMessage):
            pending.append(UserPromptPart(content=message.content))
        elif isinstance(message, ToolMessage):
            pending.append(
                ToolReturnPart(
                    tool_name=message.name,
                    content=message.content,
                    tool_call_id=message.tool_call_id,
                )
            )
        elif isinstance(message, CustomMessage) and message.content:
            pending.append(UserPromptPart(content=message.content))

    if pending:
        result.append(ModelRequest(parts=pending))
    return result


def _to_model_response(message: AssistantMessage) -> ModelResponse:
    parts: list[TextPart | ToolCallPart] = []
    if message.content:
        parts.append(TextPart(content=message.content))
    for call in message.tool_calls:
        parts.append(ToolCallPart(tool_name=call.name, args=call.arguments, tool_call_id=call.id))
    if not parts:
        parts.append(TextPart(content=""))
    return ModelResponse(parts=parts)
