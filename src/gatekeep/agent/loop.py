"""AgentLoop: the per-task tool-calling conversation.

The loop is a small state machine:

    AWAITING_MODEL --tool calls--> EXECUTING_TOOLS --results appended--> AWAITING_MODEL
    AWAITING_MODEL --text reply--> DONE
    AWAITING_MODEL --empty reply--> (nudge appended) AWAITING_MODEL
    AWAITING_MODEL --shutdown observed--> CANCELLED

There is no turn ceiling: a conversation ends when the model answers with text,
when shutdown is requested, or when the provider raises.
"""

import asyncio
import contextlib
import logging
import time
from enum import StrEnum
from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field

from gatekeep.agent.messages import (
    AssistantMessage,
    CustomMessage,
    Message,
    SystemMessage,
    TimedMessage,
    ToolCall,
    ToolMessage,
    UserMessage,
)
from gatekeep.agent.tools import ToolRegistry
from gatekeep.providers.base import ChatProvider
from gatekeep.types import TokenUsage

logger = logging.getLogger(__name__)

NUDGE_NAME = "nudge"
NUDGE_TEXT = (
    "Your previous reply was empty. Either call one of the available tools, "
    "or reply with a short final answer if the review is complete."
)


class CancelSignal(Protocol):
    """Anything the loop can poll and await for a stop request."""

    def is_set(self) -> bool: ...

    async def wait(self) -> None: ...


class AgentState(StrEnum):
    """Where a conversation currently is."""

    AWAITING_MODEL = "awaiting_model"
    EXECUTING_TOOLS = "executing_tools"
    DONE = "done"
    CANCELLED = "cancelled"


class AgentOutcome(BaseModel):
    """Terminal state of one conversation."""

    state: AgentState
    final_output: str | None = None
    usage: TokenUsage = Field(default_factory=TokenUsage)
    turns: int = Field(default=0, description="Number of model round trips made")

    model_config = ConfigDict(frozen=True)


class AgentLoop:
    """Drive one conversation between a provider and a tool registry.

    The history is owned by the loop and only ever appended to, so a cancelled or
    failed conversation still leaves a complete trace behind.
    """

    def __init__(
        self,
        provider: ChatProvider,
        registry: ToolRegistry,
        system: str,
        user: str,
        cancel: CancelSignal | None = None,
        label: str = "",
    ) -> None:
        """Seed the conversation.

        Args:
            provider: Model backend
            registry: Tools offered to the model
            system: System prompt
            user: Initial user message
            cancel: Optional stop signal observed before and during model calls
            label: Prefix for log lines (e.g. "[Worker 3]")
        """
        self.provider = provider
        self.registry = registry
        self.state = AgentState.AWAITING_MODEL
        self.usage = TokenUsage()
        self.turns = 0
        self.history: list[TimedMessage] = []
        self._cancel = cancel
        self._label = label
        self._started = time.monotonic()
        self._final_output: str | None = None
        self._pending_calls: list[ToolCall] = []

        self._append(SystemMessage(content=system))
        self._append(UserMessage(content=user))

    @property
    def messages(self) -> list[Message]:
        return [entry.message for entry in self.history]

    async def run(self) -> AgentOutcome:
        """Run the conversation until it is DONE or CANCELLED.

        Returns:
            The terminal outcome

        Raises:
            ProviderError: If a model round trip fails
        """
        while self.state not in (AgentState.DONE, AgentState.CANCELLED):
            if self.state is AgentState.AWAITING_MODEL:
                await self._await_model()
            else:
                await self._execute_tools()

        return AgentOutcome(
            state=self.state,
            final_output=self._final_output,
            usage=self.usage,
            turns=self.turns,
        )

    async def _await_model(self) -> None:
        if self._cancel is not None and self._cancel.is_set():
            self._mark_cancelled()
            return

        reply = await self._request_model()
        if reply is None:
            self._mark_cancelled()
            return

        self.turns += 1
        self._append(reply)
        if reply.usage is not None:
            self.usage = self.usage + reply.usage

        if reply.has_tool_calls:
            self._pending_calls = list(reply.tool_calls)
            self.state = AgentState.EXECUTING_TOOLS
        elif reply.content.strip():
            self._final_output = reply.content
            self.state = AgentState.DONE
        else:
            logger.debug("%s Empty model reply, nudging", self._label)
            self._append(CustomMessage(name=NUDGE_NAME, body={"content": NUDGE_TEXT}))

    async def _request_model(self) -> AssistantMessage | None:
        """One provider call, raced against the stop signal.

        Returns:
            The reply, or None if the stop signal fired first
        """
        request = asyncio.ensure_future(self.provider.call(self.messages, self.registry.specs))
        if self._cancel is None:
            return await request

        stop = asyncio.ensure_future(self._cancel.wait())
        try:
            done, _ = await asyncio.wait({request, stop}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop.cancel()
            if not request.done():
                request.cancel()

        if request in done:
            return request.result()

        with contextlib.suppress(asyncio.CancelledError):
            await request
        return None

    async def _execute_tools(self) -> None:
        calls, self._pending_calls = self._pending_calls, []

        logger.debug(
            "%s Executing %d tool call(s): %s",
            self._label,
            len(calls),
            ", ".join(call.name for call in calls),
        )
        results = await asyncio.gather(*(self.registry.dispatch(call) for call in calls))
        for call, result in zip(calls, results, strict=True):
            self._append(ToolMessage(tool_call_id=call.id, name=call.name, content=result))

        self.state = AgentState.AWAITING_MODEL

    def _mark_cancelled(self) -> None:
        logger.info("%s Shutdown requested, stopping conversation", self._label)
        self.state = AgentState.CANCELLED

    def _append(self, message: Message) -> None:
        self.history.append(
            TimedMessage(message=message, elapsed_secs=time.monotonic() - self._started)
        )
