"""Shared test fixtures."""

import asyncio
from collections.abc import Callable, Sequence

import pytest
from pydantic_ai import models

from gatekeep.agent.messages import AssistantMessage, Message
from gatekeep.agent.tools import ToolSpec
from gatekeep.providers.base import ChatProvider
from gatekeep.rules.models import Rule


@pytest.fixture(autouse=True)
def _prevent_real_api_calls() -> None:
    """Safety: block real API calls in all tests."""
    original = models.ALLOW_MODEL_REQUESTS
    models.ALLOW_MODEL_REQUESTS = False
    yield
    models.ALLOW_MODEL_REQUESTS = original


class ScriptedProvider(ChatProvider):
    """Fake provider replaying a fixed list of replies.

    An Exception in the script is raised instead of returned. Once the script runs
    out every call answers "Done". With ``block=True`` calls never return until
    cancelled.
    """

    def __init__(
        self,
        replies: Sequence[AssistantMessage | Exception] = (),
        delay: float = 0.0,
        block: bool = False,
    ) -> None:
        self.replies = list(replies)
        self.delay = delay
        self.block = block
        self.calls: list[tuple[list[Message], list[ToolSpec]]] = []
        self.active = 0
        self.max_active = 0
        self.cancelled = 0

    @property
    def model_name(self) -> str:
        return "scripted"

    async def call(
        self, messages: Sequence[Message], tools: Sequence[ToolSpec]
    ) -> AssistantMessage:
        self.calls.append((list(messages), list(tools)))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.block:
                await asyncio.Event().wait()
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        finally:
            self.active -= 1

        reply = self.replies.pop(0) if self.replies else AssistantMessage(content="Done")
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
def scripted() -> type[ScriptedProvider]:
    """The ScriptedProvider class, for tests that build their own."""
    return ScriptedProvider


@pytest.fixture
def make_rule() -> Callable[..., Rule]:
    """Factory for rules with sensible defaults."""

    def _make(name: str = "No TODOs", **fields: object) -> Rule:
        fields.setdefault("instruction", f"Check: {name}")
        return Rule(name=name, **fields)

    return _make
