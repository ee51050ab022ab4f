"""Tool registry: named, schema-described capabilities offered to the model.

The loop only depends on the ``Tool`` contract (a spec plus ``invoke(args) -> str``)
and dispatches by name through ``ToolRegistry``. Every failure mode of a call is
turned into a result string so the model can see it and recover.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from gatekeep.agent.messages import ToolCall

logger = logging.getLogger(__name__)

ArgsT = TypeVar("ArgsT", bound=BaseModel)


class ToolSpec(BaseModel):
    """Catalog entry for one tool: name, description and JSON-Schema parameters."""

    name: str
    description: str = ""
    parameters: dict[str, Any] = Field(default_factory=lambda: {"type": "object"})

    model_config = ConfigDict(frozen=True)


class Tool(ABC):
    """A capability the model can call by name."""

    @property
    @abstractmethod
    def spec(self) -> ToolSpec:
        """Catalog entry sent to the model."""
        ...

    @property
    def name(self) -> str:
        return self.spec.name

    @abstractmethod
    async def invoke(self, args: dict[str, Any]) -> str:
        """Run the tool with decoded arguments and return its textual result."""
        ...


class FunctionTool(Tool, Generic[ArgsT]):
    """Tool backed by an async function and a pydantic model describing its arguments.

    Arguments are validated with the model before the function runs, so the function
    always receives a typed object. Validation errors propagate to the registry.
    """

    def __init__(
        self,
        name: str,
        description: str,
        args_model: type[ArgsT],
        fn: Callable[[ArgsT], Awaitable[str]],
    ) -> None:
        self._spec = ToolSpec(
            name=name,
            description=description,
            parameters=args_model.model_json_schema(),
        )
        self._args_model = args_model
        self._fn = fn

    @property
    def spec(self) -> ToolSpec:
        return self._spec

    async def invoke(self, args: dict[str, Any]) -> str:
        parsed = self._args_model.model_validate(args)
        return await self._fn(parsed)


class ToolRegistry:
    """Name -> Tool map for one task's tool catalog."""

    def __init__(self, tools: Iterable[Tool] = ()) -> None:
        self._tools: dict[str, Tool] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        """Add a tool to the catalog.

        Raises:
            ValueError: If a tool with the same name is already registered
        """
        if tool.name in self._tools:
            raise ValueError(f"Tool already registered: {tool.name}")
        self._tools[tool.name] = tool

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    @property
    def specs(self) -> list[ToolSpec]:
        """Tool catalog in registration order."""
        return [tool.spec for tool in self._tools.values()]

    async def dispatch(self, call: ToolCall) -> str:
        """Resolve and invoke one tool call, converting every failure into a result.

        Args:
            call: Tool call requested by the model

        Returns:
            The tool output, or an error description the model can act on
        """
        tool = self._tools.get(call.name)
        if tool is None:
            logger.debug("Model called unknown tool %r", call.name)
            return f"Unknown tool: {call.name}"

        try:
            args = call.parse_arguments()
        except ValueError as e:
            # json.JSONDecodeError is a ValueError subclass
            return f"Error: could not decode arguments for tool '{call.name}': {e}"

        try:
            return await tool.invoke(args)
        except ValidationError as e:
            return f"Error: invalid arguments for tool '{call.name}':\n{_format_validation(e)}"
        except Exception as e:
            logger.warning("Tool %r failed: %s", call.name, e)
            return f"Error: tool '{call.name}' failed: {e}"


def _format_validation(error: ValidationError) -> str:
    lines = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "(root)"
        lines.append(f"- {location}: {item['msg']}")
    return "\n".join(lines)

