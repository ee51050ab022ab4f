"""Agent layer: conversation model, tool registry, and the tool-calling loop."""

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
from gatekeep.agent.tools import FunctionTool, Tool, ToolRegistry, ToolSpec
from gatekeep.agent.loop import AgentLoop, AgentOutcome, AgentState

__all__ = [
    "AgentLoop",
    "AgentOutcome",
    "AgentState",
    "AssistantMessage",
    "CustomMessage",
    "FunctionTool",
    "Message",
    "SystemMessage",
    "TimedMessage",
    "Tool",
    "ToolCall",
    "ToolMessage",
    "ToolRegistry",
    "ToolSpec",
    "UserMessage",
]
