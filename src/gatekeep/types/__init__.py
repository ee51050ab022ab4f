"""gatekeep foundation types."""

from gatekeep.types.base import TokenUsage

__all__ = ["TokenUsage"]
