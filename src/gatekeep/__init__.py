"""gatekeep: rule-driven AI code review for git change-sets."""

__version__ = "0.1.0"
