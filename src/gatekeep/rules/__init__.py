"""Review rules and the violations they produce."""

from gatekeep.rules.models import Rule, Violation

__all__ = ["Rule", "Violation"]
