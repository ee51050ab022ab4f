"""Git access for gatekeep."""

from gatekeep.git.source import BaseRef, GitError, GitSource, parse_base, should_include_diff

__all__ = ["BaseRef", "GitError", "GitSource", "parse_base", "should_include_diff"]
