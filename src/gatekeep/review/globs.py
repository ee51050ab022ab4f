"""Path glob matching for rule scopes and the file tools.

Dialect (paths always use ``/``):

- ``*`` and ``?`` match any character, ``/`` included, like globset's default;
  with ``literal_separator=True`` (the file tools) they stay within one segment
- ``**`` as a whole segment matches any number of segments, including none,
  so ``src/**/*.py`` matches ``src/a.py`` and ``src/x/y/a.py``
- ``[abc]``, ``[a-z]`` and ``[!abc]`` character classes
- ``{a,b}`` alternation (may nest)
- ``\\`` escapes the next character

Patterns are translated to regular expressions once and matched with
``fullmatch``.
"""

import logging
import re
from collections.abc import Iterable

logger = logging.getLogger(__name__)

_CLASS_SPECIALS = frozenset("\\[]&~|^")


class InvalidGlobError(Exception):
    """A glob pattern could not be compiled."""

    def __init__(self, pattern: str, reason: str) -> None:
        self.pattern = pattern
        self.reason = reason
        self.message = f"Invalid glob pattern {pattern!r}: {reason}"
        super().__init__(self.message)


def translate(pattern: str, literal_separator: bool = False) -> str:
    """Translate a glob pattern into an (unanchored) regular expression.

    Args:
        pattern: Glob pattern
        literal_separator: Keep ``*``, ``?`` and negated classes from matching ``/``

    Raises:
        InvalidGlobError: On an empty pattern or an unclosed ``[`` / ``{``
    """
    if not pattern:
        raise InvalidGlobError(pattern, "empty pattern")

    star = "[^/]*" if literal_separator else ".*"
    parts: list[str] = []
    braces = 0
    i, n = 0, len(pattern)

    while i < n:
        c = pattern[i]
        if c == "*":
            if pattern.startswith("**", i):
                segment_start = i == 0 or pattern[i - 1] == "/"
                after = i + 2
                if segment_start and after < n and pattern[after] == "/":
                    parts.append("(?:[^/]*/)*")
                    i = after + 1
                    continue
                if segment_start and after == n:
                    parts.append(".*")
                    i = after
                    continue
                # "**" inside a segment behaves like "*"
                parts.append(star)
                i = after
                continue
            parts.append(star)
            i += 1
        elif c == "?":
            parts.append("[^/]" if literal_separator else ".")
            i += 1
        elif c == "[":
            i = _translate_class(pattern, i, parts, literal_separator)
        elif c == "{":
            braces += 1
            parts.append("(?:")
            i += 1
        elif c == "," and braces:
            parts.append("|")
            i += 1
        elif c == "}" and braces:
            braces -= 1
            parts.append(")")
            i += 1
        elif c == "\\" and i + 1 < n:
            parts.append(re.escape(pattern[i + 1]))
            i += 2
        else:
            parts.append(re.escape(c))
            i += 1

    if braces:
        raise InvalidGlobError(pattern, "unclosed alternation '{'")
    return "".join(parts)


def _translate_class(
    pattern: str, start: int, parts: list[str], literal_separator: bool
) -> int:
    """Translate the ``[...]`` class at ``start``; returns the index after ``]``."""
    i = start + 1
    negate = i < len(pattern) and pattern[i] in "!^"
    if negate:
        i += 1
    body_start = i
    # A "]" right after the opening bracket is a literal member
    if i < len(pattern) and pattern[i] == "]":
        i += 1
    end = pattern.find("]", i)
    if end == -1:
        raise InvalidGlobError(pattern, "unclosed character class '['")

    body = "".join("\\" + ch if ch in _CLASS_SPECIALS else ch for ch in pattern[body_start:end])
    if negate:
        parts.append(f"[^/{body}]" if literal_separator else f"[^{body}]")
    else:
        parts.append(f"[{body}]")
    return end + 1


def compile_glob(pattern: str, literal_separator: bool = False) -> re.Pattern[str]:
    """Compile one glob into a regex matched against whole paths.

    Raises:
        InvalidGlobError: If the pattern is malformed
    """
    try:
        return re.compile(translate(pattern, literal_separator), re.DOTALL)
    except re.error as e:
        raise InvalidGlobError(pattern, str(e)) from e


class GlobSet:
    """A set of compiled globs; a path matches when any glob matches it."""

    def __init__(self, patterns: Iterable[str] = (), literal_separator: bool = False) -> None:
        """Compile every pattern.

        Args:
            patterns: Glob patterns
            literal_separator: Keep wildcards within one path segment

        Raises:
            InvalidGlobError: On the first malformed pattern
        """
        self.patterns: list[str] = []
        self._regexes: list[re.Pattern[str]] = []
        for pattern in patterns:
            self._regexes.append(compile_glob(pattern, literal_separator))
            self.patterns.append(pattern)

    @classmethod
    def lenient(cls, patterns: Iterable[str], context: str = "") -> "GlobSet":
        """Compile what can be compiled; malformed patterns are logged and skipped.

        Args:
            patterns: Glob patterns
            context: Where the patterns come from, for the log line (e.g. a rule name)
        """
        valid: list[str] = []
        for pattern in patterns:
            try:
                compile_glob(pattern)
            except InvalidGlobError as e:
                where = f" in {context}" if context else ""
                logger.warning("Skipping invalid glob%s: %s", where, e.message)
                continue
            valid.append(pattern)
        return cls(valid)

    def __len__(self) -> int:
        return len(self._regexes)

    def matches(self, path: str) -> bool:
        path = path.removeprefix("./")
        return any(regex.fullmatch(path) for regex in self._regexes)
