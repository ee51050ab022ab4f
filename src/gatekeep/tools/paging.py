"""Character-window paging for long tool output."""

DEFAULT_NUM_CHARS = 5000


def truncate_with_hint(content: str, start: int = 0, num_chars: int = DEFAULT_NUM_CHARS) -> str:
    """Return ``num_chars`` characters of ``content`` starting at ``start``.

    When more text follows, a footer says how much was shown and which
    ``start_char`` reads the next page.
    """
    total = len(content)
    start = min(max(start, 0), total)
    end = min(start + max(num_chars, 0), total)
    window = content[start:end]
    if end < total:
        window += f"\n\n---\ntruncated [{end}/{total} chars]"
        window += f"\nHint: Use start_char={end} to read more."
    return window
