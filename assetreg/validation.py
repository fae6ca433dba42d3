# assetreg/validation.py
"""
Field validation for asset metadata.

Pure predicates over caller-supplied values. None of them touch stored
state, so they can run before any write is attempted.
"""

from typing import Any, List

MAX_TITLE_LENGTH = 64
MAX_DESCRIPTION_LENGTH = 128
MAX_TAG_LENGTH = 32
MAX_TAGS = 10
MAX_SIZE = 1_000_000_000  # exclusive


def _bounded_text(value: Any, limit: int) -> bool:
    return isinstance(value, str) and 0 < len(value) <= limit


def title_valid(text: Any) -> bool:
    """Title must be 1..64 characters."""
    return _bounded_text(text, MAX_TITLE_LENGTH)


def description_valid(text: Any) -> bool:
    """Description must be 1..128 characters."""
    return _bounded_text(text, MAX_DESCRIPTION_LENGTH)


def size_valid(n: Any) -> bool:
    """Size must be an integer in (0, 1_000_000_000)."""
    # bool is an int subclass
    if isinstance(n, bool) or not isinstance(n, int):
        return False
    return 0 < n < MAX_SIZE


def tag_valid(tag: Any) -> bool:
    return _bounded_text(tag, MAX_TAG_LENGTH)


def tags_valid(tags: Any) -> bool:
    """
    Tag collection must be a non-empty list of at most 10 valid tags.
    """
    if not isinstance(tags, (list, tuple)):
        return False
    if not 0 < len(tags) <= MAX_TAGS:
        return False
    return all(tag_valid(t) for t in tags)


def invalid_fields(title: Any, size: Any, description: Any, tags: Any) -> List[str]:
    """
    Check every metadata field.

    Returns:
        Names of the failing fields, in the order title, size,
        description, tags. Empty if all fields are valid.
    """
    checks = [
        ("title", title_valid(title)),
        ("size", size_valid(size)),
        ("description", description_valid(description)),
        ("tags", tags_valid(tags)),
    ]
    return [name for name, ok in checks if not ok]
