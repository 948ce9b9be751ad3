from __future__ import annotations

import re
from datetime import UTC, datetime
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Sequence

T = TypeVar("T")

_SEPARATORS = re.compile(r"[/\\\s]+")
_UNSAFE = re.compile(r"[^0-9A-Za-z._\-@]")


def safe_name(name: str) -> str:
    """Turn a branch name or repository path into a single safe file name.

    Path separators and whitespace runs collapse to `__`; any other character
    outside `[0-9A-Za-z._-@]` is dropped.

    Args:
        name (str): the branch name or path to sanitize

    Returns:
        str: a name usable as one path component
    """
    return _UNSAFE.sub("", _SEPARATORS.sub("__", name))


def normalize_exclude_prefixes(prefixes: Iterable[str]) -> list[str]:
    """Normalize excluded path prefixes.

    Strips whitespace, converts backslashes to forward slashes, removes a
    leading `./` or `/` and drops empty entries.

    Args:
        prefixes (Iterable[str]): raw prefixes from configuration

    Returns:
        list[str]: the normalized prefixes
    """
    out: list[str] = []
    for p in prefixes:
        p2 = (p or "").strip().replace("\\", "/")
        p2 = p2.removeprefix("./").lstrip("/")
        if p2:
            out.append(p2)
    return out


def is_excluded(path: str, prefixes: Sequence[str]) -> bool:
    """Check whether a repository path starts with any excluded prefix."""
    return any(path.startswith(prefix) for prefix in prefixes)


def filter_paths(paths: Iterable[str], excludes: Sequence[str]) -> list[str]:
    """Drop repository paths matching an excluded prefix, keeping order.

    Args:
        paths (Iterable[str]): repository-relative paths (POSIX separators)
        excludes (Sequence[str]): excluded path prefixes, normalized or not

    Returns:
        list[str]: retained paths
    """
    prefixes = normalize_exclude_prefixes(excludes)
    if not prefixes:
        return list(paths)
    return [p for p in paths if not is_excluded(p, prefixes)]


def chunked(items: Sequence[T], size: int) -> Iterator[list[T]]:
    """Yield consecutive slices of `items` of at most `size` elements."""
    if size <= 0:
        msg = "chunk size must be positive"
        raise ValueError(msg)
    for start in range(0, len(items), size):
        yield list(items[start : start + size])


def now_iso() -> str:
    """Return the current date and time in ISO 8601 format with timezone.

    Returns:
        str: the current date and time in ISO 8601 format with timezone
    """
    return datetime.now(UTC).astimezone().isoformat(timespec="seconds")
