"""Rough token accounting so an agent can budget what it reads.

The estimate is ceil(characters / chars_per_token), 4 by default. It is
meant for "is this file too big to read whole", not billing.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

from recursa.graph import iter_texts
from recursa.models import DirectoryTokenStats, FileTokenBreakdown, FileTokenSize, TokenCount
from recursa.walker import walk

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator
    from pathlib import Path

    from recursa.ignore import IgnoreMatcher

CHARS_PER_TOKEN = 4
_NODE_SUFFIX = ".md"


def estimate_tokens(text: str, chars_per_token: int = CHARS_PER_TOKEN) -> int:
    return math.ceil(len(text) / max(1, chars_per_token))


def count_text(text: str, chars_per_token: int = CHARS_PER_TOKEN) -> TokenCount:
    return TokenCount(tokens=estimate_tokens(text, chars_per_token), characters=len(text))


def count_blocks(content: str) -> int:
    """Outline blocks: lines that start with "-" once trimmed."""
    return sum(1 for line in content.split("\n") if line.strip().startswith("-"))


def breakdown(rel_path: str, content: str, chars_per_token: int = CHARS_PER_TOKEN) -> FileTokenBreakdown:
    return FileTokenBreakdown(
        file_path=rel_path,
        tokens=estimate_tokens(content, chars_per_token),
        characters=len(content),
        blocks=count_blocks(content),
    )


def file_sizes(
    root: Path,
    matcher: IgnoreMatcher | None = None,
    *,
    start: Path | None = None,
    chars_per_token: int = CHARS_PER_TOKEN,
) -> Iterator[FileTokenSize]:
    """Token size of every readable .md file under start (root when None)."""
    for _, rel, content in iter_texts(root, matcher, suffix=_NODE_SUFFIX, start=start):
        yield FileTokenSize(file_path=rel, tokens=estimate_tokens(content, chars_per_token))


def largest(sizes: Iterable[FileTokenSize], limit: int = 10) -> list[FileTokenSize]:
    """Biggest first; ties keep walk order."""
    ranked = sorted(sizes, key=lambda s: s.tokens, reverse=True)
    return ranked[: max(0, limit)]


def directory_stats(sizes: Iterable[FileTokenSize]) -> DirectoryTokenStats:
    stats = DirectoryTokenStats()
    for size in sizes:
        stats.total_tokens += size.tokens
        stats.total_files += 1
        if stats.largest_file is None or size.tokens > stats.largest_file.tokens:
            stats.largest_file = size
    return stats


def memory_usage(root: Path, matcher: IgnoreMatcher | None = None) -> int:
    """Bytes on disk of every walked file."""
    total = 0
    for path in walk(root, matcher):
        try:
            total += path.stat().st_size
        except FileNotFoundError:
            # removed between listing and stat
            continue
    return total
