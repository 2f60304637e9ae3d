"""Lazy directory walker used by every traversal-based operation.

walk() is a generator backed by an explicit stack of pending directories, so
deeply nested trees never hit the interpreter's recursion limit. Each call
re-reads the tree; nothing is cached between calls and every directory handle
is closed before the next one is opened.

Ignored directories are pruned (their contents are never tested), ignored
files are skipped, and symbolic links are neither followed nor yielded, since
a link inside the root may point anywhere. A directory that cannot be opened
is reported as a WalkError and the walk continues with its siblings.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from recursa.errors import NotFoundError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from recursa.ignore import IgnoreMatcher

logger = logging.getLogger("recursa.walker")


@dataclass(frozen=True)
class WalkError:
    """A subtree that could not be traversed."""

    path: Path
    error: OSError

    def __str__(self) -> str:
        return f"cannot traverse {self.path}: {self.error.strerror or self.error}"


def _log_walk_error(err: WalkError) -> None:
    logger.warning("%s", err)


def _inside_ignored(root: Path, start: Path, matcher: IgnoreMatcher) -> bool:
    """True when start or one of its ancestors below root is an ignored directory."""
    try:
        rel = start.relative_to(root).as_posix()
    except ValueError:
        return False
    return matcher.is_ignored(rel, is_dir=True)


def walk(
    root: Path | str,
    matcher: IgnoreMatcher | None = None,
    *,
    start: Path | str | None = None,
    on_error: Callable[[WalkError], None] | None = None,
) -> Iterator[Path]:
    """Yield every non-ignored regular file under root, depth-first, in name order.

    start narrows the walk to one subdirectory of root; ignore rules are still
    matched against paths relative to root, and a start inside an ignored
    directory yields nothing.
    """
    root = Path(root)
    first = Path(start) if start is not None else root
    if not first.is_dir():
        msg = f"Not a directory: {first}"
        raise NotFoundError(msg)
    report = on_error or _log_walk_error
    if matcher is not None and start is not None and _inside_ignored(root, first, matcher):
        return

    stack: list[Path] = [first]
    while stack:
        directory = stack.pop()
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as exc:
            report(WalkError(directory, exc))
            continue

        subdirs: list[Path] = []
        for entry in entries:
            try:
                if entry.is_symlink():
                    continue
                is_dir = entry.is_dir(follow_symlinks=False)
                is_file = not is_dir and entry.is_file(follow_symlinks=False)
            except OSError as exc:
                report(WalkError(Path(entry.path), exc))
                continue

            path = Path(entry.path)
            if matcher is not None:
                rel = path.relative_to(root).as_posix()
                if matcher.matches(rel, is_dir=is_dir):
                    continue
            if is_dir:
                subdirs.append(path)
            elif is_file:
                yield path

        # Reversed so the alphabetically first subdirectory is popped next
        stack.extend(reversed(subdirs))


def walk_relative(
    root: Path | str,
    matcher: IgnoreMatcher | None = None,
    *,
    start: Path | str | None = None,
    on_error: Callable[[WalkError], None] | None = None,
) -> Iterator[tuple[Path, str]]:
    """walk() paired with each file's POSIX path relative to root."""
    root = Path(root)
    for path in walk(root, matcher, start=start, on_error=on_error):
        yield path, path.relative_to(root).as_posix()
