"""Path sandbox: every caller-supplied path is resolved through here before I/O.

    sandbox = PathSandbox("/srv/graph")
    sandbox.resolve("notes/today.md")      # -> /srv/graph/notes/today.md
    sandbox.resolve("../etc/passwd")       # -> PathTraversalError

Resolution joins the untrusted path onto the root, normalises it, resolves
symlinks on both sides (the not-yet-existing tail of a path about to be created
is kept as normalised) and then requires the candidate to be the root or to
start with root + separator. On filesystems that fold case the comparison is
done on casefolded strings.
"""

from __future__ import annotations

import os
import re
import sys
from pathlib import Path

from recursa.errors import NotFoundError, PathTraversalError, SecurityError

# "C:", "c:foo", "C:\\x": on Windows a drive switch can never be relative to the root
_DRIVE_RE = re.compile(r"^[A-Za-z]:")
_HAS_DRIVES = os.name == "nt"
_CASE_FOLDING_PLATFORMS = ("win32", "cygwin", "darwin")


def _check_raw(user_path: str) -> None:
    """Reject inputs that are unsafe regardless of where they would resolve."""
    if any(ord(ch) < 32 or ord(ch) == 127 for ch in user_path):
        msg = "Security Error: control characters are not allowed in paths."
        raise SecurityError(msg)
    if _HAS_DRIVES and _DRIVE_RE.match(user_path):
        msg = f"Security Error: drive-qualified paths are not allowed: {user_path!r}"
        raise SecurityError(msg)
    if user_path.startswith(("\\\\", "//", "\\/", "/\\")):
        msg = f"Security Error: UNC-style paths are not allowed: {user_path!r}"
        raise SecurityError(msg)


def _unify_separators(user_path: str) -> str:
    if os.sep == "/":
        return user_path.replace("\\", "/")
    return user_path.replace("/", os.sep)


def is_case_insensitive(directory: str) -> bool:
    """Probe whether the filesystem holding directory folds case.

    Looks up the directory's own name with swapped case; falls back to the
    platform default when the name has no cased characters (e.g. "/").
    """
    head, tail = os.path.split(directory.rstrip(os.sep) or os.sep)
    swapped = tail.swapcase()
    if not tail or swapped == tail:
        return sys.platform.startswith(_CASE_FOLDING_PLATFORMS)
    try:
        return os.path.samefile(directory, os.path.join(head, swapped))
    except OSError:
        return False


class PathSandbox:
    """Bounds every path to a single, canonical graph root."""

    def __init__(self, root: Path | str) -> None:
        real = os.path.realpath(os.fspath(root))
        if not os.path.isdir(real):
            msg = f"Graph root is not a directory: {root}"
            raise NotFoundError(msg)
        self._root = real
        self.case_insensitive = is_case_insensitive(real)

    @property
    def root(self) -> Path:
        return Path(self._root)

    def _fold(self, s: str) -> str:
        return s.casefold() if self.case_insensitive else s

    def contains(self, candidate: str) -> bool:
        """True when candidate (already canonical) is the root or beneath it."""
        root = self._fold(self._root)
        cand = self._fold(candidate)
        if cand == root:
            return True
        prefix = root if root.endswith(os.sep) else root + os.sep
        return cand.startswith(prefix)

    def resolve(self, user_path: str | os.PathLike[str]) -> Path:
        """Resolve an untrusted relative path; raise SecurityError if it escapes."""
        raw = os.fspath(user_path)
        _check_raw(raw)
        joined = os.path.normpath(os.path.join(self._root, _unify_separators(raw)))
        canonical = os.path.realpath(joined)
        if not self.contains(canonical):
            msg = "Security Error: Path traversal attempt detected."
            raise PathTraversalError(msg)
        return Path(canonical)

    def resolve_entry(self, user_path: str | os.PathLike[str]) -> Path:
        """Like resolve(), but a symlink in the last component names the link itself.

        Used for operations on directory entries (delete, rename) that must not
        reach through a link to its target.
        """
        resolved = self.resolve(user_path)
        joined = os.path.normpath(os.path.join(self._root, _unify_separators(os.fspath(user_path))))
        if not os.path.islink(joined):
            return resolved
        parent = os.path.realpath(os.path.dirname(joined))
        if not self.contains(parent):
            msg = "Security Error: Path traversal attempt detected."
            raise PathTraversalError(msg)
        return Path(parent, os.path.basename(joined))

    def relative(self, path: Path | str) -> str:
        """POSIX-style path of a resolved path relative to the root ("" for the root)."""
        rel = os.path.relpath(os.fspath(path), self._root)
        return "" if rel == os.curdir else Path(rel).as_posix()

    def is_root(self, path: Path | str) -> bool:
        return self._fold(os.fspath(path)) == self._fold(self._root)


def resolve_secure_path(graph_root: Path | str, user_path: str) -> Path:
    """Resolve user_path against graph_root, rejecting anything outside it."""
    return PathSandbox(graph_root).resolve(user_path)
