"""GraphStore: the operation surface an agent (or the CLI) drives.

    store = GraphStore("/srv/graph")
    store.write_file("people/ada.md", "- # Ada\\n  - type:: person\\n")
    store.read_file("people/ada.md")
    store.query_graph("(property type:: person)")
    store.save_checkpoint()
    ...
    store.revert_to_last_checkpoint()

Every path argument is untrusted and relative to the graph root; it goes
through PathSandbox before any I/O. The ignore file is re-read on every
traversal, so edits to it take effect on the next call. Nothing else is
cached: content on disk is the only state.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from recursa import graph, tokens
from recursa.checkpoint import CheckpointManager
from recursa.config import RecursaConfig
from recursa.errors import ConflictError, NotFoundError, SecurityError, ValidationError
from recursa.git import GitBackend
from recursa.ignore import load_matcher
from recursa.models import FileTokenSize
from recursa.sandbox import PathSandbox
from recursa.validator import validate_outline

if TYPE_CHECKING:
    from collections.abc import Iterator

    from recursa.ignore import IgnoreMatcher
    from recursa.models import (
        Commit,
        DirectoryTokenStats,
        FileTokenBreakdown,
        QueryResult,
        TokenCount,
        ValidationResult,
    )

logger = logging.getLogger("recursa.store")


class GraphStore:
    """Sandboxed file store over one graph root."""

    def __init__(
        self,
        root: Path | str | None = None,
        config: RecursaConfig | None = None,
        git: GitBackend | None = None,
    ) -> None:
        if config is None:
            if root is None:
                msg = "GraphStore needs a root or a config"
                raise ValueError(msg)
            config = RecursaConfig.for_root(root)
        self.config = config
        self.sandbox = PathSandbox(root if root is not None else config.graph_path)
        self.git = git or GitBackend(
            self.sandbox.root,
            user_name=config.git.user_name,
            user_email=config.git.user_email,
        )
        self.checkpoints = CheckpointManager(self.git, config.git.checkpoint_message)

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    @property
    def root(self) -> Path:
        return self.sandbox.root

    def get_graph_root(self) -> str:
        return str(self.sandbox.root)

    def resolve_path(self, rel_path: str) -> Path:
        return self.sandbox.resolve(rel_path)

    def _resolve_mutable(self, rel_path: str, *, entry: bool = False) -> Path:
        path = self.sandbox.resolve_entry(rel_path) if entry else self.sandbox.resolve(rel_path)
        if self.sandbox.is_root(path):
            msg = "Security Error: the graph root itself cannot be modified."
            raise SecurityError(msg)
        return path

    def _matcher(self) -> IgnoreMatcher:
        g = self.config.graph
        return load_matcher(self.root, g.ignore_file, g.default_ignores)

    def _chars_per_token(self) -> int:
        return self.config.tokens.chars_per_token

    def _directory(self, rel_path: str | None) -> Path:
        path = self.sandbox.resolve(rel_path) if rel_path else self.root
        if not path.is_dir():
            msg = f"Directory not found: {rel_path}"
            raise NotFoundError(msg)
        return path

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def read_file(self, rel_path: str) -> str:
        """Exact file content; line endings are returned untranslated."""
        path = self.sandbox.resolve(rel_path)
        try:
            with path.open(encoding="utf-8", newline="") as f:
                return f.read()
        except FileNotFoundError as exc:
            msg = f"File not found: {rel_path}"
            raise NotFoundError(msg) from exc

    def file_exists(self, rel_path: str) -> bool:
        return self.sandbox.resolve(rel_path).exists()

    def list_files(self, rel_path: str | None = None) -> list[str]:
        """Entry names of one directory, sorted, ignored entries left out."""
        directory = self._directory(rel_path)
        matcher = self._matcher()
        names: list[str] = []
        with os.scandir(directory) as it:
            for entry in it:
                child = self.sandbox.relative(entry.path)
                if matcher.is_ignored(child, is_dir=entry.is_dir(follow_symlinks=False)):
                    continue
                names.append(entry.name)
        return sorted(names)

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def validate(self, content: str) -> ValidationResult:
        return validate_outline(content)

    def _check_content(self, path: Path, content: str) -> None:
        if not self.config.graph.should_validate(path):
            return
        result = validate_outline(content)
        if not result.is_valid:
            msg = f"Invalid outline in {self.sandbox.relative(path)}: " + "; ".join(result.messages())
            raise ValidationError(msg, result.errors)

    def _write_atomic(self, path: Path, content: str) -> None:
        # Write to a sibling tmp file then rename so readers see old or new content
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
                f.write(content)
            os.chmod(tmp, path.stat().st_mode & 0o777 if path.exists() else 0o644)
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def write_file(self, rel_path: str, content: str) -> bool:
        """Create or overwrite a file, creating parent directories.

        Outline documents are validated first; an invalid one is not written at all.
        """
        path = self._resolve_mutable(rel_path)
        self._check_content(path, content)
        self._write_atomic(path, content)
        logger.debug("wrote %s (%d chars)", rel_path, len(content))
        return True

    def update_file(self, rel_path: str, old_content: str, new_content: str) -> bool:
        """Replace the first occurrence of old_content; ConflictError if it is absent."""
        path = self._resolve_mutable(rel_path)
        current = self.read_file(rel_path)
        if old_content not in current:
            msg = f"Content to replace was not found in {rel_path}"
            raise ConflictError(msg)
        updated = current.replace(old_content, new_content, 1)
        self._check_content(path, updated)
        self._write_atomic(path, updated)
        return True

    def delete_file(self, rel_path: str) -> bool:
        """Delete a file, a symlink (never its target) or an empty directory."""
        path = self._resolve_mutable(rel_path, entry=True)
        if not os.path.lexists(path):
            msg = f"File not found: {rel_path}"
            raise NotFoundError(msg)
        if path.is_dir() and not path.is_symlink():
            path.rmdir()
        else:
            path.unlink()
        return True

    def rename(self, old_path: str, new_path: str) -> bool:
        """Move a file, symlink or directory; the target must not exist."""
        src = self._resolve_mutable(old_path, entry=True)
        dst = self._resolve_mutable(new_path, entry=True)
        if not os.path.lexists(src):
            msg = f"File not found: {old_path}"
            raise NotFoundError(msg)
        if os.path.lexists(dst):
            msg = f"Target already exists: {new_path}"
            raise FileExistsError(msg)
        dst.parent.mkdir(parents=True, exist_ok=True)
        src.rename(dst)
        return True

    def create_dir(self, rel_path: str) -> bool:
        self._resolve_mutable(rel_path).mkdir(parents=True, exist_ok=True)
        return True

    # ------------------------------------------------------------------
    # Graph
    # ------------------------------------------------------------------

    def outgoing_links(self, rel_path: str) -> list[str]:
        return graph.extract_links(self.read_file(rel_path))

    def backlinks(self, rel_path: str) -> list[str]:
        target = self.sandbox.resolve(rel_path)
        return graph.backlinks(self.root, target, self._matcher())

    def search_global(self, query: str) -> list[str]:
        return graph.search_global(self.root, query, self._matcher())

    def query_graph(self, query: str) -> list[QueryResult]:
        return graph.query_graph(self.root, query, self._matcher())

    # ------------------------------------------------------------------
    # Checkpoints and history
    # ------------------------------------------------------------------

    def init_repo(self) -> bool:
        return self.git.init_repo()

    def save_checkpoint(self) -> bool:
        return self.checkpoints.save()

    def revert_to_last_checkpoint(self) -> bool:
        return self.checkpoints.revert()

    def discard_changes(self) -> bool:
        return self.checkpoints.discard()

    def _git_path(self, rel_path: str | None) -> str:
        if not rel_path:
            return ""
        return self.sandbox.relative(self.sandbox.resolve(rel_path))

    def git_diff(self, rel_path: str, from_commit: str | None = None, to_commit: str | None = None) -> str:
        return self.git.diff(self._git_path(rel_path), from_commit, to_commit)

    def git_log(self, rel_path: str | None = None, max_commits: int = 5) -> list[Commit]:
        return self.git.log(self._git_path(rel_path), max_commits)

    def changed_files(self) -> list[str]:
        return self.git.changed_files()

    def commit_changes(self, message: str) -> str:
        return self.git.commit(message)

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    def count_file_tokens(self, rel_path: str) -> TokenCount:
        return tokens.count_text(self.read_file(rel_path), self._chars_per_token())

    def estimate_read_cost(self, rel_path: str) -> int:
        return self.count_file_tokens(rel_path).tokens

    def get_token_breakdown(self, rel_path: str) -> FileTokenBreakdown:
        content = self.read_file(rel_path)
        rel = self.sandbox.relative(self.sandbox.resolve(rel_path))
        return tokens.breakdown(rel, content, self._chars_per_token())

    def get_token_counts(self, rel_paths: list[str]) -> list[FileTokenSize]:
        return [
            FileTokenSize(file_path=p, tokens=self.estimate_read_cost(p))
            for p in rel_paths
        ]

    def _sizes(self, rel_path: str | None) -> Iterator[FileTokenSize]:
        return tokens.file_sizes(
            self.root,
            self._matcher(),
            start=self._directory(rel_path),
            chars_per_token=self._chars_per_token(),
        )

    def count_directory_tokens(self, rel_path: str | None = None) -> int:
        return sum(s.tokens for s in self._sizes(rel_path))

    def get_files_by_token_size(self, rel_path: str | None = None, limit: int = 10) -> list[FileTokenSize]:
        return tokens.largest(self._sizes(rel_path), limit)

    def get_directory_token_stats(self, rel_path: str | None = None) -> DirectoryTokenStats:
        return tokens.directory_stats(self._sizes(rel_path))

    def get_memory_usage(self) -> int:
        return tokens.memory_usage(self.root, self._matcher())
