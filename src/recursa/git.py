"""Thin git command-line backend: diff, log, status, commit and the stash plumbing.

Every call runs `git -C <repo> -c user.name=... -c user.email=... <args>` so
the agent's identity never depends on the machine's global git config. A
non-zero exit, a timeout or a missing git binary becomes BackendError with
git's own stderr attached.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from recursa.errors import BackendError
from recursa.models import Commit

logger = logging.getLogger("recursa.git")

_GIT_TIMEOUT = 60.0
# Unit separator: never appears in hashes, dates or one-line subjects
_FIELD_SEP = "\x1f"


class GitBackend:
    """git working tree rooted at repo_dir."""

    def __init__(
        self,
        repo_dir: Path | str,
        *,
        user_name: str = "Recursa Agent",
        user_email: str = "recursa@local",
    ) -> None:
        self.repo_dir = Path(repo_dir)
        self.user_name = user_name
        self.user_email = user_email

    # ------------------------------------------------------------------
    # Runner
    # ------------------------------------------------------------------

    def _command(self, args: tuple[str, ...]) -> list[str]:
        return [
            "git",
            "-C", str(self.repo_dir),
            "-c", f"user.name={self.user_name}",
            "-c", f"user.email={self.user_email}",
            "-c", "commit.gpgsign=false",
            *args,
        ]

    def run(self, *args: str, check: bool = True) -> str:
        """Run git and return stdout; raise BackendError on failure."""
        cmd = self._command(args)
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                check=check,
                timeout=_GIT_TIMEOUT,
            )
        except subprocess.CalledProcessError as exc:
            stderr = (exc.stderr or exc.stdout or "").strip()
            msg = f"git {args[0] if args else ''} failed: {stderr or f'exit status {exc.returncode}'}"
            raise BackendError(msg, command=cmd, stderr=stderr) from exc
        except subprocess.TimeoutExpired as exc:
            msg = f"git {args[0] if args else ''} timed out after {_GIT_TIMEOUT:.0f}s"
            raise BackendError(msg, command=cmd) from exc
        except FileNotFoundError as exc:
            msg = "git executable not found"
            raise BackendError(msg, command=cmd) from exc
        return result.stdout

    # ------------------------------------------------------------------
    # Repository
    # ------------------------------------------------------------------

    def is_repo(self) -> bool:
        try:
            out = self.run("rev-parse", "--is-inside-work-tree")
        except BackendError:
            return False
        return out.strip() == "true"

    def has_commits(self) -> bool:
        try:
            self.run("rev-parse", "--verify", "--quiet", "HEAD")
        except BackendError:
            return False
        return True

    def init_repo(self) -> bool:
        """git init plus an empty initial commit, so HEAD always exists. Idempotent."""
        if not self.is_repo():
            self.run("init")
            logger.info("initialised git repository in %s", self.repo_dir)
        if not self.has_commits():
            self.run("commit", "--allow-empty", "-m", "Initial commit")
        return True

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def diff(self, rel_path: str, from_commit: str | None = None, to_commit: str | None = None) -> str:
        """Diff of one path: from..to, against a single commit, or working tree vs HEAD."""
        if from_commit and to_commit:
            rev = [f"{from_commit}..{to_commit}"]
        elif from_commit or to_commit:
            rev = [from_commit or to_commit or "HEAD"]
        else:
            rev = ["HEAD"]
        return self.run("diff", *rev, "--", rel_path or ".")

    def log(self, rel_path: str, max_commits: int = 5) -> list[Commit]:
        fmt = _FIELD_SEP.join(("%H", "%aI", "%s"))
        args = ["log", f"-n{max(1, int(max_commits))}", f"--pretty=format:{fmt}"]
        if rel_path:
            args += ["--follow", "--", rel_path]
        out = self.run(*args)
        commits: list[Commit] = []
        for line in out.splitlines():
            if not line.strip():
                continue
            sha, date, message = (line.split(_FIELD_SEP, 2) + ["", ""])[:3]
            commits.append(Commit(hash=sha, message=message, date=date))
        return commits

    def changed_files(self) -> list[str]:
        """Every uncommitted path: staged, modified, created, deleted, renamed."""
        out = self.run("status", "--porcelain=v1", "-z", "--untracked-files=all")
        records = out.split("\0")
        paths: dict[str, None] = {}
        i = 0
        while i < len(records):
            rec = records[i]
            i += 1
            if len(rec) < 4:
                continue
            status, path = rec[:2], rec[3:]
            paths.setdefault(path, None)
            # rename / copy entries are followed by the source path
            if status[0] in "RC" or status[1] in "RC":
                i += 1
        return sorted(paths)

    def add_all(self) -> None:
        self.run("add", "-A")

    def commit(self, message: str) -> str:
        """Stage everything and commit; returns the new commit hash."""
        self.add_all()
        self.run("commit", "-m", message)
        sha = self.run("rev-parse", "HEAD").strip()
        logger.info("committed %s: %s", sha[:12], message)
        return sha

    # ------------------------------------------------------------------
    # Stash plumbing (used by CheckpointManager)
    # ------------------------------------------------------------------

    def stash_create(self, message: str) -> str:
        """Stash commit for the current changes without touching the tree; "" when clean."""
        return self.run("stash", "create", message).strip()

    def stash_store(self, sha: str, message: str) -> None:
        self.run("stash", "store", "-m", message, sha)

    def stash_depth(self) -> int:
        return len([line for line in self.run("stash", "list").splitlines() if line.strip()])

    def stash_pop(self) -> None:
        self.run("stash", "pop")

    def empty_stash_commit(self, message: str) -> str:
        """A stash-shaped commit whose trees equal HEAD: applying it changes nothing."""
        tree = self.run("rev-parse", "HEAD^{tree}").strip()
        index = self.run("commit-tree", tree, "-p", "HEAD", "-m", f"index on {message}").strip()
        return self.run("commit-tree", tree, "-p", "HEAD", "-p", index, "-m", message).strip()

    def reset_hard(self) -> None:
        self.run("reset", "--hard", "HEAD")

    def clean_untracked(self) -> None:
        self.run("clean", "-fd")
