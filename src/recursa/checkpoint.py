"""Checkpoint/revert: a one-level-addressable undo stack kept in git's stash.

    cp = CheckpointManager(git)
    cp.save()        # push the current working tree state (tree left as is)
    ...              # speculative edits
    cp.revert()      # throw the edits away, restore the pushed state, pop it
    cp.discard()     # back to HEAD; the stash is not touched

save/revert only touch the stash; discard/commit only touch tracked and
committed state. Only the most recent checkpoint is addressable.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from recursa.errors import BackendError

if TYPE_CHECKING:
    from recursa.git import GitBackend

logger = logging.getLogger("recursa.checkpoint")

DEFAULT_MESSAGE = "recursa-checkpoint"


class CheckpointManager:
    def __init__(self, git: GitBackend, message: str = DEFAULT_MESSAGE) -> None:
        self.git = git
        self.message = message

    def save(self) -> bool:
        """Push every working-tree change onto the stash without reverting it.

        A clean tree still pushes an entry (one whose trees equal HEAD), so
        each save is matched by exactly one revert.
        """
        self.git.add_all()
        sha = self.git.stash_create(self.message)
        if not sha:
            sha = self.git.empty_stash_commit(self.message)
            logger.info("checkpoint saved (no changes)")
        else:
            logger.info("checkpoint saved: %s", sha[:12])
        self.git.stash_store(sha, self.message)
        return True

    def _top_is_empty(self) -> bool:
        tree = self.git.run("rev-parse", "stash@{0}^{tree}").strip()
        base = self.git.run("rev-parse", "stash@{0}^1^{tree}").strip()
        return tree == base

    def revert(self) -> bool:
        """Restore the most recent checkpoint and consume it; False when there is none."""
        if self.git.stash_depth() == 0:
            logger.info("no checkpoint to revert to")
            return False
        self.git.reset_hard()
        self.git.clean_untracked()
        if self._top_is_empty():
            # nothing to reapply; the reset above already restored it
            self.git.run("stash", "drop")
        else:
            try:
                self.git.stash_pop()
            except BackendError:
                logger.warning("checkpoint could not be reapplied cleanly; stash entry kept")
                raise
        logger.info("reverted to last checkpoint")
        return True

    def discard(self) -> bool:
        """Reset tracked files to HEAD and delete untracked ones. Not undoable."""
        self.git.reset_hard()
        self.git.clean_untracked()
        logger.info("discarded uncommitted changes")
        return True
