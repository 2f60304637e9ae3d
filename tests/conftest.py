"""Shared fixtures: a bare graph directory and a git-backed GraphStore."""

from __future__ import annotations

import shutil
from pathlib import Path

import pytest

from recursa.config import RecursaConfig
from recursa.store import GraphStore

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git binary not available")


def write(root: Path, rel: str, content: str) -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


@pytest.fixture()
def graph_root(tmp_path: Path) -> Path:
    root = tmp_path / "graph"
    root.mkdir()
    return root.resolve()


@pytest.fixture()
def store(graph_root: Path) -> GraphStore:
    """GraphStore without a git repository (filesystem operations only)."""
    return GraphStore(graph_root)


@pytest.fixture()
def git_store(graph_root: Path) -> GraphStore:
    """GraphStore over a freshly initialised git repository."""
    if shutil.which("git") is None:
        pytest.skip("git binary not available")
    s = GraphStore(config=RecursaConfig.for_root(graph_root))
    s.init_repo()
    return s
