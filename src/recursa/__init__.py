"""Sandboxed knowledge graph: plain outline files as the graph, git as the undo log.

Layout:
    recursa.toml              # config (graph path, ignore rules, git identity)
    .gitignore                # ignore rules, re-read on every walk/search/query
    <graph root>/
        people/ada.md         # a node; [[links]] between stems form the graph
        notes/today.md

Node content is a block outline:
    - # Ada
      - type:: person
      - works at [[Acme]]

No index is kept on disk. Every query rescans the files, and every
caller-supplied path is resolved inside the graph root before it is touched.
Checkpoints live in git's stash; commits are only made on request.
"""

from recursa.config import RecursaConfig, init_config, load_config
from recursa.errors import (
    BackendError,
    ConflictError,
    GraphError,
    NotFoundError,
    PathTraversalError,
    SecurityError,
    ValidationError,
)
from recursa.sandbox import PathSandbox, resolve_secure_path
from recursa.store import GraphStore

__all__ = [
    "BackendError",
    "ConflictError",
    "GraphError",
    "GraphStore",
    "NotFoundError",
    "PathSandbox",
    "PathTraversalError",
    "RecursaConfig",
    "SecurityError",
    "ValidationError",
    "init_config",
    "load_config",
    "resolve_secure_path",
]
