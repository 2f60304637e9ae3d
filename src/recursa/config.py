"""RecursaConfig: project-local config for the sandboxed knowledge store.

Default layout (all relative to the project root):

    recursa.toml          # project config (git-tracked)
    .env                  # optional: KNOWLEDGE_GRAPH_PATH, GIT_USER_NAME, GIT_USER_EMAIL
    .gitignore            # ignore rules applied to every walk/search/query
    <graph files>.md      # the nodes themselves (graph.path defaults to ".")

recursa.toml example:

    [graph]
    path = "."
    ignore_file = ".gitignore"
    default_ignores = [".git/", "recursa.toml", ".env"]
    validate_on_write = true
    validated_suffixes = [".md"]

    [git]
    user_name = "Recursa Agent"
    user_email = "recursa@local"
    checkpoint_message = "recursa-checkpoint"

    [tokens]
    chars_per_token = 4

    [log]
    level = "INFO"

Precedence: environment variables > .env > recursa.toml > defaults.
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger("recursa.config")

_CONFIG_FILENAME = "recursa.toml"
_DEFAULT_IGNORES = [".git/", _CONFIG_FILENAME, ".env"]
_DEFAULT_SUFFIXES = [".md"]

# Environment keys honoured on top of recursa.toml
_ENV_GRAPH_PATH = "KNOWLEDGE_GRAPH_PATH"
_ENV_GIT_NAME = "GIT_USER_NAME"
_ENV_GIT_EMAIL = "GIT_USER_EMAIL"
_ENV_LOG_LEVEL = "RECURSA_LOG_LEVEL"


@dataclass
class GraphConfig:
    path: Path = field(default_factory=Path)
    ignore_file: str = ".gitignore"
    default_ignores: list[str] = field(default_factory=lambda: list(_DEFAULT_IGNORES))
    validate_on_write: bool = True
    validated_suffixes: list[str] = field(default_factory=lambda: list(_DEFAULT_SUFFIXES))

    def should_validate(self, path: Path) -> bool:
        if not self.validate_on_write:
            return False
        return path.suffix.lower() in {s.lower() for s in self.validated_suffixes}


@dataclass
class GitConfig:
    user_name: str = "Recursa Agent"
    user_email: str = "recursa@local"
    checkpoint_message: str = "recursa-checkpoint"


@dataclass
class TokensConfig:
    chars_per_token: int = 4


@dataclass
class LogConfig:
    level: str = "INFO"


@dataclass
class RecursaConfig:
    """Resolved configuration for a knowledge store."""

    root: Path                      # directory that contains recursa.toml
    graph: GraphConfig = field(default_factory=GraphConfig)
    git: GitConfig = field(default_factory=GitConfig)
    tokens: TokensConfig = field(default_factory=TokensConfig)
    log: LogConfig = field(default_factory=LogConfig)

    @property
    def graph_path(self) -> Path:
        return self.graph.path

    @classmethod
    def for_root(cls, graph_root: Path | str) -> RecursaConfig:
        """Defaults bound to an explicit graph root (no recursa.toml lookup)."""
        root = Path(graph_root)
        return cls(root=root, graph=GraphConfig(path=root))


def _load_env(root: Path) -> dict[str, str]:
    """Parse a simple KEY=VALUE .env file (no external dependency)."""
    env_file = root / ".env"
    if not env_file.exists():
        return {}
    env: dict[str, str] = {}
    for line in env_file.read_text().splitlines():
        line = line.strip()
        if line and not line.startswith("#") and "=" in line:
            k, _, v = line.partition("=")
            env[k.strip()] = v.strip().strip('"').strip("'")
    return env


def _setting(key: str, env: dict[str, str], fallback: Any) -> Any:
    """Process environment wins over .env, which wins over recursa.toml."""
    return os.environ.get(key) or env.get(key) or fallback


def load_config(root: Path | str | None = None) -> RecursaConfig:
    """Load recursa.toml from root (or search upward from cwd if root is None)."""
    root_path = _find_root(Path(root) if root else Path.cwd())
    config_path = root_path / _CONFIG_FILENAME

    raw: dict[str, Any] = {}
    if config_path.exists():
        with config_path.open("rb") as f:
            raw = tomllib.load(f)

    env = _load_env(root_path)

    graph_section = raw.get("graph", {})
    git_section = raw.get("git", {})
    tok_section = raw.get("tokens", {})
    log_section = raw.get("log", {})

    graph_rel = str(_setting(_ENV_GRAPH_PATH, env, graph_section.get("path", ".")))
    graph_path = Path(graph_rel).expanduser()
    if not graph_path.is_absolute():
        graph_path = (root_path / graph_path).resolve()
        if graph_rel != ".":
            logger.info("graph path is not absolute, resolved to %s", graph_path)

    level = str(_setting(_ENV_LOG_LEVEL, env, log_section.get("level", "INFO"))).upper()
    if level not in logging.getLevelNamesMapping():
        msg = f"Unknown log level {level!r} (expected DEBUG, INFO, WARNING, ERROR or CRITICAL)"
        raise ValueError(msg)

    return RecursaConfig(
        root=root_path,
        graph=GraphConfig(
            path=graph_path,
            ignore_file=graph_section.get("ignore_file", ".gitignore"),
            default_ignores=list(graph_section.get("default_ignores", _DEFAULT_IGNORES)),
            validate_on_write=bool(graph_section.get("validate_on_write", True)),
            validated_suffixes=list(graph_section.get("validated_suffixes", _DEFAULT_SUFFIXES)),
        ),
        git=GitConfig(
            user_name=str(_setting(_ENV_GIT_NAME, env, git_section.get("user_name", "Recursa Agent"))),
            user_email=str(_setting(_ENV_GIT_EMAIL, env, git_section.get("user_email", "recursa@local"))),
            checkpoint_message=git_section.get("checkpoint_message", "recursa-checkpoint"),
        ),
        tokens=TokensConfig(
            chars_per_token=max(1, int(tok_section.get("chars_per_token", 4))),
        ),
        log=LogConfig(
            level=level,
        ),
    )


def _find_root(start: Path) -> Path:
    """Walk upward from start looking for recursa.toml."""
    start = start.resolve()
    for directory in (start, *start.parents):
        if (directory / _CONFIG_FILENAME).exists():
            return directory
    return start


def init_config(root: Path, graph_path: str = ".") -> Path:
    """Write a default recursa.toml at root. Raises if already exists."""
    config_path = root / _CONFIG_FILENAME
    if config_path.exists():
        msg = f"recursa.toml already exists at {config_path}"
        raise FileExistsError(msg)

    content = f"""\
[graph]
path = "{graph_path}"
# ignore_file = ".gitignore"          # gitignore-style rules, re-read on every walk
# default_ignores = [".git/", "recursa.toml", ".env"]
# validate_on_write = true            # reject writes that break the block outline
# validated_suffixes = [".md"]

# [git]
# user_name = "Recursa Agent"         # or GIT_USER_NAME in .env
# user_email = "recursa@local"        # or GIT_USER_EMAIL in .env
# checkpoint_message = "recursa-checkpoint"

# [tokens]
# chars_per_token = 4

# [log]
# level = "INFO"                      # or RECURSA_LOG_LEVEL
"""
    config_path.write_text(content)
    return config_path
