"""Data models for the graph store: validation results, query conditions, git records."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass(frozen=True)
class ValidationIssue:
    """One grammar violation, 1-based line number."""

    line: int
    message: str


@dataclass
class ValidationResult:
    errors: list[ValidationIssue] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def messages(self) -> list[str]:
        return [e.message for e in self.errors]

    def to_dict(self) -> dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "errors": [asdict(e) for e in self.errors],
        }


# ---------------------------------------------------------------------------
# Query conditions: a closed union, evaluated by a single isinstance dispatch
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PropertyCondition:
    """Matches a line ``key:: value`` (trimmed, exact)."""

    key: str
    value: str

    @property
    def line(self) -> str:
        return f"{self.key}:: {self.value}"


@dataclass(frozen=True)
class OutgoingLinkCondition:
    """Matches when ``[[target]]`` is among the file's outgoing links."""

    target: str

    @property
    def marker(self) -> str:
        return f"outgoing-link [[{self.target}]]"


Condition = PropertyCondition | OutgoingLinkCondition


@dataclass
class QueryResult:
    file_path: str                      # relative to graph root, POSIX separators
    matches: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"filePath": self.file_path, "matches": list(self.matches)}


@dataclass(frozen=True)
class Commit:
    hash: str
    message: str
    date: str                           # ISO-8601, as printed by git %aI

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# ---------------------------------------------------------------------------
# Token statistics
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TokenCount:
    tokens: int
    characters: int

    @property
    def total(self) -> int:
        return self.tokens


@dataclass(frozen=True)
class FileTokenBreakdown:
    file_path: str
    tokens: int
    characters: int
    blocks: int                         # lines starting with "-" once trimmed


@dataclass(frozen=True)
class FileTokenSize:
    file_path: str
    tokens: int


@dataclass
class DirectoryTokenStats:
    total_tokens: int = 0
    total_files: int = 0
    largest_file: FileTokenSize | None = None

    @property
    def average_tokens_per_file(self) -> int:
        if not self.total_files:
            return 0
        return self.total_tokens // self.total_files
