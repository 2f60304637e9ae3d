"""Error taxonomy shared by every recursa component.

Each error carries a short ``kind`` string so adapters can report a structured
``{kind, message}`` pair without inspecting class names. The classes also derive
from the closest builtin (``PermissionError``, ``FileNotFoundError``, ...) so
callers that only know the standard library still catch them.

    GraphError
    ├── SecurityError        path escapes the sandbox (never retried)
    │   └── PathTraversalError
    ├── NotFoundError        missing file / directory
    ├── ValidationError      outline grammar violation, write blocked
    ├── ConflictError        update's old content not found verbatim
    └── BackendError         git reported a failure
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from recursa.models import ValidationIssue


class GraphError(Exception):
    """Base class for all recursa errors."""

    kind = "graph"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": self.message}


class SecurityError(GraphError, PermissionError):
    kind = "security"


class PathTraversalError(SecurityError):
    """Resolved path is not the graph root or a descendant of it."""


class NotFoundError(GraphError, FileNotFoundError):
    kind = "not_found"


class ValidationError(GraphError, ValueError):
    """Content does not follow the block-outline grammar.

    ``issues`` holds every violation found, in source line order.
    """

    kind = "validation"

    def __init__(self, message: str, issues: list[ValidationIssue] | None = None) -> None:
        super().__init__(message)
        self.issues = list(issues or [])

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d["errors"] = [{"line": i.line, "message": i.message} for i in self.issues]
        return d


class ConflictError(GraphError, ValueError):
    kind = "conflict"


class BackendError(GraphError, RuntimeError):
    """The version-control backend failed; ``stderr`` is git's own message."""

    kind = "backend"

    def __init__(self, message: str, *, command: list[str] | None = None, stderr: str = "") -> None:
        super().__init__(message)
        self.command = list(command or [])
        self.stderr = stderr
