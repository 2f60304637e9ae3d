"""Block-outline grammar check, run before any outline document is persisted.

Grammar (one block per non-blank line):

    - Root block
      - Child, indented by exactly 2 more spaces
        - type:: person         # properties live inside a block, never at root
    - Next root block

Every violation is collected in one pass; the result keeps source line order.
"""

from __future__ import annotations

import re

from recursa.models import ValidationIssue, ValidationResult

_BLOCK_PREFIX = "- "
_INDENT_STEP = 2
_VIRTUAL_ROOT = -_INDENT_STEP
# "- key:: value"; key is any run of non-colon characters, as in queries
_PROPERTY_RE = re.compile(r"^- +[^:]+?::")


def is_property_block(trimmed_line: str) -> bool:
    return _PROPERTY_RE.match(trimmed_line) is not None


def validate_outline(content: str) -> ValidationResult:
    """Validate content against the block-outline grammar. Pure, no I/O."""
    result = ValidationResult()
    stack = [_VIRTUAL_ROOT]

    def report(line_no: int, message: str) -> None:
        result.errors.append(ValidationIssue(line=line_no, message=f"Line {line_no}: {message}"))

    for line_no, raw in enumerate(content.split("\n"), start=1):
        line = raw.rstrip("\r")
        if not line.strip():
            continue

        trimmed = line.strip()
        indentation = len(line) - len(line.lstrip())

        if not trimmed.startswith(_BLOCK_PREFIX):
            report(line_no, f'Must start with "- ". Found: "{trimmed}"')
            continue

        if indentation % _INDENT_STEP != 0:
            report(line_no, f"Indentation must be a multiple of 2. Found {indentation} spaces.")

        parent = stack[-1]
        # Levels are whole steps; an odd indent is already reported above
        if indentation // _INDENT_STEP > parent // _INDENT_STEP + 1:
            report(
                line_no,
                "Invalid nesting. Indentation increased by more than one level "
                f"(from {max(parent, 0)} to {indentation} spaces).",
            )

        if indentation > parent:
            stack.append(indentation)
        else:
            while len(stack) > 1 and stack[-1] > indentation:
                stack.pop()

        if indentation == 0 and is_property_block(trimmed):
            report(line_no, 'Properties (using "::") cannot be at the root level.')

    return result
