"""Gitignore-style rules compiled to regular expressions.

    matcher = compile_rules("*.log\\n!keep.log\\nbuild/\\n")
    matcher.matches("debug.log")                # True
    matcher.matches("keep.log")                 # False, the later negation wins
    matcher.matches("build", is_dir=True)       # True
    matcher.is_ignored("build/out.txt")         # True, an ancestor is ignored

Paths are relative to the root and use "/" separators. Rules are tested in
file order and the last matching rule decides; a negated rule un-ignores.
The root itself ("" or ".") is never matched.
"""

from __future__ import annotations

import contextlib
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path


@dataclass(frozen=True)
class IgnoreRule:
    pattern: str                  # without the leading "!" and trailing "/"
    negated: bool = False
    directory_only: bool = False
    regex: re.Pattern[str] = field(default=re.compile(r"(?!)"), compare=False, repr=False)

    def matches(self, rel_path: str, *, is_dir: bool = False) -> bool:
        if self.directory_only and not is_dir:
            return False
        return self.regex.match(rel_path) is not None


def _translate(pattern: str) -> str:
    """Translate one glob (already stripped of !, trailing / and leading /) to a regex body."""
    out: list[str] = []
    i, n = 0, len(pattern)
    while i < n:
        ch = pattern[i]
        if ch == "*":
            if pattern.startswith("**", i):
                i += 2
                # "**/" matches zero or more whole directories
                if i < n and pattern[i] == "/":
                    out.append("(?:.*/)?")
                    i += 1
                else:
                    out.append(".*")
                continue
            out.append("[^/]*")
        elif ch == "?":
            out.append("[^/]")
        elif ch == "[":
            j = i + 1
            if pattern[j : j + 1] in ("!", "^"):
                j += 1
            if pattern[j : j + 1] == "]":
                j += 1
            end = pattern.find("]", j)
            if end == -1:
                out.append(re.escape(ch))
            else:
                body = pattern[i + 1 : end]
                if body[:1] in ("!", "^"):
                    body = "^" + body[1:]
                out.append("[" + body.replace("\\", "\\\\") + "]")
                i = end
        elif ch == "\\" and i + 1 < n:
            i += 1
            out.append(re.escape(pattern[i]))
        else:
            out.append(re.escape(ch))
        i += 1
    return "".join(out)


def parse_rule(line: str) -> IgnoreRule | None:
    """Compile one config line; None for blanks and comments."""
    text = line.rstrip("\r\n")
    stripped = text.strip()
    if not stripped or stripped.startswith("#"):
        return None

    negated = stripped.startswith("!")
    pattern = stripped[1:] if negated else stripped
    # "\#foo" and "\!foo" escape a literal leading character
    if pattern.startswith(("\\#", "\\!")):
        pattern = pattern[1:]

    directory_only = pattern.endswith("/")
    pattern = pattern.rstrip("/")
    if not pattern:
        return None

    anchored = "/" in pattern
    pattern = pattern.lstrip("/")
    body = _translate(pattern)
    prefix = "" if anchored else "(?:.*/)?"
    regex = re.compile(f"^{prefix}{body}$", re.DOTALL)

    return IgnoreRule(
        pattern=pattern,
        negated=negated,
        directory_only=directory_only,
        regex=regex,
    )


class IgnoreMatcher:
    """Ordered rule set; last matching rule wins."""

    def __init__(self, rules: Iterable[IgnoreRule] = ()) -> None:
        self.rules: list[IgnoreRule] = list(rules)

    def matches(self, rel_path: str, *, is_dir: bool = False) -> bool:
        """Decide this exact path (ancestors are not consulted)."""
        rel = _normalize(rel_path)
        if not rel:
            return False
        ignored = False
        for rule in self.rules:
            if rule.matches(rel, is_dir=is_dir):
                ignored = not rule.negated
        return ignored

    def is_ignored(self, rel_path: str, *, is_dir: bool = False) -> bool:
        """True if rel_path or any of its parent directories is ignored."""
        rel = _normalize(rel_path)
        if not rel:
            return False
        parts = rel.split("/")
        for depth in range(1, len(parts)):
            if self.matches("/".join(parts[:depth]), is_dir=True):
                return True
        return self.matches(rel, is_dir=is_dir)


def _normalize(rel_path: str) -> str:
    rel = rel_path.replace("\\", "/").strip("/")
    while rel.startswith("./"):
        rel = rel[2:]
    return "" if rel == "." else rel


def compile_rules(text: str | Iterable[str]) -> IgnoreMatcher:
    """Compile rules text (or an iterable of lines) into a matcher."""
    lines = text.splitlines() if isinstance(text, str) else text
    rules = [r for r in (parse_rule(line) for line in lines) if r is not None]
    return IgnoreMatcher(rules)


def load_matcher(
    root: Path,
    ignore_file: str = ".gitignore",
    defaults: Iterable[str] = (),
) -> IgnoreMatcher:
    """Default rules followed by the root's ignore file, re-read on every call.

    A missing ignore file contributes no rules.
    """
    lines = list(defaults)
    with contextlib.suppress(FileNotFoundError):
        lines.extend((root / ignore_file).read_text(encoding="utf-8").splitlines())
    return compile_rules(lines)
