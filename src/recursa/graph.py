"""Graph operations over raw file content: links, backlinks, search, queries.

Nothing is indexed; every call walks the tree and scans text, so results always
reflect what is on disk right now.

Query language (AND only, no OR / NOT / grouping):

    (property status:: active)
    (outgoing-link [[Project X]])
    (property type:: person) AND (outgoing-link [[Acme]])

Segments that parse as neither form are dropped; a query with no usable
segment returns no results rather than raising.

Backlinks are a literal substring test for "[[<target stem>]]". That matches
inside code blocks too and misses links whose text differs from the file name.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING

from recursa.models import Condition, OutgoingLinkCondition, PropertyCondition, QueryResult
from recursa.walker import walk_relative

if TYPE_CHECKING:
    from collections.abc import Iterator

    from recursa.ignore import IgnoreMatcher

logger = logging.getLogger("recursa.graph")

# [[Target]], non-greedy: stops at the first closing brackets
_WIKILINK_RE = re.compile(r"\[\[(.*?)\]\]")
_AND_RE = re.compile(r" AND ", re.IGNORECASE)
_PROPERTY_RE = re.compile(r"^\(property\s+([^:]+?)::\s*(.+?)\)$")
_OUTGOING_RE = re.compile(r"^\(outgoing-link\s+\[\[(.+?)\]\]\)$")

_NODE_SUFFIX = ".md"


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------


def _read_text(path: Path) -> str | None:
    """Decode a file as UTF-8; None when it is unreadable or not text."""
    try:
        with path.open(encoding="utf-8", newline="") as f:
            return f.read()
    except UnicodeDecodeError:
        logger.debug("skipping non-text file: %s", path)
        return None
    except OSError:
        logger.warning("failed to read %s", path, exc_info=True)
        return None


def iter_texts(
    root: Path,
    matcher: IgnoreMatcher | None,
    *,
    suffix: str | None = None,
    start: Path | None = None,
) -> Iterator[tuple[Path, str, str]]:
    """(path, relative path, content) for every readable text file in the walk."""
    for path, rel in walk_relative(root, matcher, start=start):
        if suffix is not None and not path.name.endswith(suffix):
            continue
        content = _read_text(path)
        if content is not None:
            yield path, rel, content


# ---------------------------------------------------------------------------
# Links
# ---------------------------------------------------------------------------


def extract_links(content: str) -> list[str]:
    """Distinct [[link]] targets in first-occurrence order (existence not checked)."""
    seen: dict[str, None] = {}
    for m in _WIKILINK_RE.finditer(content):
        target = m.group(1)
        if target:
            seen.setdefault(target, None)
    return list(seen)


def link_name(path: Path | str) -> str:
    """The name other nodes use to link to path: its file name without extension."""
    return Path(path).stem


def _same_file(path: Path, target: Path) -> bool:
    if path == target:
        return True
    # case-folding filesystems: "Notes.md" and "notes.md" are one file
    if path.name.casefold() != target.name.casefold():
        return False
    try:
        return path.samefile(target)
    except OSError:
        return False


def backlinks(root: Path, target: Path, matcher: IgnoreMatcher | None = None) -> list[str]:
    """Relative paths of files containing the literal "[[<target stem>]]".

    target must already be resolved; it is never reported even if it links
    to itself.
    """
    needle = f"[[{link_name(target)}]]"
    found: list[str] = []
    for path, rel, content in iter_texts(root, matcher):
        if _same_file(path, target):
            continue
        if needle in content:
            found.append(rel)
    return found


def search_global(root: Path, query: str, matcher: IgnoreMatcher | None = None) -> list[str]:
    """Case-insensitive substring search over every walked text file."""
    needle = query.casefold()
    return [rel for _, rel, content in iter_texts(root, matcher) if needle in content.casefold()]


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


def parse_condition(segment: str) -> Condition | None:
    text = segment.strip()
    m = _PROPERTY_RE.match(text)
    if m:
        return PropertyCondition(key=m.group(1).strip(), value=m.group(2).strip())
    m = _OUTGOING_RE.match(text)
    if m:
        return OutgoingLinkCondition(target=m.group(1))
    return None


def parse_query(query: str) -> list[Condition]:
    """Split on " AND " (any case) and parse each segment; unparsable ones are dropped."""
    conditions: list[Condition] = []
    for segment in _AND_RE.split(query.strip()):
        cond = parse_condition(segment)
        if cond is None:
            logger.debug("dropping unparsable query segment: %r", segment)
            continue
        conditions.append(cond)
    return conditions


def _property_matches(cond: PropertyCondition, content: str) -> list[str]:
    wanted = cond.line
    hits: list[str] = []
    for line in content.split("\n"):
        trimmed = line.strip()
        # a property written as an outline block ("- key:: value") counts too
        if trimmed == wanted or (trimmed.startswith("- ") and trimmed[2:].lstrip() == wanted):
            hits.append(line.rstrip("\r"))
    return hits


def evaluate(conditions: list[Condition], content: str) -> list[str]:
    """Matching fragments for content, or [] as soon as one condition fails."""
    fragments: list[str] = []
    links: list[str] | None = None
    for cond in conditions:
        if isinstance(cond, PropertyCondition):
            hits = _property_matches(cond, content)
        else:
            if links is None:
                links = extract_links(content)
            hits = [cond.marker] if cond.target in links else []
        if not hits:
            return []
        fragments.extend(hits)
    return fragments


def query_graph(root: Path, query: str, matcher: IgnoreMatcher | None = None) -> list[QueryResult]:
    conditions = parse_query(query)
    if not conditions:
        return []
    results: list[QueryResult] = []
    for _, rel, content in iter_texts(root, matcher, suffix=_NODE_SUFFIX):
        matches = evaluate(conditions, content)
        if matches:
            results.append(QueryResult(file_path=rel, matches=matches))
    return results
