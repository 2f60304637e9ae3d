"""Path sandbox: traversal, symlink escapes, unsafe raw input."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from conftest import write
from recursa.errors import NotFoundError, PathTraversalError, SecurityError
from recursa.sandbox import PathSandbox, is_case_insensitive, resolve_secure_path


class TestResolve:
    def test_inside_paths_keep_root_prefix(self, graph_root: Path) -> None:
        for user_path in ("a.md", "notes/today.md", "./x/../y.md", "deep/er/still.md", "."):
            resolved = resolve_secure_path(graph_root, user_path)
            assert str(resolved) == str(graph_root) or str(resolved).startswith(str(graph_root) + os.sep)

    def test_dot_dot_outside_is_rejected(self, graph_root: Path) -> None:
        for user_path in ("../x.md", "../../etc/passwd", "notes/../../escape", "a/b/../../../c"):
            with pytest.raises(SecurityError):
                resolve_secure_path(graph_root, user_path)

    def test_traversal_error_message(self, graph_root: Path) -> None:
        with pytest.raises(PathTraversalError, match="Path traversal attempt detected"):
            resolve_secure_path(graph_root, "../outside")

    def test_absolute_path_outside_is_rejected(self, graph_root: Path) -> None:
        with pytest.raises(SecurityError):
            resolve_secure_path(graph_root, "/etc/passwd")

    def test_dot_dot_that_stays_inside_is_allowed(self, graph_root: Path) -> None:
        resolved = resolve_secure_path(graph_root, "a/b/../c.md")
        assert resolved == graph_root / "a" / "c.md"

    def test_sibling_with_common_prefix_is_rejected(self, tmp_path: Path, graph_root: Path) -> None:
        # /tmp/x/graph vs /tmp/x/graph-evil
        (tmp_path / "graph-evil").mkdir()
        with pytest.raises(SecurityError):
            resolve_secure_path(graph_root, "../graph-evil/secret.md")

    def test_backslashes_are_separators(self, graph_root: Path) -> None:
        if os.sep != "/":
            pytest.skip("POSIX separator handling")
        assert resolve_secure_path(graph_root, "notes\\today.md") == graph_root / "notes" / "today.md"
        with pytest.raises(SecurityError):
            resolve_secure_path(graph_root, "..\\..\\etc\\passwd")

    def test_nonexistent_tail_is_allowed(self, graph_root: Path) -> None:
        resolved = resolve_secure_path(graph_root, "new/dir/file.md")
        assert resolved == graph_root / "new" / "dir" / "file.md"
        assert not resolved.exists()

    def test_resolution_does_not_touch_disk(self, graph_root: Path) -> None:
        resolve_secure_path(graph_root, "new/dir/file.md")
        assert list(graph_root.iterdir()) == []


class TestRawInput:
    @pytest.mark.parametrize("user_path", ["a\x00b.md", "line\nbreak.md", "tab\there", "del\x7f"])
    def test_control_characters_rejected(self, graph_root: Path, user_path: str) -> None:
        with pytest.raises(SecurityError, match="control characters"):
            resolve_secure_path(graph_root, user_path)

    @pytest.mark.skipif(os.name != "nt", reason="drive letters only exist on Windows")
    @pytest.mark.parametrize("user_path", ["C:\\Windows", "c:foo", "D:/x"])
    def test_drive_letters_rejected(self, graph_root: Path, user_path: str) -> None:
        with pytest.raises(SecurityError, match="drive"):
            resolve_secure_path(graph_root, user_path)

    @pytest.mark.skipif(os.name == "nt", reason="a colon is a drive separator on Windows")
    def test_colon_names_are_plain_files_elsewhere(self, graph_root: Path) -> None:
        assert resolve_secure_path(graph_root, "c:notes.txt") == graph_root / "c:notes.txt"

    @pytest.mark.parametrize("user_path", ["\\\\server\\share", "//server/share"])
    def test_unc_rejected(self, graph_root: Path, user_path: str) -> None:
        with pytest.raises(SecurityError, match="UNC"):
            resolve_secure_path(graph_root, user_path)


class TestSymlinks:
    def test_link_pointing_outside_is_rejected(self, tmp_path: Path, graph_root: Path) -> None:
        outside = tmp_path / "outside"
        outside.mkdir()
        (outside / "secret.md").write_text("secret")
        try:
            (graph_root / "escape").symlink_to(outside, target_is_directory=True)
        except OSError:
            pytest.skip("symlinks not supported")
        with pytest.raises(PathTraversalError):
            resolve_secure_path(graph_root, "escape/secret.md")

    def test_link_inside_root_is_allowed(self, graph_root: Path) -> None:
        (graph_root / "real").mkdir()
        try:
            (graph_root / "alias").symlink_to(graph_root / "real", target_is_directory=True)
        except OSError:
            pytest.skip("symlinks not supported")
        assert resolve_secure_path(graph_root, "alias/x.md") == graph_root / "real" / "x.md"

    def test_root_given_through_symlink(self, tmp_path: Path, graph_root: Path) -> None:
        link = tmp_path / "link-to-graph"
        try:
            link.symlink_to(graph_root, target_is_directory=True)
        except OSError:
            pytest.skip("symlinks not supported")
        sandbox = PathSandbox(link)
        assert sandbox.root == graph_root
        assert sandbox.resolve("a.md") == graph_root / "a.md"

    def test_resolve_entry_names_the_link(self, graph_root: Path) -> None:
        write(graph_root, "real.md", "- real")
        try:
            (graph_root / "alias.md").symlink_to(graph_root / "real.md")
        except OSError:
            pytest.skip("symlinks not supported")
        sandbox = PathSandbox(graph_root)
        assert sandbox.resolve("alias.md") == graph_root / "real.md"
        assert sandbox.resolve_entry("alias.md") == graph_root / "alias.md"
        assert sandbox.resolve_entry("real.md") == graph_root / "real.md"

    def test_resolve_entry_still_rejects_outside_targets(self, tmp_path: Path, graph_root: Path) -> None:
        outside = tmp_path / "outside.md"
        outside.write_text("secret")
        try:
            (graph_root / "escape.md").symlink_to(outside)
        except OSError:
            pytest.skip("symlinks not supported")
        with pytest.raises(PathTraversalError):
            PathSandbox(graph_root).resolve_entry("escape.md")


class TestSandbox:
    def test_root_must_exist(self, tmp_path: Path) -> None:
        with pytest.raises(NotFoundError):
            PathSandbox(tmp_path / "missing")

    def test_relative(self, graph_root: Path) -> None:
        sandbox = PathSandbox(graph_root)
        assert sandbox.relative(sandbox.resolve("notes/a.md")) == "notes/a.md"
        assert sandbox.relative(sandbox.root) == ""

    def test_is_root(self, graph_root: Path) -> None:
        sandbox = PathSandbox(graph_root)
        assert sandbox.is_root(sandbox.resolve("."))
        assert sandbox.is_root(sandbox.resolve("sub/.."))
        assert not sandbox.is_root(sandbox.resolve("sub"))

    def test_case_probe_matches_filesystem(self, graph_root: Path) -> None:
        probe = graph_root / "CaseProbe"
        probe.mkdir()
        folds = (graph_root / "caseprobe").exists()
        assert is_case_insensitive(str(probe)) == folds

    def test_case_folding_comparison(self, graph_root: Path) -> None:
        sandbox = PathSandbox(graph_root)
        sandbox.case_insensitive = True
        assert sandbox.contains(str(graph_root).upper() + os.sep + "X.MD")
        sandbox.case_insensitive = False
        if str(graph_root).upper() != str(graph_root):
            assert not sandbox.contains(str(graph_root).upper() + os.sep + "X.MD")
