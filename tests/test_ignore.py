"""Ignore-rule compiler: gitignore subset, last match wins."""

from __future__ import annotations

from pathlib import Path

from recursa.ignore import compile_rules, load_matcher, parse_rule


class TestParseRule:
    def test_blank_and_comment_lines_yield_nothing(self) -> None:
        assert parse_rule("") is None
        assert parse_rule("   ") is None
        assert parse_rule("# comment") is None

    def test_flags(self) -> None:
        rule = parse_rule("!build/")
        assert rule is not None
        assert rule.negated
        assert rule.directory_only
        assert rule.pattern == "build"

    def test_escaped_hash_is_literal(self) -> None:
        rule = parse_rule("\\#notes.md")
        assert rule is not None
        assert rule.matches("#notes.md")


class TestMatcher:
    def test_negation_after_rule_wins(self) -> None:
        m = compile_rules(["*.log", "!keep.log"])
        assert m.matches("debug.log")
        assert not m.matches("keep.log")

    def test_order_matters(self) -> None:
        m = compile_rules(["!keep.log", "*.log"])
        assert m.matches("keep.log")

    def test_unanchored_pattern_matches_at_any_depth(self) -> None:
        m = compile_rules("*.tmp\n")
        assert m.matches("a.tmp")
        assert m.matches("deep/dir/a.tmp")
        assert not m.matches("a.tmp.md")

    def test_pattern_with_slash_is_anchored(self) -> None:
        m = compile_rules(["drafts/*.md"])
        assert m.matches("drafts/a.md")
        assert not m.matches("other/drafts/a.md")
        assert not m.matches("drafts/sub/a.md")

    def test_leading_slash_anchors(self) -> None:
        m = compile_rules(["/secret.md"])
        assert m.matches("secret.md")
        assert not m.matches("notes/secret.md")

    def test_directory_only(self) -> None:
        m = compile_rules(["build/"])
        assert m.matches("build", is_dir=True)
        assert not m.matches("build", is_dir=False)

    def test_double_star(self) -> None:
        m = compile_rules(["**/cache", "logs/**"])
        assert m.matches("cache", is_dir=True)
        assert m.matches("a/b/cache", is_dir=True)
        assert m.matches("logs/2024/jan.txt")

    def test_question_mark_and_class(self) -> None:
        m = compile_rules(["note?.md", "[ab]*.txt", "[!x]y"])
        assert m.matches("note1.md")
        assert not m.matches("note10.md")
        assert m.matches("a1.txt")
        assert not m.matches("c1.txt")
        assert m.matches("zy")
        assert not m.matches("xy")

    def test_star_does_not_cross_directories(self) -> None:
        m = compile_rules(["a/*"])
        assert m.matches("a/b")
        assert not m.matches("a/b/c")

    def test_root_is_never_ignored(self) -> None:
        m = compile_rules(["*"])
        assert not m.matches("")
        assert not m.matches(".")

    def test_is_ignored_checks_ancestors(self) -> None:
        m = compile_rules(["build/"])
        assert m.is_ignored("build/out/x.md")
        assert not m.matches("build/out/x.md")

    def test_regex_metacharacters_are_literal(self) -> None:
        m = compile_rules(["a+b(1).md"])
        assert m.matches("a+b(1).md")
        assert not m.matches("aab1.md")


class TestLoadMatcher:
    def test_missing_file_gives_defaults_only(self, graph_root: Path) -> None:
        m = load_matcher(graph_root, ".gitignore", [".git/"])
        assert m.matches(".git", is_dir=True)
        assert not m.matches("a.md")

    def test_file_rules_follow_defaults(self, graph_root: Path) -> None:
        (graph_root / ".gitignore").write_text("# drafts\n*.draft\n!.git/\n")
        m = load_matcher(graph_root, ".gitignore", [".git/"])
        assert m.matches("x.draft")
        # a later negation in the file overrides a default
        assert not m.matches(".git", is_dir=True)

    def test_reread_on_every_call(self, graph_root: Path) -> None:
        ignore = graph_root / ".gitignore"
        ignore.write_text("*.a\n")
        assert load_matcher(graph_root).matches("x.a")
        ignore.write_text("*.b\n")
        assert not load_matcher(graph_root).matches("x.a")
        assert load_matcher(graph_root).matches("x.b")
