"""recursa.toml loading, .env and environment overrides."""

from __future__ import annotations

from pathlib import Path

import pytest

from recursa.config import GraphConfig, init_config, load_config


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in ("KNOWLEDGE_GRAPH_PATH", "GIT_USER_NAME", "GIT_USER_EMAIL", "RECURSA_LOG_LEVEL"):
        monkeypatch.delenv(key, raising=False)


class TestLoad:
    def test_defaults_without_file(self, tmp_path: Path) -> None:
        cfg = load_config(tmp_path)
        assert cfg.graph_path == tmp_path.resolve()
        assert cfg.graph.ignore_file == ".gitignore"
        assert ".git/" in cfg.graph.default_ignores
        assert cfg.git.user_name == "Recursa Agent"
        assert cfg.tokens.chars_per_token == 4
        assert cfg.log.level == "INFO"

    def test_init_then_load(self, tmp_path: Path) -> None:
        path = init_config(tmp_path, graph_path="graph")
        assert path.name == "recursa.toml"
        cfg = load_config(tmp_path)
        assert cfg.root == tmp_path.resolve()
        assert cfg.graph_path == (tmp_path / "graph").resolve()

    def test_init_refuses_to_overwrite(self, tmp_path: Path) -> None:
        init_config(tmp_path)
        with pytest.raises(FileExistsError):
            init_config(tmp_path)

    def test_sections(self, tmp_path: Path) -> None:
        (tmp_path / "recursa.toml").write_text(
            '[graph]\npath = "kb"\nignore_file = ".kbignore"\nvalidate_on_write = false\n'
            '[git]\nuser_name = "Bot"\nuser_email = "bot@example.com"\ncheckpoint_message = "cp"\n'
            "[tokens]\nchars_per_token = 3\n"
            '[log]\nlevel = "debug"\n'
        )
        cfg = load_config(tmp_path)
        assert cfg.graph_path == (tmp_path / "kb").resolve()
        assert cfg.graph.ignore_file == ".kbignore"
        assert cfg.graph.validate_on_write is False
        assert (cfg.git.user_name, cfg.git.user_email, cfg.git.checkpoint_message) == ("Bot", "bot@example.com", "cp")
        assert cfg.tokens.chars_per_token == 3
        assert cfg.log.level == "DEBUG"

    def test_found_from_subdirectory(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        init_config(tmp_path)
        sub = tmp_path / "a" / "b"
        sub.mkdir(parents=True)
        monkeypatch.chdir(sub)
        assert load_config().root == tmp_path.resolve()


class TestOverrides:
    def test_dotenv(self, tmp_path: Path) -> None:
        (tmp_path / ".env").write_text('# comment\nGIT_USER_NAME="Env Bot"\nKNOWLEDGE_GRAPH_PATH=notes\n')
        cfg = load_config(tmp_path)
        assert cfg.git.user_name == "Env Bot"
        assert cfg.graph_path == (tmp_path / "notes").resolve()

    def test_environment_beats_dotenv_and_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        (tmp_path / "recursa.toml").write_text('[git]\nuser_email = "file@example.com"\n')
        (tmp_path / ".env").write_text("GIT_USER_EMAIL=dotenv@example.com\n")
        monkeypatch.setenv("GIT_USER_EMAIL", "env@example.com")
        assert load_config(tmp_path).git.user_email == "env@example.com"

    def test_absolute_graph_path(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        target = tmp_path / "elsewhere"
        monkeypatch.setenv("KNOWLEDGE_GRAPH_PATH", str(target))
        assert load_config(tmp_path).graph_path == target

    def test_unknown_log_level(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RECURSA_LOG_LEVEL", "loud")
        with pytest.raises(ValueError, match="Unknown log level 'LOUD'"):
            load_config(tmp_path)
        monkeypatch.setenv("RECURSA_LOG_LEVEL", "warning")
        assert load_config(tmp_path).log.level == "WARNING"


class TestGraphConfig:
    def test_should_validate(self) -> None:
        g = GraphConfig()
        assert g.should_validate(Path("a.md"))
        assert g.should_validate(Path("A.MD"))
        assert not g.should_validate(Path("a.txt"))
        g.validate_on_write = False
        assert not g.should_validate(Path("a.md"))
