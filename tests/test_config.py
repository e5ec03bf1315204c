"""Tests for configuration, logging setup and preflight."""

import logging

import pytest
from pydantic import ValidationError

from ideacanvas.config import (
    ENV_PREFIX, Config, ViewSettings, load_view_settings, save_view_settings,
)
from ideacanvas.logging_config import LOG_FILENAME, setup_logging
from ideacanvas.preflight import MIN_PYTHON, _check_python_version, run_preflight


class TestConfig:
    """Tests for environment-driven Config."""

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch, tmp_path):
        for name in ("DB_PATH", "GENERATION_URL", "GENERATION_TIMEOUT", "USER",
                     "LOG_LEVEL", "BRANCH_LABELS_EDITABLE"):
            monkeypatch.delenv(ENV_PREFIX + name, raising=False)
        monkeypatch.setenv(ENV_PREFIX + "DATA_DIR", str(tmp_path))

    def test_defaults(self, tmp_path):
        config = Config()

        assert config.data_dir == tmp_path
        assert config.db_path == tmp_path / "ideacanvas.db"
        assert config.generation_url is None
        assert config.generation_timeout == 30.0
        assert config.user_id == "local"
        assert config.log_level == "INFO"
        assert config.branch_labels_editable is True
        assert config.log_dir == tmp_path / "logs"

    def test_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("IDEACANVAS_DB_PATH", str(tmp_path / "other.db"))
        monkeypatch.setenv("IDEACANVAS_GENERATION_URL", "http://localhost:8000/generate")
        monkeypatch.setenv("IDEACANVAS_GENERATION_TIMEOUT", "12.5")
        monkeypatch.setenv("IDEACANVAS_USER", "alice")
        monkeypatch.setenv("IDEACANVAS_LOG_LEVEL", "debug")
        monkeypatch.setenv("IDEACANVAS_BRANCH_LABELS_EDITABLE", "no")

        config = Config()

        assert config.db_path == tmp_path / "other.db"
        assert config.generation_url == "http://localhost:8000/generate"
        assert config.generation_timeout == 12.5
        assert config.user_id == "alice"
        assert config.log_level == "DEBUG"
        assert config.branch_labels_editable is False

    def test_empty_values_use_defaults(self, monkeypatch):
        monkeypatch.setenv("IDEACANVAS_GENERATION_URL", "")
        monkeypatch.setenv("IDEACANVAS_GENERATION_TIMEOUT", "")

        config = Config()

        assert config.generation_url is None
        assert config.generation_timeout == 30.0

    def test_keyword_arguments_win(self, tmp_path):
        config = Config(user_id="bob", data_dir=tmp_path / "kw")

        assert config.user_id == "bob"
        assert config.db_path == tmp_path / "kw" / "ideacanvas.db"

    @pytest.mark.parametrize("value", ["soon", "0", "-3"])
    def test_bad_timeout(self, monkeypatch, value):
        monkeypatch.setenv("IDEACANVAS_GENERATION_TIMEOUT", value)

        with pytest.raises(ValidationError):
            Config()

    def test_bad_boolean(self, monkeypatch):
        monkeypatch.setenv("IDEACANVAS_BRANCH_LABELS_EDITABLE", "maybe")

        with pytest.raises(ValidationError):
            Config()

    def test_data_dir_is_created(self, monkeypatch, tmp_path):
        target = tmp_path / "nested" / "data"
        monkeypatch.setenv("IDEACANVAS_DATA_DIR", str(target))

        assert Config().data_dir == target
        assert target.is_dir()


class TestViewSettings:
    """Tests for per-project view toggles."""

    def test_defaults_on_missing_or_garbage(self):
        assert ViewSettings.from_json(None) == ViewSettings()
        assert ViewSettings.from_json("{not json") == ViewSettings()
        assert ViewSettings.from_json("[1, 2]") == ViewSettings()
        assert ViewSettings.from_json('{"show_grid": "sideways"}') == ViewSettings()

    def test_unknown_keys_are_ignored(self):
        settings = ViewSettings.from_json('{"show_grid": false, "theme": "dark"}')

        assert settings == ViewSettings(show_grid=False, auto_generate=True)

    def test_json_round_trip(self):
        settings = ViewSettings(show_grid=False, auto_generate=False)

        assert ViewSettings.from_json(settings.to_json()) == settings

    def test_saved_per_project(self, db):
        save_view_settings(db, "1", ViewSettings(show_grid=False, auto_generate=False))

        assert load_view_settings(db, "1") == ViewSettings(show_grid=False, auto_generate=False)
        assert load_view_settings(db, "2") == ViewSettings()


class TestLogging:
    """Tests for setup_logging."""

    @pytest.fixture(autouse=True)
    def restore_root(self):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield
        for handler in list(root.handlers):
            if handler not in handlers:
                root.removeHandler(handler)
                handler.close()
        root.setLevel(level)

    def test_file_handler_writes(self, tmp_path):
        setup_logging("DEBUG", tmp_path / "logs")

        logging.getLogger("ideacanvas.test").info("hello file")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert "hello file" in (tmp_path / "logs" / LOG_FILENAME).read_text()

    def test_repeat_calls_do_not_stack_handlers(self, tmp_path):
        setup_logging("INFO", tmp_path)
        count = len(logging.getLogger().handlers)

        setup_logging("WARNING", tmp_path)

        assert len(logging.getLogger().handlers) == count
        assert logging.getLogger().level == logging.WARNING

    def test_library_loggers_are_quiet(self):
        setup_logging("DEBUG")

        assert logging.getLogger("httpx").level == logging.WARNING

    def test_unknown_level(self):
        with pytest.raises(ValueError):
            setup_logging("CHATTY")


class TestPreflight:
    """Tests for the environment preflight."""

    def test_skip_env(self, monkeypatch):
        monkeypatch.setenv("IDEACANVAS_SKIP_PREFLIGHT", "1")

        result = run_preflight()

        assert result.ok
        assert "skipped" in result.message

    def test_interpreter_only(self, monkeypatch):
        monkeypatch.delenv("IDEACANVAS_SKIP_PREFLIGHT", raising=False)

        assert run_preflight(check_deps=False).ok

    def test_old_python_is_rejected(self):
        too_old = (MIN_PYTHON[0], MIN_PYTHON[1] - 1)

        assert "needs Python" in _check_python_version(too_old)
        assert _check_python_version(MIN_PYTHON) is None
