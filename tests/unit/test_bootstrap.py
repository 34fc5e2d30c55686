"""
Unit tests for bootstrap/config.py and bootstrap/log_setup.py
"""

import json
import logging

import pytest

import fetchgraph.bootstrap.config as config_module
from fetchgraph.bootstrap.config import (
    FetchGraphConfig,
    LoggingConfig,
    OrchestratorConfig,
    get_config,
    load_config,
)
from fetchgraph.bootstrap.log_setup import JSONFormatter, setup_logging, setup_logging_from_config


class TestOrchestratorConfig:
    """Test OrchestratorConfig."""

    def test_defaults(self):
        config = OrchestratorConfig()
        assert config.max_updates_per_drain == 10000
        assert config.purge_store_on_release is False
        assert config.surface_failures_to_loop is True
        assert config.event_history == 100
        assert config.max_failures == 1000

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("FETCHGRAPH_MAX_UPDATES", "50")
        monkeypatch.setenv("FETCHGRAPH_PURGE_STORE", "true")
        monkeypatch.setenv("FETCHGRAPH_SURFACE_FAILURES", "false")
        monkeypatch.setenv("FETCHGRAPH_EVENT_HISTORY", "10")

        config = OrchestratorConfig.from_env()

        assert config.max_updates_per_drain == 50
        assert config.purge_store_on_release is True
        assert config.surface_failures_to_loop is False
        assert config.event_history == 10

    def test_invalid_number_names_variable(self, monkeypatch):
        monkeypatch.setenv("FETCHGRAPH_MAX_FAILURES", "lots")
        with pytest.raises(ValueError, match="FETCHGRAPH_MAX_FAILURES"):
            OrchestratorConfig.from_env()

    def test_non_positive_drain_bound_rejected(self):
        with pytest.raises(ValueError):
            OrchestratorConfig(max_updates_per_drain=0)


class TestFetchGraphConfig:
    """Test the root configuration."""

    def test_from_file_overrides_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("FETCHGRAPH_EVENT_HISTORY", "10")
        path = tmp_path / "fetchgraph.json"
        path.write_text(json.dumps({
            "orchestrator": {"purge_store_on_release": True},
            "logging": {"level": "DEBUG"},
        }))

        config = FetchGraphConfig.from_file(str(path))

        assert config.orchestrator.purge_store_on_release is True
        assert config.orchestrator.event_history == 10
        assert config.logging.level == "DEBUG"

    def test_missing_file_falls_back_to_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("FETCHGRAPH_LOG_LEVEL", "WARNING")
        config = FetchGraphConfig.from_file(str(tmp_path / "absent.json"))
        assert config.logging.level == "WARNING"

    def test_file_values_are_validated(self, tmp_path):
        path = tmp_path / "fetchgraph.json"
        path.write_text(json.dumps({"orchestrator": {"max_updates_per_drain": 0}}))

        with pytest.raises(ValueError, match="max_updates_per_drain"):
            FetchGraphConfig.from_file(str(path))

    def test_unknown_keys_ignored(self, tmp_path):
        path = tmp_path / "fetchgraph.json"
        path.write_text(json.dumps({"orchestrator": {"max_updatez": 5}}))

        config = FetchGraphConfig.from_file(str(path))

        assert config.orchestrator.max_updates_per_drain == 10000

    def test_to_dict(self):
        data = FetchGraphConfig().to_dict()
        assert data["orchestrator"]["max_updates_per_drain"] == 10000
        assert data["logging"]["json_logs"] is False


class TestLoadConfig:
    """Test load_config and get_config."""

    @pytest.fixture(autouse=True)
    def reset_global(self, monkeypatch):
        monkeypatch.setattr(config_module, "_config", None)

    def test_explicit_file(self, tmp_path):
        path = tmp_path / "custom.json"
        path.write_text(json.dumps({"logging": {"level": "ERROR"}}))

        config = load_config(str(path))

        assert config.logging.level == "ERROR"
        assert get_config() is config

    def test_default_file_in_working_directory(self, tmp_path, monkeypatch):
        (tmp_path / "fetchgraph.json").write_text(json.dumps({"orchestrator": {"event_history": 7}}))
        monkeypatch.chdir(tmp_path)

        assert load_config().orchestrator.event_history == 7

    def test_get_config_loads_once(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("FETCHGRAPH_MAX_UPDATES", "25")

        config = get_config()

        assert config.orchestrator.max_updates_per_drain == 25
        assert get_config() is config


class TestLogging:
    """Test setup_logging."""

    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield
        for handler in root.handlers[:]:
            if handler not in handlers:
                root.removeHandler(handler)
                handler.close()
        root.setLevel(level)

    def test_sets_level_and_handler(self):
        before = len(logging.getLogger().handlers)
        setup_logging(level="DEBUG")
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == before + 1

    def test_log_file(self, tmp_path):
        log_file = tmp_path / "fetchgraph.log"
        setup_logging(level="INFO", log_file=str(log_file))
        logging.getLogger("kernel.orchestrator").info("hello")
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert "hello" in log_file.read_text()

    def test_from_config(self):
        before = list(logging.getLogger().handlers)
        setup_logging_from_config(LoggingConfig(level="WARNING", json_logs=True))

        root = logging.getLogger()
        added = [h for h in root.handlers if h not in before]
        assert root.level == logging.WARNING
        assert len(added) == 1
        assert isinstance(added[0].formatter, JSONFormatter)

    def test_json_formatter(self):
        record = logging.LogRecord("kernel.scheduler", logging.ERROR, __file__, 1, "boom %s", ("x",), None)
        payload = json.loads(JSONFormatter().format(record))
        assert payload["level"] == "ERROR"
        assert payload["logger"] == "kernel.scheduler"
        assert payload["message"] == "boom x"
