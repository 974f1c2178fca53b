"""
Tests for config/projection_config.py and projection_service/logging_utils.py.
"""

import logging

import pytest

from config.projection_config import ProjectionConfig, get_config
from projection_service import logging_utils
from projection_service.logging_utils import configure_logging, get_logger


class TestConfig:

    def test_defaults(self):
        cfg = get_config({})
        assert cfg == ProjectionConfig()
        assert cfg.DEFAULT_LAMBDA == 1.0
        assert cfg.DEFAULT_REGRET_PRIOR == 0.2
        assert cfg.EVIDENCE_TOP_K == 20
        assert cfg.SETTINGS_SAVE_RETRIES == 3

    def test_env_overrides(self):
        cfg = get_config({
            "PROJECTION_EVIDENCE_TOP_K": "5",
            "PROJECTION_EMBEDDING_TIMEOUT": "2.5",
            "PROJECTION_EMBEDDING_MODEL": "text-embedding-3-small",
            "PROJECTION_LOCK_TIMEOUT": "",
        })
        assert cfg.EVIDENCE_TOP_K == 5
        assert cfg.EMBEDDING_TIMEOUT == 2.5
        assert cfg.EMBEDDING_MODEL == "text-embedding-3-small"
        assert cfg.LOCK_TIMEOUT == 5.0

    def test_invalid_override(self):
        with pytest.raises(ValueError, match="PROJECTION_EVIDENCE_TOP_K"):
            get_config({"PROJECTION_EVIDENCE_TOP_K": "many"})

    def test_frozen(self):
        with pytest.raises(AttributeError):
            ProjectionConfig().EVIDENCE_TOP_K = 3


class TestLogging:

    @pytest.fixture(autouse=True)
    def restore_root(self, monkeypatch):
        root = logging.getLogger()
        handlers = list(root.handlers)
        level = root.level
        monkeypatch.setattr(logging_utils, "_configured", False)
        yield
        root.handlers = handlers
        root.setLevel(level)

    def test_get_logger(self):
        assert get_logger("projection_service.test").name == "projection_service.test"

    def test_configure_once(self):
        root = logging.getLogger()
        before = len(root.handlers)
        configure_logging("debug")
        configure_logging("warning")
        assert len(root.handlers) == before + 1
        assert root.level == logging.WARNING

    def test_level_from_env(self, monkeypatch):
        monkeypatch.setenv("PROJECTION_LOG_LEVEL", "error")
        configure_logging()
        assert logging.getLogger().level == logging.ERROR
