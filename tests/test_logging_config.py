import logging

import pytest
import structlog

from unifiedid.config import SDKConfig
from unifiedid.logging_config import resolve_log_level, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()


@pytest.mark.parametrize("level,renderer", [("DEBUG", "ConsoleRenderer"), ("info", "JSONRenderer")])
def test_setup_logging_installs_single_handler(restore_root_logger, level, renderer):
    setup_logging(level)

    root = restore_root_logger
    assert len(root.handlers) == 1
    assert root.level == getattr(logging, level.upper())
    formatter = root.handlers[0].formatter
    assert type(formatter.processors[-1]).__name__ == renderer


def test_http_stack_is_quieted(restore_root_logger):
    setup_logging("DEBUG")

    assert logging.getLogger("httpx").level == logging.WARNING
    assert logging.getLogger("httpcore").level == logging.WARNING


def test_unknown_level_falls_back_to_info(restore_root_logger):
    setup_logging("chatty")

    assert restore_root_logger.level == logging.INFO


def test_level_comes_from_config_when_not_overridden(restore_root_logger, sdk_config):
    setup_logging(config=sdk_config.model_copy(update={"log_level": "WARNING"}))

    assert restore_root_logger.level == logging.WARNING


def test_explicit_level_beats_config(restore_root_logger, sdk_config):
    setup_logging("ERROR", config=sdk_config.model_copy(update={"log_level": "WARNING"}))

    assert restore_root_logger.level == logging.ERROR


def test_level_falls_back_to_environment(restore_root_logger, monkeypatch):
    monkeypatch.setenv("UNIFIEDID_LOG_LEVEL", "DEBUG")

    assert resolve_log_level() == "DEBUG"
    setup_logging()

    assert restore_root_logger.level == logging.DEBUG


def test_env_log_level_reaches_sdk_config(monkeypatch):
    monkeypatch.setenv("UNIFIEDID_LOG_LEVEL", "warning")

    assert resolve_log_level(config=SDKConfig.from_env()) == "warning"
