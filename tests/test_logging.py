"""Tests for the logging setup of the chat service."""
import logging

import pytest

from chatsync.core.logging import LIBRARY_LEVELS, resolve_level, setup_logging


@pytest.fixture
def restore_levels():
    names = ["", "chatsync", *LIBRARY_LEVELS]
    saved = {name: logging.getLogger(name).level for name in names}
    yield
    for name, level in saved.items():
        logging.getLogger(name).setLevel(level)


def test_resolve_level_falls_back_to_info():
    assert resolve_level("debug") == logging.DEBUG
    assert resolve_level("nonsense") == logging.INFO
    assert resolve_level(None) == logging.INFO


def test_setup_logging_sets_engine_level_and_holds_libraries(restore_levels):
    setup_logging("DEBUG")

    assert logging.getLogger("chatsync").level == logging.DEBUG
    assert logging.getLogger("redis").level == logging.WARNING
    assert logging.getLogger("uvicorn.access").level == logging.WARNING


def test_setup_logging_is_idempotent(restore_levels):
    setup_logging("INFO")
    handlers = list(logging.getLogger().handlers)

    setup_logging("INFO")

    assert logging.getLogger().handlers == handlers
