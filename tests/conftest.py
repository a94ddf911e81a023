"""Shared pytest fixtures."""

import logging

import pytest

from config.settings import get_settings


@pytest.fixture(autouse=True)
def restore_root_logger():
    """Drop handlers installed by configure_logging and restore the root level."""
    root = logging.getLogger()
    before = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        if handler not in before and type(handler).__module__.startswith("logging"):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
