"""Shared fixtures for the wrapper tests."""

import logging

import pytest

from mcwrapper.local.config import WrapperSettings

MC_ENVIRONMENT = ("MC_MOTD", "MC_MAX_PLAYERS", "MC_ONLINE_MODE", "MC_ENFORCE_SECURE_PROFILE", "MC_GUI")


@pytest.fixture(autouse=True)
def clean_mc_environment(monkeypatch):
    """Keep the developer's MC_* variables out of the tests."""
    for name in MC_ENVIRONMENT:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def settings(tmp_path):
    """Settings rooted in a scratch directory with an empty bundle and no downloads."""
    wrapper_settings = WrapperSettings(base_dir=tmp_path, bundle_dir=tmp_path / "bundle")
    wrapper_settings.ARTIFACT_DOWNLOAD_URLS = {}
    return wrapper_settings


@pytest.fixture
def restore_root_logger():
    """Put the root logger back the way pytest configured it."""
    root_logger = logging.getLogger()
    handlers, level = list(root_logger.handlers), root_logger.level
    yield root_logger
    for handler in root_logger.handlers:
        if handler not in handlers:
            handler.close()
    root_logger.handlers[:] = handlers
    root_logger.setLevel(level)
