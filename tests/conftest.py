"""
Pytest configuration and shared fixtures for the tracker tests.
"""

import logging
import os

import pytest

from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import ColorLogger

ODATA_BASE_URL = "http://tm1.test:8010/api/v1/"
SINK_BASE_URL = "http://sink.test:12345"

_ENV_PREFIXES = ("ODATA_", "SINK_", "TRACKER_")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Isolate every test from tracker settings of the surrounding environment."""
    for key in list(os.environ):
        if key.startswith(_ENV_PREFIXES):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("ODATA_TM1_BASE_URL", ODATA_BASE_URL)
    monkeypatch.setenv("SINK_HTTP_BASE_URL", SINK_BASE_URL)
    yield monkeypatch


@pytest.fixture
def logger() -> ColorLogger:
    return ColorLogger(logging.getLogger("tests"))


@pytest.fixture
def helper_config(logger) -> HelperConfig:
    return HelperConfig(logger=logger)
