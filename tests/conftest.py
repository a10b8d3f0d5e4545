"""
Pytest configuration and shared fixtures.
"""

import logging

import pytest

from tests.helpers import RecordingLogger


@pytest.fixture
def recording_logger():
    return RecordingLogger()


@pytest.fixture(autouse=True)
def setup_logging(caplog):
    """Capture package log output at debug level for every test."""
    caplog.set_level(logging.DEBUG, logger="candle_signals")
