"""Pytest configuration and shared fixtures."""

import logging

import logfire
import pytest


@pytest.fixture(scope="session", autouse=True)
def _configure_logfire() -> None:
    """Keep spans local; nothing is exported during tests."""
    logfire.configure(send_to_logfire=False, console=False)


@pytest.fixture(autouse=True)
def _capture_taskhub_logs(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG, logger="taskhub")
