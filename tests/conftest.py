"""Pytest configuration and shared fixtures for FTP server image harness tests."""

import pytest
from typing import Generator

from ftpharness.config.scenarios import ServerScenario, TLSMode
from ftpharness.config.settings import HarnessSettings


# Test constants
TEST_FTP_HOST = "127.0.0.1"
TEST_FTP_USER = "testuser"
TEST_FTP_PASS = "testpass"


@pytest.fixture
def plain_scenario() -> ServerScenario:
    """Provide a plain FTP scenario with a small passive range."""
    return ServerScenario(
        name="test plain",
        repository="example/ftp-server",
        tag="1.0",
        env={"FTP_USER": TEST_FTP_USER, "FTP_PASS": TEST_FTP_PASS},
        username=TEST_FTP_USER,
        password=TEST_FTP_PASS,
        pasv_min_port=41000,
        pasv_max_port=41002,
    )


@pytest.fixture
def tls_scenario() -> ServerScenario:
    """Provide an explicit TLS scenario."""
    return ServerScenario(
        name="test tls",
        repository="example/ftps-server",
        tls_mode=TLSMode.EXPLICIT,
        username=TEST_FTP_USER,
        password=TEST_FTP_PASS,
        pasv_min_port=42000,
        pasv_max_port=42001,
    )


@pytest.fixture
def fast_settings() -> HarnessSettings:
    """Harness settings with short retry budgets for tests."""
    return HarnessSettings(
        host=TEST_FTP_HOST,
        connect_max_time=5,
        connect_max_tries=3,
        ready_timeout=5,
        poll_interval=0.05,
    )


@pytest.fixture
def clean_harness_env(monkeypatch) -> Generator[None, None, None]:
    """Remove any FTPHARNESS_* variables from the environment."""
    import os

    for key in list(os.environ):
        if key.startswith("FTPHARNESS_"):
            monkeypatch.delenv(key)
    yield
