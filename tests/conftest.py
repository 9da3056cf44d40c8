"""
Shared test configuration.

Unit tests never touch the network or the user's real configuration: every
test gets an isolated config directory through DRIVEUP_CONFIG_DIR.
"""

import pytest


@pytest.fixture(autouse=True)
def isolated_config_dir(tmp_path, monkeypatch):
    """Point driveup at an empty, per-test configuration directory."""
    config_dir = tmp_path / "driveup-config"
    config_dir.mkdir()
    monkeypatch.setenv("DRIVEUP_CONFIG_DIR", str(config_dir))
    monkeypatch.delenv("DRIVEUP_CONFIG_FILE", raising=False)
    return config_dir


def pytest_configure(config):
    """Register custom pytest markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
