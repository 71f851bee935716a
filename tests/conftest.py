"""Shared fixtures."""

import logging
from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def fake_home(tmp_path, monkeypatch):
    """Point the home directory at a temp dir and keep the environment clean."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setattr(Path, "home", lambda: home)
    for var in ("OPENLEAK_API_KEY", "OPENCLAW_CONFIG_PATH", "OPENLEAK_BASE_URL"):
        monkeypatch.delenv(var, raising=False)

    yield home

    # Handlers installed by setup_logging may hold streams closed by CliRunner
    logging.getLogger("openleak").handlers.clear()
