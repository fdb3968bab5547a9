"""Pytest configuration and fixtures."""

import pytest

from cascade.agents.catalog import default_catalog
from cascade.trust.engine import TrustCascadeEngine
from cascade.trust.store import TrustStore


@pytest.fixture
def catalog():
    """Built-in agent catalog."""
    return default_catalog()


@pytest.fixture
def engine(catalog):
    """Trust engine that keeps everything in memory."""
    return TrustCascadeEngine(store=TrustStore.in_memory(), catalog=catalog)


@pytest.fixture
def isolated_home(tmp_path, monkeypatch):
    """Point HOME at a temp dir so no real user config is read."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    return home
