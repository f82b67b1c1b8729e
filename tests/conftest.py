"""Shared fixtures: every test gets its own cache file under tmp_path."""

import pytest

from tss.config import SolverConfig
from tss.engine import Engine
from tss.store import CacheStore


@pytest.fixture
def cache_path(tmp_path):
    return tmp_path / "tss_cache.json"


@pytest.fixture
def store(cache_path):
    return CacheStore(cache_path)


@pytest.fixture
def config(cache_path):
    return SolverConfig(cache_path=str(cache_path), variant_timeout_s=5.0)


@pytest.fixture
def engine(store, config):
    return Engine(store, config)
