import logging
import os

import pytest

from bond_analytics.config import EngineSettings, configure_logging, get_settings


@pytest.fixture
def clean_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_defaults():
    s = EngineSettings()
    assert s.tolerance == 1e-10
    assert s.max_iterations == 100
    assert s.z_spread_iterations == 50
    assert s.default_bracket == (-0.5, 10.0)
    assert s.bracket_candidates[0] == -0.99 and s.bracket_candidates[-1] == 10.0


def test_env_overrides(monkeypatch, clean_cache):
    monkeypatch.setenv("BOND_ANALYTICS_MAX_ITERATIONS", "250")
    monkeypatch.setenv("BOND_ANALYTICS_TOLERANCE", "1e-8")
    monkeypatch.setenv("BOND_ANALYTICS_LOG_LEVEL", "debug")
    s = get_settings()
    assert s.max_iterations == 250
    assert s.tolerance == 1e-8
    assert s.log_level_int == logging.DEBUG
    assert get_settings() is s, "settings are built once"


def test_malformed_env_falls_back(monkeypatch, clean_cache):
    monkeypatch.setenv("BOND_ANALYTICS_MAX_ITERATIONS", "lots")
    monkeypatch.setenv("BOND_ANALYTICS_MAX_WORKERS", "")
    s = get_settings()
    assert s.max_iterations == 100
    assert s.max_workers is None


def test_worker_count_bounded_by_cpus():
    cpus = os.cpu_count() or 1
    assert EngineSettings().worker_count() == cpus
    assert EngineSettings(max_workers=1).worker_count() == 1
    assert EngineSettings(max_workers=10_000).worker_count() == cpus


def test_configure_logging_uses_settings(monkeypatch):
    calls = {}
    monkeypatch.setattr(logging, "basicConfig", lambda **kw: calls.update(kw))
    configure_logging(EngineSettings(log_level="WARNING", log_format="%(message)s"))
    assert calls == {"level": logging.WARNING, "format": "%(message)s"}
