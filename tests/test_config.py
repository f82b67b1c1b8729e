import pytest

from tss.config import ConfigError, SolverConfig


def test_defaults():
    cfg = SolverConfig()
    assert cfg.cache_path == "tss_cache.json"
    assert cfg.variant_timeout_s == 2.0
    assert cfg.probe_threshold == 100.0
    assert cfg.min_cache_correctness == 80.0


def test_yaml():
    cfg = SolverConfig.from_yaml_text("variant_timeout_s: 0.5\nmax_workers: 2\n")
    assert cfg.variant_timeout_s == 0.5
    assert cfg.max_workers == 2
    assert SolverConfig.from_yaml_text("") == SolverConfig()


def test_unknown_keys_rejected():
    with pytest.raises(ConfigError):
        SolverConfig.from_yaml_text("timeout: 3\n")
    with pytest.raises(ConfigError):
        SolverConfig.from_yaml_text("- just a list\n")


@pytest.mark.parametrize("kwargs", [
    {"variant_timeout_s": 0},
    {"max_workers": 0},
    {"probe_threshold": 120.0},
    {"min_cache_correctness": -1.0},
    {"improve_attempts": -1},
])
def test_validation(kwargs):
    with pytest.raises(ConfigError):
        SolverConfig(**kwargs)


def test_env_overlay():
    cfg = SolverConfig().with_env({"TSS_VARIANT_TIMEOUT_S": "1.5", "TSS_MAX_WORKERS": "4",
                                   "TSS_CACHE_PATH": "", "UNRELATED": "x"})
    assert cfg.variant_timeout_s == 1.5
    assert cfg.max_workers == 4
    assert cfg.cache_path == "tss_cache.json"
    with pytest.raises(ConfigError):
        SolverConfig().with_env({"TSS_IMPROVE_ATTEMPTS": "many"})


def test_from_env_reads_file_then_environment(tmp_path, monkeypatch):
    path = tmp_path / "tss.yaml"
    path.write_text("cache_path: other.json\nmax_workers: 2\n", encoding="utf-8")
    monkeypatch.setenv("TSS_CONFIG_PATH", str(path))
    monkeypatch.setenv("TSS_MAX_WORKERS", "3")
    cfg = SolverConfig.from_env()
    assert cfg.cache_path == "other.json"
    assert cfg.max_workers == 3
