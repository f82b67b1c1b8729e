# -----------------------------------------------------------------------------
# Configuration
# Purpose: Tunables for the solver ecosystem, read from a YAML file and/or the
# environment (a local .env is honoured via python-dotenv).
# Shape of the YAML file (every key optional):
#   cache_path: "tss_cache.json"
#   variant_timeout_s: 2.0
#   max_workers: 8
#   probe_threshold: 100.0
#   min_cache_correctness: 80.0
#   improve_attempts: 3
# -----------------------------------------------------------------------------

from __future__ import annotations
import os
import yaml
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Optional
from dotenv import load_dotenv

from .errors import SolverError


class ConfigError(SolverError): pass


# Environment variable → (field name, parser)
_ENV = {
    "TSS_CACHE_PATH": ("cache_path", str),
    "TSS_VARIANT_TIMEOUT_S": ("variant_timeout_s", float),
    "TSS_MAX_WORKERS": ("max_workers", int),
    "TSS_PROBE_THRESHOLD": ("probe_threshold", float),
    "TSS_MIN_CACHE_CORRECTNESS": ("min_cache_correctness", float),
    "TSS_IMPROVE_ATTEMPTS": ("improve_attempts", int),
}


@dataclass(frozen=True)
class SolverConfig:
    cache_path: str = "tss_cache.json"
    variant_timeout_s: float = 2.0     # per strategy variant
    max_workers: Optional[int] = None  # None → os.cpu_count()
    probe_threshold: float = 100.0     # re-learn a cached pattern below this
    min_cache_correctness: float = 80.0
    improve_attempts: int = 1

    def __post_init__(self):
        if self.variant_timeout_s <= 0:
            raise ConfigError("variant_timeout_s must be positive")
        if self.max_workers is not None and self.max_workers < 1:
            raise ConfigError("max_workers must be >= 1")
        if not 0.0 <= self.probe_threshold <= 100.0:
            raise ConfigError("probe_threshold must be within 0..100")
        if not 0.0 <= self.min_cache_correctness <= 100.0:
            raise ConfigError("min_cache_correctness must be within 0..100")
        if self.improve_attempts < 0:
            raise ConfigError("improve_attempts must be >= 0")

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "SolverConfig":
        known = {f.name for f in fields(SolverConfig)}
        unknown = set(d) - known
        if unknown:
            raise ConfigError(f"Unknown config keys: {sorted(unknown)}")
        try:
            return SolverConfig(**d)
        except TypeError as e:
            raise ConfigError(str(e))

    @staticmethod
    def from_yaml_text(text: str) -> "SolverConfig":
        data = yaml.safe_load(text) or {}
        if not isinstance(data, dict):
            raise ConfigError("Config root must be a mapping")
        return SolverConfig.from_dict(data)

    @staticmethod
    def from_file(path: str) -> "SolverConfig":
        with open(path, "r", encoding="utf-8") as f:
            return SolverConfig.from_yaml_text(f.read())

    def with_env(self, environ: Optional[Dict[str, str]] = None) -> "SolverConfig":
        """Overlay TSS_* environment variables on top of this config."""
        env = os.environ if environ is None else environ
        changes: Dict[str, Any] = {}
        for var, (name, parse) in _ENV.items():
            raw = env.get(var)
            if raw is None or raw.strip() == "":
                continue
            try:
                changes[name] = parse(raw)
            except ValueError:
                raise ConfigError(f"Bad value for {var}: {raw!r}")
        return replace(self, **changes) if changes else self

    @staticmethod
    def from_env(path: Optional[str] = None) -> "SolverConfig":
        """
        Load .env (if present), then build a config from `path` (or
        TSS_CONFIG_PATH) overlaid with TSS_* variables.
        """
        load_dotenv()
        path = path or os.getenv("TSS_CONFIG_PATH")
        base = SolverConfig.from_file(path) if path else SolverConfig()
        return base.with_env()
