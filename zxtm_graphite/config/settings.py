"""YAML config loader with environment variable expansion."""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

from zxtm_graphite.errors import ConfigurationError

LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


def _expand_env_vars(value: str) -> str:
    """Replace ${VAR_NAME} with environment variable values."""
    pattern = re.compile(r"\$\{([^}]+)\}")
    def replacer(match: re.Match) -> str:
        var = match.group(1)
        return os.environ.get(var, match.group(0))
    return pattern.sub(replacer, value)


def _walk_and_expand(obj: object) -> object:
    """Recursively expand environment variables in strings."""
    if isinstance(obj, str):
        return _expand_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _walk_and_expand(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_walk_and_expand(item) for item in obj]
    return obj


class SnmpConfig(BaseModel):
    community: str = "public"
    version: str = "2c"            # 1 | 2c
    port: int = 161
    timeout: float = 2.0
    retries: int = 1
    max_repetitions: int = 25
    mib_dir: str | None = "mib"
    mib_module: str = "ZXTM-MIB-SMIv2"


class TargetConfig(BaseModel):
    host: str
    port: int | None = None        # falls back to snmp.port
    community: str | None = None   # falls back to snmp.community
    interval: int | None = None    # falls back to schedule.interval


class GraphiteConfig(BaseModel):
    host: str | None = None
    port: int = 2003
    interval: int = 0              # flush interval in seconds, 0 sends immediately
    timeout: float = 10.0
    prefix: str = "zxtm"


class ScheduleConfig(BaseModel):
    interval: int = 10


class LoggingConfig(BaseModel):
    level: str = "WARNING"


class Settings(BaseModel):
    targets: list[TargetConfig] = Field(default_factory=list)
    snmp: SnmpConfig = Field(default_factory=SnmpConfig)
    graphite: GraphiteConfig = Field(default_factory=GraphiteConfig)
    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def interval_for(self, target: TargetConfig) -> int:
        if target.interval is not None:
            return target.interval
        return self.schedule.interval

    @property
    def log_level(self) -> int:
        return getattr(logging, self.logging.level.upper())


def load_config(path: str | Path | None = None) -> Settings:
    """Load configuration from a YAML file, falling back to defaults."""
    if path is None:
        candidates = [
            Path("zxtm-graphite.yaml"),
            Path("zxtm-graphite.yml"),
            Path.home() / ".zxtm-graphite" / "config.yaml",
        ]
        for candidate in candidates:
            if candidate.exists():
                path = candidate
                break

    if path is None:
        return Settings()

    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"Config file not found: {path}")

    try:
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Cannot parse {path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigurationError(
            f"Invalid configuration in {path}: expected a mapping at top level"
        )
    raw = _walk_and_expand(raw)

    # Plain host strings are accepted as shorthand for {"host": ...}
    targets = raw.get("targets") or []
    if isinstance(targets, str):
        targets = [targets]
    elif not isinstance(targets, list):
        raise ConfigurationError(
            f"Invalid configuration in {path}: targets must be a list"
        )
    raw["targets"] = [{"host": t} if isinstance(t, str) else t for t in targets]

    try:
        return Settings.model_validate(raw)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration in {path}: {exc}") from exc


def apply_overrides(
    settings: Settings,
    *,
    hosts: list[str] | None = None,
    graphite_host: str | None = None,
    graphite_port: int | None = None,
    graphite_interval: int | None = None,
    interval: int | None = None,
    community: str | None = None,
    mib_dir: str | None = None,
    prefix: str | None = None,
    log_level: str | None = None,
) -> Settings:
    """Layer command-line values over file settings. Returns a new Settings."""
    update: dict[str, Any] = {}

    if hosts:
        update["targets"] = [TargetConfig(host=host) for host in hosts]

    graphite: dict[str, Any] = {}
    if graphite_host is not None:
        graphite["host"] = graphite_host
    if graphite_port is not None:
        graphite["port"] = graphite_port
    if graphite_interval is not None:
        graphite["interval"] = graphite_interval
    if prefix is not None:
        graphite["prefix"] = prefix
    if graphite:
        update["graphite"] = settings.graphite.model_copy(update=graphite)

    snmp: dict[str, Any] = {}
    if community is not None:
        snmp["community"] = community
    if mib_dir is not None:
        snmp["mib_dir"] = mib_dir
    if snmp:
        update["snmp"] = settings.snmp.model_copy(update=snmp)

    if interval is not None:
        update["schedule"] = ScheduleConfig(interval=interval)
    if log_level is not None:
        update["logging"] = LoggingConfig(level=log_level)

    return settings.model_copy(update=update)


def validate_settings(settings: Settings) -> None:
    """Reject settings that cannot be run. Raises ConfigurationError."""
    if not settings.graphite.host:
        raise ConfigurationError("No Graphite server given (-G/--graphite-server)")
    if not settings.targets:
        raise ConfigurationError("No ZXTM targets given")

    seen: set[str] = set()
    for target in settings.targets:
        if target.host in seen:
            raise ConfigurationError(f"Duplicate target '{target.host}'")
        seen.add(target.host)
        if settings.interval_for(target) <= 0:
            raise ConfigurationError(
                f"Poll interval for '{target.host}' must be positive"
            )

    if settings.graphite.interval < 0:
        raise ConfigurationError("Graphite flush interval must not be negative")
    if settings.snmp.version not in ("1", "2c"):
        raise ConfigurationError(
            f"Unsupported SNMP version '{settings.snmp.version}' (use 1 or 2c)"
        )
    if settings.logging.level.upper() not in LOG_LEVELS:
        raise ConfigurationError(f"Unknown log level '{settings.logging.level}'")
