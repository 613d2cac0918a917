"""Runtime settings resolved from defaults, an optional YAML file and the environment."""

from __future__ import annotations

import os
from copy import deepcopy
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml

from salesboard.errors import ConfigurationError
from salesboard.logging_config import get_logger

LOGGER = get_logger(__name__)

TARGET_URL = "https://app.upseller.com/pt/analytics/store-sales"

DEFAULT_CONFIG: dict[str, Any] = {
    "target": {
        "url": TARGET_URL,
        "cookie_domain": "app.upseller.com",
        "title_hint": "upseller",
    },
    "groups": {
        "prefixes": ["MELI", "SHOPEE", "AMAZON"],
        "top_n": 7,
    },
    "connection": {
        "tries_per_endpoint": 2,
        "backoff_base_s": 0.8,
        "jitter_s": 0.4,
        "connect_timeout_ms": 10000,
        "regions": ["production-sfo.", "production-ams."],
    },
    "timeouts": {
        "deadline_s": 55,
        "action_ms": 25000,
        "navigation_ms": 60000,
        "loaded_ms": 15000,
        "initial_ready_ms": 15000,
        "results_ready_ms": 8000,
        "panel_ms": 1500,
    },
    "picker": {
        "open_attempts": 2,
        "max_nav_steps": 24,
    },
    "table": {"max_rows": 500},
    "waits": {"multiplier": 1.0},
}


def _env_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except ValueError:
        LOGGER.warning("Ignoring non-integer %s=%r", name, raw)
        return default


def _env_float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = environ.get(name)
    if raw is None:
        return default
    try:
        return float(raw.strip())
    except ValueError:
        LOGGER.warning("Ignoring non-numeric %s=%r", name, raw)
        return default


def _deep_merge(default: Any, override: Any) -> Any:
    if not isinstance(default, dict) or not isinstance(override, dict):
        return deepcopy(override)

    merged: dict[str, Any] = deepcopy(default)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = deepcopy(value)
    return merged


def _load_config(path: Path | None) -> dict[str, Any]:
    if path is None:
        return deepcopy(DEFAULT_CONFIG)
    if not path.exists():
        LOGGER.warning("Configuration file %s not found; using defaults", path)
        return deepcopy(DEFAULT_CONFIG)
    with path.open("r", encoding="utf-8") as handle:
        try:
            data = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file {path} must contain a mapping")
    return _deep_merge(DEFAULT_CONFIG, data)


def _split_prefixes(raw: Any) -> tuple[str, ...]:
    if isinstance(raw, str):
        items = raw.split(",")
    elif isinstance(raw, (list, tuple, set)):
        items = [str(item) for item in raw]
    else:
        items = []
    return tuple(item.strip() for item in items if item and item.strip())


@dataclass(frozen=True)
class RetryPolicy:
    """Per-invocation connection retry parameters."""

    tries_per_endpoint: int = 2
    base_delay_s: float = 0.8
    jitter_s: float = 0.4
    connect_timeout_ms: int = 10000
    regions: tuple[str, ...] = ("production-sfo.", "production-ams.")


# Share of the invocation deadline the connect attempts may consume in total.
CONNECT_BUDGET_SHARE = 0.8


@dataclass(frozen=True)
class Settings:
    """Resolved, immutable settings for one process."""

    target_url: str = TARGET_URL
    cookie_domain: str = "app.upseller.com"
    title_hint: str = "upseller"
    group_prefixes: tuple[str, ...] = ("MELI", "SHOPEE", "AMAZON")
    top_n: int = 7
    tries_per_endpoint: int = 2
    backoff_base_s: float = 0.8
    jitter_s: float = 0.4
    connect_timeout_ms: int = 10000
    regions: tuple[str, ...] = ("production-sfo.", "production-ams.")
    deadline_s: float = 55.0
    action_timeout_ms: int = 25000
    navigation_timeout_ms: int = 60000
    loaded_timeout_ms: int = 15000
    initial_ready_timeout_ms: int = 15000
    results_ready_timeout_ms: int = 8000
    panel_timeout_ms: int = 1500
    open_attempts: int = 2
    max_nav_steps: int = 24
    max_rows: int = 500
    wait_multiplier: float = 1.0

    def retry_policy(self) -> RetryPolicy:
        """Return the connection retry policy for one invocation.

        The per-attempt connect timeout is capped so that every attempt on
        every region fits inside the invocation deadline.
        """

        attempts = max(1, len(self.regions)) * max(1, self.tries_per_endpoint)
        budget_ms = int(self.deadline_s * 1000 * CONNECT_BUDGET_SHARE / attempts)
        return RetryPolicy(
            tries_per_endpoint=self.tries_per_endpoint,
            base_delay_s=self.backoff_base_s,
            jitter_s=self.jitter_s,
            connect_timeout_ms=max(1, min(self.connect_timeout_ms, budget_ms)),
            regions=self.regions,
        )


def load_settings(
    config_path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Build :class:`Settings` from defaults, YAML overlay and env overrides."""

    env = os.environ if environ is None else environ
    path_value = config_path or env.get("SALESBOARD_CONFIG")
    config = _load_config(Path(path_value) if path_value else None)

    target = config["target"]
    groups = config["groups"]
    connection = config["connection"]
    timeouts = config["timeouts"]
    picker = config["picker"]

    prefixes = _split_prefixes(env.get("SALESBOARD_GROUPS") or groups.get("prefixes"))
    if not prefixes:
        raise ConfigurationError("At least one group prefix must be configured")

    top_n = _env_int(env, "SALESBOARD_TOP_N", int(groups.get("top_n", 7)))
    if top_n <= 0:
        raise ConfigurationError(f"top_n must be positive, got {top_n}")

    multiplier = _env_float(
        env, "SALESBOARD_WAIT_MULTIPLIER", float(config["waits"].get("multiplier", 1.0))
    )

    return Settings(
        target_url=(env.get("SALESBOARD_TARGET_URL") or target["url"]).strip(),
        cookie_domain=(env.get("SALESBOARD_COOKIE_DOMAIN") or target["cookie_domain"]).strip(),
        title_hint=str(target.get("title_hint", "upseller")).lower(),
        group_prefixes=prefixes,
        top_n=top_n,
        tries_per_endpoint=max(
            1, _env_int(env, "SALESBOARD_CONNECT_TRIES", int(connection["tries_per_endpoint"]))
        ),
        backoff_base_s=max(
            0.0, _env_float(env, "SALESBOARD_BACKOFF_BASE", float(connection["backoff_base_s"]))
        ),
        jitter_s=max(0.0, float(connection["jitter_s"])),
        connect_timeout_ms=max(
            1,
            _env_int(env, "SALESBOARD_CONNECT_TIMEOUT_MS", int(connection["connect_timeout_ms"])),
        ),
        regions=_split_prefixes(connection.get("regions")),
        deadline_s=max(1.0, _env_float(env, "SALESBOARD_DEADLINE_S", float(timeouts["deadline_s"]))),
        action_timeout_ms=_env_int(env, "SALESBOARD_ACTION_TIMEOUT_MS", int(timeouts["action_ms"])),
        navigation_timeout_ms=int(timeouts["navigation_ms"]),
        loaded_timeout_ms=int(timeouts["loaded_ms"]),
        initial_ready_timeout_ms=int(timeouts["initial_ready_ms"]),
        results_ready_timeout_ms=int(timeouts["results_ready_ms"]),
        panel_timeout_ms=int(timeouts["panel_ms"]),
        open_attempts=max(1, int(picker["open_attempts"])),
        max_nav_steps=max(1, int(picker["max_nav_steps"])),
        max_rows=max(1, int(config["table"]["max_rows"])),
        wait_multiplier=max(multiplier, 0.0),
    )


__all__ = ["DEFAULT_CONFIG", "RetryPolicy", "Settings", "TARGET_URL", "load_settings"]
