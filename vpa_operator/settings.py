import logging
import os
from dataclasses import dataclass, replace
from typing import Iterable, Optional, Tuple

import yaml

from .reconciler import DEFAULT_EXEMPT_PREFIXES, ExemptionPolicy

logger = logging.getLogger("vpa-operator.settings")

DEFAULT_CONFIG_PATH = "/app/config/vpa-operator.yaml"


def _split(value: str) -> Tuple[str, ...]:
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _as_tuple(value) -> Tuple[str, ...]:
    if isinstance(value, str):
        return _split(value)
    return tuple(str(item).strip() for item in value or () if str(item).strip())


def _with_defaults(prefixes: Iterable[str]) -> Tuple[str, ...]:
    """ goldilocks stays exempt whatever is configured; extra prefixes are appended once. """
    merged = list(DEFAULT_EXEMPT_PREFIXES)
    for prefix in prefixes:
        if prefix not in merged:
            merged.append(prefix)
    return tuple(merged)


def _as_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    interval: int = 300
    log_level: str = "INFO"
    health_port: int = 8080
    retry_wait_ms: int = 2000
    retry_max_attempts: int = 5
    exempt_prefixes: Tuple[str, ...] = DEFAULT_EXEMPT_PREFIXES
    exempt_owners: Tuple[str, ...] = ()
    dry_run: bool = False

    @property
    def exemption_policy(self) -> ExemptionPolicy:
        return ExemptionPolicy(prefixes=self.exempt_prefixes, owners=self.exempt_owners)


def from_env(environ=None) -> Settings:
    """ Defaults overridden by environment variables. """
    env = os.environ if environ is None else environ
    return Settings(
        interval=int(env.get("SLEEP_INTERVAL", "300")),
        log_level=env.get("LOG_LEVEL", "INFO").upper(),
        health_port=int(env.get("HEALTH_PORT", "8080")),
        retry_wait_ms=int(env.get("RETRY_WAIT_MS", "2000")),
        retry_max_attempts=int(env.get("RETRY_MAX_ATTEMPTS", "5")),
        exempt_prefixes=_with_defaults(_split(env.get("EXEMPT_PREFIXES", ""))),
        exempt_owners=_split(env.get("EXEMPT_OWNERS", "")),
        dry_run=_as_bool(env.get("DRY_RUN", "false")),
    )


def apply_file(settings: Settings, path: str) -> Settings:
    """ Overlay values from a mounted YAML config file, keeping current values for absent keys. """
    if not os.path.exists(path):
        logger.info(f"ℹ️ Config file {path} not found, using defaults")
        return settings
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError("top level must be a mapping")

        retry = data.get("retry", {}) or {}
        exemption = data.get("exemption", {}) or {}
        updated = replace(
            settings,
            interval=int(data.get("interval", settings.interval)),
            log_level=str(data.get("logLevel", settings.log_level)).upper(),
            health_port=int(data.get("healthPort", settings.health_port)),
            retry_wait_ms=int(retry.get("waitMs", settings.retry_wait_ms)),
            retry_max_attempts=int(retry.get("maxAttempts", settings.retry_max_attempts)),
            exempt_prefixes=_with_defaults(_as_tuple(exemption["prefixes"])) if "prefixes" in exemption else settings.exempt_prefixes,
            exempt_owners=_as_tuple(exemption["owners"]) if "owners" in exemption else settings.exempt_owners,
            dry_run=_as_bool(data.get("dryRun", settings.dry_run)),
        )
    except (OSError, yaml.YAMLError, ValueError, TypeError, AttributeError) as e:
        logger.warning(f"⚠️ Failed to load config file {path}: {e}")
        return settings
    logger.info(f"✅ Loaded config values from {path}")
    return updated


def load_settings(path: Optional[str] = None, environ=None) -> Settings:
    env = os.environ if environ is None else environ
    return apply_file(from_env(env), path or env.get("CONFIG_PATH", DEFAULT_CONFIG_PATH))
