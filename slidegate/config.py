"""Configuration loader for the slide-deck completion gateway.

Settings come from an optional JSON or YAML file (``SLIDEGATE_CONFIG``)
followed by environment overrides. The server-held provider key is resolved
from an environment variable at request time and never written to config.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from slidegate.windows import DAILY_CALENDAR, DAILY_WINDOW_MODES

DEFAULT_MODEL = "gpt-4o-mini"


@dataclass
class QuotaConfig:
    """Admission limits. global_daily=None disables the global tier."""

    requests_per_minute: int = 6
    daily_per_identity: int = 15
    global_daily: Optional[int] = None
    retain_buckets: int = 1
    daily_window: str = DAILY_CALENDAR
    timezone: str = "UTC"


@dataclass
class ProviderConfig:
    """Upstream OpenAI-compatible completion API."""

    base_url: str = "https://api.openai.com/v1"
    api_key_env: str = "OPENAI_API_KEY"
    key_prefix: str = "sk-"
    temperature: float = 0.8
    max_completion_tokens: int = 600
    timeout_seconds: float = 60.0

    @property
    def api_key(self) -> Optional[str]:
        """Resolve the server-held API key from the environment variable."""
        return os.getenv(self.api_key_env) or None


@dataclass
class GatewayConfig:
    """Top-level gateway configuration."""

    quota: QuotaConfig = field(default_factory=QuotaConfig)
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    max_raw_bytes: int = 8192
    allowed_models: List[str] = field(default_factory=lambda: [DEFAULT_MODEL])
    byok_bypasses_quota: bool = True
    cors_origins: List[str] = field(default_factory=list)
    log_file: str = "logs/slidegate.log"

    @property
    def default_model(self) -> str:
        return self.allowed_models[0] if self.allowed_models else DEFAULT_MODEL


def _split_list(value: Union[str, List[str], None]) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [item.strip() for item in value if item and item.strip()]


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off", ""):
        return False
    raise ValueError("Invalid boolean value: {!r}".format(value))


def _parse_int(name: str, value: str) -> int:
    try:
        return int(value.strip())
    except ValueError:
        raise ValueError("{} must be an integer, got {!r}".format(name, value)) from None


def _validate(config: GatewayConfig) -> GatewayConfig:
    quota = config.quota
    if quota.daily_window not in DAILY_WINDOW_MODES:
        raise ValueError(
            "daily_window must be one of {}, got {!r}".format(
                ", ".join(DAILY_WINDOW_MODES), quota.daily_window
            )
        )
    for name in ("requests_per_minute", "daily_per_identity", "retain_buckets"):
        if getattr(quota, name) < 0:
            raise ValueError("quota.{} must not be negative".format(name))
    if quota.global_daily is not None and quota.global_daily < 0:
        raise ValueError("quota.global_daily must not be negative")
    try:
        ZoneInfo(quota.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(
            "quota.timezone is not a known IANA timezone: {!r}".format(quota.timezone)
        ) from None
    if config.max_raw_bytes <= 0:
        raise ValueError("max_raw_bytes must be positive")
    if not config.allowed_models:
        raise ValueError("allowed_models must contain at least one model")
    return config


def config_from_dict(raw: Dict[str, Any]) -> GatewayConfig:
    """Build a GatewayConfig from a parsed JSON/YAML mapping."""
    quota_raw = raw.get("quota", {})
    quota = QuotaConfig(
        requests_per_minute=quota_raw.get("requests_per_minute", 6),
        daily_per_identity=quota_raw.get("daily_per_identity", 15),
        global_daily=quota_raw.get("global_daily"),
        retain_buckets=quota_raw.get("retain_buckets", 1),
        daily_window=quota_raw.get("daily_window", DAILY_CALENDAR),
        timezone=quota_raw.get("timezone", "UTC"),
    )

    provider_raw = raw.get("provider", {})
    provider = ProviderConfig(
        base_url=provider_raw.get("base_url", "https://api.openai.com/v1"),
        api_key_env=provider_raw.get("api_key_env", "OPENAI_API_KEY"),
        key_prefix=provider_raw.get("key_prefix", "sk-"),
        temperature=provider_raw.get("temperature", 0.8),
        max_completion_tokens=provider_raw.get("max_completion_tokens", 600),
        timeout_seconds=provider_raw.get("timeout_seconds", 60.0),
    )

    return _validate(
        GatewayConfig(
            quota=quota,
            provider=provider,
            max_raw_bytes=raw.get("max_raw_bytes", 8192),
            allowed_models=_split_list(raw.get("allowed_models", [DEFAULT_MODEL])),
            byok_bypasses_quota=raw.get("byok_bypasses_quota", True),
            cors_origins=_split_list(raw.get("cors_origins", [])),
            log_file=raw.get("log_file", "logs/slidegate.log"),
        )
    )


def load_config(path: Union[str, Path]) -> GatewayConfig:
    """Load gateway configuration from a JSON or YAML file.

    Args:
        path: Path to the config file. ``.yaml``/``.yml`` files are parsed
            as YAML, anything else as JSON.

    Returns:
        A validated GatewayConfig instance.

    Raises:
        FileNotFoundError: If the config file does not exist.
        ValueError: If the config file contains invalid data.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        if path.suffix in (".yaml", ".yml"):
            raw = yaml.safe_load(f) or {}
        else:
            raw = json.load(f)

    if not isinstance(raw, dict):
        raise ValueError("Config file must contain a mapping at the top level")

    return config_from_dict(raw)


def apply_env_overrides(
    config: GatewayConfig, environ: Mapping[str, str]
) -> GatewayConfig:
    """Apply deployment environment variables on top of a loaded config."""
    quota = config.quota
    provider = config.provider

    if environ.get("RATE_LIMIT_RPM"):
        quota.requests_per_minute = _parse_int("RATE_LIMIT_RPM", environ["RATE_LIMIT_RPM"])
    if environ.get("FREE_TIER_DAILY"):
        quota.daily_per_identity = _parse_int("FREE_TIER_DAILY", environ["FREE_TIER_DAILY"])
    if environ.get("GLOBAL_DAILY_LIMIT"):
        quota.global_daily = _parse_int("GLOBAL_DAILY_LIMIT", environ["GLOBAL_DAILY_LIMIT"])
    if environ.get("DAILY_WINDOW"):
        quota.daily_window = environ["DAILY_WINDOW"].strip().lower()
    if environ.get("QUOTA_TIMEZONE"):
        quota.timezone = environ["QUOTA_TIMEZONE"].strip()

    if environ.get("MAX_RAW_BYTES"):
        config.max_raw_bytes = _parse_int("MAX_RAW_BYTES", environ["MAX_RAW_BYTES"])
    if environ.get("ALLOWED_MODELS"):
        config.allowed_models = _split_list(environ["ALLOWED_MODELS"])
    if environ.get("CORS_ORIGIN"):
        config.cors_origins = _split_list(environ["CORS_ORIGIN"])
    if "BYOK_BYPASSES_QUOTA" in environ:
        config.byok_bypasses_quota = _parse_bool(environ["BYOK_BYPASSES_QUOTA"])
    if environ.get("LOG_FILE"):
        config.log_file = environ["LOG_FILE"]

    if environ.get("MAX_COMPLETION_TOKENS"):
        provider.max_completion_tokens = _parse_int(
            "MAX_COMPLETION_TOKENS", environ["MAX_COMPLETION_TOKENS"]
        )
    if environ.get("OPENAI_BASE_URL"):
        provider.base_url = environ["OPENAI_BASE_URL"]

    return _validate(config)


def load_config_from_env(environ: Optional[Mapping[str, str]] = None) -> GatewayConfig:
    """Load config from ``SLIDEGATE_CONFIG`` (if set) plus env overrides."""
    if environ is None:
        environ = os.environ

    config_path = environ.get("SLIDEGATE_CONFIG")
    config = load_config(config_path) if config_path else GatewayConfig()
    return apply_env_overrides(config, environ)
