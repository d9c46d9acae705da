"""Shared test fixtures for the slide-deck gateway tests."""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

import pytest

from slidegate.config import GatewayConfig, load_config

# 2026-03-10 12:00:30 UTC, half-way through a minute window.
START = datetime(2026, 3, 10, 12, 0, 30, tzinfo=timezone.utc).timestamp()


class FakeClock:
    """Controllable time source (epoch seconds)."""

    def __init__(self, start: float = START) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def set(self, when: datetime) -> None:
        self.now = when.timestamp()


def _make_config(tmp_path: Path, overrides: Optional[Dict] = None) -> str:
    """Write a minimal test config and return its path."""
    config = {
        "quota": {
            "requests_per_minute": 5,
            "daily_per_identity": 10,
            "global_daily": 100,
        },
        "provider": {
            "base_url": "https://api.example.com/v1",
            "api_key_env": "TEST_OPENAI_KEY",
        },
        "max_raw_bytes": 8192,
        "allowed_models": ["gpt-4o-mini"],
        "log_file": str(tmp_path / "test.log"),
    }
    if overrides:
        config.update(overrides)

    path = tmp_path / "test_config.json"
    path.write_text(json.dumps(config))
    return str(path)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def test_config_path(tmp_path: Path) -> str:
    """Return the path to a temporary test config file."""
    return _make_config(tmp_path)


@pytest.fixture()
def test_config(test_config_path: str) -> GatewayConfig:
    """Return a loaded test GatewayConfig."""
    return load_config(test_config_path)
