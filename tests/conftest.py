"""Pytest configuration and shared fixtures."""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

T0 = datetime(2024, 3, 15, 14, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime = T0):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def token_path(tmp_path):
    return tmp_path / "token.json"


@pytest.fixture(autouse=True)
def isolate_env(monkeypatch, tmp_path):
    """Keep developer config out of the tests."""
    for var in (
        "CONFIG_FILE_LOCATION",
        "SCHWAB_CLIENT_CONFIG",
        "SCHWAB_CLIENT_ID",
        "SCHWAB_CLIENT_SECRET",
        "SCHWAB_TOKEN_FILE",
        "PIES_LOG_LEVEL",
        "PIES_LOG_FORMAT",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
