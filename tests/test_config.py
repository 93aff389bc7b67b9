"""
tests.test_config
~~~~~~~~~~~~~~~~~

Settings 环境推断测试。
"""
from __future__ import annotations

import pytest

from botanic.core.config import Settings


def test_ping_period_is_shorter_than_pong_wait() -> None:
    settings = Settings(WS_PONG_WAIT=60)

    assert settings.ws_ping_period == pytest.approx(54.0)


@pytest.mark.parametrize(
    ("environment", "level"),
    [("dev", "INFO"), ("test", "DEBUG"), ("prod", "WARNING")],
)
def test_effective_log_level_follows_environment(
    monkeypatch: pytest.MonkeyPatch, environment: str, level: str,
) -> None:
    monkeypatch.delenv("LOG_LEVEL", raising=False)

    assert Settings(ENVIRONMENT=environment).effective_log_level == level


def test_explicit_log_level_wins(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LOG_LEVEL", "ERROR")

    assert Settings(ENVIRONMENT="prod").effective_log_level == "ERROR"


def test_cors_only_restricted_in_prod() -> None:
    assert Settings(ENVIRONMENT="dev").allow_cors_all_origins
    assert not Settings(ENVIRONMENT="prod").allow_cors_all_origins
