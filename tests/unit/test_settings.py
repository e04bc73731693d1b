"""Unit tests for environment-driven operator settings."""

import pytest
from pydantic import ValidationError

from sharedsecret_operator.settings import Settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "SHAREDSECRET_OPERATOR_NAMESPACES",
        "REQUEUE_INTERVAL_SECONDS",
        "CONTROLLER_POD_NAME",
        "JSON_LOGS",
    ):
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = Settings(_env_file=None)

    assert settings.requeue_interval_seconds == 300
    assert settings.controller_name == "sharedsecretctl"
    assert settings.controller_pod_name == ""
    assert settings.watched_namespaces is None


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("REQUEUE_INTERVAL_SECONDS", "60")
    monkeypatch.setenv("CONTROLLER_POD_NAME", "sharedsecretctl-7d9f")
    monkeypatch.setenv("JSON_LOGS", "false")

    settings = Settings(_env_file=None)

    assert settings.requeue_interval_seconds == 60
    assert settings.controller_pod_name == "sharedsecretctl-7d9f"
    assert settings.json_logs is False


def test_watched_namespaces_are_split(monkeypatch):
    monkeypatch.setenv("SHAREDSECRET_OPERATOR_NAMESPACES", "team-a, team-b,,")

    assert Settings(_env_file=None).watched_namespaces == ["team-a", "team-b"]


def test_requeue_interval_must_be_positive(monkeypatch):
    monkeypatch.setenv("REQUEUE_INTERVAL_SECONDS", "0")

    with pytest.raises(ValidationError):
        Settings(_env_file=None)
