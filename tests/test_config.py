"""Tests for vrest.config -- config files, environment precedence and credential sources."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from vrest.config import load_config_file, resolve_client_config, resolve_credential
from vrest.exceptions import ConfigError
from vrest.models import ClientConfig


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_json(path: Path, data: Any) -> Path:
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for var in (
        "VREST_CONFIG",
        "VREST_BASE_URL",
        "VREST_CONTENT_TYPE",
        "VREST_TIMEOUT",
        "VREST_RESPONSE_BODY_LIMIT",
    ):
        monkeypatch.delenv(var, raising=False)


# ---------------------------------------------------------------------------
# load_config_file
# ---------------------------------------------------------------------------


class TestLoadConfigFile:
    def test_valid_file(self, tmp_path: Path) -> None:
        path = _write_json(
            tmp_path / "vrest.json",
            {
                "base_url": "https://api.example.com",
                "content_type": "application/json",
                "response_body_limit": 2048,
                "oauth": {"url": "https://login.example.com/token", "client_id": "app"},
            },
        )
        config = load_config_file(path)
        assert config.base_url == "https://api.example.com"
        assert config.response_body_limit == 2048
        assert config.oauth.grant_type == "client_credentials"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            load_config_file(tmp_path / "nope.json")

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid config"):
            load_config_file(path)

    def test_invalid_values(self, tmp_path: Path) -> None:
        path = _write_json(tmp_path / "bad.json", {"response_body_limit": -1})
        with pytest.raises(ConfigError):
            load_config_file(path)

    def test_client_secret_from_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ORDERS_SECRET", "from-env")
        path = _write_json(
            tmp_path / "vrest.json",
            {"oauth": {"url": "https://login.example.com/token", "client_secret": "env:ORDERS_SECRET"}},
        )
        assert load_config_file(path).oauth.client_secret == "from-env"


# ---------------------------------------------------------------------------
# resolve_client_config
# ---------------------------------------------------------------------------


class TestResolveClientConfig:
    def test_defaults(self) -> None:
        assert resolve_client_config() == ClientConfig()

    def test_env_overrides_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = _write_json(tmp_path / "vrest.json", {"base_url": "https://file.example.com", "timeout": 3})
        monkeypatch.setenv("VREST_CONFIG", str(path))
        monkeypatch.setenv("VREST_BASE_URL", "https://env.example.com")

        config = resolve_client_config()
        assert config.base_url == "https://env.example.com"
        assert config.timeout == 3

    def test_overrides_win(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = _write_json(tmp_path / "vrest.json", {"base_url": "https://file.example.com"})
        monkeypatch.setenv("VREST_BASE_URL", "https://env.example.com")
        monkeypatch.setenv("VREST_RESPONSE_BODY_LIMIT", "100")

        config = resolve_client_config(path, base_url="https://cli.example.com", timeout=None)
        assert config.base_url == "https://cli.example.com"
        assert config.response_body_limit == 100
        assert config.timeout == 0

    def test_invalid_env_value(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("VREST_TIMEOUT", "soon")
        with pytest.raises(ConfigError, match="Invalid client configuration"):
            resolve_client_config()


# ---------------------------------------------------------------------------
# resolve_credential
# ---------------------------------------------------------------------------


class TestResolveCredential:
    def test_literal(self) -> None:
        assert resolve_credential("plain-secret") == "plain-secret"

    def test_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MY_SECRET", "abc")
        assert resolve_credential("env:MY_SECRET") == "abc"

    def test_env_missing(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("MY_SECRET", raising=False)
        with pytest.raises(ConfigError, match="MY_SECRET"):
            resolve_credential("env:MY_SECRET")

    def test_file(self, tmp_path: Path) -> None:
        secret = tmp_path / "secret.txt"
        secret.write_text("  from-file\n", encoding="utf-8")
        assert resolve_credential(f"file:{secret}") == "from-file"

    def test_file_missing(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            resolve_credential(f"file:{tmp_path / 'missing'}")
