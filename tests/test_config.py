"""Tests for AppConfig helpers."""

from __future__ import annotations

from pathlib import Path

import pytest

from firedesk import config as config_module
from firedesk.config import AppConfig, LayoutState, ProjectProfileConfig, load_config, save_config


def _profile(name: str = "Prod", **overrides: object) -> ProjectProfileConfig:
    values: dict[str, object] = {"name": name, "service_account_path": f"/keys/{name.lower()}.json"}
    values.update(overrides)
    return ProjectProfileConfig(**values)


def test_load_config_returns_defaults_when_missing(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config_module, "CONFIG_FILE", tmp_path / "config.toml")

    result = load_config()

    assert result == AppConfig()
    assert result.query_timeout is None


def test_load_config_reads_values(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text(
        """
theme = "light"
active_profile = "Prod"
query_timeout = 30

[[profiles]]
name = "Prod"
service_account_path = "/keys/prod.json"
database_id = "analytics"
project_id = "acme-prod"
collections = ["users", "orders"]

[[profiles]]
name = "Broken"

[layout]
sidebar_width = 30
"""
    )
    monkeypatch.setattr(config_module, "CONFIG_FILE", config_path)

    result = load_config()

    assert result.theme == "light"
    assert result.active_profile == "Prod"
    assert result.query_timeout == 30.0
    assert [profile.name for profile in result.profiles] == ["Prod"]
    assert result.profiles[0].database_id == "analytics"
    assert result.profiles[0].project_id == "acme-prod"
    assert result.profiles[0].collections == ["users", "orders"]
    assert result.layout.sidebar_width == 30


def test_load_config_ignores_invalid_timeout(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text("query_timeout = -5\n")
    monkeypatch.setattr(config_module, "CONFIG_FILE", config_path)

    assert load_config().query_timeout is None


def test_load_config_handles_toml_errors(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text("theme = [unterminated")
    monkeypatch.setattr(config_module, "CONFIG_FILE", config_path)

    result = load_config()

    assert result == AppConfig()


def test_save_config_persists_values(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = tmp_path / "nested" / "config.toml"
    monkeypatch.setattr(config_module, "CONFIG_FILE", config_path)

    save_config(
        AppConfig(
            theme="light",
            profiles=[_profile("Prod", database_id="analytics", collections=["users"])],
            active_profile="Prod",
            query_timeout=12.5,
            layout=LayoutState(sidebar_width=32),
        )
    )

    content = config_path.read_text()
    assert 'theme = "light"' in content
    assert 'active_profile = "Prod"' in content
    assert "query_timeout = 12.5" in content
    assert "[layout]" in content
    assert "sidebar_width = 32" in content
    assert "[[profiles]]" in content
    assert 'service_account_path = "/keys/prod.json"' in content
    assert 'database_id = "analytics"' in content
    assert 'collections = ["users"]' in content


def test_save_then_load_preserves_escaped_paths(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config_module, "CONFIG_FILE", tmp_path / "config.toml")
    original = AppConfig(profiles=[_profile("Win", service_account_path='C:\\keys\\"prod".json')])

    save_config(original)

    assert load_config().profiles[0].service_account_path == 'C:\\keys\\"prod".json'


def test_with_active_profile_updates_field() -> None:
    updated = AppConfig().with_active_profile("Prod")

    assert updated.active_profile == "Prod"


def test_with_layout_updates_state() -> None:
    updated = AppConfig().with_layout(sidebar_width=40)

    assert updated.layout.sidebar_width == 40


def test_with_profile_replaces_in_place() -> None:
    config = AppConfig(profiles=[_profile("A"), _profile("B"), _profile("C")])

    updated = config.with_profile(_profile("B", database_id="other"))

    assert [profile.name for profile in updated.profiles] == ["A", "B", "C"]
    assert updated.profile("B") is not None
    assert updated.profile("B").database_id == "other"
    assert config.profile("B").database_id is None


def test_with_profile_appends_new_entries() -> None:
    updated = AppConfig(profiles=[_profile("A")]).with_profile(_profile("Z"))

    assert [profile.name for profile in updated.profiles] == ["A", "Z"]


def test_with_profile_collections_records_listing() -> None:
    config = AppConfig(profiles=[_profile("Prod")])

    updated = config.with_profile_collections("Prod", ["users", "orders"], project_id="acme-prod")

    assert updated.profile("Prod").collections == ["users", "orders"]
    assert updated.profile("Prod").project_id == "acme-prod"
    assert config.with_profile_collections("Missing", ["x"]) is config


def test_without_profile_clears_active_selection() -> None:
    config = AppConfig(profiles=[_profile("A"), _profile("B")], active_profile="A")

    updated = config.without_profile("A")

    assert [profile.name for profile in updated.profiles] == ["B"]
    assert updated.active_profile is None
    assert config.without_profile("B").active_profile == "A"
