"""App configuration loading helpers."""

from __future__ import annotations

from pathlib import Path

import tomllib

from pydantic import BaseModel, Field

CONFIG_FILE = Path.home() / ".config" / "firedesk" / "config.toml"


class LayoutState(BaseModel):
    """Persisted layout hints for the TUI."""

    sidebar_width: int | None = None


class ProjectProfileConfig(BaseModel):
    """Saved project entry; runtime state such as connection status is not stored."""

    name: str
    service_account_path: str
    database_id: str | None = None
    project_id: str | None = None
    collections: list[str] = Field(default_factory=list)


class AppConfig(BaseModel):
    """Shape of the application configuration file."""

    theme: str = "dark"
    profiles: list[ProjectProfileConfig] = Field(default_factory=list)
    active_profile: str | None = None
    query_timeout: float | None = None
    layout: LayoutState = Field(default_factory=LayoutState)

    def profile(self, name: str) -> ProjectProfileConfig | None:
        for entry in self.profiles:
            if entry.name == name:
                return entry
        return None

    def with_active_profile(self, name: str | None) -> AppConfig:
        """Return a copy with the active profile updated."""

        return self.model_copy(update={"active_profile": name})

    def with_layout(self, **updates: object) -> AppConfig:
        """Return a copy with layout state changes applied."""

        layout = self.layout.model_copy(update=updates)
        return self.model_copy(update={"layout": layout})

    def with_profile(self, profile: ProjectProfileConfig) -> AppConfig:
        """Add ``profile`` or replace the existing entry with the same name."""

        profiles = [entry for entry in self.profiles if entry.name != profile.name]
        index = next((idx for idx, entry in enumerate(self.profiles) if entry.name == profile.name), len(profiles))
        profiles.insert(index, profile)
        return self.model_copy(update={"profiles": profiles})

    def with_profile_collections(
        self,
        name: str,
        collections: list[str],
        *,
        project_id: str | None = None,
    ) -> AppConfig:
        """Remember the last listed collections (and project id) for a profile."""

        current = self.profile(name)
        if current is None:
            return self
        updates: dict[str, object] = {"collections": list(collections)}
        if project_id:
            updates["project_id"] = project_id
        return self.with_profile(current.model_copy(update=updates))

    def without_profile(self, name: str) -> AppConfig:
        profiles = [entry for entry in self.profiles if entry.name != name]
        active = None if self.active_profile == name else self.active_profile
        return self.model_copy(update={"profiles": profiles, "active_profile": active})


def load_config() -> AppConfig:
    """Load configuration from disk; fall back to defaults if missing."""

    try:
        data = _read_config_file()
    except FileNotFoundError:
        return AppConfig()
    except (tomllib.TOMLDecodeError, OSError):
        return AppConfig()

    return AppConfig(
        theme=data.get("theme", AppConfig.model_fields["theme"].default),
        profiles=data.get("profiles", []),
        active_profile=data.get("active_profile"),
        query_timeout=data.get("query_timeout"),
        layout=data.get("layout", LayoutState()),
    )


def save_config(config: AppConfig) -> None:
    """Persist configuration to disk."""

    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    lines: list[str] = [f"theme = {_quote(config.theme)}"]
    if config.active_profile:
        lines.append(f"active_profile = {_quote(config.active_profile)}")
    if config.query_timeout is not None:
        lines.append(f"query_timeout = {float(config.query_timeout)}")
    if config.layout.sidebar_width is not None:
        lines.append("")
        lines.append("[layout]")
        lines.append(f"sidebar_width = {config.layout.sidebar_width}")
    if config.profiles:
        lines.append("")
        for profile in config.profiles:
            lines.append("[[profiles]]")
            lines.append(f"name = {_quote(profile.name)}")
            lines.append(f"service_account_path = {_quote(profile.service_account_path)}")
            if profile.database_id:
                lines.append(f"database_id = {_quote(profile.database_id)}")
            if profile.project_id:
                lines.append(f"project_id = {_quote(profile.project_id)}")
            if profile.collections:
                joined = ", ".join(_quote(name) for name in profile.collections)
                lines.append(f"collections = [{joined}]")
            lines.append("")
    CONFIG_FILE.write_text("\n".join(lines) + "\n")


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _read_config_file() -> dict[str, object]:
    with CONFIG_FILE.open("rb") as handle:
        raw = tomllib.load(handle)
    data: dict[str, object] = {}
    if isinstance(raw, dict):
        theme = raw.get("theme")
        if isinstance(theme, str):
            data["theme"] = theme
        active_profile = raw.get("active_profile")
        if isinstance(active_profile, str):
            data["active_profile"] = active_profile
        timeout = raw.get("query_timeout")
        if isinstance(timeout, (int, float)) and not isinstance(timeout, bool) and timeout > 0:
            data["query_timeout"] = float(timeout)
        profiles = raw.get("profiles")
        if isinstance(profiles, list):
            parsed_profiles: list[ProjectProfileConfig] = []
            for profile in profiles:
                if not isinstance(profile, dict):
                    continue
                parsed: dict[str, object] = {}
                for key in ("name", "service_account_path", "database_id", "project_id"):
                    value = profile.get(key)
                    if isinstance(value, str) and value:
                        parsed[key] = value
                collections = profile.get("collections")
                if isinstance(collections, list):
                    parsed["collections"] = [str(name) for name in collections]
                if parsed.get("name") and parsed.get("service_account_path"):
                    parsed_profiles.append(ProjectProfileConfig(**parsed))
            data["profiles"] = parsed_profiles
        layout = raw.get("layout")
        if isinstance(layout, dict):
            state: dict[str, object] = {}
            sidebar_width = layout.get("sidebar_width")
            if isinstance(sidebar_width, int):
                state["sidebar_width"] = sidebar_width
            data["layout"] = LayoutState(**state)
    return data
