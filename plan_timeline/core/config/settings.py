from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml


DEFAULT_TYPE_FIELD_ID = "type"
DEFAULT_STATE_FIELD_ID = "state"


class SettingsError(ValueError):
    pass


@dataclass(frozen=True)
class ContributorSettings:
    id: str
    external: bool = False
    name: Optional[str] = None


@dataclass(frozen=True)
class UserInfo:
    id: str
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None


@dataclass(frozen=True)
class Settings:
    base_url: str = ""
    type_field_id: str = DEFAULT_TYPE_FIELD_ID
    state_field_id: str = DEFAULT_STATE_FIELD_ID
    # Configuration order defines the contributor ordinal.
    contributors: list[ContributorSettings] = field(default_factory=list)
    # Discovery order of the user directory breaks ordinal ties.
    users: list[UserInfo] = field(default_factory=list)

    def __post_init__(self) -> None:
        # Issue and avatar urls are joined onto base_url.
        if self.base_url and not self.base_url.endswith("/"):
            object.__setattr__(self, "base_url", self.base_url + "/")


def load_settings(path: str | Path) -> Settings:
    """Load settings from a YAML file.

    Format:
      base_url: https://tracker.example.com/
      type_field_id: type
      state_field_id: state
      contributors: [{id: u1}, {id: ext-1, external: true, name: Contractor}]
      users: [{id: u1, full_name: Alice, avatar_url: /avatars/u1.png}]

    Every key is optional.
    """
    p = Path(path)
    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise SettingsError(f"settings file is not valid YAML: {e}") from e
    if raw is None:
        return Settings()
    if not isinstance(raw, dict):
        raise SettingsError("settings file must be a mapping")

    return Settings(
        base_url=_optional_str(raw, "base_url") or "",
        type_field_id=_optional_str(raw, "type_field_id") or DEFAULT_TYPE_FIELD_ID,
        state_field_id=_optional_str(raw, "state_field_id") or DEFAULT_STATE_FIELD_ID,
        contributors=_parse_contributors(raw.get("contributors")),
        users=_parse_users(raw.get("users")),
    )


def load_or_default(settings_file: str | None) -> Settings:
    if not settings_file:
        return Settings()
    return load_settings(settings_file)


def _parse_contributors(raw: Any) -> list[ContributorSettings]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise SettingsError("contributors must be a list")

    out: list[ContributorSettings] = []
    seen: set[str] = set()
    for i, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise SettingsError(f"contributors[{i}] must be a mapping")
        cid = entry.get("id")
        if not isinstance(cid, str) or not cid.strip():
            raise SettingsError(f"contributors[{i}].id must be a non-empty string")
        if cid in seen:
            raise SettingsError(f"duplicate contributor id: {cid}")
        seen.add(cid)
        external = entry.get("external", False)
        if not isinstance(external, bool):
            raise SettingsError(f"contributors[{i}].external must be a boolean")
        name = _optional_str(entry, "name", where=f"contributors[{i}]")
        if external and not name:
            raise SettingsError(f"contributors[{i}] is external and needs a name")
        out.append(ContributorSettings(id=cid, external=external, name=name))
    return out


def _parse_users(raw: Any) -> list[UserInfo]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise SettingsError("users must be a list")

    out: list[UserInfo] = []
    for i, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise SettingsError(f"users[{i}] must be a mapping")
        uid = entry.get("id")
        if not isinstance(uid, str) or not uid.strip():
            raise SettingsError(f"users[{i}].id must be a non-empty string")
        out.append(
            UserInfo(
                id=uid,
                full_name=_optional_str(entry, "full_name", where=f"users[{i}]"),
                avatar_url=_optional_str(entry, "avatar_url", where=f"users[{i}]"),
            )
        )
    return out


def _optional_str(raw: dict[str, Any], key: str, *, where: str = "settings") -> Optional[str]:
    v = raw.get(key)
    if v is None:
        return None
    if not isinstance(v, str):
        raise SettingsError(f"{where}.{key} must be a string")
    return v
