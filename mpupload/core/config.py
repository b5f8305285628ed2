"""Profiles and the YAML config file.

A profile names one upload destination together with the part layout and
transport settings used for it. ``MPUPLOAD_*`` environment variables take
precedence over the file: ``MPUPLOAD_URL`` replaces the ``default``
profile and ``MPUPLOAD_PROFILE`` picks the active one.
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

import yaml

from mpupload.core.exceptions import ConfigurationError, ProfileNotFoundError
from mpupload.core.timeouts import DEFAULT_HTTP_TIMEOUT_SECONDS
from mpupload.uploaders.constants import (
    DEFAULT_MAX_CONCURRENT_PARTS,
    DEFAULT_MAX_PARTS,
    DEFAULT_METHOD,
    DEFAULT_PART_RETRIES,
    DEFAULT_PART_SIZE,
)

if TYPE_CHECKING:
    from mpupload.uploaders.resolver import UploadConfig

CONFIG_DIR = Path.home() / ".config" / "mpupload"
CONFIG_FILE = CONFIG_DIR / "config.yaml"

ENV_URL = "MPUPLOAD_URL"
ENV_PROFILE = "MPUPLOAD_PROFILE"
ENV_VERIFY_SSL = "MPUPLOAD_VERIFY_SSL"
ENV_TIMEOUT = "MPUPLOAD_TIMEOUT"
ENV_PART_SIZE = "MPUPLOAD_PART_SIZE"
ENV_MAX_PARTS = "MPUPLOAD_MAX_PARTS"

# Integer profile fields read from the environment. They only apply to the
# profile built from MPUPLOAD_URL, never to profiles loaded from the file.
_ENV_INT_FIELDS = {
    ENV_TIMEOUT: "timeout",
    ENV_PART_SIZE: "part_size",
    ENV_MAX_PARTS: "max_parts",
}
_TRUTHY = ("true", "1", "yes")


@dataclass
class Profile:
    """One upload destination and how to split files sent to it."""

    url: str
    verify_ssl: bool = True
    timeout: int = DEFAULT_HTTP_TIMEOUT_SECONDS
    method: str = DEFAULT_METHOD
    headers: dict[str, str] = field(default_factory=dict)
    part_size: int = DEFAULT_PART_SIZE
    max_parts: int = DEFAULT_MAX_PARTS
    max_concurrent_parts: Optional[int] = DEFAULT_MAX_CONCURRENT_PARTS
    part_retries: int = DEFAULT_PART_RETRIES

    def to_dict(self) -> dict[str, Any]:
        """YAML mapping; empty headers and an unbounded part cap are left out."""
        data = asdict(self)
        if not data["headers"]:
            del data["headers"]
        if data["max_concurrent_parts"] is None:
            del data["max_concurrent_parts"]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Profile:
        known = {f.name for f in fields(cls)}
        values = {key: value for key, value in data.items() if key in known}
        values["url"] = values.get("url") or ""
        values["headers"] = dict(values.get("headers") or {})
        return cls(**values)

    def to_upload_config(self) -> UploadConfig:
        """Per-file upload defaults for this destination."""
        from mpupload.uploaders.resolver import UploadConfig

        return UploadConfig(
            url=self.url or None,
            method=self.method,
            headers=dict(self.headers),
            part_size=self.part_size,
            max_parts=self.max_parts,
        )


def _profile_from_env(url: str) -> Profile:
    values: dict[str, Any] = {}
    for name, attr in _ENV_INT_FIELDS.items():
        raw = os.getenv(name)
        if raw is None:
            continue
        try:
            values[attr] = int(raw)
        except ValueError:
            raise ConfigurationError(f"{name} must be an integer", field=name, value=raw)

    verify_ssl = os.getenv(ENV_VERIFY_SSL, "true").lower() in _TRUTHY
    return Profile(url=url, verify_ssl=verify_ssl, **values)


@dataclass
class Config:
    """All profiles plus the name of the active one."""

    default_profile: str = "default"
    output_format: str = "table"
    profiles: dict[str, Profile] = field(default_factory=dict)

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> Config:
        """Read the config file, then apply environment overrides.

        A missing file yields an empty config.

        Raises:
            ConfigurationError: If the file cannot be read or parsed, or an
                integer environment variable does not parse.
        """
        path = config_path or CONFIG_FILE
        config = cls()

        if path.exists():
            try:
                data = yaml.safe_load(path.read_text()) or {}
                config.default_profile = data.get("default_profile", config.default_profile)
                config.output_format = data.get("output_format", config.output_format)
                config.profiles = {
                    name: Profile.from_dict(values or {})
                    for name, values in (data.get("profiles") or {}).items()
                }
            except (OSError, yaml.YAMLError, AttributeError, TypeError) as e:
                raise ConfigurationError(f"Failed to load config from {path}: {e}")

        url = os.getenv(ENV_URL)
        if url:
            config.profiles["default"] = _profile_from_env(url)

        selected = os.getenv(ENV_PROFILE)
        if selected:
            config.default_profile = selected

        return config

    def save(self, config_path: Optional[Path] = None) -> None:
        """Write the config as YAML, creating parent directories."""
        path = config_path or CONFIG_FILE
        path.parent.mkdir(parents=True, exist_ok=True)
        document = {
            "default_profile": self.default_profile,
            "output_format": self.output_format,
            "profiles": {name: profile.to_dict() for name, profile in self.profiles.items()},
        }
        path.write_text(yaml.dump(document, default_flow_style=False, sort_keys=False))

    def has_profile(self, name: str) -> bool:
        return name in self.profiles

    def get_profile(self, name: Optional[str] = None) -> Profile:
        """Look up ``name``, or the active profile when omitted.

        Raises:
            ProfileNotFoundError: If there is no such profile.
        """
        name = name or self.default_profile
        if not self.has_profile(name):
            raise ProfileNotFoundError(name)
        return self.profiles[name]

    def add_profile(self, name: str, url: str, **options: Any) -> Profile:
        """Create or replace profile ``name``; ``options`` are Profile fields."""
        self.profiles[name] = Profile(url=url, **options)
        return self.profiles[name]

    def remove_profile(self, name: str) -> bool:
        """Drop profile ``name``; False when it was not there."""
        return self.profiles.pop(name, None) is not None

    def set_default_profile(self, name: str) -> None:
        """Make ``name`` the active profile.

        Raises:
            ProfileNotFoundError: If there is no such profile.
        """
        self.get_profile(name)
        self.default_profile = name
