"""``mpupload config``: manage destination profiles."""

from __future__ import annotations

from typing import Any, NoReturn, Optional

import click

from mpupload.core.config import CONFIG_FILE, Config, Profile
from mpupload.core.exceptions import MPUploadError
from mpupload.core.output import (
    OutputFormat,
    format_size,
    print_error,
    print_key_value,
    print_output,
    print_success,
)
from mpupload.core.validation import (
    validate_header,
    validate_max_parts,
    validate_part_size,
    validate_server_url,
    validate_timeout,
)
from mpupload.uploaders.constants import DEFAULT_MAX_PARTS, DEFAULT_PART_SIZE, DEFAULT_TIMEOUT

NO_CONFIG_HINT = "No configuration found. Run 'mpupload config init' first."


def _fail(message: str) -> NoReturn:
    print_error(message)
    raise SystemExit(1)


def _read_config(*, require_profiles: bool = False) -> Config:
    try:
        cfg = Config.load(CONFIG_FILE)
    except MPUploadError as e:
        _fail(str(e))
    if require_profiles and not cfg.profiles:
        _fail(NO_CONFIG_HINT)
    return cfg


def _describe(profile: Profile) -> dict[str, Any]:
    """Profile settings as shown by ``config show``."""
    return {
        "url": profile.url,
        "method": profile.method,
        "headers": ", ".join(profile.headers) or None,
        "part_size": format_size(profile.part_size),
        "max_parts": profile.max_parts,
        "max_concurrent_parts": profile.max_concurrent_parts or "unbounded",
        "part_retries": profile.part_retries,
        "timeout": f"{profile.timeout}s",
        "verify_ssl": profile.verify_ssl,
    }


@click.group()
def config() -> None:
    """Manage destination profiles in ~/.config/mpupload/config.yaml."""


@config.command("init")
@click.option("--url", prompt="Destination URL", help="Upload destination URL")
@click.option("--profile", default="default", help="Profile name")
@click.option("--part-size", type=int, default=DEFAULT_PART_SIZE, help="Part size in bytes")
@click.option("--force", is_flag=True, help="Replace the profile if it exists")
def config_init(url: str, profile: str, part_size: int, force: bool) -> None:
    """Write a profile, creating the config file if needed.

    The first profile in a new file becomes the active one.

    Example:
        mpupload config init --url https://data.example.org/api/files/bucket
    """
    try:
        url = validate_server_url(url)
        part_size = validate_part_size(part_size)
    except MPUploadError as e:
        _fail(str(e))

    cfg = _read_config()
    if cfg.has_profile(profile) and not force:
        _fail(f"Profile '{profile}' already exists. Use --force to overwrite.")

    cfg.add_profile(profile, url, part_size=part_size)
    if len(cfg.profiles) == 1:
        cfg.default_profile = profile
    cfg.save(CONFIG_FILE)

    print_success(f"Configuration saved to {CONFIG_FILE}")
    print_key_value({"profile": profile, "url": url, "part_size": format_size(part_size)})


@config.command("show")
@click.option("--output", "-o", type=click.Choice(["json", "table"]), default="table")
def config_show(output: str) -> None:
    """List every profile and mark the active one."""
    cfg = _read_config(require_profiles=True)

    if output == "json":
        document = {
            "config_file": str(CONFIG_FILE),
            "default_profile": cfg.default_profile,
            "profiles": {name: p.to_dict() for name, p in cfg.profiles.items()},
        }
        print_output(document, format=OutputFormat.JSON)
        return

    print_key_value(
        {"config_file": str(CONFIG_FILE), "default_profile": cfg.default_profile},
        title="Configuration",
    )
    for name, profile in cfg.profiles.items():
        active = " (default)" if name == cfg.default_profile else ""
        click.echo(f"\nProfile: {name}{active}")
        print_key_value(_describe(profile))


@config.command("use-context")
@click.argument("profile")
def config_use_context(profile: str) -> None:
    """Make PROFILE the active profile.

    Example:
        mpupload config use-context staging
    """
    cfg = _read_config()
    if not cfg.has_profile(profile):
        click.echo(f"Available profiles: {', '.join(cfg.profiles)}")
        _fail(f"Profile '{profile}' not found.")

    cfg.set_default_profile(profile)
    cfg.save(CONFIG_FILE)
    print_success(f"Switched to profile '{profile}'")


@config.command("current-context")
def config_current_context() -> None:
    """Print the active profile name."""
    click.echo(_read_config(require_profiles=True).default_profile)


@config.command("add-profile")
@click.argument("name")
@click.option("--url", required=True, help="Upload destination URL")
@click.option("--method", type=click.Choice(["POST", "PUT"], case_sensitive=False), default="POST")
@click.option("--header", "headers", multiple=True, help="Header 'Name: value' (repeatable)")
@click.option("--part-size", type=int, default=DEFAULT_PART_SIZE, help="Part size in bytes")
@click.option("--max-parts", type=int, default=DEFAULT_MAX_PARTS, help="Max parts per session")
@click.option("--max-concurrent-parts", type=int, default=None, help="Cap on parallel parts")
@click.option("--timeout", type=int, default=DEFAULT_TIMEOUT, help="Request timeout in seconds")
@click.option("--no-verify-ssl", is_flag=True, help="Disable SSL verification")
def config_add_profile(
    name: str,
    url: str,
    method: str,
    headers: tuple[str, ...],
    part_size: int,
    max_parts: int,
    max_concurrent_parts: Optional[int],
    timeout: int,
    no_verify_ssl: bool,
) -> None:
    """Add profile NAME.

    Example:
        mpupload config add-profile staging --url https://staging.example.org/api/files/b
    """
    try:
        settings: dict[str, Any] = {
            "method": method.upper(),
            "headers": dict(validate_header(h) for h in headers),
            "part_size": validate_part_size(part_size),
            "max_parts": validate_max_parts(max_parts),
            "max_concurrent_parts": max_concurrent_parts,
            "timeout": timeout,
            "verify_ssl": not no_verify_ssl,
        }
        url = validate_server_url(url)
        validate_timeout(timeout)
    except MPUploadError as e:
        _fail(str(e))

    cfg = _read_config()
    if cfg.has_profile(name):
        _fail(f"Profile '{name}' already exists.")

    cfg.add_profile(name, url, **settings)
    cfg.save(CONFIG_FILE)
    print_success(f"Profile '{name}' added")


@config.command("remove-profile")
@click.argument("name")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
def config_remove_profile(name: str, yes: bool) -> None:
    """Delete profile NAME. The active profile cannot be removed.

    Example:
        mpupload config remove-profile staging
    """
    cfg = _read_config()
    if not cfg.has_profile(name):
        _fail(f"Profile '{name}' not found.")
    if name == cfg.default_profile:
        _fail("Cannot remove the default profile. Switch to another profile first.")

    if not yes:
        click.confirm(f"Remove profile '{name}'?", abort=True)

    cfg.remove_profile(name)
    cfg.save(CONFIG_FILE)
    print_success(f"Profile '{name}' removed")
