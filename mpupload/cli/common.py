"""Shared CLI state, global options and error handling."""

from __future__ import annotations

import logging
import sys
from enum import IntEnum
from functools import wraps
from typing import Any, Callable, Optional, TypeVar

import click

from mpupload.core.config import ENV_PROFILE, Config, Profile
from mpupload.core.exceptions import MPUploadError, ProfileNotFoundError
from mpupload.core.logging import setup_logging
from mpupload.core.output import OutputFormat, print_error

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


class ExitCode(IntEnum):
    """Process exit codes."""

    SUCCESS = 0
    GENERAL_ERROR = 1
    USER_CANCELLED = 5


class Context:
    """Per-invocation state handed to every command."""

    def __init__(self) -> None:
        self.config: Optional[Config] = None
        self.profile_name: Optional[str] = None
        self.output_format = OutputFormat.TABLE
        self.quiet = False
        self.verbose = False

    @property
    def show_progress(self) -> bool:
        """Whether a live progress display fits the selected output."""
        return self.output_format == OutputFormat.TABLE and not self.quiet

    def get_profile(self) -> Optional[Profile]:
        """Return the selected profile.

        Falls back to the config's default profile; returns None when no
        profile was named and the default does not exist.

        Raises:
            ProfileNotFoundError: If ``--profile`` names a missing profile.
        """
        if self.config is None:
            self.config = Config.load()

        name = self.profile_name or self.config.default_profile
        if self.config.has_profile(name):
            return self.config.profiles[name]
        if self.profile_name:
            raise ProfileNotFoundError(name)
        return None


pass_context = click.make_pass_decorator(Context, ensure=True)

_GLOBAL_OPTIONS = (
    click.option("--profile", "-p", envvar=ENV_PROFILE, help="Config profile to use"),
    click.option(
        "--output",
        "-o",
        "output_format",
        type=click.Choice([fmt.value for fmt in OutputFormat]),
        default=OutputFormat.TABLE.value,
        help="Output format",
    ),
    click.option("--quiet", "-q", is_flag=True, help="Print only the names of uploaded files"),
    click.option("--verbose", "-v", is_flag=True, help="Log every request and part retry"),
)


def global_options(f: F) -> F:
    """Add ``--profile/--output/--quiet/--verbose`` and pass a Context first."""

    @pass_context
    @wraps(f)
    def wrapper(
        ctx: Context,
        *args: Any,
        profile: Optional[str],
        output_format: str,
        quiet: bool,
        verbose: bool,
        **kwargs: Any,
    ) -> Any:
        ctx.profile_name = profile
        ctx.output_format = OutputFormat.from_string(output_format)
        ctx.quiet = quiet
        ctx.verbose = verbose
        setup_logging(quiet=quiet, verbose=verbose)
        return f(ctx, *args, **kwargs)

    for option in reversed(_GLOBAL_OPTIONS):
        wrapper = option(wrapper)
    return wrapper  # type: ignore


def handle_errors(f: F) -> F:
    """Print package errors as an ``Error:`` line and exit non-zero."""

    @wraps(f)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return f(*args, **kwargs)
        except click.ClickException:
            raise
        except MPUploadError as e:
            print_error(str(e))
            code = ExitCode.GENERAL_ERROR
        except KeyboardInterrupt:
            print_error("Interrupted; unfinished uploads were not finalized")
            code = ExitCode.USER_CANCELLED
        except Exception as e:
            logger.debug("Unhandled error", exc_info=True)
            print_error(f"Unexpected error: {e}")
            code = ExitCode.GENERAL_ERROR
        sys.exit(code)

    return wrapper  # type: ignore
