"""Main CLI entry point for mpupload."""

from __future__ import annotations

import click

from mpupload import __version__
from mpupload.cli.config_cmd import config
from mpupload.cli.upload import plan, upload

# =============================================================================
# Main CLI Group
# =============================================================================


@click.group()
@click.version_option(version=__version__, prog_name="mpupload")
def cli() -> None:
    """mpupload - Upload large files through multipart sessions.

    Files smaller than one part go out as a single request; larger files
    are split into parts that are sent in parallel and assembled by the
    server.

    Get started:

      mpupload config init            # Create config file

      mpupload plan big.tar           # Preview the part layout

      mpupload upload big.tar         # Upload

    Use --help on any command for more information.
    """
    pass


# =============================================================================
# Register Commands
# =============================================================================

cli.add_command(config)
cli.add_command(upload)
cli.add_command(plan)


# =============================================================================
# Entry Point
# =============================================================================


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
