"""Upload commands for mpupload."""

from __future__ import annotations

import asyncio
import contextlib
from pathlib import Path
from typing import Any, Optional

import click

from mpupload.cli.common import Context, ExitCode, global_options, handle_errors
from mpupload.core.config import Profile
from mpupload.core.exceptions import ConfigurationError
from mpupload.core.output import (
    OutputFormat,
    create_progress,
    format_size,
    print_output,
    print_success,
    print_warning,
)
from mpupload.core.validation import (
    validate_header,
    validate_max_parts,
    validate_part_size,
    validate_retries,
    validate_server_url,
    validate_timeout,
    validate_upload_path,
    validate_workers,
)
from mpupload.models.events import EventKind, UploadEvent
from mpupload.models.progress import PartProgress, Progress, UploadSummary
from mpupload.models.upload import UploadFile
from mpupload.uploaders.constants import DEFAULT_PART_RETRIES, DEFAULT_TIMEOUT
from mpupload.uploaders.planner import plan_parts
from mpupload.uploaders.resolver import UploadConfig

RESULT_COLUMNS = ["name", "status", "size", "parts", "error"]
PLAN_COLUMNS = ["name", "size", "mode", "part_size", "parts", "last_part_size"]


def _upload_defaults(
    profile: Optional[Profile],
    *,
    url: Optional[str] = None,
    part_size: Optional[int] = None,
    max_parts: Optional[int] = None,
    method: Optional[str] = None,
    headers: tuple[str, ...] = (),
) -> UploadConfig:
    """Merge command-line overrides over the profile's upload settings."""
    defaults = profile.to_upload_config() if profile else UploadConfig()

    overrides: dict[str, Any] = {}
    if url:
        overrides["url"] = validate_server_url(url)
    if part_size is not None:
        overrides["part_size"] = validate_part_size(part_size)
    if max_parts is not None:
        overrides["max_parts"] = validate_max_parts(max_parts)
    if method:
        overrides["method"] = method
    if headers:
        overrides["headers"] = {**defaults.headers, **dict(validate_header(h) for h in headers)}
    return defaults.merged(overrides)


class _ProgressView:
    """Feeds scheduler events and progress into a Rich progress display.

    Rows are keyed by UploadFile, so files sharing a base name get their own row.
    """

    def __init__(self, display: Any) -> None:
        self.display = display
        self.rows: dict[UploadFile, Any] = {}

    def on_event(self, event: UploadEvent) -> None:
        file = event.file
        if event.kind == EventKind.UPLOADING:
            self.rows[file] = self.display.add_task(file.name, total=file.size)
        elif event.kind == EventKind.UPLOADED and file in self.rows:
            self.display.update(self.rows[file], completed=file.size)
        elif event.kind in (EventKind.FAILED, EventKind.FACTORY_FAILED) and file in self.rows:
            self.display.update(self.rows[file], description=f"[red]{file.name} (failed)[/red]")

    def on_progress(self, progress: Progress) -> None:
        file = getattr(progress, "file", None)
        row = self.rows.get(file)
        if row is None:
            return
        if isinstance(progress, PartProgress):
            if progress.total:
                self.display.update(row, completed=file.size * progress.current // progress.total)
        else:
            self.display.update(row, completed=progress.current)


async def _run_uploads(
    files: list[UploadFile],
    defaults: UploadConfig,
    *,
    timeout: float,
    verify_ssl: bool,
    max_concurrent_parts: Optional[int],
    part_retries: int,
    show_progress: bool,
) -> UploadSummary:
    from mpupload.core.transport import HttpxTransport
    from mpupload.services.uploads import UploadScheduler

    display = create_progress() if show_progress else None
    view = _ProgressView(display) if display is not None else None

    async with HttpxTransport(timeout=timeout, verify_ssl=verify_ssl) as transport:
        scheduler = UploadScheduler(
            transport,
            defaults=defaults,
            event_callback=view.on_event if view else None,
            progress_callback=view.on_progress if view else None,
            max_concurrent_parts=max_concurrent_parts,
            part_retries=part_retries,
        )
        for file in files:
            scheduler.enqueue(file)

        with display if display is not None else contextlib.nullcontext():
            return await scheduler.upload_all()


@click.command("upload")
@click.argument("files", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option("--url", help="Destination URL (overrides the profile)")
@click.option("--part-size", type=int, help="Part size in bytes")
@click.option("--max-parts", type=int, help="Maximum parts per multipart session")
@click.option(
    "--method",
    type=click.Choice(["POST", "PUT"], case_sensitive=False),
    help="HTTP method for direct transfers",
)
@click.option("--header", "headers", multiple=True, help="Extra header 'Name: value' (repeatable)")
@click.option("--max-concurrent-parts", type=int, help="Cap on parallel part transfers")
@click.option("--part-retries", type=int, help="Retries per failed part transfer")
@click.option("--timeout", type=float, help="Request timeout in seconds")
@click.option("--no-verify-ssl", is_flag=True, help="Disable SSL verification")
@global_options
@handle_errors
def upload(
    ctx: Context,
    files: tuple[str, ...],
    url: Optional[str],
    part_size: Optional[int],
    max_parts: Optional[int],
    method: Optional[str],
    headers: tuple[str, ...],
    max_concurrent_parts: Optional[int],
    part_retries: Optional[int],
    timeout: Optional[float],
    no_verify_ssl: bool,
) -> None:
    """Upload files, using multipart sessions for files of at least one part.

    Example:
        mpupload upload scan.tar --url https://data.example.org/api/files/bucket/scan.tar
        mpupload upload a.bin b.bin -p staging --part-size 5242880
    """
    profile = ctx.get_profile()
    defaults = _upload_defaults(
        profile,
        url=url,
        part_size=part_size,
        max_parts=max_parts,
        method=method,
        headers=headers,
    )
    if not defaults.url:
        raise ConfigurationError(
            "No destination URL. Pass --url or run 'mpupload config init'.", field="url"
        )

    upload_files = [UploadFile.from_path(validate_upload_path(f)) for f in files]

    if max_concurrent_parts is None and profile is not None:
        max_concurrent_parts = profile.max_concurrent_parts
    if part_retries is None:
        part_retries = profile.part_retries if profile else DEFAULT_PART_RETRIES
    if timeout is None:
        timeout = profile.timeout if profile else DEFAULT_TIMEOUT

    summary = asyncio.run(
        _run_uploads(
            upload_files,
            defaults,
            timeout=validate_timeout(timeout),
            verify_ssl=not no_verify_ssl and (profile.verify_ssl if profile else True),
            max_concurrent_parts=validate_workers(max_concurrent_parts),
            part_retries=validate_retries(part_retries),
            show_progress=ctx.show_progress,
        )
    )

    rows = [r.to_row() for r in summary.results]
    if ctx.output_format == OutputFormat.JSON and not ctx.quiet:
        print_output(
            {
                "success": summary.success,
                "succeeded": summary.succeeded,
                "failed": summary.failed,
                "duration": round(summary.duration, 3),
                "throughput_mbps": round(summary.throughput_mbps, 3),
                "errors": summary.errors,
                "files": rows,
            },
            format=OutputFormat.JSON,
        )
    elif ctx.quiet:
        print_output(
            [r for r in rows if r["status"] == "uploaded"],
            quiet=True,
        )
    else:
        print_output(rows, columns=RESULT_COLUMNS, title="Uploads")
        if summary.success:
            print_success(
                f"Uploaded {summary.succeeded} file(s), {summary.total_size_mb:.1f} MB "
                f"in {summary.duration:.1f}s"
            )
        else:
            print_warning(f"{summary.failed} of {summary.total} file(s) failed")

    if not summary.success:
        raise SystemExit(ExitCode.GENERAL_ERROR)


@click.command("plan")
@click.argument("files", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option("--part-size", type=int, help="Part size in bytes")
@click.option("--max-parts", type=int, help="Maximum parts per multipart session")
@global_options
@handle_errors
def plan(
    ctx: Context,
    files: tuple[str, ...],
    part_size: Optional[int],
    max_parts: Optional[int],
) -> None:
    """Show how files would be split, without contacting the server.

    Example:
        mpupload plan scan.tar --part-size 5242880 --max-parts 100
    """
    defaults = _upload_defaults(ctx.get_profile(), part_size=part_size, max_parts=max_parts)

    rows = []
    for path in files:
        file = UploadFile.from_path(validate_upload_path(Path(path)))
        layout = plan_parts(file.size, defaults.part_size, defaults.max_parts)
        rows.append(
            {
                "name": file.name,
                "size": file.size if ctx.output_format == OutputFormat.JSON else format_size(file.size),
                "mode": "multipart" if layout.multipart else "direct",
                "part_size": layout.part_size,
                "parts": layout.part_count,
                "last_part_size": layout.last_part_size,
            }
        )

    print_output(rows, format=ctx.output_format, columns=PLAN_COLUMNS, quiet=ctx.quiet)
