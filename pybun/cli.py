"""CLI interface for pybun."""

import logging
import sys
from pathlib import Path
from typing import Any, Optional

import click
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TimeRemainingColumn,
    TransferSpeedColumn,
)

from .api import BunClient
from .config import KEY_ENV_NAME, ZONE_ENV_NAME, config
from .exceptions import BunAPIError, BunConfigError, BunNotFoundError
from .models import StorageObject
from .output import OutputFormatter
from .sync import (
    CancellationToken,
    DirectoryScanner,
    SyncEngine,
    SyncOperations,
    SyncState,
    install_signal_handlers,
)
from .utils import format_size

logger = logging.getLogger(__name__)

# Process exit codes
EXIT_ERROR = 1
EXIT_ARGUMENT_ERROR = 2


def _create_client(ctx: Any) -> BunClient:
    """Create a storage client from the global options.

    Exits with EXIT_ARGUMENT_ERROR when key or zone are missing.
    """
    out: OutputFormatter = ctx.obj["out"]
    try:
        return BunClient(
            api_key=ctx.obj.get("api_key"),
            zone=ctx.obj.get("zone"),
            api_url=ctx.obj.get("api_url"),
        )
    except BunConfigError as e:
        out.error(str(e))
        ctx.exit(EXIT_ARGUMENT_ERROR)


def _transfer_progress(out: OutputFormatter) -> Progress:
    """Create a Rich progress bar for a single transfer on stderr."""
    return Progress(
        "[progress.description]{task.description}",
        BarColumn(),
        DownloadColumn(),
        TransferSpeedColumn(),
        TimeRemainingColumn(),
        console=out.err_console,
        transient=True,
    )


@click.group()
@click.option("--zone", "-z", envvar=ZONE_ENV_NAME, help="The storage zone.")
@click.option(
    "--key",
    "-k",
    "api_key",
    envvar=KEY_ENV_NAME,
    help="Your API key for the desired storage zone.",
)
@click.option("--api-url", envvar="BUN_API_URL", help="Storage API base URL.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="pybun")
@click.pass_context
def main(
    ctx: Any,
    zone: Optional[str],
    api_key: Optional[str],
    api_url: Optional[str],
    quiet: bool,
    json: bool,
    verbose: bool,
) -> None:
    """pybun - List, upload, download, delete and sync files in a storage zone."""
    ctx.ensure_object(dict)
    ctx.obj["zone"] = zone
    ctx.obj["api_key"] = api_key
    ctx.obj["api_url"] = api_url
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["verbose"] = verbose

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("pybun").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.option("--zone", "-z", prompt="Storage zone name", help="The storage zone.")
@click.option(
    "--key",
    "-k",
    "api_key",
    prompt="Storage zone API key",
    hide_input=True,
    help="Your API key for the storage zone.",
)
@click.pass_context
def init(ctx: Any, zone: str, api_key: str) -> None:
    """Store zone and API key in ~/.config/pybun/config."""
    out: OutputFormatter = ctx.obj["out"]

    out.info("Validating credentials...")
    try:
        with BunClient(
            api_key=api_key, zone=zone, api_url=ctx.obj.get("api_url")
        ) as client:
            client.list_directory()
        out.success("✓ Credentials are valid")
    except BunAPIError as e:
        out.error(f"Credential validation failed: {e}")
        if not click.confirm("Save configuration anyway?", default=False):
            out.warning("Configuration cancelled.")
            ctx.exit(EXIT_ERROR)

    config.save(api_key=api_key, zone=zone)
    out.success(f"Configuration saved successfully to {config.get_config_path()}")


@main.command()
@click.argument("path", default="", required=False)
@click.option(
    "--recursive", "-r", is_flag=True, help="List files in all subdirectories."
)
@click.pass_context
def ls(ctx: Any, path: str, recursive: bool) -> None:
    """List files stored in the storage zone.

    PATH: Optional directory inside the zone (default: zone root)

    Examples:
        pybun ls                  # List the zone root
        pybun ls images           # List a directory
        pybun ls -r               # List every file in the zone
    """
    out: OutputFormatter = ctx.obj["out"]
    client = _create_client(ctx)

    try:
        if recursive:
            prefix = path.strip("/")
            entries = [
                e
                for e in client.list_files()
                if not e.is_directory
                and (not prefix or e.relative_path.startswith(prefix + "/"))
            ]
        else:
            entries = client.list_directory(path)
    except BunAPIError as e:
        out.error(f"Could not complete listing: {e}")
        ctx.exit(EXIT_ERROR)
    finally:
        client.close()

    entries.sort(key=lambda e: (e.is_directory, e.relative_path))

    if out.json_output:
        out.output_json([_entry_to_dict(e) for e in entries])
        return

    rows = [
        [
            e.date_created.strftime("%Y-%m-%d") if e.date_created else "",
            format_size(e.length),
            str(e.is_directory),
            e.relative_path + ("/" if e.is_directory else ""),
        ]
        for e in entries
    ]
    out.output_table(["Created", "Size", "IsDir", "Name"], rows)


def _entry_to_dict(entry: StorageObject) -> dict:
    return {
        "name": entry.object_name,
        "path": entry.relative_path,
        "is_directory": entry.is_directory,
        "size": entry.length,
        "last_changed": (
            entry.last_changed.isoformat() if entry.last_changed else None
        ),
        "date_created": (
            entry.date_created.isoformat() if entry.date_created else None
        ),
    }


@main.command()
@click.argument("file_path", required=False, type=click.Path(dir_okay=False))
@click.option(
    "--name",
    "-n",
    help="The file name to upload as. Defaults to the filename on disk.",
)
@click.option("--no-progress", is_flag=True, help="Disable progress bar")
@click.pass_context
def upload(
    ctx: Any, file_path: Optional[str], name: Optional[str], no_progress: bool
) -> None:
    """Upload a file from disk or stdin.

    FILE_PATH: File on disk; omit it or pass '-' to read from stdin

    Examples:
        pybun upload report.pdf                 # Upload as report.pdf
        pybun upload report.pdf -n docs/r.pdf   # Upload under another name
        cat data.bin | pybun upload -n data.bin # Upload from a pipe
    """
    out: OutputFormatter = ctx.obj["out"]

    from_stdin = file_path in (None, "-")
    if from_stdin:
        if sys.stdin.isatty():
            out.error(
                "You must direct a stream to upload either by using "
                "pipes | or input redirection <."
            )
            ctx.exit(EXIT_ARGUMENT_ERROR)
        if not name:
            out.error("A --name is required when uploading from stdin.")
            ctx.exit(EXIT_ARGUMENT_ERROR)
    else:
        local_path = Path(file_path)  # type: ignore[arg-type]
        if not local_path.is_file():
            out.error(f"File not found: {local_path}")
            ctx.exit(EXIT_ARGUMENT_ERROR)
        name = name or local_path.name

    remote_name: str = name  # type: ignore[assignment]
    client = _create_client(ctx)

    try:
        if from_stdin:
            client.put_file(remote_name, click.get_binary_stream("stdin"))
        elif no_progress or out.quiet:
            SyncOperations(client).upload_file(local_path, remote_name)
        else:
            with _transfer_progress(out) as progress:
                task = progress.add_task(
                    f"Uploading {remote_name}", total=local_path.stat().st_size
                )

                def on_progress(done: int, total: int) -> None:
                    progress.update(task, completed=done, total=total)

                SyncOperations(client).upload_file(
                    local_path, remote_name, progress_callback=on_progress
                )
    except (BunAPIError, OSError) as e:
        out.error(f"Could not complete upload: {e}")
        ctx.exit(EXIT_ERROR)
    finally:
        client.close()

    out.success(f"File {remote_name} uploaded successfully.")


@main.command()
@click.argument("name")
@click.option(
    "--output",
    "-o",
    type=click.Path(),
    help="Write the file to this path instead of stdout.",
)
@click.option(
    "--direct",
    "-d",
    is_flag=True,
    help="Download to disk in the current directory.",
)
@click.option("--no-progress", is_flag=True, help="Disable progress bar")
@click.pass_context
def download(
    ctx: Any, name: str, output: Optional[str], direct: bool, no_progress: bool
) -> None:
    """Get/download a file.

    NAME: Path of the file inside the zone

    The downloaded file is written to the standard output unless --direct
    or --output is given.

    Examples:
        pybun download docs/a.txt > a.txt    # Write to stdout
        pybun download docs/a.txt -d         # Save as ./a.txt
        pybun download docs/a.txt -o b.txt   # Save as ./b.txt
    """
    out: OutputFormatter = ctx.obj["out"]
    client = _create_client(ctx)

    target: Optional[Path] = None
    if output:
        target = Path(output)
    elif direct:
        target = Path.cwd() / Path(name.replace("\\", "/")).name

    try:
        if target is None:
            stdout = click.get_binary_stream("stdout")
            client.get_file(name, stdout)
            stdout.flush()
            return

        if no_progress or out.quiet:
            SyncOperations(client).download_file(name, target)
        else:
            with _transfer_progress(out) as progress:
                task = progress.add_task(f"Downloading {name}", total=None)

                def on_progress(done: int, total: int) -> None:
                    progress.update(task, completed=done, total=total or None)

                SyncOperations(client).download_file(
                    name, target, progress_callback=on_progress
                )
    except (BunAPIError, OSError) as e:
        out.error(f"Could not complete download: {e}")
        ctx.exit(EXIT_ERROR)
    finally:
        client.close()

    out.success(f"Downloaded {name} to {target}")


@main.command()
@click.argument("name")
@click.pass_context
def rm(ctx: Any, name: str) -> None:
    """Remove/delete a file.

    NAME: Path of the file inside the zone
    """
    out: OutputFormatter = ctx.obj["out"]
    client = _create_client(ctx)

    try:
        client.delete_file(name)
    except BunNotFoundError:
        out.error(f"Could not delete file: {name} does not exist.")
        ctx.exit(EXIT_ERROR)
    except BunAPIError as e:
        out.error(f"Could not delete file: {e}")
        ctx.exit(EXIT_ERROR)
    finally:
        client.close()

    out.success(f"Deleted {name}")


@main.command()
@click.argument("local_dir", type=click.Path(file_okay=False, path_type=Path))
@click.option(
    "--direction",
    "-d",
    required=True,
    help="'up' copies local changes to the zone, 'down' copies zone changes here.",
)
@click.option("--dry-run", is_flag=True, help="Show what would be transferred.")
@click.option(
    "--ignore",
    multiple=True,
    help="Glob pattern of local files to leave out (repeatable).",
)
@click.option(
    "--exclude-dot-files",
    is_flag=True,
    help="Skip files and folders starting with '.'",
)
@click.pass_context
def sync(
    ctx: Any,
    local_dir: Path,
    direction: str,
    dry_run: bool,
    ignore: tuple[str, ...],
    exclude_dot_files: bool,
) -> None:
    """Synchronize a local directory with the storage zone.

    LOCAL_DIR: Local sync root

    Files are compared by size and modification time. A file is copied when
    it is missing on the other side, has a different size, or the other
    copy is older. Nothing is ever deleted.

    Press Ctrl+C once to stop after the current chunk; the partially
    downloaded file is removed.

    Examples:
        pybun sync ./site -d up              # Publish local changes
        pybun sync ./backup -d down          # Fetch remote changes
        pybun sync ./site -d up --dry-run    # Preview
    """
    out: OutputFormatter = ctx.obj["out"]
    client = _create_client(ctx)

    token = CancellationToken()
    restore_signals = install_signal_handlers(
        token, on_cancel=lambda: out.warning("\nCancelling, please wait...")
    )

    try:
        engine = SyncEngine(
            client,
            output=out,
            cancel_token=token,
            scanner=DirectoryScanner(
                ignore_patterns=list(ignore), exclude_dot_files=exclude_dot_files
            ),
        )
        result = engine.sync(local_dir, direction, dry_run=dry_run)
    finally:
        restore_signals()
        client.close()

    if out.json_output:
        out.output_json(result.to_dict())

    if result.state is SyncState.FAILED:
        ctx.exit(EXIT_ERROR)
    if result.state is SyncState.CANCELLED:
        out.warning("Sync cancelled.")


if __name__ == "__main__":
    main()
