"""Main entry point for tradd - add torrents to a remote Transmission daemon."""

import argparse
import asyncio
import logging
import shlex
import sys
from pathlib import Path
from typing import Any, Literal

import tomllib
from pydantic_settings import BaseSettings
from rich.console import Console
from rich.logging import RichHandler
from rich.prompt import Confirm, Prompt
from rich.table import Table

from .sources import LocalTorrentReader
from .torrent import TransmissionClient, TransmissionError
from .workflow import (
    AddOptions,
    AddTorrentWorkflow,
    ConsoleNotifier,
    InputSource,
    LocalPaths,
    LocationHistory,
    MagnetOrUrl,
    Priority,
    Unspecified,
    WorkflowState,
    build_capabilities,
)

logger = logging.getLogger(__name__)


CONFIG_SEARCH_PATHS = [
    Path.cwd() / "config.toml",
    Path.cwd() / "tradd.toml",
    Path.home() / ".config" / "tradd" / "config.toml",
]

LINK_PREFIXES = ("magnet:", "http://", "https://", "file://")


def load_config_file(path: Path | None = None) -> dict[str, Any]:
    """Load configuration from a TOML file."""
    if path:
        paths_to_try = [path]
    else:
        paths_to_try = CONFIG_SEARCH_PATHS

    for config_path in paths_to_try:
        if config_path.exists():
            with open(config_path, "rb") as f:
                data = tomllib.load(f)
            logger.info(f"Loaded config from {config_path}")
            return data

    return {}


class Config(BaseSettings):
    """Application configuration.

    Configuration is loaded from (in order of priority, highest first):
    1. CLI arguments
    2. Environment variables (prefixed with TRADD_)
    3. TOML config file (config.toml, tradd.toml, or ~/.config/tradd/config.toml)
    4. Default values
    """

    model_config = {"env_prefix": "TRADD_"}

    # Transmission settings
    server_name: str = "default"
    transmission_host: str = "localhost"
    transmission_port: int = 9091
    transmission_rpc_path: str = "/transmission/rpc"
    transmission_username: str = ""
    transmission_password: str = ""
    transmission_https: bool = False
    rpc_timeout: float = 30.0

    # Add defaults
    download_dir: str = ""  # empty: last used, then the daemon's default
    labels: list[str] = []
    start_torrents: bool = True
    priority: Literal["low", "normal", "high"] = "normal"
    delete_added: bool = False  # delete local .torrent files after adding

    # Location history
    max_saved_dirs: int = 20
    history_file: Path | None = None

    # HTTP API
    api_key: str = ""

    # General
    log_level: str = "INFO"

    @property
    def rpc_protocol(self) -> str:
        return "https" if self.transmission_https else "http"

    @property
    def rpc_path(self) -> str:
        path = self.transmission_rpc_path
        return path if path.startswith("/") else f"/{path}"

    @property
    def rpc_url(self) -> str:
        return f"{self.rpc_protocol}://{self.transmission_host}:{self.transmission_port}{self.rpc_path}"

    def create_client(self) -> TransmissionClient:
        return TransmissionClient(
            host=self.transmission_host,
            port=self.transmission_port,
            path=self.rpc_path,
            protocol=self.rpc_protocol,
            username=self.transmission_username or None,
            password=self.transmission_password or None,
            timeout=self.rpc_timeout,
        )

    def create_history(self) -> LocationHistory:
        return LocationHistory(
            history_file=self.history_file,
            server=self.server_name,
            max_entries=self.max_saved_dirs,
        )


def setup_logging(level: str = "INFO") -> None:
    """Set up logging with rich handler."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True)],
    )


def build_config(args: argparse.Namespace) -> Config:
    """Build config from TOML file, env vars, and CLI args."""
    config_path = Path(args.config) if getattr(args, "config", None) else None
    file_config = load_config_file(config_path)

    cli_overrides: dict[str, Any] = {}
    if getattr(args, "download_dir", None):
        cli_overrides["download_dir"] = args.download_dir
    if getattr(args, "label", None):
        cli_overrides["labels"] = args.label
    if getattr(args, "paused", False):
        cli_overrides["start_torrents"] = False
    if getattr(args, "priority", None):
        cli_overrides["priority"] = args.priority
    if getattr(args, "log_level", None):
        cli_overrides["log_level"] = args.log_level

    merged = {**file_config, **cli_overrides}
    return Config(**merged)


def source_from_args(sources: list[str]) -> InputSource:
    """Classify command line sources into a workflow input.

    Raises:
        ValueError: If links and files are mixed, or several links are given
    """
    if not sources:
        return Unspecified()

    links = [s for s in sources if s.lower().startswith(LINK_PREFIXES)]
    if not links:
        return LocalPaths(paths=list(sources))
    if len(sources) > 1:
        raise ValueError("Give either one magnet link/URL or one or more .torrent files")
    return MagnetOrUrl(text=links[0])


async def prompt_for_paths(extensions: list[str], multiple: bool) -> list[str] | str | None:
    """Ask for .torrent paths on the terminal."""
    suffixes = ", ".join(f".{e}" for e in extensions)
    answer = await asyncio.to_thread(Prompt.ask, f"Select torrent file ({suffixes})", default="")
    paths = [p for p in shlex.split(answer) if Path(p).suffix.lstrip(".").lower() in extensions]
    if not paths:
        return None
    return paths if multiple else paths[0]


def show_summary(console: Console, workflow: AddTorrentWorkflow) -> None:
    """Print what is about to be submitted."""
    for name in workflow.display_names(limit=5):
        console.print(f"[bold]{name}[/bold]")

    if workflow.existing is not None:
        trackers = workflow.existing.descriptor.trackers
        console.print(
            f"[red]Torrent already exists[/red] on server "
            f"(id {workflow.existing.torrent.id}); {len(trackers)} tracker(s) will be added"
        )
        return

    options = workflow.options
    console.print(f"Download directory: [cyan]{options.download_dir or '(server default)'}[/cyan]")
    if options.labels:
        console.print(f"Labels: {', '.join(options.labels)}")
    console.print(f"Start: {'yes' if options.start else 'no'}, priority: {options.priority.name.lower()}")

    if workflow.selection is None:
        return

    table = Table(title="Files")
    table.add_column("#", style="cyan", justify="right")
    table.add_column("Path", style="white")
    table.add_column("Size", style="yellow", justify="right")
    table.add_column("Wanted", style="green")

    for leaf in sorted(workflow.selection.leaves(), key=lambda n: n.index):
        table.add_row(str(leaf.index), leaf.path, _format_size(leaf.length), "✓" if leaf.wanted else "✗")

    console.print(table)


def _format_size(size: int) -> str:
    value = float(size)
    for unit in ("B", "KiB", "MiB", "GiB", "TiB"):
        if value < 1024 or unit == "TiB":
            return f"{size} B" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} B"


async def run_add(args: argparse.Namespace) -> int:
    """Add torrents from links or files."""
    config = build_config(args)
    setup_logging(config.log_level)
    console = Console()

    try:
        source = source_from_args(args.sources)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        return 2

    client = config.create_client()
    history = config.create_history()

    try:
        try:
            live = await client.list_torrents()
            default_dir = "" if config.download_dir or history.last else await client.get_default_download_dir()
        except TransmissionError as e:
            console.print(f"[red]Cannot reach Transmission at {config.rpc_url}: {e}[/red]")
            return 1

        capabilities = build_capabilities(
            client,
            LocalTorrentReader(),
            ConsoleNotifier(console),
            live_torrents=live,
            prompt=prompt_for_paths,
        )

        download_dir = config.download_dir or history.last or default_dir
        workflow = AddTorrentWorkflow(
            capabilities,
            history,
            delete_added=config.delete_added,
            options=AddOptions(
                download_dir=download_dir,
                labels=list(config.labels),
                start=config.start_torrents,
                priority=Priority.from_name(config.priority),
            ),
        )

        state = await workflow.open(source)
        if state != WorkflowState.READY:
            return 0 if state == WorkflowState.CANCELLED else 1

        if workflow.selection is not None and args.exclude:
            changed = workflow.selection.select(args.exclude, wanted=False)
            logger.debug(f"Excluded {changed} file(s)")

        show_summary(console, workflow)

        if not workflow.can_submit:
            console.print("[yellow]Nothing to add.[/yellow]")
            workflow.close()
            return 1

        if not args.yes:
            prompt = "Add trackers?" if workflow.torrent_exists else "Add torrent?"
            if not await asyncio.to_thread(Confirm.ask, prompt, default=True):
                workflow.close()
                console.print("Cancelled.")
                return 0

        report = await workflow.submit()
        if report.merge_error is not None or report.failed:
            return 1
        return 0

    finally:
        await client.aclose()


def run_history(args: argparse.Namespace) -> int:
    """List recently used download directories."""
    config = build_config(args)
    console = Console()
    history = config.create_history()

    entries = history.entries
    if not entries:
        console.print(f"[yellow]No download directories recorded for {config.server_name}[/yellow]")
        return 0

    console.print(f"\n[bold]Recent download directories ({config.server_name}):[/bold]\n")
    for entry in entries:
        console.print(f"  {entry}")
    return 0


EXAMPLE_CONFIG = '''\
# tradd Configuration
# Save as: config.toml, tradd.toml, or ~/.config/tradd/config.toml

# Transmission daemon (RPC, default port 9091)
server_name = "default"
transmission_host = "localhost"
transmission_port = 9091
transmission_rpc_path = "/transmission/rpc"
transmission_username = ""
transmission_password = ""
transmission_https = false

# Add defaults
# download_dir = "/downloads"   # empty: last used, then the daemon default
labels = []
start_torrents = true
priority = "normal"             # low, normal, high
delete_added = false            # delete local .torrent files after adding

# Location history
max_saved_dirs = 20

# HTTP API key (empty: no authentication)
api_key = ""

# General
log_level = "INFO"
'''


def run_setup(args: argparse.Namespace) -> int:
    """Create config file."""
    console = Console()

    if args.output:
        output_path = Path(args.output)
    elif args.user:
        output_path = Path.home() / ".config" / "tradd" / "config.toml"
    else:
        output_path = Path.cwd() / "config.toml"

    if output_path.exists() and not args.force:
        console.print(f"[yellow]Config file already exists: {output_path}[/yellow]")
        console.print("Use --force to overwrite.")
        return 1

    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, "w") as f:
        f.write(EXAMPLE_CONFIG)

    console.print(f"[green]Created config file: {output_path}[/green]")
    return 0


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="tradd - add torrents to a remote Transmission daemon",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Add command
    add_parser = subparsers.add_parser("add", help="Add torrents by magnet link, URL or .torrent files")
    add_parser.add_argument("sources", nargs="*", help="Magnet link, URL, or .torrent file paths")
    add_parser.add_argument("--download-dir", "-d", help="Download directory on the server")
    add_parser.add_argument("--label", "-l", action="append", help="Label (repeatable)")
    add_parser.add_argument("--paused", action="store_true", help="Add without starting")
    add_parser.add_argument("--priority", "-p", choices=["low", "normal", "high"])
    add_parser.add_argument("--exclude", "-x", action="append", default=[],
        help="Glob of files or directories not to download (repeatable)")
    add_parser.add_argument("--yes", "-y", action="store_true", help="Do not ask for confirmation")
    add_parser.add_argument("--config", "-c", help="Config file path")
    add_parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], default="WARNING")

    # History command
    history_parser = subparsers.add_parser("history", help="List recently used download directories")
    history_parser.add_argument("--config", "-c", help="Config file path")

    # Web API command
    serve_parser = subparsers.add_parser("serve", help="Start the HTTP upload API")
    serve_parser.add_argument("--host", "-H", default="127.0.0.1", help="Host to bind to")
    serve_parser.add_argument("--port", "-p", type=int, default=8000, help="Port to bind to")
    serve_parser.add_argument("--config", "-c", help="Config file path")

    # Setup command
    setup_parser = subparsers.add_parser("setup", help="Create a config file")
    setup_parser.add_argument("--output", "-o", help="Output path for config file")
    setup_parser.add_argument("--user", "-u", action="store_true", help="Create in ~/.config/tradd/")
    setup_parser.add_argument("--force", "-f", action="store_true", help="Overwrite existing config file")

    args = parser.parse_args()

    if args.command == "add":
        sys.exit(asyncio.run(run_add(args)))
    elif args.command == "history":
        sys.exit(run_history(args))
    elif args.command == "serve":
        from .web import run_server
        config = build_config(args)
        setup_logging(config.log_level)
        console = Console()
        console.print(f"\n[bold]Starting tradd API[/bold] on [cyan]http://{args.host}:{args.port}[/cyan]\n")
        run_server(config, host=args.host, port=args.port)
    elif args.command == "setup":
        sys.exit(run_setup(args))
    else:
        parser.print_help()
        sys.exit(0)


if __name__ == "__main__":
    main()
