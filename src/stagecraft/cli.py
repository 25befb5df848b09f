"""Command line interface for Stagecraft.

Commands:
    stagecraft inspect demo.gbp     Show sprites, sounds and files of an archive
    stagecraft config init          Write a default config file
    stagecraft config show          Show resolved settings
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from rich.box import ROUNDED
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import __version__
from .config import SettingsManager
from .exceptions import StagecraftError
from .models.common.file import File
from .models.project import Project
from .persistence.gbp import GbpArchiveCodec
from .utils.logging import LogConfig, configure_logging


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stagecraft",
        description="Inspect and manage Stagecraft projects",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command")

    inspect_parser = subparsers.add_parser("inspect", help="Show the contents of a .gbp archive")
    inspect_parser.add_argument("file", type=Path, help="Archive file")

    config_parser = subparsers.add_parser("config", help="Manage configuration")
    config_subparsers = config_parser.add_subparsers(dest="config_command")
    config_init = config_subparsers.add_parser("init", help="Write a default config file")
    config_init.add_argument(
        "--project",
        action="store_true",
        help="Write .stagecraft.yaml in the current directory instead of the user config",
    )
    config_init.add_argument("--force", action="store_true", help="Overwrite an existing file")
    config_subparsers.add_parser("show", help="Show resolved settings")

    return parser


def _table(title: str, columns: List[str]) -> Table:
    table = Table(title=title, box=ROUNDED, header_style="bold cyan", row_styles=["", "dim"])
    for col in columns:
        table.add_column(col)
    return table


async def _load_archive(path: Path) -> Project:
    blob = File(name=path.name, content=path.read_bytes())
    project = Project(archive_codec=GbpArchiveCodec())
    await project.load_gbp_file(blob)
    return project


def cmd_inspect(args: argparse.Namespace, console: Console) -> int:
    try:
        project = asyncio.run(_load_archive(args.file))
    except OSError as e:
        console.print(f"[red]Cannot read {escape(str(args.file))}: {escape(str(e))}[/red]")
        return 1

    console.print(f"[bold]{escape(project.name or '')}[/bold]")

    sprites = _table("Sprites (bottom to top)", ["#", "Name", "Costumes"])
    for idx, name in enumerate(project.zorder):
        sprite = project.get_sprite(name)
        sprites.add_row(str(idx), name, str(len(sprite.costumes)))
    console.print(sprites)

    sounds = _table("Sounds", ["Name", "File"])
    for sound in project.sounds:
        sounds.add_row(sound.name, sound.file.name)
    console.print(sounds)

    _, files = project.export()
    files_table = _table("Files", ["Path", "Type", "Size"])
    for path in sorted(files):
        files_table.add_row(path, files[path].type, str(files[path].size))
    console.print(files_table)

    project.dispose()
    return 0


def cmd_config(args: argparse.Namespace, console: Console) -> int:
    manager = SettingsManager()

    if args.config_command == "init":
        target = "project" if args.project else "user"
        path = manager.project_config_path if args.project else manager.user_config_path
        if path.exists() and not args.force:
            console.print(f"[yellow]{path} already exists (use --force to overwrite)[/yellow]")
            return 1
        written = manager.init_config(target)
        console.print(f"[green]Wrote {written}[/green]")
        return 0

    if args.config_command == "show":
        settings = manager.load()
        table = _table("Settings", ["Key", "Value"])
        for section, values in settings.to_dict().items():
            for key, value in values.items():
                table.add_row(f"{section}.{key}", "" if value is None else str(value))
        console.print(table)
        sources = manager.sources()
        console.print("Sources: " + (", ".join(str(p) for p in sources) if sources else "built-in defaults"))
        return 0

    console.print("[red]Missing config command (init or show)[/red]")
    return 2


def main(argv: Optional[List[str]] = None, console: Optional[Console] = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)
    console = console or Console()

    configure_logging(LogConfig(log_level="DEBUG" if args.verbose else "WARNING"))

    try:
        if args.command == "inspect":
            return cmd_inspect(args, console)
        if args.command == "config":
            return cmd_config(args, console)
    except StagecraftError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        return 1

    parser.print_help()
    return 2


if __name__ == "__main__":
    sys.exit(main())
