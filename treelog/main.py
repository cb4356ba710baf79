"""Main entry point for the treelog CLI.

Implements a Typer app with a demo, a command runner and a config viewer.
"""

import shlex
import subprocess
import sys
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Optional

import typer
from rich.console import Console
from rich.table import Table

from treelog import config
from treelog.logging_setup import setup_logging
from treelog.tree import TaskTree, get_tree, set_tree

app = typer.Typer(
    name="treelog",
    help="Nested live progress trees for the terminal",
    add_completion=False,
    rich_markup_mode=None,
)

console = Console()

# Seconds to wait for the spinner to settle before exiting
SETTLE_TIMEOUT = 2.0


@app.callback()
def main(
    ctx: typer.Context,
    no_colour: bool = typer.Option(False, "--no-colour", help="Print glyphs without color"),
    interval: Optional[float] = typer.Option(None, "--interval", min=0.0, help="Seconds between spinner frames"),
) -> None:
    """treelog - render nested tasks as a live tree."""
    cfg = config.load_config()

    if no_colour:
        cfg["colour"] = False
    if interval is not None:
        cfg["interval"] = interval

    setup_logging(config.get_treelog_dir(), cfg["log_level"])

    set_tree(TaskTree.from_config(cfg))
    ctx.obj = cfg


def _settle(tree: TaskTree) -> None:
    tree.join(SETTLE_TIMEOUT)


@app.command()
def demo(
    workers: int = typer.Option(4, "--workers", "-w", min=1, help="Threads for the parallel download step"),
    delay: float = typer.Option(0.6, "--delay", "-d", min=0.0, help="Seconds of simulated work per step"),
) -> None:
    """Render a sample build with nested, parallel and failing tasks."""
    tree = get_tree()

    tree.start("Building project")

    with tree.task("Resolving dependencies"):
        time.sleep(delay)

    with tree.task(f"Downloading packages on {workers} threads") as download:
        # Each worker owns a task; spans are serialized so nesting stays LIFO
        span_lock = threading.Lock()
        with ThreadPoolExecutor(max_workers=workers) as pool:
            names = [f"package-{i + 1}" for i in range(workers * 2)]
            sizes = list(pool.map(lambda name: _fake_download(tree, span_lock, name, delay), names))
        download.pass_(f"Downloaded {len(sizes)} packages ({sum(sizes)} kB)")

    with tree.task("Compiling") as compiling:
        with tree.task("core"):
            time.sleep(delay)
        with tree.task("plugins") as plugins:
            time.sleep(delay)
            plugins.warn("plugins: 2 deprecated APIs")
        compiling.warn("Compiled with warnings")

    tree.start("Deploying")
    time.sleep(delay)
    tree.fail("Deploy skipped: no target configured")

    tree.warn("Build finished with warnings")
    _settle(tree)


def _fake_download(tree: TaskTree, span_lock: threading.Lock, name: str, delay: float) -> int:
    with span_lock:
        with tree.task(f"Fetching {name}") as fetch:
            time.sleep(delay)
            fetch.pass_(f"Fetched {name} (128 kB)")
    return 128


@app.command()
def run(
    commands: list[str] = typer.Argument(..., help="Shell commands to run, one task each"),
    title: str = typer.Option("Running commands", "--title", "-t", help="Root task message"),
) -> None:
    """Run commands as nested tasks, failing those with a non-zero exit code."""
    tree = get_tree()
    failed = 0

    try:
        with tree.task(title) as root:
            for command in commands:
                with tree.task(f"$ {command}") as step:
                    code = _run_command(command)
                    if code != 0:
                        failed += 1
                        step.fail(f"$ {command} (exit {code})")

            if failed == 0:
                root.pass_(f"{title}: {len(commands)} passed")
            elif failed < len(commands):
                root.warn(f"{title}: {failed} of {len(commands)} failed")
            else:
                root.fail(f"{title}: all {failed} failed")
    finally:
        _settle(tree)

    if failed:
        raise typer.Exit(code=1)


def _run_command(command: str) -> int:
    """Run a command with its output captured.

    Captured so stray output cannot shift the tree's rows.

    Returns:
        Exit code (2 for an unparsable or empty command, 126 if the
        executable could not be run, 127 if it was not found)
    """
    try:
        argv = shlex.split(command)
    except ValueError:
        return 2
    if not argv:
        return 2

    try:
        result = subprocess.run(argv, capture_output=True, text=True)
    except FileNotFoundError:
        return 127
    except OSError:
        return 126
    return result.returncode


@app.command("config")
def config_command(ctx: typer.Context) -> None:
    """Show the effective configuration."""
    cfg: dict[str, Any] = ctx.obj

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Key", style="green")
    table.add_column("Value")

    for key, value in cfg.items():
        table.add_row(key, str(value))

    console.print(table)
    console.print(f"[dim]{config.get_config_path()}[/dim]")


def run_cli() -> None:
    """Entry point for the CLI application."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(0)
    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        sys.exit(1)


if __name__ == "__main__":
    run_cli()
