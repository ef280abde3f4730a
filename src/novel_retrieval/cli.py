"""Command-line interface for novel-retrieval."""

import asyncio
import logging
import signal
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.syntax import Syntax

from novel_retrieval import __version__
from novel_retrieval.config import MAX_CHAPTER_LIMIT, AppConfig
from novel_retrieval.errors import DiscoveryEmpty, JobCancelled, NovelRetrievalError
from novel_retrieval.models import Document
from novel_retrieval.orchestrator import Orchestrator

app = typer.Typer(
    name="novel-retrieval",
    help="Scrape serialized web novels into a single ordered Markdown document.",
    rich_markup_mode="rich",
    no_args_is_help=True,
)

console = Console()
logger = logging.getLogger(__name__)

EXIT_DISCOVERY_EMPTY = 2
EXIT_CANCELLED = 130


def version_callback(value: bool):
    if value:
        console.print(f"novel-retrieval version {__version__}")
        raise typer.Exit()


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False, rich_tracebacks=verbose)],
        force=True,
    )
    # Third-party request logs drown out our own at DEBUG
    for noisy in ("httpx", "httpcore", "trafilatura", "readability"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def load_config(config_file: Optional[Path], listing_url: Optional[str] = None, **overrides: object) -> AppConfig:
    """Build an AppConfig from an optional TOML file plus CLI overrides.

    Nested overrides use ``section__field`` keys, e.g. ``fetcher__use_js``.
    """
    top: dict[str, object] = {}
    nested: dict[str, dict[str, object]] = {}
    for key, value in overrides.items():
        if value is None:
            continue
        if "__" in key:
            section, field = key.split("__", 1)
            nested.setdefault(section, {})[field] = value
        else:
            top[key] = value

    if config_file is not None:
        config = AppConfig.from_toml(config_file, listing_url=listing_url)
    else:
        config = AppConfig(listing_url=listing_url or "")

    data = config.model_dump()
    data.update(top)
    for section, fields in nested.items():
        data[section] = {**data[section], **fields}
    return AppConfig.model_validate(data)


async def _run(orchestrator: Orchestrator) -> Document:
    """Run the orchestrator; the first Ctrl-C cancels at the next batch boundary."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, orchestrator.cancel)
    except NotImplementedError:
        logger.debug("Signal handlers unsupported here; Ctrl-C will interrupt immediately")
    try:
        return await orchestrator.run()
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except NotImplementedError:
            pass


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
):
    """Web novel chapter scraper."""
    pass


@app.command()
def scrape(
    url: str = typer.Argument(..., help="URL of the novel's chapter listing page"),
    chapters: Optional[int] = typer.Option(
        None,
        "--chapters",
        "-n",
        help=f"Maximum chapters to scrape (1-{MAX_CHAPTER_LIMIT})",
    ),
    total: Optional[int] = typer.Option(
        None,
        "--total",
        help="Total chapter count, when the listing only shows the first few",
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output Markdown file path",
    ),
    title: Optional[str] = typer.Option(None, "--title", help="Document title"),
    author: Optional[str] = typer.Option(None, "--author", help="Author name"),
    cover: Optional[str] = typer.Option(None, "--cover", help="Cover image URL"),
    js: Optional[bool] = typer.Option(
        None,
        "--js/--no-js",
        help="Enable/disable the browser fallback for blocked pages",
    ),
    batch_size: Optional[int] = typer.Option(
        None,
        "--batch-size",
        help="Chapters fetched together before pausing",
    ),
    max_concurrent: Optional[int] = typer.Option(
        None,
        "--max-concurrent",
        help="Maximum requests in flight",
    ),
    delay: Optional[float] = typer.Option(
        None,
        "--delay",
        help="Minimum delay between requests in seconds",
    ),
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="TOML config file; command-line options override it",
        exists=True,
        dir_okay=False,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose output",
    ),
):
    """
    Scrape a novel's chapters from its listing page into one Markdown file.

    Examples:

        novel-retrieval scrape https://novels.example.com/novel/my-novel/

        novel-retrieval scrape https://novels.example.com/novel/my-novel/ -n 100 -o my-novel.md

        novel-retrieval scrape https://novels.example.com/novel/my-novel/ --no-js --delay 1.0
    """
    setup_logging(verbose)

    try:
        config = load_config(
            config_file,
            listing_url=url,
            title=title,
            author=author,
            cover_url=cover,
            verbose=verbose or None,
            discovery__max_chapters=chapters,
            discovery__reported_total=total,
            output__path=output,
            fetcher__use_js=js,
            rate_limit__batch_size=batch_size,
            rate_limit__max_concurrent=max_concurrent,
            rate_limit__delay_seconds=delay,
        )
    except ValidationError as e:
        console.print("[red]Invalid options:[/red]")
        console.print(str(e), markup=False)
        raise typer.Exit(1)

    orchestrator = Orchestrator(config, console)

    try:
        asyncio.run(_run(orchestrator))
    except DiscoveryEmpty as e:
        console.print(f"[yellow]{e}[/yellow]")
        console.print("[dim]Check the URL points at the chapter list, or pass --total with a chapter URL.[/dim]")
        raise typer.Exit(EXIT_DISCOVERY_EMPTY)
    except (JobCancelled, KeyboardInterrupt):
        console.print("\n[yellow]Scrape cancelled.[/yellow]")
        raise typer.Exit(EXIT_CANCELLED)
    except NovelRetrievalError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        if verbose:
            console.print_exception()
        raise typer.Exit(1)


@app.command("show-config")
def show_config(
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="TOML config file to load",
        exists=True,
        dir_okay=False,
    ),
):
    """Print the effective configuration as TOML."""
    try:
        config = load_config(config_file, listing_url=None)
    except ValidationError as e:
        console.print("[red]Invalid config:[/red]")
        console.print(str(e), markup=False)
        raise typer.Exit(1)
    text = config.to_toml(include_defaults=True)
    if console.is_terminal:
        console.print(Syntax(text, "toml", theme="ansi_dark"))
    else:
        # Plain text when piped so the output stays valid TOML
        typer.echo(text, nl=False)


if __name__ == "__main__":
    app()
