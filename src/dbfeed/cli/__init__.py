"""
CLI for dbfeed.

Provides commands to validate a configuration, run full and incremental
scans into feed files, and render single documents.
"""

import logging
import time
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from dbfeed.core.config import LoggingConfig, load_config
from dbfeed.core.errors import DbFeedError, InvalidConfigurationError
from dbfeed.core.models import DocId
from dbfeed.infrastructure.feed import FeedFileWriter
from dbfeed.services import ServicesContainer, create_adaptor_services
from dbfeed.services.adaptor import DocumentResult

# Initialize Rich Console
console = Console()

app = typer.Typer(
    name="dbfeed",
    help="dbfeed - Feed relational query results into a search index",
    add_completion=False,
)

CONFIG_OPTION = typer.Option(..., "--config", "-c", help="Path to YAML or JSON configuration file")


def setup_logging(config: LoggingConfig) -> None:
    """Route log records through Rich at the configured level."""
    logging.basicConfig(
        level=config.level,
        format=config.format,
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def get_services(config_path: Path) -> ServicesContainer:
    """
    Load .env, configuration and services, exiting with status 1 on an
    invalid configuration.
    """
    load_dotenv()
    try:
        config = load_config(config_path)
        setup_logging(config.logging)
        return create_adaptor_services(config)
    except (InvalidConfigurationError, FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Configuration error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def validate(config: Path = CONFIG_OPTION):
    """Validate the configuration and the response strategy."""
    services = get_services(config)
    cfg = services.config

    summary = Table.grid(padding=1)
    summary.add_column(style="bold")
    summary.add_column()
    summary.add_row("Database:", f"{cfg.db.url} ({cfg.db.driver_module})")
    summary.add_row("Primary key:", repr(services.primary_key))
    summary.add_row("Strategy:", repr(services.strategy))
    summary.add_row("Batch size:", str(cfg.feed.max_urls))
    summary.add_row(
        "Incremental:", "enabled" if services.adaptor.supports_incremental else "disabled"
    )
    summary.add_row(
        "ACL:",
        f"{cfg.db.acl_row_policy.value}, empty={cfg.db.empty_acl_policy.value}"
        if cfg.db.acl_sql
        else "disabled",
    )
    console.print(
        Panel(
            summary,
            title="[bold green]Configuration OK[/bold green]",
            border_style="green",
            expand=False,
        )
    )


@app.command("list-ids")
def list_ids(
    config: Path = CONFIG_OPTION,
    out: Path = typer.Option(..., "--out", "-o", help="Directory for feed files"),
):
    """Run a full scan and write the ids as feed files."""
    services = get_services(config)
    writer = FeedFileWriter(out)
    try:
        count = services.adaptor.get_doc_ids(writer)
    except (DbFeedError, OSError) as e:
        console.print(f"[bold red]Full scan failed:[/bold red] {e}")
        raise typer.Exit(1)
    console.print(f"[bold green]Pushed[/bold green] {count} doc ids to {out}")


@app.command()
def poll(
    config: Path = CONFIG_OPTION,
    out: Path = typer.Option(..., "--out", "-o", help="Directory for feed files"),
    interval: float = typer.Option(900.0, "--interval", "-i", help="Seconds between incremental scans"),
    passes: int = typer.Option(0, "--passes", "-n", help="Incremental passes to run (0 = forever)"),
):
    """Run a full scan, then incremental scans on an interval."""
    services = get_services(config)
    adaptor = services.adaptor
    if not adaptor.supports_incremental:
        console.print("[bold red]Error:[/bold red] db.updateSql is not configured")
        raise typer.Exit(1)

    writer = FeedFileWriter(out)
    try:
        count = adaptor.get_doc_ids(writer)
        console.print(f"[bold green]Full scan[/bold green] pushed {count} doc ids")
    except (DbFeedError, OSError) as e:
        console.print(f"[bold red]Full scan failed:[/bold red] {e}")

    completed = 0
    try:
        while passes == 0 or completed < passes:
            time.sleep(interval)
            completed += 1
            try:
                count = adaptor.get_modified_doc_ids(writer)
                console.print(f"[bold blue]Incremental scan[/bold blue] pushed {count} doc ids")
            except (DbFeedError, OSError) as e:
                # watermark stays put; the next pass covers the same window
                console.print(f"[bold red]Incremental scan failed:[/bold red] {e}")
    except KeyboardInterrupt:
        console.print("[yellow]Stopped[/yellow]")


def _render_result(result: DocumentResult, max_body: int) -> None:
    if result.error:
        console.print(f"[bold red]{result.doc_id}:[/bold red] {result.error}")
        return
    response = result.response
    if response.not_found:
        console.print(f"[yellow]{result.doc_id}: not found[/yellow]")
        return

    table = Table(show_header=False, box=None)
    table.add_column(style="bold")
    table.add_column()
    for key, value in response.metadata:
        table.add_row(key, value)
    if response.acl is not None:
        for name, principals in response.acl.to_dict().items():
            table.add_row(name, ", ".join(principals) or "-")
    table.add_row("content type", response.content_type or "-")
    if response.display_url:
        table.add_row("display url", response.display_url)
    body = response.text()
    if len(body) > max_body:
        body = body[:max_body] + "..."
    table.add_row("body", body)
    console.print(Panel(table, title=str(result.doc_id), expand=False))


@app.command()
def fetch(
    doc_ids: list[str] = typer.Argument(..., help="Unique ids of the documents"),
    config: Path = CONFIG_OPTION,
    max_body: int = typer.Option(500, "--max-body", help="Characters of body to display"),
):
    """Render documents by id and print metadata, ACL and body."""
    services = get_services(config)
    results = services.adaptor.get_docs(DocId(doc_id) for doc_id in doc_ids)
    for result in results:
        _render_result(result, max_body)
    if any(result.error for result in results):
        raise typer.Exit(1)


def main(argv: Optional[list[str]] = None) -> None:
    app(args=argv)


if __name__ == "__main__":
    main()
