"""CLI entry point using Typer."""

import httpx
import structlog
import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from fetchjob.web.fetch import FetchJob, FetchOutcome
from fetchjob.web.redirects import RedirectPolicy
from fetchjob.web.urls import normalize_url

app = typer.Typer(
    name="fetchjob",
    help="Fetch HTTP resources with a single https-to-http fallback.",
)
console = Console()

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
)


def _build_job(
    url: str,
    *,
    method: str,
    data: str | None,
    timeout: float | None,
    reject_redirects: bool,
    force_protocol: str,
    force_https: bool,
    verbose: bool,
) -> FetchJob:
    job = FetchJob(
        url=url,
        timeout=timeout,
        on_redirect=RedirectPolicy.REJECT if reject_redirects else RedirectPolicy.FOLLOW,
        force_protocol=force_protocol,
        force_https=force_https,
        log_level=1 if verbose else 0,
    )
    if method.upper() != "GET" or data is not None:
        job.request = httpx.Request(method.upper(), normalize_url(url), content=(data or "").encode())
    return job


def _summary_table(outcome: FetchOutcome) -> Table:
    table = Table(title="Fetch Result")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Final URL", str(outcome.request.url) if outcome.request else "-")
    table.add_row("Status", str(outcome.status_code) if outcome.ok else "-")
    table.add_row("Bytes", str(len(outcome.body)))
    table.add_row("Last modified", outcome.modified.isoformat() if outcome.modified else "-")
    table.add_row("Transport", outcome.transport or "-")
    table.add_row("Fallback to http", "yes" if outcome.fell_back else "no")
    if outcome.error is not None:
        table.add_row("Error kind", outcome.error_kind.value if outcome.error_kind else "-")
    return table


@app.callback()
def main() -> None:
    """Fetch HTTP resources with a single https-to-http fallback."""


@app.command()
def get(
    url: str = typer.Argument(..., help="URL to fetch"),
    method: str = typer.Option("GET", help="HTTP method"),
    data: str | None = typer.Option(None, help="Request body for POST requests"),
    timeout: float | None = typer.Option(None, help="Timeout in seconds"),
    reject_redirects: bool = typer.Option(False, help="Fail on redirects other than /path -> /path/"),
    force_protocol: str = typer.Option("", help="Force 'http' or 'https'"),
    force_https: bool = typer.Option(False, help="Keep https even in a dev environment"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Record extra diagnostics"),
    preview: bool = typer.Option(False, help="Print a preview of the body"),
) -> None:
    """Fetch a URL and print the outcome with its diagnostic log."""
    try:
        job = _build_job(
            url,
            method=method,
            data=data,
            timeout=timeout,
            reject_redirects=reject_redirects,
            force_protocol=force_protocol,
            force_https=force_https,
            verbose=verbose,
        )
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        raise typer.Exit(1)

    outcome = job.fetch()
    console.print(_summary_table(outcome))

    if outcome.messages:
        console.print("[bold blue]Diagnostics[/bold blue]")
        for line in outcome.messages:
            console.print(f"  {line}", markup=False)

    if outcome.error is not None:
        console.print(f"[bold red]Error:[/bold red] {escape(str(outcome.error))}")
        raise typer.Exit(1)

    if preview:
        console.print(outcome.body_preview, markup=False)


if __name__ == "__main__":
    app()
