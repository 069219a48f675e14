"""
Root Typer application for the seqsearch CLI.

    seqsearch serve                      run the job server (uvicorn)
    seqsearch submit  --label --seq      submit one query, print the job ID
    seqsearch status  JOB_ID             non-consuming status
    seqsearch result  JOB_ID             consume the result
    seqsearch cancel  JOB_ID
    seqsearch wait    JOB_ID             poll until done, print the result
    seqsearch batch   INPUT OUTPUT       many queries, ordered TSV output

Client commands talk to ``--server`` (repeatable, round-robin; defaults to
``$SEQSEARCH_SERVER``).
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.markup import escape

from seqsearch import __version__
from seqsearch.client.batch import BatchSearch, read_queries
from seqsearch.client.http import SearchClient
from seqsearch.core.errors import SeqSearchError
from seqsearch.core.logging import configure_logging
from seqsearch.core.settings import JobSettings

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    name="seqsearch",
    help="seqsearch: asynchronous similarity-search job server and client.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

DEFAULT_SERVER = "http://localhost:8080"

ServerOption = typer.Option(
    [DEFAULT_SERVER],
    "--server",
    "-s",
    envvar="SEQSEARCH_SERVER",
    help="Server base URL (repeat for round-robin).",
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"seqsearch {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """seqsearch CLI: run the job server or talk to one."""


def make_client(servers: list[str], **kwargs: Any) -> SearchClient:
    return SearchClient(servers, **kwargs)


def _print_json(data: Any) -> None:
    console.print_json(json.dumps(data))


def _fail(exc: SeqSearchError) -> typer.Exit:
    err_console.print(f"[red]{exc.code}: {exc.message}[/red]")
    return typer.Exit(code=1)


# ── Server ───────────────────────────────────────────────────────────────


@app.command("serve")
def serve(
    host: str | None = typer.Option(None, "--host", "-h", help="Bind address"),  # noqa: UP007
    port: int | None = typer.Option(None, "--port", "-p", help="Bind port"),  # noqa: UP007
    database: Path | None = typer.Option(None, "--database", "-d", help="SQLite job store"),  # noqa: UP007
    max_jobs: int | None = typer.Option(None, "--max-jobs", help="Concurrent job cap"),  # noqa: UP007
    log_level: str | None = typer.Option(None, "--log-level"),  # noqa: UP007
) -> None:
    """Start the job server."""
    import uvicorn

    from seqsearch.api.app import create_app

    overrides = {
        "host": host,
        "port": port,
        "database_path": database,
        "max_jobs": max_jobs,
        "log_level": log_level,
    }
    settings = JobSettings(**{k: v for k, v in overrides.items() if v is not None})
    configure_logging(level=settings.log_level, json_format=settings.log_json)

    console.print(
        f"[bold green]Starting seqsearch server[/bold green] on {settings.host}:{settings.port} "
        f"(max_jobs={settings.max_jobs}, workers={settings.worker_mode})"
    )
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


# ── Client ───────────────────────────────────────────────────────────────


@app.command("submit")
def submit(
    label: str = typer.Option(..., "--label", "-l", help="Query label"),
    seq: str = typer.Option(..., "--seq", help="Query sequence"),
    db: str | None = typer.Option(None, "--db"),  # noqa: UP007
    partition: str | None = typer.Option(None, "--partition"),  # noqa: UP007
    maxnseq: int | None = typer.Option(None, "--maxnseq"),  # noqa: UP007
    minscore: int | None = typer.Option(None, "--minscore"),  # noqa: UP007
    minpsharedkey: float | None = typer.Option(None, "--minpsharedkey"),  # noqa: UP007
    mode: str | None = typer.Option(None, "--mode", help="minimum | normal | maximum"),  # noqa: UP007
    wait: bool = typer.Option(False, "--wait", help="Poll until the job finishes"),
    server: list[str] = ServerOption,
) -> None:
    """Submit one query and print its job ID (or its result with --wait)."""
    request = {
        "querylabel": label,
        "queryseq": seq,
        "db": db,
        "partition": partition,
        "maxnseq": maxnseq,
        "minscore": minscore,
        "minpsharedkey": minpsharedkey,
        "mode": mode,
    }
    request = {k: v for k, v in request.items() if v is not None}
    try:
        with make_client(server) as client:
            job_id = client.submit(request)
            if not wait:
                typer.echo(job_id)
                return
            err_console.print(f"Job submitted with ID: {job_id}")
            _print_json(client.wait(job_id))
    except SeqSearchError as exc:
        raise _fail(exc) from exc


@app.command("status")
def status(job_id: str = typer.Argument(...), server: list[str] = ServerOption) -> None:
    """Show the status of a job without consuming its result."""
    try:
        with make_client(server) as client:
            typer.echo(client.status(job_id))
    except SeqSearchError as exc:
        raise _fail(exc) from exc


@app.command("result")
def result(job_id: str = typer.Argument(...), server: list[str] = ServerOption) -> None:
    """Fetch (and consume) the result of a job."""
    try:
        with make_client(server) as client:
            _print_json(client.result(job_id))
    except SeqSearchError as exc:
        raise _fail(exc) from exc


@app.command("cancel")
def cancel(job_id: str = typer.Argument(...), server: list[str] = ServerOption) -> None:
    """Cancel a running job."""
    try:
        with make_client(server) as client:
            response = client.cancel(job_id)
    except SeqSearchError as exc:
        raise _fail(exc) from exc
    console.print(f"[yellow]{response.get('message', 'Job has been cancelled')}[/yellow]")


@app.command("wait")
def wait(
    job_id: str = typer.Argument(...),
    max_retries: int = typer.Option(0, "--maxnretry", help="Status retries for this job (0 = unlimited)"),
    max_total_retries: int = typer.Option(100, "--maxnretry-total", help="Status retries overall"),
    server: list[str] = ServerOption,
) -> None:
    """Poll a job until it finishes and print its result."""
    try:
        with make_client(
            server, max_retries=max_retries, max_total_retries=max_total_retries
        ) as client:
            _print_json(client.wait(job_id))
    except SeqSearchError as exc:
        raise _fail(exc) from exc


@app.command("batch")
def batch(
    input_path: str = typer.Argument(..., help="label<TAB>sequence lines, '-' for stdin"),
    output_path: str = typer.Argument(..., help="TSV output, '-' for stdout"),
    numthreads: int | None = typer.Option(  # noqa: UP007
        None, "--numthreads", "-n", help="Queries in flight (default: SEQSEARCH_POOL_SIZE)"
    ),
    window: int | None = typer.Option(  # noqa: UP007
        None, "--window", help="Reorder window (default: SEQSEARCH_STREAM_WINDOW)"
    ),
    isolate: bool = typer.Option(False, "--isolate", help="Skip failed queries instead of aborting"),
    db: str | None = typer.Option(None, "--db"),  # noqa: UP007
    partition: str | None = typer.Option(None, "--partition"),  # noqa: UP007
    maxnseq: int | None = typer.Option(None, "--maxnseq"),  # noqa: UP007
    minscore: int | None = typer.Option(None, "--minscore"),  # noqa: UP007
    minpsharedkey: float | None = typer.Option(None, "--minpsharedkey"),  # noqa: UP007
    mode: str | None = typer.Option(None, "--mode"),  # noqa: UP007
    server: list[str] = ServerOption,
) -> None:
    """Search many queries with bounded parallelism, writing results in input order."""
    defaults = {
        "db": db,
        "partition": partition,
        "maxnseq": maxnseq,
        "minscore": minscore,
        "minpsharedkey": minpsharedkey,
        "mode": mode,
    }
    overrides = {"pool_size": numthreads, "stream_window": window}
    try:
        settings = JobSettings(**{k: v for k, v in overrides.items() if v is not None})
    except ValueError as exc:
        err_console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc

    source = sys.stdin if input_path == "-" else open(input_path, encoding="utf-8")  # noqa: SIM115
    sink = sys.stdout if output_path == "-" else open(output_path, "w", encoding="utf-8")  # noqa: SIM115
    try:
        with make_client(server) as client:
            runner = BatchSearch(
                client,
                pool_size=settings.pool_size,
                window=settings.effective_stream_window,
                failure_policy="isolate" if isolate else "abort",
                request_defaults=defaults,
            )
            report = runner.run(read_queries(source), sink)
    except SeqSearchError as exc:
        raise _fail(exc) from exc
    except ValueError as exc:
        err_console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc
    finally:
        if source is not sys.stdin:
            source.close()
        if sink is not sys.stdout:
            sink.close()

    err_console.print(f"Processed {report.queries} queries, {report.results} results")
    if report.failed:
        err_console.print(f"[yellow]Failed queries: {', '.join(map(str, report.failed))}[/yellow]")
        raise typer.Exit(code=1)
