"""Command line interface for PaperShelf."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from papershelf import commands
from papershelf.config import AppConfig
from papershelf.errors import PaperShelfError
from papershelf.index.search import FullTextSearchQuery
from papershelf.index.storage import LibraryStore

console = Console()
app = typer.Typer(help="PaperShelf - full-text search and smart groups for your paper library")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _ensure_db_parent(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)


def _open_store(db: Path | None) -> LibraryStore:
    config = AppConfig(db_path=db if db is not None else AppConfig().db_path)
    resolved_db = config.resolve_db_path(Path.cwd())
    _ensure_db_parent(resolved_db)
    return LibraryStore(resolved_db)


def _fail(exc: PaperShelfError) -> None:
    console.print(f"[red]{exc}[/red]")
    raise typer.Exit(code=1)


@app.command()
def index(
    paper_id: str = typer.Argument(..., help="Id of the paper to index"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Extract and index the PDF of one paper."""
    _setup_logging(verbose)
    store = _open_store(db)
    try:
        status = commands.index_paper(store, paper_id)
    except PaperShelfError as exc:
        _fail(exc)
    finally:
        store.close()

    if status.is_complete:
        console.print(f"Indexed [bold]{paper_id}[/bold]: {status.indexed_pages} pages")
    else:
        console.print(f"[yellow]{paper_id}: {status.error}[/yellow]")


@app.command("index-all")
def index_all(
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Index every paper with an attached PDF that is not indexed yet."""
    _setup_logging(verbose)
    store = _open_store(db)
    try:
        statuses = commands.index_all_papers(store)
    except PaperShelfError as exc:
        _fail(exc)
    finally:
        store.close()

    if not statuses:
        console.print("[yellow]Nothing to index.[/yellow]")
        return

    completed = [status for status in statuses if status.is_complete]
    console.print(f"Indexed: {len(completed)}, failed: {len(statuses) - len(completed)}")
    for status in statuses:
        if status.error:
            console.print(f"[yellow]{status.paper_id}: {status.error}[/yellow]")


@app.command()
def search(
    query: str = typer.Argument(..., help="Query text"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
    folder: Optional[str] = typer.Option(None, "--folder", help="Only search papers in this folder"),
    limit: int = typer.Option(AppConfig().default_limit, help="Number of results to display"),
    offset: int = typer.Option(0, help="Number of results to skip"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Search the text of indexed PDFs."""
    _setup_logging(verbose)
    store = _open_store(db)
    try:
        response = commands.search_full_text(
            store,
            FullTextSearchQuery(query=query, limit=limit, offset=offset, folder_id=folder),
        )
    except PaperShelfError as exc:
        _fail(exc)
    finally:
        store.close()

    if not response.results:
        console.print("[yellow]No matches found.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Rank")
    table.add_column("Paper")
    table.add_column("Page")
    table.add_column("Snippet")

    for result in response.results:
        snippet = escape(result.snippet.replace("\n", " "))
        snippet = snippet.replace("<mark>", "[bold]").replace("</mark>", "[/bold]")
        table.add_row(
            f"{result.rank:.4f}", escape(result.paper_title), str(result.page_number), snippet
        )

    console.print(table)
    console.print(f"Showing {len(response.results)} of {response.total} matches")


@app.command()
def status(
    paper_id: str = typer.Argument(..., help="Id of the paper"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """Show whether a paper is indexed."""
    store = _open_store(db)
    try:
        indexed = commands.get_paper_index_status(store, paper_id)
    except PaperShelfError as exc:
        _fail(exc)
    finally:
        store.close()
    console.print(f"{paper_id}: {'indexed' if indexed else 'not indexed'}")


@app.command()
def groups(
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """List predefined and saved smart groups with their paper counts."""
    store = _open_store(db)
    try:
        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Group")
        table.add_column("Kind")
        table.add_column("Match")
        table.add_column("Papers")

        sections = (
            ("predefined", commands.get_predefined_smart_groups()),
            ("saved", commands.get_smart_groups(store)),
        )
        for kind, group_list in sections:
            for group in group_list:
                papers = commands.get_smart_group_papers(store, group.criteria, group.match_mode)
                table.add_row(group.name, kind, group.match_mode, str(len(papers)))
    except PaperShelfError as exc:
        _fail(exc)
    finally:
        store.close()

    console.print(table)


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", help="Host interface"),
    port: int = typer.Option(8000, help="Server port"),
) -> None:
    """Start the HTTP API used by the desktop UI."""
    try:
        import uvicorn
    except ImportError as exc:  # pragma: no cover
        raise typer.BadParameter(
            "uvicorn is not installed. Install the web extras with \"python -m pip install '.[web]'\""
        ) from exc

    from papershelf.web.app import app as web_app

    console.print(f"Starting PaperShelf API on http://{host}:{port}")
    uvicorn.run(web_app, host=host, port=port, reload=False, log_level="info")
