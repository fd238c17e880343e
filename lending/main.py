import logging
import subprocess
import sys
import webbrowser
from datetime import datetime
from typing import NoReturn, Optional

import typer
from rich.console import Console

from lending.config import settings
from lending.errors import LibraryError
from lending.library import Library
from lending.ui_helpers import format_loan, print_books, print_loans, set_output_mode

APP_NAME = "Library Lending CLI"

console = Console(stderr=True)

_instance: Optional[Library] = None


def get_library() -> Library:
    """Get or create the Library instance for this process."""
    global _instance
    if _instance is None:
        _instance = Library()
    return _instance


def _parse_datetime(value: Optional[str], option: str) -> Optional[datetime]:
    if value is None:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise typer.BadParameter(f"expected an ISO-8601 date/time, got {value!r}", param_hint=option)


def _fail(error: LibraryError) -> NoReturn:
    print(f"Error: {error.message}")
    raise typer.Exit(code=1)


# --- Typer CLI Application ---
app = typer.Typer(help=APP_NAME)


@app.callback()
def _global_options(
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output format: plain | json | rich (default: plain)",
    )
):
    """Global options for the CLI (e.g. output mode)."""
    logging.basicConfig(level=settings.log_level.upper(), format="%(levelname)s: %(message)s")
    if output:
        set_output_mode(output)


@app.command("books")
def cli_books():
    """List every book with its available copies."""
    print_books(get_library().books.list_books())


@app.command("borrow")
def cli_borrow(
    member_id: int,
    book_id: int,
    due: Optional[str] = typer.Option(None, "--due", help="Due date (ISO-8601). Defaults to 14 days from now."),
):
    """Lend a book to a member."""
    due_date = _parse_datetime(due, "--due")
    lib = get_library()
    try:
        loan = lib.loans.borrow(member_id, book_id, due_date=due_date)
    except LibraryError as e:
        _fail(e)
    print(f"Borrowed: {format_loan(loan, lib.clock())}")


@app.command("return")
def cli_return(
    loan_id: int,
    date: Optional[str] = typer.Option(None, "--date", help="Return date (ISO-8601). Defaults to now."),
):
    """Return a borrowed book."""
    return_date = _parse_datetime(date, "--date")
    lib = get_library()
    try:
        loan = lib.loans.return_loan(loan_id, return_date=return_date)
    except LibraryError as e:
        _fail(e)
    print(f"Returned: {format_loan(loan, lib.clock())}")


@app.command("active")
def cli_active():
    """List loans that have not been returned."""
    lib = get_library()
    print_loans(lib.queries.list_active(), empty_message="No active loans.", now=lib.clock())


@app.command("overdue")
def cli_overdue():
    """List active loans past their due date."""
    lib = get_library()
    print_loans(lib.queries.list_overdue(), empty_message="No overdue loans.", now=lib.clock())


@app.command("history")
def cli_history(member_id: int):
    """Show every loan of a member."""
    lib = get_library()
    try:
        loans = lib.loans.member_loan_history(member_id)
    except LibraryError as e:
        _fail(e)
    print_loans(loans, empty_message=f"Member {member_id} has no loans.", now=lib.clock())


@app.command("serve")
def cli_serve(
    host: Optional[str] = typer.Option(None, "--host"),
    port: Optional[int] = typer.Option(None, "--port"),
    browser: bool = typer.Option(True, "--browser/--no-browser", help="Open the API docs in a browser"),
):
    """Start the API with Uvicorn."""
    host = host or settings.api_host
    port = int(port or settings.api_port)
    url = f"http://{host}:{port}/docs"
    print(f"Starting API on {url}")
    if browser:
        try:
            webbrowser.open(url)
        except webbrowser.Error:
            console.print("[yellow]Could not open a web browser automatically.[/]")
    args = [
        sys.executable,
        "-m", "uvicorn",
        "lending.api:app",
        "--host", host,
        "--port", str(port),
    ]
    try:
        subprocess.run(args, check=False)
    except KeyboardInterrupt:
        console.print("[dim]Server stopped[/]")


if __name__ == "__main__":
    app()
