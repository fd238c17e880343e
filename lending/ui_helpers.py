import json
import os
from datetime import datetime
from typing import Any, List, Optional

from rich.console import Console
from rich.table import Table

# Environment variable controlling CLI output mode
# Allowed values: 'plain' (default), 'json', 'rich'
OUTPUT_MODE_ENV = "LENDING_CLI_OUTPUT"

_console = Console()


def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode


def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, "plain").lower()


def print_books(books: List[Any]) -> None:
    """Print books in the current output mode.
    - plain: '<id> | <isbn> - <title> by <author> (<n> available)' lines, or 'No books in catalog.'
    - json: JSON array of book dicts
    - rich: Rich table
    """
    if not books:
        print("No books in catalog.")
        return

    mode = get_output_mode()
    if mode == "json":
        print(json.dumps([b.to_dict() for b in books], ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="📚 Books", show_lines=True, header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("ISBN", no_wrap=True)
        table.add_column("Title")
        table.add_column("Author")
        table.add_column("Available", justify="right")
        for b in books:
            table.add_row(str(b.id), b.isbn, b.title, b.author, str(b.copies_available))
        _console.print(table)
    else:
        for b in books:
            print(f"{b.id} | {b.isbn} - {b.title} by {b.author} ({b.copies_available} available)")


def print_loans(loans: List[Any], empty_message: str = "No loans found.", now: Optional[datetime] = None) -> None:
    """Print loans in the current output mode. Overdue loans are flagged."""
    if not loans:
        print(empty_message)
        return

    mode = get_output_mode()
    if mode == "json":
        print(json.dumps([loan.to_dict(now) for loan in loans], ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="📖 Loans", show_lines=True, header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("Member")
        table.add_column("Book")
        table.add_column("Due")
        table.add_column("Status")
        for loan in loans:
            status = "[red]OVERDUE[/]" if loan.is_overdue(now) else loan.status
            table.add_row(
                str(loan.id),
                loan.member_name or str(loan.member_id),
                loan.book_title or str(loan.book_id),
                loan.due_date.strftime("%Y-%m-%d"),
                status,
            )
        _console.print(table)
    else:
        for loan in loans:
            print(format_loan(loan, now))


def format_loan(loan: Any, now: Optional[datetime] = None) -> str:
    status = "OVERDUE" if loan.is_overdue(now) else loan.status
    return (
        f"Loan {loan.id}: {loan.book_title or loan.book_id} -> {loan.member_name or loan.member_id}, "
        f"due {loan.due_date.strftime('%Y-%m-%d')} [{status}]"
    )
