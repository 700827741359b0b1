"""
User-facing terminal output.

All operator messages go through a single rich Console so that tests can
swap it for a recording console. Diagnostics go to ``logging`` instead.
"""

from contextlib import contextmanager
from typing import Iterator, Optional

from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.prompt import Prompt

console = Console(highlight=False)


def set_console(new_console: Console) -> None:
    """Replace the shared console (used by tests)."""
    global console
    console = new_console


def log_info(message: str) -> None:
    console.print(f"[blue][INFO][/blue] {message}")


def log_success(message: str) -> None:
    console.print(f"[green][SUCCESS][/green] {message}")


def log_warning(message: str) -> None:
    console.print(f"[yellow][WARNING][/yellow] {message}")


def log_error(message: str) -> None:
    console.print(f"[red][ERROR][/red] {message}")


def heading(title: str, style: str = "bold") -> None:
    """Print a ruled section heading."""
    console.print()
    console.rule(f"[{style}]{title}[/{style}]")
    console.print()


def banner(title: str, subtitle: Optional[str] = None) -> None:
    console.print(Panel.fit(
        f"[bold]{title}[/bold]" + (f"\n{subtitle}" if subtitle else ""),
        border_style="cyan",
    ))


def ask(prompt: str, default: Optional[str] = None) -> str:
    """Read a line of input, returning the default on empty input."""
    answer = Prompt.ask(prompt, console=console, default=default, show_default=default is not None)
    return (answer or "").strip()


def confirm(prompt: str, expected: str = "yes", assume_yes: bool = False) -> bool:
    """
    Ask for a typed confirmation.

    Only the exact ``expected`` token confirms; anything else cancels.
    ``assume_yes`` skips the prompt for non-interactive runs.
    """
    if assume_yes:
        return True
    return ask(f"{prompt} (type '{expected}' to confirm)") == expected


@contextmanager
def progress(message: str) -> Iterator[None]:
    """Show a spinner while the wrapped block runs."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[blue][PROGRESS][/blue] {task.description}"),
        console=console,
        transient=True,
    ) as bar:
        bar.add_task(message, total=None)
        yield
    console.print(f"[green][DONE][/green] {message}")
