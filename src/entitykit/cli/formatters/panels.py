"""Rich panels for short status messages."""

from rich.markup import escape
from rich.panel import Panel

from entitykit.cli.formatters import console

_STYLES = {
    "info": "blue",
    "warning": "yellow",
    "error": "red",
    "success": "green",
}


def message_panel(message: str, title: str, kind: str = "info", *, expand: bool = False) -> Panel:
    """Create a panel styled for ``kind`` (info, warning, error or success).

    Args:
        message: Message content to display.
        title: Panel title.
        kind: Semantic style of the panel.
        expand: Whether to expand panel to full width.
    """
    color = _STYLES[kind]
    return Panel(
        f"[{kind}]{escape(message)}[/]",
        title=f"[bold {color}]{title}[/]",
        border_style=color,
        expand=expand,
    )


def print_info(message: str, title: str = "Info") -> None:
    console.print(message_panel(message, title, "info"))


def print_warning(message: str, title: str = "Warning") -> None:
    console.print(message_panel(message, title, "warning"))


def print_error(message: str, title: str = "Error") -> None:
    console.print(message_panel(message, title, "error"))


def print_success(message: str, title: str = "Success") -> None:
    console.print(message_panel(message, title, "success"))


__all__ = [
    "message_panel",
    "print_info",
    "print_warning",
    "print_error",
    "print_success",
]
