"""
Layr CLI exception hierarchy.

Errors raised here are rendered for humans and never propagate out of a command.
When the underlying failure is a LayrError, its code, validation errors and
context are shown instead of a traceback, and a hint is derived from the code
unless the caller supplies one.
"""

import traceback

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from layr.exceptions import LayrError

console = Console(stderr=True)

CODE_HINTS = {
    "VALIDATION_ERROR": "Fix the intent fields listed below and run again.",
    "SETTINGS_ERROR": "Check the settings file and any LAYR_* environment variables.",
    "CONFIGURATION_ERROR": "Check the service credentials in your settings.",
    "GRAPH_ERROR": "The task graph for this blueprint is invalid; this is a Layr bug.",
}


class LayrCLIError(LayrError):
    """
    Base exception class for CLI-related errors.

    `exit_code` is the process status the command ends with after showing it.
    """

    code = "CLI_ERROR"

    def __init__(
        self,
        message: str,
        hint: str | None = None,
        exit_code: int = 1,
        original_exception: Exception | None = None,
    ):
        super().__init__(message)
        self.exit_code = exit_code
        self.original_exception = original_exception
        self.hint = hint or self._hint_for(original_exception)

    @staticmethod
    def _hint_for(error: Exception | None) -> str | None:
        if isinstance(error, LayrError):
            return CODE_HINTS.get(error.code)
        return None

    def format_rich(self) -> str:
        """Format the error message for rich display."""
        lines = [f"[red bold]Error:[/] {escape(self.message)}"]
        if self.hint:
            lines.append(f"[yellow]Hint:[/] {escape(self.hint)}")

        error = self.original_exception
        if error is None:
            return "\n".join(lines)

        lines.append("")
        if isinstance(error, LayrError):
            lines.append(f"[dim]Code:[/] {error.code}")
            lines.extend(f"[dim]  - {escape(item)}[/]" for item in getattr(error, "errors", []))
            for key, value in error.context.items():
                if key != "errors":
                    lines.append(f"[dim]{key}:[/] {escape(str(value))}")
            return "\n".join(lines)

        lines.append("[dim]Original error:[/]")
        lines.append(f"[dim]{error.__class__.__name__}: {escape(str(error))}[/]")
        tb = "".join(traceback.format_tb(error.__traceback__))
        if tb:
            lines.append(f"[dim]Traceback:[/]\n[dim]{escape(tb)}[/]")
        return "\n".join(lines)

    def show(self) -> None:
        """Display the error in a red panel titled with the command's exit status."""
        title = f"[red]Layr CLI Error[/] [dim](exit {self.exit_code})[/]"
        console.print(Panel(self.format_rich(), title=title, border_style="red"))


class CLIShowError(LayrCLIError):
    """Raised when there are errors displaying information via CLI."""


class CLIRunError(LayrCLIError):
    """Raised when there are errors running a pipeline via CLI."""
