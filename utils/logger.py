"""Logging utility with Rich console output and file logging."""

from datetime import datetime
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.theme import Theme


# Custom theme for consistent styling
THEME = Theme({
    "info": "cyan",
    "success": "green",
    "warning": "yellow",
    "error": "red bold",
    "step": "blue",
    "api": "magenta",
    "countdown": "red bold",
    "dim": "dim",
})


class CardLogger:
    """Logger that outputs to a Rich console and to a per-command log file."""

    def __init__(
        self,
        command: str,
        logs_dir: Path | str = "./logs",
        console: Console | None = None,
    ):
        """Initialize the logger.

        Args:
            command: The command name (e.g., 'record', 'process') for log filename.
            logs_dir: Directory to store log files.
            console: Optional Rich console instance.
        """
        self.command = command
        self.logs_dir = Path(logs_dir)
        self.logs_dir.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        self.log_file = self.logs_dir / f"{command}_{timestamp}.log"
        self._file_handle = open(self.log_file, "w", encoding="utf-8")

        self.console = console or Console(theme=THEME)

    def _write_to_file(self, level: str, message: str) -> None:
        """Write a log entry to the file."""
        if self._file_handle.closed:
            return
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        self._file_handle.write(f"[{timestamp}] {level}: {message}\n")
        self._file_handle.flush()

    def info(self, message: str, **kwargs: Any) -> None:
        self.console.print(f"[info]ℹ[/info] {message}", **kwargs)
        self._write_to_file("INFO", message)

    def success(self, message: str, **kwargs: Any) -> None:
        self.console.print(f"[success]✓[/success] {message}", **kwargs)
        self._write_to_file("SUCCESS", message)

    def warning(self, message: str, **kwargs: Any) -> None:
        self.console.print(f"[warning]⚠[/warning] {message}", **kwargs)
        self._write_to_file("WARNING", message)

    def error(self, message: str, **kwargs: Any) -> None:
        self.console.print(f"[error]✗[/error] {message}", **kwargs)
        self._write_to_file("ERROR", message)

    def step(self, message: str, **kwargs: Any) -> None:
        """Log a step/progress message."""
        self.console.print(f"[step]→[/step] {message}", **kwargs)
        self._write_to_file("STEP", message)

    def countdown(self, remaining: int) -> None:
        """Show the seconds left in a timed recording."""
        self.console.print(f"[countdown]● {remaining}s[/countdown]")
        self._write_to_file("REC", f"{remaining}s remaining")

    def api(self, input_tokens: int, output_tokens: int, **kwargs: Any) -> None:
        """Log API token usage."""
        message = f"Tokens: {input_tokens:,} in, {output_tokens:,} out"
        self.console.print(f"[api]⚡[/api] {message}", **kwargs)
        self._write_to_file("API", message)

    def text_block(self, title: str, text: str, style: str = "blue") -> None:
        """Show a block of text (transcript, generated copy) in a panel."""
        self.console.print(Panel(text or "[dim](empty)[/dim]", title=f"[bold]{title}[/bold]", border_style=style))
        self._write_to_file("TEXT", f"{title}: {text}")

    def header(self, title: str, **kwargs: Any) -> None:
        """Print a section header."""
        self.console.print()
        self.console.rule(f"[bold]{title}[/bold]", **kwargs)
        self.console.print()
        self._write_to_file("HEADER", title)

    def summary(
        self,
        title: str,
        data: dict[str, str],
        style: str = "green",
    ) -> None:
        """Print a summary panel with key-value data."""
        table = Table(show_header=False, box=None, padding=(0, 2))
        table.add_column("Key", style="bold")
        table.add_column("Value")

        for key, value in data.items():
            table.add_row(key, value)

        panel = Panel(table, title=f"[bold]{title}[/bold]", border_style=style)
        self.console.print(panel)

        self._write_to_file("SUMMARY", title)
        for key, value in data.items():
            self._write_to_file("SUMMARY", f"  {key}: {value}")

    def close(self) -> None:
        """Close the log file."""
        if self._file_handle:
            self._file_handle.close()

    def __enter__(self) -> "CardLogger":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
