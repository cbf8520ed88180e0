import json
import logging
import typer
from typing import Any
from pydantic import BaseModel
from rich.console import Console
from rich.logging import RichHandler

# Create a stderr console for logging
error_console = Console(stderr=True)

class OutputFormatter:
    """
    Handles output formatting for the CLI.
    Keeps system messages (stderr) apart from data (stdout).
    """

    @staticmethod
    def log(message: str, severity: str = "info") -> None:
        """
        Print system messages to stderr with color coding.
        """
        style = "white"
        prefix = "[SYSTEM]"

        if severity == "warning":
            style = "yellow"
        elif severity == "error":
            style = "red"
        elif severity == "critical":
            style = "bold red"
        elif severity == "success":
            style = "green"

        error_console.print(f"[{style}]{prefix} {message}[/{style}]")

    @staticmethod
    def print_data(data: Any) -> None:
        """
        Print a result to stdout as indented JSON.
        Handles Pydantic models and lists of them.
        """
        if isinstance(data, str):
            typer.echo(data)
            return

        def json_serializer(obj):
            if isinstance(obj, BaseModel):
                return obj.model_dump(mode='json')
            if hasattr(obj, "isoformat"):
                return obj.isoformat()
            return str(obj)

        try:
            output = json.dumps(data, indent=2, default=json_serializer)
            typer.echo(output)
        except (TypeError, ValueError) as e:
            OutputFormatter.log(f"JSON Serialization failed: {e}", severity="error")
            typer.echo(str(data))


def configure_logging(level: str) -> None:
    """Route library logs to stderr through rich."""
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise typer.BadParameter(f"Unknown log level '{level}'.")

    package_logger = logging.getLogger("infrausage")
    package_logger.handlers.clear()
    package_logger.addHandler(RichHandler(console=error_console, show_path=False))
    package_logger.setLevel(numeric_level)
