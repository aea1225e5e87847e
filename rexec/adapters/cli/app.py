"""
Main CLI application
"""
import typer
from pathlib import Path
from typing import Optional

from ...core.logging import setup_logging, get_logger
from .commands import download_command, exec_command, shell_command, upload_command

logger = get_logger(__name__)

# Create main app
app = typer.Typer(
    name="rexec",
    add_completion=False,
    help="Run commands, transfer files and open terminals over one SSH connection",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.command(name="exec")(exec_command)
app.command(name="upload")(upload_command)
app.command(name="download")(download_command)
app.command(name="shell")(shell_command)


@app.callback()
def main(
    log_level: str = typer.Option(
        "WARNING",
        "--log-level",
        "-l",
        help="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    ),
    log_file: Optional[Path] = typer.Option(
        None,
        "--log-file",
        help="Log file path",
    ),
):
    """
    rexec - remote execution over a single SSH connection

    Subcommands:
    - exec: run commands concurrently, one channel each
    - upload / download: SFTP file transfer
    - shell: interactive session with a pseudo terminal
    """
    setup_logging(level=log_level, log_file=log_file)


def run():
    """CLI entry point"""
    app()


if __name__ == "__main__":
    run()
