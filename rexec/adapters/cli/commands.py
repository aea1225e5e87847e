"""
CLI commands: exec, upload, download, shell
"""
import os
import shutil
from typing import List, Optional

import typer
from rich.text import Text

from ...core.constants import DEFAULT_TERM, DEFAULT_SSH_TIMEOUT, HOST_KEY_KNOWN_HOSTS
from ...core.exceptions import RemoteError, TransferError
from ...core.logging import get_logger, get_stdout_console, get_stderr_console
from ...domain.interactive import InteractiveSession, PtySpec
from ...domain.runner import CommandOutcome, CommandRunner
from .connection import create_client, resolve_connection_params

logger = get_logger(__name__)
stdout_console = get_stdout_console()
stderr_console = get_stderr_console()

EXIT_CLIENT_ERROR = 1
EXIT_CANCELLED = 130


# ============================================================
# Shared options
# ============================================================

PORT_OPTION = typer.Option(None, "--port", "-p", help="SSH port (default: 22 or from ~/.ssh/config)")
USER_OPTION = typer.Option(None, "--user", "-u", help="Remote user (default: local user)")
PASSWORD_OPTION = typer.Option(None, "--password", envvar="REXEC_PASSWORD", help="Password (takes priority over the key)")
ASK_PASS_OPTION = typer.Option(False, "--ask-pass", help="Prompt for the password")
KEY_OPTION = typer.Option(None, "--key", "-i", help="Private key file (default: ~/.ssh/id_rsa)")
PASSPHRASE_OPTION = typer.Option(None, "--passphrase", envvar="REXEC_PASSPHRASE", help="Passphrase for an encrypted private key")
TIMEOUT_OPTION = typer.Option(DEFAULT_SSH_TIMEOUT, "--timeout", "-t", help="Connect timeout in seconds")
HOST_KEY_OPTION = typer.Option(
    HOST_KEY_KNOWN_HOSTS,
    "--host-key-policy",
    help="known_hosts, auto_add, insecure, or a pinned SHA256:... fingerprint",
)


def _client_from_options(host, port, user, password, ask_pass, key, passphrase, timeout, host_key_policy):
    if ask_pass and not password:
        password = typer.prompt(f"Password for {host}", hide_input=True)
    params = resolve_connection_params(
        host,
        port=port,
        user=user,
        password=password,
        key_file=key,
        passphrase=passphrase,
        timeout=timeout,
        host_key_policy=host_key_policy,
    )
    return create_client(params)


def _fail(error: Exception) -> typer.Exit:
    stderr_console.print(Text.assemble(("Error: ", "red"), str(error)), soft_wrap=True)
    return typer.Exit(EXIT_CLIENT_ERROR)


# ============================================================
# exec
# ============================================================

def _print_outcome(outcome: CommandOutcome) -> None:
    if outcome.cancelled:
        stderr_console.print(Text(f"cancelled: {outcome.command}", style="yellow"))
    elif outcome.error is not None:
        stderr_console.print(Text(f"failed: {outcome.command}: {outcome.error}", style="red"))
    else:
        result = outcome.result
        style = "green" if result.success else "red"
        stdout_console.rule(Text(f"{outcome.command} (exit code {result.exit_code})", style=style))
        stdout_console.out(result.output_text, end="", highlight=False)


def _batch_exit_code(outcomes: List[CommandOutcome]) -> int:
    code = 0
    for outcome in outcomes:
        if outcome.cancelled:
            code = max(code, EXIT_CANCELLED)
        elif outcome.error is not None:
            code = max(code, EXIT_CLIENT_ERROR)
        else:
            exit_code = outcome.result.exit_code
            code = max(code, exit_code if exit_code >= 0 else 255)
    return code


def exec_command(
    host: str = typer.Argument(..., help="Host name or ~/.ssh/config alias"),
    commands: List[str] = typer.Argument(..., help="Commands to run concurrently"),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", help="Max concurrent channels"),
    port: Optional[int] = PORT_OPTION,
    user: Optional[str] = USER_OPTION,
    password: Optional[str] = PASSWORD_OPTION,
    ask_pass: bool = ASK_PASS_OPTION,
    key: Optional[str] = KEY_OPTION,
    passphrase: Optional[str] = PASSPHRASE_OPTION,
    timeout: float = TIMEOUT_OPTION,
    host_key_policy: str = HOST_KEY_OPTION,
):
    """
    Run commands concurrently over one connection, one channel per command

    Exit status is the highest remote exit code (1 if a command could not run).

    Examples:
        rexec exec my-server "uname -a" "df -h" "uptime"
    """
    try:
        client = _client_from_options(host, port, user, password, ask_pass, key, passphrase, timeout, host_key_policy)
        with client:
            runner = CommandRunner(client, max_workers=workers, on_complete=_print_outcome)
            try:
                outcomes = runner.run(commands)
            except KeyboardInterrupt:
                raise typer.Exit(EXIT_CANCELLED)
    except RemoteError as e:
        raise _fail(e)

    raise typer.Exit(_batch_exit_code(outcomes))


# ============================================================
# upload / download
# ============================================================

def upload_command(
    host: str = typer.Argument(..., help="Host name or ~/.ssh/config alias"),
    local_path: str = typer.Argument(..., help="Local file"),
    remote_path: str = typer.Argument(..., help="Remote destination file"),
    port: Optional[int] = PORT_OPTION,
    user: Optional[str] = USER_OPTION,
    password: Optional[str] = PASSWORD_OPTION,
    ask_pass: bool = ASK_PASS_OPTION,
    key: Optional[str] = KEY_OPTION,
    passphrase: Optional[str] = PASSPHRASE_OPTION,
    timeout: float = TIMEOUT_OPTION,
    host_key_policy: str = HOST_KEY_OPTION,
):
    """Upload a local file over SFTP"""
    try:
        client = _client_from_options(host, port, user, password, ask_pass, key, passphrase, timeout, host_key_policy)
        with client:
            result = client.upload(local_path, remote_path)
    except TransferError as e:
        stderr_console.print(Text(str(e.result), style="yellow"), soft_wrap=True)
        raise _fail(e)
    except RemoteError as e:
        raise _fail(e)
    stdout_console.print(Text(str(result)), soft_wrap=True)


def download_command(
    host: str = typer.Argument(..., help="Host name or ~/.ssh/config alias"),
    remote_path: str = typer.Argument(..., help="Remote file"),
    local_path: str = typer.Argument(..., help="Local destination file"),
    port: Optional[int] = PORT_OPTION,
    user: Optional[str] = USER_OPTION,
    password: Optional[str] = PASSWORD_OPTION,
    ask_pass: bool = ASK_PASS_OPTION,
    key: Optional[str] = KEY_OPTION,
    passphrase: Optional[str] = PASSPHRASE_OPTION,
    timeout: float = TIMEOUT_OPTION,
    host_key_policy: str = HOST_KEY_OPTION,
):
    """Download a remote file over SFTP"""
    try:
        client = _client_from_options(host, port, user, password, ask_pass, key, passphrase, timeout, host_key_policy)
        with client:
            result = client.download(remote_path, local_path)
    except TransferError as e:
        stderr_console.print(Text(str(e.result), style="yellow"), soft_wrap=True)
        raise _fail(e)
    except RemoteError as e:
        raise _fail(e)
    stdout_console.print(Text(str(result)), soft_wrap=True)


# ============================================================
# shell
# ============================================================

def shell_command(
    host: str = typer.Argument(..., help="Host name or ~/.ssh/config alias"),
    command: Optional[List[str]] = typer.Argument(None, help="Foreground command (default: login shell)"),
    no_pty: bool = typer.Option(False, "--no-pty", help="Do not request a pseudo terminal"),
    port: Optional[int] = PORT_OPTION,
    user: Optional[str] = USER_OPTION,
    password: Optional[str] = PASSWORD_OPTION,
    ask_pass: bool = ASK_PASS_OPTION,
    key: Optional[str] = KEY_OPTION,
    passphrase: Optional[str] = PASSPHRASE_OPTION,
    timeout: float = TIMEOUT_OPTION,
    host_key_policy: str = HOST_KEY_OPTION,
):
    """
    Run one foreground command (or a login shell) with a pty and live stdio
    """
    size = shutil.get_terminal_size()
    pty = PtySpec(term=os.getenv("TERM") or DEFAULT_TERM, cols=size.columns, rows=size.lines)

    try:
        client = _client_from_options(host, port, user, password, ask_pass, key, passphrase, timeout, host_key_policy)
        with client:
            session = InteractiveSession(
                client,
                command=" ".join(command) if command else None,
                pty=pty,
                request_pty=not no_pty,
            )
            exit_code = session.run()
    except RemoteError as e:
        raise _fail(e)

    raise typer.Exit(exit_code if exit_code >= 0 else 255)
