"""
RemoteClient: exec, SFTP transfer and channels over one SSH connection
"""
from __future__ import annotations

import threading
from pathlib import Path
from typing import BinaryIO, Optional, Union

import paramiko

from .auth import AuthConfig, build_client_config
from .connection import ClientFactory, Connection
from .constants import COPY_BUFFER_SIZE, DEFAULT_SSH_PORT, MAX_PORT
from .exceptions import (
    ChannelError,
    InvalidHostName,
    InvalidPort,
    NotConnectedError,
    TransferError,
)
from .interfaces import ChannelProvider, CommandExecutor
from .logging import get_logger
from .models import ExecResult, TransferKind, TransferResult

logger = get_logger(__name__)

PathLike = Union[str, Path]


class RemoteClient(CommandExecutor, ChannelProvider):
    """
    Facade over one SSH transport:
    - connect() dials once; repeated calls are no-ops
    - exec() opens a fresh channel per command, so it is safe from many threads
    - upload()/download() share one lazily created SFTP client
    - close() releases SFTP, then the transport
    - usable as a context manager (connects on enter, closes on exit)
    """

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_SSH_PORT,
        auth: Optional[AuthConfig] = None,
        client_factory: ClientFactory = paramiko.SSHClient,
    ) -> None:
        if not host or not host.strip():
            raise InvalidHostName()
        if port < 0 or port > MAX_PORT:
            raise InvalidPort(port)

        self.host = host
        self.port = port or DEFAULT_SSH_PORT
        self.auth = auth or AuthConfig()
        self.conn = Connection()
        self._client_factory = client_factory
        self._connect_lock = threading.Lock()

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def connected(self) -> bool:
        return self.conn.connected

    # --------------------
    # Connection management
    # --------------------
    def connect(self) -> None:
        """
        Resolve credentials and dial the host. No-op if already connected.

        Raises:
            CredentialError: Private key unreadable or unparsable
            ConnectError: Dial failure (DNS, refused, timeout, host key)
            AuthError: Credential rejected
        """
        with self._connect_lock:
            if self.conn.connected:
                logger.info(f"Already connected to {self.address}")
                return

            client_config = build_client_config(self.auth)
            logger.info(f"Connecting to {client_config.user}@{self.address} ({client_config.auth.kind})")
            self.conn.open(self._client_factory, self.host, self.port, client_config)
            logger.info(f"Connected to {self.address}")

    def close(self) -> None:
        """Release the SFTP client and the transport. Safe to call twice."""
        if self.conn.connected:
            logger.debug(f"Closing connection to {self.address}")
        self.conn.close()

    def open_channel(self) -> paramiko.Channel:
        """Open a new single-use session channel on the transport"""
        return self.conn.open_session()

    # --------------------
    # Command execution
    # --------------------
    def exec(self, command: str) -> ExecResult:
        """
        Run one command on its own channel and capture combined output.

        A non-zero remote exit status is returned in the result, not raised.

        Raises:
            ChannelError: Channel could not be opened, or the transport failed
                or dropped before the exit status arrived
        """
        channel = self.conn.open_session()
        try:
            channel.set_combine_stderr(True)
            channel.exec_command(command)
            output = _read_all(channel)
            exit_code = _exit_status(channel, command, self.conn)
        except (paramiko.SSHException, OSError, EOFError) as e:
            raise ChannelError(f"Failed to execute {command!r}: {e}") from e
        finally:
            channel.close()
        return ExecResult(command=command, output=output, exit_code=exit_code)

    # --------------------
    # File transfer
    # --------------------
    def upload(self, local_path: PathLike, remote_path: str) -> TransferResult:
        """
        Copy a local file to the remote host.

        Raises:
            TransferError: Open or copy failure; ``error.result`` holds the
                bytes written before the failure
            NotConnectedError: Called before connect() or after the transport
                dropped; raised before any file is opened, so nothing moved
        """
        result = TransferResult(TransferKind.UPLOAD, str(local_path), remote_path)
        sftp = self._sftp(result)
        try:
            with open(local_path, "rb") as src, sftp.open(remote_path, "wb") as dst:
                _copy(src, dst, result)
        except (OSError, paramiko.SSHException, EOFError) as e:
            raise TransferError(
                f"Upload {local_path} -> {remote_path} failed after {result.transferred} bytes: {e}",
                result,
            ) from e
        logger.info(f"Uploaded {local_path} -> {self.host}:{remote_path} ({result.transferred} bytes)")
        return result

    def download(self, remote_path: str, local_path: PathLike) -> TransferResult:
        """
        Copy a remote file to the local host.

        Raises:
            TransferError: Open or copy failure; ``error.result`` holds the
                bytes written before the failure
            NotConnectedError: Called before connect() or after the transport
                dropped; raised before any file is opened, so nothing moved
        """
        result = TransferResult(TransferKind.DOWNLOAD, str(local_path), remote_path)
        sftp = self._sftp(result)
        try:
            with sftp.open(remote_path, "rb") as src, open(local_path, "wb") as dst:
                _copy(src, dst, result)
        except (OSError, paramiko.SSHException, EOFError) as e:
            raise TransferError(
                f"Download {remote_path} -> {local_path} failed after {result.transferred} bytes: {e}",
                result,
            ) from e
        logger.info(f"Downloaded {self.host}:{remote_path} -> {local_path} ({result.transferred} bytes)")
        return result

    def _sftp(self, result: TransferResult) -> paramiko.SFTPClient:
        try:
            return self.conn.sftp()
        except NotConnectedError:
            raise
        except ChannelError as e:
            raise TransferError(str(e), result) from e

    # --------------------
    # Context manager
    # --------------------
    def __enter__(self) -> RemoteClient:
        self.connect()
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "connected" if self.connected else "disconnected"
        return f"RemoteClient({self.auth.user or '?'}@{self.address}, {state})"


def connect_client(
    host: str,
    port: int = DEFAULT_SSH_PORT,
    auth: Optional[AuthConfig] = None,
    **kwargs,
) -> RemoteClient:
    """Construct a RemoteClient and connect it"""
    client = RemoteClient(host, port, auth, **kwargs)
    client.connect()
    return client


def _read_all(channel: paramiko.Channel) -> bytes:
    chunks = []
    while True:
        data = channel.recv(COPY_BUFFER_SIZE)
        if not data:
            break
        chunks.append(data)
    return b"".join(chunks)


def _exit_status(channel: paramiko.Channel, command: str, conn: Connection) -> int:
    # paramiko reports -1 both when the transport dropped and when the
    # server closed the channel without an exit-status (e.g. killed by a signal)
    status = channel.recv_exit_status()
    if status == -1:
        if not conn.active:
            raise ChannelError(f"Transport lost while executing {command!r}")
        logger.warning(f"No exit status received for {command!r}")
    return status


def _copy(src: BinaryIO, dst: BinaryIO, result: TransferResult) -> None:
    while True:
        chunk = src.read(COPY_BUFFER_SIZE)
        if not chunk:
            break
        dst.write(chunk)
        result.transferred += len(chunk)
