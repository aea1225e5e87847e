"""
SSH connection: one transport plus a lazily created SFTP sub-client
"""
from __future__ import annotations

import threading
from typing import Callable, Optional

import paramiko

from .auth import ClientConfig
from .exceptions import (
    AuthError,
    ChannelError,
    ConnectError,
    HostKeyError,
    NotConnectedError,
)
from .logging import get_logger

logger = get_logger(__name__)

ClientFactory = Callable[[], paramiko.SSHClient]


class Connection:
    """
    Owns the paramiko SSHClient (the transport) and the SFTP client layered
    on it. Exclusively owned by one RemoteClient.
    """

    def __init__(self) -> None:
        self.client: Optional[paramiko.SSHClient] = None
        self.sftp_client: Optional[paramiko.SFTPClient] = None
        self._sftp_lock = threading.Lock()

    @property
    def connected(self) -> bool:
        return self.client is not None

    @property
    def active(self) -> bool:
        """True while the transport is up"""
        client = self.client
        if client is None:
            return False
        transport = client.get_transport()
        return transport is not None and transport.is_active()

    # --------------------
    # Dial
    # --------------------
    def open(
        self,
        factory: ClientFactory,
        host: str,
        port: int,
        config: ClientConfig,
    ) -> None:
        """
        Dial host:port and authenticate.

        Raises:
            ConnectError: Network, timeout or SSH negotiation failure
            HostKeyError: Host key rejected by the trust policy
            AuthError: Credential rejected by the server
        """
        client = factory()
        if config.load_known_hosts:
            client.load_system_host_keys()
        client.set_missing_host_key_policy(config.host_key_policy)

        try:
            self._dial(client, host, port, config)
        except Exception:
            client.close()
            raise
        self.client = client

    def _dial(
        self,
        client: paramiko.SSHClient,
        host: str,
        port: int,
        config: ClientConfig,
    ) -> None:
        try:
            client.connect(
                hostname=host,
                port=port,
                username=config.user,
                timeout=config.timeout,
                banner_timeout=config.timeout,
                auth_timeout=config.timeout,
                allow_agent=False,
                look_for_keys=False,
                **config.auth.connect_kwargs(),
            )
        except paramiko.AuthenticationException as e:
            raise AuthError(
                f"Authentication ({config.auth.kind}) failed for {config.user}@{host}:{port}: {e}"
            ) from e
        except paramiko.BadHostKeyException as e:
            raise HostKeyError(str(e)) from e
        except (paramiko.SSHException, OSError, EOFError) as e:
            raise ConnectError(f"Failed to connect to {host}:{port}: {e}") from e

    # --------------------
    # Channels
    # --------------------
    def transport(self) -> paramiko.Transport:
        """Return the active transport"""
        if self.client is None:
            raise NotConnectedError("Not connected; call connect() first")
        transport = self.client.get_transport()
        if transport is None or not transport.is_active():
            raise NotConnectedError("SSH transport is not active; reconnect required")
        return transport

    def open_session(self) -> paramiko.Channel:
        """
        Open a new session channel. One channel serves exactly one command.

        Raises:
            ChannelError: If the server refuses or the transport fails
        """
        transport = self.transport()
        try:
            return transport.open_session()
        except (paramiko.SSHException, OSError, EOFError) as e:
            raise ChannelError(f"Failed to open session channel: {e}") from e

    def sftp(self) -> paramiko.SFTPClient:
        """Return the SFTP client, creating it once on first use"""
        sftp = self.sftp_client
        if sftp is not None:
            return sftp

        with self._sftp_lock:
            if self.sftp_client is None:
                self.transport()
                try:
                    self.sftp_client = self.client.open_sftp()
                except (paramiko.SSHException, OSError, EOFError) as e:
                    raise ChannelError(f"Failed to start SFTP subsystem: {e}") from e
                logger.debug("SFTP subsystem started")
            return self.sftp_client

    # --------------------
    # Teardown
    # --------------------
    def close(self) -> None:
        """Close SFTP first, then the transport. Safe to call repeatedly."""
        with self._sftp_lock:
            sftp, self.sftp_client = self.sftp_client, None
        if sftp is not None:
            try:
                sftp.close()
            except (paramiko.SSHException, OSError, EOFError) as e:
                logger.debug(f"Ignoring error while closing SFTP client: {e}")

        client, self.client = self.client, None
        if client is not None:
            client.close()
