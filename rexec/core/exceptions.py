"""
Unified exception definitions
"""
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import TransferResult


class RemoteError(Exception):
    """Base exception class"""
    pass


class ConfigError(RemoteError):
    """Configuration error"""
    pass


class InvalidHostName(RemoteError, ValueError):
    """Host name is empty"""

    def __init__(self, message: str = "invalid parameters: hostname is empty"):
        super().__init__(message)


class InvalidPort(RemoteError, ValueError):
    """Port is outside 0 ~ 65535"""

    def __init__(self, port: int):
        super().__init__(f"invalid parameters: port must be range 0 ~ 65535, got {port}")
        self.port = port


class CredentialError(RemoteError):
    """Private key could not be read or parsed"""
    pass


class ConnectError(RemoteError):
    """Transport could not be established"""
    pass


class HostKeyError(ConnectError):
    """Remote host key was rejected by the trust policy"""
    pass


class AuthError(RemoteError):
    """Remote host rejected the offered credential"""
    pass


class ChannelError(RemoteError):
    """Per-operation channel could not be opened or driven"""
    pass


class NotConnectedError(ChannelError):
    """Operation requested before connect()"""
    pass


class TransferError(RemoteError):
    """
    Upload or download failure.

    ``result`` holds the partial TransferResult, so callers can see how many
    bytes moved before the failure.
    """

    def __init__(self, message: str, result: "TransferResult"):
        super().__init__(message)
        self.result = result


class RemoteExitError(RemoteError):
    """Remote command ran and exited with a non-zero status"""

    def __init__(self, command: str, exit_code: int):
        super().__init__(f"remote command exited {exit_code}: {command!r}")
        self.command = command
        self.exit_code = exit_code
