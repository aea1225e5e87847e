"""
Result models for remote operations
"""
from dataclasses import dataclass
from enum import Enum

from .exceptions import RemoteExitError


class TransferKind(str, Enum):
    """Transfer direction"""
    UPLOAD = "upload"      # local → remote
    DOWNLOAD = "download"  # remote → local


@dataclass
class ExecResult:
    """Command execution result"""
    command: str
    output: bytes  # stdout and stderr, interleaved as the remote wrote them
    exit_code: int = 0

    @property
    def success(self) -> bool:
        return self.exit_code == 0

    @property
    def output_text(self) -> str:
        """Output decoded as UTF-8 (undecodable bytes replaced)"""
        return self.output.decode("utf-8", errors="replace")

    def check(self) -> "ExecResult":
        """Return self, or raise RemoteExitError if the command exited non-zero"""
        if self.exit_code != 0:
            raise RemoteExitError(self.command, self.exit_code)
        return self

    def __str__(self) -> str:
        return f'ExecResult(command: "{self.command}", exit_code: {self.exit_code})'


@dataclass
class TransferResult:
    """Upload or download information"""
    kind: TransferKind
    local_path: str
    remote_path: str
    transferred: int = 0  # bytes

    def __str__(self) -> str:
        return (
            f'TransferResult(kind: "{self.kind.value}", local: "{self.local_path}", '
            f'remote: "{self.remote_path}", transferred: {self.transferred})'
        )
