"""
rexec - remote execution over a single SSH connection

One authenticated transport, multiplexed into:
- one-shot command execution with combined output and exit status
- SFTP upload / download sharing one lazily created SFTP client
- interactive sessions with a pseudo terminal and live stream relays
"""

__version__ = "0.1.0"

# Export core components
from .core import (
    AuthConfig,
    Configuration,
    ExecResult,
    PinnedFingerprintPolicy,
    RemoteClient,
    TransferKind,
    TransferResult,
    connect_client,
    load_configuration,
    load_ssh_config,
)
from .core.exceptions import (
    AuthError,
    ChannelError,
    ConfigError,
    ConnectError,
    CredentialError,
    HostKeyError,
    InvalidHostName,
    InvalidPort,
    NotConnectedError,
    RemoteError,
    RemoteExitError,
    TransferError,
)

# Export domain components
from .domain import (
    CommandOutcome,
    CommandRunner,
    InteractiveSession,
    PtySpec,
    SessionState,
    run_commands,
)

__all__ = [
    # Version
    "__version__",
    # Client
    "RemoteClient",
    "AuthConfig",
    "PinnedFingerprintPolicy",
    "connect_client",
    "ExecResult",
    "TransferKind",
    "TransferResult",
    # Configuration
    "Configuration",
    "load_configuration",
    "load_ssh_config",
    # Batch execution
    "CommandOutcome",
    "CommandRunner",
    "run_commands",
    # Interactive sessions
    "InteractiveSession",
    "PtySpec",
    "SessionState",
    # Errors
    "RemoteError",
    "InvalidHostName",
    "InvalidPort",
    "CredentialError",
    "ConnectError",
    "HostKeyError",
    "AuthError",
    "ChannelError",
    "NotConnectedError",
    "TransferError",
    "RemoteExitError",
    "ConfigError",
]
