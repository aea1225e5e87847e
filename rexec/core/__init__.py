"""
Core infrastructure layer
"""
from .auth import (
    AuthConfig,
    AuthMethod,
    ClientConfig,
    PinnedFingerprintPolicy,
    build_auth_method,
    build_client_config,
    resolve_defaults,
)
from .client import RemoteClient, connect_client
from .config import Configuration, load_configuration, load_ssh_config
from .connection import Connection
from .constants import *
from .exceptions import *
from .logging import setup_logging, get_logger, get_stdout_console, get_stderr_console
from .models import ExecResult, TransferKind, TransferResult

__all__ = [
    "AuthConfig",
    "AuthMethod",
    "ClientConfig",
    "PinnedFingerprintPolicy",
    "build_auth_method",
    "build_client_config",
    "resolve_defaults",
    "RemoteClient",
    "connect_client",
    "Connection",
    "Configuration",
    "load_configuration",
    "load_ssh_config",
    "ExecResult",
    "TransferKind",
    "TransferResult",
    "setup_logging",
    "get_logger",
    "get_stdout_console",
    "get_stderr_console",
]
