"""
Domain layer: batch execution and interactive sessions
"""
from .interactive import (
    InteractiveSession,
    PtySpec,
    SessionState,
    StreamRelay,
    encode_terminal_modes,
    request_pty,
)
from .runner import CommandOutcome, CommandRunner, run_commands

__all__ = [
    "InteractiveSession",
    "PtySpec",
    "SessionState",
    "StreamRelay",
    "encode_terminal_modes",
    "request_pty",
    "CommandOutcome",
    "CommandRunner",
    "run_commands",
]
