"""
Core interfaces for dependency injection
"""
from abc import ABC, abstractmethod

import paramiko

from .models import ExecResult


class CommandExecutor(ABC):
    """Anything that can run one command and return its result"""

    @abstractmethod
    def exec(self, command: str) -> ExecResult:
        """Run command on a fresh channel"""
        pass


class ChannelProvider(ABC):
    """Anything that can open a single-use session channel"""

    @abstractmethod
    def open_channel(self) -> paramiko.Channel:
        """Open a new session channel"""
        pass
