"""
Fakes for paramiko's SSHClient / Transport / Channel / SFTPClient.

They implement just the surface rexec drives, and record what happened so
tests can assert on channel usage, SFTP reuse and teardown order.
"""
import io
import threading
from typing import Callable, Dict, List, Optional, Tuple

import paramiko
import pytest

from rexec.core.auth import AuthConfig
from rexec.core.client import RemoteClient
from rexec.core.constants import COPY_BUFFER_SIZE

Handler = Callable[[str], Tuple[bytes, int]]


class FakeStdin:
    """What channel.makefile_stdin() returns"""

    def __init__(self, channel: "FakeChannel"):
        self.channel = channel

    def write(self, data: bytes) -> None:
        self.channel.stdin_data += data

    def close(self) -> None:
        self.channel.stdin_closed = True
        self.channel.stdin_eof.set()


class FakeChannelWire:
    """Stands in for channel.transport: decodes the channel requests sent on it"""

    def __init__(self, channel: "FakeChannel"):
        self.channel = channel
        self.messages: List[bytes] = []

    def _send_user_message(self, m: paramiko.Message) -> None:
        self.messages.append(m.asbytes())
        msg = paramiko.Message(m.asbytes())
        msg.get_byte()
        msg.get_int()
        if msg.get_text() != "pty-req":
            return
        msg.get_boolean()
        if self.channel.fail_pty:
            self.channel.pending_error = paramiko.SSHException("pty request denied")
            return
        pty = {"term": msg.get_text()}
        pty["width"] = msg.get_int()
        pty["height"] = msg.get_int()
        msg.get_int()
        msg.get_int()
        pty["modes"] = msg.get_binary()
        self.channel.pty = pty


class FakeChannel:
    def __init__(
        self,
        handler: Optional[Handler] = None,
        stdout: bytes = b"",
        stderr: bytes = b"",
        exit_status: int = 0,
        fail_pty: bool = False,
        fail_stdin: bool = False,
        fail_exec: bool = False,
        wait_for_stdin: bool = False,
    ):
        self.handler = handler
        self._stdout = io.BytesIO(stdout)
        self._stderr = io.BytesIO(stderr)
        self.exit_status = exit_status
        self.fail_pty = fail_pty
        self.fail_stdin = fail_stdin
        self.fail_exec = fail_exec
        self.wait_for_stdin = wait_for_stdin

        # paramiko.Channel attributes read before a channel request
        self.active = True
        self.eof_received = False
        self.eof_sent = False
        self.remote_chanid = 7
        self.transport = FakeChannelWire(self)
        self.pending_error: Optional[Exception] = None

        self.commands: List[str] = []
        self.shell_invoked = False
        self.combine_stderr = False
        self.pty: Optional[dict] = None
        self.stdin_data = b""
        self.stdin_closed = False
        self.stdin_eof = threading.Event()
        self.closed = False

    def _event_pending(self) -> None:
        self.pending_error = None

    def _wait_for_event(self) -> None:
        if self.pending_error is not None:
            raise self.pending_error

    def set_combine_stderr(self, combine: bool) -> bool:
        self.combine_stderr = combine
        return False

    def exec_command(self, command: str) -> None:
        if self.fail_exec:
            raise paramiko.SSHException("exec request refused")
        self.commands.append(command)
        if self.handler is not None:
            output, self.exit_status = self.handler(command)
            self._stdout = io.BytesIO(output)

    def invoke_shell(self) -> None:
        if self.fail_exec:
            raise paramiko.SSHException("shell request refused")
        self.shell_invoked = True

    def makefile_stdin(self, *params) -> FakeStdin:
        if self.fail_stdin:
            raise paramiko.SSHException("stdin unavailable")
        return FakeStdin(self)

    def recv(self, nbytes: int) -> bytes:
        return self._stdout.read(nbytes)

    def recv_stderr(self, nbytes: int) -> bytes:
        return self._stderr.read(nbytes)

    def recv_exit_status(self) -> int:
        if self.wait_for_stdin:
            # like `cat`: the command ends once its input is closed
            self.stdin_eof.wait(5)
        return self.exit_status

    def close(self) -> None:
        self.closed = True
        self.active = False


class FakeTransport:
    def __init__(self, channel_factory: Callable[[], FakeChannel]):
        self.channel_factory = channel_factory
        self.channels: List[FakeChannel] = []
        self.active = True
        self.fail_open = False
        self._lock = threading.Lock()

    def is_active(self) -> bool:
        return self.active

    def open_session(self) -> FakeChannel:
        if self.fail_open:
            raise paramiko.ChannelException(2, "Connect failed")
        channel = self.channel_factory()
        with self._lock:
            self.channels.append(channel)
        return channel


class FakeSFTPFile:
    def __init__(self, sftp: "FakeSFTP", path: str, mode: str):
        self.sftp = sftp
        self.path = path
        self.mode = mode
        self._reader = io.BytesIO(sftp.files.get(path, b""))
        self._writes = 0
        self._reads = 0
        if "w" in mode:
            sftp.files[path] = b""

    def read(self, size: int = -1) -> bytes:
        self._reads += 1
        if self.sftp.fail_read_on and self._reads >= self.sftp.fail_read_on:
            raise OSError("Socket is closed")
        return self._reader.read(size)

    def write(self, data: bytes) -> None:
        self._writes += 1
        if self.sftp.fail_write_on and self._writes >= self.sftp.fail_write_on:
            raise OSError("Socket is closed")
        self.sftp.files[self.path] += data

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class FakeSFTP:
    def __init__(self, events: List[str]):
        self.files: Dict[str, bytes] = {}
        self.fail_write_on = 0
        self.fail_read_on = 0
        self.closed = False
        self._events = events

    def open(self, path: str, mode: str = "r") -> FakeSFTPFile:
        if "r" in mode and path not in self.files:
            raise FileNotFoundError(2, "No such file", path)
        return FakeSFTPFile(self, path, mode)

    def close(self) -> None:
        self.closed = True
        self._events.append("sftp.close")


class FakeSSHClient:
    def __init__(self, dialer: "FakeDialer"):
        self.dialer = dialer
        self.events = dialer.events
        self.transport = FakeTransport(lambda: dialer.channel_factory())
        self.connect_kwargs: Optional[dict] = None
        self.policy = None
        self.loaded_system_host_keys = False
        self.sftp: Optional[FakeSFTP] = None
        self.sftp_opened = 0
        self.closed = False

    def load_system_host_keys(self, filename=None) -> None:
        self.loaded_system_host_keys = True

    def set_missing_host_key_policy(self, policy) -> None:
        self.policy = policy

    def connect(self, **kwargs) -> None:
        self.connect_kwargs = kwargs
        if self.dialer.connect_error is not None:
            raise self.dialer.connect_error

    def get_transport(self) -> Optional[FakeTransport]:
        return self.transport

    def open_sftp(self) -> FakeSFTP:
        if self.dialer.sftp_delay:
            threading.Event().wait(self.dialer.sftp_delay)
        self.sftp_opened += 1
        self.sftp = FakeSFTP(self.events)
        self.sftp.files.update(self.dialer.remote_files)
        return self.sftp

    def close(self) -> None:
        self.closed = True
        self.transport.active = False
        self.events.append("client.close")


class FakeDialer:
    """Stands in for paramiko.SSHClient as RemoteClient's client_factory"""

    def __init__(self):
        self.calls = 0
        self.clients: List[FakeSSHClient] = []
        self.connect_error: Optional[BaseException] = None
        self.channel_factory: Callable[[], FakeChannel] = FakeChannel
        self.remote_files: Dict[str, bytes] = {}
        self.sftp_delay = 0.0
        self.events: List[str] = []

    def __call__(self) -> FakeSSHClient:
        self.calls += 1
        client = FakeSSHClient(self)
        self.clients.append(client)
        return client

    @property
    def last(self) -> FakeSSHClient:
        return self.clients[-1]

    def respond_with(self, handler: Handler) -> None:
        """Every channel runs commands through handler(cmd) -> (output, status)"""
        self.channel_factory = lambda: FakeChannel(handler=handler)


@pytest.fixture
def dialer() -> FakeDialer:
    return FakeDialer()


@pytest.fixture
def auth() -> AuthConfig:
    return AuthConfig(user="tester", password="secret", host_key_policy="insecure")


@pytest.fixture
def client(dialer, auth) -> RemoteClient:
    return RemoteClient("example.com", 22, auth, client_factory=dialer)


@pytest.fixture
def connected_client(client):
    client.connect()
    yield client
    client.close()


@pytest.fixture
def payload() -> bytes:
    """A little over three copy buffers of data"""
    return bytes(range(256)) * ((COPY_BUFFER_SIZE * 3) // 256 + 7)
