"""
Interactive session: pseudo-terminal plus live stream relays

Lifecycle:
    CREATED -> PTY_REQUESTED -> STREAMS_ATTACHED -> RUNNING -> CLOSED

- A pty that cannot be allocated is logged; the session goes on without one.
- Failing to set up stdio aborts before the command runs.
- The channel is closed and all three relays are stopped on every path.
"""
import select
import struct
import sys
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import BinaryIO, Callable, Dict, List, Optional

import paramiko
from paramiko.common import cMSG_CHANNEL_REQUEST

from ..core.constants import (
    COPY_BUFFER_SIZE,
    DEFAULT_PTY_COLS,
    DEFAULT_PTY_ROWS,
    DEFAULT_TERM,
    DEFAULT_TERMINAL_MODES,
    TTY_OP_END,
)
from ..core.exceptions import ChannelError
from ..core.interfaces import ChannelProvider
from ..core.logging import get_logger

logger = get_logger(__name__)

# Output relays are given this long to drain after the exit status arrives
OUTPUT_DRAIN_TIMEOUT = 5.0
# How often a polled relay checks its stop event
POLL_INTERVAL = 0.1
RELAY_STOP_TIMEOUT = 1.0


class SessionState(str, Enum):
    CREATED = "created"
    PTY_REQUESTED = "pty_requested"
    STREAMS_ATTACHED = "streams_attached"
    RUNNING = "running"
    CLOSED = "closed"


@dataclass
class PtySpec:
    """Pseudo-terminal request"""
    term: str = DEFAULT_TERM
    cols: int = DEFAULT_PTY_COLS
    rows: int = DEFAULT_PTY_ROWS
    # RFC 4254 opcode -> value
    modes: Dict[int, int] = field(default_factory=lambda: dict(DEFAULT_TERMINAL_MODES))


def encode_terminal_modes(modes: Dict[int, int]) -> bytes:
    """RFC 4254 section 8: one opcode byte and a uint32 per mode, then TTY_OP_END"""
    encoded = b"".join(
        struct.pack(">BI", opcode, value)
        for opcode, value in modes.items()
        if opcode != TTY_OP_END
    )
    return encoded + struct.pack(">B", TTY_OP_END)


def request_pty(channel: paramiko.Channel, pty: PtySpec) -> None:
    """
    Send a pty-req with term, window size and terminal modes.

    paramiko's Channel.get_pty always sends an empty mode list, so the request
    is built here the same way get_pty builds it, with pty.modes encoded.

    Raises:
        paramiko.SSHException: Channel not open, or the server refused
    """
    if channel.closed or channel.eof_received or channel.eof_sent or not channel.active:
        raise paramiko.SSHException("Channel is not open")

    m = paramiko.Message()
    m.add_byte(cMSG_CHANNEL_REQUEST)
    m.add_int(channel.remote_chanid)
    m.add_string("pty-req")
    m.add_boolean(True)
    m.add_string(pty.term)
    m.add_int(pty.cols)
    m.add_int(pty.rows)
    m.add_int(0)  # width in pixels
    m.add_int(0)  # height in pixels
    m.add_string(encode_terminal_modes(pty.modes))
    channel._event_pending()
    channel.transport._send_user_message(m)
    channel._wait_for_event()


class StreamRelay(threading.Thread):
    """
    Copy bytes from read() to write() until EOF, error, or stop().

    With ``ready`` the source is polled first, so a relay on a blocking
    source (a terminal, a pipe) still notices stop() within POLL_INTERVAL.
    """

    def __init__(
        self,
        name: str,
        read: Callable[[int], bytes],
        write: Callable[[bytes], None],
        on_eof: Optional[Callable[[], None]] = None,
        stop: Optional[threading.Event] = None,
        ready: Optional[Callable[[float], bool]] = None,
    ):
        super().__init__(name=f"rexec-{name}", daemon=True)
        self._read = read
        self._write = write
        self._on_eof = on_eof
        self._stop_event = stop or threading.Event()
        self._ready = ready
        self.transferred = 0
        self.error: Optional[BaseException] = None

    def stop(self) -> None:
        self._stop_event.set()

    def run(self) -> None:
        try:
            while not self._stop_event.is_set():
                if self._ready is not None and not self._ready(POLL_INTERVAL):
                    continue
                data = self._read(COPY_BUFFER_SIZE)
                if not data:
                    break
                self._write(data)
                self.transferred += len(data)
        except (OSError, ValueError, EOFError, paramiko.SSHException) as e:
            self.error = e
            logger.debug(f"{self.name} relay stopped: {e}")
        finally:
            if self._on_eof:
                try:
                    self._on_eof()
                except (OSError, EOFError, paramiko.SSHException) as e:
                    logger.debug(f"{self.name} relay close failed: {e}")


def _flushing_writer(stream: BinaryIO) -> Callable[[bytes], None]:
    def write(data: bytes) -> None:
        stream.write(data)
        stream.flush()
    return write


def _binary(stream, name: str) -> BinaryIO:
    if stream is None:
        raise ChannelError(f"Unable to setup {name} for session: stream is not available")
    binary = getattr(stream, "buffer", stream)
    if getattr(binary, "closed", False):
        raise ChannelError(f"Unable to setup {name} for session: stream is closed")
    return binary


def _readable(stream: BinaryIO) -> Optional[Callable[[float], bool]]:
    """select()-based readiness check, or None for streams without a file descriptor"""
    try:
        fd = stream.fileno()
    except (OSError, ValueError, AttributeError):
        return None

    def ready(timeout: float) -> bool:
        readable, _, _ = select.select([fd], [], [], timeout)
        return bool(readable)
    return ready


class InteractiveSession:
    """
    One foreground command (or a login shell when command is None) on its own
    channel, with local stdin/stdout/stderr relayed live.
    """

    def __init__(
        self,
        client: ChannelProvider,
        command: Optional[str] = None,
        pty: Optional[PtySpec] = None,
        stdin: Optional[BinaryIO] = None,
        stdout: Optional[BinaryIO] = None,
        stderr: Optional[BinaryIO] = None,
        request_pty: bool = True,
    ):
        self.client = client
        self.command = command
        self.pty = pty or PtySpec()
        self.request_pty = request_pty
        self._stdin = stdin if stdin is not None else sys.stdin
        self._stdout = stdout if stdout is not None else sys.stdout
        self._stderr = stderr if stderr is not None else sys.stderr

        self.state = SessionState.CREATED
        self.pty_allocated = False
        self.exit_code: Optional[int] = None
        self.relays: List[StreamRelay] = []
        self._stop = threading.Event()

    def run(self) -> int:
        """
        Run the session to completion and return the remote exit status.

        Raises:
            ChannelError: Channel could not be opened, stdio could not be set
                up, or the foreground command could not be started
        """
        try:
            channel = self.client.open_channel()
        except Exception:
            self.state = SessionState.CLOSED
            raise

        try:
            if self.request_pty:
                self.pty_allocated = self._request_pty(channel)
            self.state = SessionState.PTY_REQUESTED

            self._attach_streams(channel)
            self.state = SessionState.STREAMS_ATTACHED

            self.state = SessionState.RUNNING
            self.exit_code = self._run_foreground(channel)
            self._drain_output()
            return self.exit_code
        finally:
            self._stop.set()
            channel.close()
            self._stop_relays()
            self.state = SessionState.CLOSED

    def _request_pty(self, channel: paramiko.Channel) -> bool:
        try:
            request_pty(channel, self.pty)
        except (paramiko.SSHException, OSError, EOFError) as e:
            logger.warning(f"Request for pseudo terminal failed, continuing without one: {e}")
            return False
        logger.debug(f"Allocated pty {self.pty.term} {self.pty.cols}x{self.pty.rows}")
        return True

    def _attach_streams(self, channel: paramiko.Channel) -> None:
        local_in = _binary(self._stdin, "stdin")
        local_out = _binary(self._stdout, "stdout")
        local_err = _binary(self._stderr, "stderr")
        try:
            remote_in = channel.makefile_stdin("wb", 0)
        except (paramiko.SSHException, OSError, EOFError) as e:
            raise ChannelError(f"Unable to setup stdin for session: {e}") from e

        self.relays = [
            StreamRelay(
                "stdin",
                getattr(local_in, "read1", local_in.read),
                remote_in.write,
                on_eof=remote_in.close,
                stop=self._stop,
                ready=_readable(local_in),
            ),
            StreamRelay("stdout", channel.recv, _flushing_writer(local_out), stop=self._stop),
            StreamRelay("stderr", channel.recv_stderr, _flushing_writer(local_err), stop=self._stop),
        ]
        for relay in self.relays:
            relay.start()

    def _run_foreground(self, channel: paramiko.Channel) -> int:
        try:
            if self.command is None:
                channel.invoke_shell()
            else:
                channel.exec_command(self.command)
        except (paramiko.SSHException, OSError, EOFError) as e:
            logger.error(f"Unable to run command {self.command or '<shell>'!r}: {e}")
            raise ChannelError(f"Unable to run command {self.command or '<shell>'!r}: {e}") from e
        return channel.recv_exit_status()

    def _drain_output(self) -> None:
        for relay in self.relays[1:]:
            relay.join(timeout=OUTPUT_DRAIN_TIMEOUT)

    def _stop_relays(self) -> None:
        for relay in self.relays:
            relay.join(timeout=RELAY_STOP_TIMEOUT)
            if relay.is_alive():
                logger.debug(f"{relay.name} relay did not stop within {RELAY_STOP_TIMEOUT}s")
