"""
Concurrent batch execution over one connected client
"""
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from ..core.interfaces import CommandExecutor
from ..core.logging import get_logger
from ..core.models import ExecResult

logger = get_logger(__name__)


@dataclass
class CommandOutcome:
    """What happened to one command of a batch"""
    command: str
    result: Optional[ExecResult] = None
    error: Optional[Exception] = None
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return self.result is not None and self.result.success


class CommandRunner:
    """
    Run a batch of commands concurrently, one channel per command.

    Every command is an independent unit on a thread pool; a failing command
    never affects its siblings. ``run()`` returns only after every unit has
    finished. Completion order is whatever the remote produces; the returned
    list keeps submission order.

    ``cancel()`` sets a shared event: units that have not started yet are
    reported as cancelled, units already running finish normally. A runner
    stays cancelled, so use a new one for the next batch.
    """

    def __init__(
        self,
        client: CommandExecutor,
        max_workers: Optional[int] = None,
        on_complete: Optional[Callable[[CommandOutcome], None]] = None,
    ):
        """
        Args:
            client: Connected client (anything with ``exec``)
            max_workers: Cap on concurrent channels (default: one per command)
            on_complete: Called from the caller's thread as each unit finishes
        """
        if max_workers is not None and max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.client = client
        self.max_workers = max_workers
        self.on_complete = on_complete
        self._cancel = threading.Event()

    def cancel(self) -> None:
        """Stop dispatching commands that have not started"""
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def run(self, commands: Sequence[str]) -> List[CommandOutcome]:
        """Run all commands and wait for every one of them"""
        commands = list(commands)
        if not commands:
            return []

        outcomes: List[Optional[CommandOutcome]] = [None] * len(commands)
        workers = self.max_workers or len(commands)

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="rexec-cmd") as executor:
            futures = {
                executor.submit(self._run_one, command): index
                for index, command in enumerate(commands)
            }

            try:
                for future in as_completed(futures):
                    outcome = future.result()
                    outcomes[futures[future]] = outcome
                    if self.on_complete:
                        self.on_complete(outcome)
            except BaseException:
                # e.g. KeyboardInterrupt: stop dispatching before the pool joins
                self.cancel()
                raise

        failed = sum(1 for o in outcomes if o.error is not None)
        logger.info(f"Batch finished: {len(commands)} commands, {failed} failed")
        return outcomes

    def _run_one(self, command: str) -> CommandOutcome:
        if self._cancel.is_set():
            logger.debug(f"Skipping {command!r}: batch cancelled")
            return CommandOutcome(command=command, cancelled=True)

        logger.info(f"executing: {command}")
        try:
            result = self.client.exec(command)
        except Exception as e:
            logger.error(f"executing: {command} - failed: {e}")
            return CommandOutcome(command=command, error=e)

        logger.info(f"executing: {command} - done (exit code {result.exit_code})")
        return CommandOutcome(command=command, result=result)


def run_commands(
    client: CommandExecutor,
    commands: Sequence[str],
    max_workers: Optional[int] = None,
) -> List[CommandOutcome]:
    """Shortcut for CommandRunner(client, max_workers).run(commands)"""
    return CommandRunner(client, max_workers=max_workers).run(commands)
