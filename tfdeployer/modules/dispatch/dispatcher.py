import asyncio
import logging
import socket
from contextlib import aclosing
from typing import AsyncIterator, List, Optional, Set

from tfdeployer.config.provider import DispatchConfig
from tfdeployer.modules.control import (
    Command,
    CommandNameError,
    CommandOutcome,
    ControlChannelError,
    ControlVolume,
    DispatchTimeout,
    StatusArtifactError,
)
from tfdeployer.modules.framing import LineGroup, stream_line_groups

logger = logging.getLogger("tfdeployer.dispatch")


class CommandRun:
    """
    One dispatched command.

    Iterate it to receive output line groups as the runner produces them;
    ``outcome`` is set once iteration ends. Output can be consumed once.

    Iteration releases the listener and the socket file when it ends. A run
    that may not be iterated should be used as an async context manager:

        async with await dispatcher.dispatch(command) as run:
            ...
    """

    def __init__(
        self,
        command: Command,
        volume: ControlVolume,
        listener: socket.socket,
        status_poll_interval: float,
        accept_timeout: Optional[float] = None,
        status_timeout: Optional[float] = None,
    ):
        self.command = command
        self.volume = volume
        self.status_poll_interval = status_poll_interval
        self.accept_timeout = accept_timeout
        self.status_timeout = status_timeout
        self.outcome: Optional[CommandOutcome] = None
        self._listener = listener
        self._lines: List[str] = []
        self._started = False
        self._closed = False

    @property
    def name(self) -> str:
        return self.command.name

    def __aiter__(self) -> AsyncIterator[LineGroup]:
        return self.line_groups()

    def line_groups(self) -> AsyncIterator[LineGroup]:
        if self._started:
            raise RuntimeError(f"output of command {self.name!r} was already consumed")
        self._started = True
        return self._stream()

    async def __aenter__(self) -> "CommandRun":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    async def wait(self) -> CommandOutcome:
        """Drain all output and return the outcome."""
        async for _ in self.line_groups():
            pass
        return self.outcome

    async def _stream(self) -> AsyncIterator[LineGroup]:
        loop = asyncio.get_running_loop()
        try:
            conn = await self._accept(loop)
            try:
                async def read(size: int) -> bytes:
                    return await loop.sock_recv(conn, size)

                async with aclosing(stream_line_groups(read)) as groups:
                    async for group in groups:
                        self._lines.extend(group.lines)
                        if group.error is not None:
                            # Read errors skip status polling; the error is the outcome
                            self.outcome = CommandOutcome.from_error(self.name, group.error, self._lines)
                            yield group
                            return
                        yield group
            finally:
                conn.close()

            self.outcome = await self._resolve_status(loop)
        finally:
            self.close()

    async def _accept(self, loop: asyncio.AbstractEventLoop) -> socket.socket:
        # No liveness check on the runner: without a deadline a hung runner hangs us too
        try:
            if self.accept_timeout is None:
                conn, _ = await loop.sock_accept(self._listener)
            else:
                conn, _ = await asyncio.wait_for(
                    loop.sock_accept(self._listener), self.accept_timeout
                )
        except asyncio.TimeoutError:
            raise DispatchTimeout(
                f"runner did not connect for {self.name!r} within {self.accept_timeout}s"
            ) from None
        except OSError as e:
            raise ControlChannelError(f"failed to accept connection for {self.name!r}: {e}") from e
        conn.setblocking(False)
        logger.debug(f"Runner connected for {self.name}")
        return conn

    async def _resolve_status(self, loop: asyncio.AbstractEventLoop) -> CommandOutcome:
        deadline = None
        if self.status_timeout is not None:
            deadline = loop.time() + self.status_timeout

        while not self.volume.has_status(self.name):
            if deadline is not None and loop.time() >= deadline:
                error = DispatchTimeout(
                    f"no status for {self.name!r} within {self.status_timeout}s"
                )
                return CommandOutcome.from_error(self.name, error, self._lines)
            await asyncio.sleep(self.status_poll_interval)

        try:
            exit_code = self.volume.read_status(self.name)
        except StatusArtifactError as e:
            logger.error(f"Command {self.name}: {e}")
            return CommandOutcome.from_error(self.name, e, self._lines)

        logger.info(f"Command {self.name} exited with status {exit_code}")
        return CommandOutcome.from_status(self.name, exit_code, self._lines)

    def close(self) -> None:
        """Close the listener and remove its socket file."""
        if self._closed:
            return
        self._closed = True
        self._listener.close()
        self.volume.socket_path(self.name).unlink(missing_ok=True)


class CommandDispatcher:
    def __init__(
        self,
        volume: ControlVolume,
        status_poll_interval: float = 1.0,
        accept_timeout: Optional[float] = None,
        status_timeout: Optional[float] = None,
    ):
        """
        Initialize dispatcher.

        Args:
            volume: Control volume shared with the runner
            status_poll_interval: Seconds between checks for a status artifact
            accept_timeout: Optional deadline for the runner to connect
            status_timeout: Optional deadline for the status artifact to appear
        """
        self.volume = volume
        self.status_poll_interval = status_poll_interval
        self.accept_timeout = accept_timeout
        self.status_timeout = status_timeout
        self._dispatched: Set[str] = set()

    @classmethod
    def from_config(cls, volume: ControlVolume, config: DispatchConfig) -> "CommandDispatcher":
        return cls(
            volume,
            status_poll_interval=config.status_poll_interval,
            accept_timeout=config.accept_timeout,
            status_timeout=config.status_timeout,
        )

    async def dispatch(self, command: Command) -> CommandRun:
        """
        Hand a command to the runner.

        Logic:
        1. Listen on output/<name> so the runner can connect as soon as it sees the command
        2. Publish the descriptor to commands/<name>
        3. Return a CommandRun; accepting and draining happen while iterating it

        Raises:
            CommandNameError: If the name was already used in this run
            ControlChannelError: If the socket or the queue entry cannot be created
        """
        name = command.name
        socket_path = self.volume.socket_path(name)
        if name in self._dispatched or socket_path.exists() or self.volume.has_status(name):
            raise CommandNameError(f"command name {name!r} already used in this run")

        listener = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            listener.bind(str(socket_path))
            listener.listen(1)
            listener.setblocking(False)
        except OSError as e:
            listener.close()
            raise ControlChannelError(f"failed to listen on {socket_path}: {e}") from e
        self._dispatched.add(name)

        try:
            self.volume.enqueue(command)
        except OSError as e:
            listener.close()
            socket_path.unlink(missing_ok=True)
            raise ControlChannelError(f"failed to queue command {name!r}: {e}") from e

        logger.debug(f"Queued command {name}")
        return CommandRun(
            command,
            self.volume,
            listener,
            status_poll_interval=self.status_poll_interval,
            accept_timeout=self.accept_timeout,
            status_timeout=self.status_timeout,
        )

    async def run(self, command: Command) -> CommandOutcome:
        """Dispatch a command and wait for its outcome, collecting output."""
        command_run = await self.dispatch(command)
        return await command_run.wait()
