import logging
from dataclasses import dataclass, field
from typing import AsyncIterator, Awaitable, Callable, List, Optional

from tfdeployer.modules.control.errors import ControlChannelError

logger = logging.getLogger("tfdeployer.framing")

READ_SIZE = 5 * 1024


@dataclass
class LineGroup:
    """Complete lines recovered from one read, or an error that ended the stream."""

    lines: List[str] = field(default_factory=list)
    error: Optional[Exception] = None


class LineFramer:
    """
    Split a byte stream into lines across arbitrary read boundaries.

    Bytes after the last newline of a read are carried over and prefixed to
    the next read. A framer holds state for one stream only.
    """

    def __init__(self, encoding: str = "utf-8"):
        self.encoding = encoding
        self._remainder = b""
        self._finished = False

    def feed(self, data: bytes) -> LineGroup:
        """Consume one read and return every line it completed (possibly none)."""
        if self._finished:
            raise RuntimeError("framer already finished")
        data = self._remainder + data
        *complete, self._remainder = data.split(b"\n")
        return LineGroup(lines=[self._decode(line) for line in complete])

    def finish(self) -> Optional[LineGroup]:
        """Flush an unterminated trailing fragment as a final line."""
        self._finished = True
        remainder, self._remainder = self._remainder, b""
        if remainder:
            return LineGroup(lines=[self._decode(remainder)])
        return None

    @property
    def pending(self) -> bytes:
        return self._remainder

    def _decode(self, line: bytes) -> str:
        return line.decode(self.encoding, errors="replace")


async def stream_line_groups(
    read: Callable[[int], Awaitable[bytes]], read_size: int = READ_SIZE
) -> AsyncIterator[LineGroup]:
    """
    Drive a LineFramer from an async read function.

    Args:
        read: Coroutine function returning up to ``n`` bytes, ``b""`` at end of stream
        read_size: Bytes requested per read

    Yields:
        One LineGroup per read, then the trailing fragment at end of stream.
        A read error yields a final LineGroup carrying the error instead.
    """
    framer = LineFramer()
    while True:
        try:
            data = await read(read_size)
        except OSError as e:
            logger.error(f"Read error on output stream: {e}")
            yield LineGroup(error=ControlChannelError(f"read error: {e}"))
            return
        if not data:
            break
        yield framer.feed(data)

    last = framer.finish()
    if last is not None:
        yield last
