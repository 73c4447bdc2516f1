"""
Hyprland event socket watcher.

Responsibility:
    This module reads the Hyprland event stream, parses each ``name>>payload``
    record and asks the :class:`~hyprwatch.client.ControlClient` to re-query the
    watched state whenever a record's name is in the active mode's trigger set.

Design:
    - **Blocking, single-threaded**: one ``recv`` at a time, followed by zero or
      more synchronous control queries. The loop never reads ahead while a
      query is pending.
    - **No coalescing**: every trigger record produces its own query and its
      own output line, in the order the records arrived.
    - **Fail fast**: connection errors, read errors and undecodable bytes are
      raised to the caller. Nothing is retried.

Key Invariants:
    - The event socket is opened once and held until :meth:`EventWatcher.run` returns.
    - The watcher never writes to the event socket.
"""

from __future__ import annotations

import codecs
import logging
import socket
import time
from typing import Any, Dict, List, NamedTuple, Optional, TYPE_CHECKING

from hyprwatch.client import DEFAULT_BUFFER_SIZE, Connector, connect_unix
from hyprwatch.errors import ChannelIOError, EndpointUnreachableError, ProtocolDecodeError
from hyprwatch.modes import WatchMode

if TYPE_CHECKING:
    from hyprwatch.client import ControlClient

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

__all__ = ["EventRecord", "EventWatcher", "parse_event", "split_records"]

EVENT_DELIMITER = ">>"


class EventRecord(NamedTuple):
    """One event line, split on the first delimiter."""

    name: str
    payload: str


def parse_event(line: str) -> Optional[EventRecord]:
    """Split an event line into its name and payload.

    Only the first ``>>`` separates name from payload; later occurrences are
    part of the payload.

    Args:
        line (str): A single event line without its newline.

    Returns:
        Optional[EventRecord]: The record, or None if the line has no delimiter.

    Example:
        >>> parse_event("activewindow>>kitty,a>>b")
        EventRecord(name='activewindow', payload='kitty,a>>b')
        >>> parse_event("garbage") is None
        True
    """
    name, sep, payload = line.partition(EVENT_DELIMITER)
    if not sep:
        return None
    return EventRecord(name, payload)


def split_records(text: str) -> List[str]:
    """Split a decoded chunk into lines, dropping a trailing carriage return on each."""
    return [line[:-1] if line.endswith("\r") else line for line in text.split("\n")]


class EventWatcher:
    """Watch the Hyprland event socket and re-query state on relevant events.

    Attributes:
        path (str): Event socket path.
        mode (WatchMode): Active watch mode.
        client (ControlClient): Client used to re-query and print state.
        buffer_size (int): Size of each read from the event socket.
        chunks_read (int): Number of non-empty reads.
        records_seen (int): Number of lines carrying the event delimiter.
        triggers_matched (int): Number of records that caused a query.
    """

    def __init__(
        self,
        path: str,
        mode: WatchMode,
        client: ControlClient,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        connect: Optional[Connector] = None,
    ) -> None:
        if buffer_size < 1:
            raise ValueError(f"buffer_size must be positive, got {buffer_size}")
        self.path = str(path)
        self.mode = mode
        self.client = client
        self.buffer_size = buffer_size
        self._connect = connect or connect_unix
        self._sock: Optional[socket.socket] = None
        self._stopping = False
        # Tolerates a multi-byte character split across two reads; invalid bytes still raise.
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="strict")

        self.chunks_read = 0
        self.records_seen = 0
        self.triggers_matched = 0
        self.start_time = time.monotonic()

    def run(self) -> None:
        """Connect to the event socket and process events until it closes.

        Returns normally when the server closes the connection or :meth:`stop`
        is called.

        Raises:
            EndpointUnreachableError: If the event socket cannot be connected to.
            ChannelIOError: If a read fails.
            ProtocolDecodeError: If a chunk is not valid UTF-8.
            HyprwatchError: Any error raised by the control client.
        """
        try:
            sock = self._connect(self.path)
        except OSError as e:
            raise EndpointUnreachableError(self.path, e) from e

        self._sock = sock
        logger.info(f"Listening for {self.mode} events on {self.path}")
        try:
            with sock:
                while not self._stopping:
                    try:
                        data = sock.recv(self.buffer_size)
                    except OSError as e:
                        if self._stopping:
                            break
                        raise ChannelIOError(self.path, e) from e

                    if not data:
                        if not self._stopping:
                            logger.info(f"Event socket closed: {self.path}")
                            # A multi-byte sequence cut off by the close is still undecodable.
                            try:
                                self._decoder.decode(b"", final=True)
                            except UnicodeDecodeError as e:
                                raise ProtocolDecodeError(self.path, e) from e
                        break

                    self.chunks_read += 1
                    try:
                        text = self._decoder.decode(data)
                    except UnicodeDecodeError as e:
                        raise ProtocolDecodeError(self.path, e) from e

                    self.handle_chunk(text)
        finally:
            self._sock = None

    def handle_chunk(self, text: str) -> int:
        """Process every event line in a decoded chunk.

        Each line whose event name is a trigger for the active mode causes one
        synchronous query, in line order.

        Args:
            text (str): Decoded chunk, possibly holding several lines.

        Returns:
            int: Number of queries issued.
        """
        issued = 0
        for line in split_records(text):
            record = parse_event(line)
            if record is None:
                continue
            self.records_seen += 1
            if not self.mode.is_trigger(record.name):
                continue
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(f"Trigger event '{record.name}' (payload: {record.payload!r})")
            self.triggers_matched += 1
            self.client.query(self.mode.query)
            issued += 1
        return issued

    def stop(self) -> None:
        """Ask the read loop to finish.

        Safe to call from a signal handler: the socket is shut down so that a
        blocked read returns and :meth:`run` exits normally.
        """
        self._stopping = True
        sock = self._sock
        if sock is not None:
            try:
                sock.shutdown(socket.SHUT_RDWR)
            except OSError as e:
                logger.debug(f"Event socket shutdown failed: {e}")

    def get_statistics(self) -> Dict[str, Any]:
        """Return counters describing the watcher's activity so far."""
        return {
            "chunks_read": self.chunks_read,
            "records_seen": self.records_seen,
            "triggers_matched": self.triggers_matched,
            "queries_sent": self.client.queries_sent,
            "bytes_received": self.client.bytes_received,
            "uptime": time.monotonic() - self.start_time,
        }

    def __repr__(self) -> str:
        return f"<EventWatcher path={self.path} mode={self.mode}>"
