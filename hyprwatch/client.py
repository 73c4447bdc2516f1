"""Hyprland control socket client."""

from __future__ import annotations

import logging
import socket
import sys
from typing import Callable, Optional, TextIO

from hyprwatch.errors import ChannelIOError, EndpointUnreachableError, ProtocolDecodeError

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

__all__ = ["ControlClient", "connect_unix", "read_response"]

DEFAULT_BUFFER_SIZE = 1024

Connector = Callable[[str], socket.socket]


def connect_unix(path: str) -> socket.socket:
    """Open a stream connection to a Unix domain socket.

    Raises:
        OSError: If the socket does not exist or refuses the connection.
    """
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    try:
        sock.connect(path)
    except OSError:
        sock.close()
        raise
    return sock


def read_response(sock: socket.socket, buffer_size: int = DEFAULT_BUFFER_SIZE) -> bytes:
    """Read one complete control socket response.

    The control protocol has no length prefix or terminator. A response is
    considered complete once a read returns fewer bytes than ``buffer_size``.
    A response whose length is an exact multiple of ``buffer_size`` therefore
    needs one extra read, which blocks until the server closes or sends more.

    Args:
        sock (socket.socket): Connected socket, after the command was sent.
        buffer_size (int): Size of each read.

    Returns:
        bytes: All bytes read, concatenated.

    Raises:
        OSError: If a read fails.
    """
    chunks = []
    while True:
        data = sock.recv(buffer_size)
        chunks.append(data)
        if len(data) < buffer_size:
            break
    return b"".join(chunks)


class ControlClient:
    """Send queries to the Hyprland control socket and print the responses.

    A fresh connection is opened for every query and closed as soon as the
    response has been read. Queries are synchronous, so at most one is ever in
    flight.

    Attributes:
        path (str): Control socket path.
        buffer_size (int): Read buffer size; also the end-of-message threshold.
        output (TextIO): Stream receiving one line per successful query.
        queries_sent (int): Number of completed queries.
        bytes_received (int): Total response bytes read.
    """

    __slots__ = ("path", "buffer_size", "output", "queries_sent", "bytes_received", "_connect")

    def __init__(
        self,
        path: str,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        output: Optional[TextIO] = None,
        connect: Optional[Connector] = None,
    ) -> None:
        if buffer_size < 1:
            raise ValueError(f"buffer_size must be positive, got {buffer_size}")
        self.path = str(path)
        self.buffer_size = buffer_size
        self.output = output
        self.queries_sent = 0
        self.bytes_received = 0
        self._connect = connect or connect_unix

    def request(self, command: str) -> str:
        """Send ``command`` and return the decoded response text.

        Raises:
            EndpointUnreachableError: If the socket cannot be connected to.
            ChannelIOError: If writing the command or reading the response fails.
            ProtocolDecodeError: If the response is not valid UTF-8.
        """
        try:
            sock = self._connect(self.path)
        except OSError as e:
            raise EndpointUnreachableError(self.path, e) from e

        with sock:
            try:
                sock.sendall(command.encode("utf-8"))
                raw = read_response(sock, self.buffer_size)
            except OSError as e:
                raise ChannelIOError(self.path, e) from e

        self.bytes_received += len(raw)
        logger.debug("Query %r returned %d bytes", command, len(raw))

        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ProtocolDecodeError(self.path, e) from e

    def query(self, command: str) -> str:
        """Run ``command`` and write the response to the output as one line.

        Line breaks inside the response are removed so that a pretty-printed
        JSON reply becomes a single line.

        Returns:
            str: The line written, without the trailing newline.
        """
        line = self.request(command).replace("\r", "").replace("\n", "")
        out = self.output if self.output is not None else sys.stdout
        out.write(line + "\n")
        out.flush()
        self.queries_sent += 1
        return line

    def __repr__(self) -> str:
        return f"<ControlClient path={self.path} buffer_size={self.buffer_size}>"
