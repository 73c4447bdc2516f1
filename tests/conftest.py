from __future__ import annotations

import io
import socket
import tempfile
import threading
from pathlib import Path
from typing import Callable, Dict, Generator, Iterable, List, Optional, Union

import pytest

from hyprwatch.client import ControlClient
from hyprwatch.modes import WatchMode

Read = Union[bytes, BaseException]


class FakeSocket:
    """Scripted stand-in for a connected socket.

    Each recv() returns (or raises) the next scripted item; an exhausted
    script reads as a closed connection.
    """

    def __init__(self, reads: Iterable[Read] = ()) -> None:
        self.reads: List[Read] = list(reads)
        self.sent: List[bytes] = []
        self.recv_sizes: List[int] = []
        self.closed = False
        self.shut_down = False

    def sendall(self, data: bytes) -> None:
        self.sent.append(data)

    def recv(self, bufsize: int) -> bytes:
        self.recv_sizes.append(bufsize)
        if not self.reads:
            return b""
        item = self.reads.pop(0)
        if isinstance(item, BaseException):
            raise item
        assert len(item) <= bufsize, "scripted read larger than the buffer"
        return item

    def shutdown(self, how: int) -> None:
        self.shut_down = True

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> FakeSocket:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


class RecordingClient:
    """ControlClient double that records the commands it was asked to run."""

    def __init__(self) -> None:
        self.commands: List[str] = []
        self.queries_sent = 0
        self.bytes_received = 0

    def query(self, command: str) -> str:
        self.commands.append(command)
        self.queries_sent += 1
        return "{}"


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Short temporary directory, so socket paths stay under the AF_UNIX length limit."""
    with tempfile.TemporaryDirectory(prefix="hw") as tmpdirname:
        yield Path(tmpdirname)


@pytest.fixture
def fake_socket_factory() -> Callable[..., Callable[[str], FakeSocket]]:
    """Build a connector that hands out the given FakeSockets in order."""
    def _factory(*sockets: FakeSocket) -> Callable[[str], FakeSocket]:
        pending = list(sockets)
        connected: List[str] = []

        def _connect(path: str) -> FakeSocket:
            connected.append(path)
            return pending.pop(0)

        _connect.paths = connected  # type: ignore[attr-defined]
        return _connect
    return _factory


@pytest.fixture
def recording_client() -> RecordingClient:
    return RecordingClient()


@pytest.fixture
def output() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def control_client(output: io.StringIO) -> Callable[..., ControlClient]:
    def _make(connect: Callable[[str], FakeSocket], buffer_size: int = 1024) -> ControlClient:
        return ControlClient("/tmp/hypr/test/.socket.sock", buffer_size=buffer_size, output=output, connect=connect)
    return _make


class UnixServer:
    """Minimal AF_UNIX server running in a background thread."""

    def __init__(self, path: Path, handler: Callable[[socket.socket], None], connections: int = 1) -> None:
        self.path = str(path)
        self.handler = handler
        self.connections = connections
        self.received: List[bytes] = []
        self._sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        self._sock.bind(self.path)
        self._sock.listen(8)
        self._thread = threading.Thread(target=self._serve, daemon=True)

    def _serve(self) -> None:
        for _ in range(self.connections):
            try:
                conn, _ = self._sock.accept()
            except OSError:
                return
            with conn:
                self.handler(conn)

    def start(self) -> UnixServer:
        self._thread.start()
        return self

    def close(self) -> None:
        self._sock.close()
        self._thread.join(timeout=5.0)


@pytest.fixture
def hypr_sockets(temp_dir: Path) -> Generator[Callable[..., Dict[str, UnixServer]], None, None]:
    """Start fake Hyprland control and event sockets.

    The control socket answers every command with ``responses[command]``; the
    event socket sends ``events`` one chunk at a time and then closes.
    """
    servers: List[UnixServer] = []

    def _start(
        responses: Dict[str, bytes],
        events: Iterable[bytes] = (),
        queries: int = 1,
    ) -> Dict[str, UnixServer]:
        control: Optional[UnixServer] = None

        def _control(conn: socket.socket) -> None:
            command = conn.recv(1024)
            assert control is not None
            control.received.append(command)
            conn.sendall(responses[command.decode("utf-8")])

        def _events(conn: socket.socket) -> None:
            for chunk in events:
                conn.sendall(chunk)

        control = UnixServer(temp_dir / ".socket.sock", _control, connections=queries).start()
        event = UnixServer(temp_dir / ".socket2.sock", _events).start()
        servers.extend([control, event])
        return {"control": control, "event": event}

    yield _start

    for server in servers:
        server.close()


@pytest.fixture
def active_window() -> WatchMode:
    return WatchMode.ACTIVE_WINDOW
