"""TCP implementations of the `Connection` and `Listener` protocols.

Wire format of a frame::

    [8 bytes: payload length (big-endian uint64)][N bytes: payload]
"""

from __future__ import annotations

import logging
import socket
import struct

from rpc_stub_generator.runtime import LENGTH_PREFIX_SIZE, ConnectionRefused

logger = logging.getLogger(__name__)

_LENGTH_PREFIX = struct.Struct("!Q")
assert _LENGTH_PREFIX.size == LENGTH_PREFIX_SIZE


class SocketConnection:
    """A framed connection on top of a connected stream socket."""

    def __init__(self, sock: socket.socket):
        self._socket = sock

    @classmethod
    def connect(cls, host: str, port: int) -> SocketConnection:
        """Open a TCP connection.

        Raises:
            ConnectionRefused: If the connection cannot be established.
        """
        try:
            sock = socket.create_connection((host, port))

        except OSError as e:
            raise ConnectionRefused(host, port) from e

        return cls(sock)

    def write_framed(self, data: bytes) -> bool:
        try:
            self._socket.sendall(_LENGTH_PREFIX.pack(len(data)) + data)

        except OSError as e:
            logger.debug(f"Failed to write frame of {len(data)} bytes: {e}")
            return False

        return True

    def read_framed(self) -> bytes | None:
        prefix = self._read_exactly(LENGTH_PREFIX_SIZE)
        if prefix is None:
            return None

        (length,) = _LENGTH_PREFIX.unpack(prefix)
        return self._read_exactly(length)

    def _read_exactly(self, size: int) -> bytes | None:
        """Read exactly `size` bytes, or None if the stream ends or fails first."""
        chunks: list[bytes] = []
        remaining = size

        while remaining > 0:
            try:
                chunk = self._socket.recv(min(remaining, 65536))

            except OSError as e:
                logger.debug(f"Failed to read from socket: {e}")
                return None

            if not chunk:
                return None

            chunks.append(chunk)
            remaining -= len(chunk)

        return b"".join(chunks)

    def close(self) -> None:
        try:
            self._socket.shutdown(socket.SHUT_RDWR)

        except OSError:
            # Already disconnected by the peer.
            pass

        self._socket.close()

    def __enter__(self) -> SocketConnection:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class SocketListener:
    """A TCP listener that hands out `SocketConnection`s."""

    def __init__(self, host: str = "127.0.0.1", port: int = 0, backlog: int = 128):
        self._socket = socket.create_server((host, port), backlog=backlog)

    @property
    def address(self) -> tuple[str, int]:
        """The bound host and port. Useful when listening on port 0."""
        host, port = self._socket.getsockname()[:2]
        return host, port

    def accept(self) -> SocketConnection:
        """Block until a client connects.

        Raises:
            OSError: If the listener was closed.
        """
        sock, _ = self._socket.accept()
        return SocketConnection(sock)

    def close(self) -> None:
        """Close the listener. A thread blocked in `accept` gets an `OSError`."""
        try:
            self._socket.shutdown(socket.SHUT_RDWR)

        except OSError:
            pass

        self._socket.close()
