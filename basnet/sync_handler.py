"""Blocking TCP client handler with a per-operation timeout."""

from __future__ import annotations

import errno
import os
import socket
import threading
import time
from contextlib import contextmanager
from typing import Callable, Iterator, TypeVar

_T = TypeVar("_T")

Endpoint = tuple

_EOF_MESSAGE = "end of file"


class SyncHandlerError(OSError):
    """Error reported by a SyncHandler operation.

    ``errno`` is None when the peer closed the connection (end of file).
    ``bytes_transferred`` is the number of bytes moved before the failure.
    """

    def __init__(self, code: int | None, message: str | None = None, bytes_transferred: int = 0) -> None:
        if message is None:
            message = _EOF_MESSAGE if code is None else os.strerror(code)
        super().__init__(code, message)
        self.bytes_transferred = bytes_transferred

    @property
    def is_eof(self) -> bool:
        """True when the error means the peer closed the connection."""
        return self.errno is None


def _as_error(exc: BaseException, transferred: int = 0) -> SyncHandlerError:
    if isinstance(exc, SyncHandlerError):
        return exc
    if isinstance(exc, TimeoutError):
        return SyncHandlerError(errno.ETIMEDOUT, bytes_transferred=transferred)
    if isinstance(exc, OSError) and exc.errno is not None:
        return SyncHandlerError(exc.errno, exc.strerror or None, transferred)
    return SyncHandlerError(errno.EIO, str(exc) or None, transferred)


def _recv_exact(sock: socket.socket, length: int, timeout: float) -> bytes:
    deadline = time.monotonic() + timeout
    received = bytearray()
    while len(received) < length:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise SyncHandlerError(errno.ETIMEDOUT, bytes_transferred=len(received))
        sock.settimeout(remaining)
        try:
            chunk = sock.recv(length - len(received))
        except OSError as exc:
            raise _as_error(exc, len(received)) from exc
        if not chunk:
            raise SyncHandlerError(None, bytes_transferred=len(received))
        received += chunk
    return bytes(received)


def _recv_some(sock: socket.socket, size: int, timeout: float) -> bytes:
    sock.settimeout(timeout)
    data = sock.recv(size)
    if not data:
        raise SyncHandlerError(None)
    return data


class SyncHandler:
    """A TCP connection whose reads and writes block with a timeout.

    Only one operation may run at a time; a second concurrent one fails
    with EALREADY. ``close`` may be called from any thread and aborts a
    running operation with ESHUTDOWN.
    """

    def __init__(
        self,
        peer_endpoint: Endpoint | None = None,
        local_endpoint: Endpoint | None = None,
        buffer_size: int = 8192,
        timeout_milliseconds: int = 30000,
    ) -> None:
        if timeout_milliseconds <= 0:
            raise ValueError("timeout_milliseconds must be positive")
        if buffer_size < 0:
            raise ValueError("buffer_size must not be negative")
        self._peer_endpoint = peer_endpoint
        self._local_endpoint = local_endpoint
        self._buffer_size = buffer_size
        self._buffer = bytearray()
        self._timeout = timeout_milliseconds / 1000.0
        self._socket: socket.socket | None = None
        self._error: SyncHandlerError | None = SyncHandlerError(errno.ESHUTDOWN)
        self._operation_lock = threading.Lock()
        self._state_lock = threading.RLock()
        self._generation = 0

    def __enter__(self) -> "SyncHandler":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def buffer(self) -> bytearray:
        """The internal buffer for outgoing and incoming data."""
        return self._buffer

    @property
    def buffer_size(self) -> int:
        """Capacity of the internal buffer."""
        return self._buffer_size

    @property
    def space(self) -> int:
        """Room left in the internal buffer."""
        return max(0, self._buffer_size - len(self._buffer))

    @property
    def peer_endpoint(self) -> Endpoint | None:
        return self._peer_endpoint

    @property
    def local_endpoint(self) -> Endpoint | None:
        return self._local_endpoint

    @property
    def is_open(self) -> bool:
        return self._socket is not None

    def close(self) -> None:
        """Close the connection, aborting any running operation."""
        with self._state_lock:
            self._generation += 1
            self._error = SyncHandlerError(errno.ESHUTDOWN)
            self._close_socket()

    def error_code(self) -> SyncHandlerError | None:
        """The error of the last operation, or None if it succeeded."""
        if self._operation_lock.locked():
            return SyncHandlerError(errno.EALREADY)
        with self._state_lock:
            return self._error

    def connect(
        self,
        peer_endpoint: Endpoint | None = None,
        local_endpoint: Endpoint | None = None,
        reconnect: bool = False,
    ) -> None:
        """Connect to the peer, binding to the local endpoint if one is given."""
        with self._operation():
            with self._state_lock:
                if self._socket is not None and self._error is None and not reconnect:
                    return
                peer = peer_endpoint if peer_endpoint is not None else self._peer_endpoint
                local = local_endpoint if local_endpoint is not None else self._local_endpoint
                if peer is None:
                    raise SyncHandlerError(errno.EINVAL)
                self._close_socket()
                generation = self._generation
                self._error = None
            try:
                sock = socket.create_connection(peer, timeout=self._timeout, source_address=local)
            except OSError as exc:
                err = self._settle(exc, generation)
                raise err from exc
            with self._state_lock:
                if generation != self._generation:
                    sock.close()
                    raise SyncHandlerError(errno.ESHUTDOWN)
                self._socket = sock

    def read_some(self, size: int | None = None) -> bytes:
        """Read at least one byte, at most ``size``, into the buffer."""
        space = self.space
        if size is None:
            size = space
        if space == 0 or size <= 0 or size > space:
            raise SyncHandlerError(errno.EINVAL)

        def action(sock: socket.socket) -> bytes:
            data = _recv_some(sock, size, self._timeout)
            self._buffer += data
            return data

        return self._run(action)

    def read(self, length: int | None = None) -> bytes:
        """Read exactly ``length`` bytes (default: the free space) into the buffer."""
        space = self.space
        if length is None:
            length = space
        if length <= 0 or length > space:
            raise SyncHandlerError(errno.EINVAL)

        def action(sock: socket.socket) -> bytes:
            data = _recv_exact(sock, length, self._timeout)
            self._buffer += data
            return data

        return self._run(action)

    def write(self, data: bytes | bytearray | memoryview | None = None) -> int:
        """Write all of ``data`` (default: the buffer); return the byte count."""
        payload = bytes(self._buffer if data is None else data)
        if not payload:
            raise SyncHandlerError(errno.EINVAL)

        def action(sock: socket.socket) -> int:
            sock.settimeout(self._timeout)
            sock.sendall(payload)
            return len(payload)

        return self._run(action)

    def write_read(self) -> bytes:
        """Write the buffer, then read a reply into the emptied buffer."""
        if not self._buffer:
            raise SyncHandlerError(errno.EINVAL)

        def action(sock: socket.socket) -> bytes:
            sock.settimeout(self._timeout)
            sock.sendall(bytes(self._buffer))
            self._buffer.clear()
            if self.space == 0:
                raise SyncHandlerError(errno.ECANCELED)
            data = _recv_some(sock, self.space, self._timeout)
            self._buffer += data
            return data

        return self._run(action)

    @contextmanager
    def _operation(self) -> Iterator[None]:
        if not self._operation_lock.acquire(blocking=False):
            raise SyncHandlerError(errno.EALREADY)
        try:
            yield
        finally:
            self._operation_lock.release()

    def _run(self, action: Callable[[socket.socket], _T]) -> _T:
        with self._operation():
            with self._state_lock:
                sock = self._socket
                if sock is None:
                    raise self._error or SyncHandlerError(errno.ESHUTDOWN)
                generation = self._generation
                self._error = None
            try:
                result = action(sock)
            except OSError as exc:
                err = self._settle(exc, generation)
                raise err from exc
            with self._state_lock:
                if generation != self._generation:
                    raise SyncHandlerError(errno.ESHUTDOWN)
            return result

    def _settle(self, exc: OSError, generation: int) -> SyncHandlerError:
        err = _as_error(exc)
        with self._state_lock:
            if generation != self._generation:
                return SyncHandlerError(errno.ESHUTDOWN, bytes_transferred=err.bytes_transferred)
            self._close_socket()
            self._error = err
        return err

    def _close_socket(self) -> None:
        sock, self._socket = self._socket, None
        if sock is None:
            return
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        sock.close()