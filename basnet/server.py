"""Multi-threaded TCP server that hands accepted connections to handlers."""

from __future__ import annotations

import logging
import selectors
import socket
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional

ACCEPT_QUEUE_LENGTH = 250
ACCEPT_DELAY_SECONDS = 1.0
DEFAULT_WORKERS = 4

_POLL_INTERVAL = 0.05

logger = logging.getLogger(__name__)

ConnectionHandler = Callable[[socket.socket, tuple], None]
HandlerPool = Callable[[], Optional[ConnectionHandler]]


class Server:
    """Accept TCP connections on an endpoint and serve them on worker threads.

    ``handler_pool`` is called before each accept and returns a handler,
    which is then called as ``handler(conn, address)`` on a worker thread;
    the connection is closed once the handler returns. If the pool returns
    None (too many connections), accepting pauses for ``accept_delay``
    seconds before asking again.
    """

    def __init__(
        self,
        handler_pool: HandlerPool,
        endpoint: tuple,
        workers: int = DEFAULT_WORKERS,
        accept_queue_length: int = ACCEPT_QUEUE_LENGTH,
        accept_delay: float = ACCEPT_DELAY_SECONDS,
    ) -> None:
        if handler_pool is None:
            raise ValueError("handler_pool is required")
        if accept_queue_length <= 0:
            raise ValueError("accept_queue_length must be positive")
        if workers <= 0:
            raise ValueError("workers must be positive")
        if accept_delay < 0:
            raise ValueError("accept_delay must not be negative")
        self._handler_pool = handler_pool
        self._endpoint = tuple(endpoint)
        self._workers = workers
        self._accept_queue_length = accept_queue_length
        self._accept_delay = accept_delay

        self._lock = threading.Lock()
        self._stopping = threading.Event()
        self._listener: socket.socket | None = None
        self._executor: ThreadPoolExecutor | None = None
        self._thread: threading.Thread | None = None
        self._connections: set[socket.socket] = set()
        self._address: tuple | None = None
        self._started = False
        self._block = False
        self._force_stop = False

    def __enter__(self) -> "Server":
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()

    @property
    def started(self) -> bool:
        """Whether the server is running."""
        return self._started

    @property
    def force_stop(self) -> bool:
        """Whether stopping drops running connections instead of waiting."""
        return self._force_stop

    @property
    def address(self) -> tuple | None:
        """The address the server listens on while it runs."""
        return self._address if self._started else None

    def set_force_stop(self, force_stop: bool = False) -> "Server":
        """Choose graceful or forced stop; ignored while the server runs."""
        if not self._started:
            self._force_stop = bool(force_stop)
        return self

    def start(self) -> None:
        """Start serving in the background and return at once."""
        self._start(block=False)

    def run(self) -> None:
        """Serve in the calling thread until ``stop`` is called."""
        self._start(block=True)

    def stop(self) -> None:
        """Stop accepting and shut the workers down."""
        with self._lock:
            if not self._started:
                return
            self._stopping.set()
            if self._block:
                # The blocking run() finishes the shutdown itself.
                return
            thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join()
        self._shutdown_workers()
        with self._lock:
            self._started = False

    def _start(self, block: bool) -> None:
        with self._lock:
            if self._started:
                return
            host = self._endpoint[0]
            family = socket.AF_INET6 if ":" in str(host) else socket.AF_INET
            listener = socket.create_server(
                self._endpoint, family=family, backlog=self._accept_queue_length
            )
            listener.setblocking(False)
            self._listener = listener
            self._address = listener.getsockname()
            stopping = threading.Event()
            self._stopping = stopping
            self._executor = ThreadPoolExecutor(
                max_workers=self._workers, thread_name_prefix="basnet-worker"
            )
            self._block = block
            self._started = True
            if not block:
                self._thread = threading.Thread(
                    target=self._accept_loop,
                    args=(listener, stopping),
                    name="basnet-acceptor",
                    daemon=True,
                )
                self._thread.start()
        if block:
            try:
                self._accept_loop(listener, stopping)
            finally:
                self._shutdown_workers()
                with self._lock:
                    self._started = False

    def _accept_loop(self, listener: socket.socket, stopping: threading.Event) -> None:
        handler: ConnectionHandler | None = None
        try:
            with selectors.DefaultSelector() as selector:
                selector.register(listener, selectors.EVENT_READ)
                while not stopping.is_set():
                    if handler is None:
                        handler = self._handler_pool()
                        if handler is None:
                            stopping.wait(self._accept_delay)
                            continue
                    if not selector.select(timeout=_POLL_INTERVAL):
                        continue
                    try:
                        conn, address = listener.accept()
                    except (BlockingIOError, InterruptedError):
                        continue
                    except OSError:
                        logger.exception("accept failed")
                        break
                    conn.setblocking(True)
                    self._dispatch(handler, conn, address)
                    handler = None
        finally:
            listener.close()
            with self._lock:
                if self._listener is listener:
                    self._listener = None

    def _dispatch(self, handler: ConnectionHandler, conn: socket.socket, address: tuple) -> None:
        with self._lock:
            executor = self._executor
            self._connections.add(conn)
        try:
            if executor is None:
                raise RuntimeError("server is stopping")
            executor.submit(self._serve, handler, conn, address)
        except RuntimeError:
            self._forget(conn)
            conn.close()

    def _serve(self, handler: ConnectionHandler, conn: socket.socket, address: tuple) -> None:
        try:
            with conn:
                handler(conn, address)
        except Exception:
            logger.exception("handler for %s failed", address)
        finally:
            self._forget(conn)

    def _forget(self, conn: socket.socket) -> None:
        with self._lock:
            self._connections.discard(conn)

    def _shutdown_workers(self) -> None:
        with self._lock:
            executor, self._executor = self._executor, None
            force = self._force_stop
            connections = list(self._connections) if force else []
            if force:
                self._connections.clear()
        if executor is None:
            return
        if force:
            executor.shutdown(wait=False, cancel_futures=True)
            for conn in connections:
                try:
                    conn.shutdown(socket.SHUT_RDWR)
                except OSError:
                    pass
                conn.close()
        else:
            executor.shutdown(wait=True)