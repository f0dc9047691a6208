"""HTTP session setup and the registry of live transport handles."""

import logging
import socket
import threading
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.connection import HTTPConnection, HTTPSConnection
from urllib3.connectionpool import HTTPConnectionPool, HTTPSConnectionPool
from urllib3.util.retry import Retry

from .stopper import Stopper

logger = logging.getLogger(__name__)

UPLOAD_CHUNK_SIZE = 64 * 1024

# The Transmission live on the current thread, if any
_local = threading.local()


def current_transmission() -> Optional['Transmission']:
    return getattr(_local, 'handle', None)


def _bind_current(conn) -> None:
    handle = current_transmission()
    sock = getattr(conn, 'sock', None)
    if handle is not None and sock is not None:
        handle.bind(sock)


class TrackedHTTPConnection(HTTPConnection):
    def connect(self):
        super().connect()
        _bind_current(self)


class TrackedHTTPSConnection(HTTPSConnection):
    def connect(self):
        super().connect()
        _bind_current(self)


class TrackedHTTPConnectionPool(HTTPConnectionPool):
    ConnectionCls = TrackedHTTPConnection

    def _get_conn(self, timeout=None):
        conn = super()._get_conn(timeout)
        # A reused keep-alive connection is never connected again
        _bind_current(conn)
        return conn


class TrackedHTTPSConnectionPool(HTTPSConnectionPool):
    ConnectionCls = TrackedHTTPSConnection

    def _get_conn(self, timeout=None):
        conn = super()._get_conn(timeout)
        _bind_current(conn)
        return conn


class TrackingHTTPAdapter(HTTPAdapter):
    """HTTPAdapter whose sockets are registered with the live Transmission"""

    def init_poolmanager(self, *args, **kwargs):
        super().init_poolmanager(*args, **kwargs)
        self.poolmanager.pool_classes_by_scheme = {
            'http': TrackedHTTPConnectionPool,
            'https': TrackedHTTPSConnectionPool,
        }


def create_session(pool_connections: int = 10, pool_maxsize: int = 20) -> requests.Session:
    """Create a requests session with connection pooling and no transport-level retries"""
    session = requests.Session()
    # Retries are decided per request by the execution engine.
    retry_strategy = Retry(total=0, read=False, redirect=False, raise_on_status=False)
    adapter = TrackingHTTPAdapter(
        max_retries=retry_strategy,
        pool_connections=pool_connections,
        pool_maxsize=pool_maxsize
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


class TransmissionAborted(OSError):
    """Raised from inside the transport when its handle was aborted"""
    pass


def _shutdown(sock: socket.socket) -> None:
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError as e:
        # already closed by the transport
        logger.debug(f"Socket shutdown failed: {e}")


class Transmission:
    """
    Handle for one live attempt.

    abort() shuts down the bound socket, which unblocks a transport waiting
    on the connection, and closes the response once one is attached.
    """

    def __init__(self):
        self.aborted = False
        self.stopper: Optional[Stopper] = None
        self._response: Optional[requests.Response] = None
        self._sock: Optional[socket.socket] = None
        # abort() may run from a signal handler on the owning thread
        self._lock = threading.RLock()

    def bind(self, sock: socket.socket) -> None:
        with self._lock:
            self._sock = sock
            aborted = self.aborted
        if aborted:
            _shutdown(sock)

    def unbind(self) -> None:
        with self._lock:
            self._sock = None

    def attach(self, response: requests.Response) -> None:
        with self._lock:
            self._response = response
            aborted = self.aborted
        if aborted:
            response.close()

    def abort(self) -> None:
        with self._lock:
            self.aborted = True
            response = self._response
            sock = self._sock
        if sock is not None:
            _shutdown(sock)
        if response is not None:
            response.close()


class ProgressReader:
    """
    File-like request body that reports upload progress as it is read.

    Having a length makes the transport send Content-Length rather than
    chunked encoding.
    """

    def __init__(self, data: bytes, callback: Optional[Callable[[int, int], None]] = None,
                 handle: Optional[Transmission] = None):
        self._data = data
        self._callback = callback
        self._handle = handle
        self._offset = 0

    def __len__(self) -> int:
        return len(self._data)

    def read(self, size: int = -1) -> bytes:
        if self._handle is not None and self._handle.aborted:
            raise TransmissionAborted('Upload aborted')
        if size is None or size < 0:
            size = len(self._data) - self._offset
        size = min(size, UPLOAD_CHUNK_SIZE)
        chunk = self._data[self._offset:self._offset + size]
        self._offset += len(chunk)
        if chunk and self._callback is not None:
            self._callback(self._offset, len(self._data))
        return chunk


class TransportManager:
    """
    Owns the HTTP session and every live transport handle.

    Created together with a client and torn down with close().
    """

    def __init__(self, session: Optional[requests.Session] = None):
        self.session = session or create_session()
        self._active = set()
        self._lock = threading.Lock()

    @property
    def active_count(self) -> int:
        return len(self._active)

    def open(self, stopper: Optional[Stopper] = None) -> Transmission:
        handle = Transmission()
        with self._lock:
            self._active.add(handle)
        if stopper is not None:
            handle.stopper = stopper
            stopper.connect(handle)
        return handle

    def release(self, handle: Transmission) -> None:
        with self._lock:
            self._active.discard(handle)
        if handle.stopper is not None:
            handle.stopper.disconnect(handle)

    @contextmanager
    def transmission(self, stopper: Optional[Stopper] = None) -> Iterator[Transmission]:
        handle = self.open(stopper)
        previous = current_transmission()
        _local.handle = handle
        try:
            yield handle
        finally:
            _local.handle = previous
            handle.unbind()
            self.release(handle)

    def stop_all(self) -> int:
        """Abort every live handle; returns how many were aborted"""
        with self._lock:
            handles = list(self._active)
            self._active.clear()
        for handle in handles:
            handle.abort()
        if handles:
            logger.info(f"Stopped {len(handles)} outstanding request(s)")
        return len(handles)

    def close(self) -> None:
        self.stop_all()
        self.session.close()
