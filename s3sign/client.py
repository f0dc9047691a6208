"""High-level client: logical request in, Response out."""

import datetime
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import replace
from typing import Callable, Optional

from . import headers as hdr
from .config import Configuration
from .crypto import KeyCache
from .network import DEFAULT_TIMEOUT, Network, Timeout
from .request import Request
from .response import Response
from .signer import DEFAULT_EXPIRES, SignedRequest, presign, sign
from .transport import TransportManager
from .xmlconv import to_xml

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 10


class Client:
    """
    S3 client bound to one configuration.

    The client owns its HTTP session, the registry of live requests, the HMAC
    key cache and a worker pool for submit(). Call close() (or use it as a
    context manager) when done.
    """

    def __init__(
        self,
        config: Configuration,
        timeout: Timeout = DEFAULT_TIMEOUT,
        is_offline: Optional[Callable[[], Optional[bool]]] = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
        manager: Optional[TransportManager] = None,
        clock: Optional[Callable[[], datetime.datetime]] = None
    ):
        self._config = config
        self.network = Network(manager or TransportManager(), timeout=timeout, is_offline=is_offline)
        self.key_cache = KeyCache()
        self.clock = clock
        self._max_workers = max_workers
        self._executor: Optional[ThreadPoolExecutor] = None
        self._lock = threading.Lock()

    def __enter__(self) -> 'Client':
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def config(self) -> Configuration:
        return self._config

    def configure(self, config: Configuration) -> None:
        """Replace the configuration; requests already started keep the old one"""
        self._config = config

    def _now(self) -> Optional[datetime.datetime]:
        return self.clock() if self.clock is not None else None

    def _prepare(self, method: str, request: Request) -> Request:
        body = request.body
        if isinstance(body, dict):
            body = to_xml(body)
        for name in request.headers:
            if not hdr.is_known(name) and not hdr.is_signed(name):
                logger.debug(f"Passing through unrecognized header {name!r}")
        return replace(request, method=method.upper(), body=body)

    def sign(self, request: Request, config: Optional[Configuration] = None) -> SignedRequest:
        return sign(config or self._config, request, now=self._now(), key_cache=self.key_cache)

    def call(self, method: str, request: Optional[Request] = None) -> Response:
        config = self._config
        request = self._prepare(method, request or Request())
        return self.network.execute(
            lambda: self.sign(request, config),
            stopper=request.stopper,
            callbacks=request.callbacks
        )

    def get(self, request: Optional[Request] = None) -> Response:
        return self.call('GET', request)

    def head(self, request: Optional[Request] = None) -> Response:
        return self.call('HEAD', request)

    def post(self, request: Optional[Request] = None) -> Response:
        return self.call('POST', request)

    def put(self, request: Optional[Request] = None) -> Response:
        return self.call('PUT', request)

    def delete(self, request: Optional[Request] = None) -> Response:
        return self.call('DELETE', request)

    def submit(self, method: str, request: Optional[Request] = None) -> 'Future[Response]':
        """Run call() on the client's worker pool"""
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=self._max_workers)
            executor = self._executor
        return executor.submit(self.call, method, request)

    def presign(self, request: Optional[Request] = None, expires_in: int = DEFAULT_EXPIRES) -> str:
        """Return a presigned GET (or request.method) URL; nothing is sent"""
        request = request or Request()
        return presign(self._config, request, expires_in=expires_in, now=self._now(),
                       key_cache=self.key_cache)

    def stop_all(self) -> int:
        """Abort every request this client has in flight"""
        return self.network.stop()

    def close(self) -> None:
        with self._lock:
            executor, self._executor = self._executor, None
        self.network.stop()
        if executor is not None:
            executor.shutdown(wait=True)
        self.network.close()
