"""
Execution engine: transmits signed requests and classifies the outcome.

Each logical request runs through an explicit state machine:

    IDLE -> SIGNING -> CANCELLED | OFFLINE | TRANSMITTING
    TRANSMITTING -> RETRYING -> TRANSMITTING          (timeouts only)
    TRANSMITTING -> SUCCESS | ERROR | CANCELLED
    CANCELLED | OFFLINE | SUCCESS | ERROR -> TERMINAL

Every run produces exactly one Response. Network failures become
Response.error values; only signing failures raise.
"""

import logging
import time
from enum import Enum, auto
from typing import Callable, Dict, FrozenSet, List, Optional, Union

import requests
import urllib3

from .request import Callbacks
from .response import ErrorString, Response
from .signer import SignedRequest
from .stopper import Stopper
from .transport import ProgressReader, Transmission, TransportManager
from .utils import timing_decorator

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30
DOWNLOAD_CHUNK_SIZE = 64 * 1024
NON_IDEMPOTENT_METHODS = frozenset(['POST', 'PUT'])

Timeout = Union[None, float, tuple]


class State(Enum):
    IDLE = auto()
    SIGNING = auto()
    CANCELLED = auto()
    OFFLINE = auto()
    TRANSMITTING = auto()
    RETRYING = auto()
    SUCCESS = auto()
    ERROR = auto()
    TERMINAL = auto()

    @property
    def is_outcome(self) -> bool:
        return self in (State.CANCELLED, State.OFFLINE, State.SUCCESS, State.ERROR)


TRANSITIONS: Dict[State, FrozenSet[State]] = {
    State.IDLE: frozenset([State.SIGNING]),
    State.SIGNING: frozenset([State.CANCELLED, State.OFFLINE, State.TRANSMITTING]),
    State.TRANSMITTING: frozenset([State.RETRYING, State.SUCCESS, State.ERROR, State.CANCELLED]),
    State.RETRYING: frozenset([State.TRANSMITTING]),
    State.CANCELLED: frozenset([State.TERMINAL]),
    State.OFFLINE: frozenset([State.TERMINAL]),
    State.SUCCESS: frozenset([State.TERMINAL]),
    State.ERROR: frozenset([State.TERMINAL]),
    State.TERMINAL: frozenset(),
}


class InvalidTransition(RuntimeError):
    pass


def effective_retry_budget(method: str, retry_count: int) -> int:
    """POST and PUT are never retried"""
    if method.upper() in NON_IDEMPOTENT_METHODS:
        return 0
    return max(int(retry_count or 0), 0)


class _TimedOut:
    pass


_TIMED_OUT = _TimedOut()


class Execution:
    """State machine for a single logical request"""

    def __init__(
        self,
        manager: TransportManager,
        signer: Callable[[], SignedRequest],
        stopper: Optional[Stopper] = None,
        callbacks: Optional[Callbacks] = None,
        timeout: Timeout = DEFAULT_TIMEOUT,
        is_offline: Optional[Callable[[], Optional[bool]]] = None
    ):
        self.manager = manager
        self.signer = signer
        self.stopper = stopper
        self.callbacks = callbacks or Callbacks()
        self.timeout = timeout
        self.is_offline = is_offline
        self.state = State.IDLE
        self.history: List[State] = [State.IDLE]
        self.attempts = 0
        self.signed: Optional[SignedRequest] = None

    def _to(self, state: State) -> None:
        if state not in TRANSITIONS[self.state]:
            raise InvalidTransition(f"{self.state.name} -> {state.name}")
        logger.debug(f"{self.state.name} -> {state.name}")
        self.state = state
        self.history.append(state)

    def run(self) -> Response:
        self._to(State.SIGNING)
        self.signed = self.signer()
        response = self._dispatch(self.signed)
        response.request = self.signed
        self._to(State.TERMINAL)
        if self.callbacks.complete is not None:
            self.callbacks.complete(response)
        return response

    def _cancelled(self, url: str) -> Response:
        self._to(State.CANCELLED)
        logger.info(f"Request to {url} was cancelled")
        return Response.from_error(ErrorString.TERMINATED, url)

    def _dispatch(self, signed: SignedRequest) -> Response:
        # Signing may have blocked; a stop requested meanwhile must win.
        if self.stopper is not None and self.stopper.stopped:
            return self._cancelled(signed.url)

        if self.is_offline is not None and self.is_offline() is True:
            self._to(State.OFFLINE)
            logger.warning(f"Not sending {signed.method} {signed.url}: network is offline")
            return Response.from_error(ErrorString.OFFLINE, signed.url)

        budget = effective_retry_budget(signed.method, signed.retry_count)
        self._to(State.TRANSMITTING)
        while True:
            outcome = self._attempt(signed)
            if outcome is not _TIMED_OUT:
                return outcome
            if budget == 0:
                self._to(State.ERROR)
                logger.warning(f"{signed.method} {signed.url} timed out")
                return Response.from_error(ErrorString.TIMEOUT, signed.url)
            budget -= 1
            self._to(State.RETRYING)
            logger.info(f"Retrying {signed.method} {signed.url} after timeout ({budget} retries left)")
            self._to(State.TRANSMITTING)

    def _prepare(self, signed: SignedRequest, handle: Transmission) -> requests.PreparedRequest:
        body = None
        if signed.body:
            body = ProgressReader(signed.body, self.callbacks.upload_progress, handle)
        req = requests.Request(method=signed.method, url=signed.url,
                               headers=dict(signed.headers), data=body)
        return req.prepare()

    def _read_body(self, resp: requests.Response, handle: Transmission) -> Optional[bytes]:
        """Read the streamed body, reporting progress; None when aborted"""
        try:
            total = int(resp.headers.get('content-length') or 0)
        except ValueError:
            total = 0
        progress = self.callbacks.download_progress
        loaded = 0
        chunks = []
        for chunk in resp.raw.stream(DOWNLOAD_CHUNK_SIZE, decode_content=True):
            if handle.aborted:
                return None
            chunks.append(chunk)
            loaded += len(chunk)
            total = max(total, loaded)
            if progress is not None:
                progress(loaded, total)
            if handle.aborted:
                return None
        if handle.aborted:
            return None
        return b''.join(chunks)

    def _attempt(self, signed: SignedRequest) -> Union[Response, _TimedOut]:
        self.attempts += 1
        with self.manager.transmission(self.stopper) as handle:
            if handle.aborted:
                return self._cancelled(signed.url)
            start_time = time.time()
            try:
                resp = self.manager.session.send(
                    self._prepare(signed, handle),
                    stream=True,
                    timeout=self.timeout,
                    allow_redirects=False
                )
                handle.attach(resp)
                try:
                    content = self._read_body(resp, handle)
                finally:
                    resp.close()
                    handle.unbind()
            except (requests.Timeout, urllib3.exceptions.TimeoutError) as e:
                if handle.aborted:
                    return self._cancelled(signed.url)
                logger.debug(f"Attempt {self.attempts} timed out: {e}")
                return _TIMED_OUT
            except (requests.RequestException, urllib3.exceptions.HTTPError, OSError) as e:
                if handle.aborted:
                    return self._cancelled(signed.url)
                self._to(State.ERROR)
                logger.warning(f"{signed.method} {signed.url} failed: {e}")
                return Response.from_error(ErrorString.NO_RESPONSE, signed.url)
            except Exception:
                # reading from a connection closed under us
                if not handle.aborted:
                    raise
                return self._cancelled(signed.url)

            if content is None:
                return self._cancelled(signed.url)

            self._to(State.SUCCESS)
            logger.debug(f"{signed.method} {signed.url} -> {resp.status_code}")
            return Response(
                status=resp.status_code,
                headers=resp.headers,
                content=content,
                elapsed=time.time() - start_time,
                url=signed.url
            )


class Network:
    """Runs logical requests over one TransportManager"""

    def __init__(self, manager: Optional[TransportManager] = None, timeout: Timeout = DEFAULT_TIMEOUT,
                 is_offline: Optional[Callable[[], Optional[bool]]] = None):
        self.manager = manager or TransportManager()
        self.timeout = timeout
        self.is_offline = is_offline

    @timing_decorator
    def execute(self, signer: Callable[[], SignedRequest], stopper: Optional[Stopper] = None,
                callbacks: Optional[Callbacks] = None) -> Response:
        """Sign (via signer), transmit and classify one logical request"""
        execution = Execution(
            self.manager,
            signer,
            stopper=stopper,
            callbacks=callbacks,
            timeout=self.timeout,
            is_offline=self.is_offline
        )
        return execution.run()

    def stop(self) -> int:
        """Abort every request in flight on this network"""
        return self.manager.stop_all()

    def close(self) -> None:
        self.manager.close()
