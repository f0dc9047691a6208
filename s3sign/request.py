"""Logical requests as built by callers, before signing."""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Union

from .canonical import QueryValue
from .hosts import DEFAULT_REGION
from .stopper import Stopper

ProgressCallback = Callable[[int, int], None]
Body = Union[bytes, str, Dict[str, Any], None]


@dataclass
class Callbacks:
    """
    Optional hooks for one logical request.

    Every slot is optional and is only invoked when set. Progress hooks receive
    ``(loaded, total)`` byte counts, with total 0 when unknown; the completion
    hook receives the final ``Response`` exactly once.
    """
    upload_progress: Optional[ProgressCallback] = None
    download_progress: Optional[ProgressCallback] = None
    complete: Optional[Callable[[Any], None]] = None


@dataclass
class Request:
    """One S3 call: consumed once by Client.call and not reused"""
    method: str = 'GET'
    bucket: Optional[str] = None
    key: Optional[str] = None
    endpoint: str = ''
    query: Dict[str, QueryValue] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)
    body: Body = None
    region: str = DEFAULT_REGION
    retry_count: int = 0
    stopper: Optional[Stopper] = None
    callbacks: Callbacks = field(default_factory=Callbacks)
