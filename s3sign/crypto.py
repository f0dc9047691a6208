"""SHA-256 and HMAC-SHA256 helpers used by the signer.

HMAC objects keyed by a string are expensive enough to prepare that the signer
reuses them through a ``KeyCache``. The cache is bounded and evicts the least
recently used key once it is full; byte keys (the intermediate signing keys)
are never cached.
"""

import hashlib
import hmac
import threading
from collections import OrderedDict
from typing import Optional, Union

DEFAULT_CACHE_SIZE = 64

Data = Union[str, bytes]


def _to_bytes(data: Data) -> bytes:
    return data.encode('utf-8') if isinstance(data, str) else data


def sha256_hexdigest(data: Data) -> str:
    """Calculate SHA256 hex digest of data"""
    return hashlib.sha256(_to_bytes(data)).hexdigest()


class KeyCache:
    """LRU cache of prepared HMAC-SHA256 objects, keyed by the raw key string"""

    def __init__(self, maxsize: int = DEFAULT_CACHE_SIZE):
        if maxsize < 1:
            raise ValueError('maxsize must be at least 1')
        self.maxsize = maxsize
        self._entries: 'OrderedDict[str, hmac.HMAC]' = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str) -> hmac.HMAC:
        """Return a fresh copy of the prepared HMAC for key"""
        with self._lock:
            prepared = self._entries.get(key)
            if prepared is None:
                prepared = hmac.new(key.encode('utf-8'), digestmod=hashlib.sha256)
                self._entries[key] = prepared
                if len(self._entries) > self.maxsize:
                    self._entries.popitem(last=False)
            else:
                self._entries.move_to_end(key)
            return prepared.copy()

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


def hmac_sha256(key: Data, msg: Data, cache: Optional[KeyCache] = None) -> bytes:
    """Calculate HMAC-SHA256"""
    if isinstance(key, str) and cache is not None:
        mac = cache.get(key)
        mac.update(_to_bytes(msg))
        return mac.digest()
    return hmac.new(_to_bytes(key), _to_bytes(msg), hashlib.sha256).digest()


def hmac_sha256_hex(key: Data, msg: Data, cache: Optional[KeyCache] = None) -> str:
    """Calculate HMAC-SHA256 as a hex string"""
    return hmac_sha256(key, msg, cache).hex()
