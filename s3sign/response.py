"""Uniform result of a logical request: a transport result or an error string."""

import json
import logging
import xml.etree.ElementTree as ET
from typing import Any, Dict, Mapping, Optional

from requests.structures import CaseInsensitiveDict

from .xmlconv import from_xml

logger = logging.getLogger(__name__)


class ErrorString:
    """Values of Response.error; NO_ERROR is the empty string"""
    NO_ERROR = ''
    NO_RESPONSE = 'Could not establish a connection to the server.'
    TIMEOUT = 'The network operation timed out.'
    OFFLINE = 'Your network connection is disconnected.'
    UNEXPECTED = 'The server returned unexpected data.'
    TERMINATED = 'The request was terminated by the user.'


class Response:
    """
    Exactly one of two things: a transport result (status, headers, body) or
    a terminal error.

    Check ``error`` before using the other members; it is the empty string
    when the server answered. Any HTTP status, 4xx and 5xx included, counts as
    an answer.
    """

    def __init__(self, status: int = 0, headers: Optional[Mapping[str, str]] = None,
                 content: bytes = b'', error: str = ErrorString.NO_ERROR,
                 elapsed: float = 0.0, url: str = ''):
        self.status = status
        self.headers = CaseInsensitiveDict(headers or {})
        self.content = content
        self.elapsed = elapsed
        self.url = url
        self.request = None
        self._error = error

    @classmethod
    def from_error(cls, error: str, url: str = '') -> 'Response':
        return cls(error=error, url=url)

    @property
    def error(self) -> str:
        return self._error

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def get_header(self, name: str) -> str:
        return self.headers.get(name, '')

    @property
    def text(self) -> str:
        return self.content.decode('utf-8', errors='replace')

    def json(self) -> Optional[Dict[str, Any]]:
        """
        Return the body as a dict.

        XML bodies (text starting with ``<``) are converted to a tree,
        anything else is parsed as JSON. Returns None for an empty body or a
        body that is neither; the latter also sets ``error`` to
        ``ErrorString.UNEXPECTED``.
        """
        text = self.text
        if text == '':
            return None
        try:
            if text.startswith('<'):
                return from_xml(text)
            return json.loads(text)
        except (ET.ParseError, ValueError) as e:
            logger.debug(f"Unable to parse response body: {e}")
            if not self._error:
                self._error = ErrorString.UNEXPECTED
            return None

    def __repr__(self) -> str:
        if self._error:
            return f"<Response error={self._error!r}>"
        return f"<Response [{self.status}]>"
