"""Canonical request construction for SigV4.

The canonical request is the newline-joined string that gets hashed and signed:

    METHOD
    /path
    signable-query-string
    name:value            (one line per signed header, sorted)
    <empty line>
    signed;header;names
    payload-hash
"""

import re
from typing import Dict, Iterable, List, Mapping, NamedTuple, Optional, Union
from urllib.parse import quote

from .errors import SigningError
from .headers import HOST, is_signed

QueryValue = Union[str, int, float, List[Union[str, int, float]], None]
Query = Mapping[str, QueryValue]


class CanonicalRequest(NamedTuple):
    text: str
    signed_headers: str


def uri_encode(path: str) -> str:
    if not path.startswith('/'):
        path = '/' + path
    return quote(path, safe='/~')


def encode_query_value(value: QueryValue) -> str:
    if isinstance(value, (list, tuple)):
        value = ','.join(str(v) for v in value)
    elif value is None:
        value = ''
    return quote(str(value), safe='~')


def signable_query_string(query: Optional[Query], endpoint: str = '') -> str:
    """
    Build the query string exactly as it is signed and sent.

    Keys are left as-is, values are percent-encoded and the resulting
    ``key=value`` tokens are sorted as whole strings. A subresource endpoint
    is written as ``endpoint=`` with the trailing equal sign.
    """
    tokens = []
    if endpoint:
        tokens.append(f"{endpoint}=")
    for key, value in (query or {}).items():
        tokens.append(f"{key}={encode_query_value(value)}")
    tokens.sort()
    return '&'.join(tokens)


def signed_header_names(headers: Mapping[str, str]) -> List[str]:
    """host plus every x-amz* header, lower-cased, deduplicated and sorted"""
    names = {HOST}
    names.update(name.lower() for name in headers if is_signed(name))
    return sorted(names)


def _clean_value(value) -> str:
    return re.sub(r'\s+', ' ', str(value).strip())


def canonical_header_lines(names: Iterable[str], headers: Mapping[str, str]) -> str:
    lowered: Dict[str, str] = {k.lower(): v for k, v in headers.items()}
    lines = [f"{name}:{_clean_value(lowered.get(name, ''))}" for name in names]
    return '\n'.join(sorted(lines))


def build_canonical_request(
    method: str,
    path: str,
    query_string: str,
    headers: Mapping[str, str],
    payload_hash: str,
    signed_names: Optional[List[str]] = None
) -> CanonicalRequest:
    """Return the canonical request text and the ;-joined signed header list"""
    if signed_names is None:
        signed_names = signed_header_names(headers)
    signed_headers = ';'.join(sorted(set(signed_names)))
    if not signed_headers:
        raise SigningError('Refusing to sign a request without signed headers.')

    text = '\n'.join([
        method.upper(),
        uri_encode(path),
        query_string,
        canonical_header_lines(signed_headers.split(';'), headers),
        '',
        signed_headers,
        payload_hash,
    ])
    return CanonicalRequest(text, signed_headers)
