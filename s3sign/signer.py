"""
AWS Signature Version 4 signing for S3 requests.

Two entry points share one derivation:

- sign() resolves the host, stamps x-amz-date and x-amz-content-sha256 and
  adds an Authorization header.
- presign() seeds the X-Amz-* query parameters and returns a URL carrying
  X-Amz-Signature instead; nothing is transmitted.

The signature covers the final header and query values, so a SignedRequest
is immutable.
"""

import datetime
import logging
from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Mapping, Optional

from . import headers as hdr
from .canonical import build_canonical_request, signable_query_string, signed_header_names, uri_encode
from .config import Configuration
from .crypto import KeyCache, hmac_sha256, hmac_sha256_hex, sha256_hexdigest
from .dates import DatePair, get_date_pair, parse_date
from .hosts import DEFAULT_REGION, resolve_target
from .request import Request
from .utils import timing_decorator

logger = logging.getLogger(__name__)

ALGORITHM = 'AWS4-HMAC-SHA256'
SERVICE = 's3'
TERMINATOR = 'aws4_request'
UNSIGNED_PAYLOAD = 'UNSIGNED-PAYLOAD'
DEFAULT_EXPIRES = 3600

QUERY_ALGORITHM = 'X-Amz-Algorithm'
QUERY_CREDENTIAL = 'X-Amz-Credential'
QUERY_DATE = 'X-Amz-Date'
QUERY_EXPIRES = 'X-Amz-Expires'
QUERY_SIGNED_HEADERS = 'X-Amz-SignedHeaders'
QUERY_SIGNATURE = 'X-Amz-Signature'


@dataclass(frozen=True)
class SignedRequest:
    method: str
    url: str
    host: str
    path: str
    query_string: str
    headers: Mapping[str, str]
    body: bytes
    signature: str
    signed_headers: str
    canonical_request: str
    retry_count: int = 0


def construct_scope(calendar_date: str, region: str) -> str:
    return '/'.join([calendar_date, region, SERVICE, TERMINATOR])


def construct_credential(access_key: str, scope: str) -> str:
    return f"{access_key}/{scope}"


def derive_signing_key(secret_key: str, calendar_date: str, region: str,
                       cache: Optional[KeyCache] = None) -> bytes:
    """Derive SigV4 signing key for the given date, region and the s3 service"""
    k_date = hmac_sha256('AWS4' + secret_key, calendar_date, cache)
    k_region = hmac_sha256(k_date, region)
    k_service = hmac_sha256(k_region, SERVICE)
    return hmac_sha256(k_service, TERMINATOR)


def string_to_sign(dates: DatePair, scope: str, canonical_request: str) -> str:
    return '\n'.join([ALGORITHM, dates.full_date, scope, sha256_hexdigest(canonical_request)])


def _body_bytes(body) -> bytes:
    if body is None:
        return b''
    if isinstance(body, str):
        return body.encode('utf-8')
    if isinstance(body, (bytes, bytearray)):
        return bytes(body)
    raise TypeError(f"Unsupported body type: {type(body).__name__}")


@timing_decorator
def sign(config: Configuration, request: Request, now: Optional[datetime.datetime] = None,
         key_cache: Optional[KeyCache] = None) -> SignedRequest:
    """Sign request with config's credentials; request itself is left untouched"""
    method = (request.method or 'GET').upper()
    region = request.region or DEFAULT_REGION
    bucket = (request.bucket or '').lower()
    headers = hdr.normalize(request.headers)
    query = {str(k): v for k, v in (request.query or {}).items()}

    target = resolve_target(
        headers.get(hdr.HOST) or config.netloc,
        key=request.key,
        bucket=bucket,
        region=region,
        path_style=config.path_style
    )
    headers[hdr.HOST] = target.host

    is_presigning = QUERY_ALGORITHM in query
    if QUERY_DATE in query:
        dates = parse_date(str(query[QUERY_DATE]))
    else:
        dates = get_date_pair(now)

    if is_presigning:
        payload_hash = UNSIGNED_PAYLOAD
        signed_names = [hdr.HOST]
    else:
        headers[hdr.X_AMZ_DATE] = dates.full_date
        if not headers.get(hdr.X_AMZ_CONTENT_SHA256):
            headers[hdr.X_AMZ_CONTENT_SHA256] = UNSIGNED_PAYLOAD
        payload_hash = headers[hdr.X_AMZ_CONTENT_SHA256]
        signed_names = signed_header_names(headers)

    query_string = signable_query_string(query, request.endpoint)
    canonical = build_canonical_request(
        method, target.path, query_string, headers, payload_hash, signed_names
    )
    logger.debug("CanonicalRequest:\n%s", canonical.text)

    scope = construct_scope(dates.calendar_date, region)
    to_sign = string_to_sign(dates, scope, canonical.text)
    logger.debug("StringToSign:\n%s", to_sign)

    signing_key = derive_signing_key(config.secret_key, dates.calendar_date, region, key_cache)
    signature = hmac_sha256_hex(signing_key, to_sign)

    if is_presigning:
        query_string = f"{query_string}&{QUERY_SIGNATURE}={signature}"
    else:
        headers[hdr.AUTHORIZATION] = (
            f"{ALGORITHM} Credential={construct_credential(config.access_key, scope)}, "
            f"SignedHeaders={canonical.signed_headers}, "
            f"Signature={signature}"
        )

    url = f"{config.protocol}://{target.host}{uri_encode(target.path)}"
    if query_string:
        url = f"{url}?{query_string}"

    return SignedRequest(
        method=method,
        url=url,
        host=target.host,
        path=target.path,
        query_string=query_string,
        headers=MappingProxyType(headers),
        body=_body_bytes(request.body),
        signature=signature,
        signed_headers=canonical.signed_headers,
        canonical_request=canonical.text,
        retry_count=request.retry_count or 0
    )


def presign(config: Configuration, request: Request, expires_in: int = DEFAULT_EXPIRES,
            now: Optional[datetime.datetime] = None, key_cache: Optional[KeyCache] = None) -> str:
    """Return a presigned URL for request, valid for expires_in seconds"""
    region = request.region or DEFAULT_REGION
    dates = get_date_pair(now)
    scope = construct_scope(dates.calendar_date, region)

    query = dict(request.query or {})
    query[QUERY_ALGORITHM] = ALGORITHM
    query[QUERY_CREDENTIAL] = construct_credential(config.access_key, scope)
    query[QUERY_DATE] = dates.full_date
    query[QUERY_EXPIRES] = str(expires_in or DEFAULT_EXPIRES)
    query[QUERY_SIGNED_HEADERS] = hdr.HOST

    signed = sign(config, replace(request, query=query, region=region), key_cache=key_cache)
    return signed.url
