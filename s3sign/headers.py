"""Lower-case HTTP header names recognized by s3sign.

Headers outside this set are still transmitted; they simply get no special
treatment.
"""

HOST = 'host'
AUTHORIZATION = 'authorization'
CONTENT_LENGTH = 'content-length'
CONTENT_MD5 = 'content-md5'
CONTENT_TYPE = 'content-type'
X_AMZ_CONTENT_SHA256 = 'x-amz-content-sha256'
X_AMZ_COPY_SOURCE = 'x-amz-copy-source'
X_AMZ_DATE = 'x-amz-date'

SIGNED_HEADER_PREFIX = 'x-amz'

KNOWN_HEADERS = frozenset([
    'accept', 'accept-language', 'accept-patch', 'accept-ranges',
    'access-control-allow-credentials', 'access-control-allow-headers',
    'access-control-allow-methods', 'access-control-allow-origin',
    'access-control-expose-headers', 'access-control-max-age',
    'access-control-request-headers', 'access-control-request-method',
    'age', 'allow', 'alt-svc', AUTHORIZATION, 'cache-control', 'connection',
    'content-disposition', 'content-encoding', 'content-language',
    CONTENT_LENGTH, 'content-location', 'content-range', CONTENT_TYPE,
    'cookie', 'date', 'expect', 'expires', 'forwarded', 'from', HOST,
    'if-match', 'if-modified-since', 'if-none-match', 'if-unmodified-since',
    'last-modified', 'location', 'origin', 'pragma', 'proxy-authenticate',
    'proxy-authorization', 'public-key-pins', 'range', 'referer',
    'retry-after', 'sec-websocket-accept', 'sec-websocket-extensions',
    'sec-websocket-key', 'sec-websocket-protocol', 'sec-websocket-version',
    'set-cookie', 'strict-transport-security', 'tk', 'trailer',
    'transfer-encoding', 'upgrade', 'user-agent', 'vary', 'via', 'warning',
    'www-authenticate', CONTENT_MD5, 'etag', X_AMZ_CONTENT_SHA256,
    X_AMZ_COPY_SOURCE, X_AMZ_DATE,
])


def is_known(name: str) -> bool:
    return name.lower() in KNOWN_HEADERS


def is_signed(name: str) -> bool:
    """Whether a header takes part in the signature"""
    lower = name.lower()
    return lower == HOST or lower.startswith(SIGNED_HEADER_PREFIX)


def normalize(headers) -> dict:
    """Lower-case header names; later duplicates win"""
    return {str(k).lower().strip(): str(v) for k, v in (headers or {}).items()}
