"""Well-known S3 hosts and host/path resolution for logical requests."""

from typing import NamedTuple, Optional

DEFAULT_REGION = 'us-east-1'


class Host:
    """Host names of S3-compatible vendors usable as configuration defaults"""
    AMAZON = 's3.amazonaws.com'
    FILEBASE = 's3.filebase.com'
    WASABI = 's3.wasabisys.com'
    AIRBOX = 'airboxup.com'


class ResolvedTarget(NamedTuple):
    host: str
    path: str


def normalize_key(key: Optional[str]) -> str:
    """Object keys always begin with /"""
    if not key:
        return '/'
    return key if key.startswith('/') else '/' + key


def _split_port(host: str):
    name, sep, port = host.rpartition(':')
    if sep and port.isdigit():
        return name, sep + port
    return host, ''


def splice_region(host: str, region: str) -> str:
    """
    Insert a non-default region between the last two labels of host.

    s3.example.com with us-west-2 becomes s3.us-west-2.example.com. Vendors
    whose host names put the region elsewhere need their own handling.
    """
    if not region or region == DEFAULT_REGION:
        return host
    name, port = _split_port(host)
    parts = name.split('.')
    parts.insert(max(len(parts) - 2, 0), region)
    return '.'.join(parts) + port


def resolve_target(
    host: str,
    key: Optional[str] = None,
    bucket: Optional[str] = None,
    region: str = DEFAULT_REGION,
    path_style: bool = False
) -> ResolvedTarget:
    """
    Map bucket/key/region onto a concrete host and path.

    Path-style addressing puts the bucket in the path; virtual-hosted style
    puts it in front of the host name.
    """
    path = normalize_key(key)
    host = splice_region(host, region)
    if bucket:
        if path_style:
            path = f"/{bucket}{path}"
        else:
            host = f"{bucket}.{host}"
    return ResolvedTarget(host, path)
