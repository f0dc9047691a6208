"""
Command-line SigV4 S3 debugging tool.

Sends exactly one signed request (or prints a presigned URL) and shows the
request and response.
"""

import argparse
import base64
import hashlib
import json
import logging
import os
import re
import signal
import sys
from typing import BinaryIO, Dict, List, Optional

from tqdm import tqdm

from . import __version__
from .client import Client
from .config import Configuration, default_config_paths, load_credentials, resolve_credentials
from .errors import S3RequestError
from .hosts import DEFAULT_REGION, Host
from .request import Callbacks, Request
from .response import Response
from .signer import SignedRequest
from .stopper import Stopper
from .utils import format_bytes

STREAM_CHUNK_SIZE = 8192  # 8KB chunks for streaming

logger = logging.getLogger(__name__)


def setup_logging_to_file(log_file: str, console_level: int) -> None:
    """
    Configure logging:
    - Console uses level console_level (INFO or DEBUG).
    - File captures everything at DEBUG level.
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    # Remove existing handlers
    for h in list(root.handlers):
        root.removeHandler(h)

    # Console handler
    ch = logging.StreamHandler(sys.stdout)
    ch.setLevel(console_level)
    ch.setFormatter(logging.Formatter('[%(levelname)s] %(message)s'))
    root.addHandler(ch)

    # File handler
    fh = logging.FileHandler(log_file, mode='w')
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(logging.Formatter('%(asctime)s [%(levelname)s] %(message)s'))
    root.addHandler(fh)


def calc_md5_streaming(file_obj: BinaryIO) -> str:
    """Calculate MD5 of a file using streaming to avoid loading entire file in memory"""
    md5 = hashlib.md5()
    for chunk in iter(lambda: file_obj.read(STREAM_CHUNK_SIZE), b''):
        md5.update(chunk)
    file_obj.seek(0)  # Reset file position
    return base64.b64encode(md5.digest()).decode('utf-8')


def calc_md5_of_bytes(data: bytes) -> str:
    """Calculate MD5 of bytes"""
    md5 = hashlib.md5(data)
    return base64.b64encode(md5.digest()).decode('utf-8')


def create_bucket_configuration(region: str) -> Optional[dict]:
    """Return a CreateBucketConfiguration tree for non-default regions"""
    if region and region != DEFAULT_REGION:
        return {'createBucketConfiguration': {'locationConstraint': region}}
    return None


def parse_header_args(values: List[str]) -> Dict[str, str]:
    """Parse 'Name: value' strings; repeated x-amz-* headers are comma-joined"""
    result: Dict[str, str] = {}
    for hdr_line in values:
        m = re.match(r'([^:]+):\s*(.*)', hdr_line)
        if not m:
            logger.warning(f"Cannot parse header: {hdr_line}")
            continue
        hname, hval = m.group(1).strip().lower(), m.group(2)
        if hname.startswith('x-amz-') and hname in result:
            result[hname] += f",{hval}"
        else:
            result[hname] = hval
    return result


def parse_query_args(values: List[str]) -> Dict[str, str]:
    query: Dict[str, str] = {}
    for kvp in values:
        k, _, v = kvp.partition('=')
        query[k] = v
    return query


def dump_request_and_response(signed: Optional[SignedRequest], resp: Response, filename: str) -> None:
    """Save the actual request & response to a file for debugging"""
    with open(filename, 'wb') as f:
        f.write(b"=== REQUEST ===\n")
        if signed is not None:
            f.write(f"{signed.method} {signed.url} HTTP/1.1\n".encode('utf-8'))
            for hname, hval in signed.headers.items():
                f.write(f"{hname}: {hval}\n".encode('utf-8'))
            f.write(b"\n=== CANONICAL REQUEST ===\n")
            f.write(signed.canonical_request.encode('utf-8'))
            f.write(b"\n\n")
            if signed.body:
                f.write(f"[Request body: {len(signed.body)} bytes]\n".encode('utf-8'))
                if len(signed.body) <= 1024:  # Show small bodies
                    f.write(signed.body)
            else:
                f.write(b"[No request body]\n")

        f.write(b"\n=== RESPONSE ===\n")
        if resp.error:
            f.write(f"[Error: {resp.error}]\n".encode('utf-8'))
            return
        f.write(f"HTTP/1.1 {resp.status}\n".encode('utf-8'))
        for hname, hval in resp.headers.items():
            f.write(f"{hname}: {hval}\n".encode('utf-8'))
        f.write(b"\n")
        f.write(f"\n=== TIMING INFO ===\nresponse_time: {resp.elapsed:.3f}s\n\n".encode('utf-8'))
        f.write(resp.content)


def print_request(signed: SignedRequest) -> None:
    print("=== REQUEST ===")
    print(f"{signed.method} {signed.url} HTTP/1.1")
    for hname, hval in signed.headers.items():
        print(f"{hname}: {hval}")
    if signed.body:
        print(f"\n[Request body: {format_bytes(len(signed.body))}]")
    else:
        print("\n[No request body]")


def format_response_output(resp: Response, json_output: bool = False) -> None:
    """Format and print response output"""
    if json_output:
        output = {
            'status_code': resp.status,
            'error': resp.error,
            'headers': dict(resp.headers),
            'body': resp.text,
            'timing': {'response_time': resp.elapsed},
        }
        print(json.dumps(output, indent=2))
        return

    if resp.request is not None:
        print_request(resp.request)

    print(f"\n=== RESPONSE ===")
    if resp.error:
        print(f"[Error: {resp.error}]")
        sys.stdout.flush()
        return

    print(f"HTTP/1.1 {resp.status}")
    for h, v in resp.headers.items():
        print(f"{h}: {v}")

    print(f"\n=== TIMING ===")
    print(f"response_time: {resp.elapsed:.3f}s")

    print()
    if resp.content:
        content_type = resp.get_header('Content-Type')
        if 'xml' in content_type or 'json' in content_type or 'text' in content_type:
            print(resp.text)
        else:
            print(f"[Binary response: {format_bytes(len(resp.content))}]")
    sys.stdout.flush()


class ProgressBars:
    """tqdm bars fed by the request's progress callbacks"""

    def __init__(self):
        self._bars: Dict[str, tqdm] = {}

    def _update(self, name: str, loaded: int, total: int) -> None:
        bar = self._bars.get(name)
        if bar is None:
            bar = self._bars[name] = tqdm(total=total or None, desc=name, unit='B',
                                          unit_scale=True, leave=False)
        if total and bar.total != total:
            bar.total = total
        bar.update(loaded - bar.n)

    def upload(self, loaded: int, total: int) -> None:
        self._update('Uploading', loaded, total)

    def download(self, loaded: int, total: int) -> None:
        self._update('Downloading', loaded, total)

    def close(self) -> None:
        for bar in self._bars.values():
            bar.close()
        self._bars.clear()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='s3sign',
        description="SigV4 S3 API debugging tool",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # GET object
  %(prog)s --id mykey mybucket myfile.txt

  # PUT object with progress
  %(prog)s --id mykey --put file.txt --progress mybucket file.txt

  # Bucket location (subresource)
  %(prog)s --id mykey --subresource location mybucket

  # Presigned URL valid for one hour
  %(prog)s --id mykey --presign 3600 mybucket report.pdf

  # JSON output for scripting against MinIO
  %(prog)s --id mykey --host localhost --port 9000 --http --pathStyle --json mybucket status.txt
        """
    )
    parser.add_argument('--version', action='version', version=f"%(prog)s {__version__}")

    # Credentials
    parser.add_argument('--id', required=True,
                        help='Friendly name from config or actual Access Key ID.')
    parser.add_argument('--key', help='AWS Secret Key (unsafe on command line).')
    parser.add_argument('--config', default='',
                        help='Path to .s3curl config (chmod 600). Defaults to ./.s3curl or ~/.s3curl.')

    # Endpoint
    parser.add_argument('--host', default=Host.AMAZON, help=f"S3 host (default: {Host.AMAZON})")
    parser.add_argument('--port', type=int, help='Port (default: protocol default)')
    parser.add_argument('--http', action='store_true', help='Use plain http')
    parser.add_argument('--pathStyle', action='store_true',
                        help='Put the bucket in the path instead of the host name')
    parser.add_argument('--region', default=DEFAULT_REGION, help=f"Region (default: {DEFAULT_REGION})")

    # Methods
    parser.add_argument('--put', help='PUT from local file.')
    parser.add_argument('--post', nargs='?', const='', help='POST, optionally from file.')
    parser.add_argument('--head', action='store_true', help='HEAD request')
    parser.add_argument('--delete', action='store_true', help='DELETE request')
    parser.add_argument('--createBucket', nargs='?', const='',
                        help='PUT to create a bucket, optional region constraint.')
    parser.add_argument('--presign', type=int, metavar='SECONDS',
                        help='Print a presigned URL valid for SECONDS instead of sending')

    # Request details
    parser.add_argument('--subresource', default='', help='S3 subresource, e.g. acl, location, uploads')
    parser.add_argument('--query', action='append', default=[], metavar='K=V',
                        help='Query parameter (repeatable)')
    parser.add_argument('-H', '--header', action='append', default=[], metavar='"Name: value"',
                        help='Extra header (repeatable)')
    parser.add_argument('--acl', help='x-amz-acl: public-read, private, etc.')
    parser.add_argument('--copySrc', help='x-amz-copy-source: bucket/key')
    parser.add_argument('--contentType', default='', help='Content-Type header')
    parser.add_argument('--contentMd5', default='', help='Content-MD5 header')
    parser.add_argument('--calculateContentMd5', action='store_true',
                        help='Calculate Content-MD5 automatically')

    # Configuration
    parser.add_argument('--timeout', type=float, default=30,
                        help='Request timeout in seconds, 0 disables (default: 30)')
    parser.add_argument('--retries', type=int, default=3,
                        help='Retries after a timeout; never applied to PUT/POST (default: 3)')

    # Output options
    parser.add_argument('--saveRequest', help='Save request & response to file')
    parser.add_argument('--debug', action='store_true', help='Show debug info on console')
    parser.add_argument('--logFile', help='Capture full debug info in a log file')
    parser.add_argument('--json', action='store_true', help='Output response in JSON format')
    parser.add_argument('--progress', action='store_true', help='Show progress bars')

    parser.add_argument('bucket', nargs='?', default='', help='Bucket name')
    parser.add_argument('object_key', nargs='?', default='', metavar='key', help='Object key')
    return parser


def load_secrets(config_arg: str) -> Dict[str, Dict[str, str]]:
    if config_arg:
        config_paths = [config_arg]
    else:
        script_dir = os.path.abspath(os.path.dirname(sys.argv[0]))
        config_paths = list(default_config_paths(script_dir))

    for p in config_paths:
        if os.path.isfile(p):
            try:
                secrets = load_credentials(p)
                logger.info(f"Loaded credentials from {p}")
                return secrets
            except (OSError, SyntaxError) as ex:
                logger.warning(f"Error loading config from {p}: {ex}")
        else:
            logger.debug(f"Config file not found at {p}")
    return {}


def read_body(parser: argparse.ArgumentParser, path: str, args) -> bytes:
    if not os.path.isfile(path):
        parser.error(f"File not found: {path}")
    if args.calculateContentMd5:
        with open(path, 'rb') as f:
            args.contentMd5 = calc_md5_streaming(f)
    with open(path, 'rb') as f:
        return f.read()


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    # Setup logging
    console_level = logging.DEBUG if args.debug else logging.INFO
    if args.logFile:
        setup_logging_to_file(args.logFile, console_level)
    else:
        logging.basicConfig(level=console_level, format='[%(levelname)s] %(message)s')

    # Determine credentials
    if args.key:
        logger.warning("WARNING: Using --key on command line is insecure. Proceeding...")
        access_key, secret_key = args.id, args.key
    else:
        try:
            access_key, secret_key = resolve_credentials(args.id, load_secrets(args.config))
        except S3RequestError as e:
            parser.error(str(e))

    try:
        config = Configuration(
            access_key=access_key,
            secret_key=secret_key,
            host=args.host,
            protocol='http' if args.http else 'https',
            port=args.port,
            path_style=args.pathStyle
        )
    except S3RequestError as e:
        parser.error(str(e))

    # Determine HTTP method
    method = 'GET'
    if args.delete:
        method = 'DELETE'
    elif args.head:
        method = 'HEAD'
    elif args.put or args.createBucket is not None or args.copySrc:
        method = 'PUT'
    elif args.post is not None:
        method = 'POST'

    headers = parse_header_args(args.header)
    if args.acl:
        headers['x-amz-acl'] = args.acl
    if args.copySrc:
        headers['x-amz-copy-source'] = args.copySrc

    # Prepare request body
    body = None
    if method == 'PUT' and args.createBucket is not None:
        body = create_bucket_configuration(args.createBucket)
    elif method == 'PUT' and args.put:
        body = read_body(parser, args.put, args)
    elif method == 'POST' and args.post:
        body = read_body(parser, args.post, args)
    elif args.calculateContentMd5:
        args.contentMd5 = calc_md5_of_bytes(b'')

    if args.contentMd5:
        headers['content-md5'] = args.contentMd5
    if args.contentType:
        headers['content-type'] = args.contentType

    stopper = Stopper()
    bars = ProgressBars() if args.progress and not args.json else None
    request = Request(
        method=method,
        bucket=args.bucket or None,
        key=args.object_key or None,
        endpoint=args.subresource,
        query=parse_query_args(args.query),
        headers=headers,
        body=body,
        region=args.region,
        retry_count=args.retries,
        stopper=stopper,
        callbacks=Callbacks(
            upload_progress=bars.upload if bars else None,
            download_progress=bars.download if bars else None
        )
    )

    with Client(config, timeout=args.timeout or None) as client:
        if args.presign is not None:
            print(client.presign(request, expires_in=args.presign))
            return 0

        previous = signal.signal(signal.SIGINT, lambda *_: stopper.stop())
        try:
            resp = client.call(method, request)
        except S3RequestError as e:
            logger.error(f"Request failed: {e}")
            return 1
        finally:
            signal.signal(signal.SIGINT, previous)
            if bars is not None:
                bars.close()

    if args.saveRequest:
        dump_request_and_response(resp.request, resp, args.saveRequest)
    format_response_output(resp, args.json)
    return 0 if resp.ok else 1


if __name__ == '__main__':
    sys.exit(main())
