"""
AWS Signature Version 4 signing and request execution for S3-compatible
object storage.
"""

__version__ = '0.4.0'

from .client import Client
from .config import Configuration, load_credentials
from .crypto import KeyCache
from .dates import DatePair, get_date_pair, parse_date
from .errors import ConfigurationError, S3RequestError, SigningError
from .hosts import DEFAULT_REGION, Host
from .network import Network, State
from .request import Callbacks, Request
from .response import ErrorString, Response
from .signer import SignedRequest, presign, sign
from .stopper import Stopper
from .transport import TransportManager

__all__ = [
    'Callbacks',
    'Client',
    'Configuration',
    'ConfigurationError',
    'DEFAULT_REGION',
    'DatePair',
    'ErrorString',
    'Host',
    'KeyCache',
    'Network',
    'Request',
    'Response',
    'S3RequestError',
    'SignedRequest',
    'SigningError',
    'State',
    'Stopper',
    'TransportManager',
    'get_date_pair',
    'load_credentials',
    'parse_date',
    'presign',
    'sign',
]
