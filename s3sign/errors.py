"""Exceptions raised by s3sign.

Network outcomes are not exceptions: they are reported through
``Response.error``. Only programming and configuration mistakes raise.
"""


class S3RequestError(Exception):
    """Base exception for s3sign errors"""
    pass


class SigningError(S3RequestError):
    """A request could not be signed; fatal and never retried"""
    pass


class ConfigurationError(S3RequestError):
    """Invalid client configuration"""
    pass
