"""Client configuration and the .s3curl credentials file."""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from .errors import ConfigurationError
from .hosts import Host

logger = logging.getLogger(__name__)

PROTOCOLS = ('http', 'https')
DEFAULT_PORTS = {'http': 80, 'https': 443}
CONFIG_FILE_NAME = '.s3curl'


@dataclass(frozen=True)
class Configuration:
    """Immutable connection settings; replace the whole object to reconfigure"""
    access_key: str
    secret_key: str = field(repr=False)
    host: str = Host.AMAZON
    protocol: str = 'https'
    port: Optional[int] = None
    path_style: bool = False

    def __post_init__(self):
        if not self.access_key or not self.secret_key:
            raise ConfigurationError('Both an access key and a secret key are required.')
        if self.protocol not in PROTOCOLS:
            raise ConfigurationError(f"Unsupported protocol: {self.protocol!r}")
        if not self.host:
            object.__setattr__(self, 'host', Host.AMAZON)
        if self.port is None:
            object.__setattr__(self, 'port', DEFAULT_PORTS[self.protocol])
        elif not 0 < int(self.port) < 65536:
            raise ConfigurationError(f"Invalid port: {self.port}")

    @property
    def netloc(self) -> str:
        """host[:port], leaving out the protocol's default port"""
        if self.port == DEFAULT_PORTS[self.protocol]:
            return self.host
        return f"{self.host}:{self.port}"


def load_credentials(config_path: str) -> Dict[str, Dict[str, str]]:
    """
    Load a Python-format .s3curl file that defines:
        awsSecretAccessKeys = {
            'friendlyName': {'id': 'AKIA...', 'key': '...'},
            ...
        }
    Must be chmod 600 & owned by the user.
    """
    if not os.path.isfile(config_path):
        return {}

    st = os.stat(config_path)
    if st.st_uid != os.getuid():
        raise PermissionError(f"Refusing to read credentials from {config_path}: not owned by current user.")

    mode = st.st_mode & 0o777
    if (mode & 0o077) != 0:
        raise PermissionError(f"Refusing to read credentials from {config_path}: file must have mode 600.")

    local_vars: Dict[str, Any] = {}
    with open(config_path, 'r') as f:
        code = f.read()
    exec(code, {}, local_vars)
    return local_vars.get('awsSecretAccessKeys', {})


def default_config_paths(script_dir: str) -> Tuple[str, str]:
    return (
        os.path.join(script_dir, CONFIG_FILE_NAME),
        os.path.join(os.path.expanduser('~'), CONFIG_FILE_NAME),
    )


def resolve_credentials(name: str, secrets: Dict[str, Dict[str, str]]) -> Tuple[str, str]:
    """Look up (access key, secret key) by friendly name or by access key id"""
    if name in secrets:
        return secrets[name]['id'], secrets[name]['key']
    for friendly, kv in secrets.items():
        if kv.get('id') == name:
            logger.debug(f"Matched access key id under '{friendly}'")
            return kv['id'], kv['key']
    raise ConfigurationError(f"No credentials for '{name}' in config and no --key given.")
