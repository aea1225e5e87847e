"""
Client construction from CLI parameters
"""
from typing import Any, Dict, Optional

from ...core.auth import AuthConfig
from ...core.client import RemoteClient
from ...core.config import load_ssh_config
from ...core.constants import DEFAULT_SSH_PORT, DEFAULT_SSH_TIMEOUT, HOST_KEY_KNOWN_HOSTS
from ...core.exceptions import ConfigError
from ...core.logging import get_logger

logger = get_logger(__name__)


def resolve_connection_params(
    host: str,
    port: Optional[int] = None,
    user: Optional[str] = None,
    password: Optional[str] = None,
    key_file: Optional[str] = None,
    passphrase: Optional[str] = None,
    timeout: float = DEFAULT_SSH_TIMEOUT,
    host_key_policy: str = HOST_KEY_KNOWN_HOSTS,
) -> Dict[str, Any]:
    """
    Merge explicit CLI values over ~/.ssh/config entries for host.

    Explicit values always win; the SSH config only fills gaps.
    """
    ssh_config: Dict[str, Any] = {}
    try:
        ssh_config = load_ssh_config(host)
    except ConfigError as e:
        logger.debug(f"No SSH config used for {host}: {e}")

    return {
        "host": ssh_config.get("host") or host,
        "port": port if port is not None else ssh_config.get("port", DEFAULT_SSH_PORT),
        "user": user or ssh_config.get("user") or "",
        "password": password,
        "key_file": key_file or ssh_config.get("key_file"),
        "passphrase": passphrase,
        "timeout": timeout,
        "host_key_policy": host_key_policy,
    }


def create_client(params: Dict[str, Any]) -> RemoteClient:
    """
    Build an unconnected RemoteClient from resolved parameters.

    Raises:
        InvalidHostName, InvalidPort: Bad host or port
    """
    auth = AuthConfig(
        user=params.get("user") or "",
        password=params.get("password"),
        key_file=params.get("key_file"),
        passphrase=params.get("passphrase"),
        timeout=params.get("timeout", DEFAULT_SSH_TIMEOUT),
        host_key_policy=params.get("host_key_policy", HOST_KEY_KNOWN_HOSTS),
    )
    return RemoteClient(
        host=params["host"],
        port=int(params.get("port", DEFAULT_SSH_PORT)),
        auth=auth,
    )
