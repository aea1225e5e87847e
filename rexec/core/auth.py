"""
Credential resolution and SSH client configuration
"""
from __future__ import annotations

import base64
import dataclasses
import getpass
import hashlib
import io
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Literal, Optional, Union

import paramiko

from .constants import (
    DEFAULT_KEY_FILE,
    DEFAULT_SSH_TIMEOUT,
    HOST_KEY_AUTO_ADD,
    HOST_KEY_INSECURE,
    HOST_KEY_KNOWN_HOSTS,
    HOST_KEY_POLICIES,
)
from .exceptions import ConfigError, CredentialError, HostKeyError
from .logging import get_logger

logger = get_logger(__name__)

HostKeyPolicy = Union[str, paramiko.MissingHostKeyPolicy]

# Tried in order when parsing a private key file
_KEY_CLASSES = (paramiko.Ed25519Key, paramiko.ECDSAKey, paramiko.RSAKey)


def get_current_user() -> str:
    """Return the local user name"""
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return os.getenv("USER", "root")


def key_fingerprint(key: paramiko.PKey) -> str:
    """OpenSSH-style SHA256 fingerprint of a public key"""
    digest = hashlib.sha256(key.asbytes()).digest()
    return "SHA256:" + base64.b64encode(digest).decode("ascii").rstrip("=")


# --------------------
# Host key policies
# --------------------
class AcceptAnyPolicy(paramiko.MissingHostKeyPolicy):
    """Accept every host key without remembering it. Explicit opt-in only."""

    uses_known_hosts = False

    def missing_host_key(self, client, hostname, key):
        logger.warning(
            f"Host key verification disabled: accepting {key.get_name()} key "
            f"{key_fingerprint(key)} for {hostname}"
        )


class PinnedFingerprintPolicy(paramiko.MissingHostKeyPolicy):
    """Accept only the host key matching a pinned SHA256 fingerprint"""

    uses_known_hosts = False

    def __init__(self, fingerprint: str):
        if not fingerprint.startswith("SHA256:"):
            fingerprint = "SHA256:" + fingerprint
        self.fingerprint = fingerprint.rstrip("=")

    def missing_host_key(self, client, hostname, key):
        actual = key_fingerprint(key)
        if actual != self.fingerprint:
            raise HostKeyError(
                f"Host key for {hostname} does not match pinned fingerprint "
                f"(expected {self.fingerprint}, got {actual})"
            )
        client.get_host_keys().add(hostname, key.get_name(), key)


class RejectUnknownPolicy(paramiko.RejectPolicy):
    """RejectPolicy raising HostKeyError instead of a bare SSHException"""

    def missing_host_key(self, client, hostname, key):
        raise HostKeyError(
            f"Server {hostname} not found in known_hosts "
            f"({key.get_name()} {key_fingerprint(key)})"
        )


def resolve_host_key_policy(policy: HostKeyPolicy) -> paramiko.MissingHostKeyPolicy:
    """
    Turn a policy name (or pinned fingerprint) into a paramiko policy object.

    Accepted values: "known_hosts", "auto_add", "insecure", a "SHA256:..."
    fingerprint, or any paramiko.MissingHostKeyPolicy instance.
    """
    if isinstance(policy, paramiko.MissingHostKeyPolicy):
        return policy
    if policy.startswith("SHA256:"):
        return PinnedFingerprintPolicy(policy)
    if policy == HOST_KEY_KNOWN_HOSTS:
        return RejectUnknownPolicy()
    if policy == HOST_KEY_AUTO_ADD:
        return paramiko.AutoAddPolicy()
    if policy == HOST_KEY_INSECURE:
        return AcceptAnyPolicy()
    raise ConfigError(
        f"Unknown host key policy: {policy!r} "
        f"(expected one of {', '.join(HOST_KEY_POLICIES)} or a SHA256 fingerprint)"
    )


# --------------------
# Auth configuration
# --------------------
@dataclass(frozen=True)
class AuthConfig:
    """User supplied credentials and connection defaults"""
    user: str = ""
    password: Optional[str] = field(default=None, repr=False)
    key_file: Optional[str] = None
    passphrase: Optional[str] = field(default=None, repr=False)
    timeout: float = 0
    host_key_policy: HostKeyPolicy = HOST_KEY_KNOWN_HOSTS


@dataclass(frozen=True)
class AuthMethod:
    """Resolved transport authentication method"""
    kind: Literal["password", "publickey"]
    password: Optional[str] = field(default=None, repr=False)
    pkey: Optional[paramiko.PKey] = field(default=None, repr=False)

    def connect_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for paramiko.SSHClient.connect"""
        if self.kind == "password":
            return {"password": self.password}
        return {"pkey": self.pkey}


@dataclass(frozen=True)
class ClientConfig:
    """Everything needed to dial and authenticate"""
    user: str
    auth: AuthMethod
    timeout: float
    host_key_policy: paramiko.MissingHostKeyPolicy

    @property
    def load_known_hosts(self) -> bool:
        return getattr(self.host_key_policy, "uses_known_hosts", True)


def resolve_defaults(config: AuthConfig) -> AuthConfig:
    """Return a copy of config with user, key file and timeout filled in"""
    return dataclasses.replace(
        config,
        user=config.user or get_current_user(),
        key_file=config.key_file or str(Path(DEFAULT_KEY_FILE).expanduser()),
        timeout=config.timeout or DEFAULT_SSH_TIMEOUT,
    )


def load_private_key(path: str, passphrase: Optional[str] = None) -> paramiko.PKey:
    """
    Load an Ed25519, ECDSA or RSA private key.

    Raises:
        CredentialError: If the file cannot be read, is encrypted and no
            passphrase was given, or is not a supported key
    """
    p = Path(path).expanduser()
    try:
        data = p.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise CredentialError(f"Failed to read private key at {p}: {e}") from e

    for key_class in _KEY_CLASSES:
        try:
            return key_class.from_private_key(io.StringIO(data), password=passphrase)
        except paramiko.PasswordRequiredException as e:
            raise CredentialError(f"Private key at {p} is encrypted and no passphrase was given") from e
        except (paramiko.SSHException, ValueError):
            continue
    raise CredentialError(f"Failed to parse private key at {p}")


def build_auth_method(config: AuthConfig) -> AuthMethod:
    """
    Pick exactly one auth method: password if set, else the key file.
    """
    config = resolve_defaults(config)
    if config.password:
        return AuthMethod(kind="password", password=config.password)
    key = load_private_key(config.key_file, config.passphrase)
    return AuthMethod(kind="publickey", pkey=key)


def build_client_config(config: AuthConfig) -> ClientConfig:
    """Combine auth method, user, timeout and host key policy"""
    config = resolve_defaults(config)
    return ClientConfig(
        user=config.user,
        auth=build_auth_method(config),
        timeout=config.timeout,
        host_key_policy=resolve_host_key_policy(config.host_key_policy),
    )
