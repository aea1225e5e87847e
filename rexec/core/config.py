"""
Configuration loading: ~/.ssh/config host aliases and the YAML project record
"""
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import paramiko
import yaml

from .constants import DEFAULT_CONFIG_FILE, DEFAULT_SSH_PORT, SSH_CONFIG_PATH
from .exceptions import ConfigError


# ============================================================
# SSH Config
# ============================================================

def load_ssh_config(hostname: str, config_path: Union[str, Path] = SSH_CONFIG_PATH) -> Dict[str, Any]:
    """
    Load configuration for specified Host from ~/.ssh/config.

    Args:
        hostname: Host name or alias in SSH configuration
        config_path: SSH config file (default: ~/.ssh/config)

    Returns:
        Dictionary containing host, user, port, key_file

    Raises:
        ConfigError: If the SSH config file doesn't exist, cannot be parsed,
            or has a non-numeric Port for hostname
    """
    path = Path(config_path).expanduser()
    if not path.exists():
        raise ConfigError(f"{path} does not exist")

    try:
        ssh_config = paramiko.SSHConfig.from_path(str(path))
        entry = ssh_config.lookup(hostname)
        port = int(entry.get("port", DEFAULT_SSH_PORT))
    except (OSError, paramiko.SSHException, ValueError) as e:
        raise ConfigError(f"Invalid SSH config {path}: {e}") from e

    return {
        "host": entry.get("hostname", hostname),
        "user": entry.get("user", None),
        "port": port,
        "key_file": entry.get("identityfile", [None])[0],
    }


# ============================================================
# Project Configuration (YAML)
# ============================================================

@dataclass
class ServerSection:
    base_url: str = ""


@dataclass
class ProjectSection:
    name: str = ""


@dataclass
class Configuration:
    """Typed configuration record consumed by the client tooling"""
    server: ServerSection = field(default_factory=ServerSection)
    token: str = field(default="", repr=False)
    project: ProjectSection = field(default_factory=ProjectSection)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Configuration":
        """
        Build from a decoded YAML mapping.

        Keys: ``server.baseUrl``, ``token``, ``projects.name``. Unknown keys
        are ignored; missing ones keep their defaults.
        """
        server = data.get("server") or {}
        projects = data.get("projects") or {}
        if not isinstance(server, dict) or not isinstance(projects, dict):
            raise ConfigError("'server' and 'projects' must be mappings")
        return cls(
            server=ServerSection(base_url=str(server.get("baseUrl", ""))),
            token=str(data.get("token", "")),
            project=ProjectSection(name=str(projects.get("name", ""))),
        )


def load_configuration(path: Union[str, Path] = DEFAULT_CONFIG_FILE) -> Configuration:
    """
    Read and decode a YAML configuration file.

    Raises:
        ConfigError: If the file is missing, unreadable, or not a YAML mapping
    """
    p = Path(path).expanduser()
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read configuration {p}: {e}") from e

    try:
        data: Optional[Any] = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {p}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration {p} must be a mapping, got {type(data).__name__}")
    return Configuration.from_dict(data)
