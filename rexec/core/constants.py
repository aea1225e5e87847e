"""
Project constants definitions
"""

# ============================================================
# Connection Defaults
# ============================================================

DEFAULT_SSH_PORT = 22
DEFAULT_SSH_TIMEOUT = 10  # seconds, applies to dialing only
DEFAULT_KEY_FILE = "~/.ssh/id_rsa"
MAX_PORT = 65535

# ============================================================
# Host Key Policies
# ============================================================

HOST_KEY_KNOWN_HOSTS = "known_hosts"
HOST_KEY_AUTO_ADD = "auto_add"
HOST_KEY_INSECURE = "insecure"

HOST_KEY_POLICIES = (HOST_KEY_KNOWN_HOSTS, HOST_KEY_AUTO_ADD, HOST_KEY_INSECURE)

# ============================================================
# Transfer / Stream Settings
# ============================================================

COPY_BUFFER_SIZE = 32 * 1024

# ============================================================
# Pseudo-terminal Defaults
# ============================================================

DEFAULT_TERM = "xterm"
DEFAULT_PTY_COLS = 80
DEFAULT_PTY_ROWS = 40

# RFC 4254 section 8 opcodes
TTY_OP_END = 0
ECHO = 53
TTY_OP_ISPEED = 128
TTY_OP_OSPEED = 129

DEFAULT_TERMINAL_MODES = {
    ECHO: 0,              # disable echoing
    TTY_OP_ISPEED: 14400,  # input speed = 14.4 kbaud
    TTY_OP_OSPEED: 14400,  # output speed = 14.4 kbaud
}

# ============================================================
# Config Files
# ============================================================

SSH_CONFIG_PATH = "~/.ssh/config"
DEFAULT_CONFIG_FILE = "config.yaml"
