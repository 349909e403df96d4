"""Configuration constants.

Values here are NOT user-configurable: API stability limits and protocol
constraints. For configurable values, see models.py.
"""

# =============================================================================
# Query Limits
# =============================================================================

QUERY_MAX_RESULTS = 100
"""Maximum results for a single documentation query."""

SNIPPET_MAX_CHARS = 2000
"""Upper bound for the configurable description snippet length."""

# =============================================================================
# Item Paths
# =============================================================================

PATH_SEPARATOR = "::"
"""Separator joining crate, module path and item name."""

UNKNOWN_CRATE = "unknown_crate"
"""Crate name used when the root item carries no name."""

# =============================================================================
# Protocol/Validation Constants
# =============================================================================

PORT_MIN = 0
PORT_MAX = 65535
"""Valid port range."""

PID_FILE = "daemon.pid"
PORT_FILE = "daemon.port"
"""Daemon discovery files, relative to server.state_dir."""
