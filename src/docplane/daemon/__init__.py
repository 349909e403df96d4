"""DocPlane daemon - HTTP server hosting the MCP endpoint and local routes."""

from docplane.daemon.app import create_app
from docplane.daemon.lifecycle import ServerController

__all__ = [
    "ServerController",
    "create_app",
]
