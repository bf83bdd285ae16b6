"""
Sync package - local command transport between the CLI and the daemon.
"""

from sync.command_client import send_command
from sync.command_server import CommandServer

__all__ = ["CommandServer", "send_command"]
