"""
WebSocket server and event handling for Shithead games.
"""

from .server import app

__all__ = ["app"]
