"""Bridge module."""

from .client import BridgeClient, IBridgeClient
from .queue import BridgeQueue

__all__ = ["BridgeClient", "BridgeQueue", "IBridgeClient"]
