"""
Haiku Execution Integrations
External API clients
"""

from .haiku_client import HaikuAPIError, HaikuClient

__all__ = [
    "HaikuAPIError",
    "HaikuClient",
]
