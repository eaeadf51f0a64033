"""
Read-only HTTP status API over the shared license file.
"""

from .app import create_app
from .server import router

__all__ = ["create_app", "router"]
