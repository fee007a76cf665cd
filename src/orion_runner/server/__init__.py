"""Web server for the phase runner."""

from .app import create_app

__all__ = ["create_app"]
