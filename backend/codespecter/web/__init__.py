"""HTTP surface: event intake and GitHub webhooks."""

from .app import create_app

__all__ = ["create_app"]
