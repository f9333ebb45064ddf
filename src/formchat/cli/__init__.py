"""CLI package for formchat."""

from .app import app

__all__ = ["app"]
