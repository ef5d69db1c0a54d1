"""HTTP surface for querycache: change notification webhook and metrics."""

from querycache.api.app import create_app

__all__ = ["create_app"]
