"""Client for the Syncthing REST control API."""

from .client import API_KEY_HEADER, SyncthingClient

__all__ = ["API_KEY_HEADER", "SyncthingClient"]
