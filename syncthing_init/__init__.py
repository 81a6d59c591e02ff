"""Declarative configuration updater for a running Syncthing daemon."""

__version__ = "0.1.0"
