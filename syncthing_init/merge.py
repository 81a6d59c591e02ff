"""Merge declared configuration into the daemon's live configuration.

All functions here are pure: inputs are never mutated and the returned
document shares no mutable state with them.
"""

from collections.abc import Mapping
from copy import deepcopy
from typing import Any

from .config import Config, DeviceConfig, FolderConfig


def deep_merge(base: Mapping[str, Any], overlay: Mapping[str, Any]) -> dict[str, Any]:
    """Recursively merge ``overlay`` over ``base``.

    Mappings present on both sides are merged key by key. Any other
    overlay value, lists included, replaces the base value.
    """
    merged = deepcopy(dict(base))
    for key, value in overlay.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = deepcopy(value)
    return merged


def render_devices(devices: dict[str, DeviceConfig]) -> list[dict[str, Any]]:
    """Declared devices in declaration order, in the daemon's JSON format."""
    return [device.to_dict() for device in devices.values()]


def render_folders(
    folders: dict[str, FolderConfig],
    devices: dict[str, DeviceConfig],
) -> list[dict[str, Any]]:
    """Enabled declared folders in declaration order, device names resolved."""
    return [
        folder.to_dict(devices) for folder in folders.values() if folder.enable
    ]


def _merge_list(declared: list[dict[str, Any]], live: Any, replace: bool) -> list[Any]:
    if replace:
        return declared
    return declared + deepcopy(list(live or []))


def merge_config(
    live: Mapping[str, Any],
    settings: Mapping[str, Any],
    devices: dict[str, DeviceConfig],
    folders: dict[str, FolderConfig],
    override_devices: bool = True,
    override_folders: bool = True,
) -> dict[str, Any]:
    """Compute the configuration to submit to the daemon.

    Args:
        live: Configuration currently held by the daemon.
        settings: Free-form declared settings (without devices and folders).
        devices: Declared devices by symbolic name.
        folders: Declared folders by symbolic name.
        override_devices: Drop live devices that were not declared.
        override_folders: Drop live folders that were not declared.

    Returns:
        The merged configuration document.
    """
    merged = deep_merge(live, settings)

    # Declaring nothing keeps the live list whatever the override flag says.
    merged["devices"] = _merge_list(
        render_devices(devices),
        live.get("devices"),
        replace=override_devices and bool(devices),
    )
    merged["folders"] = _merge_list(
        render_folders(folders, devices),
        live.get("folders"),
        replace=override_folders and bool(folders),
    )
    return merged


def merge_declared(live: Mapping[str, Any], config: Config) -> dict[str, Any]:
    """Merge everything declared in ``config`` into ``live``."""
    return merge_config(
        live,
        config.settings,
        config.devices,
        config.folders,
        override_devices=config.override_devices,
        override_folders=config.override_folders,
    )
