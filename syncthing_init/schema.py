"""Defaults and allowed values for declared Syncthing devices and folders.

Field names follow the daemon's REST JSON format, not its XML config file.
"""

from typing import Any

from .errors import ConfigError

DEFAULT_GUI_ADDRESS = "127.0.0.1:8384"
DEFAULT_DATA_DIR = "/var/lib/syncthing"
CONFIG_DIR_SUFFIX = ".config/syncthing"

# Tuning fields applied to every declared folder unless overridden.
FOLDER_DEFAULTS: dict[str, Any] = {
    "rescanInterval": 3600,
    "type": "sendreceive",
    "watch": True,
    "watchDelay": 10,
    "ignorePerms": True,
    "ignoreDelete": False,
    "copiers": 0,
    "pullerMaxPendingKiB": 0,
    "hashers": 0,
    "order": "random",
    "scanProgressIntervalS": 0,
    "pullerPauseS": 0,
    "maxConflicts": -1,
    "disableSparseFiles": False,
    "disableTempIndexes": False,
    "weakHashThresholdPct": 25,
    "markerName": ".stfolder",
    "copyOwnershipFromParent": False,
    "modTimeWindowS": 0,
    "maxConcurrentWrites": 2,
    "disableFsync": False,
    "blockPullOrder": "standard",
    "copyRangeMethod": "standard",
    "caseSensitiveFS": False,
    "junctionsAsDirs": False,
    "syncOwnership": False,
    "sendOwnership": False,
    "syncXattrs": False,
    "sendXattrs": False,
}

FOLDER_ENUMS: dict[str, tuple[str, ...]] = {
    "type": ("sendreceive", "sendonly", "receiveonly", "receiveencrypted"),
    "order": (
        "random",
        "alphabetic",
        "smallestFirst",
        "largestFirst",
        "oldestFirst",
        "newestFirst",
    ),
    "blockPullOrder": ("standard", "random", "inOrder"),
    "copyRangeMethod": ("standard", "copy_file_range", "ioctl", "all"),
}

VERSIONING_TYPES = ("external", "simple", "staggered", "trashcan")

OPTION_ENUMS: dict[str, tuple[str, ...]] = {
    "databaseTuning": ("auto", "large", "small"),
}


def check_enum(value: Any, allowed: tuple[str, ...], where: str) -> None:
    """Raise ConfigError unless value is one of the allowed strings."""
    if value not in allowed:
        choices = ", ".join(allowed)
        raise ConfigError(f"{where}: {value!r} is not one of: {choices}")


def check_folder_path(path: Any, where: str) -> None:
    """Folder paths must be absolute or relative to the daemon user's home."""
    if not isinstance(path, str) or not (
        path.startswith("/") or path.startswith("~/")
    ):
        raise ConfigError(f"{where}: path {path!r} must start with / or ~/")


def folder_tuning(overrides: dict[str, Any], where: str) -> dict[str, Any]:
    """Fill folder tuning defaults and validate enumerated fields.

    Args:
        overrides: Tuning and free-form fields declared for the folder.
        where: Location used in error messages.

    Returns:
        New dict with defaults applied and overrides on top.
    """
    tuning = dict(FOLDER_DEFAULTS)
    tuning.update(overrides)

    for key, allowed in FOLDER_ENUMS.items():
        check_enum(tuning[key], allowed, f"{where}.{key}")

    return tuning


def validate_options(options: Any) -> None:
    """Check enumerated global options; other options pass through untouched."""
    if options is None:
        return
    if not isinstance(options, dict):
        raise ConfigError("settings.options must be a mapping")

    for key, allowed in OPTION_ENUMS.items():
        if key in options:
            check_enum(options[key], allowed, f"settings.options.{key}")
