"""Install a pre-generated device certificate and key into the config dir."""

import logging
import os
import shutil
from pathlib import Path

from .errors import ConfigError

logger = logging.getLogger(__name__)

CERT_FILE = "cert.pem"
KEY_FILE = "key.pem"


def _install(source: str | Path, target: Path) -> None:
    source = Path(source).expanduser()
    if not source.is_file():
        raise ConfigError(f"Cannot install {target.name}: {source} does not exist")

    # Previous copies are read-only
    if target.exists():
        target.unlink()

    shutil.copyfile(source, target)
    os.chmod(target, 0o400)
    logger.info(f"Installed {source} as {target}")


def install_keys(
    config_dir: str | Path,
    cert: str | Path | None = None,
    key: str | Path | None = None,
) -> list[Path]:
    """Copy ``cert`` and ``key`` into ``config_dir`` as cert.pem and key.pem.

    The directory is created with mode 0700 if needed; installed files are
    made readable by the owner only.

    Args:
        config_dir: The daemon's configuration directory.
        cert: Path to the certificate, or None to leave cert.pem alone.
        key: Path to the private key, or None to leave key.pem alone.

    Returns:
        Paths of the installed files.

    Raises:
        ConfigError: If a given source file does not exist.
    """
    config_dir = Path(config_dir).expanduser()
    installed: list[Path] = []

    if cert is None and key is None:
        return installed

    config_dir.mkdir(mode=0o700, parents=True, exist_ok=True)

    for source, name in ((cert, CERT_FILE), (key, KEY_FILE)):
        if source is not None:
            target = config_dir / name
            _install(source, target)
            installed.append(target)

    return installed
