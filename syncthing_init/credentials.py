"""Read the daemon's API key from its config.xml."""

import asyncio
import logging
import time
import xml.etree.ElementTree as ET
from pathlib import Path

from .errors import CredentialTimeoutError

logger = logging.getLogger(__name__)

CONFIG_XML = "config.xml"


def read_api_key(config_dir: str | Path) -> str | None:
    """Extract ``configuration/gui/apikey`` from the daemon's config.xml.

    Args:
        config_dir: Directory holding config.xml.

    Returns:
        The API key, or None if the file is missing, unparsable or has no key
        yet (the daemon writes it during its first start).
    """
    path = Path(config_dir) / CONFIG_XML
    try:
        root = ET.parse(path).getroot()
    except FileNotFoundError:
        return None
    except OSError as e:
        logger.debug(f"Cannot read {path}: {e}")
        return None
    except ET.ParseError as e:
        # The daemon may still be writing the file
        logger.debug(f"Cannot parse {path} yet: {e}")
        return None

    if root.tag != "configuration":
        return None

    apikey = root.findtext("gui/apikey")
    if apikey:
        apikey = apikey.strip()
    return apikey or None


async def wait_for_api_key(
    config_dir: str | Path,
    poll_interval: float = 1.0,
    timeout: float | None = None,
) -> str:
    """Poll config.xml until the API key is available.

    Args:
        config_dir: Directory holding config.xml.
        poll_interval: Seconds between attempts.
        timeout: Give up after this many seconds. None waits forever.

    Returns:
        The API key.

    Raises:
        CredentialTimeoutError: If ``timeout`` elapses first.
    """
    deadline = None if timeout is None else time.monotonic() + timeout
    attempts = 0

    while True:
        api_key = read_api_key(config_dir)
        if api_key:
            if attempts:
                logger.info(f"API key available after {attempts} retries")
            return api_key

        if deadline is not None and time.monotonic() >= deadline:
            raise CredentialTimeoutError(
                f"No API key in {Path(config_dir) / CONFIG_XML} after {timeout}s"
            )

        if attempts == 0:
            logger.info(f"Waiting for API key in {Path(config_dir) / CONFIG_XML}")
        attempts += 1
        await asyncio.sleep(poll_interval)
