"""CLI entry point for syncthing-init."""

import argparse
import asyncio
import inspect
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

from .config import load_config
from .errors import SyncthingInitError, TransportError
from .keys import install_keys
from .merge import render_devices, render_folders
from .reconciler import Reconciler, ReconcileStatus

logger = logging.getLogger(__name__)


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for journald or log shippers.

    Records raised from a ``TransportError`` also carry the HTTP status
    the daemon answered with.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            error = record.exc_info[1]
            log_data["error"] = type(error).__name__
            if isinstance(error, TransportError) and error.status_code is not None:
                log_data["status_code"] = error.status_code
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(verbose: bool = False, log_level: str | None = None, json_output: bool = False) -> None:
    """Configure logging on stderr, leaving stdout for command output.

    Args:
        verbose: Enable debug logging (ignored if log_level is set).
        log_level: Explicit log level (error, warning, info, debug).
        json_output: Output logs as JSON lines.
    """
    if log_level:
        level = getattr(logging, log_level.upper(), logging.INFO)
    else:
        level = logging.DEBUG if verbose else logging.INFO

    handler = logging.StreamHandler(sys.stderr)
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            fmt="%(asctime)s %(levelname)-7s [%(name)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))

    logging.basicConfig(level=level, handlers=[handler])

    # httpx logs every request at INFO; the retry loop already reports failures
    logging.getLogger("httpx").setLevel(logging.WARNING)


async def cmd_reconcile(args: argparse.Namespace) -> int:
    """Apply the declared configuration to the running daemon."""
    config = load_config(args.config)
    reconciler = Reconciler(config)

    result = await reconciler.reconcile(dry_run=args.dry_run)

    if result.status == ReconcileStatus.PLANNED:
        print(json.dumps(result.merged_config, indent=2))
    elif result.status == ReconcileStatus.SKIPPED:
        print("Nothing declared, configuration left unchanged")
    else:
        restart = "restart triggered" if result.restarted else "no restart needed"
        print(f"Configuration applied to {config.base_url} ({restart})")

    return 0


async def cmd_plan(args: argparse.Namespace) -> int:
    """Print the configuration that would be submitted."""
    config = load_config(args.config)

    result = await Reconciler(config).plan()
    print(json.dumps(result.merged_config, indent=2))
    return 0


def cmd_show(args: argparse.Namespace) -> int:
    """Print declared devices and folders in the daemon's JSON format."""
    config = load_config(args.config)

    rendered = {
        "devices": render_devices(config.devices),
        "folders": render_folders(config.folders, config.devices),
    }
    if config.settings:
        rendered["settings"] = config.settings

    print(json.dumps(rendered, indent=2))
    return 0


def cmd_install_keys(args: argparse.Namespace) -> int:
    """Copy the device certificate and key into the config directory."""
    config = load_config(args.config)

    cert = args.cert or config.cert
    key = args.key or config.key
    if not cert and not key:
        print("No cert or key configured, nothing to install")
        return 0

    installed = install_keys(config.config_path, cert=cert, key=key)
    for path in installed:
        print(f"Installed {path}")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="syncthing-init",
        description="Apply declared devices, folders and settings to a running Syncthing daemon",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to config file",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["error", "warning", "info", "debug"],
        default=None,
        help="Set log level explicitly (overrides -v/--verbose)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output logs as JSON for machine parsing",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Reconcile command
    reconcile_parser = subparsers.add_parser(
        "reconcile", help="Merge the declared configuration into the running daemon"
    )
    reconcile_parser.add_argument(
        "-n", "--dry-run",
        action="store_true",
        help="Print the merged configuration instead of submitting it",
    )
    reconcile_parser.set_defaults(func=cmd_reconcile)

    # Plan command
    plan_parser = subparsers.add_parser(
        "plan", help="Print the configuration that would be submitted"
    )
    plan_parser.set_defaults(func=cmd_plan)

    # Show command
    show_parser = subparsers.add_parser(
        "show", help="Print declared devices and folders without contacting the daemon"
    )
    show_parser.set_defaults(func=cmd_show)

    # Install-keys command
    keys_parser = subparsers.add_parser(
        "install-keys", help="Copy cert.pem and key.pem into the config directory"
    )
    keys_parser.add_argument("--cert", type=str, default=None, help="Certificate to install")
    keys_parser.add_argument("--key", type=str, default=None, help="Private key to install")
    keys_parser.set_defaults(func=cmd_install_keys)

    args = parser.parse_args(argv)

    setup_logging(args.verbose, args.log_level, args.json)

    if not args.command:
        parser.print_help()
        return 1

    func = args.func
    try:
        if inspect.iscoroutinefunction(func):
            return asyncio.run(func(args))
        return func(args)
    except SyncthingInitError as e:
        logger.debug("Run failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
