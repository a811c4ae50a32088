"""Command-line entrypoint for one reconciliation run.

This module is a thin CLI layer around the core reconciliation logic.
It is responsible for:
- resolving and loading the YAML configuration
- fetching the Monitor and Registry documents
- writing the manifest file (or printing it on --dry-run)
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional

from . import __version__
from .config import ConfigError, load_config, resolve_config_path
from .core import EmptyKnownHostsError, reconcile_inventories
from .inventory import FetchError, InventoryClient
from .manifest import ManifestWriteError, ManifestWriter, load_manifest, render_manifest
from .models import TargetManifest

logger = logging.getLogger(__name__)

FATAL_ERRORS = (ConfigError, FetchError, EmptyKnownHostsError, ManifestWriteError)


def _configure_logging(debug: bool) -> None:
    """Send logs to stderr; only warnings and errors unless debugging."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _previous_manifest(path: str) -> Optional[TargetManifest]:
    """Load the current manifest file; an unreadable file counts as empty."""
    try:
        return load_manifest(path)
    except (OSError, ValueError) as exc:
        logger.warning("Ignoring unreadable previous manifest %s: %s", path, exc)
        return None


def _log_changes(previous: Optional[TargetManifest], current: TargetManifest) -> None:
    """Log which targets appear or disappear compared to the previous manifest."""
    before = set(previous.targets) if previous is not None else set()
    after = set(current.targets)
    for target in sorted(after - before):
        logger.info("New target: %s", target)
    for target in sorted(before - after):
        logger.info("Dropped target: %s", target)
    logger.info("Targets added: %d, removed: %d", len(after - before), len(before - after))


def _run(args: argparse.Namespace) -> int:
    """Execute one reconciliation run.

    Contract:
    - Any fetch failure or an empty Monitor snapshot aborts before the
      output file is touched.
    - The output file is replaced atomically or left as it was.
    """
    config_path = resolve_config_path(args.config)
    logger.debug("Using config %s", config_path)
    config = load_config(config_path)

    client = InventoryClient(config)
    # The Monitor is queried first so an empty snapshot aborts early.
    monitor_payload = client.fetch_monitor()
    inventory = client.fetch_registry()

    result = reconcile_inventories(inventory, monitor_payload, config)

    if args.dry_run:
        sys.stdout.write(render_manifest(result.manifest))
        return 0

    _log_changes(_previous_manifest(config.target_filename), result.manifest)
    ManifestWriter(config.target_filename, config.target_filename_tmp).write(result.manifest)
    return 0


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI parser."""
    parser = argparse.ArgumentParser(
        prog="autohosts",
        description="Add Registry hosts that are not yet monitored to a file-based target manifest",
    )
    parser.add_argument("--config", default="", help="Config file")
    parser.add_argument("--debug", action="store_true", help="Output debugging info")
    parser.add_argument(
        "--dry-run", action="store_true", help="Print the manifest instead of writing it"
    )
    parser.add_argument("--version", action="store_true", help="Print build info")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """CLI entrypoint; returns the process exit status."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f"autohosts {__version__}")
        return 0

    _configure_logging(args.debug)
    try:
        return _run(args)
    except FATAL_ERRORS as exc:
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
