"""Serialization and atomic replacement of the target manifest file."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

from .models import TargetManifest

logger = logging.getLogger(__name__)

MANIFEST_MODE = 0o644


class ManifestWriteError(RuntimeError):
    """Raised when the manifest cannot be written or moved into place."""


def render_manifest(manifest: TargetManifest) -> str:
    """Render the manifest in file-based service-discovery format.

    The discovery format is a list of entries; this tool always writes exactly
    one. Label keys are sorted, target order is preserved.
    """
    return json.dumps([manifest.to_dict()], indent=2, sort_keys=True) + "\n"


def load_manifest(path: str) -> Optional[TargetManifest]:
    """Load the first entry of a manifest file, or None when missing or empty.

    Undecodable or malformed content raises ValueError.
    """
    file_path = Path(path)
    if not file_path.exists():
        return None
    content = file_path.read_text(encoding="utf-8").strip()
    if not content:
        return None
    data = json.loads(content)
    if not isinstance(data, list) or not data or not isinstance(data[0], dict):
        return None
    return TargetManifest.from_dict(data[0])


class ManifestWriter:
    """Writes a manifest to a temporary path and renames it over the final path.

    The consumer re-reads the final path on its own schedule, so it must only
    ever see a complete previous or a complete new manifest.
    """

    def __init__(self, path: str, tmp_path: str = "") -> None:
        if not path:
            raise ManifestWriteError("manifest output path is empty")
        self.path = path
        self.tmp_path = tmp_path or path + ".tmp"

    def _discard_tmp(self) -> None:
        """Remove a leftover temporary file after a failed write."""
        try:
            Path(self.tmp_path).unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Cannot remove temporary manifest %s: %s", self.tmp_path, exc)

    def write(self, manifest: TargetManifest) -> None:
        """Atomically replace the manifest file with the given manifest."""
        content = render_manifest(manifest)
        try:
            with open(self.tmp_path, "w", encoding="utf-8") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(self.tmp_path, MANIFEST_MODE)
        except OSError as exc:
            self._discard_tmp()
            raise ManifestWriteError(f"cannot write {self.tmp_path}: {exc}") from exc

        try:
            os.replace(self.tmp_path, self.path)
        except OSError as exc:
            self._discard_tmp()
            raise ManifestWriteError(
                f"cannot rename {self.tmp_path} to {self.path}: {exc}"
            ) from exc
        logger.info("Wrote %d targets to %s", len(manifest.targets), self.path)
