from __future__ import annotations

import contextlib
import io
import json
import os
from pathlib import Path
import sys
import tempfile
import unittest
from unittest.mock import patch

# Ensure package imports work when tests are discovered as top-level modules.
sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from autohosts import __version__
from autohosts.constants import CONFIG_ENV_VAR
from autohosts.inventory import FetchError, InventoryClient
from autohosts.models import MonitorTargetsPayload, RegistryInventory
from autohosts.workflow import main


def _write_config(directory: Path, **overrides) -> Path:
    """Write a YAML config pointing the manifest into `directory`."""
    out = directory / "autohosts.json"
    lines = [
        "baseurl_satellite: https://satellite.example.test",
        "baseurl_prometheus: http://prometheus.example.test:9090",
        f"target_filename: {out}",
        "target_labels:",
        "  autohosts: 'true'",
        "  env: prod",
        "autohosts_label: autohosts",
        "exclude_host_prefix: [tmp-]",
    ]
    lines.extend(f"{key}: {value}" for key, value in overrides.items())
    path = directory / "config.yml"
    path.write_text("\n".join(lines) + "\n")
    return path


def _monitor(*instances: str) -> MonitorTargetsPayload:
    return MonitorTargetsPayload.from_dict(
        {
            "status": "success",
            "data": {
                "activeTargets": [
                    {"labels": {"instance": f"{name}:9100", "job": "node_exporter"}}
                    for name in instances
                ]
            },
        }
    )


def _registry() -> RegistryInventory:
    return RegistryInventory.from_dict(
        {
            "results": [
                {"name": "web1.example.com", "ip": "10.0.0.1", "subscription_status": 0, "operatingsystem_id": 2},
                {"name": "web2.example.com", "ip": "10.0.0.2", "subscription_status": 0, "operatingsystem_id": 2},
                {"name": "tmp-ci.example.com", "ip": "10.0.0.3", "subscription_status": 0, "operatingsystem_id": 2},
                {"name": "old.example.com", "ip": "10.0.0.4", "subscription_status": 5},
            ]
        }
    )


class WorkflowRunTests(unittest.TestCase):
    """Integration tests for the CLI run with stubbed upstream fetches."""

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self._tmp.name)
        self.out = self.dir / "autohosts.json"

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _run(self, argv: list[str], monitor=None, registry=None) -> int:
        monitor_patch = (
            {"side_effect": monitor} if isinstance(monitor, Exception) else {"return_value": monitor}
        )
        with patch.object(InventoryClient, "fetch_monitor", **monitor_patch):
            with patch.object(InventoryClient, "fetch_registry", return_value=registry):
                return main(argv)

    def test_run_writes_manifest(self) -> None:
        """New, subscribed, non-excluded hosts end up in the manifest file.

        Expected behavior:
        - web1 is already monitored, tmp-ci is excluded, old is unsubscribed.
        - only web2 is written, with the configured labels.
        """
        config = _write_config(self.dir)
        rc = self._run(["--config", str(config)], monitor=_monitor("web1"), registry=_registry())

        self.assertEqual(rc, 0)
        data = json.loads(self.out.read_text())
        self.assertEqual(
            data, [{"labels": {"autohosts": "true", "env": "prod"}, "targets": ["web2:9100"]}]
        )
        self.assertFalse((self.dir / "autohosts.json.tmp").exists())

    def test_config_from_environment(self) -> None:
        config = _write_config(self.dir, autohosts_port=9182)
        with patch.dict(os.environ, {CONFIG_ENV_VAR: str(config)}):
            rc = self._run([], monitor=_monitor("web1"), registry=_registry())
        self.assertEqual(rc, 0)
        self.assertEqual(json.loads(self.out.read_text())[0]["targets"], ["web2:9182"])

    def test_empty_monitor_keeps_previous_manifest(self) -> None:
        """An empty Monitor snapshot aborts without touching the output file."""
        config = _write_config(self.dir)
        self.out.write_text('[{"labels": {}, "targets": ["keep:9100"]}]\n')

        rc = self._run(["--config", str(config)], monitor=_monitor(), registry=_registry())

        self.assertEqual(rc, 1)
        self.assertEqual(self.out.read_text(), '[{"labels": {}, "targets": ["keep:9100"]}]\n')

    def test_fetch_failure_is_fatal(self) -> None:
        config = _write_config(self.dir)
        rc = self._run(
            ["--config", str(config)],
            monitor=FetchError("Monitor request failed"),
            registry=_registry(),
        )
        self.assertEqual(rc, 1)
        self.assertFalse(self.out.exists())

    def test_unreadable_previous_manifest_is_replaced(self) -> None:
        config = _write_config(self.dir)
        self.out.write_text("{not json")
        rc = self._run(["--config", str(config)], monitor=_monitor("web1"), registry=_registry())
        self.assertEqual(rc, 0)
        self.assertEqual(json.loads(self.out.read_text())[0]["targets"], ["web2:9100"])

    def test_undecodable_previous_manifest_is_replaced(self) -> None:
        """Invalid UTF-8 in the old manifest must not block the new one."""
        config = _write_config(self.dir)
        self.out.write_bytes(b"\xff\xfe[]")
        rc = self._run(["--config", str(config)], monitor=_monitor("web1"), registry=_registry())
        self.assertEqual(rc, 0)
        self.assertEqual(json.loads(self.out.read_text())[0]["targets"], ["web2:9100"])

    def test_misshapen_previous_manifest_is_replaced(self) -> None:
        """Valid JSON with list labels or string targets counts as no manifest."""
        config = _write_config(self.dir)
        for previous in (
            b'[{"labels": ["x"], "targets": []}]',
            b'[{"labels": "x", "targets": []}]',
            b'[{"labels": {}, "targets": "web9:9100"}]',
        ):
            with self.subTest(previous=previous):
                self.out.write_bytes(previous)
                rc = self._run(
                    ["--config", str(config)], monitor=_monitor("web1"), registry=_registry()
                )
                self.assertEqual(rc, 0)
                self.assertEqual(json.loads(self.out.read_text())[0]["targets"], ["web2:9100"])

    def test_dry_run_prints_without_writing(self) -> None:
        config = _write_config(self.dir)
        stdout = io.StringIO()
        with contextlib.redirect_stdout(stdout):
            rc = self._run(
                ["--config", str(config), "--dry-run"],
                monitor=_monitor("web1"),
                registry=_registry(),
            )
        self.assertEqual(rc, 0)
        self.assertEqual(json.loads(stdout.getvalue())[0]["targets"], ["web2:9100"])
        self.assertFalse(self.out.exists())

    def test_missing_config_is_fatal(self) -> None:
        rc = main(["--config", str(self.dir / "absent.yml")])
        self.assertEqual(rc, 1)

    def test_version(self) -> None:
        stdout = io.StringIO()
        with contextlib.redirect_stdout(stdout):
            rc = main(["--version"])
        self.assertEqual(rc, 0)
        self.assertEqual(stdout.getvalue().strip(), f"autohosts {__version__}")


if __name__ == "__main__":
    unittest.main()
