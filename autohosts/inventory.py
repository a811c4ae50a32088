"""HTTP clients for the Registry host inventory and the Monitor target API."""

from __future__ import annotations

import base64
import json
import logging
import ssl
import urllib.error
import urllib.parse
import urllib.request
from typing import Any, Dict, Optional

from .config import Config
from .constants import MONITOR_TARGETS_PATH, REGISTRY_HOSTS_PATH
from .models import MonitorTargetsPayload, RegistryInventory

logger = logging.getLogger(__name__)


class FetchError(RuntimeError):
    """Raised when an upstream document cannot be fetched or is malformed."""


def _join_url(base: str, path: str, query: Dict[str, Any]) -> str:
    """Append an API path and query string to a base URL."""
    url = base.rstrip("/") + path
    if query:
        url = f"{url}?{urllib.parse.urlencode(query)}"
    return url


class InventoryClient:
    """Fetches the Registry and Monitor documents for one run.

    The Registry is queried with basic auth and an optional custom CA /
    client certificate. The Monitor is queried without credentials. Every
    failure raises FetchError; nothing is retried.
    """

    def __init__(self, config: Config) -> None:
        self.config = config

    @property
    def registry_url(self) -> str:
        return _join_url(
            self.config.baseurl_satellite,
            REGISTRY_HOSTS_PATH,
            {"per_page": self.config.registry_page_size},
        )

    @property
    def monitor_url(self) -> str:
        return _join_url(self.config.baseurl_prometheus, MONITOR_TARGETS_PATH, {"state": "active"})

    def _registry_context(self) -> Optional[ssl.SSLContext]:
        """Build a TLS context for the Registry, or None for the default."""
        cfg = self.config
        if not cfg.api_certfile and not cfg.api_client_cert:
            return None
        context = ssl.create_default_context(cafile=cfg.api_certfile or None)
        if cfg.api_client_cert:
            context.load_cert_chain(cfg.api_client_cert, keyfile=cfg.api_client_key or None)
        return context

    def _registry_headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.config.api_user:
            token = f"{self.config.api_user}:{self.config.api_password}".encode("utf-8")
            headers["Authorization"] = "Basic " + base64.b64encode(token).decode("ascii")
        return headers

    def _get_json(
        self,
        upstream: str,
        url: str,
        headers: Dict[str, str],
        context: Optional[ssl.SSLContext] = None,
    ) -> Dict[str, Any]:
        """GET one JSON object, converting every failure into FetchError."""
        logger.debug("Fetching %s document from %s", upstream, url)
        request = urllib.request.Request(url, headers=headers)
        try:
            with urllib.request.urlopen(
                request, timeout=self.config.api_timeout, context=context
            ) as response:
                payload = json.loads(response.read().decode("utf-8"))
        except urllib.error.HTTPError as exc:
            raise FetchError(f"{upstream} request to {url} failed: HTTP {exc.code}") from exc
        except (urllib.error.URLError, TimeoutError, OSError) as exc:
            raise FetchError(f"{upstream} request to {url} failed: {exc}") from exc
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise FetchError(f"{upstream} response from {url} is not valid JSON: {exc}") from exc

        if not isinstance(payload, dict):
            raise FetchError(f"{upstream} response from {url} is not a JSON object")
        return payload

    def fetch_registry(self) -> RegistryInventory:
        """Fetch the Registry host listing."""
        cfg = self.config
        if not cfg.baseurl_satellite:
            raise FetchError("Registry base URL (baseurl_satellite) is not configured")
        try:
            context = self._registry_context()
        except (OSError, ssl.SSLError) as exc:
            raise FetchError(f"cannot load Registry TLS certificates: {exc}") from exc
        url = self.registry_url
        payload = self._get_json("Registry", url, self._registry_headers(), context)
        if not isinstance(payload.get("results"), list):
            raise FetchError(f"Registry response from {url} has no results array")
        returned = len(payload["results"])
        # subtotal is the filtered count; total counts every host.
        expected = payload.get("subtotal", payload.get("total"))
        if isinstance(expected, int) and not isinstance(expected, bool) and expected > returned:
            raise FetchError(
                f"Registry response from {url} holds {returned} of {expected} hosts;"
                " raise registry_page_size"
            )
        inventory = RegistryInventory.from_dict(payload)
        logger.info("Registry returned %d hosts", len(inventory.hosts))
        return inventory

    def fetch_monitor(self) -> MonitorTargetsPayload:
        """Fetch the Monitor's currently active scrape targets."""
        if not self.config.baseurl_prometheus:
            raise FetchError("Monitor base URL (baseurl_prometheus) is not configured")
        url = self.monitor_url
        payload = self._get_json("Monitor", url, {"Accept": "application/json"})
        status = payload.get("status")
        if status is not None and status != "success":
            raise FetchError(f"Monitor response from {url} has status {status!r}")
        data = payload.get("data")
        if not isinstance(data, dict) or not isinstance(data.get("activeTargets"), list):
            raise FetchError(f"Monitor response from {url} has no data.activeTargets array")
        return MonitorTargetsPayload.from_dict(payload)
