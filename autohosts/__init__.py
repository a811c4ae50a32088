"""Public API for reconciling Registry hosts against Monitor targets."""

__version__ = "1.0.0"

from .config import Config, ConfigError, load_config, resolve_config_path, write_config
from .constants import fully_qualify, instance_host, short_name
from .core import (
    EmptyKnownHostsError,
    HostDecision,
    HostFilter,
    ReconcileResult,
    Reconciler,
    SkipReason,
    build_known_hosts,
    reconcile_inventories,
)
from .inventory import FetchError, InventoryClient
from .manifest import ManifestWriteError, ManifestWriter, load_manifest, render_manifest
from .models import (
    MonitorTarget,
    MonitorTargetsPayload,
    RegistryHost,
    RegistryInventory,
    TargetManifest,
)

__all__ = [
    "Config",
    "ConfigError",
    "EmptyKnownHostsError",
    "FetchError",
    "HostDecision",
    "HostFilter",
    "InventoryClient",
    "ManifestWriteError",
    "ManifestWriter",
    "MonitorTarget",
    "MonitorTargetsPayload",
    "ReconcileResult",
    "Reconciler",
    "RegistryHost",
    "RegistryInventory",
    "SkipReason",
    "TargetManifest",
    "build_known_hosts",
    "fully_qualify",
    "instance_host",
    "load_config",
    "load_manifest",
    "reconcile_inventories",
    "render_manifest",
    "resolve_config_path",
    "short_name",
    "write_config",
]
