"""Shared defaults and host-name utilities for target reconciliation."""

from __future__ import annotations

import re
from typing import Tuple

DEFAULT_CONFIG_PATH = "/etc/autohosts/config.yml"
CONFIG_ENV_VAR = "AUTOHOSTSCFG"

DEFAULT_AUTOHOSTS_PORT = 9100
DEFAULT_EXPORTER_JOB = "node_exporter"
DEFAULT_API_TIMEOUT = 30.0
DEFAULT_REGISTRY_PAGE_SIZE = 10000

REGISTRY_HOSTS_PATH = "/api/v2/hosts"
MONITOR_TARGETS_PATH = "/api/v1/targets"

# Registry subscription_status value for a valid, subscribed host.
SUBSCRIBED = 0

_PORT_SUFFIX_RE = re.compile(r"^(?P<host>.+):(?P<port>\d+)$")


def short_name(name: str) -> str:
    """Return the portion of a host name before the first dot."""
    return name.split(".", 1)[0]


def fully_qualify(name: str, default_domain: str) -> Tuple[str, str]:
    """Return ``(short, fqdn)`` for a host name.

    Empty components are dropped, so ``foo..example.com`` becomes
    ``foo.example.com``. A bare name gets ``default_domain`` appended.
    """
    parts = [part for part in name.split(".") if part]
    if not parts:
        return "", ""
    short = parts[0]
    if len(parts) > 1:
        return short, ".".join(parts)
    if default_domain:
        return short, f"{short}.{default_domain.strip('.')}"
    return short, short


def instance_host(instance: str) -> str:
    """Strip the port (and IPv6 brackets) from a Monitor ``instance`` label."""
    if instance.startswith("["):
        host, _, _ = instance[1:].partition("]")
        return host
    # Bare IPv6 literal without brackets carries no port.
    if instance.count(":") > 1:
        return instance
    match = _PORT_SUFFIX_RE.match(instance)
    if match is None:
        return instance
    return match.group("host")
