"""
Reconciliation logic: known-host snapshot, per-host filtering and manifest assembly.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
from typing import FrozenSet, Iterable, List, Optional

from .config import Config
from .constants import SUBSCRIBED, fully_qualify, instance_host, short_name
from .models import (
    MonitorTargetsPayload,
    RegistryHost,
    RegistryInventory,
    TargetManifest,
)

logger = logging.getLogger(__name__)


class EmptyKnownHostsError(RuntimeError):
    """Raised when the Monitor reports no externally-managed exporter targets."""


class SkipReason(str, Enum):
    """Why a Registry host was left out of the manifest."""

    MISSING_NAME = "missing_name"
    NOT_SUBSCRIBED = "not_subscribed"
    MISSING_IP = "missing_ip"
    EXCLUDED_HOST = "excluded_host"
    EXCLUDED_PREFIX = "excluded_prefix"
    ALREADY_KNOWN = "already_known"


@dataclass(frozen=True)
class HostDecision:
    """Filter outcome for one Registry record.

    Attributes:
        name: Registry name as received (empty when absent).
        short: Short host name, empty if the record had no usable name.
        fqdn: Fully-qualified name used for log output.
        target: ``short:port`` when the host is accepted, otherwise None.
        reason: Skip reason when the host is rejected, otherwise None.
    """

    name: str
    short: str = ""
    fqdn: str = ""
    target: Optional[str] = None
    reason: Optional[SkipReason] = None

    @property
    def accepted(self) -> bool:
        return self.target is not None


@dataclass(frozen=True)
class ReconcileResult:
    """Outputs produced by a single reconciliation pass."""

    manifest: TargetManifest
    known_hosts: FrozenSet[str]
    decisions: List[HostDecision]

    def skipped(self, reason: SkipReason) -> List[HostDecision]:
        """Return decisions rejected for the given reason, in input order."""
        return [decision for decision in self.decisions if decision.reason == reason]


def build_known_hosts(payload: MonitorTargetsPayload, config: Config) -> FrozenSet[str]:
    """Collect short names of hosts the Monitor already scrapes.

    Targets carrying the auto-label value were written by a previous run and
    are not counted. Only targets of the configured exporter job count.
    """
    auto_label = config.autohosts_label
    auto_value = config.autohosts_value
    known = set()
    for target in payload.active_targets:
        # Targets from our own manifest look like ordinary targets once scraped.
        if target.labels.get(auto_label) == auto_value:
            continue
        instance = target.instance
        job = target.job
        if instance is None or job is None or job != config.exporter_job:
            continue
        host = short_name(instance_host(instance))
        if not host:
            continue
        logger.debug("Monitor knows about: %s", instance)
        known.add(host)

    if not known:
        raise EmptyKnownHostsError(
            f"Monitor returned zero {config.exporter_job} targets; refusing to treat every host as new"
        )
    logger.info("Monitor targets found: %d", len(known))
    return frozenset(known)


class HostFilter:
    """Decides whether one Registry host belongs in the manifest.

    Checks run in a fixed order and the first failing check wins:
    name, subscription, IP, explicit exclusion, prefix exclusion, and
    finally whether the Monitor already scrapes the host.
    """

    def __init__(self, config: Config, known_hosts: Iterable[str]) -> None:
        self.config = config
        self.known_hosts = frozenset(known_hosts)
        self._exclude_hosts = frozenset(config.exclude_hosts)
        self._exclude_prefix = tuple(prefix for prefix in config.exclude_host_prefix if prefix)

    def _skip(
        self, host: RegistryHost, reason: SkipReason, short: str = "", fqdn: str = ""
    ) -> HostDecision:
        return HostDecision(name=host.name or "", short=short, fqdn=fqdn, reason=reason)

    def evaluate(self, host: RegistryHost) -> HostDecision:
        """Return the inclusion decision for one Registry record."""
        if not host.name:
            logger.debug("Skipping Registry record without a name")
            return self._skip(host, SkipReason.MISSING_NAME)

        short = short_name(host.name)
        _, fqdn = fully_qualify(host.name, self.config.default_domain)
        if not short:
            logger.debug("Skipping Registry record with unusable name %r", host.name)
            return self._skip(host, SkipReason.MISSING_NAME)

        if host.subscription_status != SUBSCRIBED:
            logger.info("Invalid subscription for %s", short)
            return self._skip(host, SkipReason.NOT_SUBSCRIBED, short, fqdn)

        if not host.ip:
            logger.info("No IPv4 address for %s", short)
            return self._skip(host, SkipReason.MISSING_IP, short, fqdn)

        # Informational only; virtual hosts are not excluded.
        if not host.operatingsystem_id:
            logger.warning("No operating system recorded for %s", short)

        if short in self._exclude_hosts:
            logger.info("Host %s is excluded", short)
            return self._skip(host, SkipReason.EXCLUDED_HOST, short, fqdn)

        if short.startswith(self._exclude_prefix):
            logger.info("Host %s matches an excluded prefix", short)
            return self._skip(host, SkipReason.EXCLUDED_PREFIX, short, fqdn)

        if short in self.known_hosts:
            logger.debug("Host %s is already monitored", short)
            return self._skip(host, SkipReason.ALREADY_KNOWN, short, fqdn)

        target = f"{short}:{self.config.autohosts_port}"
        logger.debug("Adding target %s (%s)", target, fqdn)
        return HostDecision(name=host.name, short=short, fqdn=fqdn, target=target)


class Reconciler:
    """Builds the target manifest from one Registry and one Monitor snapshot."""

    def __init__(self, config: Config) -> None:
        self.config = config

    def reconcile(
        self, inventory: RegistryInventory, payload: MonitorTargetsPayload
    ) -> ReconcileResult:
        """Compute the manifest of Registry hosts the Monitor does not scrape yet.

        High-level flow:
        1) Snapshot the externally-managed hosts the Monitor already knows.
        2) Run every Registry record through the host filter, in input order.
        3) Merge the static labels into a single manifest entry.
        """
        known_hosts = build_known_hosts(payload, self.config)
        host_filter = HostFilter(self.config, known_hosts)

        decisions = [host_filter.evaluate(host) for host in inventory.hosts]
        targets = [decision.target for decision in decisions if decision.target is not None]

        manifest = TargetManifest(labels=dict(self.config.target_labels), targets=targets)
        logger.info(
            "Registry hosts: %d, new targets: %d", len(inventory.hosts), len(targets)
        )
        return ReconcileResult(manifest=manifest, known_hosts=known_hosts, decisions=decisions)


def reconcile_inventories(
    inventory: RegistryInventory, payload: MonitorTargetsPayload, config: Config
) -> ReconcileResult:
    """Run one reconciliation pass with the given configuration."""
    return Reconciler(config).reconcile(inventory, payload)
