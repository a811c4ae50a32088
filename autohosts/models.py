"""Structured models for Registry/Monitor API payloads and the target manifest."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


def _optional_str(value: Any) -> Optional[str]:
    """Return value as text, or None when the field is absent/null."""
    if value is None:
        return None
    return str(value)


def _optional_int(value: Any) -> Optional[int]:
    """Parse an integer field, returning None when absent or not numeric."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        number = float(str(value).strip())
    except ValueError:
        return None
    # Whole-number floats such as 0.0 count; 0.5 does not.
    if not number.is_integer():
        return None
    return int(number)


@dataclass
class RegistryHost:
    """One host record from the Registry inventory.

    Absent fields are kept as ``None`` so that "missing" and "empty" stay
    distinguishable for the host filter.
    """

    name: Optional[str] = None
    ip: Optional[str] = None
    subscription_status: Optional[int] = None
    operatingsystem_id: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "RegistryHost":
        """Deserialize RegistryHost from a plain dictionary."""
        source = data or {}
        return cls(
            name=_optional_str(source.get("name")),
            ip=_optional_str(source.get("ip")),
            subscription_status=_optional_int(source.get("subscription_status")),
            operatingsystem_id=_optional_int(source.get("operatingsystem_id")),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize RegistryHost, omitting absent fields."""
        fields = {
            "name": self.name,
            "ip": self.ip,
            "subscription_status": self.subscription_status,
            "operatingsystem_id": self.operatingsystem_id,
        }
        return {key: value for key, value in fields.items() if value is not None}


@dataclass
class RegistryInventory:
    """Top-level Registry host listing (``results`` array)."""

    hosts: List[RegistryHost] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "RegistryInventory":
        """Deserialize RegistryInventory, skipping non-object entries."""
        source = data or {}
        results = source.get("results") or []
        return cls(
            hosts=[RegistryHost.from_dict(item) for item in results if isinstance(item, dict)]
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize RegistryInventory into a dictionary."""
        return {"results": [host.to_dict() for host in self.hosts]}


@dataclass
class MonitorTarget:
    """One active scrape target reported by the Monitor."""

    labels: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "MonitorTarget":
        """Deserialize MonitorTarget from a plain dictionary."""
        source = data or {}
        labels_in = source.get("labels")
        if not isinstance(labels_in, dict):
            labels_in = {}
        labels = {
            str(key): str(value) for key, value in labels_in.items() if value is not None
        }
        return cls(labels=labels)

    @property
    def job(self) -> Optional[str]:
        return self.labels.get("job")

    @property
    def instance(self) -> Optional[str]:
        return self.labels.get("instance")

    def to_dict(self) -> Dict[str, Any]:
        """Serialize MonitorTarget into a dictionary."""
        return {"labels": dict(self.labels)}


@dataclass
class MonitorTargetsPayload:
    """Monitor active-targets document (``data.activeTargets``)."""

    active_targets: List[MonitorTarget] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "MonitorTargetsPayload":
        """Deserialize MonitorTargetsPayload from a plain dictionary."""
        source = data or {}
        inner = source.get("data")
        if not isinstance(inner, dict):
            inner = {}
        targets_in = inner.get("activeTargets") or []
        return cls(
            active_targets=[
                MonitorTarget.from_dict(item) for item in targets_in if isinstance(item, dict)
            ]
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize MonitorTargetsPayload into a dictionary."""
        return {
            "status": "success",
            "data": {"activeTargets": [target.to_dict() for target in self.active_targets]},
        }


@dataclass
class TargetManifest:
    """One file-based service-discovery entry: static labels plus targets."""

    labels: Dict[str, str] = field(default_factory=dict)
    targets: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "TargetManifest":
        """Deserialize TargetManifest from a plain dictionary."""
        source = data or {}
        labels_in = source.get("labels") or {}
        targets_in = source.get("targets") or []
        if not isinstance(labels_in, dict):
            raise ValueError("manifest labels must be a mapping")
        if not isinstance(targets_in, list):
            raise ValueError("manifest targets must be a list")
        return cls(
            labels={str(key): str(value) for key, value in labels_in.items()},
            targets=[str(target) for target in targets_in],
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize TargetManifest into a dictionary."""
        return {"labels": dict(self.labels), "targets": list(self.targets)}
