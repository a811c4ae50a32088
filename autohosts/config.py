"""YAML configuration loading, validation and defaulting."""

from __future__ import annotations

from dataclasses import dataclass, field
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from .constants import (
    CONFIG_ENV_VAR,
    DEFAULT_API_TIMEOUT,
    DEFAULT_AUTOHOSTS_PORT,
    DEFAULT_CONFIG_PATH,
    DEFAULT_EXPORTER_JOB,
    DEFAULT_REGISTRY_PAGE_SIZE,
)


class ConfigError(RuntimeError):
    """Raised when the configuration file is missing, unreadable or invalid."""


def _str_list(value: Any, key: str) -> List[str]:
    """Coerce a YAML sequence of scalars into a list of strings."""
    if value is None:
        return []
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        raise ConfigError(f"config {key} must be a list")
    return [str(item) for item in value]


def _str_map(value: Any, key: str) -> Dict[str, str]:
    """Coerce a YAML mapping into a str->str dictionary."""
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"config {key} must be a mapping")
    return {str(k): "" if v is None else str(v) for k, v in value.items()}


@dataclass
class Config:
    """Settings for one reconciliation run.

    Attributes:
        target_labels: Static labels written into every manifest. Must
            contain ``autohosts_label``.
        autohosts_label: Label key marking targets written by this tool.
        exclude_hosts: Short host names that are never added.
        exclude_host_prefix: Short-name prefixes that are never added.
    """

    api_certfile: str = ""
    api_client_cert: str = ""
    api_client_key: str = ""
    api_user: str = ""
    api_password: str = ""
    api_timeout: float = DEFAULT_API_TIMEOUT
    baseurl_satellite: str = ""
    baseurl_prometheus: str = ""
    registry_page_size: int = DEFAULT_REGISTRY_PAGE_SIZE
    exporter_job: str = DEFAULT_EXPORTER_JOB
    target_filename: str = ""
    target_filename_tmp: str = ""
    target_labels: Dict[str, str] = field(default_factory=dict)
    autohosts_label: str = ""
    autohosts_port: int = DEFAULT_AUTOHOSTS_PORT
    exclude_hosts: List[str] = field(default_factory=list)
    exclude_host_prefix: List[str] = field(default_factory=list)
    default_domain: str = ""

    @property
    def autohosts_value(self) -> str:
        """Label value identifying targets written by a previous run."""
        return self.target_labels.get(self.autohosts_label, "")

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "Config":
        """Build a validated Config with defaults applied."""
        source = data or {}
        try:
            config = cls(
                api_certfile=str(source.get("api_certfile") or ""),
                api_client_cert=str(source.get("api_client_cert") or ""),
                api_client_key=str(source.get("api_client_key") or ""),
                api_user=str(source.get("api_user") or ""),
                api_password=str(source.get("api_password") or ""),
                api_timeout=float(source.get("api_timeout") or DEFAULT_API_TIMEOUT),
                baseurl_satellite=str(source.get("baseurl_satellite") or ""),
                baseurl_prometheus=str(source.get("baseurl_prometheus") or ""),
                registry_page_size=int(
                    source.get("registry_page_size") or DEFAULT_REGISTRY_PAGE_SIZE
                ),
                exporter_job=str(source.get("exporter_job") or DEFAULT_EXPORTER_JOB),
                target_filename=str(source.get("target_filename") or ""),
                target_filename_tmp=str(source.get("target_filename_tmp") or ""),
                target_labels=_str_map(source.get("target_labels"), "target_labels"),
                autohosts_label=str(source.get("autohosts_label") or ""),
                autohosts_port=int(source.get("autohosts_port") or DEFAULT_AUTOHOSTS_PORT),
                exclude_hosts=_str_list(source.get("exclude_hosts"), "exclude_hosts"),
                exclude_host_prefix=_str_list(
                    source.get("exclude_host_prefix"), "exclude_host_prefix"
                ),
                default_domain=str(source.get("default_domain") or ""),
            )
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"invalid config value: {exc}") from exc
        config.validate()
        if not config.target_filename_tmp:
            config.target_filename_tmp = config.target_filename + ".tmp"
        return config

    def validate(self) -> None:
        """Check the settings the reconciliation engine relies on."""
        if not self.target_filename:
            raise ConfigError("required config target_filename is not specified")
        if not self.autohosts_label:
            raise ConfigError("required config autohosts_label is not specified")
        if self.autohosts_label not in self.target_labels:
            raise ConfigError("the specified autohosts_label is not defined in target_labels")
        if not 0 < self.autohosts_port < 65536:
            raise ConfigError(f"autohosts_port {self.autohosts_port} is out of range")

    def to_dict(self) -> Dict[str, Any]:
        """Serialize Config using the YAML key names."""
        return {
            "api_certfile": self.api_certfile,
            "api_client_cert": self.api_client_cert,
            "api_client_key": self.api_client_key,
            "api_user": self.api_user,
            "api_password": self.api_password,
            "api_timeout": self.api_timeout,
            "baseurl_satellite": self.baseurl_satellite,
            "baseurl_prometheus": self.baseurl_prometheus,
            "registry_page_size": self.registry_page_size,
            "exporter_job": self.exporter_job,
            "target_filename": self.target_filename,
            "target_filename_tmp": self.target_filename_tmp,
            "target_labels": dict(self.target_labels),
            "autohosts_label": self.autohosts_label,
            "autohosts_port": self.autohosts_port,
            "exclude_hosts": list(self.exclude_hosts),
            "exclude_host_prefix": list(self.exclude_host_prefix),
            "default_domain": self.default_domain,
        }


def resolve_config_path(flag_value: str = "") -> str:
    """Pick the config path from the flag, the environment, or the default."""
    if flag_value:
        return flag_value
    return os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH


def load_config(path: str) -> Config:
    """Read and validate a YAML config file."""
    try:
        content = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"cannot read config {path}: {exc}") from exc
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        raise ConfigError(f"cannot parse config {path}: {exc}") from exc
    if data is not None and not isinstance(data, dict):
        raise ConfigError(f"config {path} must contain a YAML mapping")
    return Config.from_dict(data)


def write_config(config: Config, path: str) -> None:
    """Write a Config as YAML, e.g. to bootstrap a new deployment."""
    Path(path).write_text(
        yaml.safe_dump(config.to_dict(), default_flow_style=False, sort_keys=True),
        encoding="utf-8",
    )
