"""Configuration provider following Black Box Design principles."""
import logging
import os
from dataclasses import Field, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Tuple, Union, get_args, get_origin

import yaml

from kubebreak.errors import ConfigError


@dataclass
class WorkshopConfig:
    """Workshop application configuration."""
    namespace: str = "workshop-app"
    app_version: str = "1.0"
    node_port: int = 30080
    kubectl_binary: str = "kubectl"
    kubectl_timeout: int = 300
    coredns_backup_path: str = "/tmp/coredns-backup.yaml"
    guide_path: Optional[str] = None
    http_timeout: float = 5.0
    namespace_delete_deadline: int = 300

    def app_url(self, node_ip: str, path: str = "") -> str:
        """URL of the frontend NodePort on the given node."""
        return f"http://{node_ip}:{self.node_port}{path}"


@dataclass
class ClusterConfig:
    """Single-node cluster installer configuration."""
    k8s_version: str = "1.28"
    pod_cidr: str = "10.244.0.0/16"
    calico_version: str = "v3.26.1"
    default_hostname: str = "k8s-master"
    local_path_version: str = "v0.0.24"
    host_root: str = "/"
    min_cpu_cores: int = 2
    min_ram_gb: int = 2
    min_disk_gb: int = 20
    required_ports: List[int] = field(
        default_factory=lambda: [6443, 2379, 2380, 10250, 10259, 10257]
    )
    firewall_ports: List[str] = field(
        default_factory=lambda: [
            "6443", "2379-2380", "10250", "10259", "10257", "30000-32767", "179", "4789",
        ]
    )
    calico_ready_timeout: int = 300
    stabilize_seconds: int = 30

    @property
    def calico_manifest_url(self) -> str:
        """Calico manifest download URL for the configured version."""
        return (
            "https://raw.githubusercontent.com/projectcalico/calico/"
            f"{self.calico_version}/manifests/calico.yaml"
        )

    @property
    def local_path_manifest_url(self) -> str:
        """local-path provisioner manifest URL for the configured version."""
        return (
            "https://raw.githubusercontent.com/rancher/local-path-provisioner/"
            f"{self.local_path_version}/deploy/local-path-storage.yaml"
        )

    def host_path(self, path: str) -> Path:
        """Resolve an absolute host path under host_root."""
        return Path(self.host_root) / path.lstrip("/")


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"

    def __post_init__(self):
        self.level = str(self.level).upper()
        if not isinstance(logging.getLevelName(self.level), int):
            raise ConfigError(f"Invalid log level: {self.level}")


class ConfigProvider(Protocol):
    """Protocol for configuration providers."""

    def get_workshop_config(self) -> WorkshopConfig:
        """Get workshop configuration."""
        ...

    def get_cluster_config(self) -> ClusterConfig:
        """Get cluster installer configuration."""
        ...

    def get_logging_config(self) -> LoggingConfig:
        """Get logging configuration."""
        ...


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {value!r}")


def _float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {value!r}")


def _coerce_scalar(key: str, kind: type, value: Any) -> Any:
    if kind is str:
        if not isinstance(value, str):
            raise ConfigError(f"'{key}' must be a string, got {value!r} (quote it in YAML)")
        return value

    expected = "an integer" if kind is int else "a number"
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ConfigError(f"'{key}' must be {expected}, got {value!r}")
    if kind is int and isinstance(value, float) and not value.is_integer():
        raise ConfigError(f"'{key}' must be {expected}, got {value!r}")
    try:
        return kind(value)
    except ValueError:
        raise ConfigError(f"'{key}' must be {expected}, got {value!r}")


def _coerce(key: str, spec: Field, value: Any) -> Any:
    """Convert a YAML override to the type declared on the dataclass field."""
    kind = spec.type
    if get_origin(kind) is Union:
        if value is None and type(None) in get_args(kind):
            return None
        kind = next(arg for arg in get_args(kind) if arg is not type(None))

    if get_origin(kind) is list:
        if not isinstance(value, list):
            raise ConfigError(f"'{key}' must be a list, got {value!r}")
        item_kind = get_args(kind)[0]
        return [_coerce_scalar(f"{key}[{i}]", item_kind, item) for i, item in enumerate(value)]

    return _coerce_scalar(key, kind, value)


class EnvConfigProvider:
    """Environment-based configuration provider."""

    def get_workshop_config(self) -> WorkshopConfig:
        """Get workshop configuration from environment variables."""
        return WorkshopConfig(
            namespace=os.getenv("KUBEBREAK_NAMESPACE", "workshop-app"),
            node_port=_int_env("KUBEBREAK_NODE_PORT", 30080),
            kubectl_binary=os.getenv("KUBEBREAK_KUBECTL", "kubectl"),
            kubectl_timeout=_int_env("KUBEBREAK_KUBECTL_TIMEOUT", 300),
            coredns_backup_path=os.getenv("KUBEBREAK_COREDNS_BACKUP", "/tmp/coredns-backup.yaml"),
            guide_path=os.getenv("KUBEBREAK_GUIDE") or None,
            http_timeout=_float_env("KUBEBREAK_HTTP_TIMEOUT", 5.0),
        )

    def get_cluster_config(self) -> ClusterConfig:
        """Get cluster installer configuration from environment variables."""
        return ClusterConfig(
            k8s_version=os.getenv("KUBEBREAK_K8S_VERSION", "1.28"),
            pod_cidr=os.getenv("KUBEBREAK_POD_CIDR", "10.244.0.0/16"),
            calico_version=os.getenv("KUBEBREAK_CALICO_VERSION", "v3.26.1"),
            default_hostname=os.getenv("KUBEBREAK_HOSTNAME", "k8s-master"),
            host_root=os.getenv("KUBEBREAK_HOST_ROOT", "/"),
        )

    def get_logging_config(self) -> LoggingConfig:
        """Get logging configuration from environment variables."""
        return LoggingConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())


class YamlConfigProvider:
    """
    YAML file configuration layered over another provider.

    The file may contain ``workshop``, ``cluster`` and ``logging`` sections
    whose keys match the dataclass field names. Keys that are absent keep
    the base provider's value.
    """

    SECTIONS = ("workshop", "cluster", "logging")

    def __init__(self, path: str, base: Optional[ConfigProvider] = None):
        self.path = Path(path)
        self.base = base or EnvConfigProvider()
        self._data = self._load()

    def _load(self) -> Dict[str, Any]:
        try:
            with open(self.path) as f:
                data = yaml.safe_load(f) or {}
        except FileNotFoundError:
            raise ConfigError(f"Config file not found: {self.path}")
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {self.path}: {e}")

        if not isinstance(data, dict):
            raise ConfigError(f"Config file {self.path} must contain a mapping")

        unknown = set(data) - set(self.SECTIONS)
        if unknown:
            raise ConfigError(f"Unknown config sections: {', '.join(sorted(unknown))}")
        return data

    def _overlay(self, section: str, base_value):
        overrides = self._data.get(section) or {}
        if not isinstance(overrides, dict):
            raise ConfigError(f"Section '{section}' must be a mapping")

        known = {f.name: f for f in fields(base_value)}
        unknown = set(overrides) - set(known)
        if unknown:
            raise ConfigError(
                f"Unknown keys in '{section}': {', '.join(sorted(unknown))}"
            )
        values = {
            name: _coerce(f"{section}.{name}", known[name], value)
            for name, value in overrides.items()
        }
        return replace(base_value, **values)

    def get_workshop_config(self) -> WorkshopConfig:
        return self._overlay("workshop", self.base.get_workshop_config())

    def get_cluster_config(self) -> ClusterConfig:
        return self._overlay("cluster", self.base.get_cluster_config())

    def get_logging_config(self) -> LoggingConfig:
        return self._overlay("logging", self.base.get_logging_config())


def load_provider(config_path: Optional[str] = None) -> ConfigProvider:
    """Return the YAML provider when a path is given, else the env provider."""
    if config_path:
        return YamlConfigProvider(config_path)
    return EnvConfigProvider()


def split_port_spec(spec: str) -> Tuple[str, str]:
    """Return (port, protocol) for a firewall port spec; VXLAN 4789 is UDP."""
    return spec, "udp" if spec == "4789" else "tcp"
