"""Configuration models and helpers for the operator."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from managed_exceptions import InvalidArgumentException
from ipsync.constants import (
    CONFIG_SECTION,
    DEFAULT_CONNECT_TIMEOUT_SECONDS,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    MIN_INTERVAL_SECONDS,
)
from ipsync.models import Observer
from ipsync.services.confirmation import TrustAuthority
from ipsync.services.observers import ObserverRegistry
from ipsync.utils import DurationUtil


class KubernetesConfig(BaseModel):
    """How to reach the Kubernetes API server."""

    api_server: Optional[str] = Field(default=None, description="Explicit API server URL, e.g. https://10.0.0.1:6443.")
    token: Optional[str] = Field(default=None, description="Bearer token used with an explicit API server.")
    token_file: Optional[Path] = Field(default=None, description="File holding the bearer token, re-read on every request.")
    ca_file: Optional[Path] = Field(default=None, description="CA bundle used to verify the API server.")
    kubeconfig: Optional[Path] = Field(default=None, description="Kubeconfig file; defaults to $KUBECONFIG or ~/.kube/config.")
    context: Optional[str] = Field(default=None, description="Kubeconfig context; defaults to current-context.")
    insecure_skip_tls_verify: bool = Field(default=False)
    connect_timeout_seconds: float = Field(default=DEFAULT_CONNECT_TIMEOUT_SECONDS, gt=0)
    request_timeout_seconds: float = Field(default=DEFAULT_REQUEST_TIMEOUT_SECONDS, gt=0)

    @field_validator("token_file", "ca_file", "kubeconfig", mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Optional[Path]:
        if value is None or value == "":
            return None
        if isinstance(value, Path):
            return value
        return Path(str(value)).expanduser()


class OperatorConfig(BaseModel):
    """Everything one operator process needs, after file and CLI layers are merged."""

    node_name: Optional[str] = Field(default=None, description="Name of the node whose ExternalIP addresses are managed.")
    observers: List[Observer] = Field(default_factory=lambda: list(Observer), description="Observers to ask.")
    disabled_observers: List[Observer] = Field(default_factory=list, description="Observers removed from `observers`.")
    trust_factors: Dict[Observer, int] = Field(default_factory=dict, description="Trust factor overrides (1-3).")
    confirmations: Optional[int] = Field(default=None, ge=0, description="Explicit confirmation threshold override.")
    dry_run: bool = Field(default=False, description="Compute changes but never persist them.")
    strict: bool = Field(default=False, description="Remove ExternalIP addresses that were not confirmed.")
    interval_seconds: float = Field(default=MIN_INTERVAL_SECONDS, description="Seconds between reconciliation cycles.")
    cycle_deadline_seconds: Optional[float] = Field(default=None, gt=0, description="Deadline for all observers of one cycle.")
    request_timeout_seconds: float = Field(default=DEFAULT_REQUEST_TIMEOUT_SECONDS, gt=0)
    local_address: Optional[str] = Field(default=None, description="Local address outbound observer calls bind to.")
    max_threads: int = Field(default=16, ge=1, description="Workers of the request thread pool.")
    metrics_port: Optional[int] = Field(default=None, ge=1, le=65535, description="Port of the Prometheus endpoint.")
    kubernetes: KubernetesConfig = Field(default_factory=KubernetesConfig)

    @field_validator("observers", "disabled_observers", mode="before")
    @classmethod
    def _parse_observers(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            value = [part for part in value.split(",") if part.strip()]
        return [item if isinstance(item, Observer) else ObserverRegistry.parse(str(item)) for item in value]

    @field_validator("trust_factors", mode="before")
    @classmethod
    def _parse_trust_factors(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, (list, tuple)):
            return dict(TrustAuthority.parse_trust_factor(str(pair)) for pair in value)
        if isinstance(value, dict):
            return {
                observer if isinstance(observer, Observer) else ObserverRegistry.parse(str(observer)): trust_factor
                for observer, trust_factor in value.items()
            }
        return value

    @field_validator("trust_factors")
    @classmethod
    def _validate_trust_factors(cls, value: Dict[Observer, int]) -> Dict[Observer, int]:
        for observer, trust_factor in value.items():
            if not TrustAuthority.is_valid(trust_factor):
                raise ValueError(f"trust factor of {observer} must be one of 1, 2 or 3, got: {trust_factor}")
        return value

    @field_validator("interval_seconds", "cycle_deadline_seconds", mode="before")
    @classmethod
    def _parse_duration(cls, value: Any) -> Any:
        if value is None or isinstance(value, (int, float)):
            return value
        return DurationUtil.parse_seconds(str(value))

    @field_validator("interval_seconds")
    @classmethod
    def _validate_interval(cls, value: float) -> float:
        if value < MIN_INTERVAL_SECONDS:
            raise ValueError(
                f"interval must be {DurationUtil.format_seconds(MIN_INTERVAL_SECONDS)} or greater, "
                f"got: {DurationUtil.format_seconds(value)}"
            )
        return value

    @model_validator(mode="after")
    def _validate_enabled_observers(self) -> "OperatorConfig":
        if not self.enabled_observers():
            raise ValueError("at least one observer must stay enabled")
        return self

    def enabled_observers(self) -> List[Observer]:
        disabled = set(self.disabled_observers)
        return [observer for observer in dict.fromkeys(self.observers) if observer not in disabled]

    def trust_authority(self) -> TrustAuthority:
        return TrustAuthority(self.trust_factors)

    def require_node_name(self) -> str:
        if not self.node_name or not self.node_name.strip():
            raise InvalidArgumentException("A node name is required (--node or IPSYNC_NODE)")
        return self.node_name.strip()


def build_config(raw: Dict[str, Any]) -> OperatorConfig:
    """Validate a raw mapping, turning validation errors into configuration errors."""

    try:
        return OperatorConfig.model_validate(raw)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or 'config'}: {error['msg']}"
            for error in e.errors()
        )
        raise InvalidArgumentException(f"Invalid configuration: {problems}") from e


def load_raw_config(path: Optional[Path]) -> Dict[str, Any]:
    """Read the ``ipsync.operator`` section of a YAML file (or nothing)."""

    if path is None:
        return {}
    path = Path(path).expanduser()
    if not path.exists():
        raise InvalidArgumentException(f"Config file not found at: {path}", diagnostic_details={"path": str(path)})

    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise InvalidArgumentException(f"Config file {path} must contain a mapping")

    section: Any = data
    for key in CONFIG_SECTION:
        if not isinstance(section, dict):
            break
        section = section.get(key, {})
    return dict(section or {})


def load_config(path: Optional[Path] = None, overrides: Optional[Dict[str, Any]] = None) -> OperatorConfig:
    """Merge the YAML file with explicit overrides; ``None`` overrides are ignored."""

    raw = load_raw_config(path)
    for key, value in (overrides or {}).items():
        if value is None:
            continue
        if key == "kubernetes" and isinstance(value, dict):
            kubernetes = dict(raw.get("kubernetes") or {})
            kubernetes.update({k: v for k, v in value.items() if v is not None})
            raw["kubernetes"] = kubernetes
        else:
            raw[key] = value
    return build_config(raw)
