"""Configuration dataclasses for the traffic-switch orchestrator.

Every section below is a frozen dataclass whose ``validate()`` rejects
out-of-range values with ``ValueError``.  Configs are **frozen** so one
instance can be shared between the orchestrator and its collaborators
without risking silent mutation.

Durations are in seconds throughout.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

from traffic_switch.domain.enums import Environment


def _filtered(cls: type, data: dict[str, Any]) -> dict[str, Any]:
    valid_keys = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in valid_keys}


# ===================================================================== #
#  Per-switch options                                                    #
# ===================================================================== #

@dataclass(frozen=True)
class SwitchOptions:
    """Options recognised by ``SwitchOrchestrator.switch_traffic``.

    Attributes
    ----------
    health_check_retries:
        Pre-check attempts before the target is declared unhealthy.
    health_check_interval_s:
        Sleep between pre-check attempts.
    enable_canary:
        Ramp a share of traffic to the target before the full cutover.
    canary_percentage:
        Share of traffic (0-100) routed to the target during the canary.
    deadline_s:
        Optional overall budget for the switch.  ``None`` means no deadline.
    """

    health_check_retries: int = 3
    health_check_interval_s: float = 5.0
    enable_canary: bool = False
    canary_percentage: int = 0
    deadline_s: float | None = None

    def validate(self) -> None:
        """Raise ``ValueError`` if any field is out of valid range."""
        if self.health_check_retries < 1:
            raise ValueError(
                f"health_check_retries must be >= 1, got {self.health_check_retries}"
            )
        if self.health_check_interval_s < 0:
            raise ValueError(
                f"health_check_interval_s must be >= 0, got {self.health_check_interval_s}"
            )
        if not 0 <= self.canary_percentage <= 100:
            raise ValueError(
                f"canary_percentage must be in [0, 100], got {self.canary_percentage}"
            )
        if self.deadline_s is not None and self.deadline_s <= 0:
            raise ValueError(f"deadline_s must be > 0, got {self.deadline_s}")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SwitchOptions:
        cfg = cls(**_filtered(cls, data))
        cfg.validate()
        return cfg


# ===================================================================== #
#  Phase configuration                                                   #
# ===================================================================== #

@dataclass(frozen=True)
class CanaryConfig:
    """Monitoring window of the canary phase.

    The defaults give exactly six polls: one every 5 s across 30 s.
    """

    monitor_duration_s: float = 30.0
    poll_interval_s: float = 5.0

    def validate(self) -> None:
        if self.monitor_duration_s <= 0:
            raise ValueError(
                f"monitor_duration_s must be > 0, got {self.monitor_duration_s}"
            )
        if self.poll_interval_s <= 0:
            raise ValueError(f"poll_interval_s must be > 0, got {self.poll_interval_s}")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CanaryConfig:
        cfg = cls(**_filtered(cls, data))
        cfg.validate()
        return cfg


@dataclass(frozen=True)
class PostSwitchConfig:
    """Stabilisation delay and retry budget of post-switch validation."""

    stabilization_delay_s: float = 5.0
    retries: int = 3
    interval_s: float = 2.0

    def validate(self) -> None:
        if self.stabilization_delay_s < 0:
            raise ValueError(
                f"stabilization_delay_s must be >= 0, got {self.stabilization_delay_s}"
            )
        if self.retries < 1:
            raise ValueError(f"retries must be >= 1, got {self.retries}")
        if self.interval_s < 0:
            raise ValueError(f"interval_s must be >= 0, got {self.interval_s}")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PostSwitchConfig:
        cfg = cls(**_filtered(cls, data))
        cfg.validate()
        return cfg


# ===================================================================== #
#  Collaborator configuration                                            #
# ===================================================================== #

@dataclass(frozen=True)
class ProbeConfig:
    """Where and how the HTTP health probe reaches each environment.

    Attributes
    ----------
    base_url_template:
        Base URL with an ``{environment}`` placeholder.
    ready_path:
        Readiness endpoint returning ``{"ready": bool, ...}``.
    detailed_path:
        Detailed health endpoint returning ``{"status": ..., "checks": ...}``.
    validation_path:
        Application-level endpoint hit once after the cutover.
    timeout_s:
        Per-call timeout of readiness and detailed checks.
    validation_timeout_s:
        Per-call timeout of the validation call.
    """

    base_url_template: str = "http://blue-green-demo-{environment}:3000"
    ready_path: str = "/ready"
    detailed_path: str = "/health/detailed"
    validation_path: str = "/api/health"
    timeout_s: float = 10.0
    validation_timeout_s: float = 5.0

    def validate(self) -> None:
        if "{environment}" not in self.base_url_template:
            raise ValueError(
                "base_url_template must contain an '{environment}' placeholder"
            )
        for name in ("ready_path", "detailed_path", "validation_path"):
            if not getattr(self, name).startswith("/"):
                raise ValueError(f"{name} must start with '/'")
        if self.timeout_s <= 0:
            raise ValueError(f"timeout_s must be > 0, got {self.timeout_s}")
        if self.validation_timeout_s <= 0:
            raise ValueError(
                f"validation_timeout_s must be > 0, got {self.validation_timeout_s}"
            )

    def base_url(self, environment: Environment) -> str:
        return self.base_url_template.format(environment=environment.value)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProbeConfig:
        cfg = cls(**_filtered(cls, data))
        cfg.validate()
        return cfg


_VALID_ROUTER_KINDS = frozenset({"kubectl", "memory"})


@dataclass(frozen=True)
class RouterConfig:
    """Which routing backend to drive and how to address it."""

    kind: str = "kubectl"
    ingress_name: str = "blue-green-demo"
    canary_ingress_name: str = "blue-green-demo-canary"
    host: str = "blue-green-demo.local"
    service_name_template: str = "blue-green-demo-{environment}"
    service_port: int = 80
    namespace: str = ""
    kubectl_binary: str = "kubectl"
    timeout_s: float = 10.0

    def validate(self) -> None:
        if self.kind not in _VALID_ROUTER_KINDS:
            raise ValueError(
                f"kind must be one of {sorted(_VALID_ROUTER_KINDS)}, got '{self.kind}'"
            )
        if not self.ingress_name:
            raise ValueError("ingress_name must not be empty")
        if "{environment}" not in self.service_name_template:
            raise ValueError(
                "service_name_template must contain an '{environment}' placeholder"
            )
        if not 0 < self.service_port < 65536:
            raise ValueError(f"service_port must be in (0, 65536), got {self.service_port}")
        if self.timeout_s <= 0:
            raise ValueError(f"timeout_s must be > 0, got {self.timeout_s}")

    def service_name(self, environment: Environment) -> str:
        return self.service_name_template.format(environment=environment.value)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RouterConfig:
        cfg = cls(**_filtered(cls, data))
        cfg.validate()
        return cfg


# ===================================================================== #
#  Orchestrator configuration                                            #
# ===================================================================== #

@dataclass(frozen=True)
class OrchestratorConfig:
    """Settings that apply to every switch an orchestrator runs.

    Attributes
    ----------
    initial_environment:
        Environment assumed live at startup (``"blue"`` or ``"green"``).
    canary:
        Canary monitoring window.
    post_switch:
        Post-switch stabilisation and retry budget.
    probe_timeout_s:
        Per-call bound on every probe call made by the orchestrator.
    router_timeout_s:
        Per-call bound on every router call made by the orchestrator.
    history_size:
        Outcomes kept in the in-memory switch history (0 = unlimited).
    """

    initial_environment: str = "blue"
    canary: CanaryConfig = field(default_factory=CanaryConfig)
    post_switch: PostSwitchConfig = field(default_factory=PostSwitchConfig)
    probe_timeout_s: float = 10.0
    router_timeout_s: float = 10.0
    history_size: int = 100

    def __post_init__(self) -> None:
        # Nested sections may arrive as plain dicts from JSON.
        if isinstance(self.canary, dict):
            object.__setattr__(self, "canary", CanaryConfig.from_dict(self.canary))
        if isinstance(self.post_switch, dict):
            object.__setattr__(
                self, "post_switch", PostSwitchConfig.from_dict(self.post_switch)
            )

    @property
    def initial(self) -> Environment:
        return Environment.parse(self.initial_environment)

    def validate(self) -> None:
        Environment.parse(self.initial_environment)
        self.canary.validate()
        self.post_switch.validate()
        if self.probe_timeout_s <= 0:
            raise ValueError(f"probe_timeout_s must be > 0, got {self.probe_timeout_s}")
        if self.router_timeout_s <= 0:
            raise ValueError(
                f"router_timeout_s must be > 0, got {self.router_timeout_s}"
            )
        if self.history_size < 0:
            raise ValueError(f"history_size must be >= 0, got {self.history_size}")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OrchestratorConfig:
        cfg = cls(**_filtered(cls, data))
        cfg.validate()
        return cfg


# ===================================================================== #
#  Config file sections                                                  #
# ===================================================================== #

_SECTIONS: dict[str, type] = {
    "orchestrator": OrchestratorConfig,
    "switch": SwitchOptions,
    "probe": ProbeConfig,
    "router": RouterConfig,
}


def load_config_from_json(json_str: str) -> dict[str, Any]:
    """Build typed sections from a JSON document.

    Known sections (``orchestrator``, ``switch``, ``probe``, ``router``) become
    validated config objects; anything else is passed through untouched.
    """
    document = json.loads(json_str)
    if not isinstance(document, dict):
        raise ValueError("config document must be a JSON object")
    return {
        name: _SECTIONS[name].from_dict(body)
        if name in _SECTIONS and isinstance(body, dict) else body
        for name, body in document.items()
    }


def load_config_file(path: str | Path) -> dict[str, Any]:
    """Load a JSON config file, filling absent sections with defaults."""
    sections = load_config_from_json(Path(path).read_text(encoding="utf-8"))
    for section, cls in _SECTIONS.items():
        sections.setdefault(section, cls())
    return sections
