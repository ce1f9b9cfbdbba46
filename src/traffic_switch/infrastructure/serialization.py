"""Serialization utilities for the traffic-switch orchestrator.

Converts value objects into JSON-serializable dicts for the CLI, dashboards
and the switch history.  Enums become their string values and timestamps are
rendered both as epoch seconds and as ISO-8601 UTC strings.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

from traffic_switch.domain.values import (
    EnvironmentComparison,
    HealthCheckResult,
    RollbackResult,
    SwitchOutcome,
    SwitchStatus,
)

# =========================================================================== #
#  Generic helpers                                                             #
# =========================================================================== #

def _enum_val(v: Any) -> Any:
    """Return the ``.value`` if *v* is an enum member, else *v* unchanged."""
    if hasattr(v, "value"):
        return v.value
    return v


def _iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


# =========================================================================== #
#  Value objects                                                               #
# =========================================================================== #

def health_check_to_dict(hc: HealthCheckResult | None) -> dict[str, Any] | None:
    if hc is None:
        return None
    return {
        "healthy": hc.healthy,
        "environment": _enum_val(hc.environment),
        "attempt": hc.attempt,
        "detail": dict(hc.detail) if hc.detail else {},
        "reason": hc.reason,
    }


def rollback_to_dict(rb: RollbackResult | None) -> dict[str, Any] | None:
    if rb is None:
        return None
    return {
        "success": rb.success,
        "rolled_back_to": _enum_val(rb.rolled_back_to),
        "timestamp": _iso(rb.timestamp),
        "reason": rb.reason,
        "automatic": rb.automatic,
    }


def outcome_to_dict(outcome: SwitchOutcome) -> dict[str, Any]:
    data: dict[str, Any] = {
        "switch_id": outcome.switch_id,
        "success": outcome.success,
        "previous_environment": _enum_val(outcome.previous_environment),
        "current_environment": _enum_val(outcome.current_environment),
        "requested_environment": _enum_val(outcome.requested_environment),
        "timestamp": _iso(outcome.timestamp),
        "duration_s": round(outcome.duration_s, 3),
        "health_check": health_check_to_dict(outcome.health_check),
        "post_switch_health": health_check_to_dict(outcome.post_switch_health),
        "canary_checks": [health_check_to_dict(c) for c in outcome.canary_checks],
        "rollback": rollback_to_dict(outcome.rollback),
    }
    if outcome.error:
        data["error"] = outcome.error
        data["error_kind"] = outcome.error_kind
    return data


def status_to_dict(status: SwitchStatus) -> dict[str, Any]:
    data: dict[str, Any] = {
        "current_environment": _enum_val(status.current_environment),
        "switch_in_progress": status.switch_in_progress,
        "committed_environment": _enum_val(status.committed_environment),
        "phase": _enum_val(status.phase),
    }
    if status.error:
        data["error"] = status.error
    return data


def comparison_to_dict(comparison: EnvironmentComparison) -> dict[str, Any]:
    first = comparison.first.environment.value
    second = comparison.second.environment.value
    return {
        "comparison": {
            first: health_check_to_dict(comparison.first),
            second: health_check_to_dict(comparison.second),
        },
        "recommendation": comparison.message,
        "timestamp": _iso(comparison.timestamp),
    }


# =========================================================================== #
#  Generic dispatch                                                            #
# =========================================================================== #

_SERIALIZERS: dict[type, Any] = {
    HealthCheckResult: health_check_to_dict,
    RollbackResult: rollback_to_dict,
    SwitchOutcome: outcome_to_dict,
    SwitchStatus: status_to_dict,
    EnvironmentComparison: comparison_to_dict,
}


def serialize(obj: Any) -> dict[str, Any]:
    """Serialize a known value object to a dict.

    Raises ``TypeError`` for unsupported types.
    """
    to_fn = _SERIALIZERS.get(type(obj))
    if to_fn is None:
        raise TypeError(f"No serializer registered for {type(obj).__name__}")
    return to_fn(obj)


def to_json(obj: Any, *, indent: int | None = 2) -> str:
    """Serialize a value object (or a list of them) to a JSON string."""
    if isinstance(obj, (list, tuple)):
        return json.dumps([serialize(o) for o in obj], indent=indent, default=str)
    return json.dumps(serialize(obj), indent=indent, default=str)
