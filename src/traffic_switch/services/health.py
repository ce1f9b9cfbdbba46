"""Health probes: the orchestrator's view of whether an environment is ready.

``HealthProbe`` is the consumed contract.  ``check`` must be latency bounded
and must *not* raise for ordinary unreachability: an environment that cannot
be reached is simply unhealthy, so the orchestrator can treat every outcome
uniformly.

``HttpHealthProbe`` is the concrete collaborator for services exposing the
readiness/detailed-health wire contract::

    GET /ready            -> {"ready": bool, ...}           (200 when ready)
    GET /health/detailed  -> {"status": "healthy"|"unhealthy", "checks": [...],
                              "metrics": {...}}
    GET /api/health       -> {"version": ..., ...}          (validation call)

``compare_environments`` probes both environments side by side and produces
a switching recommendation.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from traffic_switch.domain.enums import Environment, Recommendation
from traffic_switch.domain.values import EnvironmentComparison, HealthCheckResult
from traffic_switch.infrastructure.config import ProbeConfig

logger = logging.getLogger(__name__)


# ===================================================================== #
#  Contract                                                              #
# ===================================================================== #

class HealthProbe(ABC):
    """Reports whether an environment is ready to receive traffic."""

    @abstractmethod
    async def check(self, environment: Environment) -> HealthCheckResult:
        """Readiness check for *environment*.  Never raises for unreachability."""

    async def validate(self, environment: Environment) -> HealthCheckResult:
        """Application-level validation run once after a cutover.

        Defaults to a plain readiness check.
        """
        return await self.check(environment)

    async def detailed(self, environment: Environment) -> HealthCheckResult:
        """Richer health report used when comparing environments.

        Defaults to a plain readiness check.
        """
        return await self.check(environment)

    async def aclose(self) -> None:
        """Release any resources held by the probe."""

    async def __aenter__(self) -> HealthProbe:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


# ===================================================================== #
#  HTTP probe                                                            #
# ===================================================================== #

class HttpHealthProbe(HealthProbe):
    """Probe environments over HTTP with ``httpx``.

    Parameters
    ----------
    config:
        Endpoint layout and per-call timeouts.
    client:
        Optional pre-built ``httpx.AsyncClient`` (tests pass one wired to an
        ``httpx.MockTransport``).  The probe closes only clients it created.
    """

    def __init__(
        self,
        config: ProbeConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config or ProbeConfig()
        self._config.validate()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(self._config.timeout_s),
        )

    @property
    def config(self) -> ProbeConfig:
        return self._config

    def url(self, environment: Environment, path: str) -> str:
        return f"{self._config.base_url(environment).rstrip('/')}{path}"

    async def check(self, environment: Environment) -> HealthCheckResult:
        """Healthy iff ``/ready`` answers 200 with ``ready`` true."""
        url = self.url(environment, self._config.ready_path)
        try:
            response = await self._client.get(url, timeout=self._config.timeout_s)
            payload = _json_body(response)
        except httpx.HTTPError as exc:
            logger.debug("Readiness check of %s failed: %s", environment.value, exc)
            return HealthCheckResult.unhealthy(
                environment, f"{type(exc).__name__}: {exc}", detail={"url": url}
            )

        ready = response.status_code == 200 and bool(payload.get("ready"))
        if ready:
            return HealthCheckResult(healthy=True, environment=environment, detail=payload)
        reason = str(payload.get("reason") or f"HTTP {response.status_code}")
        return HealthCheckResult.unhealthy(environment, reason, detail=payload)

    async def validate(self, environment: Environment) -> HealthCheckResult:
        """Hit the application endpoint and record version and response time."""
        url = self.url(environment, self._config.validation_path)
        try:
            response = await self._client.get(
                url, timeout=self._config.validation_timeout_s
            )
            response.raise_for_status()
            payload = _json_body(response)
        except httpx.HTTPError as exc:
            return HealthCheckResult.unhealthy(
                environment,
                f"Application validation failed: {exc}",
                detail={"url": url},
            )
        return HealthCheckResult(
            healthy=True,
            environment=environment,
            detail={
                "response_time": response.headers.get("x-response-time"),
                "version": payload.get("version"),
            },
        )

    async def detailed(self, environment: Environment) -> HealthCheckResult:
        """Read ``/health/detailed``; healthy iff ``status == "healthy"``."""
        url = self.url(environment, self._config.detailed_path)
        try:
            response = await self._client.get(url, timeout=self._config.timeout_s)
            payload = _json_body(response)
        except httpx.HTTPError as exc:
            return HealthCheckResult.unhealthy(
                environment, f"{type(exc).__name__}: {exc}", detail={"url": url}
            )
        healthy = payload.get("status") == "healthy"
        failed = [
            str(c.get("name", "?"))
            for c in payload.get("checks", [])
            if isinstance(c, dict) and not c.get("healthy", False)
        ]
        reason = "" if healthy else (
            f"failed checks: {', '.join(failed)}" if failed else f"status={payload.get('status')!r}"
        )
        return HealthCheckResult(
            healthy=healthy,
            environment=environment,
            detail=payload,
            reason=reason,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def _json_body(response: httpx.Response) -> dict[str, Any]:
    """Decode a JSON object body; anything else becomes an empty dict."""
    try:
        payload = response.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


# ===================================================================== #
#  Environment comparison                                                #
# ===================================================================== #

def recommend(first: HealthCheckResult, second: HealthCheckResult) -> Recommendation:
    """Pick a switching recommendation from two health results."""
    if first.healthy and not second.healthy:
        return Recommendation.SWITCH_TO_FIRST
    if second.healthy and not first.healthy:
        return Recommendation.SWITCH_TO_SECOND
    if first.healthy and second.healthy:
        return Recommendation.SAFE_TO_SWITCH
    return Recommendation.DO_NOT_SWITCH


async def compare_environments(
    probe: HealthProbe,
    first: Environment = Environment.BLUE,
    second: Environment = Environment.GREEN,
) -> EnvironmentComparison:
    """Probe *first* and *second* concurrently and recommend a direction."""
    first_result, second_result = await asyncio.gather(
        probe.detailed(first), probe.detailed(second)
    )
    comparison = EnvironmentComparison(
        first=first_result,
        second=second_result,
        recommendation=recommend(first_result, second_result),
    )
    logger.info(
        "Compared %s=%s %s=%s: %s",
        first.value,
        "healthy" if first_result.healthy else "unhealthy",
        second.value,
        "healthy" if second_result.healthy else "unhealthy",
        comparison.message,
    )
    return comparison
