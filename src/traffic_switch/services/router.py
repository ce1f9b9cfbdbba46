"""Router updaters: the mechanism that actually moves live traffic.

``RouterUpdater`` is the consumed contract.  Each call must be effectively
atomic from the caller's perspective and reports failure by raising
``RouterError``.

Two implementations ship with the package:

* ``InMemoryRouter`` -- an in-process routing table, used for dry runs and
  tests.
* ``KubectlIngressRouter`` -- drives an NGINX ingress through ``kubectl``:
  a merge patch of the main ingress backend for full cutover, and canary
  annotations on a sibling ingress for weighted ramps.
"""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import Any

from traffic_switch.domain.enums import Environment
from traffic_switch.domain.exceptions import RouterError
from traffic_switch.infrastructure.config import RouterConfig

logger = logging.getLogger(__name__)

_CANARY_ANNOTATION = "nginx.ingress.kubernetes.io/canary"
_CANARY_WEIGHT_ANNOTATION = "nginx.ingress.kubernetes.io/canary-weight"


# ===================================================================== #
#  Contract                                                              #
# ===================================================================== #

class RouterUpdater(ABC):
    """Applies routing changes and reports the live backend."""

    @abstractmethod
    async def set_full_traffic(self, environment: Environment) -> None:
        """Route 100% of traffic to *environment*."""

    @abstractmethod
    async def set_canary_weight(self, environment: Environment, percent: int) -> None:
        """Route *percent* of traffic to *environment* as a canary."""

    @abstractmethod
    async def get_active_environment(self) -> Environment:
        """Return the environment currently receiving full traffic."""


def _check_percent(percent: int) -> None:
    if not 0 <= percent <= 100:
        raise RouterError(
            f"canary weight must be in [0, 100], got {percent}",
            operation="set_canary_weight",
        )


# ===================================================================== #
#  In-memory router                                                      #
# ===================================================================== #

class InMemoryRouter(RouterUpdater):
    """Routing table held in process memory.

    A full cutover clears any canary weight, mirroring an ingress where the
    canary backend and the main backend become the same service.
    """

    def __init__(self, active: Environment = Environment.BLUE) -> None:
        self._active = Environment.parse(active)
        self._canary: tuple[Environment, int] | None = None
        self.calls: list[tuple[str, Any]] = []

    @property
    def active(self) -> Environment:
        return self._active

    @property
    def canary(self) -> tuple[Environment, int] | None:
        """``(environment, percent)`` of the current canary, if any."""
        return self._canary

    async def set_full_traffic(self, environment: Environment) -> None:
        self.calls.append(("set_full_traffic", environment))
        self._active = environment
        self._canary = None
        logger.info("In-memory route: 100%% -> %s", environment.value)

    async def set_canary_weight(self, environment: Environment, percent: int) -> None:
        self.calls.append(("set_canary_weight", (environment, percent)))
        _check_percent(percent)
        self._canary = (environment, percent) if percent > 0 else None
        logger.info("In-memory route: canary %d%% -> %s", percent, environment.value)

    async def get_active_environment(self) -> Environment:
        self.calls.append(("get_active_environment", None))
        return self._active


# ===================================================================== #
#  kubectl-driven ingress router                                         #
# ===================================================================== #

class KubectlIngressRouter(RouterUpdater):
    """Drive an NGINX ingress with ``kubectl``.

    Parameters
    ----------
    config:
        Ingress names, backend service template and kubectl location.
    """

    def __init__(self, config: RouterConfig | None = None) -> None:
        self._config = config or RouterConfig()
        self._config.validate()

    @property
    def config(self) -> RouterConfig:
        return self._config

    def ingress_patch(self, environment: Environment) -> dict[str, Any]:
        """Merge patch pointing the main ingress at *environment*."""
        return {
            "spec": {
                "rules": [{
                    "host": self._config.host,
                    "http": {
                        "paths": [{
                            "path": "/",
                            "pathType": "Prefix",
                            "backend": {
                                "service": {
                                    "name": self._config.service_name(environment),
                                    "port": {"number": self._config.service_port},
                                },
                            },
                        }],
                    },
                }],
            },
        }

    async def set_full_traffic(self, environment: Environment) -> None:
        patch = json.dumps(self.ingress_patch(environment), separators=(",", ":"))
        await self._kubectl(
            "set_full_traffic",
            "patch", "ingress", self._config.ingress_name, "--type=merge", "-p", patch,
        )
        logger.info(
            "Ingress %s now routes to %s",
            self._config.ingress_name,
            self._config.service_name(environment),
        )
        if self._config.canary_ingress_name:
            await self.set_canary_weight(environment, 0)

    async def set_canary_weight(self, environment: Environment, percent: int) -> None:
        _check_percent(percent)
        await self._kubectl(
            "set_canary_weight",
            "annotate", "ingress", self._config.canary_ingress_name, "--overwrite",
            f"{_CANARY_ANNOTATION}={'true' if percent > 0 else 'false'}",
            f"{_CANARY_WEIGHT_ANNOTATION}={percent}",
        )
        logger.info(
            "Canary ingress %s: %d%% -> %s",
            self._config.canary_ingress_name,
            percent,
            environment.value,
        )

    async def get_active_environment(self) -> Environment:
        stdout = await self._kubectl(
            "get_active_environment",
            "get", "ingress", self._config.ingress_name, "-o", "json",
        )
        try:
            ingress = json.loads(stdout)
            service = ingress["spec"]["rules"][0]["http"]["paths"][0]["backend"]["service"]["name"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise RouterError(
                f"Unexpected ingress document for {self._config.ingress_name}: {exc}",
                operation="get_active_environment",
            ) from exc
        for environment in Environment:
            if service == self._config.service_name(environment):
                return environment
        raise RouterError(
            f"Ingress {self._config.ingress_name} routes to unknown service {service!r}",
            operation="get_active_environment",
            details={"service": service},
        )

    async def _kubectl(self, operation: str, *args: str) -> str:
        cmd = [self._config.kubectl_binary, *args]
        if self._config.namespace:
            cmd += ["--namespace", self._config.namespace]
        logger.debug("Running %s", " ".join(cmd))
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise RouterError(f"Failed to run kubectl: {exc}", operation=operation) from exc
        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(), timeout=self._config.timeout_s
            )
        except asyncio.TimeoutError as exc:
            await _reap(proc)
            raise RouterError(
                f"kubectl {args[0]} timed out after {self._config.timeout_s}s",
                operation=operation,
            ) from exc
        except BaseException:
            # Cancelled by the caller; kill the child before propagating.
            await _reap(proc)
            raise
        if proc.returncode != 0:
            raise RouterError(
                f"kubectl {args[0]} failed (exit {proc.returncode}): "
                f"{stderr.decode(errors='replace').strip()}",
                operation=operation,
                details={"returncode": proc.returncode},
            )
        return stdout.decode(errors="replace")


async def _reap(proc: asyncio.subprocess.Process) -> None:
    """Kill *proc* if still running and wait for it to exit."""
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
        await proc.wait()
        logger.warning("Killed unfinished kubectl (pid %d)", proc.pid)


def build_router(
    config: RouterConfig | None = None,
    active: Environment = Environment.BLUE,
) -> RouterUpdater:
    """Instantiate the router named by ``config.kind``.

    *active* seeds the in-memory router; the kubectl router reads the live
    ingress instead.
    """
    config = config or RouterConfig()
    if config.kind == "memory":
        return InMemoryRouter(active)
    return KubectlIngressRouter(config)
