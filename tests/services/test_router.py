"""Tests for the router updaters."""

from __future__ import annotations

import asyncio
import json
import os
import shutil
from pathlib import Path

import pytest

from traffic_switch.domain.enums import Environment
from traffic_switch.domain.exceptions import RouterError, RouterUpdateFailed
from traffic_switch.infrastructure.config import OrchestratorConfig, RouterConfig
from traffic_switch.services.orchestrator import SwitchOrchestrator
from traffic_switch.services.router import (
    InMemoryRouter,
    KubectlIngressRouter,
    build_router,
)
from traffic_switch.testing import FailingRouter, FakeClock, ScriptedHealthProbe

BLUE = Environment.BLUE
GREEN = Environment.GREEN


class TestInMemoryRouter:

    @pytest.mark.asyncio
    async def test_full_traffic_clears_canary(self) -> None:
        router = InMemoryRouter(BLUE)
        await router.set_canary_weight(GREEN, 10)
        assert router.canary == (GREEN, 10)
        await router.set_full_traffic(GREEN)
        assert router.active is GREEN
        assert router.canary is None
        assert await router.get_active_environment() is GREEN

    @pytest.mark.asyncio
    async def test_zero_weight_withdraws_canary(self) -> None:
        router = InMemoryRouter(BLUE)
        await router.set_canary_weight(GREEN, 25)
        await router.set_canary_weight(GREEN, 0)
        assert router.canary is None
        assert router.active is BLUE

    @pytest.mark.asyncio
    async def test_weight_out_of_range(self) -> None:
        with pytest.raises(RouterError):
            await InMemoryRouter().set_canary_weight(GREEN, 150)

    @pytest.mark.asyncio
    async def test_failing_router_lets_first_calls_through(self) -> None:
        router = FailingRouter(BLUE, fail={"set_full_traffic": 1})
        await router.set_full_traffic(GREEN)
        with pytest.raises(RouterError, match="refused"):
            await router.set_full_traffic(BLUE)
        assert router.active is GREEN


class TestBuildRouter:

    def test_memory(self) -> None:
        router = build_router(RouterConfig(kind="memory"), active=GREEN)
        assert isinstance(router, InMemoryRouter)
        assert router.active is GREEN

    def test_kubectl_default(self) -> None:
        assert isinstance(build_router(), KubectlIngressRouter)


class TestKubectlIngressRouter:

    @pytest.fixture
    def calls(self) -> list[tuple[str, ...]]:
        return []

    @pytest.fixture
    def router(
        self, monkeypatch: pytest.MonkeyPatch, calls: list[tuple[str, ...]]
    ) -> KubectlIngressRouter:
        router = KubectlIngressRouter(RouterConfig())

        async def fake_kubectl(operation: str, *args: str) -> str:
            calls.append((operation, *args))
            return ""

        monkeypatch.setattr(router, "_kubectl", fake_kubectl)
        return router

    def test_ingress_patch_points_at_service(self) -> None:
        patch = KubectlIngressRouter().ingress_patch(GREEN)
        rule = patch["spec"]["rules"][0]
        backend = rule["http"]["paths"][0]["backend"]["service"]
        assert rule["host"] == "blue-green-demo.local"
        assert backend == {"name": "blue-green-demo-green", "port": {"number": 80}}

    @pytest.mark.asyncio
    async def test_full_traffic_patches_then_resets_canary(
        self, router: KubectlIngressRouter, calls: list[tuple[str, ...]]
    ) -> None:
        await router.set_full_traffic(GREEN)
        assert calls[0][:6] == (
            "set_full_traffic", "patch", "ingress", "blue-green-demo", "--type=merge", "-p"
        )
        assert json.loads(calls[0][6]) == router.ingress_patch(GREEN)
        assert calls[1] == (
            "set_canary_weight",
            "annotate", "ingress", "blue-green-demo-canary", "--overwrite",
            "nginx.ingress.kubernetes.io/canary=false",
            "nginx.ingress.kubernetes.io/canary-weight=0",
        )

    @pytest.mark.asyncio
    async def test_canary_annotations(
        self, router: KubectlIngressRouter, calls: list[tuple[str, ...]]
    ) -> None:
        await router.set_canary_weight(GREEN, 10)
        assert calls == [(
            "set_canary_weight",
            "annotate", "ingress", "blue-green-demo-canary", "--overwrite",
            "nginx.ingress.kubernetes.io/canary=true",
            "nginx.ingress.kubernetes.io/canary-weight=10",
        )]

    @pytest.mark.asyncio
    async def test_reads_active_backend(self, monkeypatch: pytest.MonkeyPatch) -> None:
        router = KubectlIngressRouter()
        document = {"spec": router.ingress_patch(BLUE)["spec"]}

        async def fake_kubectl(operation: str, *args: str) -> str:
            return json.dumps(document)

        monkeypatch.setattr(router, "_kubectl", fake_kubectl)
        assert await router.get_active_environment() is BLUE

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "stdout",
        ["not json", json.dumps({"spec": {}}), json.dumps({"spec": {"rules": [{
            "http": {"paths": [{"backend": {"service": {"name": "legacy"}}}]}
        }]}})],
    )
    async def test_unreadable_ingress(
        self, monkeypatch: pytest.MonkeyPatch, stdout: str
    ) -> None:
        router = KubectlIngressRouter()

        async def fake_kubectl(operation: str, *args: str) -> str:
            return stdout

        monkeypatch.setattr(router, "_kubectl", fake_kubectl)
        with pytest.raises(RouterError) as info:
            await router.get_active_environment()
        assert info.value.operation == "get_active_environment"

    @pytest.mark.asyncio
    async def test_missing_binary(self) -> None:
        router = KubectlIngressRouter(
            RouterConfig(kubectl_binary="/nonexistent/kubectl-for-tests")
        )
        with pytest.raises(RouterError, match="Failed to run kubectl"):
            await router.set_full_traffic(GREEN)

    @pytest.mark.asyncio
    @pytest.mark.skipif(shutil.which("false") is None, reason="needs the false binary")
    async def test_nonzero_exit(self) -> None:
        router = KubectlIngressRouter(RouterConfig(kubectl_binary=shutil.which("false")))
        with pytest.raises(RouterError, match="exit 1") as info:
            await router.set_canary_weight(GREEN, 5)
        assert info.value.details["returncode"] == 1


def _stuck_kubectl(tmp_path: Path) -> tuple[Path, Path]:
    """Write a kubectl stand-in that records its pid and never finishes."""
    pid_file = tmp_path / "kubectl.pid"
    script = tmp_path / "kubectl"
    script.write_text(f"#!/bin/sh\necho $$ > '{pid_file}'\nexec sleep 30\n")
    script.chmod(0o755)
    return script, pid_file


def _alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    return True


@pytest.mark.skipif(
    os.name != "posix" or shutil.which("sleep") is None,
    reason="needs a POSIX shell and sleep",
)
class TestKubectlTimeouts:

    @pytest.mark.asyncio
    async def test_own_timeout_kills_child(self, tmp_path: Path) -> None:
        script, pid_file = _stuck_kubectl(tmp_path)
        router = KubectlIngressRouter(RouterConfig(kubectl_binary=str(script), timeout_s=0.5))

        with pytest.raises(RouterError, match="timed out after 0.5s") as info:
            await router.set_full_traffic(GREEN)

        assert info.value.operation == "set_full_traffic"
        assert not _alive(int(pid_file.read_text()))

    @pytest.mark.asyncio
    async def test_caller_timeout_kills_child(self, tmp_path: Path) -> None:
        script, pid_file = _stuck_kubectl(tmp_path)
        router = KubectlIngressRouter(RouterConfig(kubectl_binary=str(script), timeout_s=20.0))

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(router.set_full_traffic(GREEN), timeout=1.0)

        assert not _alive(int(pid_file.read_text()))

    @pytest.mark.asyncio
    async def test_orchestrator_timeout_leaves_no_kubectl_running(
        self, tmp_path: Path
    ) -> None:
        script, pid_file = _stuck_kubectl(tmp_path)
        router = KubectlIngressRouter(RouterConfig(kubectl_binary=str(script), timeout_s=20.0))
        orchestrator = SwitchOrchestrator(
            ScriptedHealthProbe(),
            router,
            OrchestratorConfig(router_timeout_s=1.0),
            clock=FakeClock(),
        )

        with pytest.raises(RouterUpdateFailed) as info:
            await orchestrator.switch_traffic(GREEN)

        assert info.value.message == "Failed to route traffic to green: TimeoutError"
        assert not _alive(int(pid_file.read_text()))
        assert not orchestrator.state.switch_in_progress
