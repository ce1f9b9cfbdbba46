"""Tests for domain events."""

from __future__ import annotations

import dataclasses

import pytest

from traffic_switch.domain.enums import Environment, SwitchPhase
from traffic_switch.domain.events import DomainEvent, PhaseEntered, SwitchStarted


class TestDomainEvents:

    def test_timestamp_defaults_to_now(self) -> None:
        event = PhaseEntered(phase=SwitchPhase.CUTTING_OVER)
        assert event.timestamp > 0

    def test_subclass_of_base(self) -> None:
        assert isinstance(SwitchStarted(), DomainEvent)

    def test_frozen(self) -> None:
        event = SwitchStarted(
            switch_id="abc",
            previous_environment=Environment.BLUE,
            target_environment=Environment.GREEN,
        )
        with pytest.raises(dataclasses.FrozenInstanceError):
            event.switch_id = "other"  # type: ignore[misc]
