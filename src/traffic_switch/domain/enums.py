"""Domain enumerations for the traffic-switch orchestrator.

These enums capture the fixed vocabularies used across the domain layer:
the two live environments, the phases of a single switch attempt, and the
recommendation verdicts produced when environments are compared.
"""

from enum import Enum


class Environment(Enum):
    """One of the two live service environments."""

    BLUE = "blue"
    GREEN = "green"

    @property
    def other(self) -> "Environment":
        """The complementary environment."""
        return Environment.GREEN if self is Environment.BLUE else Environment.BLUE

    @classmethod
    def parse(cls, value: "str | Environment") -> "Environment":
        """Coerce a string such as ``"green"`` into an ``Environment``.

        Raises ``ValueError`` for anything other than blue or green.
        """
        if isinstance(value, Environment):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(
                f"environment must be one of {[e.value for e in cls]}, got {value!r}"
            ) from None


class SwitchPhase(Enum):
    """Finite-state-machine states for one ``switch_traffic`` invocation."""

    IDLE = "idle"
    PRE_CHECKING = "pre_checking"
    CANARYING = "canarying"
    CUTTING_OVER = "cutting_over"
    POST_VALIDATING = "post_validating"
    COMMITTED = "committed"
    ROLLING_BACK = "rolling_back"
    ROLLED_BACK = "rolled_back"


class Recommendation(Enum):
    """Verdict of comparing the health of both environments."""

    SWITCH_TO_FIRST = "switch_to_first"
    SWITCH_TO_SECOND = "switch_to_second"
    SAFE_TO_SWITCH = "safe_to_switch"  # both healthy
    DO_NOT_SWITCH = "do_not_switch"  # both unhealthy
