from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class RunState(str, Enum):
    RUNNING = "running"
    NOT_RUNNING = "not-running"

    @classmethod
    def from_docker(cls, status: str | None) -> "RunState":
        # created|restarting|paused|exited|dead|removing all mean "not serving".
        return cls.RUNNING if status == "running" else cls.NOT_RUNNING


class HealthState(str, Enum):
    NONE = "none"
    STARTING = "starting"
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"

    @classmethod
    def from_docker(cls, health: dict | None) -> "HealthState":
        """Map the State.Health section of an inspect payload.

        A container without a HEALTHCHECK has no Health section at all.
        """
        if not health:
            return cls.NONE
        try:
            return cls(str(health.get("Status", "")).lower())
        except ValueError:
            return cls.UNKNOWN


class Action(str, Enum):
    REGISTER = "register"
    DEREGISTER = "deregister"


@dataclass(frozen=True)
class Verdict:
    action: Action
    advisory: str | None = None


_REGISTER = Verdict(Action.REGISTER)
_DEREGISTER = Verdict(Action.DEREGISTER)

_RUNNING: dict[HealthState, Verdict] = {
    HealthState.NONE: Verdict(Action.REGISTER, "registering service without enabled health checks"),
    HealthState.STARTING: _REGISTER,
    HealthState.HEALTHY: _REGISTER,
    HealthState.UNHEALTHY: _DEREGISTER,
}


def classify(run_state: RunState, health: HealthState) -> Verdict:
    """Decide whether a container belongs in the gateway.

    | run state   | health             | action     |
    |-------------|--------------------|------------|
    | not running | any                | deregister |
    | running     | none               | register (unsupervised) |
    | running     | unhealthy          | deregister |
    | running     | starting / healthy | register   |

    Any unrecognized health status registers: only an explicit "unhealthy"
    evicts a running service.
    """
    if run_state is not RunState.RUNNING:
        return _DEREGISTER
    return _RUNNING.get(health, _REGISTER)
