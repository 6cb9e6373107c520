from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator

import docker
from docker.errors import DockerException, NotFound

from .db import log_event
from .health import HealthState, RunState


class DiscoveryError(RuntimeError):
    """The container runtime could not be queried."""


@dataclass(frozen=True)
class Container:
    id: str
    name: str
    hostname: str
    labels: dict[str, str] = field(default_factory=dict)
    run_state: RunState = RunState.NOT_RUNNING
    health: HealthState = HealthState.NONE

    @classmethod
    def from_inspect(cls, attrs: dict[str, Any]) -> "Container":
        config = attrs.get("Config") or {}
        state = attrs.get("State") or {}
        return cls(
            id=attrs["Id"],
            name=(attrs.get("Name") or "").lstrip("/"),
            hostname=config.get("Hostname") or "",
            labels=dict(config.get("Labels") or {}),
            run_state=RunState.from_docker(state.get("Status")),
            health=HealthState.from_docker(state.get("Health")),
        )


def client_from_env() -> docker.DockerClient:
    return docker.from_env()


def _list_ids(client: docker.DockerClient, filters: dict[str, Any] | None = None) -> list[str]:
    try:
        containers = client.containers.list(all=True, filters=filters or {})
    except DockerException as e:
        raise DiscoveryError(f"unable to list containers: {e}") from e
    return [c.id for c in containers]


def inspect(client: docker.DockerClient, container_id: str) -> Container:
    return Container.from_inspect(client.api.inspect_container(container_id))


def discover_services(client: docker.DockerClient, marker_label: str) -> Iterator[Container]:
    """Yield every container carrying the marker label, in any run state.

    Stopped containers are included so they can be deregistered. A container
    that cannot be inspected is logged and skipped.
    """
    ids = _list_ids(client, {"label": marker_label})
    if not ids:
        log_event("WARN", "no containers found", journal=False)
        return
    log_event("INFO", f"building registration information for {len(ids)} containers", journal=False)
    for container_id in ids:
        try:
            yield inspect(client, container_id)
        except DockerException as e:
            log_event("ERROR", f"unable to inspect container: {e}", container_id=container_id)


def list_hostnames(client: docker.DockerClient) -> set[str]:
    """Hostnames of every container on the host, labeled or not.

    Raises DiscoveryError if any container cannot be inspected: a partial set
    would make live targets look orphaned.
    """
    hostnames: set[str] = set()
    for container_id in _list_ids(client):
        try:
            hostnames.add(inspect(client, container_id).hostname)
        except NotFound:
            # removed since the listing
            continue
        except DockerException as e:
            raise DiscoveryError(f"unable to inspect container {container_id[:12]}: {e}") from e
    hostnames.discard("")
    return hostnames
