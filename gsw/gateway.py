from __future__ import annotations

from .db import log_event
from .docker_ops import Container
from .kong import KongAdmin, KongNotFound
from .labels import GatewayConfiguration


def target_host(target: str) -> str:
    """Host portion of a Kong target string ("host:port" or bare "host")."""
    host, sep, port = target.rpartition(":")
    if not sep or not port.isdigit():
        return target
    return host


class GatewayRegistrar:
    """Wires containers into Kong and takes them out again.

    Every call uses create-if-absent semantics, so running it again with the
    same inputs leaves the gateway unchanged.
    """

    def __init__(self, kong: KongAdmin, managed_tag: str, target_port: int = 8000):
        self.kong = kong
        self.managed_tag = managed_tag
        self.target_port = int(target_port)

    def target_for(self, container: Container) -> str:
        return f"{container.hostname}:{self.target_port}"

    def _managed(self, entity: dict) -> bool:
        return self.managed_tag in (entity.get("tags") or [])

    def register(self, container: Container, config: GatewayConfiguration) -> None:
        if not container.hostname:
            raise ValueError(f"container {container.id[:12]} has no hostname")
        self._ensure_upstream(config.upstream_name)
        self._ensure_target(config.upstream_name, self.target_for(container), container.id)
        self._ensure_service(config)
        self._ensure_route(config)

    def _ensure_upstream(self, upstream: str) -> None:
        try:
            self.kong.get_upstream(upstream)
        except KongNotFound:
            self.kong.create_upstream(upstream, tags=[self.managed_tag])
            log_event("INFO", "created upstream", upstream=upstream)

    def _ensure_target(self, upstream: str, target: str, container_id: str) -> None:
        existing = {t.get("target") for t in self.kong.list_targets(upstream)}
        if target in existing:
            return
        self.kong.create_target(upstream, target, tags=[self.managed_tag])
        log_event("INFO", f"added target {target}", container_id=container_id, upstream=upstream)

    def _ensure_service(self, config: GatewayConfiguration) -> None:
        try:
            service = self.kong.get_service(config.service_name)
        except KongNotFound:
            self.kong.create_service(config.service_name, host=config.upstream_name, tags=[self.managed_tag])
            log_event("INFO", f"created service {config.service_name}", upstream=config.upstream_name)
            return
        if service.get("host") == config.upstream_name:
            return
        if not self._managed(service):
            log_event(
                "WARN",
                f"service {config.service_name} exists but is not managed by the watcher. leaving it untouched",
                upstream=config.upstream_name,
            )
            return
        self.kong.update_service(config.service_name, {"host": config.upstream_name})
        log_event("INFO", f"pointed service {config.service_name} at its upstream", upstream=config.upstream_name)

    def _ensure_route(self, config: GatewayConfiguration) -> None:
        for route in self.kong.list_routes(config.service_name):
            if config.service_path in (route.get("paths") or []):
                return
        self.kong.create_route(config.service_name, paths=[config.service_path], tags=[self.managed_tag])
        log_event(
            "INFO",
            f"created route {config.service_path} for service {config.service_name}",
            upstream=config.upstream_name,
        )

    def deregister(self, container: Container, config: GatewayConfiguration) -> None:
        upstream = config.upstream_name
        target = self.target_for(container)
        try:
            self.kong.delete_target(upstream, target)
            log_event("INFO", f"removed target {target}", container_id=container.id, upstream=upstream)
        except KongNotFound:
            log_event("DEBUG", f"target {target} already absent", container_id=container.id, upstream=upstream)
        self._drop_drained_routes(config)

    def _drop_drained_routes(self, config: GatewayConfiguration) -> None:
        """Remove the managed route once no target is left to serve it."""
        try:
            if self.kong.list_targets(config.upstream_name):
                return
        except KongNotFound:
            pass
        try:
            routes = self.kong.list_routes(config.service_name)
        except KongNotFound:
            return
        for route in routes:
            if not self._managed(route) or config.service_path not in (route.get("paths") or []):
                continue
            try:
                self.kong.delete_route(route["id"])
            except KongNotFound:
                continue
            log_event(
                "INFO",
                f"removed route {config.service_path} of drained service {config.service_name}",
                upstream=config.upstream_name,
            )
