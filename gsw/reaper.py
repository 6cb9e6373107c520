from __future__ import annotations

import docker

from .db import log_event
from .docker_ops import DiscoveryError, list_hostnames
from .gateway import target_host
from .kong import KongAdmin, KongError, KongNotFound


class OrphanReaper:
    """Reverse search: drop managed targets whose container no longer exists.

    A deleted container vanishes from every listing, so the per-container pass
    can never deregister it. Comparing the managed targets against the
    hostnames of all containers on the host catches it instead.
    """

    def __init__(self, docker_client: docker.DockerClient, kong: KongAdmin, managed_tag: str):
        self.docker = docker_client
        self.kong = kong
        self.managed_tag = managed_tag

    def run(self, hostnames: set[str] | None = None) -> int | None:
        """Run one sweep and return the number of targets removed.

        Returns None when the sweep had to be skipped for this tick.
        """
        if hostnames is None:
            try:
                hostnames = list_hostnames(self.docker)
            except DiscoveryError as e:
                log_event("WARN", f"{e}. skipping reverse search this time")
                return None

        try:
            upstreams = self.kong.list_upstreams(tag=self.managed_tag)
        except KongError as e:
            log_event("WARN", f"unable to get list of upstreams: {e}. skipping reverse search this time")
            return None

        removed = 0
        for upstream in upstreams:
            upstream_id = upstream.get("id") or upstream["name"]
            upstream_name = upstream.get("name") or upstream_id
            try:
                targets = self.kong.list_targets(upstream_id, tag=self.managed_tag)
            except KongError as e:
                log_event("WARN", f"unable to get list of targets: {e}", upstream=upstream_name)
                continue
            for target in targets:
                address = target.get("target") or ""
                if target_host(address) in hostnames:
                    continue
                try:
                    self.kong.delete_target(upstream_id, address)
                except KongNotFound:
                    continue
                except KongError as e:
                    log_event("WARN", f"unable to remove target {address} of deleted container: {e}", upstream=upstream_name)
                    continue
                removed += 1
                log_event("INFO", f"removed orphaned target {address}", upstream=upstream_name)
        return removed
