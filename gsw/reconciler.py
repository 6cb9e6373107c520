from __future__ import annotations

import time
from threading import Event, Lock, Thread

import docker

from .db import log_event, utc_now
from .docker_ops import Container, DiscoveryError, discover_services
from .gateway import GatewayRegistrar
from .health import Action, classify
from .kong import KongAdmin
from .labels import LabelError, extract_config, is_service, missing_labels
from .reaper import OrphanReaper
from .runtime import PassReport, RuntimeState
from .settings import settings


class Reconciler:
    """Continuously reconciles Kong with the labeled containers on the host."""

    def __init__(
        self,
        docker_client: docker.DockerClient,
        kong: KongAdmin,
        runtime: RuntimeState,
        interval_s: float | None = None,
        label_prefix: str | None = None,
        managed_tag: str | None = None,
        target_port: int | None = None,
    ):
        self.docker = docker_client
        self.kong = kong
        self.runtime = runtime
        self.interval_s = max(0.1, float(interval_s if interval_s is not None else settings.poll_interval_s))
        self.label_prefix = label_prefix or settings.label_prefix
        tag = managed_tag or settings.managed_tag
        self.registrar = GatewayRegistrar(kong, tag, target_port or settings.target_port)
        self.reaper = OrphanReaper(docker_client, kong, tag)

        self._stop = Event()
        self._wake = Event()
        self._pass_lock = Lock()
        self._thr: Thread | None = None

    @property
    def marker_label(self) -> str:
        return f"{self.label_prefix}.isService"

    def start(self) -> None:
        if self._thr and self._thr.is_alive():
            return
        self._stop.clear()
        self._thr = Thread(target=self._loop, name="gsw-reconciler", daemon=True)
        self._thr.start()

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        self._wake.set()
        if self._thr:
            self._thr.join(timeout)

    def trigger(self) -> bool:
        """Ask for a pass as soon as the current one (if any) is done.

        Returns False when a pass was already pending; requests never queue
        beyond one.
        """
        pending = self._wake.is_set()
        self._wake.set()
        return not pending

    def _loop(self) -> None:
        self.runtime.set_running(True)
        log_event("INFO", "starting service watcher")
        try:
            while not self._stop.is_set():
                started = time.monotonic()
                try:
                    self.run_once()
                except Exception as e:
                    log_event("ERROR", f"Reconciliation pass failed: {type(e).__name__}: {e}")
                remaining = self.interval_s - (time.monotonic() - started)
                if remaining > 0:
                    self._wake.wait(remaining)
                self._wake.clear()
        finally:
            self.runtime.set_running(False)
            log_event("INFO", "service watcher stopped")

    def run_once(self) -> PassReport:
        """One full pass: every labeled container, then the reverse search."""
        with self._pass_lock:
            report = PassReport()
            log_event("INFO", "looking for service containers", journal=False)
            try:
                for container in discover_services(self.docker, self.marker_label):
                    report.discovered += 1
                    self._process(container, report)
            except DiscoveryError as e:
                report.discovery_error = str(e)
                log_event("ERROR", str(e))

            removed = self.reaper.run()
            report.reaper_ran = removed is not None
            report.reaped = removed or 0
            report.finished_at = utc_now()
            self.runtime.record_pass(report)
            log_event(
                "INFO",
                f"pass finished: {report.discovered} discovered, {report.registered} registered, "
                f"{report.deregistered} deregistered, {report.skipped} skipped, {report.failed} failed, "
                f"{report.reaped} orphaned targets removed",
                journal=False,
            )
            return report

    def _process(self, container: Container, report: PassReport) -> None:
        cid = container.id
        log_event("DEBUG", "checking container for labels", container_id=cid)
        try:
            if not is_service(container.labels, self.label_prefix):
                log_event("INFO", "container not marked as service. skipping container", container_id=cid, journal=False)
                report.skipped += 1
                return
            config = extract_config(container.labels, self.label_prefix)
        except LabelError as e:
            log_event("WARN", f"{e}. skipping container", container_id=cid)
            report.skipped += 1
            return
        if config is None:
            missing = ", ".join(missing_labels(container.labels, self.label_prefix))
            log_event("WARN", f"labels missing for complete configuration ({missing}). skipping container", container_id=cid)
            report.skipped += 1
            return

        verdict = classify(container.run_state, container.health)
        if verdict.advisory:
            log_event("WARN", verdict.advisory, container_id=cid, upstream=config.upstream_name, journal=False)

        try:
            if verdict.action is Action.REGISTER:
                self.registrar.register(container, config)
                report.registered += 1
            else:
                log_event(
                    "INFO",
                    f"container is {container.run_state.value}/{container.health.value}. removing it from the gateway",
                    container_id=cid,
                    upstream=config.upstream_name,
                    journal=False,
                )
                self.registrar.deregister(container, config)
                report.deregistered += 1
        except Exception as e:
            report.failed += 1
            log_event(
                "ERROR",
                f"unable to {verdict.action.value} container: {type(e).__name__}: {e}",
                container_id=cid,
                upstream=config.upstream_name,
            )
