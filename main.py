from __future__ import annotations

import logging
from dataclasses import asdict

from fastapi import FastAPI, HTTPException, Query

from gsw import db, docker_ops
from gsw.api_models import EventOut, PassReportOut, ReconcileOut, StatusOut
from gsw.auth import ensure_global_auth
from gsw.kong import KongAdmin
from gsw.reconciler import Reconciler
from gsw.runtime import RuntimeState
from gsw.settings import settings

app = FastAPI(title="Gateway Service Watcher")

runtime = RuntimeState()
watcher: Reconciler | None = None


def _build_watcher() -> Reconciler:
    kong = KongAdmin(settings.kong_admin_url, timeout_s=settings.gateway_timeout_s)
    if settings.enable_auth_bootstrap:
        runtime.set_auth_enabled(ensure_global_auth(kong, settings.introspection_url, settings.auth_plugin))
    return Reconciler(docker_ops.client_from_env(), kong, runtime)


@app.on_event("startup")
def startup() -> None:
    global watcher
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    db.init_db()
    watcher = _build_watcher()
    watcher.start()


@app.on_event("shutdown")
def shutdown() -> None:
    if watcher is not None:
        watcher.stop(timeout=settings.gateway_timeout_s)
        watcher.kong.close()


def _require_watcher() -> Reconciler:
    if watcher is None:
        raise HTTPException(status_code=503, detail="watcher not started")
    return watcher


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "healthy"}


@app.get("/status", response_model=StatusOut)
def status() -> StatusOut:
    running, pass_count, report, auth_enabled = runtime.snapshot()
    return StatusOut(
        running=running,
        pass_count=pass_count,
        poll_interval_s=watcher.interval_s if watcher else float(settings.poll_interval_s),
        auth_enabled=auth_enabled,
        last_pass=PassReportOut(**asdict(report)) if report else None,
    )


@app.get("/events", response_model=list[EventOut])
def events(limit: int = Query(20, ge=1, le=1000)) -> list[EventOut]:
    return [EventOut(**row) for row in db.latest_events(limit)]


@app.post("/reconcile", response_model=ReconcileOut)
def reconcile(wait: bool = False) -> ReconcileOut:
    w = _require_watcher()
    if wait:
        report = w.run_once()
        return ReconcileOut(accepted=True, report=PassReportOut(**asdict(report)))
    return ReconcileOut(accepted=w.trigger())


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
