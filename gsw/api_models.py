from __future__ import annotations

from pydantic import BaseModel, Field


class PassReportOut(BaseModel):
    started_at: str
    finished_at: str | None = None
    discovered: int = Field(0, ge=0, description="Labeled containers inspected")
    registered: int = Field(0, ge=0)
    deregistered: int = Field(0, ge=0)
    skipped: int = Field(0, ge=0, description="Containers skipped for label problems")
    failed: int = Field(0, ge=0, description="Containers whose gateway update failed")
    reaped: int = Field(0, ge=0, description="Orphaned targets removed by the reverse search")
    reaper_ran: bool = False
    discovery_error: str | None = None


class StatusOut(BaseModel):
    running: bool
    pass_count: int
    poll_interval_s: float
    auth_enabled: bool | None = Field(None, description="None until the startup check ran")
    last_pass: PassReportOut | None = None


class EventOut(BaseModel):
    id: int
    ts: str
    level: str
    container_id: str | None = None
    upstream: str | None = None
    message: str


class ReconcileOut(BaseModel):
    accepted: bool = Field(..., description="False when a pass was already pending")
    report: PassReportOut | None = None
