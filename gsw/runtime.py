from __future__ import annotations

from dataclasses import dataclass, field, replace
from threading import Lock

from .db import utc_now


@dataclass
class PassReport:
    started_at: str = field(default_factory=utc_now)
    finished_at: str | None = None
    discovered: int = 0
    registered: int = 0
    deregistered: int = 0
    skipped: int = 0
    failed: int = 0
    reaped: int = 0
    reaper_ran: bool = False
    discovery_error: str | None = None


class RuntimeState:
    """In-memory view of the watcher for the operations API.

    Nothing here feeds back into reconciliation; every pass re-reads Docker
    and Kong.
    """

    def __init__(self) -> None:
        self.lock = Lock()
        self.running = False
        self.pass_count = 0
        self.last_report: PassReport | None = None
        self.auth_enabled: bool | None = None

    def record_pass(self, report: PassReport) -> None:
        with self.lock:
            self.pass_count += 1
            self.last_report = report

    def set_running(self, running: bool) -> None:
        with self.lock:
            self.running = running

    def set_auth_enabled(self, enabled: bool) -> None:
        with self.lock:
            self.auth_enabled = enabled

    def snapshot(self) -> tuple[bool, int, PassReport | None, bool | None]:
        with self.lock:
            report = replace(self.last_report) if self.last_report else None
            return self.running, self.pass_count, report, self.auth_enabled
