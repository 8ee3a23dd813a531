"""Structured audit trail for recoverable data changes.

Tables produced here feed vote and population analyses, so every row that is
dropped or reassigned is recorded as an ``AuditEvent`` with a count. Events
are kept in memory for callers and tests, and mirrored to the JSON logger.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any

from au_boundaries.common.logging import default_logger, log_event

STATUS_OK = "ok"
STATUS_WARNING = "warning"


@dataclass(frozen=True)
class AuditEvent:
    event: str
    message: str
    status: str = STATUS_OK
    stage: str | None = None
    count: int | None = None
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class AuditLog:
    def __init__(self, logger: logging.Logger | None = None, run_id: str | None = None) -> None:
        self.logger = logger or default_logger()
        self.run_id = run_id
        self.events: list[AuditEvent] = []

    def record(
        self,
        event: str,
        message: str,
        *,
        status: str = STATUS_OK,
        stage: str | None = None,
        count: int | None = None,
        **details: Any,
    ) -> AuditEvent:
        entry = AuditEvent(
            event=event,
            message=message,
            status=status,
            stage=stage,
            count=count,
            details=details,
        )
        self.events.append(entry)
        log_event(
            self.logger,
            message,
            level=logging.WARNING if status == STATUS_WARNING else logging.INFO,
            run_id=self.run_id,
            stage=stage,
            event=event,
            status=status,
            count=count,
        )
        return entry

    def warn(self, event: str, message: str, **kwargs: Any) -> AuditEvent:
        return self.record(event, message, status=STATUS_WARNING, **kwargs)

    def warnings(self) -> list[AuditEvent]:
        return [entry for entry in self.events if entry.status == STATUS_WARNING]

    def events_of(self, event: str) -> list[AuditEvent]:
        return [entry for entry in self.events if entry.event == event]

    def to_list(self) -> list[dict[str, Any]]:
        return [entry.to_dict() for entry in self.events]

    def clear(self) -> None:
        self.events.clear()
