"""Liveness plus per-event-type counters for the stream workers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass(slots=True)
class EventCounters:
    processed: int = 0
    failed: int = 0


@dataclass(slots=True)
class AgentHealth:
    name: str
    healthy: bool = False
    ready: bool = False
    last_error: str | None = None
    last_success_at: datetime | None = None
    last_run_at: datetime | None = None
    last_event_id: str | None = None
    last_event_error: str | None = None
    events: dict[str, EventCounters] = field(default_factory=dict)
    emails_sent: dict[str, int] = field(default_factory=dict)

    def mark_run(self) -> None:
        self.last_run_at = _now()

    def mark_success(self) -> None:
        self.healthy = True
        self.ready = True
        self.last_error = None
        self.last_success_at = _now()

    def mark_error(self, error: Exception) -> None:
        # Loop-level failures only; a single bad event does not make the agent unhealthy.
        self.healthy = False
        self.last_error = str(error)

    def _counters(self, event_type: str | None) -> EventCounters:
        return self.events.setdefault(event_type or "unknown", EventCounters())

    def record_processed(self, event_type: str | None, message_id: str) -> None:
        self._counters(event_type).processed += 1
        self.last_event_id = message_id

    def record_failed(self, event_type: str | None, message_id: str, error: Exception) -> None:
        self._counters(event_type).failed += 1
        self.last_event_id = message_id
        self.last_event_error = str(error)

    def record_email(self, template: str) -> None:
        self.emails_sent[template] = self.emails_sent.get(template, 0) + 1

    @property
    def processed_total(self) -> int:
        return sum(counters.processed for counters in self.events.values())

    @property
    def failed_total(self) -> int:
        return sum(counters.failed for counters in self.events.values())

    def payload(self) -> dict[str, object]:
        return {
            "name": self.name,
            "healthy": self.healthy,
            "ready": self.ready,
            "last_error": self.last_error,
            "last_success_at": _iso(self.last_success_at),
            "last_run_at": _iso(self.last_run_at),
            "last_event_id": self.last_event_id,
            "last_event_error": self.last_event_error,
            "events": {
                event_type: {"processed": counters.processed, "failed": counters.failed}
                for event_type, counters in self.events.items()
            },
            "processed_total": self.processed_total,
            "failed_total": self.failed_total,
            "emails_sent": dict(self.emails_sent),
        }
