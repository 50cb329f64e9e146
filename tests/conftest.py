# tests/conftest.py
"""In-memory stand-ins for the Supabase-backed stores and alert channels."""
from __future__ import annotations

import threading
from typing import Dict, List

import pytest

from machi_events.alerts import AlertChannel, AlertDispatcher
from machi_events.config import Settings
from machi_events.models import Alert, CandidateEvent, LogEntry, LogStatus


class InMemoryEventStore:
    def __init__(self, rows: List[dict] | None = None) -> None:
        self.rows: List[dict] = list(rows or [])
        self.deleted = 0
        self.insert_calls = 0
        self._lock = threading.Lock()

    def delete_all(self) -> int:
        with self._lock:
            n = len(self.rows)
            self.rows.clear()
            self.deleted += n
            return n

    def exists(self, event: CandidateEvent) -> bool:
        with self._lock:
            return any(
                r["title"] == event.title
                and r["event_date"] == event.event_date
                and r["source_site"] == event.source_site
                for r in self.rows
            )

    def insert(self, event: CandidateEvent) -> None:
        with self._lock:
            self.insert_calls += 1
            self.rows.append(event.to_row())


class InMemoryLogStore:
    def __init__(self, history: Dict[str, List[int]] | None = None) -> None:
        self.history = {k: list(v) for k, v in (history or {}).items()}
        self.entries: List[LogEntry] = []
        self._lock = threading.Lock()

    def write(self, entry: LogEntry) -> None:
        with self._lock:
            self.entries.append(entry)

    def recent_success_counts(self, site_name: str, limit: int) -> list[int]:
        with self._lock:
            written = [
                e.events_count
                for e in reversed(self.entries)
                if e.site_name == site_name and e.status == LogStatus.SUCCESS and e.events_count > 0
            ]
        return (written + self.history.get(site_name, []))[:limit]

    def for_site(self, site_name: str) -> List[LogEntry]:
        return [e for e in self.entries if e.site_name == site_name]


class RecordingChannel(AlertChannel):
    name = "recording"

    def __init__(self) -> None:
        self.alerts: List[Alert] = []
        self._lock = threading.Lock()

    def send(self, alert: Alert) -> None:
        with self._lock:
            self.alerts.append(alert)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://test.supabase.co",
        supabase_service_role_key="service-role-key",
        max_workers=4,
        fetch_timeout_s=10.0,
        retry_max_attempts=3,
        retry_base_delay_s=1.0,
        retry_max_delay_s=30.0,
    )


@pytest.fixture
def event_store() -> InMemoryEventStore:
    return InMemoryEventStore()


@pytest.fixture
def log_store() -> InMemoryLogStore:
    return InMemoryLogStore()


@pytest.fixture
def channel() -> RecordingChannel:
    return RecordingChannel()


@pytest.fixture
def dispatcher(channel: RecordingChannel) -> AlertDispatcher:
    return AlertDispatcher([channel])
