# machi_events/db/events_store.py
"""
Access to the shared public.events table.

The store is consumed through three narrow operations only:
  - delete_all()  replace-refresh before a batch fans out
  - exists()      dedup lookup on (title, event_date, source_site)
  - insert()      one row per surviving candidate

Every failure is raised as DatabaseError so retry classification sees a
retryable store error rather than a bare client exception.
"""
from __future__ import annotations

import logging
from typing import Any, Protocol

from supabase import Client

from ..errors import DatabaseError
from ..models import CandidateEvent

logger = logging.getLogger(__name__)

EVENTS_TABLE = "events"


class EventStore(Protocol):
    def delete_all(self) -> int:
        ...

    def exists(self, event: CandidateEvent) -> bool:
        ...

    def insert(self, event: CandidateEvent) -> None:
        ...


class SupabaseEventStore:
    def __init__(self, supabase: Client, table: str = EVENTS_TABLE) -> None:
        self.supabase = supabase
        self.table = table

    def delete_all(self) -> int:
        """Delete every row. PostgREST refuses an unfiltered DELETE, hence the id filter."""
        try:
            resp = self.supabase.table(self.table).delete().not_.is_("id", "null").execute()
        except Exception as e:
            raise DatabaseError(f"delete_all failed on {self.table}: {type(e).__name__}: {e}") from e
        data: Any = getattr(resp, "data", None) or []
        deleted = len(data) if isinstance(data, list) else 0
        logger.info("[store] delete_all table=%s deleted=%d", self.table, deleted)
        return deleted

    def exists(self, event: CandidateEvent) -> bool:
        try:
            resp = (
                self.supabase.table(self.table)
                .select("id")
                .eq("title", event.title)
                .eq("event_date", event.event_date)
                .eq("source_site", event.source_site)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise DatabaseError(
                f"duplicate check failed: {type(e).__name__}: {e}", event.source_site,
            ) from e
        return bool(getattr(resp, "data", None))

    def insert(self, event: CandidateEvent) -> None:
        try:
            self.supabase.table(self.table).insert(event.to_row()).execute()
        except Exception as e:
            raise DatabaseError(
                f"insert failed: {type(e).__name__}: {e}", event.source_site,
            ) from e
