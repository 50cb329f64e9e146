# machi_events/db/scraping_logs.py
"""
Append-only audit trail in public.scraping_logs: one row per source per run.

The same table is the drift baseline: recent successful, non-zero runs of a
source are what its current yield is compared against.
"""
from __future__ import annotations

import logging
from typing import Any, Protocol

from supabase import Client

from ..errors import DatabaseError
from ..models import LogEntry, LogStatus

logger = logging.getLogger(__name__)

LOGS_TABLE = "scraping_logs"


class LogStore(Protocol):
    def write(self, entry: LogEntry) -> None:
        ...

    def recent_success_counts(self, site_name: str, limit: int) -> list[int]:
        ...


class SupabaseLogStore:
    def __init__(self, supabase: Client, table: str = LOGS_TABLE) -> None:
        self.supabase = supabase
        self.table = table

    def write(self, entry: LogEntry) -> None:
        row = {k: v for k, v in entry.to_row().items() if v is not None}
        try:
            self.supabase.table(self.table).insert(row).execute()
        except Exception as e:
            raise DatabaseError(
                f"log write failed: {type(e).__name__}: {e}", entry.site_name,
            ) from e

    def recent_success_counts(self, site_name: str, limit: int) -> list[int]:
        """events_count of the newest successful runs that found something."""
        try:
            resp = (
                self.supabase.table(self.table)
                .select("events_count")
                .eq("site_name", site_name)
                .eq("status", LogStatus.SUCCESS.value)
                .gt("events_count", 0)
                .order("created_at", desc=True)
                .limit(limit)
                .execute()
            )
        except Exception as e:
            raise DatabaseError(f"log history query failed: {type(e).__name__}: {e}", site_name) from e

        data: Any = getattr(resp, "data", None) or []
        counts: list[int] = []
        for r in data:
            try:
                counts.append(int(r.get("events_count") or 0))
            except (TypeError, ValueError):
                continue
        return counts
