from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Callable, Optional

from .db.events_store import EventStore
from .models import CandidateEvent
from .retry import RetryPolicy, retry_with_backoff

logger = logging.getLogger(__name__)


class IngestResult(str, Enum):
    INSERTED = "inserted"
    DUPLICATE = "duplicate"
    CHECK_FAILED = "check_failed"
    INSERT_FAILED = "insert_failed"

    @property
    def failed(self) -> bool:
        return self in (IngestResult.CHECK_FAILED, IngestResult.INSERT_FAILED)


class Ingester:
    """
    Dedup-then-insert for one source pipeline.

    Dedup key: (title, event_date, source_site). A key already handled in this
    run is a duplicate without another round trip. When the lookup itself
    fails the candidate is not inserted, so a store hiccup can never create a
    second row for a key.
    """

    def __init__(
        self,
        store: EventStore,
        policy: Optional[RetryPolicy] = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.store = store
        self.policy = policy or RetryPolicy(max_attempts=2, base_delay_s=0.5)
        self.sleep = sleep
        self._seen: set[tuple[str, str, str]] = set()

    def ingest(self, event: CandidateEvent) -> IngestResult:
        key = event.dedupe_key
        if key in self._seen:
            return IngestResult.DUPLICATE

        try:
            found = retry_with_backoff(
                lambda: self.store.exists(event),
                self.policy,
                sleep=self.sleep,
                label=f"exists:{event.source_site}",
            )
        except Exception as e:
            logger.warning(
                "[ingest] CHECK_FAILED site=%s title=%r date=%s: %s",
                event.source_site, event.title, event.event_date, e,
            )
            return IngestResult.CHECK_FAILED

        if found:
            self._seen.add(key)
            logger.debug("[ingest] duplicate site=%s title=%r", event.source_site, event.title)
            return IngestResult.DUPLICATE

        attempts = 0

        def _insert() -> None:
            nonlocal attempts
            attempts += 1
            # A timed-out insert may still have landed
            if attempts > 1 and self.store.exists(event):
                return
            self.store.insert(event)

        try:
            retry_with_backoff(
                _insert,
                self.policy,
                sleep=self.sleep,
                label=f"insert:{event.source_site}",
            )
        except Exception as e:
            logger.warning(
                "[ingest] INSERT_FAILED site=%s title=%r date=%s: %s",
                event.source_site, event.title, event.event_date, e,
            )
            return IngestResult.INSERT_FAILED

        self._seen.add(key)
        return IngestResult.INSERTED
