"""
Structural drift detection.

A source "drifts" when it still answers but its markup no longer matches our
assumptions: the yield collapses compared with its own history, or most of
what we extract looks wrong. The thresholds are heuristics, so they live in
DriftThresholds and can be tuned per deployment (see Settings).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol, Sequence

from .errors import StructureChangeError
from .models import CandidateEvent
from .titles import MAX_TITLE_LENGTH, MIN_TITLE_LENGTH, is_plausible_title

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DriftThresholds:
    min_samples: int = 3
    window: int = 10
    drop_ratio: float = 0.5
    invalid_ratio: float = 0.5
    min_title_length: int = MIN_TITLE_LENGTH
    max_title_length: int = MAX_TITLE_LENGTH


@dataclass
class DriftResult:
    changed: bool
    current_count: int
    reason: Optional[str] = None
    avg_count: Optional[float] = None
    samples: int = 0
    details: Dict[str, Any] = field(default_factory=dict)

    def to_details(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"currentCount": self.current_count, "samples": self.samples}
        if self.avg_count is not None:
            out["avgCount"] = round(self.avg_count, 1)
        out.update(self.details)
        return out

    def to_error(self, site_name: str) -> StructureChangeError:
        return StructureChangeError(
            self.reason or "Structure change detected",
            site_name,
            details=self.to_details(),
        )


class HistorySource(Protocol):
    def recent_success_counts(self, site_name: str, limit: int) -> list[int]:
        ...


def _field_validity_reason(events: Sequence[CandidateEvent], t: DriftThresholds) -> Optional[str]:
    total = len(events)
    if total == 0:
        return None

    missing = [e for e in events if not getattr(e, "title", None) or not getattr(e, "event_date", None)]
    rate = len(missing) / total
    if rate > t.invalid_ratio:
        return f"Too many invalid events: {len(missing)}/{total} ({rate * 100:.1f}%)"

    abnormal = [
        e for e in events
        if not is_plausible_title(
            getattr(e, "title", None),
            min_length=t.min_title_length,
            max_length=t.max_title_length,
        )
    ]
    rate = len(abnormal) / total
    if rate > t.invalid_ratio:
        return f"Too many events with abnormal titles: {len(abnormal)}/{total} ({rate * 100:.1f}%)"

    return None


def detect_drift(
    history_counts: Sequence[int],
    events: Sequence[CandidateEvent],
    thresholds: Optional[DriftThresholds] = None,
) -> DriftResult:
    """
    history_counts: event counts of past successful, non-zero runs (newest first).
    """
    t = thresholds or DriftThresholds()
    current = len(events)
    history = [c for c in history_counts if c > 0][: t.window]

    # Cold start: not enough history to call anything a drop
    if len(history) < t.min_samples:
        return DriftResult(changed=False, current_count=current, samples=len(history))

    avg = sum(history) / len(history)

    if current == 0:
        return DriftResult(
            changed=True,
            current_count=current,
            avg_count=avg,
            samples=len(history),
            reason="No events found - possible structure change or site issue",
        )

    if current < avg * t.drop_ratio:
        return DriftResult(
            changed=True,
            current_count=current,
            avg_count=avg,
            samples=len(history),
            reason=f"Event count dropped significantly ({current} vs avg {avg:.1f})",
        )

    reason = _field_validity_reason(events, t)
    if reason:
        return DriftResult(changed=True, current_count=current, avg_count=avg, samples=len(history), reason=reason)

    return DriftResult(changed=False, current_count=current, avg_count=avg, samples=len(history))


class DriftDetector:
    def __init__(self, history: HistorySource, thresholds: Optional[DriftThresholds] = None) -> None:
        self.history = history
        self.thresholds = thresholds or DriftThresholds()

    def check(self, site_name: str, events: Sequence[CandidateEvent]) -> DriftResult:
        try:
            counts = self.history.recent_success_counts(site_name, self.thresholds.window)
        except Exception as e:
            # No baseline means no verdict; the run itself is still valid
            logger.warning(
                "[drift] history lookup failed site=%s: %s: %s", site_name, type(e).__name__, e,
            )
            return DriftResult(changed=False, current_count=len(events))

        result = detect_drift(counts, events, self.thresholds)
        if result.samples < self.thresholds.min_samples:
            logger.info("[drift] insufficient history site=%s samples=%d", site_name, result.samples)
        else:
            logger.info(
                "[drift] site=%s current=%d avg=%.1f changed=%s",
                site_name, result.current_count, result.avg_count or 0.0, result.changed,
            )
        return result
