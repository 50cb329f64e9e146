from __future__ import annotations

import json
import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import date
from typing import Callable, Dict, Iterable, List, Optional

from .alerts import AlertDispatcher, error_alert, structure_change_alert, warning_alert
from .config import Settings
from .db.events_store import EventStore, SupabaseEventStore
from .db.scraping_logs import LogStore, SupabaseLogStore
from .db.supabase_client import get_supabase_client
from .drift import DriftDetector, DriftThresholds
from .errors import DatabaseError, to_scraping_error
from .ingest import IngestResult, Ingester
from .models import BatchError, BatchReport, CandidateEvent, LogEntry, LogStatus, SourceError, SourceOutcome
from .retry import RetryPolicy, retry_with_backoff
from .sources.http import HttpResult, http_get
from .sources.registry import get_parser, get_sites
from .sources.types import SiteConfig, SourceKind

logger = logging.getLogger(__name__)

FetchFn = Callable[..., HttpResult]
SleepFn = Callable[[float], None]


def retry_policy_from(settings: Settings) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=settings.retry_max_attempts,
        base_delay_s=settings.retry_base_delay_s,
        max_delay_s=settings.retry_max_delay_s,
    )


def drift_thresholds_from(settings: Settings) -> DriftThresholds:
    return DriftThresholds(
        min_samples=settings.drift_min_samples,
        window=settings.drift_window,
        drop_ratio=settings.drift_drop_ratio,
        invalid_ratio=settings.drift_invalid_ratio,
    )


def build_source_job(
    site: SiteConfig,
    settings: Settings,
    fetch: FetchFn,
    today: Optional[date] = None,
) -> Callable[[], List[CandidateEvent]]:
    """
    Resolve the site's kind once into a single fetch-and-parse callable.
    """
    parse = get_parser(site.kind)

    def job() -> List[CandidateEvent]:
        res = fetch(site.url, timeout_s=settings.fetch_timeout_s)
        if site.kind is SourceKind.FEED:
            # Raw bytes let the XML declaration pick the encoding
            document = res.content or res.text
        else:
            document = res.text
        return parse(document, site, today=today, tz_name=settings.timezone)

    return job


def _write_log(log_store: LogStore, entry: LogEntry) -> None:
    try:
        log_store.write(entry)
    except Exception as e:
        logger.error(
            "[source] log write failed site=%s status=%s: %s: %s",
            entry.site_name, entry.status.value, type(e).__name__, e,
        )


def run_source(
    site: SiteConfig,
    *,
    settings: Settings,
    event_store: EventStore,
    log_store: LogStore,
    dispatcher: AlertDispatcher,
    detector: DriftDetector,
    fetch: FetchFn = http_get,
    sleep: SleepFn = time.sleep,
    today: Optional[date] = None,
) -> SourceOutcome:
    """
    One source pipeline: retry(fetch + parse) -> drift check -> ingest -> log.

    Never raises. Whatever goes wrong is classified, logged, written to the
    audit log and alerted, and reported in the returned outcome.
    """
    outcome = SourceOutcome(site_name=site.name)
    t0 = time.perf_counter()
    logger.info("[source] start site=%s kind=%s url=%s", site.name, site.kind.value, site.url)

    def _on_attempt(n: int) -> None:
        outcome.attempts = n

    try:
        job = build_source_job(site, settings, fetch, today)
        events = retry_with_backoff(
            job,
            retry_policy_from(settings),
            sleep=sleep,
            label=site.name,
            on_attempt=_on_attempt,
        )
        outcome.events_found = len(events)

        drift = detector.check(site.name, events)
        if drift.changed:
            err = drift.to_error(site.name)
            outcome.status = LogStatus.FAILURE
            outcome.drift = True
            outcome.drift_reason = drift.reason
            outcome.error = SourceError(message=err.message, kind=err.kind.value)
            logger.warning("[source] STRUCTURE_CHANGE site=%s reason=%s", site.name, drift.reason)
            _write_log(log_store, LogEntry(
                site_name=site.name,
                status=LogStatus.FAILURE,
                events_count=len(events),
                error_message=err.message,
                error_type=err.kind.value,
            ))
            dispatcher.dispatch(structure_change_alert(site.name, drift))
            return outcome

        ingester = Ingester(event_store, sleep=sleep)
        for ev in events:
            result = ingester.ingest(ev)
            if result is IngestResult.INSERTED:
                outcome.events_inserted += 1
            elif result is IngestResult.DUPLICATE:
                outcome.duplicates += 1
            else:
                outcome.insert_failures += 1

        stored = outcome.events_inserted + outcome.duplicates
        if outcome.insert_failures == 0:
            outcome.status = LogStatus.SUCCESS
            _write_log(log_store, LogEntry(
                site_name=site.name,
                status=LogStatus.SUCCESS,
                events_count=outcome.events_found,
            ))
        elif stored > 0:
            message = f"{outcome.insert_failures} of {outcome.events_found} events could not be stored"
            outcome.status = LogStatus.PARTIAL
            outcome.error = SourceError(message=message, kind=DatabaseError.kind.value)
            _write_log(log_store, LogEntry(
                site_name=site.name,
                status=LogStatus.PARTIAL,
                events_count=outcome.events_found,
                error_message=message,
                error_type=DatabaseError.kind.value,
            ))
            dispatcher.dispatch(warning_alert(site.name, message, {
                "eventsFound": outcome.events_found,
                "eventsInserted": outcome.events_inserted,
                "insertFailures": outcome.insert_failures,
            }))
        else:
            raise DatabaseError(f"all {outcome.insert_failures} events failed to store", site.name)

    except Exception as e:
        err = to_scraping_error(e, site.name)
        outcome.status = LogStatus.FAILURE
        outcome.error = SourceError(message=err.message, kind=err.kind.value)
        logger.error(
            "[source] FAILED site=%s kind=%s attempts=%d: %s",
            site.name, err.kind.value, outcome.attempts, err.message,
        )
        _write_log(log_store, LogEntry(
            site_name=site.name,
            status=LogStatus.FAILURE,
            events_count=outcome.events_found,
            error_message=err.message,
            error_type=err.kind.value,
            stack_trace=err.stack_trace(),
        ))
        dispatcher.dispatch(error_alert(err))

    logger.info(
        "[source] done site=%s status=%s found=%d inserted=%d duplicates=%d insert_failures=%d took_s=%.2f",
        site.name, outcome.status.value, outcome.events_found, outcome.events_inserted,
        outcome.duplicates, outcome.insert_failures, time.perf_counter() - t0,
    )
    return outcome


def summarize(outcomes: Iterable[SourceOutcome]) -> BatchReport:
    report = BatchReport()
    for o in outcomes:
        report.outcomes.append(o)
        report.total_sites += 1
        if o.success:
            report.successful_sites += 1
        else:
            report.failed_sites += 1
        if o.drift:
            report.structure_changes += 1
        report.total_events += o.events_found
        report.new_events += o.events_inserted
        if o.error:
            report.errors.append(BatchError(site=o.site_name, error=o.error.message, error_type=o.error.kind))
    return report


def run_batch(
    settings: Settings,
    *,
    event_store: EventStore,
    log_store: LogStore,
    dispatcher: AlertDispatcher,
    sites: Optional[Iterable[SiteConfig]] = None,
    fetch: FetchFn = http_get,
    sleep: SleepFn = time.sleep,
    today: Optional[date] = None,
    refresh: bool = True,
    max_workers: Optional[int] = None,
) -> BatchReport:
    """
    Replace-refresh the event store from every configured source.

    The store is emptied before any source runs and refilled as pipelines
    finish, so readers during a batch see a partial data set. A failure to
    empty the store aborts the batch; any single source failing does not.
    """
    site_list = list(sites) if sites is not None else get_sites()

    if refresh:
        event_store.delete_all()

    detector = DriftDetector(log_store, drift_thresholds_from(settings))
    workers = max(1, min(max_workers or settings.max_workers, len(site_list) or 1))
    logger.info("[pipeline] start sites=%d workers=%d refresh=%s", len(site_list), workers, refresh)

    by_name: Dict[str, SourceOutcome] = {}
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = {
            pool.submit(
                run_source,
                site,
                settings=settings,
                event_store=event_store,
                log_store=log_store,
                dispatcher=dispatcher,
                detector=detector,
                fetch=fetch,
                sleep=sleep,
                today=today,
            ): site
            for site in site_list
        }
        for fut in as_completed(futures):
            site = futures[fut]
            try:
                by_name[site.name] = fut.result()
            except Exception as e:
                # run_source contains its own failures; this is a last line
                err = to_scraping_error(e, site.name)
                logger.exception("[pipeline] worker crashed site=%s", site.name)
                by_name[site.name] = SourceOutcome(
                    site_name=site.name,
                    error=SourceError(message=err.message, kind=err.kind.value),
                )

    return summarize(by_name[s.name] for s in site_list)


def format_summary(report: BatchReport) -> str:
    """Deterministic, grep-friendly summary line."""
    duplicates = sum(o.duplicates for o in report.outcomes)
    insert_failures = sum(o.insert_failures for o in report.outcomes)
    return (
        f"[pipeline][summary]"
        f" sites={report.total_sites}"
        f" successful={report.successful_sites}"
        f" failed={report.failed_sites}"
        f" structure_changes={report.structure_changes}"
        f" extracted={report.total_events}"
        f" inserted={report.new_events}"
        f" duplicates={duplicates}"
        f" insert_failures={insert_failures}"
    )


def run_from_env(
    site_names: Optional[List[str]] = None,
    *,
    refresh: bool = True,
    max_workers: Optional[int] = None,
) -> int:
    """
    Batch trigger: build everything from the environment, run, print the
    JSON report. Exit code 0 = all sources ok, 2 = some failed, 1 = the batch
    itself could not run.
    """
    try:
        settings = Settings.from_env()
        supabase = get_supabase_client(settings)
        report = run_batch(
            settings,
            event_store=SupabaseEventStore(supabase),
            log_store=SupabaseLogStore(supabase),
            dispatcher=AlertDispatcher.from_settings(settings),
            sites=get_sites(site_names) if site_names else None,
            refresh=refresh,
            max_workers=max_workers,
        )
    except Exception as e:
        logger.exception("[pipeline] batch aborted")
        print(json.dumps({"success": False, "error": str(e)}, ensure_ascii=False))
        return 1

    print(format_summary(report))
    print(json.dumps(report.to_json_dict(), ensure_ascii=False, indent=2))
    return 0 if report.failed_sites == 0 else 2


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    raise SystemExit(run_from_env())


if __name__ == "__main__":
    main()
