from __future__ import annotations

import logging
from datetime import date
from typing import Any, List, Mapping, Optional, Union
from urllib.parse import urljoin

import feedparser
from bs4 import BeautifulSoup

from ..config import DEFAULT_TIMEZONE
from ..dates import iso_literal_date, local_today, normalize_date, parse_time, rfc822_date
from ..errors import ParsingError
from ..models import CandidateEvent
from ..titles import accept_title
from .types import SiteConfig

logger = logging.getLogger(__name__)

_DETAIL_MAX_CHARS = 2000


def _plain_text(value: Optional[str]) -> str:
    """Feed summaries are frequently HTML fragments (sometimes inside CDATA)."""
    if not value:
        return ""
    if "<" not in value:
        return " ".join(value.split())
    return BeautifulSoup(value, "html.parser").get_text(" ", strip=True)


def _entry_date(entry: Mapping[str, Any], text: str, *, today: Optional[date], tz_name: str) -> Optional[str]:
    """
    Preference order:
      1. dc:date / Atom <updated> (ISO 8601), date part read literally
      2. RSS <pubDate> (RFC 822), converted to the local calendar date
      3. a date written in the title / description
    """
    # FeedParserDict aliases a missing "updated" to "published" on lookup
    updated = (entry.get("updated") or "").strip() if "updated" in entry else ""
    if updated:
        d = iso_literal_date(updated)
        if d:
            return d

    published = (entry.get("published") or "").strip()
    if published:
        d = iso_literal_date(published) or rfc822_date(published, tz_name)
        if d:
            return d

    return normalize_date(text, today=today)


def _entry_image_url(entry: Mapping[str, Any], base_url: str) -> Optional[str]:
    for enc in entry.get("enclosures") or []:
        href = (enc.get("href") or "").strip()
        if href and str(enc.get("type") or "").startswith("image/"):
            return urljoin(base_url, href)

    for key in ("media_content", "media_thumbnail"):
        for media in entry.get(key) or []:
            url = (media.get("url") or "").strip()
            if url:
                return urljoin(base_url, url)

    return None


def _entry_to_event(
    entry: Mapping[str, Any],
    site: SiteConfig,
    *,
    today: Optional[date],
    tz_name: str,
) -> Optional[CandidateEvent]:
    title = accept_title(_plain_text(entry.get("title")))
    if not title:
        return None

    description = _plain_text(entry.get("summary") or entry.get("description"))
    text = f"{title} {description}"

    event_date = _entry_date(entry, text, today=today, tz_name=tz_name)
    if not event_date:
        return None

    link = (entry.get("link") or "").strip()

    return CandidateEvent(
        title=title,
        event_date=event_date,
        event_time=parse_time(text),
        detail=description[:_DETAIL_MAX_CHARS] or None,
        source_url=urljoin(site.url, link) if link else site.url,
        source_site=site.name,
        region=site.region,
        image_url=_entry_image_url(entry, site.url),
    )


def parse_feed(
    document: Union[str, bytes],
    site: SiteConfig,
    *,
    today: Optional[date] = None,
    tz_name: str = DEFAULT_TIMEZONE,
) -> List[CandidateEvent]:
    """
    Extract candidate events from an RSS 2.0 / RDF / Atom document.

    Entries without a title or a usable date are dropped; a broken entry is
    skipped without affecting its siblings. Year-less dates are resolved
    against today in tz_name. Raises ParsingError only when the
    document is not a feed at all.
    """
    today = today or local_today(tz_name)
    parsed = feedparser.parse(document)

    # No entries and no recognised format: an HTML error page, a moved feed, ...
    if not parsed.entries and not parsed.get("version"):
        exc = parsed.get("bozo_exception")
        detail = f"{type(exc).__name__}: {exc}" if exc else "unrecognised format"
        raise ParsingError(f"not a parseable feed: {detail}", site.name)

    events: List[CandidateEvent] = []
    dropped = 0
    for entry in parsed.entries:
        try:
            ev = _entry_to_event(entry, site, today=today, tz_name=tz_name)
        except Exception as e:
            dropped += 1
            logger.debug("[feed] skip entry site=%s: %s: %s", site.name, type(e).__name__, e)
            continue
        if ev is None:
            dropped += 1
            continue
        events.append(ev)

    logger.info(
        "[feed] parsed site=%s entries=%d events=%d dropped=%d",
        site.name, len(parsed.entries), len(events), dropped,
    )
    return events
