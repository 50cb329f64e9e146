from __future__ import annotations

import logging
import re
from datetime import date
from typing import Iterable, List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from ..config import DEFAULT_TIMEZONE
from ..dates import local_today, normalize_date, parse_time
from ..errors import ParsingError
from ..models import CandidateEvent
from ..titles import accept_title
from .types import ExtractionRules, SiteConfig

logger = logging.getLogger(__name__)

# Heuristic mode: where events usually live on CMS list pages
_GENERIC_CONTAINER_SELECTORS = (
    "article",
    '[class*="event"], [class*="news"], [class*="post"]',
    "ul li",
)
_TITLE_SELECTOR = "h1, h2, h3, h4, h5, h6, strong, .title"

_SKIP_HREF_RE = re.compile(r"^(?:#|javascript:|mailto:|tel:)", re.IGNORECASE)
_ICON_RE = re.compile(r"(logo|icon|sprite|favicon|spacer)", re.IGNORECASE)


def make_absolute_url(href: Optional[str], base_url: str) -> str:
    """
    Resolve root-relative ("/news/1.html") and path-relative ("1.html",
    "../1.html") links against the page URL. Missing or non-navigational
    links fall back to the page itself.
    """
    h = (href or "").strip()
    if not h or _SKIP_HREF_RE.match(h):
        return base_url
    return urljoin(base_url, h)


def _text(el: Optional[Tag]) -> str:
    if el is None:
        return ""
    return el.get_text(" ", strip=True)


def _first_href(el: Tag, selector: Optional[str] = None) -> Optional[str]:
    if el.name == "a" and el.get("href"):
        return el.get("href")
    a = el.select_one(selector or "a[href]")
    if a is None:
        return None
    if a.name != "a":
        a = a.find("a", href=True) or a
    return a.get("href")


def _first_image(el: Tag, base_url: str) -> Optional[str]:
    for img in el.find_all("img"):
        for attr in ("src", "data-src", "data-original", "data-lazy-src"):
            v = (img.get(attr) or "").strip()
            if not v or v.startswith("data:") or _ICON_RE.search(v):
                continue
            return urljoin(base_url, v)
    return None


def _extract_with_rules(
    el: Tag,
    rules: ExtractionRules,
    site: SiteConfig,
    today: Optional[date],
) -> Optional[CandidateEvent]:
    container_text = _text(el)

    title_el = el.select_one(rules.title) if rules.title else None
    title = accept_title(_text(title_el) or container_text)
    if not title:
        return None

    date_el = el.select_one(rules.date) if rules.date else None
    date_text = _text(date_el) or container_text
    event_date = normalize_date(date_text, today=today)
    if not event_date:
        return None

    place_el = el.select_one(rules.place) if rules.place else None
    place = _text(place_el) or None

    return CandidateEvent(
        title=title,
        event_date=event_date,
        event_time=parse_time(date_text),
        place=place,
        source_url=make_absolute_url(_first_href(el, rules.link), site.url),
        source_site=site.name,
        region=site.region,
        image_url=_first_image(el, site.url),
    )


def _extract_generic(el: Tag, site: SiteConfig, today: Optional[date]) -> Optional[CandidateEvent]:
    title_raw = _text(el.select_one(_TITLE_SELECTOR)) or _text(el.find("a")) or _text(el)
    title = accept_title(title_raw)
    if not title:
        return None

    full_text = _text(el)
    event_date = normalize_date(full_text, today=today)
    if not event_date:
        return None

    return CandidateEvent(
        title=title,
        event_date=event_date,
        event_time=parse_time(full_text),
        source_url=make_absolute_url(_first_href(el), site.url),
        source_site=site.name,
        region=site.region,
        image_url=_first_image(el, site.url),
    )


def _generic_containers(soup: BeautifulSoup) -> Iterable[Tag]:
    seen: set[int] = set()
    for selector in _GENERIC_CONTAINER_SELECTORS:
        for el in soup.select(selector):
            if id(el) in seen:
                continue
            seen.add(id(el))
            yield el


def parse_html(
    document: str,
    site: SiteConfig,
    *,
    today: Optional[date] = None,
    tz_name: str = DEFAULT_TIMEZONE,
) -> List[CandidateEvent]:
    """
    Extract candidate events from an HTML list page.

    Uses the site's selectors when configured, otherwise scans likely
    containers. A bad element is skipped; a page that cannot be parsed at
    all raises ParsingError.
    """
    if not (document or "").strip():
        raise ParsingError("empty document", site.name)

    today = today or local_today(tz_name)

    try:
        soup = BeautifulSoup(document, "html.parser")
        if site.rules:
            mode = "rules"
            containers = list(soup.select(site.rules.selector))
        else:
            mode = "generic"
            containers = list(_generic_containers(soup))
    except Exception as e:
        raise ParsingError(f"html parse failed: {type(e).__name__}: {e}", site.name) from e

    events: List[CandidateEvent] = []
    seen_keys: set[tuple[str, str, str]] = set()
    skipped = 0

    for el in containers:
        try:
            if site.rules:
                ev = _extract_with_rules(el, site.rules, site, today)
            else:
                ev = _extract_generic(el, site, today)
        except Exception as e:
            skipped += 1
            logger.debug("[html] skip element site=%s: %s: %s", site.name, type(e).__name__, e)
            continue

        if ev is None:
            skipped += 1
            continue
        # Nested containers match the same item more than once
        if ev.dedupe_key in seen_keys:
            continue
        seen_keys.add(ev.dedupe_key)
        events.append(ev)

    logger.info(
        "[html] parsed site=%s mode=%s containers=%d events=%d skipped=%d",
        site.name, mode, len(containers), len(events), skipped,
    )
    return events
