"""
Date / time normalization for free-form Japanese event text.

normalize_date() returns a canonical "YYYY-MM-DD" or None. Patterns are tried
most-qualified first so that a full date is never half-read by a year-less
pattern:

  1. "2025年11月7日"
  2. "令和7年11月7日" / "令和元年5月1日" / "平成31年4月30日"
  3. "2025-11-07", "2025/11/07", "2025.11.07"
  4. "11月7日", "11/7", "11.7"   (year inferred relative to today)

Every (year, month, day) match is checked against the real calendar; an
impossible date is "no match", never an exception.
"""
from __future__ import annotations

import re
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

import dateparser

from .config import DEFAULT_TIMEZONE

# Era name -> Gregorian year of era year 0 (令和1年 == 2019)
ERA_BASE_YEARS = {
    "令和": 2018,
    "平成": 1988,
}

_FULLWIDTH = str.maketrans(
    "０１２３４５６７８９：／．－～",
    "0123456789:/.-~",
)

_KANJI_YMD_RE = re.compile(r"(?<!\d)(\d{4})\s*年\s*(\d{1,2})\s*月\s*(\d{1,2})\s*日")
_ERA_YMD_RE = re.compile(r"(令和|平成)\s*(元|\d{1,2})\s*年\s*(\d{1,2})\s*月\s*(\d{1,2})\s*日")
_ISO_LIKE_RES = (
    re.compile(r"(?<!\d)(\d{4})-(\d{1,2})-(\d{1,2})(?!\d)"),
    re.compile(r"(?<!\d)(\d{4})/(\d{1,2})/(\d{1,2})(?!\d)"),
    re.compile(r"(?<!\d)(\d{4})\.(\d{1,2})\.(\d{1,2})(?!\d)"),
)
_MD_KANJI_RE = re.compile(r"(?<!\d)(\d{1,2})\s*月\s*(\d{1,2})\s*日?")
_MD_SLASH_RE = re.compile(r"(?<![\d/])(\d{1,2})/(\d{1,2})(?![\d/])")
_MD_DOT_RE = re.compile(r"(?<![\d.])(\d{1,2})\.(\d{1,2})(?![\d.])")

_TIME_RANGE_RE = re.compile(r"(\d{1,2}):(\d{2})\s*[~\-−–―〜ー]\s*(\d{1,2}):(\d{2})")
_TIME_SINGLE_RE = re.compile(r"(?<!\d)(\d{1,2}):(\d{2})")
_TIME_KANJI_RE = re.compile(r"(?<!\d)(\d{1,2})時(\d{2})分")

_ISO_LITERAL_RE = re.compile(r"^\s*(\d{4})-(\d{2})-(\d{2})")


def local_today(tz_name: str = DEFAULT_TIMEZONE) -> date:
    """Today's calendar date where the sources publish, not on the host clock."""
    return datetime.now(ZoneInfo(tz_name)).date()


def _fold(text: str) -> str:
    return text.translate(_FULLWIDTH)


def _ymd(year: int, month: int, day: int) -> Optional[str]:
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def _infer_year(month: int, day: int, today: date) -> int:
    """A month/day already behind us refers to next year."""
    if month < today.month or (month == today.month and day < today.day):
        return today.year + 1
    return today.year


def normalize_date(text: Optional[str], today: Optional[date] = None) -> Optional[str]:
    if not text:
        return None
    s = _fold(text.strip())
    if not s:
        return None

    # 1) four-digit year with 年月日
    m = _KANJI_YMD_RE.search(s)
    if m:
        return _ymd(int(m.group(1)), int(m.group(2)), int(m.group(3)))

    # 2) era year
    m = _ERA_YMD_RE.search(s)
    if m:
        era_year = 1 if m.group(2) == "元" else int(m.group(2))
        year = ERA_BASE_YEARS[m.group(1)] + era_year
        return _ymd(year, int(m.group(3)), int(m.group(4)))

    # 3) ISO-like numeric
    for rx in _ISO_LIKE_RES:
        m = rx.search(s)
        if m:
            return _ymd(int(m.group(1)), int(m.group(2)), int(m.group(3)))

    # 4) year-less
    today = today or local_today()
    for rx in (_MD_KANJI_RE, _MD_SLASH_RE, _MD_DOT_RE):
        m = rx.search(s)
        if m:
            month, day = int(m.group(1)), int(m.group(2))
            if not (1 <= month <= 12 and 1 <= day <= 31):
                return None
            return _ymd(_infer_year(month, day, today), month, day)

    return None


def _hhmm(h: str, m: str) -> Optional[str]:
    hour, minute = int(h), int(m)
    if hour > 24 or minute > 59:
        return None
    return f"{hour:02d}:{minute:02d}"


def parse_time(text: Optional[str]) -> Optional[str]:
    """
    "10:00～16:00" -> "10:00-16:00", "9:30" -> "09:30", "10時00分" -> "10:00".
    """
    if not text:
        return None
    s = _fold(text)

    m = _TIME_RANGE_RE.search(s)
    if m:
        start = _hhmm(m.group(1), m.group(2))
        end = _hhmm(m.group(3), m.group(4))
        if start and end:
            return f"{start}-{end}"

    m = _TIME_SINGLE_RE.search(s)
    if m:
        t = _hhmm(m.group(1), m.group(2))
        if t:
            return t

    m = _TIME_KANJI_RE.search(s)
    if m:
        return _hhmm(m.group(1), m.group(2))

    return None


def iso_literal_date(text: Optional[str]) -> Optional[str]:
    """
    Read the calendar date of an ISO-8601 timestamp literally.

    "2025-11-14T00:00:00+09:00" -> "2025-11-14" (no shift into another zone).
    """
    if not text:
        return None
    m = _ISO_LITERAL_RE.match(text)
    if not m:
        return None
    return _ymd(int(m.group(1)), int(m.group(2)), int(m.group(3)))


def rfc822_date(text: Optional[str], tz_name: str = DEFAULT_TIMEZONE) -> Optional[str]:
    """
    RFC-822 timestamp ("Fri, 07 Nov 2025 10:00:00 +0900") -> local calendar
    date in tz_name.
    """
    s = (text or "").strip()
    if not s:
        return None

    dt: Optional[datetime] = dateparser.parse(
        s,
        languages=["en"],
        settings={
            "TIMEZONE": tz_name,
            "TO_TIMEZONE": tz_name,
            "RETURN_AS_TIMEZONE_AWARE": True,
        },
    )
    if dt is None:
        return None
    return dt.date().isoformat()
