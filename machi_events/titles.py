# machi_events/titles.py
"""
Single source of truth for title cleanup and plausibility checks.

Imported by:
  - sources/html_parser.py  (per-element title gate)
  - sources/feed_parser.py  (per-entry title gate)
  - drift.py                (abnormal-title rate)

Rules are deterministic:
  1. Empty or whitespace-only -> junk
  2. Exact match against known navigation/noise words -> junk
  3. Contains only whitespace / digits / punctuation (no letters) -> junk
  4. Longer than MAX_TITLE_LENGTH -> implausible (mis-selected container)
"""
from __future__ import annotations

import re

MIN_TITLE_LENGTH = 3
MAX_TITLE_LENGTH = 200

# Link texts that list pages use for navigation, never event names
JUNK_TITLES_EXACT: frozenset[str] = frozenset({
    "もっと見る",
    "一覧を見る",
    "一覧へ",
    "一覧",
    "詳細",
    "詳しくはこちら",
    "続きを読む",
    "新着情報",
    "お知らせ",
    "トップページ",
    "ホーム",
    "home",
    "more",
    "read more",
})

# Regex: title is purely whitespace, digits, punctuation -- no real words
_STRUCTURAL_ONLY_RE = re.compile(r"^[\s\d\W_]*$", re.UNICODE)


def clean_title(title: str | None) -> str:
    """Collapse internal whitespace (including full-width spaces) and strip."""
    return " ".join((title or "").replace("　", " ").split())


def is_junk_title(title: str | None) -> bool:
    t = clean_title(title)
    if not t:
        return True
    if t.lower() in JUNK_TITLES_EXACT:
        return True
    if _STRUCTURAL_ONLY_RE.fullmatch(t):
        return True
    return False


def is_plausible_title(
    title: str | None,
    *,
    min_length: int = MIN_TITLE_LENGTH,
    max_length: int = MAX_TITLE_LENGTH,
) -> bool:
    """Length band used by drift detection."""
    n = len(clean_title(title))
    return min_length <= n <= max_length


def accept_title(title: str | None) -> str | None:
    """Return the cleaned title if a parser may emit it, else None."""
    t = clean_title(title)
    if is_junk_title(t):
        return None
    if len(t) > MAX_TITLE_LENGTH:
        return None
    return t
