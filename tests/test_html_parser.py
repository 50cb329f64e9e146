# tests/test_html_parser.py
"""
Unit tests for machi_events/sources/html_parser.py: selector mode, heuristic
mode and link resolution.
"""
from __future__ import annotations

from datetime import date
from unittest.mock import patch

import pytest

from machi_events.errors import ParsingError
from machi_events.sources.html_parser import make_absolute_url, parse_html
from machi_events.sources.types import ExtractionRules, SiteConfig, SourceKind

TODAY = date(2025, 11, 1)

RULES = ExtractionRules(
    selector=".event-item",
    title=".event-title",
    date=".event-date",
    place=".event-place",
    link="a",
)


def _make_site(rules: ExtractionRules | None = None, **overrides) -> SiteConfig:
    defaults = {
        "name": "飯田市役所",
        "url": "https://www.city.example.lg.jp/life/3/16/index-2.html",
        "region": "飯田市",
        "kind": SourceKind.HTML,
        "rules": rules,
    }
    defaults.update(overrides)
    return SiteConfig(**defaults)


RULES_PAGE = """
<html><body>
  <div class="event-item">
    <a href="/event/100.html"><span class="event-title">人形劇フェスタ</span></a>
    <span class="event-date">2025年11月8日（土） 13:00～16:00</span>
    <span class="event-place">飯田文化会館</span>
    <img src="/img/logo.png"><img src="/img/puppet.jpg">
  </div>
  <div class="event-item">
    <a href="detail/101.html"><span class="event-title">りんご並木マルシェ</span></a>
    <span class="event-date">11月15日</span>
  </div>
  <div class="event-item">
    <span class="event-title">日程未定の講座</span>
  </div>
</body></html>
"""


# ---------------------------------------------------------------------------
# Selector mode
# ---------------------------------------------------------------------------

class TestRulesMode:
    def test_fields_extracted(self):
        events = parse_html(RULES_PAGE, _make_site(RULES), today=TODAY)
        assert [e.title for e in events] == ["人形劇フェスタ", "りんご並木マルシェ"]

        first = events[0]
        assert first.event_date == "2025-11-08"
        assert first.event_time == "13:00-16:00"
        assert first.place == "飯田文化会館"
        assert first.source_url == "https://www.city.example.lg.jp/event/100.html"
        assert first.image_url == "https://www.city.example.lg.jp/img/puppet.jpg"

    def test_path_relative_link_resolved(self):
        second = parse_html(RULES_PAGE, _make_site(RULES), today=TODAY)[1]
        assert second.source_url == "https://www.city.example.lg.jp/life/3/16/detail/101.html"
        assert second.event_date == "2025-11-15"
        assert second.place is None

    def test_element_without_date_skipped(self):
        titles = [e.title for e in parse_html(RULES_PAGE, _make_site(RULES), today=TODAY)]
        assert "日程未定の講座" not in titles

    def test_missing_date_selector_falls_back_to_container_text(self):
        page = """
        <div class="event-item">
          <span class="event-title">紅葉ウォーク</span>
          <p>開催日 2025/11/22</p>
        </div>"""
        events = parse_html(page, _make_site(RULES), today=TODAY)
        assert len(events) == 1
        assert events[0].event_date == "2025-11-22"

    def test_missing_title_selector_uses_container_text(self):
        rules = ExtractionRules(selector="li.news")
        page = '<ul><li class="news">2025年12月6日 冬の音楽会</li></ul>'
        events = parse_html(page, _make_site(rules), today=TODAY)
        assert events[0].title == "2025年12月6日 冬の音楽会"
        assert events[0].event_date == "2025-12-06"

    def test_overlong_title_rejected(self):
        page = f"""
        <div class="event-item">
          <span class="event-title">{"長" * 201}</span>
          <span class="event-date">2025年11月8日</span>
        </div>"""
        assert parse_html(page, _make_site(RULES), today=TODAY) == []

    def test_junk_title_rejected(self):
        page = """
        <div class="event-item">
          <a href="/list.html"><span class="event-title">もっと見る</span></a>
          <span class="event-date">2025年11月8日</span>
        </div>"""
        assert parse_html(page, _make_site(RULES), today=TODAY) == []

    def test_selector_matching_nothing_is_empty(self):
        assert parse_html("<html><body><p>改装中</p></body></html>", _make_site(RULES), today=TODAY) == []


# ---------------------------------------------------------------------------
# Heuristic mode
# ---------------------------------------------------------------------------

GENERIC_PAGE = """
<html><body>
  <article>
    <h3><a href="/news/spring.html">花桃まつり開催のお知らせ</a></h3>
    <time>2025.04.12</time>
  </article>
  <div class="news-list">
    <ul>
      <li><a href="/news/a.html">2025/11/30 冬季休業のお知らせ</a></li>
      <li><a href="/news/b.html">一覧を見る</a></li>
      <li>日付のない項目</li>
    </ul>
  </div>
</body></html>
"""


class TestGenericMode:
    def test_article_heading_used_as_title(self):
        events = parse_html(GENERIC_PAGE, _make_site(), today=TODAY)
        first = events[0]
        assert first.title == "花桃まつり開催のお知らせ"
        assert first.event_date == "2025-04-12"
        assert first.source_url == "https://www.city.example.lg.jp/news/spring.html"

    def test_list_items_scanned(self):
        events = parse_html(GENERIC_PAGE, _make_site(), today=TODAY)
        assert "2025/11/30 冬季休業のお知らせ" in [e.title for e in events]

    def test_navigation_and_undated_items_skipped(self):
        titles = [e.title for e in parse_html(GENERIC_PAGE, _make_site(), today=TODAY)]
        assert "一覧を見る" not in titles
        assert "日付のない項目" not in titles

    def test_same_item_from_nested_containers_emitted_once(self):
        page = """
        <article class="event-card">
          <h2>ジビエ料理教室</h2><p>2025年11月29日</p>
        </article>"""
        events = parse_html(page, _make_site(), today=TODAY)
        assert len(events) == 1

    def test_yearless_date_resolved_against_local_today(self):
        page = """
        <article class="event-card">
          <h2>ジビエ料理教室</h2><p>11月7日</p>
        </article>"""
        with patch("machi_events.sources.html_parser.local_today", return_value=date(2025, 12, 1)) as today:
            events = parse_html(page, _make_site(), tz_name="Asia/Tokyo")
        today.assert_called_once_with("Asia/Tokyo")
        assert events[0].event_date == "2026-11-07"


# ---------------------------------------------------------------------------
# Failures and URL resolution
# ---------------------------------------------------------------------------

class TestParseFailures:
    @pytest.mark.parametrize("doc", ["", "   \n"])
    def test_empty_document_raises(self, doc):
        with pytest.raises(ParsingError):
            parse_html(doc, _make_site(RULES), today=TODAY)

    def test_invalid_selector_raises(self):
        bad = ExtractionRules(selector="div[[[")
        with pytest.raises(ParsingError):
            parse_html("<div>x</div>", _make_site(bad), today=TODAY)


class TestMakeAbsoluteUrl:
    BASE = "https://www.city.example.lg.jp/life/3/16/index-2.html"

    @pytest.mark.parametrize("href,expected", [
        ("/event/1.html", "https://www.city.example.lg.jp/event/1.html"),
        ("1.html", "https://www.city.example.lg.jp/life/3/16/1.html"),
        ("../2.html", "https://www.city.example.lg.jp/life/3/2.html"),
        ("https://other.example.jp/x", "https://other.example.jp/x"),
        ("//cdn.example.jp/x", "https://cdn.example.jp/x"),
    ])
    def test_resolution(self, href, expected):
        assert make_absolute_url(href, self.BASE) == expected

    @pytest.mark.parametrize("href", [None, "", "#top", "javascript:void(0)", "mailto:a@example.jp", "tel:0265"])
    def test_non_navigational_falls_back_to_page(self, href):
        assert make_absolute_url(href, self.BASE) == self.BASE
