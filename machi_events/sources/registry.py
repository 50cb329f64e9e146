from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from ..models import CandidateEvent
from .feed_parser import parse_feed
from .html_parser import parse_html
from .types import SiteConfig, SourceKind

# (document, site, today=..., tz_name=...) -> candidates
ParseFn = Callable[..., List[CandidateEvent]]

PARSERS: Dict[SourceKind, ParseFn] = {
    SourceKind.FEED: parse_feed,
    SourceKind.HTML: parse_html,
}


# Hand-configured sources, in the published site-config schema.
SITE_DEFINITIONS: Tuple[Mapping[str, Any], ...] = (
    # ===== Feeds =====
    {"name": "高森町役場", "url": "https://www.town.nagano-takamori.lg.jp/oshirase/oshirase/rss.xml", "region": "高森町", "type": "rss"},
    {"name": "松川町役場", "url": "https://www.town.matsukawa.lg.jp/cgi-bin/feed.php?new1=1", "region": "松川町", "type": "rss"},
    {"name": "阿智村役場", "url": "https://www.vill.achi.lg.jp/rss/10/list1.xml", "region": "阿智村", "type": "rss"},
    {"name": "平谷村役場（新着情報）", "url": "https://www.hirayamura.jp/files/rss/block1346.xml", "region": "平谷村", "type": "rss"},
    {"name": "平谷村役場（イベント）", "url": "https://www.hirayamura.jp/files/rss/block1347.xml", "region": "平谷村", "type": "rss"},
    {"name": "泰阜村役場", "url": "https://www.vill.yasuoka.nagano.jp/news/rss.xml", "region": "泰阜村", "type": "rss"},
    {"name": "喬木村役場", "url": "https://www.vill.takagi.lg.jp/category/bunya/kanko/event/index.rss", "region": "喬木村", "type": "rss"},

    # ===== HTML pages with selectors =====
    {
        "name": "飯田市役所",
        "url": "https://www.city.iida.lg.jp/life/3/16/index-2.html",
        "region": "飯田市",
        "type": "html",
        "selector": ".event-item",
        "fields": {"title": ".event-title", "date": ".event-date", "place": ".event-place", "link": "a"},
    },
    {
        "name": "南信州ナビ",
        "url": "https://msnav.com/events/",
        "region": "飯田市",
        "type": "html",
        "selector": ".event-list .event",
        "fields": {"title": ".title", "date": ".date", "link": "a"},
    },

    # ===== HTML pages, heuristic extraction =====
    {"name": "阿智誘客促進協議会", "url": "http://info.sva.jp/news_cat/news/", "region": "阿智村", "type": "html"},
    {"name": "天空の楽園", "url": "https://sva.jp/nightfes2025/news/", "region": "阿智村", "type": "html"},
    {"name": "阿智☆昼神観光局（地域のお知らせ）", "url": "https://hirugamionsen.jp/", "region": "阿智村", "type": "html"},
    {"name": "阿智☆昼神観光局（昼神観光局からのお知らせ）", "url": "https://hirugamionsen.jp/news/", "region": "阿智村", "type": "html"},
    {"name": "根羽村役場", "url": "https://www.nebamura.jp/nebatopics/news/", "region": "根羽村", "type": "html"},
    {"name": "下条村観光協会", "url": "https://shimojo-kanko.jp/news.html", "region": "下条村", "type": "html"},
    {"name": "売木村役場", "url": "https://www.urugi.jp/latest_news/", "region": "売木村", "type": "html"},
    {"name": "売木村商工会", "url": "https://urugisho.jp/information.html", "region": "売木村", "type": "html"},
    {"name": "天龍村役場（お知らせ）", "url": "https://www.vill-tenryu.jp/category/notice/", "region": "天龍村", "type": "html"},
    {"name": "天龍村役場（行政情報）", "url": "https://www.vill-tenryu.jp/category/notice/administrative/government_info/", "region": "天龍村", "type": "html"},
    {"name": "天龍村役場（くらしと手続き）", "url": "https://www.vill-tenryu.jp/category/notice/administrative/living_info/", "region": "天龍村", "type": "html"},
    {"name": "天龍村役場（健康・福祉）", "url": "https://www.vill-tenryu.jp/category/notice/administrative/health_welfare/", "region": "天龍村", "type": "html"},
    {"name": "天龍村役場（子育て・教育）", "url": "https://www.vill-tenryu.jp/category/notice/administrative/education/", "region": "天龍村", "type": "html"},
    {"name": "天龍村役場（観光情報）", "url": "https://www.vill-tenryu.jp/category/tourism/tourism_info/", "region": "天龍村", "type": "html"},
    {"name": "天龍村（イベント総合案内）", "url": "https://www.vill-tenryu.jp/tourism/event/event/", "region": "天龍村", "type": "html"},
    {"name": "豊丘村役場", "url": "https://www.vill.nagano-toyooka.lg.jp/", "region": "豊丘村", "type": "html"},
    {"name": "豊丘村役場（とよおか祭り情報）", "url": "https://www.vill.nagano-toyooka.lg.jp/02kankou/toyookamatsuri/", "region": "豊丘村", "type": "html"},
    {"name": "大鹿村役場（お知らせ）", "url": "http://www.vill.ooshika.nagano.jp/category/whatsnew/", "region": "大鹿村", "type": "html"},
    {"name": "大鹿村環境協会", "url": "https://ooshika-kanko.com/", "region": "大鹿村", "type": "html"},
)


def build_sites(definitions: Iterable[Mapping[str, Any]]) -> Tuple[SiteConfig, ...]:
    sites = tuple(SiteConfig.from_dict(d) for d in definitions)
    seen: set[str] = set()
    for s in sites:
        if s.name in seen:
            raise ValueError(f"duplicate site name: {s.name}")
        seen.add(s.name)
    return sites


SITES: Tuple[SiteConfig, ...] = build_sites(SITE_DEFINITIONS)


def get_sites(names: Optional[Iterable[str]] = None) -> List[SiteConfig]:
    if names is None:
        return list(SITES)
    wanted = set(names)
    unknown = wanted - {s.name for s in SITES}
    if unknown:
        raise KeyError(f"unknown site(s): {', '.join(sorted(unknown))}")
    return [s for s in SITES if s.name in wanted]


def get_parser(kind: SourceKind) -> ParseFn:
    return PARSERS[kind]
