from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional


class SourceKind(str, Enum):
    FEED = "rss"
    HTML = "html"


@dataclass(frozen=True)
class ExtractionRules:
    """CSS selectors for a hand-tuned HTML source."""

    selector: str
    title: Optional[str] = None
    date: Optional[str] = None
    place: Optional[str] = None
    link: Optional[str] = None


@dataclass(frozen=True)
class SiteConfig:
    name: str
    url: str
    region: str
    kind: SourceKind
    rules: Optional[ExtractionRules] = None

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "SiteConfig":
        """
        Build from the published schema:
          {name, url, region, type: "rss"|"html", selector?, fields?: {title?, date?, place?, link?}}
        """
        name = str(d.get("name") or "").strip()
        url = str(d.get("url") or "").strip()
        region = str(d.get("region") or "").strip()
        if not name or not url or not region:
            raise ValueError(f"site config requires name, url and region: {dict(d)!r}")

        kind = SourceKind(str(d.get("type") or "").strip().lower())

        rules = None
        selector = (d.get("selector") or "").strip()
        if selector:
            fields: Dict[str, Any] = dict(d.get("fields") or {})
            rules = ExtractionRules(
                selector=selector,
                title=fields.get("title") or None,
                date=fields.get("date") or None,
                place=fields.get("place") or None,
                link=fields.get("link") or None,
            )

        return cls(name=name, url=url, region=region, kind=kind, rules=rules)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "name": self.name,
            "url": self.url,
            "region": self.region,
            "type": self.kind.value,
        }
        if self.rules:
            out["selector"] = self.rules.selector
            fields = {
                k: v
                for k, v in (
                    ("title", self.rules.title),
                    ("date", self.rules.date),
                    ("place", self.rules.place),
                    ("link", self.rules.link),
                )
                if v
            }
            if fields:
                out["fields"] = fields
        return out
