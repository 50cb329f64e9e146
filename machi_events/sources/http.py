from __future__ import annotations

import logging
from dataclasses import dataclass

import requests

from ..errors import HttpStatusError, NetworkError

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (compatible; MachiEventBot/1.0)"


@dataclass
class HttpResult:
    url: str
    status_code: int
    text: str
    content: bytes = b""


def http_get(url: str, *, timeout_s: float = 10.0) -> HttpResult:
    """
    GET with a hard timeout. Transport failures become NetworkError and
    non-2xx responses become HttpStatusError (retryable only for 5xx / 429).
    """
    logger.debug("[http] GET url=%s timeout_s=%s", url, timeout_s)

    try:
        r = requests.get(url, timeout=timeout_s, headers={"User-Agent": USER_AGENT})
    except requests.Timeout as e:
        raise NetworkError(f"Request timeout after {timeout_s}s: {url}") from e
    except requests.RequestException as e:
        raise NetworkError(f"fetch failed: {url}: {type(e).__name__}: {e}") from e

    if r.status_code >= 400:
        raise HttpStatusError(r.status_code, url)

    # Municipal sites often omit the charset; requests then assumes ISO-8859-1
    if r.encoding is None or r.encoding.lower() == "iso-8859-1":
        r.encoding = r.apparent_encoding

    return HttpResult(url=r.url, status_code=r.status_code, text=r.text, content=r.content)
