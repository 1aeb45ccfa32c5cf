"""Server-side page signal extraction using trafilatura + httpx."""

import logging
from typing import Optional

import httpx
import trafilatura
from trafilatura.utils import load_html

from models import PageSignals, now_ms
from store import TabStore

log = logging.getLogger(__name__)

_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


def extract_page_signals(url: str, timeout: float = 15) -> PageSignals | None:
    """Fetch URL and read its first <h1>, title and meta description.

    Returns None on fetch failure or when the page carries none of them.
    """
    try:
        resp = httpx.get(
            url,
            follow_redirects=True,
            timeout=timeout,
            headers={"User-Agent": _USER_AGENT},
        )
        resp.raise_for_status()
    except Exception as e:
        log.warning("Failed to fetch %s: %s", url, e)
        return None

    html = resp.text
    if not html or len(html) < 100:
        return None

    h1 = None
    tree = load_html(html)
    if tree is not None:
        headings = [" ".join(el.text_content().split()) for el in tree.xpath("//h1")]
        h1 = next((h for h in headings if h), None)

    og_title = None
    description = None
    try:
        metadata = trafilatura.extract_metadata(html)
        if metadata:
            og_title = metadata.title
            description = metadata.description
    except Exception as e:
        log.debug("Metadata extraction failed for %s: %s", url, e)

    if not (h1 or og_title or description):
        return None

    return PageSignals(h1=h1, meta_description=description, og_title=og_title, extracted_at=now_ms())


def cached_page_signals(store: TabStore, url: str, ttl: float, timeout: float = 15) -> Optional[PageSignals]:
    """extract_page_signals with a per-URL TTL cache in the store."""
    key = f"signals:{url}"
    cached = store.get_cache(key)
    if cached is not None:
        return PageSignals.model_validate(cached)

    signals = extract_page_signals(url, timeout=timeout)
    if signals is not None:
        store.put_cache(key, signals.model_dump(), ttl=ttl)
    return signals
