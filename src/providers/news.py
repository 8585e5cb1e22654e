"""News sources that feed raw items into the classification queue.

Sources:
  1. HtmlPageSource — static fetch of a listing page, items picked by XPath
  2. RSSFeedSource  — any RSS/Atom feed via feedparser
  3. JsonFileSource — a local JSON array, for replays and offline runs

Every source drops items without both a title and a description. A source
that cannot be reached raises ``SourceUnavailableError``; that is the only
error fatal to a run.
"""

import json
from pathlib import Path
from typing import List, Optional

import feedparser
import requests
from lxml import etree, html

from src.core.config import SourceSettings
from src.core.errors import ConfigError, SourceUnavailableError
from src.core.logger import logger
from src.models.datatypes import RawItem
from src.providers.base import NewsSource

_USER_AGENT = "Mozilla/5.0 (compatible; news-ticker-pipeline/1.0)"


def _text(node, xpath: str) -> str:
    """Return the stripped text of the first match of ``xpath`` under ``node``."""
    found = node.xpath(xpath)
    if not found:
        return ""
    first = found[0]
    value = first if isinstance(first, str) else first.text_content()
    return " ".join(value.split())


def _keep(items: List[RawItem], source_name: str) -> List[RawItem]:
    kept = [item for item in items if item.title and item.description]
    dropped = len(items) - len(kept)
    if dropped:
        logger.debug(f"{source_name}: dropped {dropped} item(s) without title/description")
    return kept


# ── HtmlPageSource ────────────────────────────────────────────────────────────

class HtmlPageSource(NewsSource):
    """Listing page rendered server-side.

    Each node matched by ``item_xpath`` becomes one item: its first ``h3`` is
    the title, first ``p`` the description and the ``text-neutral-tertiary-dark``
    span (when present) the date.
    """

    def __init__(
        self,
        url: str,
        source_name: str,
        item_xpath: str,
        timeout: float = 60.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.url = url
        self.source_name = source_name
        self.item_xpath = item_xpath
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch_items(self) -> List[RawItem]:
        logger.info(f"HtmlPageSource: fetching {self.url}")
        try:
            resp = self.session.get(
                self.url, headers={"User-Agent": _USER_AGENT}, timeout=self.timeout
            )
        except requests.RequestException as exc:
            raise SourceUnavailableError(f"{self.url}: {exc}") from exc

        if resp.status_code != 200:
            raise SourceUnavailableError(f"{self.url}: HTTP {resp.status_code}")

        return self.parse(resp.text)

    def parse(self, page: str) -> List[RawItem]:
        """Extract items from the page markup."""
        try:
            tree = html.fromstring(page)
        except (etree.ParserError, ValueError) as exc:
            raise SourceUnavailableError(f"{self.url}: unparseable page: {exc}") from exc

        items = [
            RawItem(
                title=_text(node, ".//h3"),
                description=_text(node, ".//p"),
                source=self.source_name,
                date=_text(
                    node,
                    ".//*[contains(concat(' ', normalize-space(@class), ' '), "
                    "' text-neutral-tertiary-dark ')]",
                ) or None,
            )
            for node in tree.xpath(self.item_xpath)
        ]
        kept = _keep(items, self.source_name)
        logger.info(f"HtmlPageSource: {len(kept)} items from {self.url}")
        return kept


# ── RSSFeedSource ─────────────────────────────────────────────────────────────

class RSSFeedSource(NewsSource):
    """RSS/Atom feed. The entry summary (HTML stripped) is the description."""

    def __init__(self, url: str, source_name: str) -> None:
        self.url = url
        self.source_name = source_name

    def fetch_items(self) -> List[RawItem]:
        logger.info(f"RSSFeedSource: fetching {self.url}")
        try:
            feed = feedparser.parse(self.url)
        except Exception as exc:
            raise SourceUnavailableError(f"{self.url}: {exc}") from exc

        if feed.bozo and not feed.entries:
            raise SourceUnavailableError(
                f"{self.url}: {getattr(feed, 'bozo_exception', 'feed could not be parsed')}"
            )

        items = []
        for entry in feed.entries:
            summary = getattr(entry, "summary", "") or ""
            if summary:
                summary = html.fromstring(f"<div>{summary}</div>").text_content()
            pub_parsed = getattr(entry, "published_parsed", None)
            items.append(RawItem(
                title=" ".join(getattr(entry, "title", "").split()),
                description=" ".join(summary.split()),
                source=self.source_name,
                date=(
                    "{:04d}-{:02d}-{:02d}".format(*pub_parsed[:3])
                    if pub_parsed else None
                ),
            ))

        kept = _keep(items, self.source_name)
        logger.info(f"RSSFeedSource: {len(kept)} items from {self.url}")
        return kept


# ── JsonFileSource ────────────────────────────────────────────────────────────

class JsonFileSource(NewsSource):
    """A JSON array of ``{title, description, source?, date?}`` objects."""

    def __init__(self, path: str, source_name: str) -> None:
        self.path = Path(path)
        self.source_name = source_name

    def fetch_items(self) -> List[RawItem]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise SourceUnavailableError(f"{self.path}: {exc}") from exc

        if not isinstance(data, list):
            raise SourceUnavailableError(f"{self.path}: expected a JSON array")

        items = [
            RawItem(
                title=str(entry.get("title") or "").strip(),
                description=str(entry.get("description") or "").strip(),
                source=entry.get("source") or self.source_name,
                date=entry.get("date") or entry.get("time") or None,
            )
            for entry in data
            if isinstance(entry, dict)
        ]
        kept = _keep(items, self.source_name)
        logger.info(f"JsonFileSource: {len(kept)} items from {self.path}")
        return kept


def build_source(settings: SourceSettings) -> NewsSource:
    """Instantiate the source named by ``settings.kind``."""
    if settings.kind == "html":
        return HtmlPageSource(
            settings.url, settings.name, settings.item_xpath, timeout=settings.timeout
        )
    if settings.kind == "rss":
        return RSSFeedSource(settings.url, settings.name)
    if settings.kind == "json":
        return JsonFileSource(settings.path, settings.name)
    raise ConfigError(f"Unknown source kind: {settings.kind!r}")
