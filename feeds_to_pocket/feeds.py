"""Feed download and link extraction helpers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Union

import feedparser
import requests

from . import __version__
from .errors import FeedParseError, TransportError, UnacceptableStatus
from .models import FeedConfiguration

logger = logging.getLogger(__name__)

USER_AGENT = f"feeds-to-pocket/{__version__}"
REQUEST_TIMEOUT = 30.0

# feedparser version strings start with the format family, e.g. "rss20", "atom10".
SUPPORTED_FORMATS = ("atom", "rss")


@dataclass(frozen=True)
class NotModified:
    """The server confirmed that the feed did not change since the last fetch."""


@dataclass(frozen=True)
class FetchedFeed:
    """A feed body along with the caching validators the server returned."""

    body: bytes
    last_modified: Optional[str] = None
    e_tag: Optional[str] = None


FetchResult = Union[NotModified, FetchedFeed]


def _conditional_headers(feed: FeedConfiguration) -> Dict[str, str]:
    headers = {"User-Agent": USER_AGENT}
    if feed.last_modified:
        headers["If-Modified-Since"] = feed.last_modified
    if feed.last_e_tag:
        headers["If-None-Match"] = feed.last_e_tag
    return headers


def fetch_feed(feed: FeedConfiguration, session: requests.Session) -> FetchResult:
    """Download ``feed``, letting the server short-circuit with 304 Not Modified."""
    headers = _conditional_headers(feed)
    logger.debug("GET %s with headers %s", feed.url, headers)
    try:
        response = session.get(feed.url, headers=headers, timeout=REQUEST_TIMEOUT)
    except requests.RequestException as exc:
        raise TransportError("failed to send request") from exc

    if response.status_code == 304:
        logger.debug("Feed %s was not modified", feed.url)
        return NotModified()

    if not 200 <= response.status_code < 300:
        raise UnacceptableStatus(response.status_code, feed.url, response.reason or "")

    return FetchedFeed(
        body=response.content,
        last_modified=response.headers.get("Last-Modified"),
        e_tag=response.headers.get("ETag"),
    )


def _entry_links(entry) -> List[str]:
    links = entry.get("links")
    if links:
        return [
            link["href"]
            for link in links
            if link.get("rel", "alternate") == "alternate" and link.get("href")
        ]
    link = entry.get("link")
    return [link] if link else []


def parse_entry_links(body: bytes) -> List[str]:
    """Return the alternate links of every entry, in document order."""
    parsed = feedparser.parse(body)
    version = parsed.get("version") or ""
    if not version.startswith(SUPPORTED_FORMATS):
        error = FeedParseError("failed to parse feed as either RSS or Atom")
        cause = parsed.get("bozo_exception")
        if isinstance(cause, BaseException):
            raise error from cause
        raise error

    if parsed.get("bozo"):
        logger.debug(
            "Feed parsed as %s with recoverable problems: %s",
            version,
            parsed.get("bozo_exception"),
        )

    links: List[str] = []
    for entry in parsed.entries:
        entry_links = _entry_links(entry)
        if not entry_links:
            logger.debug("Skipping entry without an alternate link")
        links.extend(entry_links)

    logger.debug("Parsed %d entry links from %s feed", len(links), version)
    return links
