"""High-level orchestration: per-feed processing and the subcommand operations."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

import requests

from .errors import (
    AuthError,
    FeedNotFound,
    FeedParseError,
    FeedsToPocketError,
    TransportError,
    format_error,
)
from .feeds import NotModified, fetch_feed, parse_entry_links
from .models import Configuration, FeedConfiguration
from .pocket import PocketClient
from .reconcile import Outcome, ReconcileResult, Sink, reconcile

logger = logging.getLogger(__name__)


@dataclass
class FeedReport:
    """What happened to one feed during a sync run."""

    url: str
    result: Optional[ReconcileResult] = None
    error: Optional[FeedsToPocketError] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.result is not None and self.result.complete


def _log_result(result: ReconcileResult) -> None:
    feed = result.feed
    if result.not_modified:
        logger.info("%s is up to date", feed.url)
        return

    for item in result.failures:
        logger.error("%s", format_error(item.error))

    logger.info(
        "%s: %d delivered, %d marked as read, %d invalid, %d failed",
        feed.url,
        result.count(Outcome.DELIVERED),
        result.count(Outcome.SKIPPED_AS_READ),
        result.count(Outcome.SKIPPED_INVALID_URL),
        result.count(Outcome.FAILED),
    )


def process_feed(
    feed: FeedConfiguration,
    session: requests.Session,
    sink: Optional[Sink] = None,
) -> ReconcileResult:
    """Fetch, parse and reconcile a single feed.

    Raises a FeedsToPocketError when the feed cannot be downloaded or parsed;
    in that case nothing about the feed has changed.
    """
    logger.info("Downloading %s", feed.url)
    try:
        fetched = fetch_feed(feed, session)
    except TransportError as exc:
        raise TransportError(f"failed to download feed at {feed.url}") from exc

    if isinstance(fetched, NotModified):
        result = ReconcileResult.up_to_date(feed)
        _log_result(result)
        return result

    try:
        links = parse_entry_links(fetched.body)
    except FeedParseError as exc:
        raise FeedParseError(
            f"failed to parse feed at {feed.url} as either RSS or Atom"
        ) from exc

    # Feeds list the newest entries first; deliver oldest first.
    result = reconcile(
        feed,
        reversed(links),
        sink,
        last_modified=fetched.last_modified,
        e_tag=fetched.e_tag,
    )
    _log_result(result)
    return result


def sync_feeds(
    config: Configuration,
    session: requests.Session,
    sink: Optional[Sink],
) -> List[FeedReport]:
    """Process every configured feed in order, isolating per-feed failures."""
    reports: List[FeedReport] = []
    for index, feed in enumerate(config.feeds):
        try:
            result = process_feed(feed, session, sink)
        except FeedsToPocketError as exc:
            logger.error("%s", format_error(exc))
            reports.append(FeedReport(url=feed.url, error=exc))
            continue

        config.feeds[index] = result.feed
        reports.append(FeedReport(url=feed.url, result=result))

    failed = sum(1 for report in reports if not report.ok)
    logger.info("Synced %d feeds (%d with errors)", len(reports), failed)
    return reports


def set_consumer_key(config: Configuration, key: str) -> None:
    config.consumer_key = key


def login(
    config: Configuration,
    client: PocketClient,
    prompt: Callable[[str], str] = input,
) -> str:
    """Run the interactive OAuth flow and store the access token in ``config``."""
    if config.access_token:
        print(
            "note: There's already an access token in the configuration file. "
            "Proceeding will overwrite this access token."
        )

    try:
        auth_url = client.get_auth_url()
    except AuthError as exc:
        raise AuthError("unable to get authorization URL for Pocket") from exc

    print(f"Go to the following webpage to login: {auth_url}")
    message = "Then, press Enter to continue."
    while True:
        try:
            prompt(message + "\n")
        except EOFError as exc:
            raise AuthError("unable to read from standard input") from exc

        try:
            username = client.authorize()
        except AuthError as exc:
            message = (
                f"Authorization failed: {format_error(exc)}\n"
                "Make sure you authorized your application at the webpage linked above.\n"
                "Press Enter to try again, or press Ctrl+C to exit."
            )
            continue

        config.access_token = client.access_token
        return username


def add_feed(
    config: Configuration,
    url: str,
    session: requests.Session,
    sink: Optional[Sink] = None,
    tags: str = "",
) -> Optional[ReconcileResult]:
    """Track a new feed, or update the tags of a feed already tracked.

    A new feed is processed immediately: without a sink its current entries
    are marked as read, with one they are sent. Returns None when the feed was
    already present.
    """
    existing = config.find_feed(url)
    if existing is not None:
        existing.tags = tags
        print("This feed is already in your configuration! Its tags have been updated.")
        return None

    feed = FeedConfiguration(url=url, tags=tags)
    result = process_feed(feed, session, sink)
    config.feeds.append(result.feed)
    return result


def remove_feed(config: Configuration, url: str) -> FeedConfiguration:
    feed = config.find_feed(url)
    if feed is None:
        raise FeedNotFound(url)
    config.feeds.remove(feed)
    logger.info("Removed %s", url)
    return feed
