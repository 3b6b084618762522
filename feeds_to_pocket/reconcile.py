"""Decide which feed entries are new, deliver them, and compute the feed's next state.

Entries are identified by their trimmed link text. An entry is recorded in
``processed_entries`` once it has been delivered, or once it is known that it
should never be delivered (malformed URL, or adopted as already read when no
sink is given). Entries whose delivery failed are left out so the next run
retries them. The feed's caching validators only move forward when nothing
failed, otherwise the next fetch could be answered with 304 and the pending
entries would never be seen again.
"""

from __future__ import annotations

import dataclasses
import enum
import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Protocol
from urllib.parse import urlsplit

from .errors import DeliveryFailure, FeedsToPocketError, InvalidEntryURL
from .models import FeedConfiguration

logger = logging.getLogger(__name__)

_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*$")
_FORBIDDEN_RE = re.compile(r"[\s\x00-\x1f\x7f]")
_HOST_SCHEMES = frozenset({"http", "https", "ftp"})


class Sink(Protocol):
    """Destination for entry URLs."""

    def add(self, url: str, tags: Optional[str] = None) -> None:
        ...


class Outcome(enum.Enum):
    DELIVERED = "delivered"
    SKIPPED_AS_READ = "skipped-as-read"
    SKIPPED_INVALID_URL = "skipped-invalid-url"
    FAILED = "failed"

    @property
    def is_processed(self) -> bool:
        return self is not Outcome.FAILED


@dataclass
class EntryOutcome:
    url: str
    outcome: Outcome
    error: Optional[FeedsToPocketError] = None


@dataclass
class ReconcileResult:
    """Updated feed state plus what happened to each new entry."""

    feed: FeedConfiguration
    outcomes: List[EntryOutcome] = field(default_factory=list)
    not_modified: bool = False

    @classmethod
    def up_to_date(cls, feed: FeedConfiguration) -> "ReconcileResult":
        return cls(feed=feed, not_modified=True)

    @property
    def complete(self) -> bool:
        return all(item.outcome.is_processed for item in self.outcomes)

    def count(self, outcome: Outcome) -> int:
        return sum(1 for item in self.outcomes if item.outcome is outcome)

    @property
    def failures(self) -> List[EntryOutcome]:
        return [item for item in self.outcomes if item.outcome is Outcome.FAILED]


def validate_entry_url(url: str) -> str:
    """Return ``url`` if it is an absolute URL, raise InvalidEntryURL otherwise."""
    if _FORBIDDEN_RE.search(url):
        raise InvalidEntryURL(url, "contains whitespace or control characters")

    scheme, separator, rest = url.partition(":")
    if not separator or not _SCHEME_RE.match(scheme):
        raise InvalidEntryURL(url, "relative URL without a base")
    if not rest:
        raise InvalidEntryURL(url, "nothing after the scheme")

    if scheme.lower() in _HOST_SCHEMES:
        try:
            parts = urlsplit(url)
            parts.port  # raises ValueError for a malformed port
        except ValueError as exc:
            raise InvalidEntryURL(url, str(exc)) from exc
        if not parts.hostname:
            raise InvalidEntryURL(url, "empty host")
    return url


def _deliver(sink: Sink, url: str, tags: Optional[str]) -> EntryOutcome:
    try:
        validate_entry_url(url)
    except InvalidEntryURL as exc:
        logger.warning("Skipping entry: %s", exc)
        return EntryOutcome(url, Outcome.SKIPPED_INVALID_URL, exc)

    logger.info("Pushing %s to Pocket", url)
    try:
        sink.add(url, tags)
    except FeedsToPocketError as exc:
        failure = DeliveryFailure(f"error while adding URL {url} to Pocket")
        failure.__cause__ = exc
        return EntryOutcome(url, Outcome.FAILED, failure)
    return EntryOutcome(url, Outcome.DELIVERED)


def reconcile(
    feed: FeedConfiguration,
    entry_links: Iterable[str],
    sink: Optional[Sink] = None,
    last_modified: Optional[str] = None,
    e_tag: Optional[str] = None,
) -> ReconcileResult:
    """Process ``entry_links`` (oldest first) against the history of ``feed``.

    Without a sink every new entry is marked as read. ``last_modified`` and
    ``e_tag`` are the validators of the response the links came from; they
    replace the stored ones only if no delivery failed. ``feed`` itself is not
    modified.
    """
    processed = list(feed.processed_entries)
    seen = set(processed)
    tags = feed.tags or None
    outcomes: List[EntryOutcome] = []

    for raw_link in entry_links:
        # Feed parsers keep whitespace around link text.
        url = raw_link.strip()
        if url in seen:
            continue

        if sink is None:
            entry = EntryOutcome(url, Outcome.SKIPPED_AS_READ)
        else:
            entry = _deliver(sink, url, tags)

        outcomes.append(entry)
        if entry.outcome.is_processed:
            processed.append(url)
            seen.add(url)

    updated = dataclasses.replace(feed, processed_entries=processed)
    result = ReconcileResult(feed=updated, outcomes=outcomes)
    if result.complete:
        updated.last_modified = last_modified
        updated.last_e_tag = e_tag
    else:
        logger.info(
            "Keeping caching validators of %s until %d failed entries are delivered",
            feed.url,
            len(result.failures),
        )
    return result
