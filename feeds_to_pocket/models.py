"""Shared data models for feeds_to_pocket."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class FeedConfiguration:
    """A tracked feed and everything remembered about it between runs."""

    url: str
    tags: str = ""
    processed_entries: List[str] = field(default_factory=list)
    last_modified: Optional[str] = None
    last_e_tag: Optional[str] = None


@dataclass
class Configuration:
    """Root of the configuration file."""

    consumer_key: Optional[str] = None
    access_token: Optional[str] = None
    feeds: List[FeedConfiguration] = field(default_factory=list)

    def find_feed(self, url: str) -> Optional[FeedConfiguration]:
        for feed in self.feeds:
            if feed.url == url:
                return feed
        return None
