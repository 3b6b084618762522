import json
from typing import Any, Dict, List, Optional

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from feeds_to_pocket.errors import ProtocolError


def make_response(
    status: int = 200,
    body: Any = b"",
    headers: Optional[Dict[str, str]] = None,
    reason: str = "",
) -> requests.Response:
    """Build a real requests.Response without touching the network."""
    response = requests.Response()
    response.status_code = status
    response.reason = reason
    response.headers = CaseInsensitiveDict(headers or {})
    if isinstance(body, (dict, list)):
        body = json.dumps(body)
    if isinstance(body, str):
        body = body.encode("utf-8")
    response._content = body
    response.encoding = "utf-8"
    return response


class FakeSession:
    """Stands in for requests.Session, replaying queued responses."""

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.calls: List[Dict[str, Any]] = []

    def queue(self, response) -> None:
        self.responses.append(response)

    def _next(self, **call):
        self.calls.append(call)
        if not self.responses:
            raise AssertionError(f"unexpected request: {call}")
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response

    def get(self, url, headers=None, timeout=None):
        return self._next(method="GET", url=url, headers=headers or {}, timeout=timeout)

    def post(self, url, json=None, headers=None, timeout=None):
        return self._next(
            method="POST", url=url, json=json, headers=headers or {}, timeout=timeout
        )


class RecordingSink:
    """Sink that remembers every URL and fails for the ones listed in ``failing``."""

    def __init__(self, failing=()):
        self.failing = set(failing)
        self.added: List[tuple] = []

    def add(self, url, tags=None):
        self.added.append((url, tags))
        if url in self.failing:
            raise ProtocolError("199", "Pocket server issue")


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def sink():
    return RecordingSink()


RSS_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Example</title>
    <link>https://example.com/</link>
    <description>Example feed</description>
    <item><title>Third</title><link>https://example.com/3</link></item>
    <item><title>Second</title><link>https://example.com/2</link></item>
    <item><title>First</title><link>https://example.com/1</link></item>
  </channel>
</rss>
"""

ATOM_FEED = """<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Example</title>
  <id>urn:example:feed</id>
  <updated>2024-01-02T00:00:00Z</updated>
  <entry>
    <title>Newer</title>
    <id>urn:example:2</id>
    <updated>2024-01-02T00:00:00Z</updated>
    <link rel="alternate" href="https://example.com/b"/>
    <link rel="enclosure" href="https://example.com/b.mp3" type="audio/mpeg"/>
  </entry>
  <entry>
    <title>Older</title>
    <id>urn:example:1</id>
    <updated>2024-01-01T00:00:00Z</updated>
    <link href="https://example.com/a"/>
  </entry>
</feed>
"""
