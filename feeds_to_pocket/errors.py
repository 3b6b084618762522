"""Error types raised by feeds_to_pocket and helpers to render them."""

from __future__ import annotations

from typing import Optional, Sequence


class FeedsToPocketError(Exception):
    """Base class for every error the application knows how to report."""


class ConfigIOError(FeedsToPocketError):
    """The configuration file could not be read, parsed or saved."""


class AuthConfigError(FeedsToPocketError):
    """Credentials required by an operation are missing from the configuration."""


class MissingConsumerKey(AuthConfigError):
    def __init__(self) -> None:
        super().__init__(
            "The consumer key is not set in the configuration file. "
            "Run `feeds-to-pocket CONFIG set-consumer-key --help` for help and instructions."
        )


class MissingAccessToken(AuthConfigError):
    def __init__(self) -> None:
        super().__init__(
            "The access token is not set in the configuration file. "
            "Run `feeds-to-pocket CONFIG login --help` for help and instructions."
        )


class AuthError(FeedsToPocketError):
    """Pocket refused to issue a request token or an access token."""


class TransportError(FeedsToPocketError):
    """A network request failed or returned an unusable response."""

    def __init__(self, message: str, body: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.body = body

    def __str__(self) -> str:
        if self.body:
            return f"{self.message}\n{self.body}"
        return self.message


class UnacceptableStatus(TransportError):
    """A feed request returned neither a success status nor 304."""

    def __init__(self, status: int, url: str, reason: str = "") -> None:
        status_text = f"{status} {reason}".strip()
        super().__init__(
            f"the HTTP request to <{url}> didn't return a success status ({status_text})"
        )
        self.status = status
        self.url = url


class FeedParseError(FeedsToPocketError):
    """A feed body is neither RSS nor Atom."""


class InvalidEntryURL(FeedsToPocketError):
    """A feed entry links to something that is not an absolute URL."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"invalid entry URL {url!r}: {reason}")
        self.url = url
        self.reason = reason


class DeliveryFailure(FeedsToPocketError):
    """Pocket did not accept an entry; it will be retried on the next run."""


class ProtocolError(FeedsToPocketError):
    """Pocket answered with a structured error (X-Error-Code / X-Error)."""

    def __init__(self, code: str, message: str, body: Optional[str] = None) -> None:
        super().__init__(f"{message} (code {code})")
        self.code = code
        self.message = message
        self.body = body

    def __str__(self) -> str:
        text = f"{self.message} (code {self.code})"
        if self.body:
            text += f"\n{self.body}"
        return text


class FeedNotFound(FeedsToPocketError):
    def __init__(self, url: str) -> None:
        super().__init__(f"the feed {url} is not in the configuration")
        self.url = url


class MultipleErrors(FeedsToPocketError):
    """Several independent failures that must all be reported."""

    def __init__(self, errors: Sequence[BaseException]) -> None:
        super().__init__("Multiple errors occurred.")
        self.errors = list(errors)

    def __str__(self) -> str:
        return "\n".join(f"- {indent(format_error(error))}" for error in self.errors)


def indent(text: str) -> str:
    """Add two spaces after every line feed in ``text``."""
    return text.replace("\n", "\n  ")


def format_error(error: BaseException) -> str:
    """Render an error and its ``__cause__`` chain, one indentation level per cause."""
    text = str(error) or type(error).__name__
    cause = error.__cause__
    if cause is None:
        return text
    return f"{text}:\n  {indent(format_error(cause))}"
