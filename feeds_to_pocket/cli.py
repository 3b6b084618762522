"""Command-line interface for the feeds_to_pocket application."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import List, Optional

import requests

from . import __version__, runner
from .config import create_empty_config, load_config, save_config
from .errors import FeedsToPocketError, format_error
from .models import Configuration
from .pocket import PocketClient

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="feeds-to-pocket",
        description="Sends items from your RSS and Atom feeds to your Pocket list. "
        "Without a command, every feed in the configuration is synced.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "config",
        help="A YAML file containing your feeds configuration.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (e.g. DEBUG, INFO, WARNING).",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Optional path to a log file.",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    subparsers.add_parser(
        "init",
        help="Creates an empty configuration file if it doesn't exist yet.",
    )

    set_key = subparsers.add_parser(
        "set-consumer-key",
        help="Sets the consumer key in the configuration file.",
        description="Sets the consumer key in the configuration file. "
        "Create your own application at https://getpocket.com/developer/apps/new "
        'to obtain a consumer key, with at least the "Add" permission.',
    )
    set_key.add_argument("key", help="A consumer key obtained from Pocket's website.")

    subparsers.add_parser(
        "login",
        help="Obtains and saves an access token from Pocket.",
        description="Prints a URL that you must open in a web browser to grant "
        "your application access to your Pocket account. Once authorization has "
        "been obtained, the access token is saved in the configuration file.",
    )

    add = subparsers.add_parser("add", help="Adds a feed to your feeds configuration.")
    add.add_argument(
        "--unread",
        action="store_true",
        help="Consider all the entries in the feed to be unread and send them to "
        "Pocket immediately. By default, the entries present when the feed is "
        "added are considered read and are not sent to Pocket.",
    )
    add.add_argument(
        "--tags",
        default="",
        help="Comma-separated tags to apply to every entry sent from this feed. "
        "If the feed is already configured, its tags are replaced.",
    )
    add.add_argument("feed_url", metavar="FEED_URL", help="The URL of the feed to add.")

    remove = subparsers.add_parser(
        "remove", help="Removes a feed from your feeds configuration."
    )
    remove.add_argument(
        "feed_url", metavar="FEED_URL", help="The URL of the feed to remove."
    )

    return parser


def configure_logging(level_name: str, log_file: Optional[str] = None) -> None:
    """Initialise logging according to options."""
    log_level = getattr(logging, level_name.upper(), None)
    if not isinstance(log_level, int):
        raise ValueError(f"Unsupported log level: {level_name}")

    formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    root_logger.setLevel(log_level)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    root_logger.addHandler(stream_handler)

    if log_file:
        log_path = Path(log_file)
        if log_path.parent and not log_path.parent.exists():
            log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
        logger.debug(
            "Logger initialised with level %s and file output to %s",
            level_name.upper(),
            log_path,
        )
    else:
        logger.debug(
            "Logger initialised with console output at level %s", level_name.upper()
        )


def run_command(
    args: argparse.Namespace, config: Configuration, session: requests.Session
) -> None:
    """Apply the selected command to ``config``."""
    if args.command == "set-consumer-key":
        runner.set_consumer_key(config, args.key)
    elif args.command == "login":
        client = PocketClient.from_config(
            config, require_access_token=False, session=session
        )
        runner.login(config, client)
    elif args.command == "add":
        sink = None
        if args.unread:
            sink = PocketClient.from_config(config, session=session)
        runner.add_feed(config, args.feed_url, session, sink=sink, tags=args.tags)
    elif args.command == "remove":
        runner.remove_feed(config, args.feed_url)
    else:
        sink = PocketClient.from_config(config, session=session)
        runner.sync_feeds(config, session, sink)


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        configure_logging(args.log_level, args.log_file)
    except ValueError as exc:
        parser.error(str(exc))

    try:
        if args.command == "init":
            if create_empty_config(args.config):
                logger.info("Created %s", args.config)
            else:
                logger.info("%s already exists; leaving it untouched", args.config)
            return 0

        config = load_config(args.config)
        with requests.Session() as session:
            run_command(args, config, session)
        save_config(config, args.config)
    except FeedsToPocketError as exc:
        logger.error("%s", format_error(exc))
        return 1
    except KeyboardInterrupt:
        logger.error("Interrupted; the configuration was not saved.")
        return 1
    except Exception:  # noqa: BLE001
        logger.exception("Unexpected error during execution.")
        return 1

    return 0
