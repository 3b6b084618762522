"""Send entries from RSS and Atom feeds to a Pocket list."""

__version__ = "0.5.0"
