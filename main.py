"""Thin shim for IDEs and direct execution."""

from feeds_to_pocket.cli import main

if __name__ == "__main__":
    import sys

    sys.exit(main())
