"""An RSS and Atom news feed reader with an OPML feed list and an offline cache."""

__version__ = "0.1.0"