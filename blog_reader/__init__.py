"""Terminal blog reader that tracks RSS/Atom feeds and plain web pages."""

__version__ = "0.3.0"
