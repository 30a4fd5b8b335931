"""Exception types raised by blog_reader."""

from __future__ import annotations


class BlogReaderError(Exception):
    """Base class for errors raised by blog_reader."""


class NetworkError(BlogReaderError):
    """A source could not be fetched (connection failure, timeout, bad status)."""


class ParseError(BlogReaderError):
    """A payload is neither valid RSS nor Atom."""


class StateIOError(BlogReaderError):
    """The state store could not be read or written."""


class ConfigError(BlogReaderError, ValueError):
    """The configuration file is missing or invalid."""
