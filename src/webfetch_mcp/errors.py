"""Exception types raised by the retrieval engine."""

from __future__ import annotations


class RetrievalError(Exception):
    """Base class for retrieval errors."""


class InvalidUrlError(RetrievalError, ValueError):
    """Raised when a URL is not an absolute http(s) URL."""


class UnknownStrategyError(RetrievalError, ValueError):
    """Raised when a strategy name is outside the known set."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown strategy: {name}")
        self.name = name


class StrategyConfigError(RetrievalError):
    """Raised when the persisted strategy configuration cannot be read."""
