"""Pydantic models for scrape tool responses."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ScrapeResponse(BaseModel):
    """Response model for the scrape tool."""

    url: str = Field(description="The URL that was requested")
    success: bool = Field(description="Whether content was retrieved")
    content: str | None = Field(default=None, description="The rendered page of content")
    format: str = Field(description="Output format of the content")
    source: str = Field(description="Strategy that produced the content, or 'none'")
    from_cache: bool = Field(default=False, description="Whether the content came from the cache")
    total_chars: int = Field(default=0, description="Length of the full rendered content")
    start_index: int = Field(default=0, description="Character index this page starts at")
    next_start_index: int | None = Field(
        default=None, description="Index to pass as start_index to read the next page"
    )
    error: str | None = Field(default=None, description="Error message if failed")
    diagnostics: dict[str, Any] = Field(
        default_factory=dict, description="Strategies attempted, their errors and timings"
    )


class StrategyConfigItem(BaseModel):
    """A single strategy configuration entry."""

    prefix: str = Field(description="URL prefix (scheme stripped)")
    strategy: str = Field(description="Strategy used for URLs under this prefix")
    notes: str = Field(default="", description="How the entry was created")
    created_at: str = Field(description="ISO timestamp of creation")


class CachedVersionItem(BaseModel):
    """Summary of one cached version of a URL."""

    url: str = Field(description="The cached URL")
    sequence: int = Field(description="Version number, higher is newer")
    strategy_used: str = Field(description="Strategy that retrieved this version")
    mime_type: str = Field(description="MIME type of the cached content")
    scraped_at: str = Field(description="ISO timestamp of retrieval")
    size_chars: int = Field(description="Length of the cached content")
