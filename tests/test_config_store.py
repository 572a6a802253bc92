"""Tests for the strategy config stores."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from webfetch_mcp.errors import StrategyConfigError
from webfetch_mcp.models.retrieval import StrategyConfigEntry, StrategyName
from webfetch_mcp.strategies.config_store import (
    FilesystemStrategyConfigStore,
    MemoryStrategyConfigStore,
    parse_markdown_table,
    render_markdown_table,
)


class TestMemoryStrategyConfigStore:
    """Tests for MemoryStrategyConfigStore."""

    def test_empty_store(self, config_store: MemoryStrategyConfigStore) -> None:
        """Test that an empty store has no strategy for any URL."""
        assert config_store.load_config() == []
        assert config_store.get_strategy_for_url("https://example.com/") is None

    def test_longest_prefix_wins(self) -> None:
        """Test that the longest matching prefix is used."""
        store = MemoryStrategyConfigStore(
            [
                StrategyConfigEntry(prefix="yelp.com", strategy=StrategyName.NATIVE),
                StrategyConfigEntry(prefix="yelp.com/biz/", strategy=StrategyName.PROXY),
            ]
        )

        assert store.get_strategy_for_url("https://yelp.com/biz/dolly-sf") is StrategyName.PROXY
        assert store.get_strategy_for_url("https://www.yelp.com/search?q=x") is StrategyName.NATIVE
        assert store.get_strategy_for_url("https://other.com/biz/x") is None

    def test_upsert_replaces_same_prefix(self, config_store: MemoryStrategyConfigStore) -> None:
        """Test that upserting an existing prefix overwrites it."""
        config_store.upsert_entry(
            StrategyConfigEntry(prefix="example.com", strategy=StrategyName.NATIVE)
        )
        config_store.upsert_entry(
            StrategyConfigEntry(prefix="example.com", strategy=StrategyName.MANAGED, notes="new")
        )

        entries = config_store.load_config()
        assert len(entries) == 1
        assert entries[0].strategy is StrategyName.MANAGED
        assert entries[0].notes == "new"

    def test_entries_sorted_longest_first(self, config_store: MemoryStrategyConfigStore) -> None:
        """Test that saved entries are ordered longest prefix first."""
        config_store.upsert_entry(StrategyConfigEntry(prefix="a.com", strategy=StrategyName.NATIVE))
        config_store.upsert_entry(
            StrategyConfigEntry(prefix="a.com/blog/2024/", strategy=StrategyName.PROXY)
        )

        prefixes = [e.prefix for e in config_store.load_config()]
        assert prefixes == ["a.com/blog/2024/", "a.com"]

    def test_invalid_url_has_no_strategy(self) -> None:
        """Test that an unparseable URL matches nothing."""
        store = MemoryStrategyConfigStore(
            [StrategyConfigEntry(prefix="example.com", strategy=StrategyName.NATIVE)]
        )
        assert store.get_strategy_for_url("not a url") is None


class TestFilesystemStrategyConfigStore:
    """Tests for FilesystemStrategyConfigStore."""

    def test_missing_file_is_empty(self, tmp_path: Path) -> None:
        """Test that a missing config file reads as no entries."""
        store = FilesystemStrategyConfigStore(tmp_path / "missing.md")
        assert store.load_config() == []
        assert store.get_strategy_for_url("https://example.com") is None

    def test_upsert_persists(self, tmp_path: Path) -> None:
        """Test that entries survive a new store instance."""
        path = tmp_path / "strategies.md"
        FilesystemStrategyConfigStore(path).upsert_entry(
            StrategyConfigEntry(
                prefix="yelp.com/biz/",
                strategy=StrategyName.PROXY,
                notes="Auto-discovered via universal fallback",
            )
        )

        reloaded = FilesystemStrategyConfigStore(path)
        entries = reloaded.load_config()
        assert len(entries) == 1
        assert entries[0].prefix == "yelp.com/biz/"
        assert entries[0].strategy is StrategyName.PROXY
        assert entries[0].notes == "Auto-discovered via universal fallback"
        assert reloaded.get_strategy_for_url("https://yelp.com/biz/other") is StrategyName.PROXY

    def test_file_is_markdown_table(self, tmp_path: Path) -> None:
        """Test that the saved file is a readable markdown table."""
        path = tmp_path / "strategies.md"
        store = FilesystemStrategyConfigStore(path)
        store.upsert_entry(StrategyConfigEntry(prefix="example.com", strategy=StrategyName.NATIVE))

        content = path.read_text(encoding="utf-8")
        assert "| prefix | default_strategy | notes | created_at |" in content
        assert "| example.com | native |" in content
        assert not path.with_suffix(".md.tmp").exists()

    def test_creates_parent_directory(self, tmp_path: Path) -> None:
        """Test that saving creates missing directories."""
        path = tmp_path / "nested" / "dir" / "strategies.md"
        FilesystemStrategyConfigStore(path).save_config([])
        assert path.exists()


class TestMarkdownTable:
    """Tests for markdown table parsing and rendering."""

    def test_parse_hand_written_table(self) -> None:
        """Test parsing a table written by hand."""
        content = """# Notes

Some prose before the table.

| prefix | default_strategy | notes |
|--------|------------------|-------|
| example.com/blog/2024/ | MANAGED | slow pages |
| news.site | native | |

Trailing prose.
"""
        entries = parse_markdown_table(content)

        assert [e.prefix for e in entries] == ["example.com/blog/2024/", "news.site"]
        assert entries[0].strategy is StrategyName.MANAGED
        assert entries[0].notes == "slow pages"
        assert entries[1].notes == ""

    def test_unknown_strategy_row_skipped(self) -> None:
        """Test that rows with unknown strategies are skipped."""
        content = """| prefix | default_strategy | notes | created_at |
| --- | --- | --- | --- |
| a.com | teleport | | |
| b.com | proxy | | |
"""
        entries = parse_markdown_table(content)
        assert [e.prefix for e in entries] == ["b.com"]

    def test_created_at_parsed(self) -> None:
        """Test that created_at timestamps are read back."""
        content = """| prefix | default_strategy | notes | created_at |
| --- | --- | --- | --- |
| a.com | native | x | 2024-01-02T03:04:05+00:00 |
"""
        entries = parse_markdown_table(content)
        assert entries[0].created_at == datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

    def test_table_without_header_rejected(self) -> None:
        """Test that table rows without a header raise StrategyConfigError."""
        with pytest.raises(StrategyConfigError):
            parse_markdown_table("| a.com | native | | |\n")

    def test_render_escapes_pipes_in_notes(self) -> None:
        """Test that pipes in notes do not break the table."""
        rendered = render_markdown_table(
            [StrategyConfigEntry(prefix="a.com", strategy=StrategyName.NATIVE, notes="x | y")]
        )
        entries = parse_markdown_table(rendered)
        assert entries[0].notes == "x / y"

    def test_render_escapes_pipes_in_prefix(self) -> None:
        """Test that a pipe in a prefix is percent-encoded instead of splitting the row."""
        rendered = render_markdown_table(
            [StrategyConfigEntry(prefix="a.com/x|y/", strategy=StrategyName.PROXY, notes="n")]
        )
        entries = parse_markdown_table(rendered)

        assert len(entries) == 1
        assert entries[0].prefix == "a.com/x%7Cy/"
        assert entries[0].strategy is StrategyName.PROXY
        assert entries[0].notes == "n"

    def test_corrupt_file_raises_on_lookup(self, tmp_path: Path) -> None:
        """Test that a corrupt file surfaces as an error from the store."""
        path = tmp_path / "strategies.md"
        path.write_text("| a.com | native |\n", encoding="utf-8")

        with pytest.raises(StrategyConfigError):
            FilesystemStrategyConfigStore(path).get_strategy_for_url("https://a.com/")
