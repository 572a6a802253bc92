"""Persistent mapping from URL prefixes to the strategy that works for them."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path

from webfetch_mcp.config import STRATEGY_CONFIG_FILENAME, resolve_data_dir
from webfetch_mcp.errors import InvalidUrlError, StrategyConfigError, UnknownStrategyError
from webfetch_mcp.models.retrieval import StrategyConfigEntry, StrategyName, utc_now
from webfetch_mcp.strategies.patterns import prefix_matches, strip_scheme

# Configure logging
logger = logging.getLogger(__name__)

TABLE_HEADER = """# Scraping Strategy Configuration

Which scraping strategy to use for URL prefixes (native, managed, proxy).
Prefixes are matched against the URL without its scheme; the longest match wins.

| prefix | default_strategy | notes | created_at |
| ------ | ---------------- | ----- | ---------- |"""


def sort_entries(entries: list[StrategyConfigEntry]) -> list[StrategyConfigEntry]:
    """Order entries longest prefix first."""
    return sorted(entries, key=lambda e: len(e.prefix), reverse=True)


def find_strategy(entries: list[StrategyConfigEntry], url: str) -> StrategyName | None:
    """Return the strategy of the longest prefix matching a URL, if any."""
    try:
        key = strip_scheme(url)
    except InvalidUrlError:
        return None

    for entry in sort_entries(entries):
        if prefix_matches(entry.prefix, key):
            return entry.strategy

    return None


class StrategyConfigStore(ABC):
    """Abstract store of StrategyConfigEntry records.

    No two entries share a prefix: ``upsert_entry`` replaces an existing
    entry with the same prefix in place.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()

    @abstractmethod
    def load_config(self) -> list[StrategyConfigEntry]:
        """Load all entries."""

    @abstractmethod
    def save_config(self, entries: list[StrategyConfigEntry]) -> None:
        """Replace all entries."""

    def upsert_entry(self, entry: StrategyConfigEntry) -> None:
        """Add an entry, or overwrite the entry with the same prefix."""
        with self._lock:
            entries = self.load_config()
            for index, existing in enumerate(entries):
                if existing.prefix == entry.prefix:
                    entries[index] = entry
                    break
            else:
                entries.append(entry)
            self.save_config(sort_entries(entries))

        logger.info(f"Strategy config: {entry.prefix} -> {entry.strategy.value} ({entry.notes})")

    def get_strategy_for_url(self, url: str) -> StrategyName | None:
        """Return the strategy configured for a URL by longest prefix match.

        Args:
            url: Absolute URL

        Returns:
            The configured strategy, or None if no prefix matches
        """
        return find_strategy(self.load_config(), url)


class MemoryStrategyConfigStore(StrategyConfigStore):
    """In-process store, used for tests and when persistence is disabled."""

    def __init__(self, entries: list[StrategyConfigEntry] | None = None) -> None:
        super().__init__()
        self._entries = sort_entries(list(entries or []))

    def load_config(self) -> list[StrategyConfigEntry]:
        return list(self._entries)

    def save_config(self, entries: list[StrategyConfigEntry]) -> None:
        self._entries = list(entries)


class FilesystemStrategyConfigStore(StrategyConfigStore):
    """Stores the configuration as a markdown table in a local file.

    The file is meant to be readable and hand-editable. A missing file is an
    empty configuration; rows naming an unknown strategy are skipped.
    """

    def __init__(self, config_path: str | Path | None = None) -> None:
        """Initialize the store.

        Args:
            config_path: Path of the markdown file
                        (default: <data dir>/scraping-strategies.md)
        """
        super().__init__()
        if config_path is None:
            config_path = resolve_data_dir() / STRATEGY_CONFIG_FILENAME
        self.config_path = Path(config_path)

    def load_config(self) -> list[StrategyConfigEntry]:
        try:
            content = self.config_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        return parse_markdown_table(content)

    def save_config(self, entries: list[StrategyConfigEntry]) -> None:
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.config_path.with_suffix(self.config_path.suffix + ".tmp")
        tmp_path.write_text(render_markdown_table(entries), encoding="utf-8")
        tmp_path.replace(self.config_path)


def _parse_row(row: str) -> StrategyConfigEntry | None:
    cells = [cell.strip() for cell in row.strip()[1:-1].split("|")]
    if len(cells) < 2 or not cells[0]:
        return None

    try:
        strategy = StrategyName.parse(cells[1])
    except UnknownStrategyError:
        logger.warning(f"Skipping strategy config row with unknown strategy: {row.strip()}")
        return None

    notes = cells[2] if len(cells) > 2 else ""
    created_at = utc_now()
    if len(cells) > 3 and cells[3]:
        try:
            created_at = datetime.fromisoformat(cells[3])
        except ValueError:
            logger.warning(f"Invalid created_at in strategy config row: {cells[3]!r}")

    return StrategyConfigEntry(prefix=cells[0], strategy=strategy, notes=notes, created_at=created_at)


def parse_markdown_table(content: str) -> list[StrategyConfigEntry]:
    """Parse the strategy table out of a markdown document.

    Raises:
        StrategyConfigError: If the document has table rows but no header
    """
    entries: list[StrategyConfigEntry] = []
    header_found = False
    saw_table_row = False

    for line in content.splitlines():
        stripped = line.strip()
        if not stripped:
            continue

        if not (stripped.startswith("|") and stripped.endswith("|")):
            if header_found:
                # End of table
                break
            continue

        saw_table_row = True
        if not header_found:
            lowered = stripped.lower()
            if "prefix" in lowered and "default_strategy" in lowered:
                header_found = True
            continue

        # Skip separator row
        if set(stripped) <= set("|-: "):
            continue

        entry = _parse_row(stripped)
        if entry is not None:
            entries.append(entry)

    if saw_table_row and not header_found:
        raise StrategyConfigError("Strategy config table is missing its header row")

    return entries


def render_markdown_table(entries: list[StrategyConfigEntry]) -> str:
    # Pipes would split cells: percent-encode them in prefixes, soften them in notes
    rows = [
        f"| {e.prefix.replace('|', '%7C')} | {e.strategy.value} "
        f"| {e.notes.replace('|', '/')} | {e.created_at.isoformat()} |"
        for e in entries
    ]
    return "\n".join([TABLE_HEADER, *rows, ""])
