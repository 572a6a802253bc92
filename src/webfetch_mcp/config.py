"""Environment-driven configuration for the web fetch server."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from webfetch_mcp.models.retrieval import FallbackMode

# Configure logging
logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = "/app/cache"
DEFAULT_TIMEOUT_MS = 30000
DEFAULT_MAX_VERSIONS = 5
DEFAULT_FIRECRAWL_API_URL = "https://api.firecrawl.dev"
STRATEGY_CONFIG_FILENAME = "scraping-strategies.md"

_TRUTHY = ("true", "1", "yes")


@dataclass(frozen=True)
class OrchestratorConfig:
    """Settings the retrieval orchestrator is constructed with."""

    fallback_mode: FallbackMode = FallbackMode.COST
    default_timeout_ms: int = DEFAULT_TIMEOUT_MS


@dataclass(frozen=True)
class Settings:
    """Server settings, read once from the environment."""

    fallback_mode: FallbackMode = FallbackMode.COST
    default_timeout_ms: int = DEFAULT_TIMEOUT_MS
    firecrawl_api_key: str | None = None
    firecrawl_api_url: str = DEFAULT_FIRECRAWL_API_URL
    scrapeops_api_key: str | None = None
    scrapeops_render_js: bool = False
    scrapeops_country: str = ""
    data_dir: str | None = None
    strategy_config_path: str | None = None
    cache_max_versions: int = DEFAULT_MAX_VERSIONS
    cache_ttl: int | None = None
    enable_cache_tools: bool = False

    @property
    def orchestrator_config(self) -> OrchestratorConfig:
        return OrchestratorConfig(
            fallback_mode=self.fallback_mode,
            default_timeout_ms=self.default_timeout_ms,
        )

    def to_public_dict(self) -> dict[str, object]:
        """Settings with secrets replaced by whether they are configured."""
        return {
            "fallback_mode": self.fallback_mode.value,
            "default_timeout_ms": self.default_timeout_ms,
            "managed_configured": bool(self.firecrawl_api_key),
            "managed_api_url": self.firecrawl_api_url,
            "proxy_configured": bool(self.scrapeops_api_key),
            "proxy_render_js": self.scrapeops_render_js,
            "proxy_country": self.scrapeops_country,
            "data_dir": self.data_dir,
            "strategy_config_path": self.strategy_config_path,
            "cache_max_versions": self.cache_max_versions,
            "cache_ttl": self.cache_ttl,
            "enable_cache_tools": self.enable_cache_tools,
        }


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in _TRUTHY


def _env_int(name: str, default: int | None) -> int | None:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring non-integer value for {name}: {raw!r}")
        return default


def parse_fallback_mode(value: str | None) -> FallbackMode:
    """Parse an OPTIMIZE_FOR value, defaulting to cost mode."""
    if not value:
        return FallbackMode.COST
    try:
        return FallbackMode(value.strip().lower())
    except ValueError:
        logger.warning(f"Unknown OPTIMIZE_FOR value {value!r}, using 'cost'")
        return FallbackMode.COST


def resolve_data_dir(data_dir: str | Path | None = None) -> Path:
    """Get the data directory with fallback for development.

    Uses the given directory, else CACHE_DIR, else /app/cache. Falls back to a
    local .cache directory if that path cannot be created.

    Returns:
        Path to an existing data directory
    """
    if data_dir is None:
        data_dir = os.getenv("CACHE_DIR", DEFAULT_DATA_DIR)
    data_path = Path(data_dir)

    try:
        data_path.mkdir(parents=True, exist_ok=True)
    except (OSError, PermissionError):
        # Fallback to local .cache directory for development/testing
        fallback = Path.cwd() / ".cache"
        fallback.mkdir(parents=True, exist_ok=True)
        logger.info(f"Could not create data dir at {data_path}, using fallback: {fallback}")
        data_path = fallback

    return data_path


def load_settings() -> Settings:
    """Read settings from environment variables."""
    return Settings(
        fallback_mode=parse_fallback_mode(os.getenv("OPTIMIZE_FOR")),
        default_timeout_ms=_env_int("DEFAULT_TIMEOUT_MS", DEFAULT_TIMEOUT_MS) or DEFAULT_TIMEOUT_MS,
        firecrawl_api_key=os.getenv("FIRECRAWL_API_KEY") or None,
        firecrawl_api_url=os.getenv("FIRECRAWL_API_URL", DEFAULT_FIRECRAWL_API_URL),
        scrapeops_api_key=os.getenv("SCRAPEOPS_API_KEY") or None,
        scrapeops_render_js=_env_flag("SCRAPEOPS_RENDER_JS"),
        scrapeops_country=os.getenv("SCRAPEOPS_COUNTRY", ""),
        data_dir=os.getenv("CACHE_DIR") or None,
        strategy_config_path=os.getenv("STRATEGY_CONFIG_PATH") or None,
        cache_max_versions=_env_int("RESOURCE_CACHE_MAX_VERSIONS", DEFAULT_MAX_VERSIONS)
        or DEFAULT_MAX_VERSIONS,
        cache_ttl=_env_int("RESOURCE_CACHE_TTL", None),
        enable_cache_tools=_env_flag("ENABLE_CACHE_TOOLS"),
    )


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or load the global settings instance."""
    global _settings

    if _settings is None:
        _settings = load_settings()

    return _settings
