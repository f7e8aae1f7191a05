"""Engine configuration settings for the comparable-sales engine."""

from dataclasses import dataclass
import os


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class MarketplaceConfig:
    """Remote marketplace search API."""
    base_url: str = "https://auctionet.com/api/v2/items.json"
    search_page_url: str = "https://auctionet.com/sv/search"
    reference_currency: str = "SEK"
    max_results: int = 200
    request_timeout_seconds: float = 15.0


@dataclass
class CacheConfig:
    """Search result cache lifetimes."""
    ended_ttl_seconds: int = 1800
    live_ttl_seconds: int = 300


@dataclass
class ThresholdConfig:
    """Record counts that decide when a search is good enough."""
    historical_sufficiency: int = 5
    live_sufficiency: int = 3
    ai_query_min_records: int = 3
    canonical_min_records: int = 3


@dataclass
class ValidationConfig:
    """Result validator policy."""
    ratio_outlier_removal: bool = False
    ratio_threshold: float = 200.0
    iqr_multiplier: float = 5.0
    min_survivors: int = 3
    temporal_span_years: float = 10.0
    temporal_recent_years: int = 5
    temporal_min_dated: int = 5


@dataclass
class SettingsStoreConfig:
    """Where the excluded seller setting is persisted."""
    backend: str = "memory"
    redis_url: str = "redis://localhost:6379"
    excluded_seller_key: str = "comparables:excluded_seller_id"


@dataclass
class GeneratorConfig:
    """AI-assisted query generation."""
    model: str = "claude-3-haiku-20240307"
    max_tokens: int = 600


@dataclass
class EngineSettings:
    """Main engine configuration settings."""
    marketplace: MarketplaceConfig = None
    cache: CacheConfig = None
    thresholds: ThresholdConfig = None
    validation: ValidationConfig = None
    settings_store: SettingsStoreConfig = None
    generator: GeneratorConfig = None

    def __post_init__(self):
        """Initialize nested configs if not provided."""
        if self.marketplace is None:
            self.marketplace = MarketplaceConfig()
        if self.cache is None:
            self.cache = CacheConfig()
        if self.thresholds is None:
            self.thresholds = ThresholdConfig()
        if self.validation is None:
            self.validation = ValidationConfig()
        if self.settings_store is None:
            self.settings_store = SettingsStoreConfig()
        if self.generator is None:
            self.generator = GeneratorConfig()


# Default engine configuration
ENGINE_CONFIG = {
    "marketplace": {
        "base_url": os.getenv("MARKETPLACE_BASE_URL", "https://auctionet.com/api/v2/items.json"),
        "search_page_url": os.getenv("MARKETPLACE_SEARCH_PAGE_URL", "https://auctionet.com/sv/search"),
        "reference_currency": os.getenv("REFERENCE_CURRENCY", "SEK"),
        "max_results": int(os.getenv("MAX_RESULTS", "200")),
        "request_timeout_seconds": float(os.getenv("REQUEST_TIMEOUT_SECONDS", "15")),
    },
    "cache": {
        "ended_ttl_seconds": int(os.getenv("ENDED_CACHE_TTL_SECONDS", "1800")),
        "live_ttl_seconds": int(os.getenv("LIVE_CACHE_TTL_SECONDS", "300")),
    },
    "thresholds": {
        "historical_sufficiency": int(os.getenv("HISTORICAL_SUFFICIENCY", "5")),
        "live_sufficiency": int(os.getenv("LIVE_SUFFICIENCY", "3")),
        "ai_query_min_records": int(os.getenv("AI_QUERY_MIN_RECORDS", "3")),
        "canonical_min_records": int(os.getenv("CANONICAL_MIN_RECORDS", "3")),
    },
    "validation": {
        "ratio_outlier_removal": _env_flag("RATIO_OUTLIER_REMOVAL", "false"),
        "ratio_threshold": float(os.getenv("RATIO_THRESHOLD", "200")),
        "iqr_multiplier": float(os.getenv("IQR_MULTIPLIER", "5.0")),
    },
    "settings_store": {
        "backend": os.getenv("SETTINGS_BACKEND", "memory"),
        "redis_url": os.getenv("REDIS_URL", "redis://localhost:6379"),
        "excluded_seller_key": os.getenv("EXCLUDED_SELLER_KEY", "comparables:excluded_seller_id"),
    },
    "generator": {
        "model": os.getenv("QUERY_MODEL", "claude-3-haiku-20240307"),
        "max_tokens": int(os.getenv("QUERY_MAX_TOKENS", "600")),
    },
}


def get_engine_settings() -> EngineSettings:
    """Get engine settings from configuration."""
    return EngineSettings(
        marketplace=MarketplaceConfig(**ENGINE_CONFIG["marketplace"]),
        cache=CacheConfig(**ENGINE_CONFIG["cache"]),
        thresholds=ThresholdConfig(**ENGINE_CONFIG["thresholds"]),
        validation=ValidationConfig(**ENGINE_CONFIG["validation"]),
        settings_store=SettingsStoreConfig(**ENGINE_CONFIG["settings_store"]),
        generator=GeneratorConfig(**ENGINE_CONFIG["generator"]),
    )
