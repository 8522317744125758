from enum import StrEnum

from pydantic_settings import BaseSettings, SettingsConfigDict

from mintstats.listing.types import (
    CACHE_TTL,
    DEFAULT_RECENT_LIMIT,
    GRAPH_URL,
    INDEXER_URL,
    REFRESH_INTERVAL,
    REQUEST_TIMEOUT,
    ListingConfig,
    ListingType,
)


class Environment(StrEnum):
    development = "development"
    production = "production"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: Environment = Environment.development
    LOG_LEVEL: str = "INFO"

    # Listing
    LISTED_NAME: str = ""
    LISTING_CHAIN_ID: int | None = None
    LISTING_TYPE: ListingType = ListingType.L1
    LISTED_NODE: str | None = None  # Pre-computed namehash of LISTED_NAME

    # Sources
    GRAPH_URL: str = GRAPH_URL
    INDEXER_URL: str = INDEXER_URL
    REQUEST_TIMEOUT: float = REQUEST_TIMEOUT

    # Polling and cache
    REFRESH_INTERVAL: float = REFRESH_INTERVAL
    RECENT_MINTS_LIMIT: int = DEFAULT_RECENT_LIMIT
    CACHE_TTL: float = CACHE_TTL
    CACHE_DIR: str = ".mintstats-cache"

    # HTTP
    ENABLE_HTTP: bool = False
    HTTP_HOST: str = "0.0.0.0"
    HTTP_PORT: int = 8080

    @property
    def is_production(self) -> bool:
        return self.ENV == Environment.production

    @property
    def listing(self) -> ListingConfig:
        return ListingConfig(
            parent_name=self.LISTED_NAME,
            chain_id=self.LISTING_CHAIN_ID,
            listing_type=self.LISTING_TYPE,
        )


settings = Settings()
