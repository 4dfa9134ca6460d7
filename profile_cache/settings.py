import os
from datetime import timedelta

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

from profile_cache.services.coordinator import CacheConfig
from profile_cache.services.errors import ErrorClass

load_dotenv()


class Settings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Profile API Configuration
    profile_api_base_url: str = Field(
        default="http://localhost:3001", alias="PROFILE_API_BASE_URL"
    )
    profile_api_timeout: float = Field(default=30.0, alias="PROFILE_API_TIMEOUT")
    profile_api_token: str = Field(default="", alias="PROFILE_API_TOKEN")

    # Positive cache (seconds)
    cache_default_ttl: float = Field(default=300.0, gt=0, alias="CACHE_DEFAULT_TTL")
    cache_max_size: int = Field(default=1000, gt=0, alias="CACHE_MAX_SIZE")
    cache_debug: bool = Field(default=False, alias="CACHE_DEBUG")

    # Negative cache, per error class (seconds)
    error_ttl_not_found: float = Field(default=300.0, ge=0, alias="ERROR_TTL_NOT_FOUND")
    error_ttl_rate_limited: float = Field(
        default=30.0, ge=0, alias="ERROR_TTL_RATE_LIMITED"
    )
    error_ttl_server_error: float = Field(
        default=120.0, ge=0, alias="ERROR_TTL_SERVER_ERROR"
    )
    error_ttl_network_error: float = Field(
        default=30.0, ge=0, alias="ERROR_TTL_NETWORK_ERROR"
    )
    error_ttl_unknown: float = Field(default=60.0, ge=0, alias="ERROR_TTL_UNKNOWN")

    # Retry Configuration
    retry_max_attempts: int = Field(default=3, ge=1, alias="RETRY_MAX_ATTEMPTS")
    retry_base_delay: float = Field(default=1.0, ge=0, alias="RETRY_BASE_DELAY")
    retry_max_backoff: float = Field(default=10.0, ge=0, alias="RETRY_MAX_BACKOFF")
    retry_idle_ttl: float = Field(default=3600.0, gt=0, alias="RETRY_IDLE_TTL")

    # Janitor Configuration
    janitor_sweep_interval: float = Field(
        default=300.0, gt=0, alias="JANITOR_SWEEP_INTERVAL"
    )

    def to_cache_config(self) -> CacheConfig:
        """Build the coordinator configuration."""
        return CacheConfig(
            default_ttl=timedelta(seconds=self.cache_default_ttl),
            error_ttl_by_class={
                ErrorClass.NOT_FOUND: timedelta(seconds=self.error_ttl_not_found),
                ErrorClass.RATE_LIMITED: timedelta(seconds=self.error_ttl_rate_limited),
                ErrorClass.SERVER_ERROR: timedelta(seconds=self.error_ttl_server_error),
                ErrorClass.NETWORK_ERROR: timedelta(
                    seconds=self.error_ttl_network_error
                ),
                ErrorClass.UNKNOWN: timedelta(seconds=self.error_ttl_unknown),
            },
            max_attempts=self.retry_max_attempts,
            base_delay=timedelta(seconds=self.retry_base_delay),
            max_backoff=timedelta(seconds=self.retry_max_backoff),
            sweep_interval=timedelta(seconds=self.janitor_sweep_interval),
            retry_idle_ttl=timedelta(seconds=self.retry_idle_ttl),
            max_cache_size=self.cache_max_size,
            debug=self.cache_debug,
        )


global_settings = Settings.model_validate(dict(os.environ))
