"""Settings models for the component catalog.

Contract:
- Inputs: Environment variables, YAML files
- Outputs: Validated settings objects
- Side Effects: None (read-only)
"""

from pydantic import Field
from pydantic import field_validator
from pydantic_settings import BaseSettings
from pydantic_settings import SettingsConfigDict

from component_library.models.components import DEFAULT_GITLAB_INSTANCE
from component_library.models.components import SourceConfig


class CatalogSettings(BaseSettings):
    """Configuration for the component catalog and the componentd daemon.

    Attributes:
        cache_time: Component cache TTL in seconds (default: 3600)
        version_cache_multiplier: Version TTL as a multiple of cache_time (default: 4)
        batch_size: Concurrent requests per batch for group scans and template downloads
        http_timeout: Per-request timeout in seconds
        retry_attempts: Retries for 5xx/429/network failures
        retry_base_delay: Base delay in seconds for exponential backoff
        per_page: Page size for paginated GitLab API calls
        default_gitlab_instance: Host used when a source names none
        component_sources: Configured projects and groups

    Example:
        >>> settings = CatalogSettings()
        >>> assert settings.cache_time == 3600
        >>> assert settings.version_ttl == 4 * 3600
    """

    model_config = SettingsConfigDict(
        env_prefix="COMPONENTD_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Daemon transport
    host: str = "127.0.0.1"
    port: int = 8430
    log_level: str = "info"

    # Cache behavior
    cache_time: int = Field(3600, gt=0)
    version_cache_multiplier: int = Field(4, gt=0)

    # Remote API
    batch_size: int = Field(5, gt=0)
    http_timeout: float = Field(10.0, gt=0)
    retry_attempts: int = Field(3, ge=0)
    retry_base_delay: float = Field(1.0, ge=0)
    per_page: int = Field(100, gt=0, le=100)
    default_gitlab_instance: str = DEFAULT_GITLAB_INSTANCE

    component_sources: list[SourceConfig] = Field(default_factory=list)

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Accept any case for log levels."""
        return v.lower()

    @property
    def component_ttl(self) -> float:
        """Component cache TTL in seconds."""
        return float(self.cache_time)

    @property
    def version_ttl(self) -> float:
        """Version cache TTL in seconds (versions change less often than content)."""
        return float(self.cache_time * self.version_cache_multiplier)
