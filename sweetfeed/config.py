from dataclasses import dataclass

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env")

    app_name: str = "SweetFeed"
    debug: bool = False

    database_url: str = "postgresql+asyncpg://localhost:5432/sweetfeed"

    # Hosted PostgREST backend (e.g. https://<project>.supabase.co)
    backend_url: str = "http://localhost:54321"
    backend_api_key: str = ""
    request_timeout: float = 10.0

    # Feed tuning
    page_size: int = 20
    refill_threshold: int = 5
    over_fetch_multiplier: int = 3
    max_fetch_attempts: int = 5
    retention_window: int = 10
    bounding_box_delta: float = 0.45

    # Gesture classification, in points along the primary axis
    axis_threshold: float = 120.0


settings = Settings()


# =============================================================================
# FEED SAFETY LIMITS
# =============================================================================

# Largest page a single feed request may ask for
MAX_PAGE_SIZE = 100

# Upper bound on the geometric over-fetch growth
MAX_FETCH_ATTEMPTS_CAP = 8


@dataclass(frozen=True)
class FeedConfig:
    """
    Per-navigator feed tuning.

    Attributes:
        page_size: Candidates requested per refill
        refill_threshold: Remaining items at which a background refill starts
        over_fetch_multiplier: Base multiplier for the first over-fetch attempt
        max_fetch_attempts: Attempts per refill, each doubling the multiplier
        retention_window: Items kept behind the cursor for retreat
        axis_threshold: Drag distance that turns a gesture into a decision
    """

    page_size: int = 20
    refill_threshold: int = 5
    over_fetch_multiplier: int = 3
    max_fetch_attempts: int = 5
    retention_window: int = 10
    axis_threshold: float = 120.0

    def __post_init__(self) -> None:
        if not 0 < self.page_size <= MAX_PAGE_SIZE:
            raise ValueError(f"page_size must be in 1..{MAX_PAGE_SIZE}, got {self.page_size}")
        if self.refill_threshold < 0:
            raise ValueError("refill_threshold must be non-negative")
        if self.over_fetch_multiplier < 1:
            raise ValueError("over_fetch_multiplier must be at least 1")
        if not 0 < self.max_fetch_attempts <= MAX_FETCH_ATTEMPTS_CAP:
            raise ValueError(f"max_fetch_attempts must be in 1..{MAX_FETCH_ATTEMPTS_CAP}")
        if self.retention_window < 0:
            raise ValueError("retention_window must be non-negative")
        if self.axis_threshold <= 0:
            raise ValueError("axis_threshold must be positive")

    @classmethod
    def from_settings(cls, source: Settings | None = None) -> "FeedConfig":
        """Build a feed config from application settings."""
        source = source or settings
        return cls(
            page_size=source.page_size,
            refill_threshold=source.refill_threshold,
            over_fetch_multiplier=source.over_fetch_multiplier,
            max_fetch_attempts=source.max_fetch_attempts,
            retention_window=source.retention_window,
            axis_threshold=source.axis_threshold,
        )
