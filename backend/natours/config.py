"""
Natours API — Application Configuration
=========================================

What:  Centralized configuration management using Pydantic Settings.
How:   Pydantic Settings reads from environment variables (or a .env file),
       validates types/ranges, and provides a singleton ``settings`` object.
       ``create_app`` accepts an explicit ``Settings`` so tests and embedders
       never have to mutate process environment.
Who:   Read by the application factory; individual stages receive the values
       they need as constructor arguments instead of importing ``settings``.
"""

from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

DEFAULT_PARAMETER_WHITELIST = (
    "duration,ratingsQuantity,ratingsAverage,maxGroupSize,price"
)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Every field has a default suitable for local development except
    ``node_env``, which defaults to production so that a missing variable
    never discloses error internals.
    """

    # ── Environment ───────────────────────────────────────────────────────
    # NODE_ENV=development enables verbose error bodies and the access log.
    node_env: str = Field(default="production")

    @field_validator("node_env")
    @classmethod
    def normalize_node_env(cls, v: str) -> str:
        return v.strip().lower()

    @property
    def is_development(self) -> bool:
        return self.node_env == "development"

    # ── Server ────────────────────────────────────────────────────────────
    backend_host: str = Field(default="0.0.0.0")
    backend_port: int = Field(default=8000, ge=1, le=65535)

    # Valid: DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    # Use the first X-Forwarded-For hop as the client IP (app behind a proxy).
    trust_proxy: bool = Field(default=True)

    # ── CORS ──────────────────────────────────────────────────────────────
    # Comma-separated origins; "*" allows any origin.
    cors_origins: str = Field(default="*")

    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    # ── Rate Limiting ─────────────────────────────────────────────────────
    # Fixed window per client IP, applied under api_prefix only.
    api_prefix: str = Field(default="/api")
    rate_limit_requests: int = Field(default=100, ge=1)
    rate_limit_window: int = Field(default=3600, ge=1)  # seconds

    # ── Body Ingestion ────────────────────────────────────────────────────
    body_limit: int = Field(default=10 * 1024, ge=1)
    webhook_path: str = Field(default="/webhook-checkout")
    webhook_media_type: str = Field(default="application/json")
    webhook_body_limit: int = Field(default=100 * 1024, ge=1)

    # ── Sanitization ──────────────────────────────────────────────────────
    # Query fields allowed to repeat (kept as a list instead of collapsed).
    parameter_whitelist: str = Field(default=DEFAULT_PARAMETER_WHITELIST)

    @property
    def parameter_whitelist_list(self) -> List[str]:
        return [name.strip() for name in self.parameter_whitelist.split(",") if name.strip()]

    # ── Static Assets & Compression ───────────────────────────────────────
    public_dir: str = Field(default="./public")
    compression_min_size: int = Field(default=1024, ge=0)

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,  # NODE_ENV and node_env both work
        "extra": "ignore",
    }


# Singleton instance used when create_app() is called without settings
settings = Settings()
