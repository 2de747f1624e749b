"""
Configuration management for the blog exporter.

This module uses pydantic-settings to manage all configuration aspects including:
- Feed aggregation (paging, classification, failure policy)
- Feed transcoding (post bound, static settings and template data)
- Web service
- Logging and metrics

Configuration is loaded from environment variables or .env files.
"""
import json
from enum import Enum
from importlib import resources
from pathlib import Path
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from blogexport import DEFAULT_FEED_PATH, DEFAULT_MAX_POSTS, DEFAULT_PAGE_SIZE


class LogLevel(str, Enum):
    """Log levels supported by the application."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class Environment(str, Enum):
    """Application environment."""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class ClassificationStrategy(str, Enum):
    """How an entry is recognised as a blog post."""
    CATEGORY = "category"  # kind#post category term
    ALTERNATE_LINK = "alternate_link"  # rel=alternate type=text/html link


class FailurePolicy(str, Enum):
    """What to do when a page after the first one cannot be fetched."""
    STOP = "stop"  # keep what was fetched so far
    FAIL = "fail"  # fail the whole aggregation


class AggregatorConfig(BaseModel):
    """Configuration for paginated feed aggregation."""
    feed_path: str = DEFAULT_FEED_PATH
    page_size: int = DEFAULT_PAGE_SIZE
    request_atom: bool = True
    classification: ClassificationStrategy = ClassificationStrategy.CATEGORY
    keep_non_post_entries: bool = False
    mid_pagination_failure: FailurePolicy = FailurePolicy.STOP
    request_timeout_seconds: float = 30.0
    max_pages: int = 200
    user_agent: str = "Blogger-Archive-Exporter/0.1.0"

    @field_validator("feed_path")
    @classmethod
    def validate_feed_path(cls, v: str) -> str:
        """Feed path must be absolute."""
        if not v.startswith("/"):
            raise ValueError("feed_path must start with '/'")
        return v.rstrip("/")

    @model_validator(mode="after")
    def _sanity_checks(self) -> "AggregatorConfig":
        if self.page_size <= 0:
            raise ValueError("page_size must be positive")
        if self.max_pages <= 0:
            raise ValueError("max_pages must be positive")
        if self.request_timeout_seconds <= 0:
            raise ValueError("request_timeout_seconds must be positive")
        return self


class TranscoderConfig(BaseModel):
    """Configuration for RSS to Blogger Atom transcoding."""
    max_posts: int = DEFAULT_MAX_POSTS
    # JSON object of setting name -> value; the packaged defaults are used if unset
    settings_path: Optional[Path] = None
    template_path: Optional[Path] = None
    default_title: str = "Unknown Blog"
    default_generator: str = "Blogger"

    @field_validator("max_posts")
    @classmethod
    def validate_max_posts(cls, v: int) -> int:
        if v < 0:
            raise ValueError("max_posts must not be negative")
        return v


class WebConfig(BaseModel):
    """Configuration for the web service."""
    host: str = "127.0.0.1"
    port: int = 8080


class MetricsConfig(BaseModel):
    """Configuration for metrics and logging."""
    prometheus_enabled: bool = False
    log_level: LogLevel = LogLevel.INFO
    structured_logging: bool = True


class AuthorProfile(BaseModel):
    """Author block attached to every synthesized entry."""
    model_config = ConfigDict(frozen=True)

    name: str = "Admin"
    uri: str = "https://www.blogger.com/profile/09614081293183296077"
    email: str = "noreply@blogger.com"
    image_src: str = "//www.blogger.com/img/blogger_logo_round_35.png"
    image_size: int = 35


class TranscoderProfile(BaseModel):
    """
    Immutable static data used to synthesize a Blogger import document.

    Loaded once from configuration and handed to the transcoder, so nothing
    is read from disk while a request is being served.
    """
    model_config = ConfigDict(frozen=True)

    settings: Tuple[Tuple[str, str], ...] = ()
    template_markup: str = ""
    author: AuthorProfile = Field(default_factory=AuthorProfile)
    platform_url: str = "https://www.blogger.com"
    stylesheet_href: str = "https://www.blogger.com/styles/atom.css"
    generator_version: str = "7.00"
    published: str = "2025-03-03T08:53:16.921-08:00"
    updated: str = "2025-03-07T00:15:23.437-08:00"
    post_published: str = "2025-03-03T08:54:00.000-08:00"
    max_posts: int = DEFAULT_MAX_POSTS
    default_title: str = "Unknown Blog"
    default_generator: str = "Blogger"


class Settings(BaseSettings):
    """Main settings class for the blog exporter."""
    # Application metadata
    app_name: str = "blogger-archive-exporter"
    version: str = "0.1.0"
    environment: Environment = Environment.DEVELOPMENT
    debug: bool = Field(default=False)

    # Component configurations
    aggregator: AggregatorConfig = Field(default_factory=AggregatorConfig)
    transcoder: TranscoderConfig = Field(default_factory=TranscoderConfig)
    web: WebConfig = Field(default_factory=WebConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        validate_default=True,
    )


def load_settings() -> Settings:
    """Load settings from environment variables and .env file."""
    return Settings()


def _read_packaged(name: str) -> str:
    return resources.files("blogexport.data").joinpath(name).read_text(encoding="utf-8")


def load_static_settings(path: Optional[Path] = None) -> Dict[str, str]:
    """
    Load the Blogger settings written as settings entries.

    Args:
        path: Optional JSON file overriding the packaged defaults

    Returns:
        Dict[str, str]: Setting name to value, in file order

    Raises:
        ValueError: If the file is not a JSON object
    """
    raw = path.read_text(encoding="utf-8") if path else _read_packaged("settings.json")
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("Settings data must be a JSON object")
    return {str(key): "" if value is None else str(value) for key, value in data.items()}


def load_profile(config: TranscoderConfig) -> TranscoderProfile:
    """Build the immutable transcoder profile from configuration."""
    settings = load_static_settings(config.settings_path)
    if config.template_path:
        template = config.template_path.read_text(encoding="utf-8")
    else:
        template = _read_packaged("template.xml")
    return TranscoderProfile(
        settings=tuple(settings.items()),
        template_markup=template.strip(),
        max_posts=config.max_posts,
        default_title=config.default_title,
        default_generator=config.default_generator,
    )
