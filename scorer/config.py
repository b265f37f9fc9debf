"""
Configuration management for the article scorer.

This module uses pydantic-settings to manage all configuration aspects including:
- Headless browser settings
- Article storage backend
- LLM provider and scoring prompt
- Pipeline batching and report output

Configuration is loaded from environment variables, .env files, or mounted secrets.
"""
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import (
    BaseModel,
    Field,
    SecretStr,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict


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


class WaitUntil(str, Enum):
    """Navigation events Playwright can wait for."""
    LOAD = "load"
    DOMCONTENTLOADED = "domcontentloaded"
    NETWORKIDLE = "networkidle"
    COMMIT = "commit"


class BrowserConfig(BaseModel):
    """Configuration for the headless browser."""
    headless: bool = True
    browser_type: str = "chromium"  # chromium, firefox, webkit
    # Path to a system Chrome/Chromium binary; Playwright's bundled one otherwise
    executable_path: Optional[Path] = None
    viewport_width: int = 1280
    viewport_height: int = 800
    user_agent: Optional[str] = None
    max_concurrent_pages: int = 4
    disable_javascript: bool = False
    block_ads: bool = True
    stealth_mode: bool = True

    # Single-page fetch defaults
    timeout_ms: int = 30000
    wait_until: WaitUntil = WaitUntil.DOMCONTENTLOADED
    wait_for_selector: Optional[str] = ".rich_media_content"
    wait_for_time_ms: Optional[int] = 2000

    # Batch fetch defaults
    batch_timeout_ms: int = 60000
    batch_wait_for_time_ms: Optional[int] = 1000

    @field_validator("max_concurrent_pages")
    @classmethod
    def validate_max_concurrent_pages(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("max_concurrent_pages must be positive")
        return v


class StorageBackend(str, Enum):
    """Article storage backends."""
    MEMORY = "memory"
    POSTGRES = "postgres"


class StorageConfig(BaseModel):
    """Configuration for the article record store."""
    backend: StorageBackend = StorageBackend.MEMORY
    postgres_dsn: Optional[str] = None
    table_name: str = "articles"
    pool_min_size: int = 2
    pool_max_size: int = 10
    command_timeout: int = 30

    @field_validator("table_name")
    @classmethod
    def validate_table_name(cls, v: str) -> str:
        """Table name is interpolated into SQL, so keep it to an identifier."""
        if not v.replace("_", "").isalnum():
            raise ValueError(f"Invalid table name: {v}")
        return v

    @model_validator(mode="after")
    def validate_backend(self) -> "StorageConfig":
        if self.backend == StorageBackend.POSTGRES and not self.postgres_dsn:
            raise ValueError("postgres_dsn is required when using the postgres backend")
        return self


class LLMProvider(str, Enum):
    """LLM providers supported."""
    OPENAI = "openai"
    OLLAMA = "ollama"
    CUSTOM = "custom"


class LLMConfig(BaseModel):
    """Configuration for the LLM generation client."""
    provider: LLMProvider = LLMProvider.OLLAMA
    model_name: str = "qwen2.5"
    api_key: Optional[SecretStr] = None
    # OpenAI-compatible endpoint or Ollama server URL
    base_url: Optional[str] = None
    max_tokens: int = 4000
    temperature: float = 0.0
    timeout_seconds: int = 120
    # 1 means a single attempt with no retry
    max_attempts: int = 1
    json_mode: bool = True

    @model_validator(mode="after")
    def validate_credentials(self) -> "LLMConfig":
        """Validate that required credentials are provided for the chosen provider."""
        if self.provider == LLMProvider.OPENAI and not self.api_key:
            raise ValueError("API key is required when using the OpenAI provider")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        return self


class ScoringConfig(BaseModel):
    """Parameters substituted into the scoring system prompt."""
    organization: str = "舟山医院"
    region: str = "浙江省舟山市"
    # Submit the extracted plain text instead of the sanitized markup
    submit_plain_text: bool = False


class PipelineConfig(BaseModel):
    """Which records a pipeline run touches and how they are batched."""
    batch_size: int = 4
    category: Optional[str] = None
    # Exclusive upper bound on record ids
    max_id: Optional[int] = None
    import_path: Path = Path("data/articles.csv")
    import_overwrite: bool = False

    @field_validator("batch_size")
    @classmethod
    def validate_batch_size(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("batch_size must be positive")
        return v


class ReportConfig(BaseModel):
    """Configuration for the CSV report export."""
    output_path: Path = Path("output/articles.csv")
    language: str = "zh"
    # Excel needs a BOM to detect UTF-8 in CSV files
    encoding: str = "utf-8-sig"

    @field_validator("language")
    @classmethod
    def validate_language(cls, v: str) -> str:
        if v not in ("zh", "en"):
            raise ValueError(f"Unsupported report language: {v}")
        return v


class MetricsConfig(BaseModel):
    """Configuration for metrics and monitoring."""
    enabled: bool = True
    prometheus_enabled: bool = False
    prometheus_port: int = 8000
    log_level: LogLevel = LogLevel.INFO
    structured_logging: bool = True


class Settings(BaseSettings):
    """Main settings class for the article scorer."""
    # Application metadata
    app_name: str = "wechat-article-scorer"
    version: str = "0.1.0"
    environment: Environment = Environment.DEVELOPMENT
    debug: bool = Field(default=False)

    # Component configurations
    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    report: ReportConfig = Field(default_factory=ReportConfig)
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
