"""Application settings using pydantic-settings."""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MAX_BATCH_SIZE = 500


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    debug: bool = False
    log_level: str = Field(
        default="INFO",
        description="Log level used by the command-line scripts",
    )

    # Graph query settings
    graph_max_depth: int = Field(
        default=3,
        ge=1,
        description="Default hop bound for connected-node exploration",
    )
    path_max_depth: int = Field(
        default=5,
        ge=1,
        description="Default hop bound for call-path enumeration",
    )
    impact_max_depth: int | None = Field(
        default=None,
        ge=1,
        description="Optional hop bound for impact analysis (None = full closure)",
    )
    report_top_n: int = Field(
        default=10,
        ge=1,
        description="Number of classes/methods listed in report rankings",
    )

    # Build settings
    build_max_workers: int = Field(
        default=4,
        ge=1,
        description="Worker threads used to extract per-file facts",
    )
    build_exclude_patterns: list[str] = Field(
        default_factory=lambda: [
            "generated/*",
            "*/generated/*",
            "build/*",
            "*/build/*",
            "target/*",
            "*/target/*",
        ],
        description="fnmatch patterns of file paths skipped by the builder",
    )

    # Export settings
    export_batch_size: int = Field(
        default=50,
        description="Maximum statements per Cypher batch",
    )
    export_include_schema: bool = Field(
        default=True,
        description="Emit uniqueness constraints before node batches",
    )
    export_fallback_dir: str = Field(
        default=".codekg_exports",
        description="Directory where scripts are written when publishing fails",
    )
    export_retry_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts per batch when executing against the graph database",
    )
    export_retry_max_wait: float = Field(
        default=10.0,
        ge=0,
        description="Upper bound in seconds for the backoff between attempts",
    )

    # OpenTelemetry settings
    otel_enabled: bool = Field(
        default=False,
        description="Enable OpenTelemetry traces and metrics",
    )
    otel_service_name: str = Field(
        default="codekg",
        description="Service name reported to the collector",
    )
    otel_exporter_otlp_endpoint: str = Field(
        default="http://localhost:4317",
        description="OTLP gRPC endpoint",
    )
    otel_traces_sampler: str = Field(
        default="parentbased_traceidratio",
        description="Sampler: always_on, always_off, traceidratio, parentbased_traceidratio",
    )
    otel_traces_sampler_arg: float = Field(
        default=1.0,
        description="Sampling ratio for ratio-based samplers",
    )

    @field_validator("export_batch_size")
    @classmethod
    def _check_batch_size(cls, value: int) -> int:
        if not 1 <= value <= MAX_BATCH_SIZE:
            raise ValueError(f"export_batch_size must be between 1 and {MAX_BATCH_SIZE}")
        return value


# Singleton instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
