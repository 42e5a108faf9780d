"""
RouteScribe Configuration: pydantic-settings based.

All settings are read from environment variables or .env file.
Nothing is required: every value has a default suitable for analyzing
a stock Laravel application.
"""

from typing import Literal

from pydantic_settings import BaseSettings
from pydantic import Field


DEFAULT_EXCLUDED_METHODS = [
    "__construct",
    "__destruct",
    "__call",
    "__callStatic",
    "__get",
    "__set",
    "__isset",
    "__unset",
    "__sleep",
    "__wakeup",
    "__toString",
    "__invoke",
    "__set_state",
    "__clone",
    "__debugInfo",
    "middleware",
    "validator",
    "validate",
    "authorize",
    "validateWithBag",
    "withValidator",
    "boot",
    "bootTraits",
    "register",
    "getMiddleware",
    "callAction",
]


class Settings(BaseSettings):
    """Application-wide settings sourced from environment variables."""

    # ── Eligibility ──
    complexity_threshold: int = Field(
        default=3,
        description="Minimum cyclomatic complexity for a non-CRUD method to be documented",
    )
    include_simple_methods: bool = Field(
        default=False,
        description="Force flag: document every public method regardless of complexity",
    )
    exclude_methods: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EXCLUDED_METHODS),
        description="Method names that are never documented",
    )
    always_include_methods: list[str] = Field(
        default_factory=lambda: ["index", "show", "store", "create", "update", "destroy", "edit"],
        description="Resource method names that are always documented",
    )

    # ── Output ──
    merge_strategy: Literal["smart", "overwrite"] = Field(
        default="smart",
        description="smart: keep previously documented tags; overwrite: regenerate everything",
    )
    group_strategy: Literal["controller", "namespace"] = Field(
        default="controller", description="How @group names are derived"
    )
    default_group: str = Field(default="API", description="Fallback @group name")

    # ── Resolution ──
    project_root: str | None = Field(
        default=None,
        description="Laravel project root; enables source-backed models, migrations and routes",
    )
    model_namespaces: list[str] = Field(
        default_factory=lambda: ["App\\Models\\", "App\\"],
        description="Namespaces tried for unqualified model class names",
    )
    max_resource_depth: int = Field(
        default=1, description="How many nested API resource hops are expanded"
    )
    max_relation_depth: int = Field(
        default=3, description="Maximum eager-load dot-path depth expanded in examples"
    )

    # ── Examples ──
    example_seed: int | None = Field(
        default=1234, description="Faker seed for reproducible examples (None = random)"
    )
    example_base_url: str = Field(
        default="http://example.com/api", description="Base URL used in example links"
    )

    # ── Feature flags ──
    feature_implementation_notes: bool = Field(default=True)
    feature_validation_errors: bool = Field(default=True)
    feature_authorization_errors: bool = Field(default=True)
    feature_rate_limit_info: bool = Field(default=True)
    feature_side_effect_notes: bool = Field(default=True)

    # ── Server ──
    max_source_bytes: int = Field(
        default=500_000, description="Max source size accepted by the HTTP API (bytes)"
    )
    port: int = Field(default=5001, description="Server port")
    host: str = Field(default="0.0.0.0", description="Server bind host")
    cors_origins: list[str] = Field(
        default=["*"], description="Allowed CORS origins"
    )

    # ── Audit ──
    audit_log_path: str = Field(
        default="audit.jsonl", description="Path to JSON-lines audit log file"
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }


# Singleton instance, imported by other modules
settings = Settings()
