"""
oas3-app: Environment Configuration
====================================

What:  Settings for running the assembled application as a service.
How:   Pydantic Settings reads OAS3_* environment variables (or a .env file),
       validates them, and exposes a `settings` singleton.
Who:   oas3app.main (uvicorn factory and logging setup) and `python -m oas3app`.

Embedding programs that build AppConfig directly do not need this module;
the option models in oas3app.options are the programmatic interface.
"""

from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from oas3app.options import AppOptions, CorsOptions, LoggingOptions, RoutingOptions


class Settings(BaseSettings):
    """
    Service settings loaded from the environment.

    Every field maps to OAS3_<FIELD NAME>, e.g. OAS3_DEFINITION_PATH.
    """

    # ── Definition & routing ──────────────────────────────────────────────
    # Path of the OpenAPI definition; required by create_app()
    definition_path: Optional[str] = Field(default=None)

    # Dotted package holding the controller modules
    controllers: Optional[str] = Field(default=None)

    # ── Pipeline ──────────────────────────────────────────────────────────
    parser_limit: str = Field(default="100kb")
    log_format: str = Field(default="dev")
    log_error_limit: Optional[int] = Field(default=None, ge=100, le=599)

    # Comma-separated list, "*" for any origin
    cors_origins: str = Field(default="*")

    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    # ── Server ────────────────────────────────────────────────────────────
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8080, ge=1, le=65535)

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

    model_config = SettingsConfigDict(
        env_prefix="OAS3_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    def validate_required(self) -> None:
        """Fail with every missing setting listed, before the app is built."""
        errors = []
        if not self.definition_path:
            errors.append("OAS3_DEFINITION_PATH is not set (path of the OpenAPI definition)")
        if errors:
            raise ValueError(
                "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
            )

    def to_app_options(self) -> AppOptions:
        """Translate the environment settings into assembler options."""
        return AppOptions(
            routing=RoutingOptions(controllers=self.controllers),
            parser_limit=self.parser_limit,
            logging=LoggingOptions(format=self.log_format, error_limit=self.log_error_limit),
            cors=CorsOptions(allow_origins=self.cors_origins_list),
        )


settings = Settings()
