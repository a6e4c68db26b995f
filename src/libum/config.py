# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/libum

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator

from libum.types import Conference
from libum.utils.logger import logger

DEFAULT_CONFIG_PATH = "libum.yaml"


def _default_fallback_conferences() -> list[Conference]:
    return [
        Conference(id=f"javazone_{year}", name=f"JavaZone {year}", slug=f"javazone_{year}", year=str(year))
        for year in (2025, 2024, 2023, 2022)
    ]


class UpstreamConfig(BaseModel):
    """Connection settings for the moresleep API."""

    base_url: str = Field("https://sleepingpill.javazone.no", description="Base URL of the authenticated API")
    public_base_url: str | None = Field(None, description="Base URL for public endpoints, defaults to base_url")
    timeout: float | None = Field(None, description="Request timeout in seconds, None disables it")
    credential_env: str = Field("MORESLEEP_BASIC_AUTH", description="Secret holding the user:pass credential")
    probe_conference_id: str = Field("javazone_2023", description="Conference used by the API debug probe")

    @field_validator("base_url", "public_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str | None) -> str | None:
        """Normalize URLs so paths can be appended."""
        return v.rstrip("/") if v else v


class ServerConfig(BaseModel):
    """Settings for the HTTP server."""

    host: str = Field("127.0.0.1", description="Interface to bind")
    port: int = Field(8000, description="Port to listen on")


class AppConfig(BaseModel):
    """Root configuration for the application."""

    upstream: UpstreamConfig = Field(default_factory=UpstreamConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    fallback_conferences: list[Conference] = Field(
        default_factory=_default_fallback_conferences,
        description="Static conference list shown when the API is unavailable",
    )

    @field_validator("fallback_conferences")
    @classmethod
    def check_unique_ids(cls, v: list[Conference]) -> list[Conference]:
        """Ensure that all fallback conference IDs are unique."""
        ids = [c.id for c in v]
        if len(ids) != len(set(ids)):
            duplicates = set([x for x in ids if ids.count(x) > 1])
            raise ValueError(f"Duplicate conference IDs found: {duplicates}")
        return v


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """
    Load the application configuration from a YAML file.

    Args:
        config_path: Path to the configuration file. If None, checks LIBUM_CONFIG_PATH
                     env var or defaults to ./libum.yaml.

    Returns:
        AppConfig: The parsed configuration. Defaults are used when no path was
                   given and the default file does not exist.

    Raises:
        FileNotFoundError: If an explicitly requested configuration file does not exist.
        ValueError: If the configuration file is invalid.
    """
    explicit = config_path is not None or "LIBUM_CONFIG_PATH" in os.environ
    if config_path is None:
        config_path = os.getenv("LIBUM_CONFIG_PATH", DEFAULT_CONFIG_PATH)

    path_obj = Path(config_path)
    logger.info(f"Loading configuration from {path_obj.absolute()}")

    if not path_obj.exists():
        if not explicit:
            logger.info("No configuration file found, using defaults")
            return AppConfig()
        logger.error(f"Configuration file not found: {path_obj}")
        raise FileNotFoundError(f"Configuration file not found at {path_obj}")

    try:
        with open(path_obj, "r", encoding="utf-8") as f:
            raw_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse YAML configuration: {e}")
        raise ValueError(f"Invalid YAML configuration: {e}") from e

    if not isinstance(raw_data, dict):
        # Handle empty file or invalid root
        if raw_data is None:
            raw_data = {}
        else:
            logger.error(f"Configuration root must be a dictionary, got {type(raw_data)}")
            raise ValueError("Configuration root must be a dictionary")

    try:
        config = AppConfig(**raw_data)
        logger.info(f"Successfully loaded configuration for {config.upstream.base_url}")
        return config
    except Exception as e:
        logger.error(f"Configuration validation failed: {e}")
        raise ValueError(f"Configuration validation failed: {e}") from e
