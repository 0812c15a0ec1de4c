"""Configuration management for clipbridge."""

from pathlib import Path
from typing import Optional

import yaml
from loguru import logger
from pydantic import BaseModel, Field, field_validator

from .messages import DestinationType


class LoggingConfig(BaseModel):
    level: str = "INFO"
    file: Optional[Path] = None
    rotation: str = "1 day"
    retention: str = "7 days"

    @field_validator('level')
    @classmethod
    def validate_level(cls, v: str) -> str:
        v = v.upper()
        if v not in {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {v}")
        return v


class CaptureConfig(BaseModel):
    default_destination: DestinationType = DestinationType.JOURNAL
    default_tag: str = "#web-capture"
    show_notification: bool = True

    @field_validator('default_tag')
    @classmethod
    def normalize_tag(cls, v: str) -> str:
        v = v.strip()
        if v and not v.startswith("#"):
            v = "#" + v
        return v


class LimitsConfig(BaseModel):
    max_lines: int = 20
    max_images: int = 5
    max_search_results: int = 20
    max_tag_suggestions: int = 10
    min_query_length: int = 2

    @field_validator('max_lines', 'max_images', 'max_search_results', 'max_tag_suggestions')
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("limits must be at least 1")
        return v

    @field_validator('min_query_length')
    @classmethod
    def validate_min_query_length(cls, v: int) -> int:
        # empty and one-character queries never reach the host search
        if v < 2:
            raise ValueError("min_query_length must be at least 2")
        return v


class Config(BaseModel):
    """Main configuration for clipbridge."""

    workspace_path: Path = Field(
        default_factory=lambda: Path.home() / ".local" / "share" / "clipbridge" / "workspace.json"
    )
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    capture: CaptureConfig = Field(default_factory=CaptureConfig)
    limits: LimitsConfig = Field(default_factory=LimitsConfig)

    @field_validator('workspace_path')
    @classmethod
    def validate_workspace_path(cls, v: Path) -> Path:
        if isinstance(v, str):
            v = Path(v)
        return v.expanduser()

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Config":
        """Load configuration from YAML, falling back to defaults."""
        if config_path is None:
            candidates = [
                Path("clipbridge.yaml"),
                Path.home() / ".config" / "clipbridge" / "config.yaml",
            ]
            for candidate in candidates:
                if candidate.exists():
                    config_path = candidate
                    break
            else:
                logger.debug("No config file found, using defaults")
                return cls()
        elif not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        logger.info(f"Loading config from: {config_path}")
        with open(config_path, 'r') as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    def save(self, config_path: Path) -> None:
        """Save configuration to YAML file."""
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, 'w') as f:
            yaml.safe_dump(self.model_dump(mode="json"), f, default_flow_style=False)
