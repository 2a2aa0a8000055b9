"""
TreeMirror configuration management.

Provides centralized configuration with validation using Pydantic.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_CONFIG_PATH = Path.home() / ".treemirror" / "config.json"


class LoggingConfig(BaseModel):
    """Configuration for structured logging."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    file_enabled: bool = True
    console_enabled: bool = True
    json_format: bool = False
    log_directory: Path = Field(default_factory=lambda: Path.home() / ".treemirror" / "logs")
    retention_days: int = Field(default=31, ge=1, le=3650)

    @field_validator("log_directory", mode="before")
    @classmethod
    def expand_path(cls, v: str | Path) -> Path:
        return Path(v).expanduser().resolve()


class MirrorConfig(BaseModel):
    """Configuration for the mirrored folder pair and run cadence."""

    source: Path | None = None
    replica: Path | None = None
    interval_minutes: float = Field(default=5.0, gt=0, le=1440)
    hash_algorithm: Literal["sha256", "sha512", "blake2b", "sha1", "md5"] = "sha256"
    chunk_size_kb: int = Field(default=1024, ge=4, le=65536)
    workers: int = Field(default=1, ge=1, le=64)
    run_on_start: bool = True

    @field_validator("source", "replica", mode="before")
    @classmethod
    def expand_optional_path(cls, v: str | Path | None) -> Path | None:
        if v is None or v == "":
            return None
        return Path(v).expanduser().resolve()

    @model_validator(mode="after")
    def check_distinct_roots(self) -> MirrorConfig:
        if self.source is not None and self.source == self.replica:
            raise ValueError("source and replica must be different folders")
        return self

    @property
    def interval_seconds(self) -> float:
        return self.interval_minutes * 60

    @property
    def chunk_size(self) -> int:
        return self.chunk_size_kb * 1024


class TreeMirrorConfig(BaseModel):
    """Main TreeMirror configuration."""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    mirror: MirrorConfig = Field(default_factory=MirrorConfig)

    @classmethod
    def load(cls, config_path: Path | None = None) -> TreeMirrorConfig:
        """Load configuration from file or create default."""
        if config_path is None:
            config_path = DEFAULT_CONFIG_PATH

        if config_path.exists():
            with open(config_path) as f:
                data = json.load(f)
            return cls.model_validate(data)

        return cls()

    def save(self, config_path: Path | None = None) -> None:
        """Save configuration to file."""
        if config_path is None:
            config_path = DEFAULT_CONFIG_PATH

        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w") as f:
            json.dump(self.model_dump(mode="json"), f, indent=2, default=str)

    def ensure_directories(self) -> None:
        """Create all required directories."""
        if self.logging.file_enabled:
            self.logging.log_directory.mkdir(parents=True, exist_ok=True)


def load_config(config_path: Path | None = None) -> TreeMirrorConfig:
    """Load or create configuration."""
    config = TreeMirrorConfig.load(config_path)
    config.ensure_directories()
    return config
