"""
Configuration management using Pydantic models loaded from YAML.
"""

import logging
from pathlib import Path
from typing import Optional

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator


class BookingConfig(BaseModel):
    """Settings of the booking flow."""
    slot_step_minutes: int = 30
    advance_days: int = 7
    min_name_length: int = 2
    min_phone_length: int = 8

    @field_validator("slot_step_minutes")
    @classmethod
    def validate_step(cls, value: int) -> int:
        """Ensure the slot grid advances."""
        if value <= 0:
            raise ValueError("slot_step_minutes must be greater than zero")
        return value

    @field_validator("advance_days")
    @classmethod
    def validate_advance_days(cls, value: int) -> int:
        """Validate the booking window is between 1 and 90 days."""
        if not 1 <= value <= 90:
            raise ValueError(f"advance_days must be between 1 and 90, got {value}")
        return value

    @field_validator("min_name_length", "min_phone_length")
    @classmethod
    def validate_min_length(cls, value: int) -> int:
        if value < 1:
            raise ValueError("Minimum lengths must be at least 1")
        return value


class AppConfig(BaseModel):
    """Application configuration."""
    salon_name: str = "Salón"
    phone: Optional[str] = None
    address: Optional[str] = None
    timezone: str = "America/Argentina/Buenos_Aires"
    booking: BookingConfig = Field(default_factory=BookingConfig)
    data_file: Path = Path("salon_data.json")
    log_level: str = "WARNING"

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the timezone is a known IANA name."""
        try:
            pendulum.timezone(value)
        except Exception as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value}")
        return level

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        A relative ``data_file`` is resolved against the config file's
        directory.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        config = cls(**data)
        if not config.data_file.is_absolute():
            config.data_file = config_path.parent / config.data_file
        return config


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
