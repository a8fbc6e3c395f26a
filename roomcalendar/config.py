"""
Configuration management using Pydantic models loaded from YAML.
"""

import logging
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator


class RoomConfig(BaseModel):
    """A room known to the mock backend."""
    id: int
    name: str
    capacity: Optional[int] = None
    description: str = ""

    @field_validator("capacity")
    @classmethod
    def validate_capacity(cls, value: Optional[int]) -> Optional[int]:
        """Ensure capacity, when given, is positive."""
        if value is not None and value <= 0:
            raise ValueError("capacity must be greater than zero")
        return value


def _default_rooms() -> List[RoomConfig]:
    return [
        RoomConfig(id=1, name="Room 1", capacity=10, description="Main conference room"),
        RoomConfig(id=2, name="Room 2", capacity=6, description="Small conference room"),
    ]


class AppConfig(BaseModel):
    """Application configuration."""
    api_url: str = "http://localhost:15000"
    request_timeout: int = 30
    rooms: List[RoomConfig] = Field(default_factory=_default_rooms)
    cancel_code_length: int = 6
    upcoming_limit: int = 10
    session_file: Path = Field(default_factory=lambda: Path.home() / ".roomcalendar_session.json")
    mock_data_file: Optional[Path] = None
    log_level: str = "WARNING"

    @field_validator("api_url")
    @classmethod
    def validate_api_url(cls, value: str) -> str:
        """Require an http(s) URL and drop the trailing slash."""
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"api_url must start with http:// or https://, got {value}")
        return value.rstrip("/")

    @field_validator("request_timeout", "upcoming_limit")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("value must be greater than zero")
        return value

    @field_validator("cancel_code_length")
    @classmethod
    def validate_cancel_code_length(cls, value: int) -> int:
        """Keep codes short enough to type and long enough to guess poorly."""
        if not 4 <= value <= 12:
            raise ValueError(f"cancel_code_length must be between 4 and 12, got {value}")
        return value

    @field_validator("rooms")
    @classmethod
    def validate_rooms(cls, value: List[RoomConfig]) -> List[RoomConfig]:
        """The calendar shows exactly two rooms with unique ids."""
        if len(value) != 2:
            raise ValueError(f"Exactly two rooms must be configured, got {len(value)}")
        if value[0].id == value[1].id:
            raise ValueError(f"Duplicate room id detected: {value[0].id}")
        return value

    @field_validator("session_file", "mock_data_file")
    @classmethod
    def expand_user(cls, value: Optional[Path]) -> Optional[Path]:
        return value.expanduser() if value is not None else None

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

        return cls(**data)

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "AppConfig":
        """
        Load an explicit config file, or the default one if it exists.

        An explicitly given path must exist. Without one, missing
        ``config.yaml`` simply means running on defaults.
        """
        if config_path is not None:
            return cls.load_from_yaml(config_path)

        default_path = get_default_config_path()
        if default_path.exists():
            return cls.load_from_yaml(default_path)
        return cls()

    def find_room(self, identifier: str) -> Optional[RoomConfig]:
        """Find a configured room by id or by name."""
        for room in self.rooms:
            if str(room.id) == identifier or room.name.lower() == identifier.lower():
                return room
        return None


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
