"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import List

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator


class BookingDefaults(BaseModel):
    """Default settings for offering windows."""
    horizon_days: int = 28
    hide_past_windows: bool = True
    strict_services: bool = False

    @field_validator("horizon_days")
    @classmethod
    def validate_horizon(cls, value: int) -> int:
        """Ensure the look-ahead window is positive."""
        if value <= 0:
            raise ValueError("horizon_days must be greater than zero")
        return value


class Coach(BaseModel):
    """Coach/resource configuration."""
    id: str
    name: str  # Used as alias on the command line
    email: str = ""

    def display_name(self) -> str:
        """Get display name."""
        return self.name


class AppConfig(BaseModel):
    """Application configuration."""
    data_file: Path = Path("availability.json")
    timezone: str = "America/New_York"
    defaults: BookingDefaults = Field(default_factory=BookingDefaults)
    coaches: List[Coach] = Field(default_factory=list)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the timezone is a known IANA identifier."""
        try:
            pendulum.timezone(value)
        except Exception as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("coaches")
    @classmethod
    def validate_coaches(cls, value: List[Coach]) -> List[Coach]:
        """Ensure coach ids and names are unique."""
        seen_ids: set[str] = set()
        seen_names: set[str] = set()
        for coach in value:
            name_key = coach.name.lower()
            if coach.id in seen_ids:
                raise ValueError(f"Duplicate coach id detected: {coach.id}")
            if name_key in seen_names:
                raise ValueError(f"Duplicate coach name detected: {coach.name}")
            seen_ids.add(coach.id)
            seen_names.add(name_key)
        return value

    def now(self) -> pendulum.DateTime:
        """Current time in the configured timezone."""
        return pendulum.now(self.timezone)

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        A relative ``data_file`` is resolved against the config file's directory.

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

    def find_coach_by_name(self, name: str) -> Coach | None:
        """Find a coach by their name (alias)."""
        for coach in self.coaches:
            if coach.name.lower() == name.lower():
                return coach
        return None

    def resolve_coach(self, identifier: str | None) -> str:
        """
        Resolve a coach name or id to a resource id.

        Without an identifier the only configured coach is used.

        Raises:
            ValueError: If identifier cannot be resolved
        """
        if identifier is None:
            if len(self.coaches) == 1:
                return self.coaches[0].id
            raise ValueError("Several coaches are configured; pass --coach.")

        for coach in self.coaches:
            if coach.id == identifier:
                return coach.id

        coach = self.find_coach_by_name(identifier)
        if coach:
            return coach.id

        raise ValueError(
            f"Unknown coach identifier: '{identifier}'. "
            f"Use a configured coach id or name."
        )


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of coachslots/)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
