"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.matching import DedupPolicy
from .domain.run_detector import RunDetector
from .domain.slot_grid import WorkingWindow

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class GridConfig(BaseModel):
    """Local working window covered by the availability grid."""
    earliest_hour: int = 8
    latest_hour: int = 19
    granule_minutes: int = 15

    @field_validator("earliest_hour", "latest_hour")
    @classmethod
    def validate_hour(cls, v: int) -> int:
        """Validate hour is between 0 and 23."""
        if not 0 <= v <= 23:
            raise ValueError(f"Hour must be between 0 and 23, got {v}")
        return v

    @field_validator("granule_minutes")
    @classmethod
    def validate_granule(cls, value: int) -> int:
        """Ensure granules tile an hour exactly."""
        if value <= 0 or 60 % value:
            raise ValueError(f"granule_minutes must divide 60, got {value}")
        return value

    @model_validator(mode="after")
    def validate_hours_order(self) -> "GridConfig":
        """Ensure the window opens no later than it closes."""
        if self.latest_hour < self.earliest_hour:
            raise ValueError("latest_hour must not be earlier than earliest_hour")
        return self

    def to_working_window(self) -> WorkingWindow:
        return WorkingWindow(
            earliest_hour=self.earliest_hour,
            latest_hour=self.latest_hour,
            granule_minutes=self.granule_minutes,
        )


class AppConfig(BaseModel):
    """Application configuration."""
    grid: GridConfig = Field(default_factory=GridConfig)
    interview_minutes: int = 60
    search_days: int = 27
    grid_days: int = 7
    store_path: Path = Path("interviewslots.json")
    dedupe: DedupPolicy = DedupPolicy.BY_INSTANT
    log_level: str = "WARNING"

    @field_validator("search_days", "grid_days")
    @classmethod
    def validate_days(cls, value: int) -> int:
        """Ensure day counts are positive."""
        if value < 1:
            raise ValueError(f"Day counts must be at least 1, got {value}")
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Normalise and check the log level name."""
        level = value.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}, got {value}")
        return level

    @model_validator(mode="after")
    def validate_interview_length(self) -> "AppConfig":
        """Ensure an interview is a whole, positive number of granules."""
        granule = self.grid.granule_minutes
        if self.interview_minutes <= 0 or self.interview_minutes % granule:
            raise ValueError(
                f"interview_minutes must be a positive multiple of {granule}, "
                f"got {self.interview_minutes}"
            )
        return self

    def build_run_detector(self) -> RunDetector:
        return RunDetector.for_interview(
            interview_minutes=self.interview_minutes,
            granule_minutes=self.grid.granule_minutes,
        )

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


def load_config(config_path: Path | None = None) -> AppConfig:
    """
    Load the configuration, falling back to defaults when no file exists
    and no explicit path was given.
    """
    if config_path is not None:
        return AppConfig.load_from_yaml(config_path)

    default_path = get_default_config_path()
    if default_path.exists():
        return AppConfig.load_from_yaml(default_path)
    return AppConfig()
