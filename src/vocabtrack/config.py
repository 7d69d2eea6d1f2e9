"""Configuration settings for the progress tracker."""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
env_file = ".env.test" if os.getenv("ENV") == "test" else ".env"
load_dotenv(env_file)


# Define data directories from environment variables
DATA_DIR = Path(os.getenv("DATA_DIR", "./data"))
STATE_FILE = DATA_DIR / "state.json"

# Scheduling settings
MAX_STAGE = 6
COUNTER_CAP = 1_000_000
POINTS_CAP = 1_000_000_000
CORRECT_ANSWERS_PER_POINT = 10

# stage -> days until next review; stage 0 is due the same day
STAGE_INTERVALS: Dict[str, Dict[int, int]] = {
    "short": {0: 0, 1: 1, 2: 3, 3: 7, 4: 14, 5: 30, 6: 365},
    "long": {0: 0, 1: 3, 2: 7, 3: 14, 4: 30, 5: 90, 6: 365},
}

STORAGE_BACKENDS = ("json", "sql", "memory")


def ensure_directories() -> None:
    """Ensure all required directories exist."""
    directories = [
        DATA_DIR,
    ]

    for directory in directories:
        directory.mkdir(parents=True, exist_ok=True)


@dataclass
class StorageSettings:
    """Snapshot storage settings."""
    backend: str = os.getenv("STORAGE_BACKEND", "json")
    state_file: Path = Path(os.getenv("STATE_FILE", str(STATE_FILE)))
    snapshot_key: str = os.getenv("SNAPSHOT_KEY", "tapspeak_state_v1")


@dataclass
class DatabaseSettings:
    """Database configuration settings."""
    url: str = os.getenv("DATABASE_URL", "sqlite:///vocabtrack.db")
    echo: bool = os.getenv("DATABASE_ECHO", "false").lower() == "true"


@dataclass
class LoggingSettings:
    """Logging configuration settings."""
    level: str = os.getenv("LOG_LEVEL", "INFO")
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    dir: Optional[str] = os.getenv("LOG_DIR", None)
    rotation: str = os.getenv("LOG_ROTATION", "midnight")
    interval: int = int(os.getenv("LOG_INTERVAL", "1"))
    backup_count: int = int(os.getenv("LOG_BACKUP_COUNT", "7"))


@dataclass
class ProgressSettings:
    """Scheduling and progress settings."""
    default_user_id: str = os.getenv("DEFAULT_USER_ID", "riona")
    # Guards against accidental taps only; not a secret.
    reset_pin: str = os.getenv("RESET_PIN", "1234")
    interval_variant: str = os.getenv("INTERVAL_VARIANT", "short")
    max_stage: int = MAX_STAGE
    counter_cap: int = COUNTER_CAP
    points_cap: int = POINTS_CAP
    correct_answers_per_point: int = CORRECT_ANSWERS_PER_POINT

    @property
    def stage_intervals(self) -> Dict[int, int]:
        return STAGE_INTERVALS[self.interval_variant]


@dataclass
class MonitoringSettings:
    """Metrics exporter settings."""
    enabled: bool = os.getenv("METRICS_ENABLED", "false").lower() == "true"
    port: int = int(os.getenv("METRICS_PORT", "9090"))


def get_storage_settings() -> StorageSettings:
    """Get storage settings."""
    return StorageSettings()


def get_database_settings() -> DatabaseSettings:
    """Get database settings."""
    return DatabaseSettings()


def get_logging_settings() -> LoggingSettings:
    """Get logging settings."""
    return LoggingSettings()


def get_progress_settings() -> ProgressSettings:
    """Get progress settings."""
    return ProgressSettings()


def get_monitoring_settings() -> MonitoringSettings:
    """Get monitoring settings."""
    return MonitoringSettings()


@dataclass
class Settings:
    """Main settings class that combines all configuration settings."""
    storage: StorageSettings = field(default_factory=get_storage_settings)
    database: DatabaseSettings = field(default_factory=get_database_settings)
    logging: LoggingSettings = field(default_factory=get_logging_settings)
    progress: ProgressSettings = field(default_factory=get_progress_settings)
    monitoring: MonitoringSettings = field(default_factory=get_monitoring_settings)

    def validate(self) -> None:
        """Validate settings and raise ValueError if invalid."""
        if self.storage.backend not in STORAGE_BACKENDS:
            raise ValueError(f"STORAGE_BACKEND must be one of {', '.join(STORAGE_BACKENDS)}")

        if self.progress.interval_variant not in STAGE_INTERVALS:
            raise ValueError(f"INTERVAL_VARIANT must be one of {', '.join(STAGE_INTERVALS)}")

        if not self.progress.reset_pin:
            raise ValueError("RESET_PIN must not be empty")

        if not self.progress.default_user_id:
            raise ValueError("DEFAULT_USER_ID must not be empty")


# Create global settings instance
settings = Settings()
settings.validate()
