"""Test configuration."""
import os
from datetime import date
from pathlib import Path

import pytest
from dotenv import load_dotenv

# Set test environment before any imports
os.environ["ENV"] = "test"

# Load test environment variables
test_env_path = Path(__file__).resolve().parents[3] / ".env.test"
load_dotenv(test_env_path, override=True)

# Import after environment setup
from vocabtrack.config import ProgressSettings
from vocabtrack.services.progress_service import ProgressService
from vocabtrack.services.snapshot_store import MemorySnapshotStore


@pytest.fixture
def today() -> date:
    """A fixed calendar day for scheduling tests."""
    return date(2024, 1, 10)


@pytest.fixture
def progress_settings() -> ProgressSettings:
    """Progress settings independent of the environment."""
    return ProgressSettings(default_user_id="riona", reset_pin="1234", interval_variant="short")


@pytest.fixture
def store() -> MemorySnapshotStore:
    """An empty in-memory snapshot store."""
    return MemorySnapshotStore()


@pytest.fixture
def service(store: MemorySnapshotStore, progress_settings: ProgressSettings) -> ProgressService:
    """A progress service backed by the in-memory store."""
    return ProgressService(store, progress_settings)
