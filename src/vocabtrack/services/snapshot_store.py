"""Snapshot stores: load and save the whole progress document.

A store only moves one JSON document in and out of its transport. Every load
goes through the normalizer, and nothing is cached between calls.
"""
import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from datetime import date
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vocabtrack import monitoring
from vocabtrack.config import ProgressSettings, Settings, settings as default_settings
from vocabtrack.models.base import SessionLocal, init_db
from vocabtrack.models.models import Snapshot
from vocabtrack.models.progress_models import RootState
from vocabtrack.services.normalizer import normalize

logger = logging.getLogger(__name__)


class SnapshotStoreError(Exception):
    """The snapshot transport failed to load or save."""


class SnapshotStore(ABC):
    """Base class for snapshot transports."""

    @abstractmethod
    def load_raw(self) -> Optional[Any]:
        """Read the stored document, or None when nothing has been stored yet."""
        raise NotImplementedError("Subclasses must implement this method")

    @abstractmethod
    def save_raw(self, document: Dict[str, Any]) -> None:
        """Replace the stored document as a whole."""
        raise NotImplementedError("Subclasses must implement this method")

    def load(self, today: Optional[date] = None, config: Optional[ProgressSettings] = None) -> RootState:
        """Load and normalize the current snapshot."""
        try:
            raw = self.load_raw()
        except SnapshotStoreError:
            monitoring.snapshot_errors.labels(operation="load").inc()
            raise
        return normalize(raw, today, config)

    def save(self, state: RootState) -> None:
        """Persist ``state`` as the new snapshot."""
        try:
            self.save_raw(state.to_dict())
        except SnapshotStoreError:
            monitoring.snapshot_errors.labels(operation="save").inc()
            raise


class MemorySnapshotStore(SnapshotStore):
    """Keeps the document as JSON text in memory, so no live object survives a call."""

    def __init__(self, initial: Optional[Any] = None):
        self._text: Optional[str] = None if initial is None else json.dumps(initial)

    def load_raw(self) -> Optional[Any]:
        if self._text is None:
            return None
        return json.loads(self._text)

    def save_raw(self, document: Dict[str, Any]) -> None:
        self._text = json.dumps(document)


class JsonFileSnapshotStore(SnapshotStore):
    """Stores the document in a UTF-8 JSON file."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load_raw(self) -> Optional[Any]:
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                text = handle.read()
        except FileNotFoundError:
            return None
        except UnicodeDecodeError as e:
            logger.warning(f"Snapshot {self.path} is not valid UTF-8, starting from defaults: {e}")
            return None
        except OSError as e:
            logger.error(f"Failed to read snapshot {self.path}: {e}")
            raise SnapshotStoreError(f"Failed to read snapshot {self.path}") from e

        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            logger.warning(f"Snapshot {self.path} is not valid JSON, starting from defaults: {e}")
            return None

    def save_raw(self, document: Dict[str, Any]) -> None:
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=self.path.parent)
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(document, handle, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self.path)
        except OSError as e:
            logger.error(f"Failed to write snapshot {self.path}: {e}")
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise SnapshotStoreError(f"Failed to write snapshot {self.path}") from e


class SqlSnapshotStore(SnapshotStore):
    """Stores the document as one row of the ``snapshots`` table."""

    def __init__(self, session_factory: Callable[[], Session], key: str):
        self.session_factory = session_factory
        self.key = key

    def load_raw(self) -> Optional[Any]:
        db = self.session_factory()
        try:
            row = db.query(Snapshot).filter(Snapshot.key == self.key).first()
            payload = row.payload if row else None
        except SQLAlchemyError as e:
            logger.error(f"Failed to read snapshot {self.key}: {e}")
            raise SnapshotStoreError(f"Failed to read snapshot {self.key}") from e
        finally:
            db.close()

        if payload is None:
            return None
        try:
            return json.loads(payload)
        except json.JSONDecodeError as e:
            logger.warning(f"Snapshot {self.key} is not valid JSON, starting from defaults: {e}")
            return None

    def save_raw(self, document: Dict[str, Any]) -> None:
        db = self.session_factory()
        try:
            row = db.query(Snapshot).filter(Snapshot.key == self.key).first()
            if row is None:
                row = Snapshot(key=self.key)
                db.add(row)
            row.schema_version = document.get("schemaVersion", 0)
            row.payload = json.dumps(document, ensure_ascii=False)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to write snapshot {self.key}: {e}")
            raise SnapshotStoreError(f"Failed to write snapshot {self.key}") from e
        finally:
            db.close()


def create_store(config: Settings = default_settings) -> SnapshotStore:
    """Build the store selected by ``config.storage.backend``."""
    backend = config.storage.backend
    if backend == "json":
        return JsonFileSnapshotStore(config.storage.state_file)
    if backend == "sql":
        init_db()
        return SqlSnapshotStore(SessionLocal, config.storage.snapshot_key)
    if backend == "memory":
        return MemorySnapshotStore()
    raise ValueError(f"Unknown storage backend: {backend}")
