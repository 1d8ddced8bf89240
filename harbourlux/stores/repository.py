"""
Record storage behind a small CRUD interface.

The booking code only ever talks to ``Repository``. ``InMemoryRepository``
backs the tests and the demo; ``JsonFileRepository`` adds persistence to a
single JSON file. Records handed out are copies, so callers can't mutate
stored state behind the repository's back.
"""

import json
import logging
import threading
from pathlib import Path
from typing import Any, Generic, Optional, Protocol, TypeVar

from pydantic import BaseModel

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class RecordNotFoundError(KeyError):
    """Raised when a record id does not exist."""


class StaleRecordError(RuntimeError):
    """Raised when a compare-and-swap precondition no longer holds."""


class Repository(Protocol[ModelT]):
    """CRUD surface shared by every store."""

    def filter(self, **predicate: Any) -> list[ModelT]: ...

    def get(self, record_id: str) -> ModelT: ...

    def create(self, record: ModelT) -> ModelT: ...

    def update(
        self, record_id: str, patch: dict[str, Any], *, expect: Optional[dict[str, Any]] = None
    ) -> ModelT: ...


class InMemoryRepository(Generic[ModelT]):
    """Dict-backed repository keyed by each record's ``id``."""

    def __init__(self, model: type[ModelT], records: Optional[list[ModelT]] = None) -> None:
        self._model = model
        self._records: dict[str, ModelT] = {}
        self._lock = threading.RLock()
        for record in records or []:
            self._records[record.id] = record.model_copy(deep=True)

    def __len__(self) -> int:
        return len(self._records)

    @staticmethod
    def _matches(record: BaseModel, predicate: dict[str, Any]) -> bool:
        return all(getattr(record, key, None) == value for key, value in predicate.items())

    def filter(self, **predicate: Any) -> list[ModelT]:
        """Return records whose fields equal every predicate value.

        An empty predicate returns the whole collection in insertion order.
        """
        with self._lock:
            return [
                record.model_copy(deep=True)
                for record in self._records.values()
                if self._matches(record, predicate)
            ]

    def get(self, record_id: str) -> ModelT:
        with self._lock:
            try:
                return self._records[record_id].model_copy(deep=True)
            except KeyError:
                raise RecordNotFoundError(
                    f"{self._model.__name__} '{record_id}' not found"
                ) from None

    def create(self, record: ModelT) -> ModelT:
        with self._lock:
            if record.id in self._records:
                raise ValueError(f"{self._model.__name__} '{record.id}' already exists")
            self._records[record.id] = record.model_copy(deep=True)
            self._flush()
            logger.debug("Created %s %s", self._model.__name__, record.id)
            return record.model_copy(deep=True)

    def update(
        self, record_id: str, patch: dict[str, Any], *, expect: Optional[dict[str, Any]] = None
    ) -> ModelT:
        """Apply ``patch`` to a record in one step.

        ``expect`` maps field names to the values they must still hold;
        if any differs, nothing is written and StaleRecordError is raised.
        """
        with self._lock:
            current = self._records.get(record_id)
            if current is None:
                raise RecordNotFoundError(f"{self._model.__name__} '{record_id}' not found")
            if expect and not self._matches(current, expect):
                raise StaleRecordError(
                    f"{self._model.__name__} '{record_id}' changed since it was read"
                )
            data = current.model_dump()
            data.update(patch)
            updated = self._model.model_validate(data)
            self._records[record_id] = updated
            self._flush()
            logger.debug("Updated %s %s: %s", self._model.__name__, record_id, sorted(patch))
            return updated.model_copy(deep=True)

    def _flush(self) -> None:
        """Persist the collection. No-op for the in-memory store."""


class JsonFileRepository(InMemoryRepository[ModelT]):
    """Repository persisted as a JSON array, rewritten after every mutation."""

    def __init__(self, model: type[ModelT], path: Path) -> None:
        self._path = Path(path)
        super().__init__(model)
        if self._path.exists():
            raw = json.loads(self._path.read_text(encoding="utf-8"))
            for item in raw:
                record = model.model_validate(item)
                self._records[record.id] = record
            logger.info("Loaded %d %s record(s) from %s", len(self._records), model.__name__, self._path)

    def _flush(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        payload = [record.model_dump(mode="json") for record in self._records.values()]
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        tmp.replace(self._path)
