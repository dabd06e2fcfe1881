"""
Visit persistence.

The durable store holds the whole visit list; every save is a full-list
read/modify/write keyed by visit id. Two backends are provided:

- InMemoryVisitStore: process-local, used by tests and ephemeral sessions
- JsonFileVisitStore: a single JSON document on disk, replaced atomically

VisitRepository adds get / list / upsert on top of any store.
"""
import json
import os
import tempfile
import threading
import weakref
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Union, runtime_checkable

from pydantic import ValidationError

from diagnostic_engine.models.visit import Visit
from diagnostic_engine.utils import StorageError, get_logger

logger = get_logger(__name__)

# Upsert locks are keyed by store, so every repository over one store serialises
_STORE_LOCKS = weakref.WeakKeyDictionary()
_STORE_LOCKS_BY_ID: Dict[int, Any] = {}
_STORE_LOCKS_GUARD = threading.Lock()


def _store_lock(store: "VisitStore"):
    with _STORE_LOCKS_GUARD:
        try:
            return _STORE_LOCKS.setdefault(store, threading.RLock())
        except TypeError:
            # not weak-referenceable (__slots__ without __weakref__)
            return _STORE_LOCKS_BY_ID.setdefault(id(store), threading.RLock())


@runtime_checkable
class VisitStore(Protocol):
    """Storage collaborator: a full visit list loaded and saved as a unit."""

    def load_all(self) -> List[Visit]:
        ...

    def save_all(self, visits: List[Visit]) -> None:
        ...


class InMemoryVisitStore:
    """Keeps snapshots in a list; callers never share objects with the store."""

    def __init__(self, visits: Optional[List[Visit]] = None):
        self._lock = threading.Lock()
        self._visits: List[Visit] = [v.snapshot() for v in (visits or [])]

    def load_all(self) -> List[Visit]:
        with self._lock:
            return [v.snapshot() for v in self._visits]

    def save_all(self, visits: List[Visit]) -> None:
        with self._lock:
            self._visits = [v.snapshot() for v in visits]


class JsonFileVisitStore:
    """
    Stores the visit list as a JSON array.

    Writes go to a temporary file in the same directory and are moved into
    place with ``os.replace`` so readers never observe a partial file. A
    missing file reads as an empty list.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._lock = threading.Lock()

    def load_all(self) -> List[Visit]:
        with self._lock:
            return self._read()

    def save_all(self, visits: List[Visit]) -> None:
        with self._lock:
            self._write(visits)

    def _read(self) -> List[Visit]:
        if not self.path.exists():
            return []
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8") or "[]")
            if not isinstance(raw, list):
                raise StorageError("Visit store must contain a JSON array", path=str(self.path))
            return [Visit.model_validate(item) for item in raw]
        except (json.JSONDecodeError, ValidationError) as e:
            logger.error(f"JsonFileVisitStore: cannot parse {self.path}: {e}")
            raise StorageError(
                f"Visit store {self.path} is corrupt",
                path=str(self.path),
                details={"reason": str(e)},
            ) from e
        except OSError as e:
            raise StorageError(f"Cannot read visit store: {e}", path=str(self.path)) from e

    def _write(self, visits: List[Visit]) -> None:
        payload = json.dumps([v.model_dump(mode="json") for v in visits], indent=2)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(payload)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            logger.error(f"JsonFileVisitStore: write to {self.path} failed: {e}")
            raise StorageError(f"Cannot write visit store: {e}", path=str(self.path)) from e
        logger.debug(f"JsonFileVisitStore: wrote {len(visits)} visit(s) to {self.path}")


class VisitRepository:
    """
    Keyed access over a VisitStore.

    The read/modify/write in ``upsert`` holds a lock shared by every
    repository built on the same store object, so sessions that each own a
    repository cannot overwrite one another's visits.
    """

    def __init__(self, store: VisitStore):
        self.store = store
        self._lock = _store_lock(store)

    def list(self) -> List[Visit]:
        return self.store.load_all()

    def get(self, visit_id: str) -> Optional[Visit]:
        for visit in self.store.load_all():
            if visit.id == visit_id:
                return visit
        return None

    def upsert(self, visit: Visit) -> None:
        """Replace the stored visit with the same id, or append it."""
        with self._lock:
            visits = self.store.load_all()
            snapshot = visit.snapshot()
            for i, existing in enumerate(visits):
                if existing.id == visit.id:
                    visits[i] = snapshot
                    break
            else:
                visits.append(snapshot)
            self.store.save_all(visits)
