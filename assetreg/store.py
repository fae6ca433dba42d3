# assetreg/store.py
"""
Key-value substrate for the registry.

Keys are tuples, e.g. ("asset", 3) or ("access", 3, "alice"). Values are
JSON-compatible. A transaction() block is one atomic step: other callers
wait on the store lock, and a block that raises leaves the entries as
they were before it started.
"""

import copy
import fcntl
import json
import logging
import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Tuple

logger = logging.getLogger(__name__)

Key = Tuple[Any, ...]


class MemoryStore:
    """In-process store. Contents are lost when the process exits."""

    def __init__(self):
        self._entries: Dict[Key, Any] = {}
        self._lock = threading.RLock()

    def get(self, key: Key, default: Any = None) -> Any:
        with self._lock:
            if key not in self._entries:
                return default
            return copy.deepcopy(self._entries[key])

    def contains(self, key: Key) -> bool:
        with self._lock:
            return key in self._entries

    def insert(self, key: Key, value: Any) -> None:
        """Add a new key. Raises KeyError if it already exists."""
        with self._lock:
            if key in self._entries:
                raise KeyError(f"Key already exists: {key!r}")
            self._entries[key] = copy.deepcopy(value)

    def set(self, key: Key, value: Any) -> None:
        with self._lock:
            self._entries[key] = copy.deepcopy(value)

    def delete(self, key: Key) -> None:
        """Remove a key. Raises KeyError if it is absent."""
        with self._lock:
            del self._entries[key]

    def keys(self) -> List[Key]:
        with self._lock:
            return list(self._entries)

    @contextmanager
    def transaction(self) -> Iterator["MemoryStore"]:
        """
        Run a block of reads and writes as one atomic step.

        Nested transactions join the outermost one.
        """
        with self._lock:
            snapshot = dict(self._entries)
            try:
                yield self
                self._commit()
            except BaseException:
                self._entries = snapshot
                raise

    def _commit(self) -> None:
        """Hook for durable stores."""

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class JsonStore(MemoryStore):
    """
    Durable store backed by a JSON file.

    Several processes may open the same directory (a server and the CLI,
    say). Every operation holds an exclusive lock on store.lock and reloads
    store.json first, so each transaction sees the latest committed state.

    Structure:
        store_dir/
            store.json    # All entries, rewritten on every commit
            store.lock    # flock target
    """

    def __init__(self, store_dir: Path | str):
        super().__init__()
        self.store_dir = Path(store_dir)
        self.store_dir.mkdir(parents=True, exist_ok=True)
        self._depth = 0
        self._dirty = False
        with self._locked():
            self._load()

    def _index_path(self) -> Path:
        return self.store_dir / "store.json"

    def _lock_path(self) -> Path:
        return self.store_dir / "store.lock"

    @contextmanager
    def _locked(self) -> Iterator[None]:
        """Exclusive lock shared with every other user of store_dir."""
        with open(self._lock_path(), "a") as lock_file:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)

    def _load(self):
        """Load entries from disk."""
        entries = {}
        index_path = self._index_path()
        if index_path.exists():
            try:
                with open(index_path) as f:
                    data = json.load(f)
                if not isinstance(data, dict):
                    raise ValueError("index is not a JSON object")
                entries = {
                    tuple(key): value
                    for key, value in data.get("entries", [])
                }
            except (json.JSONDecodeError, AttributeError, TypeError, ValueError) as e:
                logger.warning(f"Failed to load store index: {e}")
                entries = {}
        self._entries = entries

    def _save(self):
        """Save entries to disk, replacing the index atomically."""
        data = {
            "version": "1.0",
            "entries": [[list(key), value] for key, value in self._entries.items()],
        }
        tmp_path = self._index_path().with_suffix(".json.tmp")
        with open(tmp_path, "w") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_path, self._index_path())

    @contextmanager
    def transaction(self) -> Iterator["JsonStore"]:
        with self._lock:
            if self._depth > 0:
                # Nested: already locked and loaded
                self._depth += 1
                try:
                    with super().transaction() as store:
                        yield store
                finally:
                    self._depth -= 1
                return

            with self._locked():
                self._load()
                self._dirty = False
                self._depth = 1
                try:
                    with super().transaction() as store:
                        yield store
                finally:
                    self._depth = 0

    def _commit(self) -> None:
        # Only the outermost transaction writes, and only if it changed something
        if self._depth == 1 and self._dirty:
            self._save()

    def get(self, key: Key, default: Any = None) -> Any:
        with self.transaction():
            return super().get(key, default)

    def contains(self, key: Key) -> bool:
        with self.transaction():
            return super().contains(key)

    def keys(self) -> List[Key]:
        with self.transaction():
            return super().keys()

    def insert(self, key: Key, value: Any) -> None:
        with self.transaction():
            super().insert(key, value)
            self._dirty = True

    def set(self, key: Key, value: Any) -> None:
        with self.transaction():
            super().set(key, value)
            self._dirty = True

    def delete(self, key: Key) -> None:
        with self.transaction():
            super().delete(key)
            self._dirty = True

    def __len__(self) -> int:
        with self.transaction():
            return super().__len__()
