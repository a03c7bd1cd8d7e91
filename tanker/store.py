"""tanker store - the JSON request database."""

from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path

from tanker.errors import NotFoundError, StorageError
from tanker.models import Request

logger = logging.getLogger(__name__)

DB_FILE_NAME = "tanker-data.json"


def example_requests() -> dict[str, Request]:
    """Entries written to a brand new database."""
    return {
        "get-example": Request(
            name="get-example",
            method="GET",
            url="http://localhost:8080/get",
            params={"foo": "bar", "count": "42"},
            headers={"Authorization": "secret"},
        ),
        "post-example": Request(
            name="post-example",
            method="POST",
            url="http://localhost:8080/post",
            payload={
                "languages": [
                    {"name": "Python", "staticallyTyped": False},
                    {"name": "Javascript", "staticallyTyped": False},
                    {"name": "Golang", "staticallyTyped": True},
                    {"name": "Rust", "staticallyTyped": True},
                ],
                "foo": "bar",
                "count": 42,
            },
            headers={"Content-Type": "application/json", "Authorization": "secret"},
        ),
    }


class Database:
    """Requests keyed by name, persisted as one JSON object.

    Every read-modify-write runs under a single lock so interactive
    workflows and MCP tool calls serialize.
    """

    def __init__(self, db_dir: str | Path, db_file: str | Path | None = None):
        self.db_dir = Path(db_dir)
        self.db_file = Path(db_file) if db_file else self.db_dir / DB_FILE_NAME
        self.data: dict[str, Request] = {}
        self._lock = threading.Lock()

    def init_db(self) -> dict[str, Request]:
        """Create the database directory if needed and load (or seed) the file."""
        try:
            self.db_dir.mkdir(mode=0o750, parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create database directory {self.db_dir}: {e}") from e
        return self.load()

    def load(self) -> dict[str, Request]:
        with self._lock:
            return self._load_locked()

    def save(self, data: dict[str, Request]) -> None:
        """Replace the whole database with data."""
        with self._lock:
            self.data = dict(data)
            self._save_locked()

    def reset(self) -> None:
        with self._lock:
            self.data = {}
            self._save_locked()

    def get(self, name: str) -> Request:
        with self._lock:
            self._load_locked()
            try:
                return self.data[name]
            except KeyError:
                raise NotFoundError(name) from None

    def put(self, request: Request) -> None:
        """Insert or overwrite a request by name."""
        with self._lock:
            self._load_locked()
            self.data[request.name] = request
            self._save_locked()

    def replace(self, old_name: str, request: Request) -> None:
        """Store request in place of old_name (which may differ from request.name)."""
        with self._lock:
            self._load_locked()
            if old_name not in self.data:
                raise NotFoundError(old_name)
            if request.name != old_name:
                del self.data[old_name]
            self.data[request.name] = request
            self._save_locked()

    def delete(self, name: str) -> None:
        with self._lock:
            self._load_locked()
            if name not in self.data:
                raise NotFoundError(name)
            del self.data[name]
            self._save_locked()
        logger.info("deleted request %s", name)

    # ── internals ────────────────────────────────────────────────────────

    def _load_locked(self) -> dict[str, Request]:
        if not self.db_file.exists():
            logger.info("seeding new database at %s", self.db_file)
            self.data = example_requests()
            self._save_locked()
            return dict(self.data)

        try:
            raw = json.loads(self.db_file.read_text())
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Cannot read database {self.db_file}: {e}") from e
        if not isinstance(raw, dict):
            raise StorageError(f"Cannot read database {self.db_file}: expected a JSON object")

        self.data = {
            name: Request.from_dict({**entry, "name": entry.get("name") or name})
            for name, entry in raw.items()
            if isinstance(entry, dict)
        }
        return dict(self.data)

    def _save_locked(self) -> None:
        payload = {name: r.to_dict() for name, r in self.data.items()}
        try:
            fd = os.open(self.db_file, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w") as f:
                json.dump(payload, f, indent=2)
        except OSError as e:
            raise StorageError(f"Cannot write database {self.db_file}: {e}") from e
        logger.debug("saved %d requests to %s", len(self.data), self.db_file)
