"""Filesystem-backed storage for crawl sessions and compressed-image records.

Storage owns the on-disk layout. Other modules should use this API (or the
`SessionStore` / `ImageStore` protocols) instead of building paths manually.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Mapping, Protocol

from .types import ImageRecord, JSONDict, SessionRecord, SessionState


LOGGER = logging.getLogger(__name__)


class SessionStore(Protocol):
    def find_active_session(self, domain: str) -> SessionRecord | None: ...

    def save_session(self, record: SessionRecord) -> None: ...


class ImageStore(Protocol):
    def exists_by_original_url(self, url: str) -> bool: ...

    def save_image(self, record: ImageRecord) -> bool: ...

    def all_images(self) -> list[ImageRecord]: ...


class Storage:
    """Persist session records and image metadata under a single `state_dir` root."""

    def __init__(self, state_dir: str | Path, *, load_existing: bool = True) -> None:
        self.state_dir = Path(state_dir)

        self.manifests_dir = self.state_dir / "manifests"
        self.sessions_dir = self.manifests_dir / "sessions"
        self.logs_dir = self.state_dir / "logs"
        self.images_path = self.manifests_dir / "images.jsonl"

        self._jsonl_lock = threading.Lock()
        self._state_lock = threading.Lock()

        self._images_by_url: dict[str, ImageRecord] = {}
        self._sessions: dict[str, SessionRecord] = {}

        self._ensure_layout()
        if load_existing:
            self._load_state()

    @property
    def paths(self) -> JSONDict:
        """Return important output paths for logging/CLI status messages."""

        return {
            "state_dir": str(self.state_dir),
            "sessions_dir": str(self.sessions_dir),
            "images": str(self.images_path),
            "log_dir": str(self.logs_dir),
        }

    def _ensure_layout(self) -> None:
        self.sessions_dir.mkdir(parents=True, exist_ok=True)
        self.logs_dir.mkdir(parents=True, exist_ok=True)

    def _load_state(self) -> None:
        self._load_images()
        self._load_sessions()

    def _load_images(self) -> None:
        if not self.images_path.exists():
            return

        with self.images_path.open("r", encoding="utf-8") as handle:
            for line_no, line in enumerate(handle, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    record = ImageRecord.from_json(json.loads(line))
                except (json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
                    LOGGER.warning("Skipping invalid JSONL line %d in %s: %s", line_no, self.images_path, exc)
                    continue
                self._images_by_url.setdefault(record.original_url, record)

    def _load_sessions(self) -> None:
        for path in sorted(self.sessions_dir.glob("*.json")):
            try:
                record = SessionRecord.from_json(json.loads(path.read_text(encoding="utf-8")))
            except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
                LOGGER.warning("Skipping unreadable session record %s: %s", path, exc)
                continue
            self._sessions[record.session_id] = record

    def find_active_session(self, domain: str) -> SessionRecord | None:
        """Newest session record for `domain` that did not complete."""

        with self._state_lock:
            candidates = [
                record
                for record in self._sessions.values()
                if record.domain == domain and record.status != SessionState.COMPLETED
            ]
        if not candidates:
            return None
        return max(candidates, key=lambda record: record.updated_at)

    def get_session(self, session_id: str) -> SessionRecord | None:
        with self._state_lock:
            return self._sessions.get(session_id)

    def save_session(self, record: SessionRecord) -> None:
        """Write session record atomically as `sessions/<id>.json`."""

        path = self.sessions_dir / f"{record.session_id}.json"
        self._atomic_write_json(path, record.to_json())
        with self._state_lock:
            self._sessions[record.session_id] = record

    def exists_by_original_url(self, url: str) -> bool:
        with self._state_lock:
            return url in self._images_by_url

    def save_image(self, record: ImageRecord) -> bool:
        """Append image record; returns False if the URL was already stored."""

        with self._state_lock:
            if record.original_url in self._images_by_url:
                return False
            self._images_by_url[record.original_url] = record

        self._append_jsonl(self.images_path, record.to_json())
        return True

    def all_images(self) -> list[ImageRecord]:
        with self._state_lock:
            return list(self._images_by_url.values())

    def _append_jsonl(self, path: Path, payload: Mapping[str, Any]) -> None:
        line = json.dumps(payload, ensure_ascii=False, sort_keys=True)
        with self._jsonl_lock:
            with path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")

    @staticmethod
    def _atomic_write_json(path: Path, payload: Mapping[str, Any]) -> None:
        content = json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True) + "\n"
        tmp_fd, tmp_path = tempfile.mkstemp(
            dir=str(path.parent),
            prefix=path.name + ".",
            suffix=".tmp",
        )
        try:
            with os.fdopen(tmp_fd, "w", encoding="utf-8") as handle:
                handle.write(content)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, path)
        except Exception:
            try:
                os.unlink(tmp_path)
            except FileNotFoundError:
                pass
            raise


__all__ = [
    "ImageStore",
    "SessionStore",
    "Storage",
]
