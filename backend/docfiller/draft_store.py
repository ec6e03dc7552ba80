"""
Draft storage for in-progress declarations.

Drafts are keyed by the client-generated user id. `DraftStore` keeps them in
memory; `JsonDraftStore` additionally writes the whole table to one JSON file
after every change so drafts survive a restart. There is no locking: two
saves for the same user race and the last one wins.
"""

from __future__ import annotations

import datetime as dt
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)


def _now() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat()


class DraftRecord(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: int
    user_id: str
    form_data: Dict[str, Any] = Field(default_factory=dict)
    created_at: str
    updated_at: str


class DraftStore:
    """In-memory `user_id -> DraftRecord` mapping."""

    def __init__(self):
        self._records: Dict[str, DraftRecord] = {}
        self._current_id = 1

    def get(self, user_id: str) -> Optional[DraftRecord]:
        return self._records.get(user_id)

    def create(self, user_id: str, form_data: Dict[str, Any]) -> DraftRecord:
        timestamp = _now()
        record = DraftRecord(
            id=self._current_id,
            user_id=user_id,
            form_data=form_data,
            created_at=timestamp,
            updated_at=timestamp,
        )
        self._current_id += 1
        self._records[user_id] = record
        try:
            self._persist()
        except OSError:
            # Memory must not hold a draft the file does not.
            del self._records[user_id]
            self._current_id = record.id
            raise
        logger.info("Created draft %d for user %s", record.id, user_id)
        return record

    def update(self, user_id: str, form_data: Dict[str, Any]) -> Optional[DraftRecord]:
        existing = self._records.get(user_id)
        if existing is None:
            return None
        updated = existing.model_copy(update={"form_data": form_data, "updated_at": _now()})
        self._records[user_id] = updated
        try:
            self._persist()
        except OSError:
            self._records[user_id] = existing
            raise
        logger.debug("Updated draft %d for user %s", updated.id, user_id)
        return updated

    def save(self, user_id: str, form_data: Dict[str, Any]) -> DraftRecord:
        """Create the draft on first save, update it afterwards."""
        updated = self.update(user_id, form_data)
        if updated is not None:
            return updated
        return self.create(user_id, form_data)

    def __len__(self) -> int:
        return len(self._records)

    def _persist(self) -> None:
        pass


class JsonDraftStore(DraftStore):
    """Draft store backed by a single JSON file."""

    def __init__(self, path: Path):
        super().__init__()
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            logger.error("Error loading drafts from %s: %s", self.path, exc)
            return

        for raw in data.get("records", []):
            try:
                record = DraftRecord.model_validate(raw)
            except ValidationError as exc:
                logger.error("Skipping malformed draft in %s: %s", self.path, exc)
                continue
            self._records[record.user_id] = record
        highest = max((r.id for r in self._records.values()), default=0)
        self._current_id = max(int(data.get("next_id", 1)), highest + 1)
        logger.info("Loaded %d drafts from %s", len(self._records), self.path)

    def _persist(self) -> None:
        payload = {
            "next_id": self._current_id,
            "records": [r.model_dump(mode="json", by_alias=True) for r in self._records.values()],
        }
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)
        tmp_path.replace(self.path)


def build_draft_store(setting: Optional[str] = None) -> DraftStore:
    """`memory` (or empty) for the in-memory store, anything else is a JSON file path."""
    if not setting or setting.strip().lower() == "memory":
        return DraftStore()
    return JsonDraftStore(Path(setting))
