"""JSON file storage.

Model records and collection documents are stored in flat JSON files under a
configurable base directory. There is no database; reads and writes go
through plain helper methods that load and dump JSON.

Directory layout:

    {base}/
      models/
        {model_id}.json        ← ModelRecord (catalog)
      collections/
        {sanitized_email}.json ← collection ledger document
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

from onlynex.ledger import LedgerError, merge_saved_card
from onlynex.models import ModelRecord

logger = logging.getLogger(__name__)


class Storage:
    def __init__(self, base_path: Path) -> None:
        self._base = base_path
        self._models_root = base_path / "models"
        self._collections_root = base_path / "collections"
        self._models_root.mkdir(parents=True, exist_ok=True)
        self._collections_root.mkdir(parents=True, exist_ok=True)
        self._doc_locks: dict[str, asyncio.Lock] = {}
        self._doc_lock_users: dict[str, int] = {}

    # ------------------------------------------------------------------
    # Internal path helpers
    # ------------------------------------------------------------------

    def _model_file(self, model_id: str) -> Path:
        return self._models_root / f"{model_id}.json"

    def _collection_file(self, doc_id: str) -> Path:
        return self._collections_root / f"{doc_id}.json"

    def _read_json(self, path: Path) -> Any:
        return json.loads(path.read_text())

    def _write_json(self, path: Path, data: Any) -> None:
        path.write_text(json.dumps(data, indent=2, ensure_ascii=False))

    # ------------------------------------------------------------------
    # Model catalog
    # ------------------------------------------------------------------

    def get_model(self, model_id: str) -> ModelRecord | None:
        path = self._model_file(model_id)
        if not path.is_file():
            return None
        return ModelRecord.model_validate_json(path.read_text())

    def list_models(self) -> list[ModelRecord]:
        models = [
            ModelRecord.model_validate_json(path.read_text())
            for path in self._models_root.glob("*.json")
        ]
        return sorted(models, key=lambda m: m.name.lower())

    def save_model(self, model: ModelRecord) -> None:
        """Create or overwrite a model record."""
        self._model_file(model.id).write_text(model.model_dump_json(indent=2))

    def delete_model(self, model_id: str) -> bool:
        path = self._model_file(model_id)
        if not path.is_file():
            return False
        path.unlink()
        return True

    # ------------------------------------------------------------------
    # Collections (LedgerStore)
    # ------------------------------------------------------------------

    async def read_collection(self, doc_id: str) -> dict[str, Any] | None:
        path = self._collection_file(doc_id)
        try:
            if not path.is_file():
                return None
            return self._read_json(path)
        except (OSError, json.JSONDecodeError) as e:
            raise LedgerError(f"Cannot read collection {doc_id}") from e

    async def add_saved_card(
        self, doc_id: str, model_id: str, card_id: str, *, email: str, timestamp: str,
    ) -> bool:
        """Union-merge one card under a per-document lock; True if newly added."""
        lock = self._doc_locks.setdefault(doc_id, asyncio.Lock())
        self._doc_lock_users[doc_id] = self._doc_lock_users.get(doc_id, 0) + 1
        try:
            async with lock:
                path = self._collection_file(doc_id)
                try:
                    if path.is_file():
                        document = self._read_json(path)
                    else:
                        document = {"email": email, "created_at": timestamp, "models": {}}
                    added = merge_saved_card(document, model_id, card_id, timestamp)
                    if added:
                        self._write_json(path, document)
                except (OSError, json.JSONDecodeError) as e:
                    raise LedgerError(f"Cannot save card {card_id} to collection {doc_id}") from e
        finally:
            # drop the lock once no writer holds or awaits it
            self._doc_lock_users[doc_id] -= 1
            if not self._doc_lock_users[doc_id]:
                del self._doc_lock_users[doc_id]
                del self._doc_locks[doc_id]
        return added
