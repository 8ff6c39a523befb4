"""Collection ledger: which reward cards a user has saved, per model.

Documents are keyed by the user's sanitized identity (e-mail addresses
contain dots, which document stores reject in keys):

    {
      "email": "ana@example.com",
      "created_at": "...",
      "models": {
        "<model_id>": {"saved_cards": ["card_1", ...], "last_updated": "..."}
      }
    }

Saved sets only ever grow. Claiming a card twice is a successful no-op.
"""

from __future__ import annotations

import asyncio
import logging
import re
from datetime import datetime, timezone
from typing import Any, Protocol

from onlynex.models import ClaimResult

logger = logging.getLogger(__name__)

_ILLEGAL_KEY_CHARS = re.compile(r"[./\\]")


def sanitize_identity(identity: str) -> str:
    """Turn a user identity into a storage key. "ana.b@x.com" → "ana_b@x_com"."""
    return _ILLEGAL_KEY_CHARS.sub("_", identity.strip())


def saved_cards_in(document: dict[str, Any] | None, model_id: str) -> list[str]:
    if not document:
        return []
    entry = document.get("models", {}).get(model_id) or {}
    return list(entry.get("saved_cards", []))


# ---------------------------------------------------------------------------
# Store protocol: anything that can hold collection documents
# ---------------------------------------------------------------------------

class LedgerStore(Protocol):
    async def read_collection(self, doc_id: str) -> dict[str, Any] | None: ...

    async def add_saved_card(
        self, doc_id: str, model_id: str, card_id: str, *, email: str, timestamp: str,
    ) -> bool:
        """Union `card_id` into the model's saved set; True if it was not there yet."""
        ...


class MemoryLedgerStore:
    """In-process store for tests; the API always uses the file-backed Storage."""

    def __init__(self) -> None:
        self.documents: dict[str, dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def read_collection(self, doc_id: str) -> dict[str, Any] | None:
        document = self.documents.get(doc_id)
        return _copy_document(document) if document else None

    async def add_saved_card(
        self, doc_id: str, model_id: str, card_id: str, *, email: str, timestamp: str,
    ) -> bool:
        async with self._lock:
            document = self.documents.setdefault(
                doc_id, {"email": email, "created_at": timestamp, "models": {}},
            )
            return merge_saved_card(document, model_id, card_id, timestamp)


def merge_saved_card(document: dict[str, Any], model_id: str, card_id: str, timestamp: str) -> bool:
    """Apply a union-merge to a collection document in place."""
    entry = document.setdefault("models", {}).setdefault(
        model_id, {"saved_cards": [], "last_updated": timestamp},
    )
    if card_id in entry["saved_cards"]:
        return False
    entry["saved_cards"].append(card_id)
    entry["last_updated"] = timestamp
    return True


def _copy_document(document: dict[str, Any]) -> dict[str, Any]:
    return {
        **document,
        "models": {
            model_id: {**entry, "saved_cards": list(entry.get("saved_cards", []))}
            for model_id, entry in document.get("models", {}).items()
        },
    }


# ---------------------------------------------------------------------------
# CollectionLedger
# ---------------------------------------------------------------------------

class CollectionLedger:
    def __init__(self, store: LedgerStore) -> None:
        self._store = store

    async def claim(self, user_identity: str, model_id: str, card_id: str) -> ClaimResult:
        """Save `card_id` for the user. Raises LedgerError if the store fails."""
        doc_id = sanitize_identity(user_identity)
        timestamp = datetime.now(timezone.utc).isoformat()
        added = await self._store.add_saved_card(
            doc_id, model_id, card_id, email=user_identity, timestamp=timestamp,
        )
        if added:
            logger.info("card saved user=%s model=%s card=%s", doc_id, model_id, card_id)
        return ClaimResult(claimed=added, already_held=not added)

    async def query(self, user_identity: str, model_id: str) -> set[str]:
        document = await self._store.read_collection(sanitize_identity(user_identity))
        return set(saved_cards_in(document, model_id))

    async def query_all(self, user_identity: str) -> dict[str, set[str]]:
        document = await self._store.read_collection(sanitize_identity(user_identity))
        if not document:
            return {}
        return {model_id: set(saved_cards_in(document, model_id)) for model_id in document.get("models", {})}

    async def is_held(self, user_identity: str, model_id: str, card_id: str) -> bool:
        return card_id in await self.query(user_identity, model_id)

    async def count(self, user_identity: str, model_id: str) -> int:
        return len(await self.query(user_identity, model_id))


# ---------------------------------------------------------------------------
# LedgerError: raised by stores when a read or write cannot complete
# ---------------------------------------------------------------------------

class LedgerError(RuntimeError):
    """The collection store is unavailable. The card is not confirmed saved."""

    retryable = True
