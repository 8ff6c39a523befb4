"""Collection ledger endpoints."""

from fastapi import APIRouter, HTTPException

from backend.sessions import build_ledger
from onlynex.ledger import LedgerError

router = APIRouter()


@router.get("/collections/{user_identity}")
async def get_collections(user_identity: str):
    """Saved card ids for every model the user collected from."""
    try:
        collections = await build_ledger().query_all(user_identity)
    except LedgerError as e:
        raise HTTPException(503, str(e))
    return {model_id: sorted(cards) for model_id, cards in collections.items()}


@router.get("/collections/{user_identity}/{model_id}")
async def get_collection(user_identity: str, model_id: str):
    """Saved card ids for one model."""
    try:
        cards = await build_ledger().query(user_identity, model_id)
    except LedgerError as e:
        raise HTTPException(503, str(e))
    return {"model_id": model_id, "saved_cards": sorted(cards), "count": len(cards)}
