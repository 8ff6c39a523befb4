"""Model catalog endpoints (read-only; records are managed by the admin panel)."""

from fastapi import APIRouter, HTTPException

from backend import storage

router = APIRouter()


@router.get("/models")
async def list_models():
    """List all models, sorted by name."""
    return storage.store().list_models()


@router.get("/models/{model_id}")
async def get_model(model_id: str):
    """Get a single model record."""
    model = storage.store().get_model(model_id)
    if not model:
        raise HTTPException(404, "Model not found")
    return model
