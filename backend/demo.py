"""Create demo model records for development/testing."""

import shutil

from backend import storage
from onlynex.models import ModelRecord

DEMO_MODELS = [
    {
        "id": "luna",
        "name": "Luna Rocha",
        "username": "lunarocha",
        "videosDigitando": [
            {"id": "d1", "videoUrl": "https://cdn.example.com/luna/videosDigitando/typing-1.mp4"},
            {"id": "d2", "videoUrl": "https://cdn.example.com/luna/videosDigitando/typing-2.mp4"},
        ],
        "videosChat": [
            {"id": "intro", "label": "Oi!", "videoUrl": "https://cdn.example.com/luna/videosChat/intro.mp4"},
            {"id": "kiss", "label": "Beijo", "videoUrl": "https://cdn.example.com/luna/videosChat/kiss.mp4"},
            {"id": "laugh", "label": "Risada", "videoUrl": "https://cdn.example.com/luna/videosChat/laugh.mp4"},
        ],
        "cards": [
            {"id": "card_beach", "url": "https://cdn.example.com/luna/cards/beach.jpg"},
            {"id": "card_sunset", "url": "https://cdn.example.com/luna/cards/sunset.png"},
            {"id": "card_dance", "url": "https://cdn.example.com/luna/cards/dance.mp4"},
        ],
    },
    {
        "id": "bia",
        "name": "Bia Martins",
        "username": "biamartins",
        "videosDigitando": [],
        "videosChat": [],
        "cards": [],
    },
]


def create_demo_data() -> None:
    """Wipe existing model records and create fresh demo data."""
    models_dir = storage.data_dir() / "models"
    if models_dir.exists():
        shutil.rmtree(models_dir)
    models_dir.mkdir(parents=True, exist_ok=True)

    for raw in DEMO_MODELS:
        storage.store().save_model(ModelRecord.model_validate(raw))
