"""Storage initialization and path helpers."""

from pathlib import Path

from onlynex.storage import Storage

_data_dir: Path | None = None
_store: Storage | None = None


def init_storage(data_dir: Path) -> None:
    global _data_dir, _store
    _data_dir = data_dir
    _data_dir.mkdir(parents=True, exist_ok=True)
    _store = Storage(_data_dir)


def data_dir() -> Path:
    assert _data_dir is not None, "Call init_storage() before using storage"
    return _data_dir


def store() -> Storage:
    assert _store is not None, "Call init_storage() before using storage"
    return _store
