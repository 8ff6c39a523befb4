"""Storage bootstrap for the API process.

Data layout:
  data/
    models/              Model catalog records (one JSON file per model id)
    collections/         Collection ledger documents (one per sanitized e-mail)
    config.json          App settings (webhook, fallback, chat timers)

The file formats belong to onlynex.storage.Storage; this package only owns
the process-wide instance and the settings file.

Config: get_config() returns defaults (seeded from the environment) merged
with stored values. update_config() applies partial updates, scalars
overwritten, unknown keys ignored.
"""

# Re-export all public symbols so `from backend import storage` keeps working.

from .core import (  # noqa: F401
    data_dir,
    init_storage,
    store,
)

from .config import (  # noqa: F401
    get_config,
    update_config,
)
