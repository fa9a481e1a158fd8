import os

from .loader import table


class Store:
    def __init__(self, config: dict | None = None) -> None:
        store_cfg = table(config, "store")
        self.DB_LOCATION: str = str(store_cfg.get("db_location", os.getenv("NODEVEC_DB_LOCATION", "data/nodevec.db")))
        # Directory of native SQLite extensions to load into every connection (optional)
        self.EXTENSION_DIR: str = str(store_cfg.get("extension_dir", os.getenv("NODEVEC_EXTENSION_DIR", "")))
        # Must match the provider's output width; changing it requires clear_db + update_all
        self.DIMENSIONS: int = int(store_cfg.get("dimensions", os.getenv("NODEVEC_DIMENSIONS", "768")))
        self.VECTOR_BACKEND: str = str(
            store_cfg.get("vector_backend", os.getenv("NODEVEC_VECTOR_BACKEND", "sqlite"))
        ).lower()
