import os

from .loader import table


class Milvus:
    def __init__(self, config: dict | None = None) -> None:
        milvus_cfg = table(config, "milvus")
        self.MILVUS_HOST: str = str(milvus_cfg.get("host", os.getenv("MILVUS_HOST", "127.0.0.1")))
        self.MILVUS_PORT: str = str(milvus_cfg.get("port", os.getenv("MILVUS_PORT", "19530")))
        self.MILVUS_COLLECTION: str = str(milvus_cfg.get("collection", os.getenv("MILVUS_COLLECTION", "nodevec_spans")))

        # IVF_FLAT index: how many clusters (buckets) to partition the embedding space into.
        self.MILVUS_NLIST: int = int(milvus_cfg.get("nlist", os.getenv("MILVUS_NLIST", "1024")))

        # Search-time parameter: how many clusters to probe when querying.
        self.MILVUS_NPROBE: int = int(milvus_cfg.get("nprobe", os.getenv("MILVUS_NPROBE", "32")))

        # Maximum number of IDs in a single "record_id in [...]" delete expression.
        self.MILVUS_DELETE_CHUNK: int = int(milvus_cfg.get("delete_chunk", os.getenv("MILVUS_DELETE_CHUNK", "800")))
