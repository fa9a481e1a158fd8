import os

from .loader import table


class Embedding:
    def __init__(self, config: dict | None = None) -> None:
        emb_cfg = table(config, "embedding")
        self.PROVIDER: str = str(emb_cfg.get("provider", os.getenv("NODEVEC_EMBEDDING_PROVIDER", "ollama"))).lower()
        self.MODEL_ID: str = str(emb_cfg.get("model_id", os.getenv("NODEVEC_EMB_MODEL_ID", "nomic-embed-text")))

        key_env = str(emb_cfg.get("api_key_env", "OPENAI_API_KEY"))
        self.OPENAI_API_KEY: str | None = os.getenv(key_env)
        self.OPENAI_BASE_URL: str | None = emb_cfg.get("openai_base_url") or os.getenv("OPENAI_BASE_URL")

        self.OLLAMA_HOST: str = str(emb_cfg.get("ollama_host", os.getenv("OLLAMA_HOST", "http://localhost:11434")))

        # Maximum embedding requests in flight per node update
        self.CONCURRENCY: int = int(emb_cfg.get("concurrency", os.getenv("NODEVEC_EMBED_CONCURRENCY", "8")))
