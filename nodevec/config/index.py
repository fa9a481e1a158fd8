import os
from typing import List

from .loader import table


def _split_suffixes(raw: str) -> List[str]:
    return [token.strip() for token in raw.split(",") if token.strip()]


class Index:
    def __init__(self, config: dict | None = None) -> None:
        index_cfg = table(config, "index")
        self.SEGMENTER_STRATEGY: str = str(
            index_cfg.get("segmenter_strategy", os.getenv("NODEVEC_SEGMENTER", "whole"))
        )
        self.SEARCH_K: int = int(index_cfg.get("search_k", os.getenv("NODEVEC_SEARCH_K", "20")))
        self.NODES_DIR: str = str(index_cfg.get("nodes_dir", os.getenv("NODEVEC_NODES_DIR", "notes")))

        suffixes = index_cfg.get("node_suffixes", os.getenv("NODEVEC_NODE_SUFFIXES", ".org,.md,.txt"))
        if isinstance(suffixes, str):
            suffixes = _split_suffixes(suffixes)
        self.NODE_SUFFIXES: List[str] = [str(s) for s in suffixes]

        # How often the shell runs store reconciliation (in seconds)
        self.MAINTENANCE_INTERVAL: int = int(
            index_cfg.get("maintenance_interval", os.getenv("NODEVEC_MAINTENANCE_INTERVAL", "3600"))
        )
