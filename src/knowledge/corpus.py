"""
Historical corpus for the similarity matcher.

Loading every RFQ document on each keystroke of the RFQ form would be wasteful,
so the provider keeps one snapshot in memory for CORPUS_TTL_SECONDS. Workflow
writes call invalidate() so a freshly submitted quote shows up right away.
"""

import logging
import os
import threading
import time

from src.core import db

log = logging.getLogger("quoteflow.corpus")

CORPUS_TTL_SECONDS = int(os.environ.get("QUOTEFLOW_CORPUS_TTL", "300"))


class CorpusProvider:
    def __init__(self, loader=None, ttl: float = None):
        self._loader = loader or db.load_rfqs
        self._ttl = CORPUS_TTL_SECONDS if ttl is None else ttl
        self._lock = threading.Lock()
        self._snapshot = None
        self._loaded_at = 0.0

    def get(self) -> list:
        """Current snapshot (a tuple of RFQ records), reloading when stale."""
        with self._lock:
            fresh = (self._snapshot is not None
                     and time.monotonic() - self._loaded_at < self._ttl)
            if not fresh:
                t0 = time.monotonic()
                self._snapshot = tuple(self._loader())
                self._loaded_at = time.monotonic()
                log.debug("Corpus loaded: %d RFQs in %.0fms", len(self._snapshot),
                          (self._loaded_at - t0) * 1000)
            return self._snapshot

    def invalidate(self):
        with self._lock:
            self._snapshot = None


corpus_provider = CorpusProvider()
