# gateways/embedding.py

"""
Embedding retrieval.

The engine only depends on the `EmbeddingGateway` protocol: an async
`embed(text)` returning one vector. `SentenceTransformerGateway` is the
bundled implementation; anything else (a remote embedding service, a
test double) just has to provide the same coroutine.
"""

from __future__ import annotations
import asyncio
import logging
from functools import lru_cache
from typing import Dict, List, Mapping, Protocol, Sequence, Set, Tuple, runtime_checkable

import numpy as np
from sentence_transformers import SentenceTransformer

from ..util.timing import timed

logger = logging.getLogger(__name__)


@runtime_checkable
class EmbeddingGateway(Protocol):
    async def embed(self, text: str) -> Sequence[float]:
        ...


@lru_cache(maxsize=4)
def _load_model(name: str, device: str) -> SentenceTransformer:
    """Lazy-load and keep one SentenceTransformer per (model, device)."""
    with timed(logger, "embed.model.load", model=name):
        model = SentenceTransformer(name, device=device)
    return model


class SentenceTransformerGateway:
    """
    Local sentence-transformers model behind the async gateway protocol.

    Encoding is CPU/GPU bound, so it runs in a worker thread to keep the
    event loop free for the other concurrent requests.
    """

    def __init__(self, model_name: str = "sentence-transformers/all-MiniLM-L6-v2", device: str = "cpu"):
        self.model_name = model_name
        self.device = device

    def _encode(self, text: str) -> np.ndarray:
        model = _load_model(self.model_name, self.device)
        vec = model.encode([text], convert_to_numpy=True, normalize_embeddings=True)
        return vec.astype(np.float32, copy=False)[0]

    async def embed(self, text: str) -> np.ndarray:
        return await asyncio.to_thread(self._encode, text)


async def fetch_embeddings(
    gateway: EmbeddingGateway,
    texts: Mapping[str, str],
    *,
    batch_size: int,
    max_concurrent: int,
    timeout_seconds: float,
) -> Tuple[Dict[str, np.ndarray], Set[str]]:
    """
    Embed every text, `batch_size` at a time, at most `max_concurrent`
    requests in flight.

    Parameters
    ----------
    gateway :
        Anything implementing `EmbeddingGateway`.
    texts :
        Product id → text to embed.
    batch_size :
        Number of requests scheduled together before awaiting the batch.
    max_concurrent :
        Upper bound on simultaneous gateway calls.
    timeout_seconds :
        Per-call timeout; a timeout is treated the same as a failed call.

    Returns
    -------
    (embeddings, failed_ids)
        Vectors for the ids that succeeded, and the set of ids that did not.
    """
    semaphore = asyncio.Semaphore(max_concurrent)
    ids: List[str] = list(texts)
    vectors: Dict[str, np.ndarray] = {}
    failed: Set[str] = set()

    async def one(pid: str) -> None:
        async with semaphore:
            try:
                raw = await asyncio.wait_for(gateway.embed(texts[pid]), timeout=timeout_seconds)
                vec = np.asarray(raw, dtype=float).ravel()
                if vec.size == 0:
                    raise ValueError("gateway returned an empty vector")
                vectors[pid] = vec
            except asyncio.TimeoutError:
                logger.warning("embed.timeout id=%s after %.1fs", pid, timeout_seconds)
                failed.add(pid)
            except Exception as exc:
                logger.warning("embed.failed id=%s error=%s", pid, exc)
                failed.add(pid)

    with timed(logger, "embed.fetch", n=len(ids), batch=batch_size, concurrency=max_concurrent):
        for start in range(0, len(ids), batch_size):
            batch = ids[start:start + batch_size]
            await asyncio.gather(*(one(pid) for pid in batch))
            logger.debug("embed.batch start=%d size=%d", start, len(batch))

    if failed:
        logger.info("embed.summary ok=%d failed=%d", len(vectors), len(failed))
    return vectors, failed
