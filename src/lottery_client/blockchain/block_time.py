"""Block-time estimation from observed chain heads.

The estimator keeps a bounded, ordered window of (block number, wall-clock)
samples for one chain id and derives seconds-per-block as the elapsed time
across the whole window divided by the blocks it spans. Too little data never
raises; it degrades to DEFAULT_BLOCK_TIME with low confidence.
"""

from __future__ import annotations

from collections import deque
from typing import Deque, List, Optional

from lottery_client.blockchain.sample_store import BlockSampleStore, InMemorySampleStore
from lottery_client.lottery.models import BlockSample, BlockTimeEstimate, Confidence
from lottery_client.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_BLOCK_TIME = 12.0
DEFAULT_MAX_SAMPLES = 20
MEDIUM_CONFIDENCE_SAMPLES = 3
HIGH_CONFIDENCE_SAMPLES = 10


def confidence_for(sample_size: int) -> Confidence:
    if sample_size >= HIGH_CONFIDENCE_SAMPLES:
        return Confidence.HIGH
    if sample_size >= MEDIUM_CONFIDENCE_SAMPLES:
        return Confidence.MEDIUM
    return Confidence.LOW


class BlockTimeEstimator:
    """Rolling seconds-per-block estimate for a single chain id."""

    def __init__(
        self,
        chain_id: int,
        store: Optional[BlockSampleStore] = None,
        *,
        max_samples: int = DEFAULT_MAX_SAMPLES,
    ) -> None:
        if max_samples < 2:
            raise ValueError("max_samples must be at least 2")
        self.chain_id = chain_id
        self._store = store if store is not None else InMemorySampleStore()
        self._max_samples = max_samples
        self._samples: Deque[BlockSample] = deque(maxlen=max_samples)
        self._dirty = False

    def __enter__(self) -> "BlockTimeEstimator":
        self.load()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.flush()

    @property
    def samples(self) -> List[BlockSample]:
        return list(self._samples)

    def load(self) -> None:
        """Replace the in-memory window with the persisted series for this chain."""
        self._samples.clear()
        for sample in self._store.load(self.chain_id):
            self._append(sample.block_number, sample.observed_at)
        self._dirty = False
        logger.info("Block time estimator loaded %d samples for chain %s", len(self._samples), self.chain_id)

    def flush(self) -> None:
        """Persist the current window for this chain."""
        if not self._dirty:
            return
        self._store.save(self.chain_id, list(self._samples))
        self._dirty = False

    def switch_chain(self, chain_id: int) -> None:
        if chain_id == self.chain_id:
            return
        logger.info("Switching block time series from chain %s to chain %s", self.chain_id, chain_id)
        self.flush()
        self.chain_id = chain_id
        self.load()

    def observe(self, block_number: int, now: float) -> bool:
        """Record a head observation; returns True when a new sample was kept."""
        recorded = self._append(int(block_number), float(now))
        if recorded:
            self._dirty = True
        return recorded

    def _append(self, block_number: int, observed_at: float) -> bool:
        if self._samples:
            last = self._samples[-1]
            if block_number <= last.block_number:
                # duplicate poll or out-of-order delivery
                return False
            if observed_at < last.observed_at:
                logger.debug("Ignoring block %s observed before the newest sample", block_number)
                return False
        self._samples.append(BlockSample(block_number=block_number, observed_at=observed_at))
        return True

    def estimate(self) -> BlockTimeEstimate:
        if len(self._samples) < 2:
            return BlockTimeEstimate(DEFAULT_BLOCK_TIME, Confidence.LOW, 0)

        oldest, newest = self._samples[0], self._samples[-1]
        blocks = newest.block_number - oldest.block_number
        elapsed = newest.observed_at - oldest.observed_at
        if blocks <= 0 or elapsed <= 0:
            return BlockTimeEstimate(DEFAULT_BLOCK_TIME, Confidence.LOW, 0)

        sample_size = len(self._samples)
        return BlockTimeEstimate(
            seconds_per_block=round(elapsed / blocks, 1),
            confidence=confidence_for(sample_size),
            sample_size=sample_size,
        )
