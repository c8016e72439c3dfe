"""Persistent storage for observed block samples, keyed by chain id."""

from __future__ import annotations

import json
import time
from pathlib import Path
from threading import Lock
from typing import Any, Dict, List, Protocol

from lottery_client.lottery.models import BlockSample
from lottery_client.utils.logger import get_logger

logger = get_logger(__name__)


class BlockSampleStore(Protocol):
    def load(self, chain_id: int) -> List[BlockSample]:
        ...

    def save(self, chain_id: int, samples: List[BlockSample]) -> None:
        ...


class InMemorySampleStore:
    """Volatile store; survives estimator instances but not the process."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._series: Dict[int, List[BlockSample]] = {}

    def load(self, chain_id: int) -> List[BlockSample]:
        with self._lock:
            return list(self._series.get(chain_id, []))

    def save(self, chain_id: int, samples: List[BlockSample]) -> None:
        with self._lock:
            self._series[chain_id] = list(samples)


class JsonFileSampleStore:
    """Single JSON document holding every chain's block series.

    Layout: ``{"<chainId>": {"blocks": [{"number": "123", "timestamp": <ms>}],
    "lastUpdated": <ms>}}``. Block numbers are kept as strings so large values
    survive any JSON tooling that reads the file.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = Lock()

    def load(self, chain_id: int) -> List[BlockSample]:
        with self._lock:
            document = self._read()
        entry = document.get(str(chain_id)) or {}
        samples: List[BlockSample] = []
        for record in entry.get("blocks", []):
            try:
                samples.append(
                    BlockSample(
                        block_number=int(record["number"]),
                        observed_at=float(record["timestamp"]) / 1000.0,
                    )
                )
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping malformed block record %s for chain %s: %s", record, chain_id, exc)
        logger.debug("Loaded %d block samples for chain %s from %s", len(samples), chain_id, self.path)
        return samples

    def save(self, chain_id: int, samples: List[BlockSample]) -> None:
        with self._lock:
            document = self._read()
            document[str(chain_id)] = {
                "blocks": [
                    {"number": str(sample.block_number), "timestamp": int(round(sample.observed_at * 1000))}
                    for sample in samples
                ],
                "lastUpdated": int(time.time() * 1000),
            }
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
                with open(tmp_path, "w", encoding="utf-8") as handle:
                    json.dump(document, handle, indent=2)
                tmp_path.replace(self.path)
            except OSError as exc:
                logger.error("Failed to persist block samples to %s: %s", self.path, exc)
                return
        logger.debug("Saved %d block samples for chain %s to %s", len(samples), chain_id, self.path)

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as handle:
                document = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            logger.error("Block sample file %s unreadable, starting empty: %s", self.path, exc)
            return {}
        if not isinstance(document, dict):
            logger.error("Block sample file %s has unexpected layout, starting empty", self.path)
            return {}
        return document
