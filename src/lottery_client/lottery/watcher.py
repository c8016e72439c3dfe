"""
Lottery Watcher - polls the chain head and lottery status, feeds the block-time
estimator and republishes derived timelines to listeners
"""

from __future__ import annotations

import asyncio
import time
from collections import defaultdict
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol

from lottery_client.blockchain.block_time import BlockTimeEstimator
from lottery_client.lottery.models import LotteryStatus, LotteryTimeline
from lottery_client.lottery.phases import timeline_for
from lottery_client.utils.logger import get_logger

logger = get_logger(__name__)


class ChainFeed(Protocol):
    async def get_block_number(self) -> int:
        ...

    async def get_lottery_status(self, lottery_id: int) -> LotteryStatus:
        ...


class LotteryWatcher:
    """Drives the observe -> derive -> publish loop for a set of lotteries."""

    def __init__(
        self,
        feed: ChainFeed,
        estimator: BlockTimeEstimator,
        lottery_ids: Iterable[int] = (),
        *,
        poll_interval: float = 5.0,
        error_backoff: float = 15.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._feed = feed
        self.estimator = estimator
        self._lottery_ids: List[int] = list(dict.fromkeys(int(i) for i in lottery_ids))
        self._poll_interval = poll_interval
        self._error_backoff = error_backoff
        self._clock = clock
        self._listeners: Dict[str, List[Callable[[dict], None]]] = defaultdict(list)
        self._statuses: Dict[int, LotteryStatus] = {}
        self._timelines: Dict[int, LotteryTimeline] = {}
        self.latest_block: Optional[int] = None
        self.running = False
        self._task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Listener management
    # ------------------------------------------------------------------
    def add_listener(self, event_type: str, callback: Callable[[dict], None]) -> None:
        self._listeners[event_type].append(callback)

    def _emit(self, event_type: str, payload: dict) -> None:
        for callback in list(self._listeners.get(event_type, [])):
            try:
                callback(payload)
            except Exception as exc:
                logger.error("Listener for %s failed: %s", event_type, exc)

    # ------------------------------------------------------------------
    # Watched set and snapshots
    # ------------------------------------------------------------------
    def watch(self, lottery_id: int) -> None:
        if int(lottery_id) not in self._lottery_ids:
            self._lottery_ids.append(int(lottery_id))

    def unwatch(self, lottery_id: int) -> None:
        lottery_id = int(lottery_id)
        if lottery_id in self._lottery_ids:
            self._lottery_ids.remove(lottery_id)
        self._statuses.pop(lottery_id, None)
        self._timelines.pop(lottery_id, None)

    @property
    def lottery_ids(self) -> List[int]:
        return list(self._lottery_ids)

    def snapshot(self, lottery_id: int) -> Optional[LotteryTimeline]:
        return self._timelines.get(int(lottery_id))

    def status(self, lottery_id: int) -> Optional[LotteryStatus]:
        return self._statuses.get(int(lottery_id))

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------
    async def start(self) -> None:
        if self._task is not None:
            logger.warning("Lottery watcher already running")
            return
        self.running = True
        logger.info("Starting lottery watcher for lotteries %s", self._lottery_ids)
        self._task = asyncio.create_task(self._watch_loop(), name="lottery-watcher")

    async def stop(self) -> None:
        self.running = False
        task, self._task = self._task, None
        if task:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self.estimator.flush()
        logger.info("Lottery watcher stopped")

    async def _watch_loop(self) -> None:
        while self.running:
            try:
                await self.tick()
                await asyncio.sleep(self._poll_interval)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Error in watcher loop: {e}")
                await asyncio.sleep(self._error_backoff)

    async def tick(self) -> None:
        """One observation round: chain head, then every watched lottery."""
        block_number = await self._feed.get_block_number()
        now = self._clock()
        if self.estimator.observe(block_number, now):
            self.latest_block = block_number
            estimate = self.estimator.estimate()
            logger.debug("Block %s observed; estimate %.1fs/block (%s)", block_number, estimate.seconds_per_block, estimate.confidence.value)
            self._emit("block_time_update", {"blockNumber": block_number, **estimate.to_dict()})

        for lottery_id in list(self._lottery_ids):
            try:
                status = await self._feed.get_lottery_status(lottery_id)
            except Exception as exc:
                logger.warning("Could not read status of lottery %s: %s", lottery_id, exc)
                continue
            self.refresh(status, int(now))

    def refresh(self, status: LotteryStatus, now: int) -> LotteryTimeline:
        timeline = timeline_for(status, now)
        previous = self._timelines.get(status.lottery_id)
        self._statuses[status.lottery_id] = status
        self._timelines[status.lottery_id] = timeline
        if timeline != previous:
            if timeline.needs_close and (previous is None or not previous.needs_close):
                logger.info("Lottery %s commit deadline passed; close transaction required", status.lottery_id)
            self._emit("timeline_update", self._serialize(status, timeline))
        return timeline

    @staticmethod
    def _serialize(status: LotteryStatus, timeline: LotteryTimeline) -> Dict[str, Any]:
        return {
            "lotteryId": status.lottery_id,
            "state": status.state.value,
            "stateLabel": status.state.name,
            "commitDeadline": status.commit_deadline,
            "revealTime": status.reveal_time,
            "claimDeadline": status.claim_deadline,
            **timeline.to_dict(),
        }
