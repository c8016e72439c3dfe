import asyncio

import pytest

from lottery_client.blockchain.block_time import BlockTimeEstimator
from lottery_client.blockchain.sample_store import InMemorySampleStore
from lottery_client.lottery.models import LotteryState, LotteryStatus
from lottery_client.lottery.watcher import LotteryWatcher


@pytest.mark.asyncio
async def test_tick_feeds_estimator_and_publishes_timeline(chain, clock):
    estimator = BlockTimeEstimator(31337)
    watcher = LotteryWatcher(chain, estimator, [1], clock=clock)
    updates = []
    watcher.add_listener("timeline_update", updates.append)

    for _ in range(4):
        await watcher.tick()
        chain.block_number += 1
        clock.advance(2)

    assert estimator.estimate().seconds_per_block == 2.0
    assert watcher.latest_block == 103
    # timeline unchanged across ticks, so published once
    assert len(updates) == 1
    assert updates[0]["activePhase"] == "Commit Phase"
    assert updates[0]["stateLabel"] == "COMMIT_OPEN"


@pytest.mark.asyncio
async def test_timeline_republished_when_deadline_lapses(chain, clock):
    watcher = LotteryWatcher(chain, BlockTimeEstimator(31337), [1], clock=clock)
    updates = []
    watcher.add_listener("timeline_update", updates.append)

    await watcher.tick()
    clock.now = 1_150
    await watcher.tick()

    assert [u["activePhase"] for u in updates] == ["Commit Phase", "Reveal"]
    assert updates[-1]["needsClose"] is True
    assert watcher.snapshot(1).needs_close


@pytest.mark.asyncio
async def test_unreadable_lottery_does_not_stop_others(chain, clock):
    chain.statuses[2] = LotteryStatus(2, LotteryState.FINALIZED, 10, 20, 30)
    watcher = LotteryWatcher(chain, BlockTimeEstimator(31337), [99, 2], clock=clock)

    await watcher.tick()

    assert watcher.snapshot(99) is None
    assert watcher.snapshot(2).active_phase.label == "Finalized"


@pytest.mark.asyncio
async def test_start_stop_flushes_estimator(chain, clock):
    store = InMemorySampleStore()
    watcher = LotteryWatcher(chain, BlockTimeEstimator(31337, store), [1], poll_interval=0.01, clock=clock)

    await watcher.start()
    await asyncio.sleep(0.03)
    await watcher.stop()

    assert not watcher.running
    assert [s.block_number for s in store.load(31337)] == [100]


def test_watch_and_unwatch(chain):
    watcher = LotteryWatcher(chain, BlockTimeEstimator(1), [1, 1, 2])
    assert watcher.lottery_ids == [1, 2]
    watcher.watch(3)
    watcher.unwatch(1)
    assert watcher.lottery_ids == [2, 3]
