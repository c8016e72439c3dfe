import pytest

from lottery_client.blockchain.block_time import (
    DEFAULT_BLOCK_TIME,
    BlockTimeEstimator,
    confidence_for,
)
from lottery_client.blockchain.sample_store import InMemorySampleStore, JsonFileSampleStore
from lottery_client.lottery.models import Confidence


def feed(estimator, count, start_block=100, start_time=0.0, spacing=12.0):
    for i in range(count):
        estimator.observe(start_block + i, start_time + i * spacing)


def test_default_without_samples():
    estimate = BlockTimeEstimator(1).estimate()
    assert estimate.seconds_per_block == DEFAULT_BLOCK_TIME == 12
    assert estimate.confidence == Confidence.LOW
    assert estimate.sample_size == 0


def test_single_distinct_block_keeps_default():
    estimator = BlockTimeEstimator(1)
    estimator.observe(50, 0.0)
    estimator.observe(50, 3.0)
    estimator.observe(50, 6.0)
    estimate = estimator.estimate()
    assert estimate.seconds_per_block == 12
    assert estimate.confidence == Confidence.LOW
    assert estimate.sample_size == 0
    assert len(estimator.samples) == 1


def test_windowed_average_over_oldest_and_newest():
    estimator = BlockTimeEstimator(1)
    # uneven polling: 2s then 10s between consecutive heads
    estimator.observe(10, 0.0)
    estimator.observe(11, 2.0)
    estimator.observe(13, 12.0)
    estimate = estimator.estimate()
    assert estimate.seconds_per_block == 4.0
    assert estimate.sample_size == 3
    assert estimate.confidence == Confidence.MEDIUM


def test_out_of_order_blocks_are_ignored():
    estimator = BlockTimeEstimator(1)
    assert estimator.observe(20, 0.0)
    assert not estimator.observe(19, 5.0)
    assert not estimator.observe(20, 6.0)
    assert estimator.observe(21, 12.0)
    assert [s.block_number for s in estimator.samples] == [20, 21]


def test_window_is_bounded():
    estimator = BlockTimeEstimator(1, max_samples=5)
    feed(estimator, 8, spacing=2.0)
    samples = estimator.samples
    assert len(samples) == 5
    assert samples[0].block_number == 103
    assert estimator.estimate().seconds_per_block == 2.0


@pytest.mark.parametrize(
    "size,expected",
    [(0, Confidence.LOW), (2, Confidence.LOW), (3, Confidence.MEDIUM), (9, Confidence.MEDIUM), (10, Confidence.HIGH), (20, Confidence.HIGH)],
)
def test_confidence_tiers(size, expected):
    assert confidence_for(size) == expected


def test_confidence_never_decreases_as_samples_grow():
    estimator = BlockTimeEstimator(1)
    order = [Confidence.LOW, Confidence.MEDIUM, Confidence.HIGH]
    previous = 0
    for i in range(20):
        estimator.observe(100 + i, i * 5.0)
        rank = order.index(estimator.estimate().confidence)
        assert rank >= previous
        previous = rank


def test_history_survives_restart_through_store():
    store = InMemorySampleStore()
    with BlockTimeEstimator(5, store) as first:
        feed(first, 4, spacing=3.0)

    second = BlockTimeEstimator(5, store)
    second.load()
    assert second.estimate().sample_size == 4
    assert second.estimate().seconds_per_block == 3.0


def test_switching_chain_resets_series():
    store = InMemorySampleStore()
    estimator = BlockTimeEstimator(1, store)
    feed(estimator, 4, spacing=2.0)

    estimator.switch_chain(2)
    assert estimator.samples == []
    assert estimator.estimate().sample_size == 0

    estimator.switch_chain(1)
    assert estimator.estimate().sample_size == 4


def test_json_store_round_trip_and_layout(tmp_path):
    path = tmp_path / "blocks.json"
    store = JsonFileSampleStore(path)
    estimator = BlockTimeEstimator(31337, store)
    feed(estimator, 3, start_block=2**70, spacing=1.5)
    estimator.flush()

    reloaded = BlockTimeEstimator(31337, JsonFileSampleStore(path))
    reloaded.load()
    assert [s.block_number for s in reloaded.samples] == [2**70, 2**70 + 1, 2**70 + 2]
    assert reloaded.estimate().seconds_per_block == 1.5

    other_chain = BlockTimeEstimator(1, JsonFileSampleStore(path))
    other_chain.load()
    assert other_chain.samples == []


def test_corrupt_store_degrades_to_empty(tmp_path):
    path = tmp_path / "blocks.json"
    path.write_text("{not json")
    estimator = BlockTimeEstimator(1, JsonFileSampleStore(path))
    estimator.load()
    assert estimator.estimate().seconds_per_block == 12


def test_window_spanning_zero_time_reports_default():
    estimator = BlockTimeEstimator(1)
    for block in range(100, 112):
        estimator.observe(block, 500.0)

    estimate = estimator.estimate()

    assert len(estimator.samples) == 12
    assert estimate.seconds_per_block == DEFAULT_BLOCK_TIME
    assert estimate.confidence == Confidence.LOW
    assert estimate.sample_size == 0
