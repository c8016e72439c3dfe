"""
Shared fixtures: a fake chain standing in for LotteryChainClient and a settable clock.
"""

from typing import Any, Dict, List, Optional, Sequence

import pytest

from lottery_client.lottery.models import LotteryState, LotteryStatus


class FakeClock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeChain:
    """Chain observation feed and transaction capability in one object."""

    def __init__(self):
        self.block_number = 100
        self.statuses: Dict[int, LotteryStatus] = {}
        self.submissions: List[tuple] = []
        self.submit_error: Optional[Exception] = None
        self.confirm_error: Optional[Exception] = None
        self.receipt: Dict[str, Any] = {"status": 1, "blockNumber": 101, "transactionHash": "0x" + "ab" * 32, "gasUsed": 42000}
        self.tx_hash = "0x" + "ab" * 32

    async def get_block_number(self) -> int:
        return self.block_number

    async def get_lottery_status(self, lottery_id: int) -> LotteryStatus:
        if lottery_id not in self.statuses:
            raise ValueError(f"unknown lottery {lottery_id}")
        return self.statuses[lottery_id]

    async def submit(self, action: str, args: Sequence[Any]) -> str:
        self.submissions.append((action, tuple(args)))
        if self.submit_error:
            raise self.submit_error
        return self.tx_hash

    async def await_confirmation(self, tx_hash: str) -> Dict[str, Any]:
        if self.confirm_error:
            raise self.confirm_error
        return dict(self.receipt)

    async def health_check(self) -> Dict[str, Any]:
        return {"status": "healthy", "latestBlock": self.block_number}

    def get_client_status(self) -> Dict[str, Any]:
        return {"rpcUrl": "fake", "chainId": 31337, "contract": None, "account": None}


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def chain():
    fake = FakeChain()
    fake.statuses[1] = LotteryStatus(
        lottery_id=1,
        state=LotteryState.COMMIT_OPEN,
        commit_deadline=1_100,
        reveal_time=1_200,
        claim_deadline=1_300,
        created_at=900,
    )
    return fake
