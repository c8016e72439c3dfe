from types import SimpleNamespace

import pytest

from lottery_client.blockchain.client import LotteryChainClient
from lottery_client.blockchain.contracts import LOTTERY_FACTORY_ABI, load_abi
from lottery_client.lottery.models import LotteryState

TEST_KEY = "0x" + "11" * 32


class StubFunctions:
    def __init__(self, result):
        self._result = result

    def getLotteryStatus(self, lottery_id):
        return SimpleNamespace(call=lambda: self._result)


def client_with_result(result, **blockchain):
    client = LotteryChainClient({"blockchain": blockchain})
    client._contract = SimpleNamespace(functions=StubFunctions(result))
    return client


def test_defaults_from_config():
    client = LotteryChainClient({"blockchain": {"chain_id": "5042002", "rpc_timeout": "oops", "tx_timeout_seconds": "60"}})
    assert client.chain_id == 5042002
    assert client.rpc_timeout == 10.0
    assert client.tx_timeout == 60
    assert client.account is None


def test_private_key_loads_account():
    client = LotteryChainClient({"blockchain": {"private_key": TEST_KEY}})
    assert client.account is not None
    assert client.get_client_status()["account"] == client.account.address


@pytest.mark.asyncio
async def test_lottery_status_from_tuple():
    client = client_with_result((1, 100, 200, 300, 50))
    status = await client.get_lottery_status(7)
    assert status.lottery_id == 7
    assert status.state == LotteryState.COMMIT_OPEN
    assert (status.commit_deadline, status.reveal_time, status.claim_deadline, status.created_at) == (100, 200, 300, 50)


@pytest.mark.asyncio
async def test_unknown_state_is_rejected():
    client = client_with_result((9, 100, 200, 300, 50))
    with pytest.raises(ValueError):
        await client.get_lottery_status(7)


@pytest.mark.asyncio
async def test_submit_requires_account():
    client = client_with_result((1, 0, 0, 0, 0))
    with pytest.raises(ValueError):
        await client.submit("closeCommitPeriod", (1,))


@pytest.mark.asyncio
async def test_reads_require_initialisation():
    client = LotteryChainClient({})
    with pytest.raises(RuntimeError):
        await client.get_block_number()


def test_load_abi(tmp_path):
    assert load_abi(None) is LOTTERY_FACTORY_ABI

    artifact = tmp_path / "LotteryFactory.json"
    artifact.write_text('{"abi": [{"type": "function", "name": "x"}]}')
    assert load_abi(str(artifact)) == [{"type": "function", "name": "x"}]

    broken = tmp_path / "broken.json"
    broken.write_text('{"bytecode": "0x"}')
    with pytest.raises(ValueError):
        load_abi(str(broken))
