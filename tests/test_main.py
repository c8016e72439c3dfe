import asyncio

import pytest

from lottery_client.main import LotteryClientApp


class StubComponent:
    def __init__(self):
        self.started = False
        self.stopped = False

    async def start(self, **kwargs):
        self.started = True

    async def stop(self):
        self.stopped = True


class CancelledServer(StubComponent):
    async def start(self, **kwargs):
        raise asyncio.CancelledError()


@pytest.mark.asyncio
async def test_start_shuts_down_cleanly_when_server_task_is_cancelled(monkeypatch):
    app = LotteryClientApp(config={})

    async def initialize():
        app.watcher = StubComponent()
        app.web_server = CancelledServer()

    monkeypatch.setattr(app, "initialize", initialize)

    await app.start()

    assert app.watcher.started
    assert app.watcher.stopped
    assert app.web_server.stopped
    assert app.running is False
