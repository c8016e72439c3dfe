#!/usr/bin/env python3
"""
Lottery Client Application

Entry point wiring the chain client, block-time estimator, lottery watcher and
FastAPI web server together, with graceful shutdown on SIGINT/SIGTERM.
"""

import asyncio
import signal
import sys
from pathlib import Path

from dotenv import load_dotenv

from lottery_client.blockchain.block_time import DEFAULT_MAX_SAMPLES, BlockTimeEstimator
from lottery_client.blockchain.client import LotteryChainClient
from lottery_client.blockchain.sample_store import JsonFileSampleStore
from lottery_client.lottery.watcher import LotteryWatcher
from lottery_client.utils.common import parse_id_list
from lottery_client.utils.config import get_config_value, load_config
from lottery_client.utils.logger import get_logger
from lottery_client.web_server import LotteryWebServer

logger = get_logger(__name__)


class LotteryClientApp:
    """Owns the long-lived components and their start/stop ordering."""

    def __init__(self, config=None):
        self.config = config if config is not None else load_config()
        self.blockchain_client = None
        self.estimator = None
        self.watcher = None
        self.web_server = None
        self.running = True

    def _display_config_summary(self):
        logger.info("=" * 60)
        logger.info("CONFIGURATION SUMMARY")
        logger.info("=" * 60)
        logger.info(f"RPC URL: {get_config_value(self.config, 'blockchain.rpc_url', 'Not configured')}")
        logger.info(f"Chain ID: {get_config_value(self.config, 'blockchain.chain_id', 'Not configured')}")
        logger.info(f"Contract: {get_config_value(self.config, 'blockchain.contract_address', 'Not configured')}")
        logger.info(f"Watched lotteries: {get_config_value(self.config, 'watcher.lottery_ids', 'none')}")
        logger.info(f"Block sample store: {get_config_value(self.config, 'estimator.store_path', 'data/block_time.json')}")
        logger.info(f"Server: {get_config_value(self.config, 'server.host', '0.0.0.0')}:{get_config_value(self.config, 'server.port', 6080)}")
        logger.info("=" * 60)

    async def initialize(self):
        self._display_config_summary()

        self.blockchain_client = LotteryChainClient(self.config)
        await self.blockchain_client.initialize()

        store_path = get_config_value(self.config, "estimator.store_path", "data/block_time.json")
        max_samples = int(get_config_value(self.config, "estimator.max_samples", DEFAULT_MAX_SAMPLES))
        self.estimator = BlockTimeEstimator(
            self.blockchain_client.chain_id,
            JsonFileSampleStore(Path(store_path)),
            max_samples=max_samples,
        )
        self.estimator.load()

        self.watcher = LotteryWatcher(
            self.blockchain_client,
            self.estimator,
            parse_id_list(get_config_value(self.config, "watcher.lottery_ids")),
            poll_interval=float(get_config_value(self.config, "watcher.poll_interval", 5.0)),
        )
        self.web_server = LotteryWebServer(self.config, self.blockchain_client, self.estimator, self.watcher)
        logger.info("Lottery client initialized")

    async def start(self):
        try:
            await self.initialize()
            await self.watcher.start()

            host = get_config_value(self.config, "server.host", "0.0.0.0")
            port = int(get_config_value(self.config, "server.port", 6080))
            server_task = asyncio.create_task(self.web_server.start(host=host, port=port))

            while self.running and not server_task.done():
                await asyncio.sleep(1)

            if server_task.done() and not server_task.cancelled() and server_task.exception():
                raise server_task.exception()
            server_task.cancel()
            logger.info("Shutdown signal received, stopping application...")
        finally:
            await self.stop()

    async def stop(self):
        logger.info("Stopping lottery client")
        self.running = False

        if self.web_server:
            try:
                await self.web_server.stop()
            except Exception as e:
                logger.error(f"Error stopping web server: {e}")

        if self.watcher:
            try:
                # also flushes the estimator
                await self.watcher.stop()
            except Exception as e:
                logger.error(f"Error stopping watcher: {e}")
        elif self.estimator:
            self.estimator.flush()

        if self.blockchain_client:
            await self.blockchain_client.close()

        logger.info("Lottery client stopped")

    def _handle_signal(self, signum, frame):
        logger.info(f"Received signal {signum}, initiating graceful shutdown...")
        self.running = False


async def main():
    app = LotteryClientApp()

    signal.signal(signal.SIGINT, app._handle_signal)
    signal.signal(signal.SIGTERM, app._handle_signal)

    try:
        await app.start()
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    except Exception:
        logger.exception("Lottery client failed")
        sys.exit(1)


def run():
    load_dotenv()
    asyncio.run(main())


if __name__ == "__main__":
    run()
