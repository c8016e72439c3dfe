"""Blockchain client for the lottery client: chain observation and transaction submission."""

from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from eth_account import Account
from web3 import Web3
from web3.contract import Contract

from lottery_client.blockchain.contracts import load_abi
from lottery_client.lottery.models import LotteryState, LotteryStatus
from lottery_client.utils.common import shorten_hex
from lottery_client.utils.logger import get_logger

logger = get_logger(__name__)


class LotteryChainClient:
    """Async-friendly wrapper around web3.py for the LotteryFactory contract.

    Implements both collaborator interfaces the core consumes: the chain
    observation feed (`get_block_number`, `get_lottery_status`) and the
    transaction capability (`submit`, `await_confirmation`).
    """

    def __init__(self, config: Dict[str, Any]):
        self._config = config

        blockchain_cfg = config.get("blockchain", {})
        self.rpc_url: str = blockchain_cfg.get("rpc_url", "http://127.0.0.1:8545")
        # per-RPC timeout (seconds) passed to HTTPProvider so requests cannot block forever
        try:
            self.rpc_timeout: float = float(blockchain_cfg.get("rpc_timeout", 10.0))
        except (TypeError, ValueError):
            self.rpc_timeout = 10.0
        self.chain_id: int = int(blockchain_cfg.get("chain_id", 31337))
        self.contract_address: Optional[str] = blockchain_cfg.get("contract_address")
        self.abi_path: Optional[str] = blockchain_cfg.get("abi_path")
        self.tx_timeout: int = int(blockchain_cfg.get("tx_timeout_seconds", 180))

        self._w3: Optional[Web3] = None
        self._contract: Optional[Contract] = None
        self.contract_abi: Optional[List[Dict[str, Any]]] = None

        private_key = blockchain_cfg.get("private_key")
        self.account = Account.from_key(private_key) if private_key else None
        if self.account:
            logger.info("Signing account loaded: %s", shorten_hex(self.account.address))

        gas_price_setting = blockchain_cfg.get("gas_price")
        self._gas_price_override: Optional[int] = None
        if gas_price_setting:
            try:
                self._gas_price_override = Web3.to_wei(Decimal(str(gas_price_setting)), "gwei")
            except (ArithmeticError, ValueError) as exc:
                logger.warning("Unable to parse gas price '%s': %s", gas_price_setting, exc)

        self._gas_multiplier = float(blockchain_cfg.get("gas_multiplier", 1.15))

    async def initialize(self) -> None:
        """Establish the RPC connection and bind the contract."""
        self._w3 = Web3(Web3.HTTPProvider(self.rpc_url, request_kwargs={"timeout": self.rpc_timeout}))
        connected = await asyncio.to_thread(self._w3.is_connected)
        if not connected:  # pragma: no cover - depends on live RPC
            raise ConnectionError(f"Failed to connect to RPC at {self.rpc_url}")

        logger.info("Connected to RPC %s (chain id %s)", self.rpc_url, self.chain_id)

        try:
            actual_chain_id = await asyncio.to_thread(lambda: self._w3.eth.chain_id)
            if actual_chain_id != self.chain_id:
                logger.warning("Chain ID mismatch: expected %s, got %s; using %s", self.chain_id, actual_chain_id, actual_chain_id)
                self.chain_id = int(actual_chain_id)
        except Exception as exc:  # pragma: no cover - depends on live RPC
            logger.warning("Could not verify chain ID: %s", exc)

        await self._load_contract()

    async def close(self) -> None:
        """Tear down references; the HTTP provider closes automatically."""
        self._contract = None
        self._w3 = None

    async def _load_contract(self) -> None:
        if not self.contract_address:
            logger.warning("No contract address configured; lottery reads and transactions disabled")
            return

        self.contract_abi = load_abi(self.abi_path)
        w3 = self._ensure_web3()
        address = Web3.to_checksum_address(self.contract_address)

        code = await asyncio.to_thread(w3.eth.get_code, address)
        if len(code) == 0:
            raise ValueError(f"No contract deployed at {self.contract_address}")
        self._contract = w3.eth.contract(address=address, abi=self.contract_abi)
        logger.info("LotteryFactory bound at %s with %d bytes of code", address, len(code))

    def _ensure_contract(self) -> Contract:
        if not self._contract:
            raise RuntimeError("Contract not initialised")
        return self._contract

    def _ensure_web3(self) -> Web3:
        if not self._w3:
            raise RuntimeError("Web3 provider not initialised")
        return self._w3

    async def _call_view(self, function_name: str, *args) -> Any:
        contract = self._ensure_contract()

        def _call():
            return getattr(contract.functions, function_name)(*args).call()

        return await asyncio.to_thread(_call)

    # ------------------------------------------------------------------
    # Chain observation feed
    # ------------------------------------------------------------------
    async def get_block_number(self) -> int:
        w3 = self._ensure_web3()
        return int(await asyncio.to_thread(lambda: w3.eth.block_number))

    async def get_lottery_status(self, lottery_id: int) -> LotteryStatus:
        raw = await self._call_view("getLotteryStatus", int(lottery_id))
        return LotteryStatus(
            lottery_id=int(lottery_id),
            state=LotteryState(int(self._select(raw, "state", 0))),
            commit_deadline=int(self._select(raw, "commitDeadline", 1)),
            reveal_time=int(self._select(raw, "revealTime", 2)),
            claim_deadline=int(self._select(raw, "claimDeadline", 3)),
            created_at=int(self._select(raw, "createdAt", 4)),
        )

    # ------------------------------------------------------------------
    # Transaction capability
    # ------------------------------------------------------------------
    async def submit(self, action: str, args: Sequence[Any]) -> str:
        if not self.account:
            raise ValueError("Signing account not configured")

        contract = self._ensure_contract()
        w3 = self._ensure_web3()

        def _send() -> str:
            tx_function = getattr(contract.functions, action)(*args)
            gas_estimate = tx_function.estimate_gas({"from": self.account.address})
            gas_price = self._gas_price_override or w3.eth.gas_price
            txn = tx_function.build_transaction(
                {
                    "from": self.account.address,
                    "gas": int(gas_estimate * self._gas_multiplier),
                    "gasPrice": gas_price,
                    "nonce": w3.eth.get_transaction_count(self.account.address),
                    "chainId": self.chain_id,
                }
            )
            signed = self.account.sign_transaction(txn)
            # eth-account renamed rawTransaction to raw_transaction
            raw = getattr(signed, "raw_transaction", None) or getattr(signed, "rawTransaction")
            tx_hash = w3.eth.send_raw_transaction(raw)
            return Web3.to_hex(tx_hash)

        tx_hash = await asyncio.to_thread(_send)
        logger.info("Sent transaction %s for %s%s", shorten_hex(tx_hash), action, tuple(args))
        return tx_hash

    async def await_confirmation(self, tx_hash: str) -> Dict[str, Any]:
        w3 = self._ensure_web3()

        def _wait() -> Dict[str, Any]:
            receipt = w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.tx_timeout)
            return {
                "status": int(receipt["status"]),
                "blockNumber": int(receipt["blockNumber"]),
                "transactionHash": Web3.to_hex(receipt["transactionHash"]),
                "gasUsed": int(receipt["gasUsed"]),
            }

        return await asyncio.to_thread(_wait)

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------
    async def health_check(self) -> Dict[str, Any]:
        try:
            latest_block = await self.get_block_number()
            return {"status": "healthy", "latestBlock": latest_block}
        except Exception as exc:  # pragma: no cover - health failures are diagnostic
            logger.exception("Blockchain health check failed")
            return {"status": "error", "detail": str(exc)}

    def get_client_status(self) -> Dict[str, Any]:
        return {
            "rpcUrl": self.rpc_url,
            "chainId": self.chain_id,
            "contract": self.contract_address,
            "account": self.account.address if self.account else None,
        }

    @staticmethod
    def _select(mapping_or_tuple: Any, key: str, index: int) -> Any:
        if isinstance(mapping_or_tuple, dict):
            if key in mapping_or_tuple:
                return mapping_or_tuple[key]
        return mapping_or_tuple[index]
