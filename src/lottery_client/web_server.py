"""FastAPI surface exposing timelines, block-time estimates, creation checks and the close-commit action."""

from __future__ import annotations

import asyncio
import time
from collections import OrderedDict
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Set

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from lottery_client.blockchain.block_time import BlockTimeEstimator
from lottery_client.blockchain.client import LotteryChainClient
from lottery_client.lottery.countdown import block_countdown, estimate_block_deadline, friendly_time
from lottery_client.lottery.errors import friendly_message
from lottery_client.lottery.models import (
    CreationParams,
    FailureKind,
    LotteryState,
    LotteryStatus,
    TransactionAttempt,
)
from lottery_client.lottery.phases import timeline_for
from lottery_client.lottery.transactions import GatedTransactionController, close_commit_controller
from lottery_client.lottery.validation import validate_creation
from lottery_client.lottery.watcher import LotteryWatcher
from lottery_client.utils.logger import get_logger

logger = get_logger(__name__)

MAX_RESOLVED_ATTEMPTS = 256


class CreateLotteryRequest(BaseModel):
    prizes: List[int] = Field(default_factory=list)
    ticket_count: int
    commit_deadline: int
    reveal_time: int
    total_amount: int

    def to_params(self) -> CreationParams:
        return CreationParams(
            prizes=list(self.prizes),
            ticket_count=self.ticket_count,
            commit_deadline=self.commit_deadline,
            reveal_time=self.reveal_time,
            total_amount=self.total_amount,
        )


class LotteryWebServer:
    """HTTP gateway between presentation layers and the lottery client core."""

    def __init__(
        self,
        config: Dict[str, Any],
        client: LotteryChainClient,
        estimator: BlockTimeEstimator,
        watcher: Optional[LotteryWatcher] = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config
        self.client = client
        self.estimator = estimator
        self.watcher = watcher
        self._clock = clock
        self._controllers: Dict[int, GatedTransactionController] = {}
        self._inflight: Set[asyncio.Task] = set()
        self._resolved: OrderedDict[int, TransactionAttempt] = OrderedDict()

        self.app = FastAPI(
            title="Commit-Reveal Lottery Client API",
            description="Timelines, block-time estimates and gated actions for commit-reveal lotteries",
            version="1.0.0",
            lifespan=self._lifespan,
        )
        self._setup_middleware()
        self._setup_routes()

    # ------------------------------------------------------------------
    # FastAPI scaffolding
    # ------------------------------------------------------------------
    def _setup_middleware(self) -> None:
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    def _setup_routes(self) -> None:  # noqa: C901 - routing setup intentionally verbose
        @self.app.get("/api/health")
        async def health_check() -> Dict[str, Any]:
            blockchain_health = await self.client.health_check()
            return {
                "status": "ok",
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "components": {
                    "web": True,
                    "watcher": "running" if self.watcher and self.watcher.running else "stopped",
                    "blockchain": blockchain_health,
                },
                "client": self.client.get_client_status(),
            }

        @self.app.get("/api/block-time")
        async def get_block_time() -> Dict[str, Any]:
            return {"chainId": self.estimator.chain_id, **self.estimator.estimate().to_dict()}

        @self.app.get("/api/lottery/{lottery_id}/timeline")
        async def get_timeline(lottery_id: int, now: Optional[int] = None) -> Dict[str, Any]:
            status = await self._read_status(lottery_id)
            current = int(self._clock()) if now is None else now
            timeline = timeline_for(status, current)
            return {
                "lotteryId": lottery_id,
                "state": status.state.value,
                "stateLabel": status.state.name,
                "now": current,
                "commitCountdown": friendly_time(status.commit_deadline, current).text,
                "revealCountdown": friendly_time(status.reveal_time, current).text,
                "claimCountdown": friendly_time(status.claim_deadline, current).text,
                **timeline.to_dict(),
            }

        @self.app.get("/api/lottery/{lottery_id}/countdown")
        async def get_block_countdown(lottery_id: int, target_block: int) -> Dict[str, Any]:
            try:
                current_block = await self.client.get_block_number()
            except Exception as exc:
                logger.warning("Block number unavailable: %s", exc)
                raise HTTPException(status_code=503, detail="Chain head unavailable")
            estimate = self.estimator.estimate()
            countdown = block_countdown(target_block, current_block, estimate)
            return {
                "lotteryId": lottery_id,
                "currentBlock": current_block,
                "targetBlock": target_block,
                "confidence": estimate.confidence.value,
                "estimatedAt": estimate_block_deadline(target_block, current_block, estimate, int(self._clock())),
                **countdown.to_dict(),
            }

        @self.app.post("/api/lottery/validate")
        async def validate_lottery(request: CreateLotteryRequest) -> Dict[str, Any]:
            return validate_creation(request.to_params()).to_dict()

        @self.app.get("/api/lottery/{lottery_id}/close-commit")
        async def get_close_commit(lottery_id: int) -> Dict[str, Any]:
            status = await self._read_status(lottery_id)
            controller = self._controllers.get(lottery_id) or self._new_controller(status)
            return self._serialize_controller(controller, status)

        @self.app.post("/api/lottery/{lottery_id}/close-commit")
        async def close_commit(lottery_id: int) -> JSONResponse:
            status = await self._read_status(lottery_id)
            live = self._controllers.get(lottery_id)
            if live is not None and live.is_loading:
                raise HTTPException(status_code=409, detail="A close transaction is already in flight")

            controller = self._new_controller(status)
            if status.state != LotteryState.COMMIT_OPEN:
                logger.info("close-commit for lottery %s rejected: chain state is %s", lottery_id, status.state.name)
                self._remember(controller.reject(FailureKind.WRONG_LOTTERY_STATE))
                return JSONResponse(self._serialize_controller(controller, status), status_code=200)

            if not controller.refresh():
                # local rejection, resolved without touching the network
                self._remember(await controller.execute())
                return JSONResponse(self._serialize_controller(controller, status), status_code=200)

            self._controllers[lottery_id] = controller
            task = asyncio.create_task(self._run_close(controller), name=f"close-commit-{lottery_id}")
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)
            await asyncio.sleep(0)
            return JSONResponse(self._serialize_controller(controller, status), status_code=202)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    async def _read_status(self, lottery_id: int) -> LotteryStatus:
        try:
            status = await self.client.get_lottery_status(lottery_id)
        except ValueError as exc:
            raise HTTPException(status_code=404, detail=f"Lottery {lottery_id} unavailable: {exc}")
        except Exception as exc:
            logger.warning("Failed to read lottery %s: %s", lottery_id, exc)
            raise HTTPException(status_code=503, detail="Chain read failed")
        if self.watcher:
            self.watcher.refresh(status, int(self._clock()))
        return status

    def _new_controller(self, status: LotteryStatus) -> GatedTransactionController:
        controller = close_commit_controller(
            self.client, status.lottery_id, status.commit_deadline, clock=self._clock
        )
        controller.add_listener(
            lambda payload: logger.info("close-commit %s -> %s", payload["lotteryId"], payload["outcome"])
        )
        return controller

    async def _run_close(self, controller: GatedTransactionController) -> None:
        try:
            async with controller:
                await controller.execute()
        finally:
            if self._controllers.get(controller.lottery_id) is controller:
                del self._controllers[controller.lottery_id]
            if controller.attempt is not None:
                self._remember(controller.attempt)

    def _remember(self, attempt: TransactionAttempt) -> None:
        self._resolved[attempt.lottery_id] = attempt
        self._resolved.move_to_end(attempt.lottery_id)
        while len(self._resolved) > MAX_RESOLVED_ATTEMPTS:
            self._resolved.popitem(last=False)

    def _serialize_controller(self, controller: GatedTransactionController, status: LotteryStatus) -> Dict[str, Any]:
        controller.refresh()
        payload = controller.status()
        payload["canClose"] = payload.pop("canAct") and status.state == LotteryState.COMMIT_OPEN
        attempt = controller.attempt or self._resolved.get(status.lottery_id)
        if attempt is not None:
            payload["outcome"] = attempt.outcome.value
            payload["attempt"] = attempt.to_dict()
        payload["friendlyError"] = friendly_message(attempt.error_message) if attempt and attempt.error_message else None
        return payload

    # ------------------------------------------------------------------
    # Lifecycle management
    # ------------------------------------------------------------------
    @asynccontextmanager
    async def _lifespan(self, app: FastAPI) -> AsyncIterator[None]:
        yield
        await self.stop()

    async def start(self, host: str = "0.0.0.0", port: int = 6080) -> None:
        import uvicorn

        logger.info("Starting lottery client web server on %s:%s", host, port)
        config = uvicorn.Config(self.app, host=host, port=port, log_level="info", access_log=True)
        server = uvicorn.Server(config)
        try:
            await server.serve()
        finally:
            logger.info("Lottery client web server stopped")

    async def stop(self) -> None:
        logger.info("Stopping lottery client web server")
        for controller in list(self._controllers.values()):
            await controller.stop_watch()
        if self._inflight:
            # submitted transactions cannot be aborted; only stop observing them
            logger.info("%d close transactions still awaiting confirmation", len(self._inflight))
