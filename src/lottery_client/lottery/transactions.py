"""Gated on-chain actions: local deadline gate, submission, confirmation, classified failure.

A controller drives one action (by default ``closeCommitPeriod``) for one
lottery. It never raises to its caller; every outcome, including local gate
rejections and network errors, ends up on the returned TransactionAttempt.
The controller does not serialize invocations itself. Consumers read
``is_loading`` and disable their trigger while an attempt is in flight.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence

from lottery_client.lottery.errors import classify_error, error_text, failure_message
from lottery_client.lottery.models import FailureKind, TransactionAttempt, TxOutcome
from lottery_client.utils.common import shorten_hex
from lottery_client.utils.logger import get_logger

logger = get_logger(__name__)

CLOSE_COMMIT_ACTION = "closeCommitPeriod"


class TransactionCapability(Protocol):
    async def submit(self, action: str, args: Sequence[Any]) -> str:
        ...

    async def await_confirmation(self, tx_hash: str) -> Dict[str, Any]:
        ...


class GatedTransactionController:
    """Single-action controller over one lottery id and one enforced deadline."""

    def __init__(
        self,
        capability: TransactionCapability,
        action: str,
        args: Sequence[Any],
        lottery_id: int,
        deadline: int,
        *,
        clock: Callable[[], float] = time.time,
        poll_interval: float = 1.0,
    ) -> None:
        self._capability = capability
        self.action = action
        self.args = tuple(args)
        self.lottery_id = lottery_id
        self.deadline = int(deadline)
        self._clock = clock
        self._poll_interval = poll_interval
        self._attempt: Optional[TransactionAttempt] = None
        self._listeners: List[Callable[[dict], None]] = []
        self._watch_task: Optional[asyncio.Task] = None
        self._can_act = False
        self.refresh()

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------
    @property
    def attempt(self) -> Optional[TransactionAttempt]:
        return self._attempt

    @property
    def outcome(self) -> TxOutcome:
        return self._attempt.outcome if self._attempt else TxOutcome.IDLE

    @property
    def is_loading(self) -> bool:
        return bool(self._attempt and self._attempt.is_loading)

    @property
    def can_act(self) -> bool:
        return self._can_act

    @property
    def error_message(self) -> Optional[str]:
        return self._attempt.error_message if self._attempt else None

    def add_listener(self, callback: Callable[[dict], None]) -> None:
        self._listeners.append(callback)

    def status(self) -> Dict[str, Any]:
        return {
            "action": self.action,
            "lotteryId": self.lottery_id,
            "deadline": self.deadline,
            "canAct": self._can_act,
            "isLoading": self.is_loading,
            "outcome": self.outcome.value,
            "attempt": self._attempt.to_dict() if self._attempt else None,
        }

    def refresh(self) -> bool:
        """Re-evaluate the deadline gate against the clock."""
        self._can_act = int(self._clock()) >= self.deadline
        return self._can_act

    def update_deadline(self, deadline: int) -> None:
        self.deadline = int(deadline)
        self.refresh()

    def reset(self) -> None:
        if self.is_loading:
            raise RuntimeError("Cannot reset while a transaction is in flight")
        self._attempt = None

    # ------------------------------------------------------------------
    # Deadline watch
    # ------------------------------------------------------------------
    async def __aenter__(self) -> "GatedTransactionController":
        await self.start_watch()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop_watch()

    async def start_watch(self) -> None:
        if self._watch_task is not None:
            return
        self._watch_task = asyncio.create_task(
            self._watch_loop(), name=f"{self.action}-gate-{self.lottery_id}"
        )

    async def stop_watch(self) -> None:
        task, self._watch_task = self._watch_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _watch_loop(self) -> None:
        while True:
            self.refresh()
            await asyncio.sleep(self._poll_interval)

    # ------------------------------------------------------------------
    # Action
    # ------------------------------------------------------------------
    async def execute(self) -> TransactionAttempt:
        if self.is_loading:
            logger.warning(
                "%s for lottery %s invoked while a previous attempt is %s",
                self.action, self.lottery_id, self.outcome.value,
            )

        if not self.refresh():
            logger.info("%s for lottery %s rejected locally: deadline %s not reached", self.action, self.lottery_id, self.deadline)
            return self.reject(FailureKind.DEADLINE_NOT_REACHED)

        attempt = TransactionAttempt(action=self.action, lottery_id=self.lottery_id, deadline=self.deadline)
        self._attempt = attempt
        attempt.submitted_at = int(self._clock())
        self._transition(attempt, TxOutcome.PENDING)
        try:
            tx_hash = await self._capability.submit(self.action, self.args)
        except Exception as exc:
            logger.error("%s submission failed for lottery %s: %s", self.action, self.lottery_id, exc)
            self._fail_from(attempt, exc)
            return attempt

        attempt.transaction_hash = tx_hash
        logger.info("%s for lottery %s submitted: %s", self.action, self.lottery_id, shorten_hex(tx_hash))
        self._transition(attempt, TxOutcome.CONFIRMING)

        try:
            receipt = await self._capability.await_confirmation(tx_hash)
        except Exception as exc:
            logger.error("%s confirmation failed for %s: %s", self.action, shorten_hex(tx_hash), exc)
            self._fail_from(attempt, exc)
            return attempt

        attempt.receipt = dict(receipt or {})
        if int(attempt.receipt.get("status", 1)) == 0:
            logger.error("%s transaction %s reverted", self.action, shorten_hex(tx_hash))
            self._fail_from(attempt, "Transaction reverted")
            return attempt

        self._transition(attempt, TxOutcome.CONFIRMED)
        logger.info("%s for lottery %s confirmed in block %s", self.action, self.lottery_id, attempt.receipt.get("blockNumber"))
        return attempt

    def reject(self, kind: FailureKind, message: Optional[str] = None) -> TransactionAttempt:
        """Record a failed attempt without touching the network."""
        attempt = TransactionAttempt(action=self.action, lottery_id=self.lottery_id, deadline=self.deadline)
        self._attempt = attempt
        self._fail(attempt, kind, message or failure_message(kind, kind.value))
        return attempt

    def _fail_from(self, attempt: TransactionAttempt, error: Any) -> None:
        kind = classify_error(error)
        self._fail(attempt, kind, failure_message(kind, error_text(error)))

    def _fail(self, attempt: TransactionAttempt, kind: FailureKind, message: str) -> None:
        attempt.failure = kind
        attempt.error_message = message
        self._transition(attempt, TxOutcome.FAILED)

    def _transition(self, attempt: TransactionAttempt, outcome: TxOutcome) -> None:
        attempt.outcome = outcome
        if attempt is not self._attempt:
            # superseded by a newer attempt; nobody is watching this one
            return
        payload = attempt.to_dict()
        for callback in list(self._listeners):
            try:
                callback(payload)
            except Exception as exc:
                logger.error("Transaction listener for %s failed: %s", self.action, exc)


def close_commit_controller(
    capability: TransactionCapability,
    lottery_id: int,
    commit_deadline: int,
    **kwargs: Any,
) -> GatedTransactionController:
    """Controller for `closeCommitPeriod(lotteryId)`, gated on the commit deadline."""
    return GatedTransactionController(
        capability,
        CLOSE_COMMIT_ACTION,
        (lottery_id,),
        lottery_id,
        commit_deadline,
        **kwargs,
    )
