"""
Creation gate - checks lottery creation parameters before a transaction is built
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

from lottery_client.lottery.models import CreationError, CreationParams

# 1 billion ETH in wei
MAX_SAFE_AMOUNT = 10**27

ERROR_MESSAGES: Dict[CreationError, str] = {
    CreationError.EMPTY_OR_ZERO_PRIZES: "Prize sum must be greater than zero",
    CreationError.INSUFFICIENT_TICKETS: "Number of tickets must be greater than or equal to number of prizes",
    CreationError.INVERTED_DEADLINES: "Commit deadline must be before reveal time",
    CreationError.AMOUNT_OUT_OF_BOUNDS: "Total amount must be greater than zero and within safe bounds",
    CreationError.PRIZE_SUM_MISMATCH: "Sum of prizes must equal total amount",
}


@dataclass(frozen=True)
class ValidationResult:
    error: Optional[CreationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def message(self) -> Optional[str]:
        return ERROR_MESSAGES[self.error] if self.error else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "error": self.error.value if self.error else None,
            "message": self.message,
        }


def validate_prize_sum(prizes: Sequence[int]) -> bool:
    """True when there is at least one prize and the prizes sum above zero."""
    if not prizes:
        return False
    return sum(prizes) > 0


def validate_ticket_count(tickets: int, prizes: int) -> bool:
    return tickets >= prizes and tickets > 0 and prizes > 0


def validate_deadlines(commit_deadline: int, reveal_time: int) -> bool:
    return commit_deadline < reveal_time


def validate_amount(amount: int) -> bool:
    return 0 < amount < MAX_SAFE_AMOUNT


def validate_creation(params: CreationParams) -> ValidationResult:
    """Run every creation check in order; the first failing check wins."""
    if not validate_prize_sum(params.prizes):
        return ValidationResult(CreationError.EMPTY_OR_ZERO_PRIZES)

    if not validate_ticket_count(params.ticket_count, len(params.prizes)):
        return ValidationResult(CreationError.INSUFFICIENT_TICKETS)

    if not validate_deadlines(params.commit_deadline, params.reveal_time):
        return ValidationResult(CreationError.INVERTED_DEADLINES)

    if not validate_amount(params.total_amount):
        return ValidationResult(CreationError.AMOUNT_OUT_OF_BOUNDS)

    if sum(params.prizes) != params.total_amount:
        return ValidationResult(CreationError.PRIZE_SUM_MISMATCH)

    return ValidationResult()
