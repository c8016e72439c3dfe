"""Core data models for the commit-reveal lottery client."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional, Tuple


class LotteryState(IntEnum):
    """Lottery states as reported by the factory contract's `getLotteryStatus`."""

    PENDING = 0
    COMMIT_OPEN = 1
    REVEAL_OPEN = 2
    FINALIZED = 3


class Confidence(str, Enum):
    """Coarse reliability label on a block-time estimate."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class BlockSample:
    """One observation of the chain head: block number and local wall-clock time."""

    block_number: int
    observed_at: float


@dataclass(frozen=True)
class BlockTimeEstimate:
    seconds_per_block: float
    confidence: Confidence
    sample_size: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "secondsPerBlock": self.seconds_per_block,
            "confidence": self.confidence.value,
            "sampleSize": self.sample_size,
        }


@dataclass(frozen=True)
class LotteryStatus:
    """Normalized result of `LotteryFactory.getLotteryStatus(lotteryId)`."""

    lottery_id: int
    state: LotteryState
    commit_deadline: int
    reveal_time: int
    claim_deadline: int
    created_at: int = 0


@dataclass(frozen=True)
class Phase:
    label: str
    deadline: Optional[int]
    is_active: bool
    is_complete: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "deadline": self.deadline,
            "isActive": self.is_active,
            "isComplete": self.is_complete,
        }


@dataclass(frozen=True)
class LotteryTimeline:
    """Ordered Commit, Reveal, Claim and Finalized phases for one lottery."""

    phases: Tuple[Phase, Phase, Phase, Phase]
    needs_close: bool = False

    @property
    def active_phase(self) -> Optional[Phase]:
        for phase in self.phases:
            if phase.is_active:
                return phase
        return None

    def to_dict(self) -> Dict[str, Any]:
        active = self.active_phase
        return {
            "phases": [phase.to_dict() for phase in self.phases],
            "activePhase": active.label if active else None,
            "needsClose": self.needs_close,
        }


@dataclass
class CreationParams:
    """Input to the lottery creation gate. Amounts are in the smallest denomination (wei)."""

    prizes: List[int]
    ticket_count: int
    commit_deadline: int
    reveal_time: int
    total_amount: int


class CreationError(str, Enum):
    EMPTY_OR_ZERO_PRIZES = "EmptyOrZeroPrizes"
    INSUFFICIENT_TICKETS = "InsufficientTickets"
    INVERTED_DEADLINES = "InvertedDeadlines"
    AMOUNT_OUT_OF_BOUNDS = "AmountOutOfBounds"
    PRIZE_SUM_MISMATCH = "PrizeSumMismatch"


class TxOutcome(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    CONFIRMING = "confirming"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class FailureKind(str, Enum):
    DEADLINE_NOT_REACHED = "DeadlineNotReached"
    WRONG_LOTTERY_STATE = "WrongLotteryState"
    USER_CANCELLED = "UserCancelled"
    UNKNOWN = "Unknown"


@dataclass
class TransactionAttempt:
    """State of one user-initiated gated action, from trigger to resolution."""

    action: str
    lottery_id: int
    deadline: int
    outcome: TxOutcome = TxOutcome.IDLE
    submitted_at: Optional[int] = None
    transaction_hash: Optional[str] = None
    failure: Optional[FailureKind] = None
    error_message: Optional[str] = None
    receipt: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_loading(self) -> bool:
        return self.outcome in (TxOutcome.PENDING, TxOutcome.CONFIRMING)

    @property
    def is_resolved(self) -> bool:
        return self.outcome in (TxOutcome.CONFIRMED, TxOutcome.FAILED)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action,
            "lotteryId": self.lottery_id,
            "deadline": self.deadline,
            "outcome": self.outcome.value,
            "submittedAt": self.submitted_at,
            "transactionHash": self.transaction_hash,
            "failure": self.failure.value if self.failure else None,
            "error": self.error_message,
            "receipt": dict(self.receipt),
        }
