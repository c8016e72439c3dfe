"""Human countdowns for timestamp and block-number deadlines."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict

from lottery_client.lottery.models import BlockTimeEstimate, Confidence


@dataclass(frozen=True)
class FriendlyTime:
    text: str
    is_past: bool
    remaining: int


@dataclass(frozen=True)
class BlockCountdown:
    remaining_blocks: int
    estimated_seconds: float
    urgency: str
    text: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "remainingBlocks": self.remaining_blocks,
            "estimatedSeconds": self.estimated_seconds,
            "urgency": self.urgency,
            "text": self.text,
        }


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'}"


def friendly_time(target: int, now: int, *, show_seconds: bool = True) -> FriendlyTime:
    remaining = int(target) - int(now)
    if remaining <= 0:
        return FriendlyTime("Ended", True, remaining)

    minutes = remaining // 60
    hours = minutes // 60
    days = hours // 24

    if minutes < 1:
        text = _plural(remaining, "second") if show_seconds else "Less than a minute"
    elif hours < 1:
        text = _plural(minutes, "minute")
    elif days < 1:
        text = _plural(hours, "hour")
        if minutes % 60:
            text += " " + _plural(minutes % 60, "minute")
    elif days < 7:
        text = _plural(days, "day")
        if hours % 24:
            text += " " + _plural(hours % 24, "hour")
    else:
        moment = datetime.fromtimestamp(int(target), tz=timezone.utc)
        text = moment.strftime("%b %d, %H:%M UTC")
    return FriendlyTime(text, False, remaining)


def block_countdown(target_block: int, current_block: int, estimate: BlockTimeEstimate) -> BlockCountdown:
    remaining = int(target_block) - int(current_block)
    if remaining <= 0:
        return BlockCountdown(remaining, 0.0, "green", "Block reached!")

    seconds = remaining * estimate.seconds_per_block
    if remaining <= 5:
        urgency = "red"
    elif remaining <= 10:
        urgency = "yellow"
    else:
        urgency = "green"

    marker = "*" if estimate.confidence == Confidence.LOW else ""
    text = f"{remaining} blocks remaining (~{int(seconds // 60)} min{marker})"
    return BlockCountdown(remaining, seconds, urgency, text)


def estimate_block_deadline(target_block: int, current_block: int, estimate: BlockTimeEstimate, now: int) -> int:
    """Approximate Unix time at which target_block is mined."""
    remaining = max(0, int(target_block) - int(current_block))
    return int(now + remaining * estimate.seconds_per_block)
