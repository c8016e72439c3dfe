"""Lottery phase derivation.

Elapsed time decides whether a deadline has lapsed; the on-chain state decides
whether anyone has acted on it. A lottery whose commit deadline and reveal time
have both passed while the chain still reports COMMIT_OPEN shows Commit as
complete and Reveal as neither active nor complete, which is the signal that
someone has to send the close transaction.
"""

from __future__ import annotations

from lottery_client.lottery.models import LotteryState, LotteryStatus, LotteryTimeline, Phase

COMMIT_LABEL = "Commit Phase"
REVEAL_LABEL = "Reveal"
CLAIM_LABEL = "Claim Period"
FINALIZED_LABEL = "Finalized"


def derive_phases(
    commit_deadline: int,
    reveal_time: int,
    claim_deadline: int,
    state: LotteryState,
    now: int,
) -> LotteryTimeline:
    state = LotteryState(state)
    committing = state == LotteryState.COMMIT_OPEN
    revealed = state >= LotteryState.REVEAL_OPEN
    finalized = state == LotteryState.FINALIZED

    commit = Phase(
        label=COMMIT_LABEL,
        deadline=commit_deadline,
        is_active=committing and now < commit_deadline,
        # a chain already past commit wins over a lagging local clock
        is_complete=now >= commit_deadline or revealed,
    )
    reveal = Phase(
        label=REVEAL_LABEL,
        deadline=reveal_time,
        is_active=committing and commit_deadline <= now < reveal_time,
        is_complete=revealed,
    )
    claim = Phase(
        label=CLAIM_LABEL,
        deadline=claim_deadline,
        is_active=state == LotteryState.REVEAL_OPEN,
        is_complete=finalized,
    )
    final = Phase(
        label=FINALIZED_LABEL,
        deadline=None,
        is_active=finalized,
        is_complete=finalized,
    )
    return LotteryTimeline(
        phases=(commit, reveal, claim, final),
        needs_close=committing and now >= commit_deadline,
    )


def timeline_for(status: LotteryStatus, now: int) -> LotteryTimeline:
    return derive_phases(
        status.commit_deadline,
        status.reveal_time,
        status.claim_deadline,
        status.state,
        now,
    )
