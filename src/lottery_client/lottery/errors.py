"""Classification of transaction errors reported by the wallet, RPC node or contract.

Upstream errors only reach us as text (web3.py wraps JSON-RPC failures in
exception messages and raises ContractCustomError carrying only the 4-byte
selector of a custom revert), so classification first resolves known
selectors to error names, then looks up known signatures in a closed table,
with UNKNOWN as the fallback that keeps the raw message for diagnostics.
"""

from __future__ import annotations

import re
from typing import Dict, Optional, Tuple, Union

from web3 import Web3

from lottery_client.lottery.models import FailureKind

# EIP-1193 "User Rejected Request"
USER_REJECTED_CODE = 4001

FAILURE_SIGNATURES: Tuple[Tuple[str, FailureKind], ...] = (
    ("CommitPeriodNotClosed", FailureKind.DEADLINE_NOT_REACHED),
    ("InvalidState", FailureKind.WRONG_LOTTERY_STATE),
    ("User rejected", FailureKind.USER_CANCELLED),
    ("User denied", FailureKind.USER_CANCELLED),
)

FAILURE_MESSAGES: Dict[FailureKind, str] = {
    FailureKind.DEADLINE_NOT_REACHED: "Commit deadline has not passed yet",
    FailureKind.WRONG_LOTTERY_STATE: "Lottery is not in the correct state",
    FailureKind.USER_CANCELLED: "Transaction cancelled",
}

CONTRACT_ERROR_MESSAGES: Dict[str, str] = {
    "CommitDeadlinePassed": "Commit period has ended",
    "CommitPeriodNotClosed": "Commit period must be closed before revealing",
    "RandomnessBlockNotReached": "Please wait for randomness block to arrive",
    "BlockhashExpired": "Reveal window expired, lottery can be refunded",
    "BlockhashUnavailable": "Block hash unavailable, please try again",
    "InvalidCreatorSecret": "Invalid creator secret",
    "TicketNotCommitted": "You must commit before claiming",
    "TicketAlreadyRedeemed": "Prize already claimed",
    "TicketAlreadyCommitted": "This ticket has already been committed",
    "InvalidTicketSecret": "Invalid ticket secret",
    "InvalidTicketIndex": "Invalid ticket index",
    "ClaimDeadlinePassed": "Claim deadline has passed",
    "InsufficientPrizePool": "Insufficient prize pool",
    "UnauthorizedCaller": "You are not authorized to perform this action",
    "InvalidPrizeSum": "Prize sum must equal total amount",
    "InvalidDeadlines": "Deadlines must be in correct order",
    "InvalidArrayLengths": "Array lengths must match",
    "InvalidState": "Lottery is not in the correct state",
}

_SELECTOR_PATTERN = re.compile(r"0x[0-9a-fA-F]{8}")


def error_selector(name: str) -> str:
    """4-byte selector of an argument-less custom error, as 0x-prefixed hex."""
    return Web3.to_hex(Web3.keccak(text=f"{name}()")[:4])


CUSTOM_ERROR_SELECTORS: Dict[str, str] = {error_selector(name): name for name in CONTRACT_ERROR_MESSAGES}


def custom_error_name(error: Union[BaseException, str, None]) -> Optional[str]:
    """Resolve the custom error behind a revert from its selector, if known."""
    candidates = [error_text(error)]
    data = getattr(error, "data", None)
    if isinstance(data, str):
        candidates.insert(0, data)
    for text in candidates:
        for selector in _SELECTOR_PATTERN.findall(text):
            name = CUSTOM_ERROR_SELECTORS.get(selector.lower())
            if name:
                return name
    return None


def error_text(error: Union[BaseException, str, None]) -> str:
    if error is None:
        return ""
    if isinstance(error, BaseException):
        return str(error) or error.__class__.__name__
    return str(error)


def _error_code(error: Union[BaseException, str, None]) -> Optional[int]:
    if not isinstance(error, BaseException):
        return None
    code = getattr(error, "code", None)
    if code is None and error.args and isinstance(error.args[0], dict):
        code = error.args[0].get("code")
    try:
        return int(code) if code is not None else None
    except (TypeError, ValueError):
        return None


def classify_error(error: Union[BaseException, str, None]) -> FailureKind:
    if _error_code(error) == USER_REJECTED_CODE:
        return FailureKind.USER_CANCELLED

    text = error_text(error)
    name = custom_error_name(error)
    if name:
        text = f"{text} {name}"
    text = text.lower()
    for signature, kind in FAILURE_SIGNATURES:
        if signature.lower() in text:
            return kind
    return FailureKind.UNKNOWN


def failure_message(kind: FailureKind, raw: str) -> str:
    """Human text for a classified failure; UNKNOWN surfaces the raw message."""
    return FAILURE_MESSAGES.get(kind, raw)


def friendly_message(raw: str) -> str:
    """Map contract custom errors and common wallet errors to user-facing text."""
    decoded = custom_error_name(raw)
    if decoded:
        return CONTRACT_ERROR_MESSAGES[decoded]
    for name, message in CONTRACT_ERROR_MESSAGES.items():
        if name in raw:
            return message

    lowered = raw.lower()
    if "user rejected" in lowered or "user denied" in lowered:
        return "Transaction cancelled"
    if "insufficient funds" in lowered or "insufficientfunds" in lowered:
        return "Insufficient ETH for transaction"
    if "network" in lowered:
        return "Network error, please try again"
    if "nonce" in lowered:
        return "Transaction nonce error, please try again"
    return raw
