"""Common utility functions for the lottery client."""

from typing import Any, List


def shorten_hex(value: str) -> str:
    """Shorten an address or transaction hash for display: '0x123456...abcd'.

    Returns the first 6 and last 4 hex characters, separated by '...'.
    Handles values with or without the '0x' prefix.
    """
    if not value:
        return ""
    text = value.lower()
    if text.startswith("0x"):
        text = text[2:]
    if len(text) < 10:
        return f"0x{text}"  # too short to shorten, but ensure 0x
    return f"0x{text[:6]}...{text[-4:]}"


def parse_id_list(raw: Any) -> List[int]:
    """Parse lottery ids from a list or a comma-separated string."""
    if raw is None or raw == "":
        return []
    if isinstance(raw, (list, tuple)):
        return [int(item) for item in raw]
    return [int(part) for part in str(raw).split(",") if part.strip()]
