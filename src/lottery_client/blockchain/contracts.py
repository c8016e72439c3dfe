"""
LotteryFactory contract interface
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from lottery_client.utils.logger import get_logger

logger = get_logger(__name__)

# Subset of the LotteryFactory ABI this client calls. A full ABI file can be
# supplied through `blockchain.abi_path`.
LOTTERY_FACTORY_ABI: List[Dict[str, Any]] = [
    {
        "type": "function",
        "name": "getLotteryStatus",
        "stateMutability": "view",
        "inputs": [{"name": "lotteryId", "type": "uint256"}],
        "outputs": [
            {"name": "state", "type": "uint8"},
            {"name": "commitDeadline", "type": "uint256"},
            {"name": "revealTime", "type": "uint256"},
            {"name": "claimDeadline", "type": "uint256"},
            {"name": "createdAt", "type": "uint256"},
        ],
    },
    {
        "type": "function",
        "name": "closeCommitPeriod",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "lotteryId", "type": "uint256"}],
        "outputs": [],
    },
]


def load_abi(abi_path: Optional[str] = None) -> List[Dict[str, Any]]:
    """Load the factory ABI from a JSON file, or fall back to the built-in subset.

    Accepts either a bare ABI list or a compiler artifact with an "abi" key.
    """
    if not abi_path:
        return LOTTERY_FACTORY_ABI

    path = Path(abi_path)
    with path.open("r", encoding="utf-8") as handle:
        data = json.load(handle)
    abi = data.get("abi") if isinstance(data, dict) else data
    if not isinstance(abi, list):
        raise ValueError(f"No ABI list found in {path}")
    logger.info("Loaded ABI with %d items from %s", len(abi), path)
    return abi
