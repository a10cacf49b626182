"""Helius transaction notifications -> canonical SwapEvent."""

import math
from typing import Any

from chartfeed.models.market import SwapEvent

TRANSACTION_NOTIFICATION = "transactionNotification"
SWAP_TYPE = "SWAP"


def parse_notification(message: Any) -> SwapEvent | None:
    """Map a decoded feed message to a SwapEvent, or None if it is not a trade."""
    if not isinstance(message, dict) or message.get("method") != TRANSACTION_NOTIFICATION:
        return None

    params = message.get("params")
    if not isinstance(params, dict):
        return None
    return parse_transaction(params.get("result"))


def parse_transaction(transaction: Any) -> SwapEvent | None:
    if not isinstance(transaction, dict):
        return None

    events = transaction.get("events") or {}
    is_swap = transaction.get("type") == SWAP_TYPE or (
        isinstance(events, dict) and bool(events.get("swap"))
    )
    if not is_swap:
        return None

    return extract_swap(transaction)


def extract_swap(transaction: dict[str, Any]) -> SwapEvent | None:
    """Build a SwapEvent from the token transfers of a swap transaction.

    The first positive transfer is the input leg and the first negative
    transfer the output leg. Returns None when either leg is missing or the
    resulting price would be zero, negative or non-finite.
    """
    transfers = transaction.get("tokenTransfers") or []
    if not isinstance(transfers, list) or len(transfers) < 2:
        return None

    try:
        input_transfer = next((t for t in transfers if float(t["tokenAmount"]) > 0), None)
        output_transfer = next((t for t in transfers if float(t["tokenAmount"]) < 0), None)
        if input_transfer is None or output_transfer is None:
            return None

        amount_in = abs(float(input_transfer["tokenAmount"]))
        amount_out = abs(float(output_transfer["tokenAmount"]))
        if amount_in == 0:
            return None

        price = amount_out / amount_in
        if not math.isfinite(price) or price <= 0:
            return None

        return SwapEvent(
            signature=str(transaction["signature"]),
            timestamp=float(transaction["timestamp"]),
            price=price,
            volume=amount_in,
            token_in=str(input_transfer["mint"]),
            token_out=str(output_transfer["mint"]),
            amount_in=amount_in,
            amount_out=amount_out,
        )
    except (KeyError, TypeError, ValueError):
        return None
