"""Request preflight checks for the coin command-line surface."""

from __future__ import annotations

import re
from typing import Any

SUI_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{1,64}$")
COIN_TYPE_RE = re.compile(r"^0x[0-9a-fA-F]{1,64}::[A-Za-z_][A-Za-z0-9_]*::[A-Za-z_][A-Za-z0-9_]*(<.+>)?$")
DECIMAL_RE = re.compile(r"^[0-9]+$")

MAX_SPLIT_AMOUNTS = 512
MAX_MERGE_COINS = 511


def _is_sui_address(value: Any) -> bool:
    return isinstance(value, str) and bool(SUI_ADDRESS_RE.fullmatch(value))


def _is_coin_type(value: Any) -> bool:
    return isinstance(value, str) and bool(COIN_TYPE_RE.fullmatch(value.strip()))


def _is_decimal(value: Any) -> bool:
    return isinstance(value, str) and bool(DECIMAL_RE.fullmatch(value))


def validate_address(value: Any, *, field: str = "address") -> tuple[bool, str]:
    if not _is_sui_address(value):
        return False, f"{field} must be a 0x-prefixed hex address (up to 32 bytes)"
    return True, ""


def validate_coin_type(value: Any, *, field: str = "coin_type") -> tuple[bool, str]:
    if not _is_coin_type(value):
        return False, f"{field} must look like 0x...::module::TYPE"
    return True, ""


def validate_amounts(values: Any) -> tuple[bool, str]:
    if not isinstance(values, list) or not values:
        return False, "amounts must be a non-empty list"
    if len(values) > MAX_SPLIT_AMOUNTS:
        return False, f"amounts cannot exceed {MAX_SPLIT_AMOUNTS} entries"
    for value in values:
        if not _is_decimal(value):
            return False, f"amount must be a non-negative decimal integer: {value}"
    return True, ""


def validate_gas_budget(value: Any) -> tuple[bool, str]:
    if value is None:
        return True, ""
    if not _is_decimal(value) or int(value) <= 0:
        return False, "gas budget must be a positive decimal integer"
    return True, ""


def validate_coin_request(command: str, request: dict[str, Any]) -> tuple[bool, str]:
    """Return (ok, message) for a split/merge/transfer request."""
    ok, msg = validate_coin_type(request.get("coin_type"))
    if not ok:
        return False, f"{command}: {msg}"
    ok, msg = validate_gas_budget(request.get("gas_budget"))
    if not ok:
        return False, f"{command}: {msg}"

    if command == "split":
        ok, msg = validate_address(request.get("coin_id"), field="coin_id")
        if not ok:
            return False, f"split: {msg}"
        ok, msg = validate_amounts(request.get("amounts"))
        return (ok, f"split: {msg}" if not ok else "")

    if command == "merge":
        ok, msg = validate_address(request.get("primary_coin_id"), field="primary_coin_id")
        if not ok:
            return False, f"merge: {msg}"
        coin_ids = request.get("coin_ids")
        if not isinstance(coin_ids, list) or not coin_ids:
            return False, "merge: coin_ids must be a non-empty list"
        if len(coin_ids) > MAX_MERGE_COINS:
            return False, f"merge: coin_ids cannot exceed {MAX_MERGE_COINS} entries"
        for coin_id in coin_ids:
            if not _is_sui_address(coin_id):
                return False, f"merge: invalid coin id {coin_id}"
        if request.get("primary_coin_id") in coin_ids:
            return False, "merge: primary coin cannot also be merged into itself"
        return True, ""

    if command == "transfer":
        ok, msg = validate_address(request.get("coin_id"), field="coin_id")
        if not ok:
            return False, f"transfer: {msg}"
        ok, msg = validate_address(request.get("to"), field="to")
        if not ok:
            return False, f"transfer: {msg}"
        if not _is_decimal(request.get("amount")):
            return False, "transfer: amount must be a non-negative decimal integer"
        return True, ""

    return False, f"unknown coin command: {command}"
