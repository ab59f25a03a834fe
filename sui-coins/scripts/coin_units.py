"""Big-integer balance helpers and coin type string utilities."""

from __future__ import annotations

import re
from typing import Any

SUI_COIN_TYPE = "0x2::sui::SUI"
MIST_PER_SUI = 1_000_000_000
DEFAULT_DECIMALS = 9
MIN_DISPLAY_FRACTION_DIGITS = 4

HEX_ADDRESS_RE = re.compile(r"^0x([0-9a-fA-F]{1,64})$")


def parse_balance(value: Any) -> tuple[bool, int, str]:
    """Return (ok, balance, error_message) for a u64/u128 balance field.

    The RPC encodes balances as decimal strings; ints are accepted for local callers.
    Floats are rejected so rounding can never creep into balance arithmetic.
    """
    if isinstance(value, bool):
        return False, 0, "balance cannot be boolean"
    if isinstance(value, int):
        if value < 0:
            return False, 0, "balance must be non-negative"
        return True, value, ""
    if not isinstance(value, str):
        return False, 0, "balance must be a decimal string"

    raw = value.strip()
    if not raw:
        return False, 0, "balance cannot be empty"
    if not raw.isdigit():
        return False, 0, f"balance must be a decimal integer: {raw}"
    return True, int(raw, 10), ""


def format_balance(balance: int | str, decimals: int) -> str:
    """Render base units for display: integer part, then at least four fraction digits.

    Display only; nothing downstream parses this back into arithmetic.
    """
    value = int(balance)
    places = max(0, int(decimals))
    whole, frac = divmod(value, 10**places)
    frac_str = str(frac).rjust(places, "0").rstrip("0")
    if len(frac_str) < MIN_DISPLAY_FRACTION_DIGITS:
        frac_str = frac_str.ljust(MIN_DISPLAY_FRACTION_DIGITS, "0")
    return f"{whole}.{frac_str}"


def parse_coin_type(coin_type: str) -> tuple[str, str]:
    """`0x2::sui::SUI` -> (`0x2`, `sui`)."""
    parts = coin_type.split("::")
    package_id = parts[0] if parts else ""
    module_name = parts[1] if len(parts) > 1 else ""
    return package_id, module_name


def short_symbol(coin_type: str) -> str:
    parts = coin_type.split("::")
    return parts[-1] or coin_type


def normalize_coin_type(coin_type: str) -> str:
    """Collapse the zero-padded package address so long and short forms compare equal.

    `0x0000...0002::sui::SUI` -> `0x2::sui::SUI`. Generic parameters are left untouched.
    """
    text = coin_type.strip()
    head, sep, rest = text.partition("::")
    match = HEX_ADDRESS_RE.fullmatch(head)
    if not sep or not match:
        return text
    digits = match.group(1).lstrip("0").lower() or "0"
    return f"0x{digits}::{rest}"


def is_native_coin_type(coin_type: str) -> bool:
    return normalize_coin_type(coin_type) == SUI_COIN_TYPE
