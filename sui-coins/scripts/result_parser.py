"""Turn raw `sui client` output into the uniform coin operation result.

Two formats come back from the CLI: JSON transaction responses (native subcommands, and
PTBs outside dry-run) and the plain-text summary printed by `sui client ptb --dry-run`.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from cli_executor import extract_json, strip_ansi
from error_map import ERR_EXECUTION_FAILED, ERR_PARSE_FAILED

logger = logging.getLogger(__name__)

PARSE_FAILURE_MESSAGE = "Failed to parse transaction result"
DRY_RUN_PARSE_FAILURE_MESSAGE = "Failed to parse dry run result"
DRY_RUN_FAILED_MESSAGE = "Dry run failed"
TRANSACTION_FAILED_MESSAGE = "Transaction failed"
MAX_ERROR_CHARS = 500

STATUS_RE = re.compile(r"execution status:\s*(\w+)", re.IGNORECASE)
GAS_ESTIMATE_RE = re.compile(r"Estimated gas cost[^:]*:\s*(\d+)\s*MIST", re.IGNORECASE)
FAILURE_REASON_RE = re.compile(r"execution status:\s*failure\s+due\s+to\s+([^\n]+)", re.IGNORECASE)
PATH_FRAGMENT_RE = re.compile(r"/[^\s]+/")
ERROR_PREFIX_RE = re.compile(r"Error:\s*")

# Abort substrings with a friendlier phrasing; anything else passes through verbatim.
KNOWN_ABORT_MESSAGES = (
    ("InsufficientCoinBalance", "Insufficient balance for this split"),
    ("InvalidResultArity", "Invalid transaction structure"),
)


def sanitize_error(message: Any) -> str:
    text = strip_ansi(str(message))
    text = PATH_FRAGMENT_RE.sub("", text)
    text = ERROR_PREFIX_RE.sub("", text).strip()
    if len(text) > MAX_ERROR_CHARS:
        text = text[: MAX_ERROR_CHARS - 3].rstrip() + "..."
    return text


def operation_failure(message: Any, error_code: str | None = None, **extra: Any) -> dict[str, Any]:
    result: dict[str, Any] = {"success": False, "error": sanitize_error(message)}
    if error_code:
        result["errorCode"] = error_code
    result.update(extra)
    return result


def _parse_cost(value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, bool):
        raise ValueError("gas cost cannot be boolean")
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if not text.isdigit():
        raise ValueError(f"gas cost must be a decimal integer: {text}")
    return int(text, 10)


def net_gas_used(effects: dict[str, Any]) -> str:
    """computationCost + storageCost - storageRebate, in MIST. Can be negative."""
    gas = effects.get("gasUsed")
    if not isinstance(gas, dict):
        return "0"
    total = (
        _parse_cost(gas.get("computationCost"))
        + _parse_cost(gas.get("storageCost"))
        - _parse_cost(gas.get("storageRebate"))
    )
    return str(total)


def _created_object_ids(effects: dict[str, Any]) -> list[str]:
    ids: list[str] = []
    created = effects.get("created")
    if not isinstance(created, list):
        return ids
    for obj in created:
        reference = obj.get("reference") if isinstance(obj, dict) else None
        if isinstance(reference, dict) and reference.get("objectId"):
            ids.append(str(reference["objectId"]))
    return ids


def _effects_outcome(data: Any) -> tuple[bool, dict[str, Any], str]:
    """Return (ok, partial_result, error_message) from a decoded transaction response."""
    if not isinstance(data, dict):
        return False, {}, "transaction response must be a JSON object"
    effects = data.get("effects")
    if not isinstance(effects, dict):
        return False, {}, "transaction response has no effects"
    status_obj = effects.get("status")
    status = status_obj.get("status") if isinstance(status_obj, dict) else None
    try:
        gas_used = net_gas_used(effects)
    except ValueError as err:
        return False, {}, str(err)

    success = status == "success"
    result: dict[str, Any] = {"success": success, "gasUsed": gas_used}
    if not success:
        reason = status_obj.get("error") if isinstance(status_obj, dict) else None
        result["error"] = sanitize_error(reason or TRANSACTION_FAILED_MESSAGE)
        result["errorCode"] = ERR_EXECUTION_FAILED
    return True, result, ""


def parse_transaction_output(output: str) -> dict[str, Any]:
    """Structured parse of a JSON transaction response."""
    ok, data, err = extract_json(output)
    if ok:
        ok, result, err = _effects_outcome(data)
    if not ok:
        logger.warning("unparseable transaction output: %s", err)
        return operation_failure(PARSE_FAILURE_MESSAGE, ERR_PARSE_FAILED)

    effects = data["effects"]
    digest = data.get("digest") or effects.get("transactionDigest")
    out: dict[str, Any] = {"success": result["success"]}
    if digest:
        out["digest"] = str(digest)
    out["gasUsed"] = result["gasUsed"]
    new_coin_ids = _created_object_ids(effects)
    if new_coin_ids:
        out["newCoinIds"] = new_coin_ids
    if not result["success"]:
        out["error"] = result["error"]
        out["errorCode"] = result["errorCode"]
    return out


def _rewrite_abort(reason: str) -> str:
    for needle, phrase in KNOWN_ABORT_MESSAGES:
        if needle in reason:
            return phrase
    return reason


def parse_dry_run_text(output: str) -> dict[str, Any]:
    """Free-text parse of the `sui client ptb --dry-run` summary.

    Example lines:
      Dry run completed, execution status: success
      Dry run completed, execution status: failure due to InsufficientCoinBalance in command 0
      Estimated gas cost (includes a small buffer): 2000000 MIST
    """
    text = strip_ansi(output)
    status_match = STATUS_RE.search(text)
    if status_match is None:
        logger.warning("dry run output has no execution status line")
        return operation_failure(DRY_RUN_PARSE_FAILURE_MESSAGE, ERR_PARSE_FAILED)

    gas_match = GAS_ESTIMATE_RE.search(text)
    gas_used = gas_match.group(1) if gas_match else "0"

    if status_match.group(1).lower() == "success":
        return {"success": True, "gasUsed": gas_used}

    failure_match = FAILURE_REASON_RE.search(text)
    reason = failure_match.group(1).strip() if failure_match else ""
    message = _rewrite_abort(reason) if reason else DRY_RUN_FAILED_MESSAGE
    return operation_failure(message, ERR_EXECUTION_FAILED, gasUsed=gas_used)


def parse_dry_run_output(output: str) -> dict[str, Any]:
    """Dry-run parse: JSON effects when the tool emitted them, else the text summary.

    Build log lines ahead of the JSON document are tolerated, as in the structured parse.
    """
    ok, data, _ = extract_json(output)
    if ok:
        ok, result, err = _effects_outcome(data)
        if ok:
            return result
        logger.debug("dry run JSON without usable effects, trying text summary: %s", err)
    return parse_dry_run_text(output)
