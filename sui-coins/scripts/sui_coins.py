#!/usr/bin/env python3
"""Agent-facing JSON wrapper for Sui coin queries and split/merge/transfer."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

# Local imports for script execution (python3 scripts/sui_coins.py ...)
SCRIPT_DIR = Path(__file__).resolve().parent
if str(SCRIPT_DIR) not in sys.path:
    sys.path.insert(0, str(SCRIPT_DIR))

from cli_executor import DEFAULT_TIMEOUT_SECONDS, check_installation  # noqa: E402
from coin_service import CoinService  # noqa: E402
from error_map import (  # noqa: E402
    ERR_INTERNAL,
    ERR_INVALID_REQUEST,
    ERR_NO_ACTIVE_ENDPOINT,
    ERR_POLICY_DENIED,
    ERR_PROCESS_NOT_FOUND,
)
from preflight import validate_address, validate_coin_request, validate_coin_type  # noqa: E402
from sui_config import resolve_active_endpoint, resolve_config_path  # noqa: E402

logger = logging.getLogger("sui_coins")

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_INVALID = 2
EXIT_NO_ENDPOINT = 3
EXIT_DENIED = 4

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def _json_dump(payload: Any, pretty: bool = True) -> str:
    return json.dumps(payload, indent=2 if pretty else None, sort_keys=False)


def _timestamp() -> str:
    return datetime.now(UTC).isoformat()


def _base_response(command: str) -> dict[str, Any]:
    return {
        "timestamp_utc": _timestamp(),
        "command": command,
        "status": "error",
        "ok": False,
        "error_code": ERR_INTERNAL,
        "error_message": "unset",
        "result": None,
    }


def _ok_payload(command: str, result: Any, **extra: Any) -> dict[str, Any]:
    payload = _base_response(command)
    payload.update({"status": "ok", "ok": True, "error_code": None, "error_message": None, "result": result})
    payload.update(extra)
    return payload


def _error_payload(command: str, *, code: str, message: str, status: str = "error", **extra: Any) -> dict[str, Any]:
    payload = _base_response(command)
    payload.update({"status": status, "error_code": code, "error_message": message})
    payload.update(extra)
    return payload


def _exit_code_for(error_code: str | None) -> int:
    if error_code == ERR_INVALID_REQUEST:
        return EXIT_INVALID
    if error_code == ERR_NO_ACTIVE_ENDPOINT:
        return EXIT_NO_ENDPOINT
    if error_code == ERR_POLICY_DENIED:
        return EXIT_DENIED
    return EXIT_FAILED


def _print_selected_value(value: Any, *, compact: bool) -> None:
    if isinstance(value, (dict, list)):
        print(_json_dump(value, pretty=not compact))
        return
    if value is None:
        print("null")
        return
    if isinstance(value, bool):
        print("true" if value else "false")
        return
    print(str(value))


def _render(args: argparse.Namespace, payload: dict[str, Any], exit_code: int) -> int:
    if args.result_only and payload.get("ok"):
        _print_selected_value(payload.get("result"), compact=args.compact)
    else:
        print(_json_dump(payload, pretty=not args.compact))
    return int(exit_code)


def _render_query(args: argparse.Namespace, query: dict[str, Any]) -> int:
    """Render a `{ok, error_code, error_message, result}` service payload."""
    if query["ok"]:
        return _render(args, _ok_payload(args.command, query["result"]), EXIT_OK)
    code = query.get("error_code") or ERR_INTERNAL
    payload = _error_payload(args.command, code=code, message=str(query.get("error_message") or ""))
    return _render(args, payload, _exit_code_for(code))


def _render_operation(args: argparse.Namespace, outcome: dict[str, Any], *, dry_run: bool) -> int:
    """Render an operation result `{success, digest?, gasUsed?, error?, errorCode?}`."""
    if outcome.get("success"):
        return _render(args, _ok_payload(args.command, outcome, dry_run=dry_run), EXIT_OK)
    code = outcome.get("errorCode") or ERR_INTERNAL
    payload = _error_payload(
        args.command,
        code=code,
        message=str(outcome.get("error") or ""),
        result=outcome,
        dry_run=dry_run,
    )
    return _render(args, payload, _exit_code_for(code))


def _invalid(args: argparse.Namespace, message: str) -> int:
    return _render(args, _error_payload(args.command, code=ERR_INVALID_REQUEST, message=message), EXIT_INVALID)


def _service(args: argparse.Namespace) -> CoinService:
    return CoinService(cli_timeout_seconds=args.timeout_seconds)


def _broadcast_denied(args: argparse.Namespace) -> int | None:
    if args.dry_run or args.allow_broadcast:
        return None
    payload = _error_payload(
        args.command,
        status="denied",
        code=ERR_POLICY_DENIED,
        message=f"{args.command} broadcasts a transaction; pass --allow-broadcast or use --dry-run",
    )
    return _render(args, payload, EXIT_DENIED)


def cmd_coins(args: argparse.Namespace) -> int:
    ok, msg = validate_address(args.address)
    if not ok:
        return _invalid(args, msg)
    return _render_query(args, _service(args).get_coins_grouped(args.address))


def cmd_coins_by_type(args: argparse.Namespace) -> int:
    ok, msg = validate_address(args.address)
    if ok:
        ok, msg = validate_coin_type(args.coin_type)
    if not ok:
        return _invalid(args, msg)
    return _render_query(args, _service(args).get_coins_by_type(args.address, args.coin_type))


def cmd_metadata(args: argparse.Namespace) -> int:
    ok, msg = validate_coin_type(args.coin_type)
    if not ok:
        return _invalid(args, msg)
    metadata = _service(args).get_coin_metadata(args.coin_type)
    if metadata is not None:
        return _render(args, _ok_payload(args.command, metadata.to_dict()), EXIT_OK)
    if resolve_active_endpoint() is None:
        payload = _error_payload(
            args.command,
            code=ERR_NO_ACTIVE_ENDPOINT,
            message="No active RPC URL configured",
        )
        return _render(args, payload, EXIT_NO_ENDPOINT)
    # No CoinMetadata object exists for this type.
    return _render(args, _ok_payload(args.command, None), EXIT_OK)


def cmd_gas(args: argparse.Namespace) -> int:
    ok, msg = validate_address(args.address)
    if not ok:
        return _invalid(args, msg)
    return _render_query(args, _service(args).get_gas_coins(args.address))


def cmd_split(args: argparse.Namespace) -> int:
    request = {
        "coin_id": args.coin_id,
        "coin_type": args.coin_type,
        "amounts": list(args.amounts),
        "gas_budget": args.gas_budget,
    }
    ok, msg = validate_coin_request("split", request)
    if not ok:
        return _invalid(args, msg)
    denied = _broadcast_denied(args)
    if denied is not None:
        return denied
    service = _service(args)
    op = service.dry_run_split if args.dry_run else service.split_coin
    outcome = op(args.coin_id, args.coin_type, list(args.amounts), args.gas_budget)
    return _render_operation(args, outcome, dry_run=args.dry_run)


def cmd_merge(args: argparse.Namespace) -> int:
    request = {
        "primary_coin_id": args.primary,
        "coin_ids": list(args.merge),
        "coin_type": args.coin_type,
        "gas_budget": args.gas_budget,
    }
    ok, msg = validate_coin_request("merge", request)
    if not ok:
        return _invalid(args, msg)
    denied = _broadcast_denied(args)
    if denied is not None:
        return denied
    service = _service(args)
    op = service.dry_run_merge if args.dry_run else service.merge_coins
    outcome = op(args.primary, list(args.merge), args.coin_type, args.gas_budget)
    return _render_operation(args, outcome, dry_run=args.dry_run)


def cmd_transfer(args: argparse.Namespace) -> int:
    request = {
        "coin_id": args.coin_id,
        "coin_type": args.coin_type,
        "to": args.to,
        "amount": args.amount,
        "gas_budget": args.gas_budget,
    }
    ok, msg = validate_coin_request("transfer", request)
    if not ok:
        return _invalid(args, msg)
    denied = _broadcast_denied(args)
    if denied is not None:
        return denied
    service = _service(args)
    op = service.dry_run_transfer_coin if args.dry_run else service.transfer_coin
    outcome = op(args.coin_id, args.coin_type, args.to, args.amount, args.gas_budget)
    return _render_operation(args, outcome, dry_run=args.dry_run)


def cmd_doctor(args: argparse.Namespace) -> int:
    installation = check_installation(timeout_seconds=args.timeout_seconds)
    endpoint = resolve_active_endpoint()
    result = {
        "sui": installation,
        "config_path": str(resolve_config_path()),
        "endpoint": endpoint,
    }
    if not installation["installed"]:
        payload = _error_payload(
            args.command,
            code=ERR_PROCESS_NOT_FOUND,
            message="sui CLI is not installed or not runnable",
            result=result,
        )
        return _render(args, payload, EXIT_FAILED)
    return _render(args, _ok_payload(args.command, result), EXIT_OK)


def _add_output_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--compact", action="store_true", help="compact JSON output")
    parser.add_argument("--result-only", action="store_true", help="print only result field")
    parser.add_argument("--timeout-seconds", type=float, default=DEFAULT_TIMEOUT_SECONDS)
    parser.add_argument("--log-level", choices=LOG_LEVELS, default="WARNING", help="stderr log level")


def _add_operation_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--coin-type", required=True, help="full coin type, e.g. 0x2::sui::SUI")
    parser.add_argument("--gas-budget", help="gas budget in MIST (default 50000000)")
    parser.add_argument("--dry-run", action="store_true", help="simulate without broadcasting")
    parser.add_argument("--allow-broadcast", action="store_true", help="allow submitting a real transaction")
    _add_output_args(parser)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__)
    sub = parser.add_subparsers(dest="command", required=True)

    coins_parser = sub.add_parser("coins", help="All coins owned by an address, grouped by type")
    coins_parser.add_argument("address")
    _add_output_args(coins_parser)
    coins_parser.set_defaults(func=cmd_coins)

    by_type_parser = sub.add_parser("coins-by-type", help="Coin objects of one type, largest first")
    by_type_parser.add_argument("address")
    by_type_parser.add_argument("coin_type")
    _add_output_args(by_type_parser)
    by_type_parser.set_defaults(func=cmd_coins_by_type)

    metadata_parser = sub.add_parser("metadata", help="Coin metadata (name, symbol, decimals)")
    metadata_parser.add_argument("coin_type")
    _add_output_args(metadata_parser)
    metadata_parser.set_defaults(func=cmd_metadata)

    gas_parser = sub.add_parser("gas", help="Native gas coins via `sui client gas`")
    gas_parser.add_argument("address")
    _add_output_args(gas_parser)
    gas_parser.set_defaults(func=cmd_gas)

    split_parser = sub.add_parser("split", help="Split a coin into new coins of the given amounts")
    split_parser.add_argument("--coin-id", required=True)
    split_parser.add_argument("--amounts", nargs="+", required=True, help="base-unit amounts")
    _add_operation_args(split_parser)
    split_parser.set_defaults(func=cmd_split)

    merge_parser = sub.add_parser("merge", help="Merge coins into a primary coin")
    merge_parser.add_argument("--primary", required=True, help="coin that receives the balances")
    merge_parser.add_argument("--merge", nargs="+", required=True, help="coin ids to merge and destroy")
    _add_operation_args(merge_parser)
    merge_parser.set_defaults(func=cmd_merge)

    transfer_parser = sub.add_parser("transfer", help="Send an amount split from a coin to a recipient")
    transfer_parser.add_argument("--coin-id", required=True)
    transfer_parser.add_argument("--to", required=True, help="recipient address")
    transfer_parser.add_argument("--amount", required=True, help="base-unit amount")
    _add_operation_args(transfer_parser)
    transfer_parser.set_defaults(func=cmd_transfer)

    doctor_parser = sub.add_parser("doctor", help="Report sui CLI installation and active endpoint")
    _add_output_args(doctor_parser)
    doctor_parser.set_defaults(func=cmd_doctor)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        stream=sys.stderr,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        return int(args.func(args))
    except Exception as err:  # noqa: BLE001
        logger.exception("unhandled error in %s", args.command)
        payload = _error_payload(args.command, code=ERR_INTERNAL, message=str(err))
        print(_json_dump(payload, pretty=not args.compact))
        return EXIT_FAILED


if __name__ == "__main__":
    raise SystemExit(main())
