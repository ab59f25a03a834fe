"""Coin queries and split/merge/transfer for any coin type.

Every operation method returns an operation result dict
`{success, digest?, gasUsed?, error?, errorCode?, newCoinIds?}` and never raises for
process, RPC or parse failures. Query methods return `{ok, error_code, error_message, result}`.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from cli_executor import DEFAULT_TIMEOUT_SECONDS, extract_json, run_sui
from coin_aggregator import aggregate_coins, fetch_coins_by_type, sort_coins
from coin_units import SUI_COIN_TYPE, is_native_coin_type, parse_balance
from error_map import ERR_INTERNAL, ERR_INVALID_REQUEST, ERR_NO_ACTIVE_ENDPOINT, ERR_PARSE_FAILED, ERR_PROCESS_FAILED
from metadata_cache import MetadataCache, TokenMetadata
from ptb_builder import DEFAULT_GAS_BUDGET, build_merge_command, build_split_command, build_transfer_command
from result_parser import operation_failure, parse_dry_run_output, parse_transaction_output, sanitize_error
from rpc_transport import DEFAULT_PAGE_SIZE, DEFAULT_RPC_TIMEOUT_SECONDS, RpcCaller, call_rpc
from sui_config import resolve_active_endpoint

logger = logging.getLogger(__name__)

NO_ENDPOINT_MESSAGE = "No active RPC URL configured"

NATIVE_FALLBACK_METADATA = TokenMetadata(
    coin_type=SUI_COIN_TYPE,
    name="Sui",
    symbol="SUI",
    decimals=9,
    description="Native token of the Sui network",
)

CliRunner = Callable[..., dict[str, Any]]
EndpointResolver = Callable[[], dict[str, Any] | None]


def _no_endpoint() -> dict[str, Any]:
    return {
        "ok": False,
        "error_code": ERR_NO_ACTIVE_ENDPOINT,
        "error_message": NO_ENDPOINT_MESSAGE,
        "result": None,
    }


def _query_failure(payload: dict[str, Any]) -> dict[str, Any]:
    """Failed query payload with a user-safe message and no partial result."""
    return {
        **payload,
        "error_message": sanitize_error(payload.get("error_message") or ""),
        "result": None,
    }


def _parse_amounts(raw_amounts: list[Any]) -> tuple[bool, list[int], str]:
    if not raw_amounts:
        return False, [], "at least one amount is required"
    amounts: list[int] = []
    for raw in raw_amounts:
        ok, value, err = parse_balance(raw)
        if not ok:
            return False, [], f"invalid amount: {err}"
        amounts.append(value)
    return True, amounts, ""


def _parse_gas_budget(raw: Any) -> tuple[bool, int, str]:
    if raw is None:
        return True, DEFAULT_GAS_BUDGET, ""
    ok, value, err = parse_balance(raw)
    if not ok or value <= 0:
        return False, 0, f"invalid gas budget: {err or 'must be positive'}"
    return True, value, ""


class CoinService:
    def __init__(
        self,
        *,
        run_cli: CliRunner = run_sui,
        call: RpcCaller = call_rpc,
        resolve_endpoint: EndpointResolver = resolve_active_endpoint,
        metadata_cache: MetadataCache | None = None,
        cli_timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        rpc_timeout_seconds: float = DEFAULT_RPC_TIMEOUT_SECONDS,
        page_size: int = DEFAULT_PAGE_SIZE,
    ):
        self._run_cli = run_cli
        self._call = call
        self._resolve_endpoint = resolve_endpoint
        self.metadata_cache = metadata_cache if metadata_cache is not None else MetadataCache()
        self._cli_timeout_seconds = cli_timeout_seconds
        self._rpc_timeout_seconds = rpc_timeout_seconds
        self._page_size = page_size

    # ---- queries ----

    def get_coins_grouped(self, address: str) -> dict[str, Any]:
        endpoint = self._resolve_endpoint()
        if not endpoint:
            return _no_endpoint()
        rpc_url = endpoint["rpc_url"]
        aggregated = aggregate_coins(
            rpc_url=rpc_url,
            address=address,
            network=endpoint["network"],
            metadata_lookup=lambda coin_type: self._lookup_metadata(coin_type, rpc_url),
            page_size=self._page_size,
            timeout_seconds=self._rpc_timeout_seconds,
            call=self._call,
        )
        if not aggregated["ok"]:
            return _query_failure(aggregated)
        return aggregated

    def get_coins_by_type(self, address: str, coin_type: str) -> dict[str, Any]:
        endpoint = self._resolve_endpoint()
        if not endpoint:
            return _no_endpoint()
        fetched = fetch_coins_by_type(
            rpc_url=endpoint["rpc_url"],
            address=address,
            coin_type=coin_type,
            page_size=self._page_size,
            timeout_seconds=self._rpc_timeout_seconds,
            call=self._call,
        )
        if not fetched["ok"]:
            return _query_failure(fetched)
        return {**fetched, "result": [r.to_dict() for r in sort_coins(fetched["result"])]}

    def get_coin_metadata(self, coin_type: str) -> TokenMetadata | None:
        cached = self.metadata_cache.get(coin_type)
        if cached is not None:
            return cached
        endpoint = self._resolve_endpoint()
        if not endpoint:
            return NATIVE_FALLBACK_METADATA if is_native_coin_type(coin_type) else None
        return self._lookup_metadata(coin_type, endpoint["rpc_url"])

    def _lookup_metadata(self, coin_type: str, rpc_url: str) -> TokenMetadata | None:
        cached = self.metadata_cache.get(coin_type)
        if cached is not None:
            logger.debug("metadata cache hit for %s", coin_type)
            return cached

        payload = self._call(
            rpc_url=rpc_url,
            method="suix_getCoinMetadata",
            params=[coin_type],
            timeout_seconds=self._rpc_timeout_seconds,
        )
        metadata: TokenMetadata | None = None
        if payload["ok"] and payload.get("result") is not None:
            ok, metadata, err = TokenMetadata.from_rpc(coin_type, payload["result"])
            if not ok:
                logger.warning("discarding metadata for %s: %s", coin_type, err)
                metadata = None

        if metadata is None:
            # Misses are not cached so the next request asks the node again.
            return NATIVE_FALLBACK_METADATA if is_native_coin_type(coin_type) else None
        self.metadata_cache.set(coin_type, metadata)
        return metadata

    def get_gas_coins(self, address: str) -> dict[str, Any]:
        """Native balance query: `sui client gas <address> --json`."""
        run = self._run_cli(
            ["client", "gas", address],
            want_json=True,
            timeout_seconds=self._cli_timeout_seconds,
        )
        if not run["ok"]:
            return _query_failure(run)
        ok, data, err = extract_json(run["output"])
        if not ok or not isinstance(data, list):
            logger.warning("unparseable gas listing: %s", err or "expected a JSON array")
            return {
                "ok": False,
                "error_code": ERR_PARSE_FAILED,
                "error_message": "Failed to parse gas coin listing",
                "result": None,
            }
        coins: list[dict[str, Any]] = []
        for entry in data:
            if not isinstance(entry, dict) or not entry.get("gasCoinId"):
                logger.warning("malformed gas coin entry: %r", entry)
                return {
                    "ok": False,
                    "error_code": ERR_PARSE_FAILED,
                    "error_message": "Failed to parse gas coin listing",
                    "result": None,
                }
            ok_balance, balance, err = parse_balance(entry.get("mistBalance"))
            if not ok_balance:
                logger.warning("gas coin %s has an unusable balance: %s", entry["gasCoinId"], err)
                return {
                    "ok": False,
                    "error_code": ERR_PARSE_FAILED,
                    "error_message": f"Failed to parse gas coin listing: {err}",
                    "result": None,
                }
            coins.append(
                {
                    "coinObjectId": str(entry["gasCoinId"]),
                    "coinType": SUI_COIN_TYPE,
                    "balance": str(balance),
                }
            )
        coins.sort(key=lambda c: -int(c["balance"]))
        return {"ok": True, "error_code": None, "error_message": None, "result": coins}

    def get_active_address(self) -> dict[str, Any]:
        try:
            run = self._run_cli(["client", "active-address"], timeout_seconds=self._cli_timeout_seconds)
        except Exception as err:  # noqa: BLE001
            logger.exception("sui command runner raised")
            return _query_failure({"ok": False, "error_code": ERR_INTERNAL, "error_message": str(err)})
        if not run["ok"]:
            return _query_failure(run)
        address = run["output"].strip()
        if not address:
            return {
                "ok": False,
                "error_code": ERR_PROCESS_FAILED,
                "error_message": "sui client has no active address",
                "result": None,
            }
        return {"ok": True, "error_code": None, "error_message": None, "result": address}

    # ---- operations ----

    def split_coin(self, coin_id: str, coin_type: str, amounts: list[Any], gas_budget: Any = None) -> dict[str, Any]:
        return self._split(coin_id, coin_type, amounts, gas_budget, dry_run=False)

    def dry_run_split(self, coin_id: str, coin_type: str, amounts: list[Any], gas_budget: Any = None) -> dict[str, Any]:
        return self._split(coin_id, coin_type, amounts, gas_budget, dry_run=True)

    def merge_coins(
        self,
        primary_coin_id: str,
        coin_ids_to_merge: list[str],
        coin_type: str,
        gas_budget: Any = None,
    ) -> dict[str, Any]:
        return self._merge(primary_coin_id, coin_ids_to_merge, coin_type, gas_budget, dry_run=False)

    def dry_run_merge(
        self,
        primary_coin_id: str,
        coin_ids_to_merge: list[str],
        coin_type: str,
        gas_budget: Any = None,
    ) -> dict[str, Any]:
        return self._merge(primary_coin_id, coin_ids_to_merge, coin_type, gas_budget, dry_run=True)

    def transfer_coin(self, coin_id: str, coin_type: str, to: str, amount: Any, gas_budget: Any = None) -> dict[str, Any]:
        return self._transfer(coin_id, coin_type, to, amount, gas_budget, dry_run=False)

    def dry_run_transfer_coin(
        self,
        coin_id: str,
        coin_type: str,
        to: str,
        amount: Any,
        gas_budget: Any = None,
    ) -> dict[str, Any]:
        return self._transfer(coin_id, coin_type, to, amount, gas_budget, dry_run=True)

    def _split(self, coin_id: str, coin_type: str, raw_amounts: list[Any], raw_gas: Any, *, dry_run: bool) -> dict[str, Any]:
        ok, amounts, err = _parse_amounts(list(raw_amounts))
        if not ok:
            return operation_failure(err, ERR_INVALID_REQUEST)
        ok, gas_budget, err = _parse_gas_budget(raw_gas)
        if not ok:
            return operation_failure(err, ERR_INVALID_REQUEST)

        sender: str | None = None
        if not is_native_coin_type(coin_type):
            resolved = self.get_active_address()
            if not resolved["ok"]:
                return operation_failure(resolved["error_message"], resolved["error_code"])
            sender = resolved["result"]

        try:
            command = build_split_command(
                coin_id=coin_id,
                coin_type=coin_type,
                amounts=amounts,
                sender=sender,
                gas_budget=gas_budget,
                dry_run=dry_run,
            )
        except ValueError as err:
            return operation_failure(str(err), ERR_INVALID_REQUEST)
        return self._execute(command)

    def _merge(
        self,
        primary_coin_id: str,
        coin_ids_to_merge: list[str],
        coin_type: str,
        raw_gas: Any,
        *,
        dry_run: bool,
    ) -> dict[str, Any]:
        if not coin_ids_to_merge:
            return operation_failure("at least one coin to merge is required", ERR_INVALID_REQUEST)
        if primary_coin_id in coin_ids_to_merge:
            return operation_failure("cannot merge a coin into itself", ERR_INVALID_REQUEST)
        ok, gas_budget, err = _parse_gas_budget(raw_gas)
        if not ok:
            return operation_failure(err, ERR_INVALID_REQUEST)
        logger.debug("merging %d %s coins into %s", len(coin_ids_to_merge), coin_type, primary_coin_id)
        try:
            command = build_merge_command(
                primary_coin_id=primary_coin_id,
                coin_ids_to_merge=list(coin_ids_to_merge),
                gas_budget=gas_budget,
                dry_run=dry_run,
            )
        except ValueError as err:
            return operation_failure(str(err), ERR_INVALID_REQUEST)
        return self._execute(command)

    def _transfer(
        self,
        coin_id: str,
        coin_type: str,
        to: str,
        raw_amount: Any,
        raw_gas: Any,
        *,
        dry_run: bool,
    ) -> dict[str, Any]:
        ok, amounts, err = _parse_amounts([raw_amount])
        if not ok:
            return operation_failure(err, ERR_INVALID_REQUEST)
        ok, gas_budget, err = _parse_gas_budget(raw_gas)
        if not ok:
            return operation_failure(err, ERR_INVALID_REQUEST)
        try:
            command = build_transfer_command(
                coin_id=coin_id,
                coin_type=coin_type,
                recipient=to,
                amount=amounts[0],
                gas_budget=gas_budget,
                dry_run=dry_run,
            )
        except ValueError as err:
            return operation_failure(str(err), ERR_INVALID_REQUEST)
        return self._execute(command)

    def _execute(self, command: dict[str, Any]) -> dict[str, Any]:
        try:
            run = self._run_cli(
                command["args"],
                want_json=command["want_json"],
                timeout_seconds=self._cli_timeout_seconds,
            )
        except Exception as err:  # noqa: BLE001
            logger.exception("sui command runner raised")
            return operation_failure(err, ERR_INTERNAL)
        if not run["ok"]:
            return operation_failure(run["error_message"], run["error_code"])
        if command["dry_run"]:
            return parse_dry_run_output(run["output"])
        return parse_transaction_output(run["output"])
