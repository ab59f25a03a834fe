"""Fetch every coin object owned by an address and fold them into display groups."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable

from coin_units import DEFAULT_DECIMALS, format_balance, is_native_coin_type, parse_balance, parse_coin_type, short_symbol
from error_map import ERR_RPC_TRANSPORT
from known_tokens import UNKNOWN_TOKEN_PRIORITY, get_known_token, is_verified_token, token_priority
from metadata_cache import TokenMetadata
from rpc_transport import DEFAULT_PAGE_SIZE, DEFAULT_RPC_TIMEOUT_SECONDS, RpcCaller, call_rpc, collect_pages

logger = logging.getLogger(__name__)

MAX_METADATA_WORKERS = 8

MetadataLookup = Callable[[str], TokenMetadata | None]


@dataclass(frozen=True)
class CoinRecord:
    coin_object_id: str
    coin_type: str
    balance: int
    version: str
    digest: str

    @classmethod
    def from_rpc(cls, raw: Any) -> tuple[bool, CoinRecord | None, str]:
        """Decode one `suix_getAllCoins` / `suix_getCoins` entry."""
        if not isinstance(raw, dict):
            return False, None, "coin entry must be an object"
        object_id = raw.get("coinObjectId")
        coin_type = raw.get("coinType")
        if not isinstance(object_id, str) or not object_id:
            return False, None, "coin entry missing coinObjectId"
        if not isinstance(coin_type, str) or not coin_type:
            return False, None, f"coin {object_id} missing coinType"
        ok, balance, err = parse_balance(raw.get("balance"))
        if not ok:
            return False, None, f"coin {object_id}: {err}"
        return True, cls(
            coin_object_id=object_id,
            coin_type=coin_type,
            balance=balance,
            version=str(raw.get("version", "")),
            digest=str(raw.get("digest", "")),
        ), ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "coinObjectId": self.coin_object_id,
            "coinType": self.coin_type,
            "balance": str(self.balance),
            "version": self.version,
            "digest": self.digest,
        }


def _decode_records(items: list[Any]) -> tuple[bool, list[CoinRecord], str]:
    records: list[CoinRecord] = []
    for item in items:
        ok, record, err = CoinRecord.from_rpc(item)
        if not ok or record is None:
            return False, [], err
        records.append(record)
    return True, records, ""


def _fetch_records(
    *,
    rpc_url: str,
    method: str,
    base_params: list[Any],
    page_size: int,
    timeout_seconds: float,
    call: RpcCaller,
) -> dict[str, Any]:
    pages = collect_pages(
        rpc_url=rpc_url,
        method=method,
        base_params=base_params,
        page_size=page_size,
        timeout_seconds=timeout_seconds,
        call=call,
    )
    if not pages["ok"]:
        return pages
    ok, records, err = _decode_records(pages["result"])
    if not ok:
        return {
            "ok": False,
            "error_code": ERR_RPC_TRANSPORT,
            "error_message": f"{method} returned a malformed coin: {err}",
            "result": None,
        }
    return {"ok": True, "error_code": None, "error_message": None, "result": records}


def fetch_all_coins(
    *,
    rpc_url: str,
    address: str,
    page_size: int = DEFAULT_PAGE_SIZE,
    timeout_seconds: float = DEFAULT_RPC_TIMEOUT_SECONDS,
    call: RpcCaller = call_rpc,
) -> dict[str, Any]:
    return _fetch_records(
        rpc_url=rpc_url,
        method="suix_getAllCoins",
        base_params=[address],
        page_size=page_size,
        timeout_seconds=timeout_seconds,
        call=call,
    )


def fetch_coins_by_type(
    *,
    rpc_url: str,
    address: str,
    coin_type: str,
    page_size: int = DEFAULT_PAGE_SIZE,
    timeout_seconds: float = DEFAULT_RPC_TIMEOUT_SECONDS,
    call: RpcCaller = call_rpc,
) -> dict[str, Any]:
    return _fetch_records(
        rpc_url=rpc_url,
        method="suix_getCoins",
        base_params=[address, coin_type],
        page_size=page_size,
        timeout_seconds=timeout_seconds,
        call=call,
    )


def group_by_type(records: list[CoinRecord]) -> dict[str, list[CoinRecord]]:
    grouped: dict[str, list[CoinRecord]] = {}
    for record in records:
        grouped.setdefault(record.coin_type, []).append(record)
    return grouped


def sort_coins(records: list[CoinRecord]) -> list[CoinRecord]:
    return sorted(records, key=lambda r: -r.balance)


def build_coin_group(
    coin_type: str,
    records: list[CoinRecord],
    *,
    metadata: TokenMetadata | None,
    network: str,
) -> dict[str, Any]:
    known = get_known_token(coin_type, network)
    decimals = metadata.decimals if metadata is not None else DEFAULT_DECIMALS
    symbol = (metadata.symbol if metadata else None) or (known.symbol if known else None) or short_symbol(coin_type)
    name = (metadata.name if metadata else None) or (known.name if known else None) or symbol
    package_id, module_name = parse_coin_type(coin_type)
    total = sum(r.balance for r in records)
    coins = sort_coins(records)

    group: dict[str, Any] = {
        "coinType": coin_type,
        "symbol": symbol,
        "name": name,
        "decimals": decimals,
        "totalBalance": str(total),
        "formattedBalance": format_balance(total, decimals),
        "coins": [c.to_dict() for c in coins],
        "coinCount": len(coins),
        "packageId": package_id,
        "moduleName": module_name,
        "isVerified": is_verified_token(coin_type, network),
        "isNative": is_native_coin_type(coin_type),
    }
    icon_url = (metadata.icon_url if metadata else None) or (known.icon_url if known else None)
    if icon_url:
        group["iconUrl"] = icon_url
    description = (metadata.description if metadata else None) or (known.description if known else None)
    if description:
        group["description"] = description
    return group


def sort_groups(groups: list[dict[str, Any]], network: str) -> list[dict[str, Any]]:
    """Known tokens by registry priority, then unknown tokens by total balance, largest first."""

    def _key(group: dict[str, Any]) -> tuple[int, int]:
        priority = token_priority(group["coinType"], network)
        if priority != UNKNOWN_TOKEN_PRIORITY:
            return 0, priority
        return 1, -int(group["totalBalance"])

    return sorted(groups, key=_key)


def fetch_metadata_concurrently(coin_types: list[str], lookup: MetadataLookup) -> dict[str, TokenMetadata]:
    """Fan metadata lookups out over a thread pool and wait for all of them."""
    if not coin_types:
        return {}
    workers = min(MAX_METADATA_WORKERS, len(coin_types))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        results = list(executor.map(lookup, coin_types))
    return {ct: meta for ct, meta in zip(coin_types, results) if meta is not None}


def aggregate_coins(
    *,
    rpc_url: str,
    address: str,
    network: str,
    metadata_lookup: MetadataLookup,
    page_size: int = DEFAULT_PAGE_SIZE,
    timeout_seconds: float = DEFAULT_RPC_TIMEOUT_SECONDS,
    call: RpcCaller = call_rpc,
) -> dict[str, Any]:
    fetched = fetch_all_coins(
        rpc_url=rpc_url,
        address=address,
        page_size=page_size,
        timeout_seconds=timeout_seconds,
        call=call,
    )
    if not fetched["ok"]:
        return fetched

    records: list[CoinRecord] = fetched["result"]
    grouped = group_by_type(records)
    metadata_by_type = fetch_metadata_concurrently(list(grouped), metadata_lookup)

    groups = [
        build_coin_group(coin_type, members, metadata=metadata_by_type.get(coin_type), network=network)
        for coin_type, members in grouped.items()
    ]
    groups = sort_groups(groups, network)
    logger.debug("aggregated %d coins into %d groups for %s", len(records), len(groups), address)
    return {
        "ok": True,
        "error_code": None,
        "error_message": None,
        "result": {
            "groups": groups,
            "totalCoinTypes": len(groups),
            "totalCoins": len(records),
        },
    }
