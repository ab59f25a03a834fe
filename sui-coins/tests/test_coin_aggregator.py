from __future__ import annotations

import threading

from coin_aggregator import CoinRecord, aggregate_coins, build_coin_group, fetch_metadata_concurrently, sort_groups
from metadata_cache import TokenMetadata

from _sui_helpers import BAR, COIN_A, COIN_B, COIN_C, FOO, OWNER, SUI, USDC, _coin


def _pages_call(pages):
    calls = []

    def call(*, rpc_url, method, params, timeout_seconds):
        calls.append((method, params))
        return {"ok": True, "error_code": None, "error_message": None, "method": method, "result": pages.pop(0)}

    return call, calls


def _record(object_id, coin_type, balance):
    ok, record, err = CoinRecord.from_rpc(_coin(object_id, coin_type, str(balance)))
    assert ok, err
    return record


def test_aggregate_groups_conserves_every_coin_and_balance():
    big = "340282366920938463463374607431768211455"
    coins = [
        _coin(COIN_A, SUI, "5"),
        _coin(COIN_B, FOO, big),
        _coin(COIN_C, SUI, "7"),
    ]
    call, calls = _pages_call(
        [
            {"data": coins[:2], "nextCursor": "c1", "hasNextPage": True},
            {"data": coins[2:], "nextCursor": None, "hasNextPage": False},
        ]
    )
    payload = aggregate_coins(
        rpc_url="https://fullnode.mainnet.sui.io",
        address=OWNER,
        network="mainnet",
        metadata_lookup=lambda coin_type: None,
        call=call,
    )
    assert payload["ok"] is True
    result = payload["result"]
    assert result["totalCoins"] == 3
    assert result["totalCoinTypes"] == 2
    assert sum(g["coinCount"] for g in result["groups"]) == 3

    by_type = {g["coinType"]: g for g in result["groups"]}
    assert by_type[SUI]["totalBalance"] == "12"
    assert [c["coinObjectId"] for c in by_type[SUI]["coins"]] == [COIN_C, COIN_A]
    assert by_type[FOO]["totalBalance"] == big
    assert by_type[FOO]["symbol"] == "FOO"
    assert by_type[FOO]["decimals"] == 9
    assert by_type[FOO]["isVerified"] is False
    assert by_type[SUI]["isNative"] is True
    assert [c[0] for c in calls] == ["suix_getAllCoins", "suix_getAllCoins"]
    assert calls[1][1] == [OWNER, "c1", 50]


def test_aggregate_propagates_page_failure():
    def call(*, rpc_url, method, params, timeout_seconds):
        return {"ok": False, "error_code": "RPC_TIMEOUT", "error_message": "timed out", "method": method, "result": None}

    payload = aggregate_coins(
        rpc_url="http://stub", address=OWNER, network="testnet", metadata_lookup=lambda t: None, call=call
    )
    assert payload["ok"] is False
    assert payload["error_code"] == "RPC_TIMEOUT"


def test_group_prefers_metadata_over_registry():
    meta = TokenMetadata(coin_type=USDC, name="USDC (chain)", symbol="USDC.c", decimals=6, icon_url="https://i/usdc.png")
    group = build_coin_group(USDC, [_record(COIN_A, USDC, 2_500_000)], metadata=meta, network="mainnet")
    assert group["symbol"] == "USDC.c"
    assert group["name"] == "USDC (chain)"
    assert group["formattedBalance"] == "2.5000"
    assert group["iconUrl"] == "https://i/usdc.png"
    assert group["description"] == "USD Coin by Circle"
    assert group["isVerified"] is True

    fallback = build_coin_group(USDC, [_record(COIN_A, USDC, 1)], metadata=None, network="mainnet")
    assert fallback["symbol"] == "USDC"
    assert fallback["name"] == "USD Coin"
    assert fallback["packageId"] == USDC.split("::")[0]
    assert fallback["moduleName"] == "coin"


def test_sort_groups_known_by_priority_then_unknown_by_balance():
    groups = [
        {"coinType": FOO, "totalBalance": "100"},
        {"coinType": USDC, "totalBalance": "1"},
        {"coinType": BAR, "totalBalance": "5000"},
        {"coinType": SUI, "totalBalance": "1"},
    ]
    ordered = [g["coinType"] for g in sort_groups(groups, "mainnet")]
    assert ordered == [SUI, USDC, BAR, FOO]


def test_fetch_metadata_concurrently_runs_lookups_in_parallel():
    barrier = threading.Barrier(2, timeout=5)

    def lookup(coin_type):
        barrier.wait()
        if coin_type == BAR:
            return None
        return TokenMetadata(coin_type=coin_type, name=coin_type, symbol="X", decimals=3)

    found = fetch_metadata_concurrently([FOO, BAR], lookup)
    assert list(found) == [FOO]
    assert found[FOO].decimals == 3
    assert fetch_metadata_concurrently([], lookup) == {}


def test_malformed_coin_entry_fails_request():
    call, _ = _pages_call([{"data": [{"coinObjectId": COIN_A, "coinType": SUI, "balance": "1.5"}], "hasNextPage": False}])
    payload = aggregate_coins(
        rpc_url="http://stub", address=OWNER, network="testnet", metadata_lookup=lambda t: None, call=call
    )
    assert payload["ok"] is False
    assert payload["error_code"] == "RPC_TRANSPORT"
