from __future__ import annotations

import pytest

from coin_units import format_balance, is_native_coin_type, normalize_coin_type, parse_balance, parse_coin_type, short_symbol
from known_tokens import UNKNOWN_TOKEN_PRIORITY, detect_network, get_known_token, is_verified_token, token_priority
from metadata_cache import MetadataCache, TokenMetadata

from _sui_helpers import FOO, SUI, USDC, WAL


@pytest.mark.parametrize(
    ("balance", "decimals", "expected"),
    [
        (1_000_000_000, 9, "1.0000"),
        (1_500_000_000, 9, "1.5000"),
        (1_234_567_891, 9, "1.234567891"),
        (1, 9, "0.000000001"),
        (0, 9, "0.0000"),
        (2_500_000, 6, "2.5000"),
        (42, 0, "42.0000"),
        ("18446744073709551615", 9, "18446744073.709551615"),
    ],
)
def test_format_balance(balance, decimals, expected):
    assert format_balance(balance, decimals) == expected


def test_format_balance_keeps_integer_part_exact_beyond_float_precision():
    total = 10**30 + 7
    assert format_balance(total, 18) == "1000000000000.000000000000000007"


@pytest.mark.parametrize("decimals", [0, 4, 9, 18])
def test_formatted_balance_recovers_base_units(decimals):
    value = 123_456_789_012_345_678_901
    whole, frac = format_balance(value, decimals).split(".")
    frac = frac.rstrip("0")
    assert frac == "" or len(frac) <= decimals
    recovered = int(whole) * 10**decimals + (int(frac.ljust(decimals, "0")) if decimals and frac else 0)
    assert recovered == value


def test_parse_balance_rejects_non_integers():
    assert parse_balance("1000") == (True, 1000, "")
    assert parse_balance(5) == (True, 5, "")
    assert parse_balance("1.5")[0] is False
    assert parse_balance(1.5)[0] is False
    assert parse_balance(True)[0] is False
    assert parse_balance(-1)[0] is False
    assert parse_balance("")[0] is False


def test_coin_type_helpers():
    assert parse_coin_type(WAL) == (WAL.split("::")[0], "wal")
    assert short_symbol(FOO) == "FOO"
    long_form = "0x" + "0" * 63 + "2::sui::SUI"
    assert normalize_coin_type(long_form) == SUI
    assert is_native_coin_type(long_form)
    assert is_native_coin_type(SUI)
    assert not is_native_coin_type(USDC)


def test_detect_network_from_url():
    assert detect_network("https://fullnode.mainnet.sui.io:443") == "mainnet"
    assert detect_network("https://fullnode.testnet.sui.io:443") == "testnet"
    assert detect_network("https://fullnode.devnet.sui.io:443") == "devnet"
    assert detect_network("http://127.0.0.1:9000") == "localnet"
    assert detect_network("https://rpc.example.org") == "testnet"


def test_known_token_priority_and_verification():
    assert token_priority(SUI, "mainnet") == 1
    assert token_priority(USDC, "mainnet") == 3
    assert token_priority(FOO, "mainnet") == UNKNOWN_TOKEN_PRIORITY
    assert is_verified_token(WAL, "mainnet")
    assert not is_verified_token(FOO, "mainnet")
    # Mainnet USDC is not registered on testnet.
    assert get_known_token(USDC, "testnet") is None
    long_form = "0x" + "0" * 63 + "2::sui::SUI"
    assert get_known_token(long_form, "devnet").symbol == "SUI"


class _FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_metadata_cache_expires_after_ttl():
    clock = _FakeClock()
    cache = MetadataCache(ttl_seconds=300, clock=clock)
    meta = TokenMetadata(coin_type=FOO, name="Foo", symbol="FOO", decimals=6)
    cache.set(FOO, meta)

    clock.now = 299.999
    assert cache.get(FOO) == meta
    clock.now = 300.0
    assert cache.get(FOO) is None
    assert cache.get(SUI) is None


def test_token_metadata_from_rpc():
    ok, meta, err = TokenMetadata.from_rpc(
        FOO,
        {"name": "Foo", "symbol": "FOO", "decimals": 6, "description": "", "iconUrl": "https://x/foo.png", "id": "0x1"},
    )
    assert ok, err
    assert meta.to_dict() == {
        "coinType": FOO,
        "name": "Foo",
        "symbol": "FOO",
        "decimals": 6,
        "iconUrl": "https://x/foo.png",
    }
    ok, meta, err = TokenMetadata.from_rpc(FOO, {"name": "Foo", "symbol": "FOO", "decimals": "6"})
    assert not ok
    assert meta is None
    assert "decimals" in err
