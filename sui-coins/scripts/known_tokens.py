"""Curated per-network token registry used for display priority and verified badges.

Lower priority sorts first. Unknown tokens get UNKNOWN_TOKEN_PRIORITY.
"""

from __future__ import annotations

from dataclasses import dataclass

from coin_units import SUI_COIN_TYPE, normalize_coin_type

UNKNOWN_TOKEN_PRIORITY = 999
NETWORKS = ("mainnet", "testnet", "devnet", "localnet")
DEFAULT_NETWORK = "testnet"


@dataclass(frozen=True)
class KnownToken:
    name: str
    symbol: str
    priority: int
    verified: bool
    description: str | None = None
    icon_url: str | None = None


_NATIVE_SUI = KnownToken(
    name="Sui",
    symbol="SUI",
    priority=1,
    verified=True,
    description="Native token of the Sui network",
)

KNOWN_TOKENS_MAINNET: dict[str, KnownToken] = {
    SUI_COIN_TYPE: _NATIVE_SUI,
    "0x356a26eb9e012a68958082340d4c4116e7f55615cf27affcff209cf0ae544f59::wal::WAL": KnownToken(
        name="WAL Token",
        symbol="WAL",
        priority=2,
        verified=True,
        description="The native token for the Walrus Protocol",
        icon_url="https://www.walrus.xyz/wal-icon.svg",
    ),
    # Circle native USDC
    "0x5d4b302506645c37ff133b98c4b50a5ae14841659738d6d733d59d0d217a93bf::coin::COIN": KnownToken(
        name="USD Coin",
        symbol="USDC",
        priority=3,
        verified=True,
        description="USD Coin by Circle",
    ),
    "0xc060006111016b8a020ad5b33834984a437aaa7d3c74c18e09a95d48aceab08c::coin::COIN": KnownToken(
        name="Tether USD",
        symbol="USDT",
        priority=4,
        verified=True,
        description="Tether USD stablecoin",
    ),
    "0xaf8cd5edc19c4512f4259f0bee101a40d41ebed738ade5874359610ef8eeced5::coin::COIN": KnownToken(
        name="Wrapped Ether",
        symbol="wETH",
        priority=5,
        verified=True,
        description="Wrapped Ethereum on Sui",
    ),
}

KNOWN_TOKENS_TESTNET: dict[str, KnownToken] = {
    SUI_COIN_TYPE: _NATIVE_SUI,
    "0x9f992cc2430a1f442ca7a5ca7638169f5d5c00e0ebc3977a65e9ac6e497fe5ef::wal::WAL": KnownToken(
        name="WAL Token",
        symbol="WAL",
        priority=2,
        verified=True,
        description="The native token for the Walrus Protocol (Testnet)",
    ),
}

KNOWN_TOKENS_DEVNET: dict[str, KnownToken] = {
    SUI_COIN_TYPE: _NATIVE_SUI,
}

_REGISTRY_BY_NETWORK: dict[str, dict[str, KnownToken]] = {
    "mainnet": KNOWN_TOKENS_MAINNET,
    "testnet": KNOWN_TOKENS_TESTNET,
    "devnet": KNOWN_TOKENS_DEVNET,
    "localnet": KNOWN_TOKENS_DEVNET,
}


def detect_network(rpc_url: str) -> str:
    url = rpc_url.lower()
    if "mainnet" in url:
        return "mainnet"
    if "testnet" in url:
        return "testnet"
    if "devnet" in url:
        return "devnet"
    if "127.0.0.1" in url or "localhost" in url:
        return "localnet"
    return DEFAULT_NETWORK


def get_known_tokens(network: str) -> dict[str, KnownToken]:
    return _REGISTRY_BY_NETWORK.get(network, KNOWN_TOKENS_TESTNET)


def get_known_token(coin_type: str, network: str) -> KnownToken | None:
    tokens = get_known_tokens(network)
    return tokens.get(coin_type) or tokens.get(normalize_coin_type(coin_type))


def token_priority(coin_type: str, network: str) -> int:
    token = get_known_token(coin_type, network)
    return token.priority if token is not None else UNKNOWN_TOKEN_PRIORITY


def is_verified_token(coin_type: str, network: str) -> bool:
    token = get_known_token(coin_type, network)
    return bool(token is not None and token.verified)
