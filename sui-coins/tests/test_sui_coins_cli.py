from __future__ import annotations

import json
import os

import pytest

from _sui_helpers import COIN_A, COIN_B, FOO, OWNER, SUI, _coin, _page, _JsonRpcStub, _recorded_argv, _run_cmd, _write_fake_sui


def test_coins_requires_active_endpoint():
    proc = _run_cmd("coins", [OWNER])
    assert proc.returncode == 3
    payload = json.loads(proc.stdout)
    assert payload["command"] == "coins"
    assert payload["ok"] is False
    assert payload["error_code"] == "NO_ACTIVE_ENDPOINT"


def test_coins_rejects_bad_address():
    proc = _run_cmd("coins", ["not-an-address"])
    assert proc.returncode == 2
    assert json.loads(proc.stdout)["error_code"] == "INVALID_REQUEST"


def test_coins_grouped_through_rpc_stub():
    with _JsonRpcStub(
        [
            _page([_coin(COIN_A, SUI, "1000000000"), _coin(COIN_B, FOO, "7")]),
            {"jsonrpc": "2.0", "id": 1, "result": None},
            {"jsonrpc": "2.0", "id": 1, "result": None},
        ]
    ) as node:
        proc = _run_cmd("coins", [OWNER, "--compact"], extra_env={"SUI_RPC_URL": node.url})
    assert proc.returncode == 0, proc.stdout + proc.stderr
    payload = json.loads(proc.stdout)
    assert payload["ok"] is True
    assert payload["status"] == "ok"
    groups = payload["result"]["groups"]
    assert [g["coinType"] for g in groups] == [SUI, FOO]
    assert groups[0]["formattedBalance"] == "1.0000"
    assert payload["result"]["totalCoins"] == 2


def test_metadata_native_fallback_result_only():
    proc = _run_cmd("metadata", [SUI, "--result-only", "--compact"])
    assert proc.returncode == 0
    assert json.loads(proc.stdout) == {
        "coinType": SUI,
        "name": "Sui",
        "symbol": "SUI",
        "decimals": 9,
        "description": "Native token of the Sui network",
    }


def test_metadata_unknown_type_without_endpoint():
    proc = _run_cmd("metadata", [FOO])
    assert proc.returncode == 3
    assert json.loads(proc.stdout)["error_code"] == "NO_ACTIVE_ENDPOINT"


def test_split_without_broadcast_flag_is_denied():
    proc = _run_cmd("split", ["--coin-id", COIN_A, "--coin-type", SUI, "--amounts", "1", "2"])
    assert proc.returncode == 4
    payload = json.loads(proc.stdout)
    assert payload["status"] == "denied"
    assert payload["error_code"] == "POLICY_DENIED"


def test_merge_into_itself_fails_preflight():
    proc = _run_cmd("merge", ["--primary", COIN_A, "--merge", COIN_A, "--coin-type", SUI, "--dry-run"])
    assert proc.returncode == 2
    assert json.loads(proc.stdout)["error_code"] == "INVALID_REQUEST"


def test_transfer_rejects_decimal_point_amount():
    proc = _run_cmd(
        "transfer",
        ["--coin-id", COIN_A, "--coin-type", SUI, "--to", OWNER, "--amount", "1.5", "--dry-run"],
    )
    assert proc.returncode == 2


@pytest.mark.skipif(os.name == "nt", reason="fake sui binary is a POSIX script")
def test_native_split_dry_run_through_fake_cli(tmp_path):
    effects = {
        "effects": {
            "status": {"status": "success"},
            "gasUsed": {"computationCost": "1000000", "storageCost": "0", "storageRebate": "0"},
        }
    }
    script = _write_fake_sui(tmp_path, stdout=json.dumps(effects))
    proc = _run_cmd(
        "split",
        ["--coin-id", COIN_A, "--coin-type", SUI, "--amounts", "10", "--dry-run", "--gas-budget", "2000000"],
        extra_env={"SUI_BINARY": str(script)},
    )
    assert proc.returncode == 0, proc.stdout + proc.stderr
    payload = json.loads(proc.stdout)
    assert payload["dry_run"] is True
    assert payload["result"] == {"success": True, "gasUsed": "1000000"}
    assert _recorded_argv(tmp_path) == [
        "client",
        "split-coin",
        "--coin-id",
        COIN_A,
        "--amounts",
        "10",
        "--gas-budget",
        "2000000",
        "--dry-run",
        "--json",
    ]


@pytest.mark.skipif(os.name == "nt", reason="fake sui binary is a POSIX script")
def test_generic_transfer_failure_exit_code(tmp_path):
    script = _write_fake_sui(tmp_path, stderr="Error: Insufficient gas", exit_code=1)
    proc = _run_cmd(
        "transfer",
        ["--coin-id", COIN_A, "--coin-type", FOO, "--to", OWNER, "--amount", "5", "--allow-broadcast"],
        extra_env={"SUI_BINARY": str(script)},
    )
    assert proc.returncode == 1
    payload = json.loads(proc.stdout)
    assert payload["error_code"] == "PROCESS_FAILED"
    assert payload["error_message"] == "Insufficient gas"


@pytest.mark.skipif(os.name == "nt", reason="fake sui binary is a POSIX script")
def test_doctor_reports_installation(tmp_path):
    script = _write_fake_sui(tmp_path, stdout="sui 1.41.0-abc\n")
    proc = _run_cmd("doctor", [], extra_env={"SUI_BINARY": str(script), "SUI_RPC_URL": "https://fullnode.mainnet.sui.io:443"})
    assert proc.returncode == 0
    result = json.loads(proc.stdout)["result"]
    assert result["sui"] == {"installed": True, "version": "1.41.0"}
    assert result["endpoint"]["network"] == "mainnet"
    assert result["endpoint"]["source"] == "env"
