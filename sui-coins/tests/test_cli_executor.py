from __future__ import annotations

import os
import sys
import time

import pytest

from cli_executor import binary_search_paths, build_process_env, check_installation, extract_json, run_sui, run_sui_json, strip_ansi

from _sui_helpers import _recorded_argv, _write_fake_sui

pytestmark = pytest.mark.skipif(os.name == "nt", reason="fake sui binary is a POSIX script")


def _env(script) -> dict[str, str]:
    env = dict(os.environ)
    env["SUI_BINARY"] = str(script)
    return env


def test_run_sui_returns_trimmed_stdout(tmp_path):
    script = _write_fake_sui(tmp_path, stdout="  0xabc  \n")
    payload = run_sui(["client", "active-address"], env=_env(script))
    assert payload["ok"] is True
    assert payload["output"] == "0xabc"
    assert _recorded_argv(tmp_path) == ["client", "active-address"]


def test_run_sui_appends_json_flag(tmp_path):
    script = _write_fake_sui(tmp_path, stdout="[]")
    payload = run_sui(["client", "gas", "0x1"], want_json=True, env=_env(script))
    assert payload["ok"] is True
    assert _recorded_argv(tmp_path) == ["client", "gas", "0x1", "--json"]


def test_run_sui_falls_back_to_stderr_when_stdout_empty(tmp_path):
    script = _write_fake_sui(tmp_path, stderr="sui 1.30.1-abc\n")
    payload = run_sui(["--version"], env=_env(script))
    assert payload["ok"] is True
    assert payload["output"] == "sui 1.30.1-abc"


def test_run_sui_nonzero_exit_is_process_failure(tmp_path):
    script = _write_fake_sui(tmp_path, stdout="partial", stderr="\x1b[31mError: coin not found\x1b[0m", exit_code=1)
    payload = run_sui(["client", "split-coin"], env=_env(script))
    assert payload["ok"] is False
    assert payload["error_code"] == "PROCESS_FAILED"
    assert payload["error_message"] == "Error: coin not found"
    assert payload["exit_code"] == 1


def test_run_sui_timeout(tmp_path):
    script = _write_fake_sui(tmp_path, stdout="late", sleep_seconds=5)
    payload = run_sui(["client", "ptb"], timeout_seconds=0.5, env=_env(script))
    assert payload["ok"] is False
    assert payload["error_code"] == "PROCESS_TIMEOUT"


def test_run_sui_missing_binary(tmp_path):
    env = dict(os.environ)
    env["SUI_BINARY"] = "sui-binary-that-does-not-exist"
    payload = run_sui(["--version"], env=env)
    assert payload["ok"] is False
    assert payload["error_code"] == "PROCESS_NOT_FOUND"


def test_run_sui_json_tolerates_log_lines_before_document(tmp_path):
    script = _write_fake_sui(tmp_path, stdout='BUILDING package\n{"digest": "D1"}\n')
    payload = run_sui_json(["client", "object", "0x1"], env=_env(script))
    assert payload["ok"] is True
    assert payload["result"] == {"digest": "D1"}


def test_check_installation_reports_version(tmp_path):
    script = _write_fake_sui(tmp_path, stdout="sui 1.41.0-homebrew\n")
    assert check_installation(env=_env(script)) == {"installed": True, "version": "1.41.0"}


def test_check_installation_when_binary_fails(tmp_path):
    script = _write_fake_sui(tmp_path, exit_code=2)
    assert check_installation(env=_env(script)) == {"installed": False, "version": None}


def test_extract_json_without_document():
    ok, data, err = extract_json("nothing to see")
    assert not ok
    assert data is None
    assert err == "no JSON found in output"


def test_strip_ansi():
    assert strip_ansi("\x1b[1;32mok\x1b[0m") == "ok"


def test_process_env_prepends_install_locations(tmp_path):
    env = build_process_env({"PATH": "/custom/bin"})
    parts = env["PATH"].split(os.pathsep)
    assert parts[-1] == "/custom/bin"
    assert str(tmp_path / ".cargo" / "bin") in binary_search_paths(home=tmp_path)


def test_run_sui_rejects_output_over_cap(tmp_path):
    script = _write_fake_sui(tmp_path, stdout="x" * 5000)
    payload = run_sui(["client", "objects"], env=_env(script), max_output_bytes=1024)
    assert payload["ok"] is False
    assert payload["error_code"] == "OUTPUT_TOO_LARGE"
    assert payload["output"] is None
    assert "1024" in payload["error_message"]


def test_run_sui_counts_stdout_and_stderr_together(tmp_path):
    script = _write_fake_sui(tmp_path, stdout="o" * 600, stderr="e" * 600)
    payload = run_sui(["client", "objects"], env=_env(script), max_output_bytes=1000)
    assert payload["error_code"] == "OUTPUT_TOO_LARGE"


def test_run_sui_output_at_cap_is_accepted(tmp_path):
    script = _write_fake_sui(tmp_path, stdout="y" * 1024)
    payload = run_sui(["client", "objects"], env=_env(script), max_output_bytes=1024)
    assert payload["ok"] is True
    assert payload["output"] == "y" * 1024


def test_run_sui_kills_endless_writer_once_cap_is_passed(tmp_path):
    script = tmp_path / "sui"
    script.write_text(
        "\n".join(
            [
                f"#!{sys.executable}",
                "import sys",
                "while True:",
                "    sys.stdout.write('z' * 4096)",
                "    sys.stdout.flush()",
                "",
            ]
        ),
        encoding="utf-8",
    )
    script.chmod(0o755)
    started = time.monotonic()
    payload = run_sui(["client", "objects"], env=_env(script), timeout_seconds=30, max_output_bytes=64 * 1024)
    assert payload["error_code"] == "OUTPUT_TOO_LARGE"
    assert time.monotonic() - started < 10
