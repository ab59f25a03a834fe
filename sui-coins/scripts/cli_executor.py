"""Thin process layer over the `sui` CLI binary."""

from __future__ import annotations

import json
import logging
import os
import re
import shutil
import subprocess
import sys
import threading
import time
from pathlib import Path
from typing import Any, Mapping

from error_map import (
    ERR_OUTPUT_TOO_LARGE,
    ERR_PARSE_FAILED,
    ERR_PROCESS_FAILED,
    ERR_PROCESS_NOT_FOUND,
    ERR_PROCESS_TIMEOUT,
)

logger = logging.getLogger(__name__)

BINARY_ENV = "SUI_BINARY"
JSON_FLAG = "--json"
DEFAULT_TIMEOUT_SECONDS = 60.0
MAX_OUTPUT_BYTES = 10 * 1024 * 1024
READ_CHUNK_BYTES = 64 * 1024

ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")
JSON_BLOCK_RE = re.compile(r"\{[\s\S]*\}|\[[\s\S]*\]")
VERSION_RE = re.compile(r"sui (\d+\.\d+\.\d+)", re.IGNORECASE)

_wsl_detected: bool | None = None


def is_windows() -> bool:
    return sys.platform == "win32"


def is_wsl() -> bool:
    global _wsl_detected
    if _wsl_detected is not None:
        return _wsl_detected
    if not sys.platform.startswith("linux"):
        _wsl_detected = False
        return False
    try:
        release = Path("/proc/version").read_text(encoding="utf-8").lower()
    except OSError:
        release = ""
    _wsl_detected = "microsoft" in release or "wsl" in release
    return _wsl_detected


def binary_search_paths(home: Path | None = None) -> list[str]:
    """Common install locations for the sui binary, prepended to PATH."""
    base = home or Path.home()
    local_bin = str(base / ".local" / "bin")
    cargo_bin = str(base / ".cargo" / "bin")
    if is_windows():
        return [
            local_bin,
            cargo_bin,
            str(base / "AppData" / "Local" / "Programs" / "sui"),
            str(base / ".sui" / "bin"),
            "C:\\Program Files\\sui",
            "C:\\Program Files (x86)\\sui",
        ]
    if sys.platform == "darwin":
        return [local_bin, cargo_bin, "/usr/local/bin", "/opt/homebrew/bin", "/opt/local/bin"]
    if is_wsl():
        return [
            local_bin,
            cargo_bin,
            "/usr/local/bin",
            "/usr/bin",
            "/snap/bin",
            "/mnt/c/Program Files/sui",
            "/mnt/c/Program Files (x86)/sui",
        ]
    return [local_bin, cargo_bin, "/usr/local/bin", "/usr/bin", "/snap/bin", str(base / "bin")]


def build_process_env(base_env: Mapping[str, str] | None = None) -> dict[str, str]:
    env = dict(os.environ if base_env is None else base_env)
    current = env.get("PATH", "")
    extra = os.pathsep.join(binary_search_paths())
    env["PATH"] = f"{extra}{os.pathsep}{current}" if current else extra
    return env


def binary_name(env: Mapping[str, str] | None = None) -> str:
    source = os.environ if env is None else env
    override = str(source.get(BINARY_ENV, "")).strip()
    if override:
        return override
    return "sui.exe" if is_windows() else "sui"


def strip_ansi(text: str) -> str:
    return ANSI_RE.sub("", text)


def _failure(code: str, message: str, **extra: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "ok": False,
        "error_code": code,
        "error_message": message,
        "output": None,
    }
    payload.update(extra)
    return payload


class _CappedCapture:
    """Drains a child's stdout and stderr, killing it once their combined size passes `limit`."""

    def __init__(self, proc: subprocess.Popen, limit: int) -> None:
        self._proc = proc
        self._limit = limit
        self._lock = threading.Lock()
        self._total = 0
        self.overflowed = False
        self.stdout = bytearray()
        self.stderr = bytearray()
        self._readers = [
            threading.Thread(target=self._drain, args=(proc.stdout, self.stdout), daemon=True),
            threading.Thread(target=self._drain, args=(proc.stderr, self.stderr), daemon=True),
        ]
        for reader in self._readers:
            reader.start()

    def _drain(self, stream: Any, sink: bytearray) -> None:
        while True:
            chunk = stream.read1(READ_CHUNK_BYTES)
            if not chunk:
                return
            with self._lock:
                if self.overflowed:
                    return
                self._total += len(chunk)
                if self._total > self._limit:
                    self.overflowed = True
                else:
                    sink.extend(chunk)
            if self.overflowed:
                self._proc.kill()
                return

    def join(self) -> None:
        for reader in self._readers:
            reader.join()

    def text(self) -> tuple[str, str]:
        return (
            self.stdout.decode("utf-8", errors="replace"),
            self.stderr.decode("utf-8", errors="replace"),
        )


def run_sui(
    args: list[str],
    *,
    want_json: bool = False,
    cwd: str | None = None,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    env: Mapping[str, str] | None = None,
    max_output_bytes: int = MAX_OUTPUT_BYTES,
) -> dict[str, Any]:
    """Run `sui <args>`; payload carries trimmed `output` (stdout, else stderr).

    A timeout kills the child process. Output is read incrementally and the child is
    killed as soon as stdout plus stderr exceed `max_output_bytes`, so memory stays bounded.
    """
    process_env = build_process_env(env)
    binary = binary_name(process_env)
    resolved = shutil.which(binary, path=process_env.get("PATH"))
    if resolved is None:
        return _failure(
            ERR_PROCESS_NOT_FOUND,
            f"{binary} is required but was not found on PATH. install the Sui CLI first.",
        )

    final_args = [*args, JSON_FLAG] if want_json else list(args)
    logger.debug("running %s %s", binary, " ".join(final_args))
    started = time.monotonic()
    try:
        with subprocess.Popen(
            [resolved, *final_args],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            cwd=cwd,
            env=process_env,
        ) as proc:
            capture = _CappedCapture(proc, max_output_bytes)
            try:
                returncode = proc.wait(timeout=timeout_seconds)
            except subprocess.TimeoutExpired:
                proc.kill()
                proc.wait()
                capture.join()
                logger.warning("%s %s timed out after %ss", binary, final_args[:2], timeout_seconds)
                return _failure(ERR_PROCESS_TIMEOUT, f"sui command timed out after {timeout_seconds:g}s")
            capture.join()
    except OSError as err:
        return _failure(ERR_PROCESS_FAILED, str(err))
    duration_ms = int((time.monotonic() - started) * 1000)

    if capture.overflowed:
        logger.warning("%s %s output passed %d bytes, process killed", binary, final_args[:2], max_output_bytes)
        return _failure(
            ERR_OUTPUT_TOO_LARGE,
            f"sui output exceeded {max_output_bytes} bytes",
            duration_ms=duration_ms,
        )

    stdout, stderr = capture.text()
    if returncode != 0:
        message = strip_ansi(stderr.strip() or stdout.strip() or f"sui exited with code {returncode}")
        logger.warning("%s %s exited with %d", binary, final_args[:2], returncode)
        return _failure(
            ERR_PROCESS_FAILED,
            message,
            exit_code=returncode,
            duration_ms=duration_ms,
        )

    # Some subcommands print their result on stderr.
    output = stdout.strip() or stderr.strip()
    return {
        "ok": True,
        "error_code": None,
        "error_message": None,
        "output": output,
        "exit_code": 0,
        "duration_ms": duration_ms,
    }


def extract_json(output: str) -> tuple[bool, Any, str]:
    """Parse tool output as JSON, tolerating log lines printed before the document."""
    text = output.strip()
    try:
        return True, json.loads(text), ""
    except json.JSONDecodeError:
        pass
    match = JSON_BLOCK_RE.search(text)
    if not match:
        return False, None, "no JSON found in output"
    try:
        return True, json.loads(match.group(0)), ""
    except json.JSONDecodeError as err:
        return False, None, f"failed to parse JSON output: {err.msg}"


def run_sui_json(args: list[str], **kwargs: Any) -> dict[str, Any]:
    payload = run_sui(args, want_json=True, **kwargs)
    if not payload["ok"]:
        return {**payload, "result": None}
    ok, parsed, err = extract_json(payload["output"])
    if not ok:
        return _failure(ERR_PARSE_FAILED, err, result=None)
    return {**payload, "result": parsed}


def check_installation(**kwargs: Any) -> dict[str, Any]:
    payload = run_sui(["--version"], **kwargs)
    if not payload["ok"]:
        return {"installed": False, "version": None}
    output = payload["output"]
    match = VERSION_RE.search(output)
    return {"installed": True, "version": match.group(1) if match else output}
