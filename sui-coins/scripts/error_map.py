"""Stable error codes shared by the coin wrapper scripts."""

from __future__ import annotations

ERR_INTERNAL = "INTERNAL"
ERR_INVALID_REQUEST = "INVALID_REQUEST"
ERR_POLICY_DENIED = "POLICY_DENIED"
ERR_CONFIG_INVALID = "CONFIG_INVALID"
ERR_NO_ACTIVE_ENDPOINT = "NO_ACTIVE_ENDPOINT"

ERR_RPC_TRANSPORT = "RPC_TRANSPORT"
ERR_RPC_TIMEOUT = "RPC_TIMEOUT"
ERR_RPC_REMOTE = "RPC_REMOTE"
ERR_RPC_PAGINATION = "RPC_PAGINATION"

ERR_PROCESS_FAILED = "PROCESS_FAILED"
ERR_PROCESS_TIMEOUT = "PROCESS_TIMEOUT"
ERR_PROCESS_NOT_FOUND = "PROCESS_NOT_FOUND"
ERR_OUTPUT_TOO_LARGE = "OUTPUT_TOO_LARGE"

ERR_PARSE_FAILED = "PARSE_FAILED"
ERR_EXECUTION_FAILED = "EXECUTION_FAILED"
