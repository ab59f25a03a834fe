"""HTTP JSON-RPC transport and cursor pagination for Sui full nodes.

No retries here: a failed call surfaces immediately and retry policy belongs to the caller.
"""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.request
from socket import timeout as SocketTimeout
from typing import Any, Callable, Iterator

from error_map import ERR_RPC_PAGINATION, ERR_RPC_REMOTE, ERR_RPC_TIMEOUT, ERR_RPC_TRANSPORT

logger = logging.getLogger(__name__)

DEFAULT_RPC_TIMEOUT_SECONDS = 10.0
DEFAULT_PAGE_SIZE = 50
DEFAULT_MAX_PAGES = 1_000

RpcCaller = Callable[..., dict[str, Any]]


def _failure(code: str, message: str, rpc_response: Any = None) -> dict[str, Any]:
    return {
        "ok": False,
        "error_code": code,
        "error_message": message,
        "rpc_response": rpc_response,
    }


def invoke_rpc(
    *,
    rpc_url: str,
    payload: dict[str, Any],
    timeout_seconds: float,
) -> dict[str, Any]:
    body = json.dumps(payload).encode("utf-8")
    req = urllib.request.Request(
        rpc_url,
        data=body,
        method="POST",
        headers={"Content-Type": "application/json"},
    )
    try:
        with urllib.request.urlopen(req, timeout=timeout_seconds) as resp:
            text = resp.read().decode("utf-8")
    except SocketTimeout as err:
        return _failure(ERR_RPC_TIMEOUT, f"rpc request timed out: {err}")
    except urllib.error.HTTPError as err:
        text = err.read().decode("utf-8", errors="replace")
        return _failure(
            ERR_RPC_TRANSPORT,
            f"http error {err.code}",
            {"status": err.code, "raw": text},
        )
    except urllib.error.URLError as err:
        if isinstance(err.reason, SocketTimeout):
            return _failure(ERR_RPC_TIMEOUT, f"rpc request timed out: {err.reason}")
        return _failure(ERR_RPC_TRANSPORT, str(err.reason))
    except Exception as err:  # noqa: BLE001
        return _failure(ERR_RPC_TRANSPORT, str(err))

    try:
        rpc_response = json.loads(text)
    except json.JSONDecodeError:
        return _failure(ERR_RPC_TRANSPORT, "rpc endpoint returned non-json response", {"raw": text})
    return {
        "ok": True,
        "error_code": None,
        "error_message": None,
        "rpc_response": rpc_response,
    }


def call_rpc(
    *,
    rpc_url: str,
    method: str,
    params: list[Any],
    timeout_seconds: float = DEFAULT_RPC_TIMEOUT_SECONDS,
    request_id: int = 1,
) -> dict[str, Any]:
    """One JSON-RPC 2.0 call; payload carries `result` on success.

    A JSON-RPC `error` member is reported as RPC_REMOTE with the node's message.
    """
    logger.debug("rpc %s params=%s", method, params)
    transport = invoke_rpc(
        rpc_url=rpc_url,
        payload={"jsonrpc": "2.0", "id": request_id, "method": method, "params": params},
        timeout_seconds=timeout_seconds,
    )
    if not transport["ok"]:
        logger.warning("rpc %s failed: %s", method, transport["error_message"])
        return {**transport, "method": method, "result": None}

    rpc_response = transport["rpc_response"]
    if not isinstance(rpc_response, dict):
        return {
            **_failure(ERR_RPC_TRANSPORT, "rpc response must be a JSON object", rpc_response),
            "method": method,
            "result": None,
        }

    error_obj = rpc_response.get("error")
    if error_obj is not None:
        message = error_obj.get("message") if isinstance(error_obj, dict) else str(error_obj)
        logger.warning("rpc %s returned error: %s", method, message)
        return {
            **_failure(ERR_RPC_REMOTE, str(message or "rpc error"), rpc_response),
            "method": method,
            "result": None,
        }

    return {
        "ok": True,
        "error_code": None,
        "error_message": None,
        "method": method,
        "result": rpc_response.get("result"),
    }


def iter_pages(
    *,
    rpc_url: str,
    method: str,
    base_params: list[Any],
    page_size: int = DEFAULT_PAGE_SIZE,
    timeout_seconds: float = DEFAULT_RPC_TIMEOUT_SECONDS,
    max_pages: int = DEFAULT_MAX_PAGES,
    call: RpcCaller = call_rpc,
) -> Iterator[dict[str, Any]]:
    """Lazily walk a cursor-paginated method from a null cursor, one page at a time.

    This is a page-level stream: each yielded value is a page envelope
    `{"ok": True, "error_code": None, "error_message": None, "data": [...], "next_cursor", "has_next_page"}`,
    never a bare item. The first failing page is yielded as a failure payload
    (`ok` False, `error_code`, `error_message`) and ends the stream. Pages are strictly
    sequential because each request needs the previous cursor. Use `iter_items` for a
    lazy sequence of the items themselves.
    """
    cursor: Any = None
    pages = 0
    while True:
        if pages >= max_pages:
            yield _failure(ERR_RPC_PAGINATION, f"{method} exceeded max_pages={max_pages}")
            return
        payload = call(
            rpc_url=rpc_url,
            method=method,
            params=[*base_params, cursor, page_size],
            timeout_seconds=timeout_seconds,
        )
        pages += 1
        if not payload["ok"]:
            yield payload
            return

        result = payload.get("result")
        if result is None:
            return
        if not isinstance(result, dict) or not isinstance(result.get("data", []), list):
            yield _failure(ERR_RPC_TRANSPORT, f"{method} returned a malformed page", result)
            return

        has_next_page = bool(result.get("hasNextPage", False))
        next_cursor = result.get("nextCursor")
        yield {
            "ok": True,
            "error_code": None,
            "error_message": None,
            "data": result.get("data", []),
            "next_cursor": next_cursor,
            "has_next_page": has_next_page,
        }
        if not has_next_page:
            return
        if next_cursor is None or next_cursor == cursor:
            yield _failure(ERR_RPC_PAGINATION, f"{method} reported another page without advancing its cursor")
            return
        cursor = next_cursor


def collect_pages(**kwargs: Any) -> dict[str, Any]:
    """Drain `iter_pages` into one payload with every item under `result`."""
    items: list[Any] = []
    pages = 0
    for page in iter_pages(**kwargs):
        if not page["ok"]:
            return {**page, "result": None, "pages": pages}
        pages += 1
        items.extend(page["data"])
    logger.debug("%s collected %d items over %d pages", kwargs.get("method"), len(items), pages)
    return {
        "ok": True,
        "error_code": None,
        "error_message": None,
        "result": items,
        "pages": pages,
    }


class PageFetchError(RuntimeError):
    """A page failed mid-stream; `payload` is the failure payload from `iter_pages`."""

    def __init__(self, payload: dict[str, Any]):
        super().__init__(payload.get("error_message") or "page fetch failed")
        self.payload = payload


def iter_items(**kwargs: Any) -> Iterator[Any]:
    """Lazy item-level view of `iter_pages`: every item of every page, in order.

    Pages are requested only as the consumer advances. Items from pages fetched before a
    failure are yielded first, then PageFetchError is raised.
    """
    for page in iter_pages(**kwargs):
        if not page["ok"]:
            raise PageFetchError(page)
        yield from page["data"]
