from __future__ import annotations

import logging
from typing import Any

from .errors import NetworkError
from .http import TRANSIENT_ERRORS, http_post_json, sleep_backoff
from .util import parse_block_number

logger = logging.getLogger(__name__)

_TRANSIENT_MESSAGES = (
    "rate limit",
    "too many requests",
    "exceeded",
    "limit",
    "timeout",
    "timed out",
    "temporarily unavailable",
    "service unavailable",
    "try again",
    "busy",
    "gateway",
    "internal error",
    "upstream",
)


def _is_transient_rpc_error(error_obj: Any) -> bool:
    if isinstance(error_obj, dict):
        code = error_obj.get("code")
        msg = str(error_obj.get("message") or "").lower()
        # Common transient JSON-RPC provider codes/messages.
        if code in (-32005, -32000, -32603):
            return True
        return any(k in msg for k in _TRANSIENT_MESSAGES)
    # Fallback: treat unknown-shaped errors as non-transient.
    return False


def rpc_call(rpc_url: str, method: str, params: list[Any], *, retries: int = 3) -> Any:
    payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}
    attempts = max(1, int(retries) + 1)
    for attempt in range(attempts):
        try:
            resp = http_post_json(rpc_url, payload)
        except TRANSIENT_ERRORS + (RuntimeError,) as exc:
            # http.py already retried the transport; nothing more to do here.
            raise NetworkError(f"RPC {method} failed: {exc}") from exc
        if not isinstance(resp, dict):
            raise NetworkError(f"Unexpected RPC response: {resp!r}")
        err = resp.get("error")
        if err:
            if _is_transient_rpc_error(err) and attempt + 1 < attempts:
                logger.debug("transient RPC error for %s: %r", method, err)
                sleep_backoff(attempt)
                continue
            raise NetworkError(f"RPC error for {method}: {err!r}")
        return resp.get("result")
    raise NetworkError(f"RPC {method} kept failing after {attempts} attempts")


def rpc_block_number(rpc_url: str) -> int:
    res = rpc_call(rpc_url, "eth_blockNumber", [])
    if not isinstance(res, str) or not res.startswith("0x"):
        raise NetworkError(f"Unexpected eth_blockNumber result: {res!r}")
    return int(res, 16)


def rpc_transaction_block(rpc_url: str, tx_hash: str) -> int | None:
    res = rpc_call(rpc_url, "eth_getTransactionByHash", [tx_hash])
    if not isinstance(res, dict):
        return None
    return parse_block_number(res.get("blockNumber"))
