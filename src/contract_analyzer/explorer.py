from __future__ import annotations

import logging
import time
import urllib.error
import urllib.parse
from typing import Any

from .constants import (
    DEFAULT_API_RETRIES,
    DEFAULT_CHUNK_BLOCKS,
    DEFAULT_HTTP_RETRIES,
    DEFAULT_TIMEOUT_S,
    EXPLORER_PAGE_CAP,
)
from .errors import ApiKeyError, ExplorerApiError, NetworkError, RateLimitError
from .http import TRANSIENT_ERRORS, http_get_json, sleep_backoff
from .rpc import rpc_block_number, rpc_transaction_block
from .types import Chain, ContractCreation
from .util import decode_sources, normalize_address, parse_block_number

logger = logging.getLogger(__name__)

_EMPTY_MARKERS = ("no transactions found", "no records found", "no logs found", "no data found")
_UNSUPPORTED_MARKERS = ("invalid action", "unknown action", "invalid module", "unknown module")
_RATE_LIMIT_MARKERS = ("rate limit", "max calls per sec", "too many requests")


def scan_url(api_base: str, api_key: str, *, chainid: int | None = None, **params: str) -> str:
    qp = dict(params)
    qp["apikey"] = api_key
    if chainid is not None and chainid > 0:
        qp["chainid"] = str(chainid)
    return f"{api_base}?{urllib.parse.urlencode(qp)}"


def is_placeholder_key(key: str) -> bool:
    k = key.strip().lower()
    return k.startswith("your") or "your-" in k or "your_" in k or k in ("changeme", "xxx", "<api-key>")


def sources_from_record(record: dict[str, Any] | None) -> dict[str, str] | None:
    if not isinstance(record, dict):
        return None
    source_code = str(record.get("SourceCode") or "").strip()
    if not source_code:
        return None
    language = str(record.get("Language") or "Solidity")
    sources = decode_sources(source_code, language=language, contract_name=str(record.get("ContractName") or ""))
    return sources or None


class ExplorerClient:
    """Etherscan-compatible explorer API for a single chain."""

    def __init__(
        self,
        chain: Chain,
        api_key: str | None = None,
        *,
        timeout_s: int = DEFAULT_TIMEOUT_S,
        retries: int = DEFAULT_API_RETRIES,
        http_retries: int = DEFAULT_HTTP_RETRIES,
        chunk_blocks: int = DEFAULT_CHUNK_BLOCKS,
        sleep_s: float = 0.2,
    ) -> None:
        if chunk_blocks <= 0:
            raise ValueError("chunk_blocks must be > 0")
        self.chain = chain
        self.api_key = api_key if api_key is not None else chain.api_key
        self.timeout_s = timeout_s
        self.retries = max(0, int(retries))
        self.http_retries = max(0, int(http_retries))
        self.chunk_blocks = int(chunk_blocks)
        self.sleep_s = sleep_s

    def _require_key(self) -> str:
        key = (self.api_key or "").strip()
        if not key:
            raise ApiKeyError(
                f"Missing explorer API key for chain {self.chain.id}: "
                f"set EXPLORER_API_KEY_{self.chain.id} / EXPLORER_API_KEY or run 'cana chains set-key'"
            )
        if is_placeholder_key(key):
            raise ApiKeyError(f"Explorer API key for chain {self.chain.id} looks like a placeholder")
        return key

    def _call(self, *, rpc_envelope: bool = False, **params: str) -> Any:
        if not self.chain.explorer_api_url:
            raise ExplorerApiError(f"No explorer API URL configured for chain {self.chain.id}")
        action = params.get("action", "?")
        url = scan_url(self.chain.explorer_api_url, self._require_key(), chainid=self.chain.id, **params)
        attempts = self.retries + 1
        for attempt in range(attempts):
            try:
                data = http_get_json(url, timeout_s=self.timeout_s, retries=self.http_retries)
            except urllib.error.HTTPError as exc:
                if exc.code == 404:
                    return None
                raise NetworkError(f"{action}: HTTP {exc.code} from explorer") from exc
            except TRANSIENT_ERRORS + (RuntimeError,) as exc:
                raise NetworkError(f"{action}: {exc}") from exc
            if not isinstance(data, dict):
                raise NetworkError(f"{action}: unexpected explorer response: {data!r}")

            if rpc_envelope and "jsonrpc" in data:
                if data.get("error"):
                    raise ExplorerApiError(f"{action}: {data['error']!r}")
                return data.get("result")

            status = str(data.get("status") or "").strip()
            message = str(data.get("message") or "").strip()
            result = data.get("result")
            if status == "1" or message == "OK":
                return result

            text = result if isinstance(result, str) else ""
            lower = f"{message} {text}".lower()
            if "not verified" in lower:
                return text
            if "api key" in lower and ("invalid" in lower or "missing" in lower):
                raise ApiKeyError(f"{action}: explorer rejected API key: {text or message}")
            if any(m in lower for m in _EMPTY_MARKERS):
                return []
            if any(m in lower for m in _UNSUPPORTED_MARKERS):
                raise ExplorerApiError(f"{action}: not supported by explorer: {text or message}")
            if message.upper() == "NOTOK" or any(m in lower for m in _RATE_LIMIT_MARKERS):
                if attempt + 1 < attempts:
                    logger.warning("explorer %s answered %s (%s), backing off", action, message, text)
                    sleep_backoff(attempt)
                    continue
                raise RateLimitError(f"{action}: explorer still rate limited after {attempts} attempts: {text}")
            raise ExplorerApiError(f"{action}: {message or 'error'}: {text}")
        raise RateLimitError(f"{action}: retry loop exhausted")

    def get_abi(self, address: str) -> str | None:
        addr = normalize_address(address)
        result = self._call(module="contract", action="getabi", address=addr)
        if not isinstance(result, str):
            return None
        abi_str = result.strip()
        if not abi_str or "not verified" in abi_str.lower():
            logger.info("contract %s is not verified on the explorer", addr)
            return None
        if not (abi_str.startswith("[") and abi_str.endswith("]")):
            logger.warning("invalid ABI format from explorer for %s", addr)
            return None
        return abi_str

    def get_source_record(self, address: str) -> dict[str, Any] | None:
        addr = normalize_address(address)
        result = self._call(module="contract", action="getsourcecode", address=addr)
        if not isinstance(result, list) or not result:
            return None
        record = result[0]
        return record if isinstance(record, dict) else None

    def get_source_code(self, address: str, record: dict[str, Any] | None = None) -> dict[str, str] | None:
        if record is None:
            record = self.get_source_record(address)
        sources = sources_from_record(record)
        if sources is None:
            logger.info("no verified source code on the explorer for %s", address)
        return sources

    def latest_block(self) -> int:
        if self.chain.rpc_url:
            return rpc_block_number(self.chain.rpc_url)
        res = self._call(module="proxy", action="eth_blockNumber", rpc_envelope=True)
        block = parse_block_number(res)
        if block is None:
            raise ExplorerApiError(f"Unexpected eth_blockNumber result: {res!r}")
        return block

    def _transaction_block(self, tx_hash: str) -> int | None:
        try:
            if self.chain.rpc_url:
                return rpc_transaction_block(self.chain.rpc_url, tx_hash)
            res = self._call(module="proxy", action="eth_getTransactionByHash", txhash=tx_hash, rpc_envelope=True)
        except (NetworkError, ExplorerApiError) as exc:
            logger.warning("could not look up block of %s: %s", tx_hash, exc)
            return None
        if not isinstance(res, dict):
            return None
        return parse_block_number(res.get("blockNumber"))

    def get_contract_creation(self, address: str) -> ContractCreation | None:
        addr = normalize_address(address)
        try:
            result = self._call(module="contract", action="getcontractcreation", contractaddresses=addr)
        except ExplorerApiError as exc:
            logger.info("getcontractcreation unavailable (%s), falling back to txlist", exc)
            result = None

        if isinstance(result, list):
            for row in result:
                if not isinstance(row, dict):
                    continue
                contract = str(row.get("contractAddress") or addr).lower()
                tx_hash = str(row.get("txHash") or "").strip()
                if contract != addr or not tx_hash:
                    continue
                block = parse_block_number(row.get("blockNumber"))
                if block is None:
                    block = self._transaction_block(tx_hash)
                return ContractCreation(tx_hash=tx_hash, block_number=block)

        return self._creation_from_txlist(addr)

    def _creation_from_txlist(self, addr: str) -> ContractCreation | None:
        # Heuristic: the oldest transaction touching the address is taken as the
        # deployment. Factory and minimal-proxy deployments defeat this.
        result = self._call(
            module="account",
            action="txlist",
            address=addr,
            startblock="0",
            endblock="99999999",
            page="1",
            offset="1",
            sort="asc",
        )
        if not isinstance(result, list) or not result or not isinstance(result[0], dict):
            logger.info("no transactions found for %s", addr)
            return None
        first = result[0]
        to = str(first.get("to") or "").lower()
        created = str(first.get("contractAddress") or "").lower()
        if addr not in (to, created):
            logger.info("oldest transaction of %s does not look like its deployment", addr)
            return None
        tx_hash = str(first.get("hash") or "").strip() or None
        return ContractCreation(tx_hash=tx_hash, block_number=parse_block_number(first.get("blockNumber")))

    def get_logs(
        self,
        address: str,
        from_block: int = 0,
        to_block: int | str = "latest",
        topics: list[str | None] | None = None,
    ) -> list[dict[str, Any]] | None:
        addr = normalize_address(address)
        start = max(0, int(from_block))
        end = self.latest_block() if to_block in (None, "latest") else int(to_block)
        if end < start:
            return []

        topic_params: dict[str, str] = {}
        for i, topic in enumerate(topics or []):
            if topic:
                t = topic if topic.startswith("0x") else f"0x{topic}"
                topic_params[f"topic{i}"] = t.lower()

        out: list[dict[str, Any]] = []
        cur = start
        chunk = self.chunk_blocks
        first_request = True
        while cur <= end:
            hi = min(end, cur + chunk - 1)
            if not first_request and self.sleep_s > 0:
                time.sleep(self.sleep_s)
            first_request = False
            result = self._call(
                module="logs",
                action="getLogs",
                address=addr,
                fromBlock=str(cur),
                toBlock=str(hi),
                **topic_params,
            )
            if result is None:
                return None
            logs = [r for r in result if isinstance(r, dict)] if isinstance(result, list) else []
            if len(logs) >= EXPLORER_PAGE_CAP and hi > cur:
                # Page cap hit: the window may be truncated, retry it in halves.
                chunk = max(1, (hi - cur + 1) // 2)
                logger.debug("getLogs page cap hit for %d-%d, shrinking window to %d blocks", cur, hi, chunk)
                continue
            if len(logs) >= EXPLORER_PAGE_CAP:
                logger.warning("getLogs page cap hit for single block %d; results may be truncated", cur)
            out.extend(logs)
            cur = hi + 1
        return out
