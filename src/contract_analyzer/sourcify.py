from __future__ import annotations

import logging
import os
import urllib.error
from typing import Any

from .constants import DEFAULT_HTTP_RETRIES, DEFAULT_TIMEOUT_S, SOURCIFY_REPO_BASE
from .errors import RegistryError
from .http import TRANSIENT_ERRORS, http_get
from .types import RegistryLookup
from .util import normalize_address, parse_block_number

logger = logging.getLogger(__name__)

MATCH_KINDS = ("full_match", "partial_match")


class SourceVerificationClient:
    """Looks contracts up in a Sourcify-style repository (full match, then partial)."""

    def __init__(
        self,
        repo_url: str | None = None,
        *,
        timeout_s: int = DEFAULT_TIMEOUT_S,
        retries: int = DEFAULT_HTTP_RETRIES,
    ) -> None:
        base = repo_url or os.environ.get("SOURCIFY_REPO_URL") or SOURCIFY_REPO_BASE
        self.repo_url = base.rstrip("/")
        self.timeout_s = timeout_s
        self.retries = retries

    def metadata_url(self, kind: str, chain_id: int | str, address: str) -> str:
        return f"{self.repo_url}/contracts/{kind}/{chain_id}/{address}/metadata.json"

    def _fetch_metadata(self, url: str) -> dict[str, Any] | None:
        try:
            resp = http_get(url, timeout_s=self.timeout_s, retries=self.retries)
        except urllib.error.HTTPError as exc:
            if exc.code == 404:
                return None
            raise RegistryError(f"Registry request failed for {url}: HTTP {exc.code}") from exc
        except TRANSIENT_ERRORS as exc:
            raise RegistryError(f"Registry request failed for {url}: {exc}") from exc

        if "json" not in resp.content_type.lower():
            # Some registries answer misses with an empty or HTML body.
            logger.warning("registry returned non-JSON response (%s) for %s", resp.content_type or "no content type", url)
            return None
        try:
            data = resp.json()
        except ValueError as exc:
            raise RegistryError(f"Malformed registry metadata from {url}: {exc}") from exc
        if not isinstance(data, dict):
            raise RegistryError(f"Unexpected registry metadata shape from {url}: {type(data).__name__}")
        return data

    def lookup(self, address: str, chain_id: int | str) -> RegistryLookup:
        addr = normalize_address(address)
        try:
            for kind in MATCH_KINDS:
                data = self._fetch_metadata(self.metadata_url(kind, chain_id, addr))
                if data is not None:
                    match = "full" if kind == "full_match" else "partial"
                    logger.debug("registry %s match for %s on chain %s", match, addr, chain_id)
                    return RegistryLookup(match=match, data=data)
        except RegistryError as exc:
            logger.error("registry lookup failed for %s on chain %s: %s", addr, chain_id, exc)
            return RegistryLookup(match="error", error=exc)
        return RegistryLookup(match="none")


def registry_abi(metadata: dict[str, Any] | None) -> list[dict[str, Any]] | None:
    output = (metadata or {}).get("output")
    abi = output.get("abi") if isinstance(output, dict) else None
    return abi if isinstance(abi, list) else None


def deployment_info(metadata: dict[str, Any] | None) -> dict[str, Any] | None:
    """Deployment block/tx embedded in the devdoc, when the author recorded one."""
    output = (metadata or {}).get("output")
    devdoc = output.get("devdoc") if isinstance(output, dict) else None
    deployment = devdoc.get("deployment") if isinstance(devdoc, dict) else None
    if not isinstance(deployment, dict):
        return None
    block = parse_block_number(deployment.get("blockNumber"))
    tx_hash = deployment.get("transactionHash") or None
    if block is None and not tx_hash:
        return None
    return {"block_number": block, "tx_hash": tx_hash}


def compiler_info(metadata: dict[str, Any] | None) -> dict[str, Any]:
    meta = metadata or {}
    compiler = meta.get("compiler") if isinstance(meta.get("compiler"), dict) else {}
    settings = meta.get("settings") if isinstance(meta.get("settings"), dict) else {}
    optimizer = settings.get("optimizer") if isinstance(settings.get("optimizer"), dict) else {}
    return {
        "language": meta.get("language"),
        "compilerVersion": compiler.get("version") or "unknown",
        "optimization": bool(optimizer.get("enabled", False)),
        "optimizationRuns": optimizer.get("runs"),
        "evmVersion": settings.get("evmVersion"),
    }


def registry_sources(metadata: dict[str, Any] | None) -> dict[str, str] | None:
    """Source text embedded in metadata; repository metadata usually only carries hashes."""
    sources = (metadata or {}).get("sources")
    if not isinstance(sources, dict):
        return None
    out = {str(k): str(v["content"]) for k, v in sources.items() if isinstance(v, dict) and v.get("content")}
    return out or None
