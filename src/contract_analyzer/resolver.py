from __future__ import annotations

import logging
from typing import Any

from .abi import parse_abi
from .errors import ContractAnalyzerError
from .explorer import ExplorerClient
from .proxy import ProxyResolver
from .sourcify import SourceVerificationClient, deployment_info, registry_abi, registry_sources
from .types import Chain, Deployment, VerificationResult
from .util import normalize_address

logger = logging.getLogger(__name__)


class VerificationResolver:
    """
    Decides where a contract's verification data comes from.

    The registry is asked first. Only a registry miss falls through to the
    explorer; a registry fault ends the run with status=error. Deployment
    lookup and proxy resolution run regardless of the verification outcome,
    and every datum keeps the source it came from. Nothing is persisted here.
    """

    def __init__(
        self,
        registry: SourceVerificationClient,
        explorer: ExplorerClient | None,
        proxy_resolver: ProxyResolver | None = None,
    ) -> None:
        self.registry = registry
        self.explorer = explorer
        self.proxy_resolver = proxy_resolver or ProxyResolver(explorer)

    def _warn(self, result: VerificationResult, message: str) -> None:
        logger.warning(message)
        result.warnings.append(message)

    def resolve(self, address: str, chain: Chain) -> VerificationResult:
        addr = normalize_address(address)
        result = VerificationResult()

        logger.info("checking registry for %s on chain %s", addr, chain.id)
        lookup = self.registry.lookup(addr, chain.id)
        if lookup.match == "error":
            result.source = "registry"
            result.status = "error"
            result.error = str(lookup.error) if lookup.error else "registry lookup failed"
            return result

        registry_deployment: dict[str, Any] | None = None
        record: dict[str, Any] | None = None
        if lookup.match in ("full", "partial"):
            logger.info("registry %s match for %s", lookup.match, addr)
            result.source = "registry"
            result.status = lookup.match
            result.metadata = lookup.data
            result.abi = registry_abi(lookup.data)
            if result.abi is None:
                result.abi = self._explorer_abi_fallback(addr, result)
            registry_deployment = deployment_info(lookup.data)
        else:
            logger.info("no registry match for %s, trying the explorer", addr)
            record = self._resolve_from_explorer(addr, result)

        self._resolve_deployment(addr, result, registry_deployment)

        sources = result.source_code or registry_sources(result.metadata)
        resolution = self.proxy_resolver.resolve(addr, abi=result.abi, sources=sources, record=record)
        result.proxy = resolution.info
        result.combined_abi = resolution.combined_abi
        for message in resolution.warnings:
            self._warn(result, message)
        return result

    def _explorer_abi_fallback(self, addr: str, result: VerificationResult) -> list[dict[str, Any]] | None:
        """ABI for a registry match whose metadata lacks one; status and source stay the registry's."""
        if self.explorer is None:
            self._warn(result, "registry metadata carries no ABI and no explorer is configured")
            return None
        try:
            abi_str = self.explorer.get_abi(addr)
            abi = parse_abi(abi_str) if abi_str is not None else None
        except (ContractAnalyzerError, ValueError) as exc:
            self._warn(result, f"registry metadata carries no ABI; explorer ABI fetch failed: {exc}")
            return None
        if abi is None:
            self._warn(result, "registry metadata carries no ABI and the explorer has none")
            return None
        self._warn(result, "registry metadata carries no ABI; ABI taken from the explorer")
        return abi

    def _resolve_from_explorer(self, addr: str, result: VerificationResult) -> dict[str, Any] | None:
        if self.explorer is None:
            self._warn(result, "no explorer configured; contract treated as unverified")
            return None

        try:
            abi_str = self.explorer.get_abi(addr)
        except ContractAnalyzerError as exc:
            logger.error("explorer ABI fetch failed for %s: %s", addr, exc)
            result.source = "explorer"
            result.status = "error"
            result.error = str(exc)
            return None

        if abi_str is None:
            result.source = "none"
            result.status = "unverified"
            return None

        try:
            abi = parse_abi(abi_str)
        except ValueError as exc:
            result.source = "explorer"
            result.status = "error"
            result.error = f"explorer returned an unparseable ABI: {exc}"
            return None

        result.source = "explorer"
        result.status = "verified"
        result.abi = abi

        record: dict[str, Any] | None = None
        try:
            record = self.explorer.get_source_record(addr)
            result.source_code = self.explorer.get_source_code(addr, record=record)
        except ContractAnalyzerError as exc:
            self._warn(result, f"explorer source code fetch failed: {exc}")
        if result.source_code is None and record is not None:
            self._warn(result, "ABI is verified on the explorer but no source code was returned")
        return record

    def _resolve_deployment(
        self,
        addr: str,
        result: VerificationResult,
        registry_deployment: dict[str, Any] | None,
    ) -> None:
        if registry_deployment:
            result.deployment = Deployment(
                block_number=registry_deployment.get("block_number"),
                tx_hash=registry_deployment.get("tx_hash"),
                source="registry",
            )
            return

        if self.explorer is None:
            self._warn(result, "deployment unknown: no explorer configured")
            return
        try:
            creation = self.explorer.get_contract_creation(addr)
        except ContractAnalyzerError as exc:
            self._warn(result, f"deployment lookup failed: {exc}")
            return
        if creation is None or (creation.tx_hash is None and creation.block_number is None):
            self._warn(result, "could not determine the deployment transaction")
            return
        result.deployment = Deployment(
            block_number=creation.block_number,
            tx_hash=creation.tx_hash,
            source="explorer",
        )
