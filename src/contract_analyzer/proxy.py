from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any

from .abi import entry_key, parse_abi
from .constants import PROXY_ABI_FUNCTIONS, PROXY_SOURCE_MARKERS, ZERO_ADDRESS
from .errors import ContractAnalyzerError
from .explorer import ExplorerClient
from .types import ProxyInfo
from .util import is_hex_address

logger = logging.getLogger(__name__)

_DELEGATECALL_RE = re.compile(r"\bdelegatecall\s*\(")


def combine_abi(
    proxy_abi: list[dict[str, Any]],
    implementation_abi: list[dict[str, Any]],
) -> list[dict[str, Any]]:
    """
    Merge a proxy ABI into its implementation ABI.

    Implementation entries go first and win on key conflicts; proxy entries
    are appended only when their key is new, so admin functions such as
    upgradeTo stay visible. Keys ignore output types.
    """
    combined: list[dict[str, Any]] = []
    seen: set[str] = set()
    for entry in list(implementation_abi) + list(proxy_abi):
        if not isinstance(entry, dict):
            continue
        key = entry_key(entry)
        if key in seen:
            continue
        seen.add(key)
        combined.append(entry)
    return combined


def detect_proxy(
    record: dict[str, Any] | None,
    abi: list[dict[str, Any]] | None,
    sources: dict[str, str] | None,
) -> ProxyInfo:
    """Classify without any network access; the first matching tier wins."""
    if isinstance(record, dict):
        implementation = str(record.get("Implementation") or "").strip()
        if implementation:
            if is_hex_address(implementation) and implementation.lower() != ZERO_ADDRESS:
                return ProxyInfo(
                    is_proxy=True,
                    implementation_address=implementation.lower(),
                    detection="confirmed",
                    reason="explorer reports an implementation address",
                )
            return ProxyInfo(
                is_proxy=True,
                detection="heuristic",
                reason=f"explorer reports a malformed implementation address {implementation!r}",
            )

    text = "\n".join((sources or {}).values())
    if text and _DELEGATECALL_RE.search(text):
        return ProxyInfo(is_proxy=True, detection="heuristic", reason="source contains a delegatecall")
    for marker in PROXY_SOURCE_MARKERS:
        if marker in text:
            return ProxyInfo(is_proxy=True, detection="heuristic", reason=f"source references {marker}")

    names = {str(e.get("name")) for e in abi or [] if isinstance(e, dict) and e.get("type", "function") == "function"}
    for name in PROXY_ABI_FUNCTIONS:
        if name in names:
            return ProxyInfo(is_proxy=True, detection="heuristic", reason=f"ABI exposes {name}()")

    if isinstance(record, dict) and str(record.get("Proxy") or "").strip() == "1":
        return ProxyInfo(is_proxy=True, detection="heuristic", reason="explorer flags a proxy without an implementation")
    return ProxyInfo()


@dataclass
class ProxyResolution:
    info: ProxyInfo
    combined_abi: list[dict[str, Any]] | None = None
    warnings: list[str] = field(default_factory=list)


class ProxyResolver:
    def __init__(self, explorer: ExplorerClient | None) -> None:
        self.explorer = explorer

    def resolve(
        self,
        address: str,
        *,
        abi: list[dict[str, Any]] | None,
        sources: dict[str, str] | None,
        record: dict[str, Any] | None = None,
    ) -> ProxyResolution:
        warnings: list[str] = []
        if record is None and self.explorer is not None:
            try:
                record = self.explorer.get_source_record(address)
            except ContractAnalyzerError as exc:
                warnings.append(f"proxy check could not read the explorer record: {exc}")

        info = detect_proxy(record, abi, sources)
        resolution = ProxyResolution(info=info, warnings=warnings)
        if info.detection != "confirmed" or info.implementation_address is None:
            return resolution

        impl = info.implementation_address
        if self.explorer is None:
            info.reason = "implementation known but no explorer is configured to fetch it"
            warnings.append(info.reason)
            return resolution

        try:
            impl_abi_str = self.explorer.get_abi(impl)
        except ContractAnalyzerError as exc:
            info.reason = f"implementation ABI fetch failed: {exc}"
            warnings.append(info.reason)
            return resolution
        if impl_abi_str is None:
            info.reason = "implementation is not verified"
            warnings.append(f"implementation {impl} is not verified; no combined ABI")
            return resolution
        try:
            impl_abi = parse_abi(impl_abi_str)
        except ValueError as exc:
            info.reason = f"implementation ABI is not valid JSON: {exc}"
            warnings.append(info.reason)
            return resolution

        info.implementation_verified = True
        info.implementation_abi = impl_abi
        try:
            info.implementation_sources = self.explorer.get_source_code(impl)
        except ContractAnalyzerError as exc:
            warnings.append(f"implementation source fetch failed: {exc}")

        if abi is not None:
            resolution.combined_abi = combine_abi(abi, impl_abi)
            logger.info("combined proxy ABI with implementation %s (%d entries)", impl, len(resolution.combined_abi))
        else:
            warnings.append("proxy ABI unavailable; implementation ABI kept separately")
        return resolution
