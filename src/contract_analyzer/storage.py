from __future__ import annotations

import datetime as dt
import logging
from pathlib import Path
from typing import Any

from .events import extract_event_signatures, group_event_examples
from .sourcify import compiler_info
from .types import Chain, VerificationResult
from .util import normalize_address, safe_relpath, write_json, write_sources

logger = logging.getLogger(__name__)


def contract_dir(out_root: Path, chain_id: int, address: str) -> Path:
    return out_root / str(chain_id) / normalize_address(address)


def _safe_sources(sources: dict[str, str]) -> dict[str, str]:
    out: dict[str, str] = {}
    for name, content in sources.items():
        try:
            safe_relpath(name)
        except ValueError:
            logger.warning("skipping source file with unsafe path %r", name)
            continue
        out[name] = content
    return out


def save_analysis(
    out_root: Path,
    chain: Chain,
    address: str,
    result: VerificationResult,
    *,
    logs: list[dict[str, Any]] | None = None,
) -> Path:
    """Write one file per artifact under <out_root>/<chain id>/<address>/."""
    out_dir = contract_dir(out_root, chain.id, address)
    out_dir.mkdir(parents=True, exist_ok=True)
    files: dict[str, Any] = {}

    if result.metadata is not None:
        write_json(out_dir / "metadata.json", result.metadata)
        files["metadata"] = "metadata.json"
    if result.abi is not None:
        write_json(out_dir / "abi.json", result.abi)
        files["abi"] = "abi.json"
    if result.combined_abi is not None:
        write_json(out_dir / "combined_abi.json", result.combined_abi)
        files["combinedAbi"] = "combined_abi.json"
    if result.source_code:
        files["sourceCode"] = [f"source/{p}" for p in write_sources(out_dir / "source", _safe_sources(result.source_code))]

    proxy = result.proxy
    if proxy.implementation_abi is not None:
        write_json(out_dir / "implementation" / "abi.json", proxy.implementation_abi)
        files["implementationAbi"] = "implementation/abi.json"
    if proxy.implementation_sources:
        written = write_sources(out_dir / "implementation" / "source", _safe_sources(proxy.implementation_sources))
        files["implementationSourceCode"] = [f"implementation/source/{p}" for p in written]

    signatures = extract_event_signatures(result.combined_abi if result.combined_abi is not None else result.abi)
    if signatures:
        write_json(out_dir / "event_signatures.json", [s.to_dict() for s in signatures])
        files["eventSignatures"] = "event_signatures.json"

    if logs is not None:
        write_json(out_dir / "events_raw.json", logs)
        write_json(out_dir / "event_information.json", group_event_examples(logs, signatures))
        files["events"] = "events_raw.json"
        files["eventInformation"] = "event_information.json"

    summary: dict[str, Any] = {
        "timestamp": dt.datetime.now(dt.timezone.utc).isoformat(),
        "address": normalize_address(address),
        "chainId": chain.id,
        "chainName": chain.name,
        "verification": {"source": result.source, "status": result.status, "error": result.error},
        "deployment": result.deployment.to_dict(),
        "proxy": result.proxy.to_dict(),
        "warnings": list(result.warnings),
        "filesSaved": files,
    }
    if result.metadata is not None:
        summary["compiler"] = compiler_info(result.metadata)
    write_json(out_dir / "analysis_summary.json", summary)
    return out_dir
