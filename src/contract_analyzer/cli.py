from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from .chains import ChainRegistry
from .constants import DEFAULT_CHUNK_BLOCKS
from .errors import ContractAnalyzerError, ValidationError
from .explorer import ExplorerClient
from .resolver import VerificationResolver
from .sourcify import SourceVerificationClient
from .storage import save_analysis
from .types import Chain, VerificationResult
from .util import color_path, normalize_address, parse_chain_id

logger = logging.getLogger(__name__)

_STATUS_TEXT = {
    "full": "verified (full match)",
    "partial": "verified (partial match)",
    "verified": "ABI verified",
    "unverified": "unverified (registry and explorer)",
    "error": "error during verification",
}


def _configure_logging(verbose: bool, quiet: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING if quiet else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s", stream=sys.stderr)


def _parse_to_block(value: str) -> int | str:
    v = value.strip().lower()
    if v == "latest":
        return v
    if not v.isdigit():
        raise argparse.ArgumentTypeError(f"expected a block number or 'latest', got {value!r}")
    return int(v)


def _print_summary(chain: Chain, address: str, result: VerificationResult, out_dir: Path) -> None:
    rows: list[tuple[str, str]] = [
        ("Contract", address),
        ("Chain", f"{chain.name} (ID: {chain.id})"),
        ("Verification", f"{_STATUS_TEXT.get(result.status, result.status)} via {result.source}"),
    ]
    dep = result.deployment
    if dep.block_number is not None:
        rows.append(("Deploy block", f"{dep.block_number} ({dep.source})"))
    if dep.tx_hash:
        rows.append(("Deploy tx", f"{dep.tx_hash} ({dep.source})"))
    if dep.source == "unknown":
        rows.append(("Deployment", "unknown"))
    proxy = result.proxy
    if proxy.is_proxy:
        impl = proxy.implementation_address or "unknown"
        rows.append(("Proxy", f"{proxy.detection}: {proxy.reason}" if proxy.reason else proxy.detection))
        rows.append(("Implementation", f"{impl} (verified={str(proxy.implementation_verified).lower()})"))
    if result.combined_abi is not None:
        rows.append(("Combined ABI", f"{len(result.combined_abi)} entries"))
    if result.source_code:
        rows.append(("Source files", str(len(result.source_code))))
    if result.error:
        rows.append(("Error", result.error))

    width = max(len(k) for k, _ in rows)
    print("--- Analysis Summary ---")
    for key, value in rows:
        print(f"{key.ljust(width)}  {value}")
    for warning in result.warnings:
        print(f"[!] {warning}")
    print(f"[ok] wrote {color_path(out_dir)}")


def _cmd_analyze(args: argparse.Namespace, registry: ChainRegistry) -> int:
    address = normalize_address(args.address)
    chain = registry.get_chain(args.chain) if args.chain else registry.get_selected_chain()
    if chain is None:
        raise ValidationError(f"Chain {args.chain!r} is not configured; see 'cana chains list'")
    logger.info("analyzing %s on %s (ID: %d)", address, chain.name, chain.id)

    explorer = ExplorerClient(chain, chunk_blocks=args.chunk_blocks, sleep_s=max(0, args.sleep_ms) / 1000.0)
    resolver = VerificationResolver(SourceVerificationClient(), explorer)
    result = resolver.resolve(address, chain)

    logs = None
    if args.events:
        from_block = args.from_block if args.from_block is not None else (result.deployment.block_number or 0)
        try:
            logs = explorer.get_logs(address, from_block, args.to_block)
        except ContractAnalyzerError as exc:
            logger.warning("event log fetch failed: %s", exc)
        if logs is None:
            print("[!] could not fetch event logs (check API key and explorer URL)", file=sys.stderr)

    out_dir = save_analysis(Path(args.output_dir), chain, address, result, logs=logs)
    if args.json:
        payload = {"address": address, "chainId": chain.id, "outputDir": str(out_dir), **result.to_dict()}
        print(json.dumps(payload, ensure_ascii=False, indent=2))
    else:
        _print_summary(chain, address, result, out_dir)
    return 1 if result.status == "error" else 0


def _cmd_chains(args: argparse.Namespace, registry: ChainRegistry) -> int:
    if args.chains_cmd == "list":
        selected = registry.selected_chain_id
        for chain in registry.all_chains():
            mark = "*" if chain.id == selected else " "
            key = "key" if registry.get_api_key(chain.id) else "-"
            print(f"{mark} {chain.id:<10} {chain.short_name:<12} {chain.name:<20} {chain.explorer_api_url}  {chain.rpc_url or '-'}  {key}")
        return 0

    if args.chains_cmd == "set":
        chain = registry.set_selected_chain(args.chain_id)
        registry.save()
        print(f"[ok] selected {chain.name} (ID: {chain.id})")
    elif args.chains_cmd == "add":
        chain = Chain(
            id=parse_chain_id(args.id),
            name=args.name,
            short_name=args.short_name,
            explorer_api_url=args.explorer_api_url,
            explorer_url=args.explorer_url or None,
            rpc_url=args.rpc_url or None,
        )
        registry.add_chain(chain)
        registry.save()
        print(f"[ok] added {chain.name} (ID: {chain.id})")
    elif args.chains_cmd == "remove":
        removed = registry.remove_chain(args.chain_id)
        if removed is None:
            return 1
        registry.save()
        print(f"[ok] removed {removed.name} (ID: {removed.id})")
    elif args.chains_cmd == "set-key":
        registry.save_api_key(args.chain_id, args.key)
        registry.save()
        print(f"[ok] saved API key for chain {args.chain_id}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="cana",
        description="Analyze smart contracts using Sourcify and Etherscan-compatible block explorers.",
    )
    p.add_argument("--config-dir", default="", help="Config directory (default: $CONTRACT_ANALYZER_HOME or ~/.contract-analyzer).")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    p.add_argument("-q", "--quiet", action="store_true", help="Only log warnings and errors.")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_analyze = sub.add_parser("analyze", help="Resolve verification, ABI, sources and deployment of a contract.")
    p_analyze.add_argument("address", help="Contract address.")
    p_analyze.add_argument("-c", "--chain", default="", help="Chain id or short name (default: selected chain).")
    p_analyze.add_argument("-e", "--events", action="store_true", help="Also fetch raw event logs (needs an API key).")
    p_analyze.add_argument("--from-block", type=int, default=None, help="First block for --events (default: deployment block).")
    p_analyze.add_argument("--to-block", type=_parse_to_block, default="latest", help="Last block for --events.")
    p_analyze.add_argument("--chunk-blocks", type=int, default=DEFAULT_CHUNK_BLOCKS, help="Block window per getLogs request.")
    p_analyze.add_argument("--sleep-ms", type=int, default=200, help="Sleep between chunked explorer requests.")
    p_analyze.add_argument(
        "--output-dir",
        default=os.environ.get("CONTRACT_ANALYZER_OUTPUT", "contracts-analyzed"),
        help="Root directory for analysis results.",
    )
    p_analyze.add_argument("--json", action="store_true", help="Print the result as JSON instead of a summary.")

    p_chains = sub.add_parser("chains", help="Manage chain configurations.")
    chains_sub = p_chains.add_subparsers(dest="chains_cmd", required=True)
    chains_sub.add_parser("list", help="List configured chains.")
    p_set = chains_sub.add_parser("set", help="Select the default chain.")
    p_set.add_argument("chain_id", help="Chain id or short name.")
    p_add = chains_sub.add_parser("add", help="Add or overwrite a chain.")
    p_add.add_argument("--id", required=True, help="Chain id.")
    p_add.add_argument("--name", required=True, help="Chain name.")
    p_add.add_argument("--short-name", required=True, help="Short name, e.g. sepolia.")
    p_add.add_argument("--explorer-api-url", required=True, help="Etherscan-compatible API base URL.")
    p_add.add_argument("--explorer-url", default="", help="Explorer web URL.")
    p_add.add_argument("--rpc-url", default="", help="JSON-RPC URL.")
    p_remove = chains_sub.add_parser("remove", help="Remove a chain.")
    p_remove.add_argument("chain_id", help="Chain id.")
    p_key = chains_sub.add_parser("set-key", help="Store an explorer API key for a chain.")
    p_key.add_argument("chain_id", help="Chain id.")
    p_key.add_argument("key", help="API key.")
    return p


def main(argv: list[str]) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose, args.quiet)

    config_path = Path(args.config_dir).expanduser() / "chains.json" if args.config_dir else None
    try:
        registry = ChainRegistry(config_path).load()
        if args.cmd == "analyze":
            return _cmd_analyze(args, registry)
        return _cmd_chains(args, registry)
    except ValidationError as exc:
        print(f"[!] {exc}", file=sys.stderr)
        return 2
    except ContractAnalyzerError as exc:
        print(f"[!] {exc}", file=sys.stderr)
        return 1


def entrypoint() -> None:
    raise SystemExit(main(sys.argv[1:]))
