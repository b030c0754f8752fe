from __future__ import annotations

import dataclasses
import json
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from .constants import ETHERSCAN_V2_API_BASE
from .errors import ConfigError, ValidationError
from .types import Chain
from .util import parse_chain_id

logger = logging.getLogger(__name__)

DEFAULT_CHAIN_ID = 1

# Etherscan's v2 API serves every chain below from one endpoint keyed by chainid.
DEFAULT_CHAINS: tuple[Chain, ...] = (
    Chain(1, "Ethereum Mainnet", "mainnet", ETHERSCAN_V2_API_BASE, "https://etherscan.io"),
    Chain(11155111, "Sepolia", "sepolia", ETHERSCAN_V2_API_BASE, "https://sepolia.etherscan.io"),
    Chain(137, "Polygon Mainnet", "polygon", ETHERSCAN_V2_API_BASE, "https://polygonscan.com"),
    Chain(42161, "Arbitrum One", "arbitrum", ETHERSCAN_V2_API_BASE, "https://arbiscan.io"),
    Chain(10, "Optimism", "optimism", ETHERSCAN_V2_API_BASE, "https://optimistic.etherscan.io"),
    Chain(8453, "Base", "base", ETHERSCAN_V2_API_BASE, "https://basescan.org"),
    Chain(56, "BNB Smart Chain", "bsc", ETHERSCAN_V2_API_BASE, "https://bscscan.com"),
)


def default_config_dir() -> Path:
    home = os.environ.get("CONTRACT_ANALYZER_HOME")
    return Path(home).expanduser() if home else Path.home() / ".contract-analyzer"


def _chain_from_dict(raw: Mapping[str, Any]) -> Chain:
    missing = [k for k in ("id", "name", "shortName", "explorerApiUrl") if not raw.get(k)]
    if missing:
        raise ValidationError(f"Missing required chain fields: {', '.join(missing)}")
    return Chain(
        id=parse_chain_id(raw["id"]),
        name=str(raw["name"]),
        short_name=str(raw["shortName"]),
        explorer_api_url=str(raw["explorerApiUrl"]),
        explorer_url=raw.get("explorerUrl") or None,
        rpc_url=raw.get("rpcUrl") or None,
    )


class ChainRegistry:
    """Chains and explorer API keys, loaded once per process from chains.json."""

    def __init__(self, path: Path | None = None, *, env: Mapping[str, str] | None = None) -> None:
        self.path = path if path is not None else default_config_dir() / "chains.json"
        self.env = env if env is not None else os.environ
        self.selected_chain_id: int | None = DEFAULT_CHAIN_ID
        self._chains: dict[int, Chain] = {c.id: c for c in DEFAULT_CHAINS}
        self._api_keys: dict[int, str] = {}

    def load(self) -> ChainRegistry:
        if not self.path.exists():
            logger.debug("no chain config at %s, using built-in chains", self.path)
            return self
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise ConfigError(f"Cannot read chain config {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"Chain config {self.path} must be a JSON object")

        chains = data.get("chains") or {}
        if not isinstance(chains, dict):
            raise ConfigError(f"'chains' in {self.path} must be an object")
        keys = data.get("apiKeys") or {}
        selected = data.get("selectedChainId")
        try:
            self._chains = {c.id: c for c in (_chain_from_dict(raw) for raw in chains.values())}
            self._api_keys = {parse_chain_id(k): str(v) for k, v in keys.items() if v} if isinstance(keys, dict) else {}
            self.selected_chain_id = parse_chain_id(selected) if selected else None
        except (ValidationError, TypeError, AttributeError) as exc:
            raise ConfigError(f"Invalid entry in {self.path}: {exc}") from exc
        return self

    def save(self) -> None:
        data = {
            "selectedChainId": self.selected_chain_id,
            "chains": {str(c.id): c.to_dict() for c in self.all_chains()},
            "apiKeys": {str(k): v for k, v in sorted(self._api_keys.items())},
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2) + "\n", encoding="utf-8")
        tmp.replace(self.path)

    def all_chains(self) -> list[Chain]:
        return [self._chains[k] for k in sorted(self._chains)]

    def get_api_key(self, chain_id: int) -> str | None:
        key = (
            self._api_keys.get(int(chain_id))
            or self.env.get(f"EXPLORER_API_KEY_{chain_id}")
            or self.env.get("EXPLORER_API_KEY")
            or self.env.get("ETHERSCAN_API_KEY")
        )
        return key.strip() if key and key.strip() else None

    def get_chain(self, id_or_name: int | str) -> Chain | None:
        chain: Chain | None = None
        s = str(id_or_name).strip()
        if s.isdigit():
            chain = self._chains.get(int(s))
        else:
            lowered = s.lower()
            chain = next(
                (c for c in self.all_chains() if c.short_name.lower() == lowered or c.name.lower() == lowered),
                None,
            )
        if chain is None:
            return None
        return dataclasses.replace(chain, api_key=self.get_api_key(chain.id))

    def get_selected_chain(self) -> Chain:
        if self.selected_chain_id is None:
            logger.warning("no chain selected, defaulting to chain %d", DEFAULT_CHAIN_ID)
        chain_id = self.selected_chain_id or DEFAULT_CHAIN_ID
        chain = self.get_chain(chain_id)
        if chain is None:
            raise ConfigError(f"Selected chain {chain_id} is not configured; run 'cana chains set <id>'")
        return chain

    def set_selected_chain(self, chain_id: int | str) -> Chain:
        chain = self.get_chain(chain_id)
        if chain is None:
            raise ValidationError(f"Chain {chain_id} is not configured")
        self.selected_chain_id = chain.id
        return chain

    def add_chain(self, chain: Chain) -> None:
        if not chain.name or not chain.short_name or not chain.explorer_api_url:
            raise ValidationError("Chain name, short name and explorer API URL are required")
        if chain.id in self._chains:
            logger.warning("overwriting configuration for chain %d", chain.id)
        self._chains[chain.id] = dataclasses.replace(chain, api_key=None)

    def remove_chain(self, chain_id: int | str) -> Chain | None:
        cid = parse_chain_id(chain_id)
        chain = self._chains.pop(cid, None)
        if chain is None:
            logger.warning("chain %d is not configured, nothing to remove", cid)
            return None
        self._api_keys.pop(cid, None)
        if self.selected_chain_id == cid:
            self.selected_chain_id = None
        return chain

    def save_api_key(self, chain_id: int | str, key: str) -> None:
        cid = parse_chain_id(chain_id)
        if cid not in self._chains:
            raise ValidationError(f"Cannot save API key: chain {cid} is not configured")
        if not key.strip():
            raise ValidationError("API key must not be empty")
        self._api_keys[cid] = key.strip()
