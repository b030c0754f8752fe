from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

ResultSource = Literal["none", "registry", "explorer"]
ResultStatus = Literal["full", "partial", "verified", "unverified", "error"]
DeploymentSource = Literal["registry", "explorer", "unknown"]
MatchKind = Literal["full", "partial", "none", "error"]
ProxyDetection = Literal["confirmed", "heuristic", "none"]


@dataclass(frozen=True)
class Chain:
    id: int
    name: str
    short_name: str
    explorer_api_url: str
    explorer_url: str | None = None
    api_key: str | None = field(default=None, repr=False)
    rpc_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "shortName": self.short_name,
            "explorerApiUrl": self.explorer_api_url,
            "explorerUrl": self.explorer_url,
            "rpcUrl": self.rpc_url,
        }


@dataclass(frozen=True)
class RegistryLookup:
    match: MatchKind
    data: dict[str, Any] | None = None
    error: BaseException | None = None


@dataclass(frozen=True)
class ContractCreation:
    tx_hash: str | None
    block_number: int | None


@dataclass
class Deployment:
    block_number: int | None = None
    tx_hash: str | None = None
    source: DeploymentSource = "unknown"

    def to_dict(self) -> dict[str, Any]:
        return {"blockNumber": self.block_number, "txHash": self.tx_hash, "source": self.source}


@dataclass
class ProxyInfo:
    is_proxy: bool = False
    implementation_address: str | None = None
    implementation_verified: bool = False
    detection: ProxyDetection = "none"
    reason: str | None = None
    implementation_abi: list[dict[str, Any]] | None = None
    implementation_sources: dict[str, str] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "isProxy": self.is_proxy,
            "detection": self.detection,
            "reason": self.reason,
            "implementationAddress": self.implementation_address,
            "implementationVerified": self.implementation_verified,
        }


@dataclass
class VerificationResult:
    source: ResultSource = "none"
    status: ResultStatus = "unverified"
    abi: list[dict[str, Any]] | None = None
    combined_abi: list[dict[str, Any]] | None = None
    source_code: dict[str, str] | None = None
    metadata: dict[str, Any] | None = None
    deployment: Deployment = field(default_factory=Deployment)
    proxy: ProxyInfo = field(default_factory=ProxyInfo)
    error: str | None = None
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "status": self.status,
            "error": self.error,
            "hasAbi": self.abi is not None,
            "hasCombinedAbi": self.combined_abi is not None,
            "sourceFiles": sorted(self.source_code) if self.source_code else [],
            "deployment": self.deployment.to_dict(),
            "proxy": self.proxy.to_dict(),
            "warnings": list(self.warnings),
        }


@dataclass(frozen=True)
class EventInput:
    name: str
    type: str
    indexed: bool


@dataclass(frozen=True)
class EventSignature:
    name: str
    signature: str
    topic: str
    selector: str
    inputs: tuple[EventInput, ...]
    anonymous: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "signature": self.signature,
            "topic": self.topic,
            "selector": self.selector,
            "inputs": [{"name": i.name, "type": i.type, "indexed": i.indexed} for i in self.inputs],
            "anonymous": self.anonymous,
        }
