from __future__ import annotations

import json

from contract_analyzer.storage import contract_dir, save_analysis
from contract_analyzer.types import Deployment, ProxyInfo, VerificationResult

ADDR = "0x" + "Ab" * 20
TRANSFER = {
    "type": "event",
    "name": "Transfer",
    "inputs": [
        {"name": "from", "type": "address", "indexed": True},
        {"name": "to", "type": "address", "indexed": True},
        {"name": "value", "type": "uint256"},
    ],
}
TRANSFER_TOPIC = "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"


def _load(path):
    return json.loads(path.read_text(encoding="utf-8"))


def test_contract_dir_layout(tmp_path) -> None:
    assert contract_dir(tmp_path, 137, ADDR) == tmp_path / "137" / ADDR.lower()


def test_save_registry_result(tmp_path, chain) -> None:
    result = VerificationResult(
        source="registry",
        status="full",
        abi=[TRANSFER],
        metadata={"compiler": {"version": "0.8.20"}, "output": {"abi": [TRANSFER]}},
        deployment=Deployment(123, "0xtx", "registry"),
    )
    out = save_analysis(tmp_path, chain, ADDR, result)

    assert out == tmp_path / "1" / ADDR.lower()
    assert _load(out / "abi.json") == [TRANSFER]
    assert _load(out / "metadata.json")["compiler"]["version"] == "0.8.20"
    assert _load(out / "event_signatures.json")[0]["topic"] == TRANSFER_TOPIC
    assert not (out / "events_raw.json").exists()

    summary = _load(out / "analysis_summary.json")
    assert summary["address"] == ADDR.lower()
    assert summary["chainId"] == 1
    assert summary["verification"] == {"source": "registry", "status": "full", "error": None}
    assert summary["deployment"] == {"blockNumber": 123, "txHash": "0xtx", "source": "registry"}
    assert summary["compiler"]["compilerVersion"] == "0.8.20"
    assert summary["filesSaved"]["abi"] == "abi.json"


def test_save_proxy_result_with_sources_and_events(tmp_path, chain) -> None:
    proxy_abi = [{"type": "function", "name": "upgradeTo", "inputs": [{"type": "address"}]}]
    result = VerificationResult(
        source="explorer",
        status="verified",
        abi=proxy_abi,
        combined_abi=[TRANSFER, *proxy_abi],
        source_code={"src/P.sol": "contract P {}", "../escape.sol": "nope"},
        proxy=ProxyInfo(
            is_proxy=True,
            implementation_address="0x" + "dd" * 20,
            implementation_verified=True,
            detection="confirmed",
            implementation_abi=[TRANSFER],
            implementation_sources={"I.sol": "contract I {}"},
        ),
        warnings=["something odd"],
    )
    logs = [{"topics": [TRANSFER_TOPIC], "data": "0x01"}]
    out = save_analysis(tmp_path, chain, ADDR, result, logs=logs)

    assert (out / "source" / "src" / "P.sol").read_text(encoding="utf-8") == "contract P {}"
    assert not (tmp_path / "1" / "escape.sol").exists()
    assert (out / "implementation" / "source" / "I.sol").exists()
    assert _load(out / "implementation" / "abi.json") == [TRANSFER]
    assert len(_load(out / "combined_abi.json")) == 2
    assert _load(out / "events_raw.json") == logs
    info = _load(out / "event_information.json")
    assert info["eventTypes"][0]["event"] == "Transfer(address,address,uint256)"

    summary = _load(out / "analysis_summary.json")
    assert summary["proxy"]["isProxy"] is True
    assert summary["proxy"]["implementationVerified"] is True
    assert summary["warnings"] == ["something odd"]
    assert summary["filesSaved"]["sourceCode"] == ["source/src/P.sol"]
    assert "compiler" not in summary


def test_unverified_result_writes_only_summary(tmp_path, chain) -> None:
    out = save_analysis(tmp_path, chain, ADDR, VerificationResult())
    assert sorted(p.name for p in out.iterdir()) == ["analysis_summary.json"]
    summary = _load(out / "analysis_summary.json")
    assert summary["deployment"]["source"] == "unknown"
    assert summary["filesSaved"] == {}
