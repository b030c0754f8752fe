from __future__ import annotations

import http.client

from contract_analyzer.errors import RegistryError
from contract_analyzer.sourcify import (
    SourceVerificationClient,
    compiler_info,
    deployment_info,
    registry_abi,
    registry_sources,
)

ADDR = "0x" + "aa" * 20
METADATA = {
    "compiler": {"version": "0.8.20+commit.a1b79de6"},
    "language": "Solidity",
    "output": {
        "abi": [{"type": "function", "name": "foo", "inputs": []}],
        "devdoc": {"deployment": {"blockNumber": "17000000", "transactionHash": "0xfeed"}},
    },
    "settings": {"optimizer": {"enabled": True, "runs": 200}},
    "sources": {"contracts/Foo.sol": {"keccak256": "0x00", "content": "contract Foo {}"}},
}


def _client() -> SourceVerificationClient:
    return SourceVerificationClient("https://repo.test/", retries=0)


def test_full_match_is_tried_first(fake_http) -> None:
    fake_http.json(METADATA)
    lookup = _client().lookup(ADDR.upper().replace("0X", "0x"), 1)
    assert lookup.match == "full"
    assert lookup.data == METADATA
    assert fake_http.urls == [f"https://repo.test/contracts/full_match/1/{ADDR}/metadata.json"]


def test_partial_match_after_full_miss(fake_http) -> None:
    fake_http.error(404).json(METADATA)
    lookup = _client().lookup(ADDR, 137)
    assert lookup.match == "partial"
    assert fake_http.urls[1].endswith(f"/contracts/partial_match/137/{ADDR}/metadata.json")


def test_no_match_anywhere(fake_http) -> None:
    fake_http.error(404).error(404)
    lookup = _client().lookup(ADDR, 1)
    assert lookup.match == "none"
    assert lookup.error is None


def test_non_json_body_is_a_miss_not_an_error(fake_http) -> None:
    fake_http.raw(b"<html>not here</html>").raw(b"")
    assert _client().lookup(ADDR, 1).match == "none"


def test_server_error_is_reported_not_conflated_with_miss(fake_http) -> None:
    fake_http.error(500)
    lookup = _client().lookup(ADDR, 1)
    assert lookup.match == "error"
    assert isinstance(lookup.error, RegistryError)
    assert len(fake_http.urls) == 1


def test_malformed_json_is_an_error(fake_http) -> None:
    fake_http.raw(b"{not json", content_type="application/json")
    lookup = _client().lookup(ADDR, 1)
    assert lookup.match == "error"


def test_metadata_extractors() -> None:
    assert registry_abi(METADATA) == METADATA["output"]["abi"]
    assert registry_abi({"output": {}}) is None
    assert deployment_info(METADATA) == {"block_number": 17000000, "tx_hash": "0xfeed"}
    assert deployment_info({"output": {"devdoc": {}}}) is None
    info = compiler_info(METADATA)
    assert info["compilerVersion"] == "0.8.20+commit.a1b79de6"
    assert info["optimization"] is True
    assert info["optimizationRuns"] == 200
    assert registry_sources(METADATA) == {"contracts/Foo.sol": "contract Foo {}"}


def test_truncated_body_is_an_error(fake_http) -> None:
    fake_http.raises(http.client.IncompleteRead(b"{"))
    lookup = _client().lookup(ADDR, 1)
    assert lookup.match == "error"
    assert isinstance(lookup.error, RegistryError)


def test_truncated_body_is_retried_before_giving_up(fake_http, no_sleep) -> None:
    fake_http.raises(http.client.IncompleteRead(b"{")).json(METADATA)
    lookup = SourceVerificationClient("https://repo.test/", retries=1).lookup(ADDR, 1)
    assert lookup.match == "full"
    assert len(no_sleep) == 1
