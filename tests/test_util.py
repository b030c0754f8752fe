from __future__ import annotations

import json

import pytest

from contract_analyzer.errors import ValidationError
from contract_analyzer.util import (
    decode_sources,
    normalize_address,
    parse_block_number,
    parse_chain_id,
    safe_relpath,
    write_sources,
)


def test_normalize_address() -> None:
    assert normalize_address(" 0xAbCDEF0000000000000000000000000000000001 ") == "0xabcdef0000000000000000000000000000000001"
    for bad in ("", "0x123", "abcdef0000000000000000000000000000000001", "0x" + "zz" * 20):
        with pytest.raises(ValidationError):
            normalize_address(bad)


def test_validation_error_is_a_value_error() -> None:
    with pytest.raises(ValueError):
        parse_chain_id("mainnet")
    with pytest.raises(ValidationError):
        parse_chain_id(0)
    assert parse_chain_id(" 137 ") == 137


@pytest.mark.parametrize(
    ("value", "expected"),
    [("17000000", 17000000), ("0x10", 16), (42, 42), ("", None), (None, None), ("pending", None), (True, None)],
)
def test_parse_block_number(value, expected) -> None:
    assert parse_block_number(value) == expected


def test_decode_flat_source_uses_contract_name() -> None:
    assert decode_sources("contract Token {}", contract_name="Token") == {"Token.sol": "contract Token {}"}
    assert decode_sources("@external\ndef f(): pass", language="Vyper") == {"Contract.vy": "@external\ndef f(): pass"}
    assert decode_sources("   ") == {}


def test_decode_double_brace_standard_json() -> None:
    inner = {"language": "Solidity", "sources": {"a/A.sol": {"content": "A"}, "b/B.sol": {"content": "B"}}}
    assert decode_sources("{" + json.dumps(inner) + "}") == {"a/A.sol": "A", "b/B.sol": "B"}


def test_decode_plain_source_map_and_json_string() -> None:
    plain = {"A.sol": {"content": "A"}}
    assert decode_sources(json.dumps(plain)) == {"A.sol": "A"}
    assert decode_sources(json.dumps(json.dumps(plain))) == {"A.sol": "A"}


def test_decode_brace_source_that_is_not_json() -> None:
    text = "{ not json at all }"
    assert decode_sources(text, contract_name="X") == {"X.sol": text}


def test_unsafe_paths_are_rejected(tmp_path) -> None:
    for bad in ("../evil.sol", "a/../../b.sol", ""):
        with pytest.raises(ValueError):
            safe_relpath(bad)
    assert str(safe_relpath("/abs/A.sol")) == "abs/A.sol"

    written = write_sources(tmp_path, {"lib\\x\\X.sol": "X", "A.sol": "A"})
    assert written == ["lib/x/X.sol", "A.sol"]
    assert (tmp_path / "lib" / "x" / "X.sol").read_text(encoding="utf-8") == "X"
