from __future__ import annotations

import json
from typing import Any

KEYED_BY_KIND = ("receive", "fallback")


def parse_abi(abi_str: str) -> list[dict[str, Any]]:
    data = json.loads(abi_str)
    if not isinstance(data, list):
        raise ValueError(f"ABI is not a list: {type(data).__name__}")
    return [entry for entry in data if isinstance(entry, dict)]


def canonical_type(param: dict[str, Any]) -> str:
    """Canonical ABI type, with tuples expanded to "(t1,t2)" plus any array suffix."""
    typ = str(param.get("type") or "")
    if typ.startswith("tuple"):
        components = param.get("components") or []
        inner = ",".join(canonical_type(c) for c in components if isinstance(c, dict))
        return f"({inner}){typ[len('tuple'):]}"
    return typ


def input_types(entry: dict[str, Any]) -> list[str]:
    return [canonical_type(p) for p in entry.get("inputs") or [] if isinstance(p, dict)]


def entry_key(entry: dict[str, Any]) -> str:
    kind = str(entry.get("type") or "function")
    if kind in KEYED_BY_KIND:
        return kind
    types = ",".join(input_types(entry))
    if kind == "constructor":
        return f"constructor({types})"
    return f"{kind}:{entry.get('name') or ''}({types})"
