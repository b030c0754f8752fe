from __future__ import annotations

import json
import os
import sys
from pathlib import Path, PurePosixPath
from typing import Any

from .errors import ValidationError


def is_hex_address(value: str) -> bool:
    v = value.strip()
    return len(v) == 42 and v.startswith("0x") and all(c in "0123456789abcdefABCDEF" for c in v[2:])


def normalize_address(addr: str) -> str:
    a = (addr or "").strip()
    if not is_hex_address(a):
        raise ValidationError(f"Invalid address: {addr}")
    return a.lower()


def parse_chain_id(value: Any) -> int:
    try:
        chain_id = int(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid chain id: {value!r}") from None
    if chain_id <= 0:
        raise ValidationError(f"Invalid chain id: {value!r}")
    return chain_id


def parse_block_number(value: Any) -> int | None:
    """Accept decimal strings, 0x-hex strings and ints; anything else is None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    s = str(value).strip().lower()
    if not s:
        return None
    try:
        return int(s, 16) if s.startswith("0x") else int(s)
    except ValueError:
        return None


def safe_relpath(path_str: str) -> PurePosixPath:
    p = PurePosixPath(path_str.replace("\\", "/").lstrip("/"))
    if any(part == ".." for part in p.parts) or str(p) in ("", "."):
        raise ValueError(f"Unsafe source path: {path_str!r}")
    return p


def _sources_from_json(data: Any) -> dict[str, str] | None:
    if not isinstance(data, dict):
        return None
    sources = data.get("sources") if "sources" in data else data
    if not isinstance(sources, dict) or not sources:
        return None
    out: dict[str, str] = {}
    for filename, entry in sources.items():
        if isinstance(entry, dict):
            if "content" not in entry:
                return None
            out[str(filename)] = str(entry.get("content") or "")
        elif isinstance(entry, str):
            out[str(filename)] = entry
        else:
            return None
    return out


def decode_sources(source_code_field: str, language: str = "Solidity", contract_name: str = "") -> dict[str, str]:
    """
    Split an explorer SourceCode field into individual files.

    Handles a flat source string, standard-json input with a "sources" map,
    the "{{...}}" double-brace wrapping, and a JSON-encoded string holding
    any of the above.
    """
    sc = (source_code_field or "").strip()
    if not sc:
        return {}

    if sc.startswith("{{") and sc.endswith("}}"):
        sc = sc[1:-1].strip()

    if sc.startswith("{") or sc.startswith('"'):
        try:
            data = json.loads(sc)
            if isinstance(data, str):
                data = json.loads(data)
        except ValueError:
            data = None
        sources = _sources_from_json(data)
        if sources:
            return sources

    ext = "vy" if language.lower() == "vyper" else "sol"
    stem = contract_name.strip() or "Contract"
    return {f"{stem}.{ext}": sc}


def write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, ensure_ascii=False, indent=2) + "\n", encoding="utf-8")


def write_sources(root: Path, sources: dict[str, str]) -> list[str]:
    written: list[str] = []
    for rel_str, content in sources.items():
        rel = safe_relpath(rel_str)
        out_path = root / Path(*rel.parts)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(content, encoding="utf-8")
        written.append(str(rel))
    return written


def color_path(path: Path | str) -> str:
    s = str(path)
    use_color = sys.stdout.isatty() and os.environ.get("NO_COLOR") is None
    return f"\x1b[36m{s}\x1b[0m" if use_color else s
