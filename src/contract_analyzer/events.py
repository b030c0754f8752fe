from __future__ import annotations

from typing import Any

from eth_utils import keccak

from .abi import canonical_type
from .types import EventInput, EventSignature


def event_signature(entry: dict[str, Any]) -> str:
    types = ",".join(canonical_type(p) for p in entry.get("inputs") or [] if isinstance(p, dict))
    return f"{entry.get('name') or ''}({types})"


def extract_event_signatures(abi: list[dict[str, Any]] | None) -> list[EventSignature]:
    """Event signatures in ABI order, one per distinct topic hash."""
    out: list[EventSignature] = []
    seen: set[str] = set()
    for entry in abi or []:
        if not isinstance(entry, dict) or entry.get("type") != "event":
            continue
        signature = event_signature(entry)
        topic = "0x" + keccak(text=signature).hex()
        if topic in seen:
            continue
        seen.add(topic)
        inputs = tuple(
            EventInput(name=str(p.get("name") or ""), type=canonical_type(p), indexed=bool(p.get("indexed", False)))
            for p in entry.get("inputs") or []
            if isinstance(p, dict)
        )
        out.append(
            EventSignature(
                name=str(entry.get("name") or ""),
                signature=signature,
                topic=topic,
                selector=topic[:10],
                inputs=inputs,
                anonymous=bool(entry.get("anonymous", False)),
            )
        )
    return out


def group_event_examples(
    logs: list[dict[str, Any]],
    signatures: list[EventSignature],
    *,
    per_type: int = 3,
) -> dict[str, Any]:
    by_topic = {s.topic: s for s in signatures}
    groups: dict[str, dict[str, Any]] = {}
    for log in logs:
        topics = log.get("topics")
        topic0 = str(topics[0]).lower() if isinstance(topics, list) and topics and topics[0] else "unknown"
        group = groups.get(topic0)
        if group is None:
            sig = by_topic.get(topic0)
            group = {
                "topic0": topic0,
                "event": sig.signature if sig else None,
                "count": 0,
                "examples": [],
            }
            groups[topic0] = group
        group["count"] += 1
        if len(group["examples"]) < per_type:
            group["examples"].append(log)
    return {
        "metadata": {
            "totalEventsFound": len(logs),
            "uniqueEventTypes": len(groups),
            "examplesPerEventType": per_type,
        },
        "eventSignatures": [s.to_dict() for s in signatures],
        "eventTypes": list(groups.values()),
    }
