from __future__ import annotations

from contract_analyzer.events import event_signature, extract_event_signatures, group_event_examples
from contract_analyzer.proxy import combine_abi

TRANSFER_TOPIC = "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"

TRANSFER = {
    "type": "event",
    "name": "Transfer",
    "anonymous": False,
    "inputs": [
        {"name": "from", "type": "address", "indexed": True},
        {"name": "to", "type": "address", "indexed": True},
        {"name": "value", "type": "uint256", "indexed": False},
    ],
}
UPGRADED = {"type": "event", "name": "Upgraded", "inputs": [{"name": "implementation", "type": "address", "indexed": True}]}


def test_transfer_signature_topic_and_selector() -> None:
    (sig,) = extract_event_signatures([TRANSFER, {"type": "function", "name": "transfer", "inputs": []}])
    assert sig.signature == "Transfer(address,address,uint256)"
    assert sig.topic == TRANSFER_TOPIC
    assert sig.selector == "0xddf252ad"
    assert [i.indexed for i in sig.inputs] == [True, True, False]


def test_duplicate_events_are_listed_once() -> None:
    renamed_params = dict(TRANSFER, inputs=[dict(p, name=f"p{n}") for n, p in enumerate(TRANSFER["inputs"])])
    sigs = extract_event_signatures([TRANSFER, renamed_params])
    assert len(sigs) == 1


def test_combined_abi_signatures_cover_proxy_and_implementation() -> None:
    proxy_abi = [UPGRADED]
    impl_abi = [TRANSFER]
    names = {s.name for s in extract_event_signatures(combine_abi(proxy_abi, impl_abi))}
    assert names == {"Transfer", "Upgraded"}
    assert names >= {s.name for s in extract_event_signatures(impl_abi)}


def test_tuple_parameters_are_expanded() -> None:
    entry = {
        "type": "event",
        "name": "OrderFilled",
        "inputs": [
            {"name": "order", "type": "tuple", "components": [{"type": "address"}, {"type": "uint256[]"}]},
            {"name": "ok", "type": "bool"},
        ],
    }
    assert event_signature(entry) == "OrderFilled((address,uint256[]),bool)"


def test_group_event_examples_caps_examples_per_type() -> None:
    sigs = extract_event_signatures([TRANSFER])
    logs = [{"topics": [TRANSFER_TOPIC, "0x1"], "logIndex": hex(n)} for n in range(5)]
    logs.append({"topics": ["0xabc"], "logIndex": "0x9"})
    logs.append({"topics": [], "logIndex": "0xa"})
    info = group_event_examples(logs, sigs)

    assert info["metadata"] == {"totalEventsFound": 7, "uniqueEventTypes": 3, "examplesPerEventType": 3}
    transfer, other, unknown = info["eventTypes"]
    assert transfer["event"] == "Transfer(address,address,uint256)"
    assert transfer["count"] == 5
    assert len(transfer["examples"]) == 3
    assert other["event"] is None
    assert unknown["topic0"] == "unknown"
    assert info["eventSignatures"][0]["topic"] == TRANSFER_TOPIC
