"""Shared fixtures: a scripted urlopen so no test touches the network."""

from __future__ import annotations

import json
import urllib.error
from typing import Any

import pytest

from contract_analyzer.types import Chain


class FakeResponse:
    def __init__(self, body: bytes, *, status: int = 200, content_type: str = "application/json") -> None:
        self._body = body
        self.status = status
        self.headers = {"Content-Type": content_type}

    def read(self) -> bytes:
        return self._body

    def __enter__(self) -> "FakeResponse":
        return self

    def __exit__(self, *exc: Any) -> None:
        return None


class FakeUrlopen:
    """Replays queued responses (or raises queued exceptions) in order."""

    def __init__(self) -> None:
        self.queue: list[Any] = []
        self.urls: list[str] = []

    def json(self, data: Any, *, content_type: str = "application/json") -> "FakeUrlopen":
        self.queue.append(FakeResponse(json.dumps(data).encode("utf-8"), content_type=content_type))
        return self

    def raw(self, body: bytes, *, content_type: str = "text/html") -> "FakeUrlopen":
        self.queue.append(FakeResponse(body, content_type=content_type))
        return self

    def error(self, code: int, *, headers: dict[str, str] | None = None) -> "FakeUrlopen":
        self.queue.append(urllib.error.HTTPError("https://fake.test", code, f"HTTP {code}", headers or {}, None))
        return self

    def raises(self, exc: BaseException) -> "FakeUrlopen":
        self.queue.append(exc)
        return self

    def explorer(self, result: Any, *, status: str = "1", message: str = "OK") -> "FakeUrlopen":
        return self.json({"status": status, "message": message, "result": result})

    def __call__(self, req: Any, timeout: Any = None) -> FakeResponse:
        url = getattr(req, "full_url", str(req))
        self.urls.append(url)
        if not self.queue:
            raise AssertionError(f"unexpected request: {url}")
        item = self.queue.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    slept: list[float] = []
    monkeypatch.setattr("contract_analyzer.http.time.sleep", slept.append)
    monkeypatch.setattr("contract_analyzer.explorer.time.sleep", slept.append)
    return slept


@pytest.fixture
def fake_http(monkeypatch: pytest.MonkeyPatch) -> FakeUrlopen:
    fake = FakeUrlopen()
    monkeypatch.setattr("contract_analyzer.http.urllib.request.urlopen", fake)
    return fake


@pytest.fixture
def chain() -> Chain:
    return Chain(
        id=1,
        name="Ethereum Mainnet",
        short_name="mainnet",
        explorer_api_url="https://api.explorer.test/api",
        api_key="TESTKEY",
    )


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("EXPLORER_API_KEY", "ETHERSCAN_API_KEY", "EXPLORER_API_KEY_1", "EXPLORER_API_KEY_137"):
        monkeypatch.delenv(name, raising=False)
