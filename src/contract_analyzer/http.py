from __future__ import annotations

import http.client
import json
import logging
import random
import ssl
import time
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Any

from .constants import DEFAULT_HTTP_RETRIES, DEFAULT_TIMEOUT_S, USER_AGENT

logger = logging.getLogger(__name__)

RETRY_STATUS = (429, 500, 502, 503, 504)
# HTTPException covers truncated bodies (IncompleteRead) and garbled status lines.
TRANSIENT_ERRORS = (
    urllib.error.URLError,
    http.client.HTTPException,
    TimeoutError,
    ssl.SSLError,
    ConnectionResetError,
)


@dataclass(frozen=True)
class HttpResponse:
    status: int
    content_type: str
    body: bytes

    def json(self) -> Any:
        return json.loads(self.body.decode("utf-8"))


def sleep_backoff(attempt: int, *, base_s: float = 0.5, max_s: float = 8.0) -> None:
    # Exponential backoff with small jitter.
    delay = min(max_s, base_s * (2**attempt))
    delay *= 1.0 + random.random() * 0.2
    time.sleep(delay)


def _urlopen(url: str, *, timeout_s: int, retries: int) -> HttpResponse:
    req = urllib.request.Request(url, headers={"User-Agent": USER_AGENT, "Accept": "application/json"})
    attempts = max(1, int(retries) + 1)
    for attempt in range(attempts):
        try:
            with urllib.request.urlopen(req, timeout=timeout_s) as resp:
                content_type = str(resp.headers.get("Content-Type") or "")
                return HttpResponse(status=int(getattr(resp, "status", 200)), content_type=content_type, body=resp.read())
        except urllib.error.HTTPError as exc:
            # Retry common transient server-side issues.
            if exc.code in RETRY_STATUS and attempt + 1 < attempts:
                logger.debug("HTTP %s from %s, retrying (attempt %d/%d)", exc.code, url, attempt + 1, attempts)
                retry_after = exc.headers.get("Retry-After") if exc.headers is not None else None
                if retry_after:
                    try:
                        time.sleep(max(0.0, float(retry_after)))
                        continue
                    except ValueError:
                        pass
                sleep_backoff(attempt)
                continue
            raise
        except TRANSIENT_ERRORS:
            if attempt + 1 < attempts:
                sleep_backoff(attempt)
                continue
            raise
    raise RuntimeError("Unexpected _urlopen retry loop exit")


def _urlopen_bytes(url: str, *, timeout_s: int, retries: int) -> bytes:
    return _urlopen(url, timeout_s=timeout_s, retries=retries).body


def http_get(url: str, timeout_s: int = DEFAULT_TIMEOUT_S, *, retries: int = DEFAULT_HTTP_RETRIES) -> HttpResponse:
    return _urlopen(url, timeout_s=timeout_s, retries=retries)


def http_get_json(url: str, timeout_s: int = DEFAULT_TIMEOUT_S, *, retries: int = DEFAULT_HTTP_RETRIES) -> Any:
    attempts = max(1, int(retries) + 1)
    last_exc: BaseException | None = None
    for attempt in range(attempts):
        try:
            raw = _urlopen_bytes(url, timeout_s=timeout_s, retries=0)
        except urllib.error.HTTPError as exc:
            last_exc = exc
            if exc.code in RETRY_STATUS and attempt + 1 < attempts:
                logger.debug("HTTP %s from %s, retrying (attempt %d/%d)", exc.code, url, attempt + 1, attempts)
                sleep_backoff(attempt)
                continue
            raise
        except TRANSIENT_ERRORS as exc:
            last_exc = exc
            if attempt + 1 < attempts:
                sleep_backoff(attempt)
                continue
            raise
        try:
            return json.loads(raw.decode("utf-8"))
        except ValueError as exc:
            # Truncated/garbled responses happen; treat as transient.
            last_exc = RuntimeError(f"Failed to decode JSON from {url}: {exc}")
            if attempt + 1 < attempts:
                sleep_backoff(attempt)
                continue
            raise last_exc from exc

    if last_exc is not None:
        raise last_exc
    raise RuntimeError("Unexpected http_get_json retry loop exit")


def http_post_json(
    url: str,
    payload: dict[str, Any],
    timeout_s: int = DEFAULT_TIMEOUT_S,
    *,
    retries: int = DEFAULT_HTTP_RETRIES,
) -> Any:
    body = json.dumps(payload).encode("utf-8")
    attempts = max(1, int(retries) + 1)
    last_exc: BaseException | None = None
    for attempt in range(attempts):
        req = urllib.request.Request(
            url,
            data=body,
            headers={
                "User-Agent": USER_AGENT,
                "Content-Type": "application/json",
            },
            method="POST",
        )
        try:
            with urllib.request.urlopen(req, timeout=timeout_s) as resp:
                raw = resp.read()
            try:
                return json.loads(raw.decode("utf-8"))
            except ValueError as exc:
                last_exc = RuntimeError(f"Failed to decode JSON from {url}: {exc}")
                if attempt + 1 < attempts:
                    sleep_backoff(attempt)
                    continue
                raise last_exc from exc
        except urllib.error.HTTPError as exc:
            last_exc = exc
            if exc.code in RETRY_STATUS and attempt + 1 < attempts:
                sleep_backoff(attempt)
                continue
            raise
        except TRANSIENT_ERRORS as exc:
            last_exc = exc
            if attempt + 1 < attempts:
                sleep_backoff(attempt)
                continue
            raise

    if last_exc is not None:
        raise last_exc
    raise RuntimeError("Unexpected http_post_json retry loop exit")
