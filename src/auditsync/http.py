"""Minimal JSON-over-HTTP helper built on ``urllib``.

Calls are synchronous; async callers run them with ``asyncio.to_thread``.
"""

from __future__ import annotations

import json
from typing import Any
from urllib.error import HTTPError
from urllib.error import URLError
from urllib.request import Request
from urllib.request import urlopen

from auditsync.errors import TransientIOError


class HttpStatusError(TransientIOError):
    """The endpoint answered with a non-2xx status."""

    def __init__(self, status: int, detail: str) -> None:
        super().__init__(f"HTTP {status}: {detail}")
        self.status = status
        self.detail = detail


def send_json(
    method: str,
    url: str,
    *,
    payload: Any = None,
    headers: dict[str, str] | None = None,
    timeout_seconds: float = 10.0,
) -> Any:
    """Send *payload* as JSON and return the decoded response body.

    An empty body decodes to ``None``.
    """
    data = None
    all_headers = {"Accept": "application/json"}
    if payload is not None:
        data = json.dumps(payload, default=str).encode("utf-8")
        all_headers["Content-Type"] = "application/json"
    all_headers.update(headers or {})

    request = Request(url=url, data=data, headers=all_headers, method=method)
    try:
        with urlopen(request, timeout=timeout_seconds) as response:
            raw = response.read().decode("utf-8")
    except HTTPError as exc:
        detail = exc.read().decode("utf-8", errors="replace")
        raise HttpStatusError(exc.code, detail[:200]) from exc
    except URLError as exc:
        raise TransientIOError(f"network error: {exc.reason}") from exc
    except OSError as exc:
        raise TransientIOError(f"IO error: {exc}") from exc

    if not raw.strip():
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return raw
