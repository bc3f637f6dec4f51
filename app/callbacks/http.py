# app/callbacks/http.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

import httpx


@dataclass
class HttpResponse:
    status_code: int
    text: str

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300


class HttpClient:
    """
    Thin wrapper over one pooled httpx.Client. Every request is bounded by
    `timeout_s`; transport errors propagate as httpx.HTTPError.
    """

    def __init__(
        self,
        timeout_s: float = 15.0,
        *,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self._client = httpx.Client(timeout=timeout_s, transport=transport)

    def post_json(
        self,
        url: str,
        *,
        headers: dict[str, str],
        json_body: dict[str, Any],
    ) -> HttpResponse:
        r = self._client.post(url, headers=headers, json=json_body)
        return HttpResponse(status_code=r.status_code, text=r.text)

    def close(self) -> None:
        self._client.close()
