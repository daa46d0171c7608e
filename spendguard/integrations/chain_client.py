"""
Spendguard — chain query integration.

Read-only smart queries against contracts at the current block. Every call
is a single synchronous round trip; nothing is cached and nothing is
retried. A failed query raises `ChainQueryError` carrying the failure text,
and the pricing layer turns that into a `PriceCheckFailed`.
"""

from __future__ import annotations

import base64
import json
import logging
from typing import Any, Protocol

import httpx

from spendguard.core.errors import ChainQueryError

logger = logging.getLogger(__name__)


class ChainQuerier(Protocol):
    """Anything that can answer a smart query against a contract."""

    def query_smart(self, contract_addr: str, query: dict[str, Any]) -> dict[str, Any]:
        ...


class LcdQuerier:
    """
    Smart-query client for a Cosmos LCD (REST) endpoint.

    Queries go to `/cosmwasm/wasm/v1/contract/{addr}/smart/{query}` where the
    query is the base64 encoding of its compact JSON form. The LCD wraps the
    contract's answer in a `data` field.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        if not self._client.is_closed:
            self._client.close()

    def __enter__(self) -> LcdQuerier:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @staticmethod
    def encode_query(query: dict[str, Any]) -> str:
        raw = json.dumps(query, separators=(",", ":")).encode()
        return base64.b64encode(raw).decode()

    def query_smart(self, contract_addr: str, query: dict[str, Any]) -> dict[str, Any]:
        path = f"/cosmwasm/wasm/v1/contract/{contract_addr}/smart/{self.encode_query(query)}"
        try:
            resp = self._client.get(path)
            resp.raise_for_status()
            payload = resp.json()
        except httpx.HTTPStatusError as exc:
            raise ChainQueryError(
                f"query failed with status {exc.response.status_code}: {exc.response.text}"
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise ChainQueryError(f"query failed: {exc}") from exc

        if not isinstance(payload, dict) or "data" not in payload:
            raise ChainQueryError(f"malformed query response: {payload!r}")

        logger.debug("Smart query to %s answered", contract_addr)
        return payload["data"]
