from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import httpx
from loguru import logger as default_logger

from deep_research.exceptions import ProviderError, ProviderNotConfiguredError

if TYPE_CHECKING:
    from loguru import Logger


class ProviderClient:
    """Shared request plumbing for the provider HTTP clients."""

    name: str = ""
    base_url: str = ""
    env_var: str = ""

    def __init__(
        self,
        api_key: str,
        *,
        logger: Logger | None = None,
        timeout: float = 170.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key.strip()
        self.timeout = timeout
        self._transport = transport
        self.logger = (logger or default_logger).bind(provider=self.name.lower())

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}

    async def _request(
        self,
        endpoint: str,
        body: dict[str, Any] | None = None,
        *,
        method: str = "POST",
    ) -> Any:
        if not self.configured:
            raise ProviderNotConfiguredError(f"{self.env_var} is not configured")

        if body is not None:
            self.logger.debug(f"[{self.name}] {method} {endpoint} {json.dumps(body)[:500]}")

        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
        ) as client:
            response = await client.request(
                method,
                endpoint,
                json=body,
                headers={"Content-Type": "application/json", **self._auth_headers()},
            )

        if not response.is_success:
            msg = f"{self.name} API {endpoint} failed ({response.status_code}): {response.text[:500]}"
            self.logger.error(f"[{self.name}] {msg}")
            raise ProviderError(msg, status_code=response.status_code)

        try:
            payload = response.json()
        except ValueError as e:
            raise ProviderError(f"{self.name} API {endpoint} returned invalid JSON") from e

        self.logger.debug(f"[{self.name}] {endpoint} OK")
        return payload


def compact(body: dict[str, Any]) -> dict[str, Any]:
    """Drop unset options so the provider applies its own defaults."""
    return {k: v for k, v in body.items() if v is not None and v != [] and v != ""}
