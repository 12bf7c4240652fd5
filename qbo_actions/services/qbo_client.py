from __future__ import annotations

import logging
from dataclasses import dataclass, field
from time import perf_counter
from typing import Any, Optional

import httpx

from qbo_actions.core.config import Settings, get_settings
from qbo_actions.core.http import get_async_client, send_with_backoff
from qbo_actions.core.logging import sanitize_payload
from qbo_actions.schemas.actions import Environment
from qbo_actions.services.errors import QuickBooksApiError, api_error_from_response


@dataclass(frozen=True)
class QuickBooksCredentials:
    access_token: str
    realm_id: str
    environment: Environment = "sandbox"


@dataclass
class PreparedRequest:
    method: str
    path: str
    params: dict[str, Any] = field(default_factory=dict)
    json: Optional[dict[str, Any]] = None
    headers: dict[str, str] = field(default_factory=dict)
    binary: bool = False


class QuickBooksClient:
    SANDBOX_API_BASE = "https://sandbox-quickbooks.api.intuit.com"
    PROD_API_BASE = "https://quickbooks.api.intuit.com"

    def __init__(
        self,
        credentials: QuickBooksCredentials,
        settings: Settings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.credentials = credentials
        self.settings = settings or get_settings()
        self.transport = transport
        self.logger = logging.getLogger("qbo_actions.services.qbo")

    async def send(self, request: PreparedRequest) -> Any:
        """Issue a request relative to the company base URL.

        Returns the decoded JSON payload, or raw bytes for binary requests.
        """
        url = self.build_url(request.path)
        headers = {
            "Authorization": f"Bearer {self.credentials.access_token}",
            "Accept": "application/pdf" if request.binary else "application/json",
        }
        if request.json is not None:
            headers["Content-Type"] = "application/json"
        headers.update(request.headers)
        params = {**request.params, "minorversion": self.settings.qbo_minor_version}
        kwargs: dict[str, Any] = {"params": params, "headers": headers}
        if request.json is not None:
            kwargs["json"] = request.json

        async with get_async_client(self.settings, transport=self.transport) as client:
            start = perf_counter()
            try:
                response = await send_with_backoff(
                    client,
                    request.method,
                    url,
                    settings=self.settings,
                    **kwargs,
                )
            except httpx.HTTPError as exc:
                self.logger.error(
                    "qbo_request_transport_error",
                    extra={
                        "method": request.method,
                        "path": request.path,
                        "error": str(exc),
                    },
                )
                raise QuickBooksApiError(f"QuickBooks request could not be completed: {exc}") from exc
            latency_ms = (perf_counter() - start) * 1000

        if response.is_error:
            body = response.text
            self.logger.error(
                "qbo_request_failed",
                extra={
                    "method": request.method,
                    "path": request.path,
                    "status": response.status_code,
                    "body": body,
                    "latency_ms": round(latency_ms, 2),
                },
            )
            raise api_error_from_response(
                response.status_code,
                body,
                action=f"{request.method} {request.path}",
            )

        self.logger.info(
            "qbo_request_completed",
            extra={
                "method": request.method,
                "path": request.path,
                "status": response.status_code,
                "latency_ms": round(latency_ms, 2),
                "payload": sanitize_payload(request.json),
            },
        )
        if request.binary:
            return response.content
        try:
            return response.json()
        except ValueError as exc:
            raise QuickBooksApiError(
                f"QuickBooks returned a non-JSON payload for {request.method} {request.path}",
                status_code=response.status_code,
                body=response.text,
            ) from exc

    async def get_entity(self, resource: str, entity_id: str) -> dict[str, Any]:
        return await self.send(PreparedRequest(method="GET", path=f"/{resource}/{entity_id}"))

    async def query(
        self,
        select_sql: str,
        *,
        startposition: int | None = None,
        maxresults: int | None = None,
    ) -> dict[str, Any]:
        statement = select_sql.strip()
        if startposition:
            statement = f"{statement} STARTPOSITION {startposition}"
        if maxresults:
            statement = f"{statement} MAXRESULTS {maxresults}"
        return await self.send(
            PreparedRequest(method="GET", path="/query", params={"query": statement})
        )

    def build_url(self, path: str) -> str:
        return f"{self._build_company_base_url()}{path}"

    def _build_company_base_url(self) -> str:
        base = (
            self.SANDBOX_API_BASE
            if self.credentials.environment == "sandbox"
            else self.PROD_API_BASE
        )
        return f"{base}/v3/company/{self.credentials.realm_id}"
