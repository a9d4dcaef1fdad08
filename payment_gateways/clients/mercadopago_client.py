"""
Cliente HTTP para la API REST de MercadoPago.

Cada llamada abre y cierra su propio httpx.AsyncClient, de modo que
una instancia no retiene recursos que requieran cierre explícito.
"""

from typing import Any
from uuid import uuid4

import httpx
import structlog

from payment_gateways.utils.exceptions import NotFoundError, ProviderError


logger = structlog.get_logger(__name__)

DEFAULT_BASE_URL = "https://api.mercadopago.com"
DEFAULT_TIMEOUT_SECONDS = 5.0

PROVIDER = "mercadopago"


class MercadoPagoClient:
    """
    Wrapper mínimo sobre los endpoints de preapproval, pagos y
    authorized_payments.

    Los errores HTTP se traducen a ProviderError/NotFoundError con la
    operación y el status del proveedor; no hay reintentos.
    """

    def __init__(
        self,
        access_token: str,
        base_url: str | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._access_token = access_token
        self._base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self._timeout = timeout
        self._transport = transport

    @property
    def access_token(self) -> str:
        return self._access_token

    def _headers(self, idempotent_write: bool) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self._access_token}",
            "Content-Type": "application/json",
        }
        if idempotent_write:
            # Clave nueva por request: evita dobles envíos del propio
            # cliente HTTP pero no deduplica reintentos del llamador.
            headers["X-Idempotency-Key"] = uuid4().hex
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        json: dict[str, Any] | None = None,
        resource_id: str | None = None,
    ) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                response = await client.request(
                    method,
                    path,
                    json=json,
                    headers=self._headers(idempotent_write=method in ("POST", "PUT")),
                )
        except httpx.HTTPError as e:
            logger.error(
                "MercadoPago request failed",
                operation=operation,
                path=path,
                error=str(e),
            )
            raise ProviderError(PROVIDER, operation, f"Request failed: {e}") from e

        body = _safe_json(response)

        if response.status_code == 404 and resource_id is not None:
            raise NotFoundError(PROVIDER, operation, resource_id, response=body)

        if response.is_error:
            message = body.get("message") or body.get("error") or response.text or "Unknown error"
            logger.error(
                "MercadoPago API error",
                operation=operation,
                status_code=response.status_code,
                message=message,
            )
            raise ProviderError(
                PROVIDER,
                operation,
                str(message),
                status_code=response.status_code,
                response=body,
            )

        return body

    # ====================================================================
    # SUSCRIPCIONES (preapproval)
    # ====================================================================

    async def create_preapproval(self, body: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", "/preapproval", "create_subscription", json=body)

    async def get_preapproval(self, preapproval_id: str) -> dict[str, Any]:
        return await self._request(
            "GET",
            f"/preapproval/{preapproval_id}",
            "get_subscription",
            resource_id=preapproval_id,
        )

    async def update_preapproval(
        self,
        preapproval_id: str,
        body: dict[str, Any],
        operation: str = "update_subscription",
    ) -> dict[str, Any]:
        return await self._request(
            "PUT",
            f"/preapproval/{preapproval_id}",
            operation,
            json=body,
            resource_id=preapproval_id,
        )

    # ====================================================================
    # PAGOS
    # ====================================================================

    async def get_payment(self, payment_id: str) -> dict[str, Any]:
        return await self._request(
            "GET",
            f"/v1/payments/{payment_id}",
            "get_payment",
            resource_id=payment_id,
        )

    async def get_authorized_payment(self, authorized_payment_id: str) -> dict[str, Any]:
        return await self._request(
            "GET",
            f"/authorized_payments/{authorized_payment_id}",
            "get_authorized_payment",
            resource_id=authorized_payment_id,
        )

    # ====================================================================
    # CUENTA
    # ====================================================================

    async def get_current_user(self) -> dict[str, Any]:
        return await self._request("GET", "/users/me", "verify_connectivity")


def _safe_json(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {"data": body}
