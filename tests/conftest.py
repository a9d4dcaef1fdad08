"""
Configuración de tests y fixtures compartidos.
"""

import json
from typing import Any

import httpx
import pytest

from payment_gateways.adapters.credentials import GatewayCredentials, InMemoryCredentialsProvider
from payment_gateways.adapters.mercadopago_adapter import MercadoPagoGateway
from payment_gateways.clients.mercadopago_client import MercadoPagoClient


TENANT_ID = "42"
OTHER_TENANT_ID = "77"
MP_ACCESS_TOKEN = "TEST-1234567890-abcdef"
MP_WEBHOOK_SECRET = "mp_webhook_secret_for_tests"
MP_BASE_URL = "https://api.mercadopago.test"


class FakeClock:
    """Reloj monotónico controlable para probar el TTL del cache."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class MercadoPagoAPIStub:
    """
    Simula la API REST de MercadoPago para httpx.MockTransport.

    Responde 400 al modificar un preapproval cancelado, igual que la
    API real.
    """

    def __init__(self) -> None:
        self.preapprovals: dict[str, dict[str, Any]] = {}
        self.payments: dict[str, dict[str, Any]] = {}
        self.authorized_payments: dict[str, dict[str, Any]] = {}
        self.requests: list[httpx.Request] = []
        self.fail_with: int | None = None

    def add_preapproval(self, status: str = "authorized", **fields: Any) -> dict[str, Any]:
        preapproval_id = f"2c93808{len(self.preapprovals):025d}"
        record = {
            "id": preapproval_id,
            "status": status,
            "reason": "Plan Pro",
            "payer_email": "owner@example.com",
            "external_reference": f"org_{TENANT_ID}_1700000000",
            "auto_recurring": {
                "frequency": 1,
                "frequency_type": "months",
                "transaction_amount": 499.0,
                "currency_id": "MXN",
            },
            "init_point": (
                "https://www.mercadopago.com.mx/subscriptions/checkout"
                f"?preapproval_id={preapproval_id}"
            ),
            "sandbox_init_point": (
                "https://sandbox.mercadopago.com.mx/subscriptions/checkout"
                f"?preapproval_id={preapproval_id}"
            ),
            "next_payment_date": "2026-11-19T10:00:00.000-04:00",
        }
        record.update(fields)
        self.preapprovals[preapproval_id] = record
        return record

    def _json(self, status_code: int, body: Any) -> httpx.Response:
        return httpx.Response(status_code, json=body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        method = request.method
        path = request.url.path

        if self.fail_with is not None:
            return self._json(self.fail_with, {"message": "upstream failure", "status": self.fail_with})

        if method == "POST" and path == "/preapproval":
            body = json.loads(request.content)
            record = self.add_preapproval(
                status=body["status"],
                reason=body["reason"],
                payer_email=body["payer_email"],
                external_reference=body.get("external_reference"),
                auto_recurring=body["auto_recurring"],
                next_payment_date=None,
            )
            return self._json(201, record)

        if path.startswith("/preapproval/"):
            record = self.preapprovals.get(path.rsplit("/", 1)[-1])
            if record is None:
                return self._json(404, {"message": "Preapproval not found", "status": 404})
            if method == "GET":
                return self._json(200, record)
            if method == "PUT":
                if record["status"] == "cancelled":
                    return self._json(
                        400,
                        {"message": "You can not modify a cancelled preapproval", "status": 400},
                    )
                body = json.loads(request.content)
                if "status" in body:
                    record["status"] = body["status"]
                if "auto_recurring" in body:
                    record["auto_recurring"].update(body["auto_recurring"])
                return self._json(200, record)

        if method == "GET" and path.startswith("/v1/payments/"):
            record = self.payments.get(path.rsplit("/", 1)[-1])
            if record is None:
                return self._json(404, {"message": "Payment not found", "status": 404})
            return self._json(200, record)

        if method == "GET" and path.startswith("/authorized_payments/"):
            record = self.authorized_payments.get(path.rsplit("/", 1)[-1])
            if record is None:
                return self._json(404, {"message": "Authorized payment not found", "status": 404})
            return self._json(200, record)

        if method == "GET" and path == "/users/me":
            return self._json(200, {"id": 123456789, "site_id": "MLM", "nickname": "TESTUSER"})

        return self._json(404, {"message": f"No route for {method} {path}"})


def build_mercadopago_gateway_class(api: MercadoPagoAPIStub) -> type[MercadoPagoGateway]:
    """Subclase de MercadoPagoGateway cuyo cliente habla con el stub."""

    class StubbedMercadoPagoGateway(MercadoPagoGateway):
        @staticmethod
        def _build_client(credentials: GatewayCredentials) -> MercadoPagoClient:
            return MercadoPagoClient(
                access_token=credentials.access_token,
                base_url=MP_BASE_URL,
                transport=httpx.MockTransport(api.handler),
            )

    return StubbedMercadoPagoGateway


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def mp_api() -> MercadoPagoAPIStub:
    return MercadoPagoAPIStub()


@pytest.fixture
def mp_credentials() -> GatewayCredentials:
    return GatewayCredentials(
        access_token=MP_ACCESS_TOKEN,
        webhook_secret=MP_WEBHOOK_SECRET,
        environment="sandbox",
    )


@pytest.fixture
def credentials_provider(mp_credentials: GatewayCredentials) -> InMemoryCredentialsProvider:
    provider = InMemoryCredentialsProvider()
    provider.register(TENANT_ID, "mercadopago", mp_credentials)
    provider.register(OTHER_TENANT_ID, "mercadopago", mp_credentials)
    return provider


@pytest.fixture
def mp_gateway_class(mp_api: MercadoPagoAPIStub) -> type[MercadoPagoGateway]:
    return build_mercadopago_gateway_class(mp_api)


@pytest.fixture
def mp_gateway(
    mp_gateway_class: type[MercadoPagoGateway],
    mp_credentials: GatewayCredentials,
) -> MercadoPagoGateway:
    return mp_gateway_class(TENANT_ID, credentials=mp_credentials)
