"""
Utilidades para firmas HMAC-SHA256.
Usadas para verificar webhooks entrantes de las pasarelas.
"""

import hashlib
import hmac
import time

import structlog


logger = structlog.get_logger(__name__)


def generate_signature(payload: bytes, secret: str) -> str:
    """
    Genera una firma HMAC-SHA256 para un payload.

    Args:
        payload: Datos a firmar (bytes)
        secret: Clave secreta

    Returns:
        Firma hexadecimal
    """
    return hmac.new(
        secret.encode("utf-8"),
        payload,
        hashlib.sha256,
    ).hexdigest()


def verify_signature(payload: bytes, signature: str, secret: str) -> bool:
    """
    Verifica una firma HMAC-SHA256 en tiempo constante.

    Nunca lanza: una firma con caracteres no ASCII o de longitud
    distinta simplemente no coincide.
    """
    expected = generate_signature(payload, secret).encode("ascii")
    received = signature.strip().lower().encode("utf-8", errors="replace")
    return hmac.compare_digest(expected, received)


def parse_signature_header(signature_header: str) -> dict[str, str]:
    """
    Parsea un header de firma "clave=valor,clave=valor".

    Ejemplo: "ts=1704908010,v1=618c85345248dd8..." -> {"ts": ..., "v1": ...}
    """
    parts: dict[str, str] = {}
    for item in signature_header.split(","):
        if "=" in item:
            key, value = item.split("=", 1)
            parts[key.strip()] = value.strip()
    return parts


def build_mercadopago_manifest(data_id: str, request_id: str, timestamp: str) -> str:
    """
    Construye el manifest que MercadoPago firma.

    Los ids alfanuméricos se firman en minúsculas.
    """
    if data_id.isalnum():
        data_id = data_id.lower()
    return f"id:{data_id};request-id:{request_id};ts:{timestamp};"


def create_mercadopago_signature_header(
    data_id: str,
    request_id: str,
    secret: str,
    timestamp: int | None = None,
) -> str:
    """
    Crea un header x-signature válido (formato "ts=<ts>,v1=<hash>").

    Útil para pruebas y para la pasarela mock.
    """
    if timestamp is None:
        timestamp = int(time.time() * 1000)

    manifest = build_mercadopago_manifest(data_id, request_id, str(timestamp))
    signature = generate_signature(manifest.encode("utf-8"), secret)

    return f"ts={timestamp},v1={signature}"


def verify_mercadopago_signature(
    signature_header: str | None,
    request_id: str | None,
    data_id: str | None,
    secret: str | None,
) -> bool:
    """
    Verifica el header x-signature de un webhook de MercadoPago.

    Args:
        signature_header: Header "x-signature"
        request_id: Header "x-request-id"
        data_id: ID del recurso notificado (data.id)
        secret: Secret de webhooks del tenant

    Returns:
        True si la firma es válida. Nunca lanza.
    """
    if not signature_header or not request_id or not data_id:
        logger.warning(
            "Webhook missing validation data",
            has_signature=bool(signature_header),
            has_request_id=bool(request_id),
            has_data_id=bool(data_id),
        )
        return False

    if not secret:
        logger.warning("Webhook secret not configured")
        return False

    try:
        parts = parse_signature_header(str(signature_header))
        timestamp = parts.get("ts", "")
        received = parts.get("v1", "")

        # Se calcula siempre el digest para no filtrar por tiempo qué parte falló
        manifest = build_mercadopago_manifest(str(data_id), str(request_id), timestamp)
        is_valid = verify_signature(manifest.encode("utf-8"), received, secret)
        is_valid = is_valid and bool(timestamp)

        if not is_valid:
            logger.warning(
                "Webhook signature mismatch",
                data_id=str(data_id),
                request_id=str(request_id),
            )
        else:
            logger.debug("Webhook signature verified", data_id=str(data_id))

        return is_valid

    except Exception as e:
        logger.warning("Unexpected error verifying webhook signature", error=str(e))
        return False
