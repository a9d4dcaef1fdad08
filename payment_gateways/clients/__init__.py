"""
Clientes HTTP de proveedores.
"""

from payment_gateways.clients.mercadopago_client import MercadoPagoClient

__all__ = ["MercadoPagoClient"]
