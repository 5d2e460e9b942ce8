"""
Services package
"""
from printshop.services.order_service import OrderService
from printshop.services.payment_service import PaymentService
from printshop.services.product_service import ProductService
from printshop.services.mpesa_client import MpesaClient

__all__ = ["OrderService", "PaymentService", "ProductService", "MpesaClient"]
