"""
Domain Layer - Business Entities

Pydantic models representing orders, courier payloads and OTP records.
"""
from sportsnation.domain.order import Order, OrderItem, TrackingUpdate
from sportsnation.domain.otp import OtpRecord, OtpResult
from sportsnation.domain.courier import (
    CourierTracking,
    PathaoArea,
    PathaoCity,
    PathaoOrderRequest,
    PathaoOrderResponse,
    PathaoPriceRequest,
    PathaoPriceResponse,
    PathaoStore,
    PathaoToken,
    PathaoZone,
)

__all__ = [
    'Order', 'OrderItem', 'TrackingUpdate',
    'OtpRecord', 'OtpResult',
    'CourierTracking', 'PathaoArea', 'PathaoCity', 'PathaoOrderRequest',
    'PathaoOrderResponse', 'PathaoPriceRequest', 'PathaoPriceResponse',
    'PathaoStore', 'PathaoToken', 'PathaoZone',
]
