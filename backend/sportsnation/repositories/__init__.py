"""
Repository Layer - Data Access

This layer handles all database queries and returns domain models.
Repositories abstract away SQL details from business logic.
"""
from sportsnation.repositories.order_repository import OrderRepository
from sportsnation.repositories.otp_repository import OtpRepository
from sportsnation.repositories.analytics_repository import AnalyticsRepository

__all__ = [
    'OrderRepository',
    'OtpRepository',
    'AnalyticsRepository'
]
