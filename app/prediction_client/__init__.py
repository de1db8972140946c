"""
Модуль клиента сервиса предсказаний.

Компоненты:
- client.py - PredictionClient
- models.py - RemoteJob
- exceptions.py - RemoteServiceError, AuthenticationError, etc.
- http_pool.py - Connection pooling
"""

from app.prediction_client.client import PredictionClient
from app.prediction_client.exceptions import (
    AuthenticationError,
    RemoteJobError,
    RemoteServiceError,
    ServerError,
    TransportError,
)
from app.prediction_client.http_pool import close_prediction_http_client
from app.prediction_client.models import RemoteJob

__all__ = [
    "PredictionClient",
    "RemoteJob",
    "RemoteServiceError",
    "AuthenticationError",
    "ServerError",
    "TransportError",
    "RemoteJobError",
    "close_prediction_http_client",
]
