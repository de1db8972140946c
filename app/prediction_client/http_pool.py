"""HTTP connection pooling для клиента сервиса предсказаний"""
from __future__ import annotations

import httpx
from httpx import Limits

# Глобальный пул соединений
_prediction_http_client: httpx.AsyncClient | None = None
_prediction_base_url: str | None = None


async def get_prediction_http_client(base_url: str, timeout: float = 60.0) -> httpx.AsyncClient:
    """Получить или создать HTTP клиент с connection pooling"""
    global _prediction_http_client, _prediction_base_url
    if (
        _prediction_http_client is None
        or _prediction_http_client.is_closed
        or _prediction_base_url != base_url
    ):
        await close_prediction_http_client()
        _prediction_http_client = httpx.AsyncClient(
            base_url=base_url,
            limits=Limits(max_connections=10, max_keepalive_connections=5),
            timeout=timeout,
        )
        _prediction_base_url = base_url
    return _prediction_http_client


async def close_prediction_http_client() -> None:
    """Закрыть общий HTTP клиент"""
    global _prediction_http_client, _prediction_base_url
    if _prediction_http_client is not None and not _prediction_http_client.is_closed:
        await _prediction_http_client.aclose()
    _prediction_http_client = None
    _prediction_base_url = None
