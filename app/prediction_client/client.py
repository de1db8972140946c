"""HTTP-клиент для endpoint'а предсказаний"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional

import httpx

from app.config import settings
from app.prediction_client.exceptions import (
    AuthenticationError,
    RemoteJobError,
    RemoteServiceError,
    ServerError,
    TransportError,
)
from app.prediction_client.http_pool import get_prediction_http_client
from app.prediction_client.models import RemoteJob

logger = logging.getLogger(__name__)


@dataclass
class PredictionClient:
    """
    Клиент endpoint'а, проксирующего удалённый сервис предсказаний

    Создание: POST {prediction_path} с телом {replicate_api_token, input}.
    Polling: GET {prediction_path}?ids=a,b,c&token=... одним запросом на все ID.
    Автоматических повторов нет: следующий цикл polling сам повторит запрос.
    """

    base_url: str = field(default_factory=lambda: settings.api_base_url)
    prediction_path: str = field(default_factory=lambda: settings.prediction_path)
    timeout: float = field(default_factory=lambda: settings.request_timeout)
    http_client: Optional[httpx.AsyncClient] = field(default=None, repr=False)

    def __post_init__(self):
        logger.info(
            f"PredictionClient initialized: base_url={self.base_url}, "
            f"path={self.prediction_path}"
        )

    async def _client(self) -> httpx.AsyncClient:
        if self.http_client is not None:
            return self.http_client
        return await get_prediction_http_client(self.base_url, self.timeout)

    def _handle_response_error(self, resp: httpx.Response):
        """Обработать ошибки ответа с понятными сообщениями"""
        if resp.status_code < 400:
            return
        detail = resp.text[:500]
        if resp.status_code == 401:
            raise AuthenticationError("Неверный токен сервиса предсказаний", resp.status_code)
        if resp.status_code >= 500:
            raise ServerError(f"Ошибка сервера: {resp.status_code} {detail}", resp.status_code)
        raise RemoteServiceError(f"Ошибка запроса: {resp.status_code} {detail}", resp.status_code)

    async def _request(self, method: str, **kwargs) -> Any:
        """Выполнить запрос и вернуть разобранный JSON"""
        client = await self._client()
        try:
            resp = await client.request(
                method, self.prediction_path, timeout=self.timeout, **kwargs
            )
        except httpx.HTTPError as e:
            logger.error(f"Сетевая ошибка {method} {self.prediction_path}: {e}")
            raise TransportError(f"Сервер недоступен: {e}") from e

        logger.debug(f"{method} {self.prediction_path} response: {resp.status_code}")
        self._handle_response_error(resp)
        try:
            return resp.json()
        except ValueError as e:
            raise RemoteServiceError(
                f"Некорректный JSON в ответе: {resp.text[:200]}", resp.status_code
            ) from e

    async def create(self, credential: Optional[str], input: dict) -> RemoteJob:
        """
        Создать задачу генерации

        Returns:
            RemoteJob с id, начальным статусом и эхом input

        Raises:
            RemoteServiceError: ошибка транспорта или поле error в ответе
        """
        body = {"replicate_api_token": credential, "input": input}
        data = await self._request("POST", json=body)

        if not isinstance(data, dict):
            raise RemoteServiceError(f"Неожиданный ответ при создании: {data!r:.200}")
        if data.get("error"):
            raise RemoteJobError(str(data["error"]))
        try:
            return RemoteJob.from_dict(data)
        except ValueError as e:
            raise RemoteServiceError(str(e)) from e

    async def poll_batch(
        self, credential: Optional[str], remote_job_ids: Iterable[str]
    ) -> List[RemoteJob]:
        """
        Получить статусы набора задач одним запросом

        Ответ может быть одним объектом или списком, всегда нормализуется
        в список. Пустой набор ID не порождает запроса.

        Raises:
            RemoteServiceError: ошибка транспорта или error верхнего уровня
        """
        ids = list(dict.fromkeys(job_id for job_id in remote_job_ids if job_id))
        if not ids:
            return []

        params = {"ids": ",".join(ids)}
        if credential:
            params["token"] = credential
        logger.debug(f"poll_batch: GET {self.prediction_path} ids={ids} token=***")
        data = await self._request("GET", params=params)

        if data is None:
            raise RemoteServiceError("Пустой ответ polling")
        # error без id - ошибка всего батча, error с id - ошибка конкретной задачи
        if isinstance(data, dict) and data.get("error") and not data.get("id"):
            raise RemoteJobError(str(data["error"]))

        items = data if isinstance(data, list) else [data]
        jobs = []
        for item in items:
            if not isinstance(item, dict):
                logger.warning(f"Пропущен элемент ответа polling: {item!r:.200}")
                continue
            try:
                jobs.append(RemoteJob.from_dict(item))
            except ValueError as e:
                logger.warning(f"Пропущен элемент ответа polling: {e}")
        return jobs
