"""Встраивание удалённых результатов генерации в data URI"""
from __future__ import annotations

import asyncio
import base64
import logging
from typing import Any, List, Optional
from urllib.parse import urlsplit

import httpx

from reflux_core.errors import ConversionError

logger = logging.getLogger(__name__)

REMOTE_SCHEMES = ("https", "http")

# Расширения, для которых тип определяется по имени файла
IMAGE_MEDIA_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
}
DEFAULT_MEDIA_TYPE = "application/octet-stream"


def is_remote_ref(ref: Any) -> bool:
    """Можно ли скачать ссылку (http/https URL)"""
    if not isinstance(ref, str):
        return False
    parts = urlsplit(ref)
    return parts.scheme.lower() in REMOTE_SCHEMES and bool(parts.netloc)


def guess_media_type(url: str, content_type: Optional[str] = None) -> str:
    """
    Определить media type результата

    Сначала по расширению последнего сегмента пути (только известные
    форматы изображений), затем по Content-Type ответа.
    """
    file_name = urlsplit(url).path.rsplit("/", 1)[-1]
    extension = file_name.rsplit(".", 1)[-1].lower() if "." in file_name else ""
    if extension in IMAGE_MEDIA_TYPES:
        return IMAGE_MEDIA_TYPES[extension]
    if content_type:
        media_type = content_type.split(";", 1)[0].strip()
        if media_type:
            return media_type
    return DEFAULT_MEDIA_TYPE


def to_data_uri(payload: bytes, media_type: str) -> str:
    """Закодировать бинарные данные в data URI"""
    encoded = base64.b64encode(payload).decode("ascii")
    return f"data:{media_type};base64,{encoded}"


class AssetInliner:
    """
    Конвертирует ссылки на результаты в самодостаточные data URI.

    Ссылки, которые нельзя скачать (уже встроенные, другие схемы, не строки),
    возвращаются без изменений. Список ссылок конвертируется поэлементно
    с сохранением порядка и формы.
    """

    DEFAULT_TIMEOUT = 60.0

    def __init__(
        self,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.timeout = timeout if timeout is not None else self.DEFAULT_TIMEOUT
        self._client: Optional[httpx.AsyncClient] = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Получить или создать httpx AsyncClient"""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
                timeout=httpx.Timeout(self.timeout, connect=30.0),
                follow_redirects=True,
            )
        return self._client

    async def close(self):
        """Закрыть HTTP клиент"""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def fetch_data_uri(self, url: str) -> str:
        """
        Скачать результат и закодировать в data URI

        Raises:
            ConversionError: сетевая ошибка или HTTP статус >= 400
        """
        client = await self._get_client()
        try:
            resp = await client.get(url)
        except httpx.HTTPError as e:
            raise ConversionError(f"Не удалось скачать {url}: {e}", ref=url) from e

        if resp.status_code >= 400:
            raise ConversionError(
                f"Не удалось скачать {url}: HTTP {resp.status_code}",
                ref=url,
                status_code=resp.status_code,
            )

        media_type = guess_media_type(url, resp.headers.get("content-type"))
        logger.debug(f"Встроен результат {url} ({media_type}, {len(resp.content)} bytes)")
        return to_data_uri(resp.content, media_type)

    async def _inline_element(self, ref: Any, errors: Optional[List[ConversionError]]) -> Any:
        if not is_remote_ref(ref):
            return ref
        try:
            return await self.fetch_data_uri(ref)
        except ConversionError as e:
            logger.warning(f"Ошибка встраивания результата, оставляем ссылку: {e}")
            if errors is not None:
                errors.append(e)
            return ref

    async def inline(self, result_ref: Any, errors: Optional[List[ConversionError]] = None) -> Any:
        """
        Встроить одну ссылку или последовательность ссылок

        Args:
            result_ref: ссылка, список/кортеж ссылок или уже встроенное значение
            errors: опциональный список, куда добавляются ошибки по элементам

        Returns:
            Значение той же формы: элемент, который не удалось скачать,
            остаётся исходной ссылкой
        """
        if isinstance(result_ref, (list, tuple)):
            values = await asyncio.gather(
                *(self._inline_element(ref, errors) for ref in result_ref)
            )
            return type(result_ref)(values)
        return await self._inline_element(result_ref, errors)
