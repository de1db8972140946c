"""Модели данных клиента сервиса предсказаний"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class RemoteJob:
    """Задача в удалённом сервисе"""

    id: str
    status: str
    input: Optional[dict] = None
    result: Any = None
    error: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "RemoteJob":
        """
        Парсинг JSON задачи в RemoteJob.

        Ссылка на результат читается из "output", с fallback на "result".

        Raises:
            ValueError: если у объекта нет непустого id
        """
        job_id = data.get("id")
        if not isinstance(job_id, str) or not job_id:
            raise ValueError(f"Задача без id: {data!r:.200}")
        result = data["output"] if "output" in data else data.get("result")
        error = data.get("error")
        return cls(
            id=job_id,
            status=str(data.get("status") or ""),
            input=data.get("input") if isinstance(data.get("input"), dict) else None,
            result=result,
            error=str(error) if error else None,
        )
