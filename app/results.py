"""Типизированные результаты операций менеджера предсказаний"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from app.prediction_client.models import RemoteJob
from reflux_core.models import Output


class ErrorKind(str, Enum):
    """Класс ошибки операции"""

    REMOTE_SERVICE = "remote_service"  # Транспорт или error в ответе сервиса
    CONVERSION = "conversion"  # Не удалось встроить результат
    VALIDATION = "validation"  # Некорректные локальные данные
    PERSISTENCE = "persistence"  # Не удалось записать состояние сессии


@dataclass(frozen=True)
class OperationError:
    """Ошибка, не прервавшая работу клиента"""

    kind: ErrorKind
    message: str
    remote_job_id: Optional[str] = None
    output_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "remote_job_id": self.remote_job_id,
            "output_id": self.output_id,
        }


@dataclass
class CreateResult:
    """Результат создания задачи"""

    output: Optional[Output] = None
    remote_job: Optional[RemoteJob] = None
    error: Optional[OperationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.output is not None

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "output": self.output.to_dict() if self.output else None,
            "error": self.error.to_dict() if self.error else None,
        }


@dataclass
class PollReport:
    """
    Итог одного цикла polling

    Attributes:
        requested_ids: уникальные ID задач, отправленные в запросе
        updated_ids: ID Output, обновлённых в реестре
        discarded: сколько некорректных Output выброшено cleanup'ом
        skipped: цикл пропущен, т.к. предыдущий ещё выполняется
        errors: ошибки (сервис - весь цикл, конвертация - по задачам,
            запись состояния - после применения изменений)
    """

    requested_ids: List[str] = field(default_factory=list)
    updated_ids: List[str] = field(default_factory=list)
    discarded: int = 0
    skipped: bool = False
    errors: List[OperationError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def request_made(self) -> bool:
        return bool(self.requested_ids)

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "skipped": self.skipped,
            "requested_ids": list(self.requested_ids),
            "updated_ids": list(self.updated_ids),
            "discarded": self.discarded,
            "errors": [e.to_dict() for e in self.errors],
        }
