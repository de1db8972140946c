"""Перечисления для моделей данных"""
from enum import Enum


class PredictionStatus(str, Enum):
    """Статусы задачи, которые возвращает удалённый сервис"""

    STARTING = "starting"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"


# Терминальными считаются только succeeded/failed
TERMINAL_STATUSES = frozenset({PredictionStatus.SUCCEEDED.value, PredictionStatus.FAILED.value})


def is_terminal(status: str) -> bool:
    """Проверить, завершена ли задача с точки зрения polling"""
    return status in TERMINAL_STATUSES
