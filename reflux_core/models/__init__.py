"""
Модели данных клиента.
Содержит классы для представления задач генерации и их размещения на холсте.
"""
from reflux_core.models.enums import TERMINAL_STATUSES, PredictionStatus, is_terminal
from reflux_core.models.output import (
    BASE_SIZE,
    OUTPUT_ID_PREFIX,
    Output,
    Placement,
    parse_aspect_ratio,
)

__all__ = [
    # Основные классы
    "Output",
    "Placement",
    # Enums
    "PredictionStatus",
    "TERMINAL_STATUSES",
    "is_terminal",
    # Размещение
    "BASE_SIZE",
    "OUTPUT_ID_PREFIX",
    "parse_aspect_ratio",
]
