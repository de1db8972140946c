"""Ошибки встраивания результатов"""
from typing import Any, Optional


class ConversionError(Exception):
    """Не удалось скачать или закодировать результат"""

    def __init__(self, message: str, ref: Any = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.ref = ref
        self.status_code = status_code
