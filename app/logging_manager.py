"""
Менеджер логирования клиента.

Консоль (stderr) + ротируемый файл логов.
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

# Настройки логирования
LOG_FILENAME = "client.log"
LOG_MAX_BYTES = 5 * 1024 * 1024  # 5 MB
LOG_BACKUP_COUNT = 3
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class LoggingManager:
    """
    Singleton менеджер логирования.

    Использование:
        manager = get_logging_manager()
        manager.setup(log_level=logging.INFO, log_dir="logs")
    """

    _instance: Optional["LoggingManager"] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if hasattr(self, "_initialized"):
            return

        self._initialized = True
        self._file_handler: Optional[RotatingFileHandler] = None
        self._console_handler: Optional[logging.StreamHandler] = None
        self._current_log_path: Optional[Path] = None
        self._log_level = logging.INFO

    def setup(
        self,
        log_level: Union[int, str] = logging.INFO,
        log_dir: Union[str, Path, None] = "logs",
    ):
        """
        Инициализировать систему логирования.

        Args:
            log_level: уровень логирования (число или имя: "DEBUG", "INFO", ...)
            log_dir: папка для файла логов; None - только консоль
        """
        if isinstance(log_level, str):
            log_level = logging.getLevelName(log_level.upper())
            if not isinstance(log_level, int):
                log_level = logging.INFO
        self._log_level = log_level

        formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

        root_logger = logging.getLogger()
        root_logger.setLevel(log_level)
        for handler in (self._console_handler, self._file_handler):
            if handler is not None:
                root_logger.removeHandler(handler)
                handler.close()
        self._file_handler = None
        self._current_log_path = None

        # stderr, чтобы не смешивать логи с JSON-выводом CLI
        self._console_handler = logging.StreamHandler(sys.stderr)
        self._console_handler.setLevel(log_level)
        self._console_handler.setFormatter(formatter)
        root_logger.addHandler(self._console_handler)

        if log_dir is not None:
            log_path = Path(log_dir) / LOG_FILENAME
            log_path.parent.mkdir(parents=True, exist_ok=True)
            self._file_handler = RotatingFileHandler(
                str(log_path),
                maxBytes=LOG_MAX_BYTES,
                backupCount=LOG_BACKUP_COUNT,
                encoding="utf-8",
            )
            self._file_handler.setLevel(log_level)
            self._file_handler.setFormatter(formatter)
            root_logger.addHandler(self._file_handler)
            self._current_log_path = log_path

        self._configure_library_loggers()

        logger = logging.getLogger(__name__)
        logger.debug(
            f"Логирование настроено: уровень={logging.getLevelName(log_level)}, "
            f"файл={self._current_log_path}"
        )

    def _configure_library_loggers(self):
        """Подавить DEBUG/INFO сообщения от шумных библиотек."""
        for name in ("httpx", "httpcore", "asyncio"):
            logging.getLogger(name).setLevel(logging.WARNING)

    @property
    def current_log_path(self) -> Optional[Path]:
        """Текущий путь к файлу логов."""
        return self._current_log_path

    @property
    def log_level(self) -> int:
        """Текущий уровень логирования."""
        return self._log_level


def get_logging_manager() -> LoggingManager:
    """Получить singleton экземпляр менеджера логирования."""
    return LoggingManager()
