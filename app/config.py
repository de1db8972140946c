"""
Конфигурация клиента

Значения читаются из переменных окружения (и .env через python-dotenv).
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from app.session_state import default_state_path

load_dotenv()


@dataclass(frozen=True)
class Settings:
    """Настройки клиента Reflux"""

    # Endpoint, проксирующий сервис предсказаний
    api_base_url: str = field(
        default_factory=lambda: os.getenv("REFLUX_API_BASE_URL", "http://localhost:3000")
    )
    prediction_path: str = field(
        default_factory=lambda: os.getenv("REFLUX_PREDICTION_PATH", "/api/prediction")
    )

    # Файл состояния сессии (токен + реестр)
    state_path: str = field(
        default_factory=lambda: os.getenv("REFLUX_STATE_PATH") or str(default_state_path())
    )

    # Таймауты (сек)
    request_timeout: float = field(
        default_factory=lambda: float(os.getenv("REFLUX_REQUEST_TIMEOUT", "60"))
    )
    asset_timeout: float = field(
        default_factory=lambda: float(os.getenv("REFLUX_ASSET_TIMEOUT", "60"))
    )

    # Интервалы polling (сек)
    poll_interval_processing: float = field(
        default_factory=lambda: float(os.getenv("REFLUX_POLL_INTERVAL", "2"))
    )
    poll_interval_idle: float = field(
        default_factory=lambda: float(os.getenv("REFLUX_POLL_INTERVAL_IDLE", "10"))
    )

    # Базовая ширина результата на холсте
    base_size: float = field(default_factory=lambda: float(os.getenv("REFLUX_BASE_SIZE", "300")))

    # Логирование
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())
    log_dir: str = field(default_factory=lambda: os.getenv("REFLUX_LOG_DIR", "logs"))


settings = Settings()
