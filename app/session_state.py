"""
Состояние сессии клиента: токен и реестр Output.

Хранится в JSON-файле ключ -> значение, загружается при старте и
сохраняется после каждой мутации.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from app.output_registry import OutputRegistry

logger = logging.getLogger(__name__)

# Фиксированные ключи хранилища
CREDENTIAL_KEY = "reflux-replicate-api-token"
OUTPUTS_KEY = "reflux-outputs"


def default_state_path() -> Path:
    """Путь к файлу состояния по умолчанию"""
    return Path.home() / ".config" / "Reflux" / "state.json"


class JsonFileStorage:
    """
    Долговременное хранилище ключ -> JSON значение в одном файле.

    Отсутствующий или повреждённый файл читается как пустое хранилище.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self._path = Path(path) if path is not None else default_state_path()
        self._data: Optional[Dict[str, Any]] = None

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> Dict[str, Any]:
        if self._data is not None:
            return self._data

        self._data = {}
        if not self._path.exists():
            return self._data
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if isinstance(data, dict):
                self._data = data
            else:
                logger.warning(f"Файл состояния {self._path} не содержит объект, игнорируем")
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to load state file {self._path}: {e}")
        return self._data

    def _flush(self) -> None:
        """Атомарная запись через временный файл"""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        temp_file = self._path.with_suffix(".tmp")
        with open(temp_file, "w", encoding="utf-8") as f:
            json.dump(self._data, f, ensure_ascii=False, indent=2)
        temp_file.replace(self._path)

    def get(self, key: str, default: Any = None) -> Any:
        return self._load().get(key, default)

    def update(self, values: Dict[str, Any]) -> None:
        """Записать несколько ключей одной записью файла"""
        self._load().update(values)
        self._flush()


class SessionState:
    """
    Явное состояние сессии: токен и реестр Output.

    load() вызывается при старте (или лениво при первом обращении),
    save() - после каждой мутации.
    """

    def __init__(self, storage: Optional[JsonFileStorage] = None):
        self._storage = storage if storage is not None else JsonFileStorage()
        self._credential: Optional[str] = None
        self._registry = OutputRegistry()
        self._loaded = False

    @property
    def storage(self) -> JsonFileStorage:
        return self._storage

    def load(self) -> "SessionState":
        """Загрузить токен и реестр из хранилища"""
        credential = self._storage.get(CREDENTIAL_KEY)
        self._credential = credential if isinstance(credential, str) and credential else None
        self._registry = OutputRegistry.from_list(self._storage.get(OUTPUTS_KEY, []))
        self._loaded = True
        logger.info(
            f"Состояние загружено из {self._storage.path}: {len(self._registry)} Output, "
            f"token={'***' if self._credential else 'None'}"
        )
        return self

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()

    @property
    def credential(self) -> Optional[str]:
        self._ensure_loaded()
        return self._credential

    @credential.setter
    def credential(self, value: Optional[str]) -> None:
        self._ensure_loaded()
        self._credential = value or None

    @property
    def registry(self) -> OutputRegistry:
        self._ensure_loaded()
        return self._registry

    def save(self) -> bool:
        """
        Сохранить токен и реестр в хранилище

        Returns:
            True если запись удалась; при ошибке состояние в памяти
            остаётся актуальным и будет записано следующим save()
        """
        self._ensure_loaded()
        try:
            self._storage.update(
                {
                    CREDENTIAL_KEY: self._credential,
                    OUTPUTS_KEY: self._registry.to_list(),
                }
            )
        except OSError as e:
            logger.error(f"Ошибка сохранения состояния в {self._storage.path}: {e}")
            return False
        return True
