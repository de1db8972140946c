"""
Модель отслеживаемой задачи генерации (Output) и её размещения на холсте.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Optional, Tuple

from reflux_core.models.enums import is_terminal

logger = logging.getLogger(__name__)

# Базовая ширина результата на холсте
BASE_SIZE = 300

# Префикс клиентского ID: output-<id удалённой задачи>
OUTPUT_ID_PREFIX = "output-"


def parse_aspect_ratio(value: Any) -> Optional[Tuple[float, float]]:
    """
    Разобрать соотношение сторон вида "W:H"

    Returns:
        (width, height) или None если строка некорректна
    """
    if not isinstance(value, str) or ":" not in value:
        return None
    raw_width, _, raw_height = value.partition(":")
    try:
        width = float(raw_width)
        height = float(raw_height)
    except ValueError:
        return None
    if width <= 0 or height <= 0:
        return None
    return width, height


@dataclass(frozen=True)
class Placement:
    """
    Метаданные размещения результата на холсте

    Attributes:
        remote_job_id: ID задачи в удалённом сервисе (используется для polling)
        x, y: позиция на холсте
        rotation: угол поворота в градусах
        width, height: размер на холсте
    """

    remote_job_id: Optional[str] = None
    x: float = 0
    y: float = 0
    rotation: float = 0
    width: float = BASE_SIZE
    height: float = BASE_SIZE

    @classmethod
    def from_aspect_ratio(
        cls,
        remote_job_id: Optional[str],
        aspect_ratio: Any,
        base_size: float = BASE_SIZE,
    ) -> "Placement":
        """
        Создать размещение с размерами из соотношения сторон.

        Ширина всегда равна base_size, высота масштабируется пропорционально,
        так что разные соотношения занимают сопоставимую площадь на холсте.
        Некорректное соотношение даёт квадрат base_size x base_size.
        """
        parsed = parse_aspect_ratio(aspect_ratio)
        if parsed is None:
            logger.warning(
                f"Некорректное соотношение сторон {aspect_ratio!r}, используется квадрат"
            )
            parsed = (1.0, 1.0)
        width, height = parsed
        return cls(
            remote_job_id=remote_job_id,
            width=base_size,
            height=(height / width) * base_size,
        )

    def to_dict(self) -> dict:
        """Сериализация в словарь для JSON"""
        return {
            "remote_job_id": self.remote_job_id,
            "x": self.x,
            "y": self.y,
            "rotation": self.rotation,
            "width": self.width,
            "height": self.height,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Placement":
        """
        Десериализация из словаря.

        Понимает и старый формат браузерного хранилища (prediction_id).
        """
        remote_job_id = data.get("remote_job_id", data.get("prediction_id"))
        return cls(
            remote_job_id=remote_job_id if isinstance(remote_job_id, str) else None,
            x=float(data.get("x") or 0),
            y=float(data.get("y") or 0),
            rotation=float(data.get("rotation") or 0),
            width=float(data.get("width", BASE_SIZE)),
            height=float(data.get("height", BASE_SIZE)),
        )


@dataclass(frozen=True)
class Output:
    """
    Отслеживаемая задача генерации

    Attributes:
        id: клиентский ID, уникален в реестре и стабилен всё время жизни
        status: статус, зеркалируемый из удалённого сервиса
        input: параметры генерации в том виде, в котором их вернул сервис
        result: встроенный результат (data URI или список) или None
        placement: метаданные размещения на холсте
    """

    id: str
    status: str
    input: dict = field(default_factory=dict)
    result: Any = None
    placement: Placement = field(default_factory=Placement)

    @classmethod
    def create(
        cls,
        remote_job_id: str,
        status: str,
        input: Optional[dict],
        aspect_ratio: Any,
        base_size: float = BASE_SIZE,
    ) -> "Output":
        """Создать Output для только что созданной удалённой задачи"""
        return cls(
            id=f"{OUTPUT_ID_PREFIX}{remote_job_id}",
            status=status,
            input=dict(input or {}),
            result=None,
            placement=Placement.from_aspect_ratio(remote_job_id, aspect_ratio, base_size),
        )

    @property
    def remote_job_id(self) -> Optional[str]:
        return self.placement.remote_job_id

    @property
    def has_remote_job_id(self) -> bool:
        """Есть ли непустой ID удалённой задачи"""
        return isinstance(self.remote_job_id, str) and len(self.remote_job_id) > 0

    @property
    def is_incomplete(self) -> bool:
        """Нужно ли опрашивать задачу (есть ID и статус не терминальный)"""
        return self.has_remote_job_id and not is_terminal(self.status)

    def with_placement(self, **changes) -> "Output":
        """Копия с изменённым размещением"""
        return replace(self, placement=replace(self.placement, **changes))

    def to_dict(self) -> dict:
        """Сериализация в словарь для JSON"""
        return {
            "id": self.id,
            "status": self.status,
            "input": self.input,
            "result": self.result,
            "placement": self.placement.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Output":
        """
        Десериализация из словаря.

        Понимает старый формат браузерного хранилища (output/metadata).

        Raises:
            ValueError: если запись не похожа на Output
        """
        if not isinstance(data, dict):
            raise ValueError(f"Ожидался объект, получено {type(data).__name__}")
        output_id = data.get("id")
        if not isinstance(output_id, str) or not output_id:
            raise ValueError("Output без id")

        placement_data = data.get("placement")
        if placement_data is None:
            placement_data = data.get("metadata")
        if not isinstance(placement_data, dict):
            placement_data = {}

        result = data["result"] if "result" in data else data.get("output")

        return cls(
            id=output_id,
            status=str(data.get("status") or ""),
            input=data.get("input") if isinstance(data.get("input"), dict) else {},
            result=result,
            placement=Placement.from_dict(placement_data),
        )
