"""Реестр отслеживаемых задач генерации"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Union

from reflux_core.models import Output

logger = logging.getLogger(__name__)


class DuplicateOutputError(ValueError):
    """Output с таким id уже есть в реестре"""

    pass


class OutputRegistry:
    """
    Упорядоченное отображение id -> Output.

    Порядок - порядок вставки (стабильный порядок отображения). Замена
    Output сохраняет его позицию. Все методы синхронные, поэтому в
    asyncio каждый из них - атомарный read-modify-write.
    """

    def __init__(self, outputs: Iterable[Output] = ()):
        self._outputs: Dict[str, Output] = {}
        for output in outputs:
            if output.id in self._outputs:
                logger.warning(f"Дубликат Output {output.id} пропущен")
                continue
            self._outputs[output.id] = output

    def __len__(self) -> int:
        return len(self._outputs)

    def __iter__(self) -> Iterator[Output]:
        return iter(list(self._outputs.values()))

    def __contains__(self, output_id: object) -> bool:
        return output_id in self._outputs

    def get(self, output_id: str) -> Optional[Output]:
        return self._outputs.get(output_id)

    def snapshot(self) -> Tuple[Output, ...]:
        """Неизменяемый снимок реестра в порядке вставки"""
        return tuple(self._outputs.values())

    def ids(self) -> List[str]:
        return list(self._outputs)

    def add(self, output: Output) -> None:
        """
        Добавить Output в конец реестра

        Raises:
            DuplicateOutputError: если id уже занят
        """
        if output.id in self._outputs:
            raise DuplicateOutputError(f"Output {output.id} уже существует")
        self._outputs[output.id] = output

    def replace(self, output: Output) -> bool:
        """
        Заменить Output на его текущей позиции

        Returns:
            False если Output с таким id уже удалён
        """
        if output.id not in self._outputs:
            return False
        self._outputs[output.id] = output
        return True

    def remove(self, output_ids: Union[str, Iterable[str]]) -> int:
        """
        Удалить один или несколько Output. Отсутствующие id игнорируются.

        Returns:
            Количество удалённых
        """
        if isinstance(output_ids, str):
            output_ids = [output_ids]
        removed = 0
        for output_id in set(output_ids):
            if self._outputs.pop(output_id, None) is not None:
                removed += 1
        return removed

    def clear(self) -> None:
        self._outputs.clear()

    def cleanup(self) -> int:
        """
        Выбросить Output без ID удалённой задачи

        Returns:
            Количество выброшенных
        """
        invalid = [o.id for o in self._outputs.values() if not o.has_remote_job_id]
        for output_id in invalid:
            del self._outputs[output_id]
        if invalid:
            logger.info(f"Удалено {len(invalid)} Output без ID задачи: {invalid}")
        return len(invalid)

    def incomplete(self) -> List[Output]:
        """Output с ID задачи и нетерминальным статусом (вычисляется на каждый вызов)"""
        return [o for o in self._outputs.values() if o.is_incomplete]

    def incomplete_remote_job_ids(self) -> List[str]:
        """Уникальные ID задач среди незавершённых Output, в порядке реестра"""
        return list(dict.fromkeys(o.remote_job_id for o in self.incomplete()))

    def find_by_remote_job_id(self, remote_job_id: str) -> List[Output]:
        return [o for o in self._outputs.values() if o.remote_job_id == remote_job_id]

    def to_list(self) -> List[dict]:
        """Сериализация в список словарей для JSON"""
        return [o.to_dict() for o in self._outputs.values()]

    @classmethod
    def from_list(cls, data: object) -> "OutputRegistry":
        """
        Десериализация из списка словарей.

        Записи, которые не удаётся разобрать, пропускаются с предупреждением.
        """
        if not isinstance(data, list):
            if data is not None:
                logger.warning(f"Ожидался список Output, получено {type(data).__name__}")
            return cls()

        outputs = []
        for item in data:
            try:
                outputs.append(Output.from_dict(item))
            except (ValueError, TypeError) as e:
                logger.warning(f"Пропущена повреждённая запись Output: {e}")
        return cls(outputs)
