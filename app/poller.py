"""Периодический polling незавершённых задач"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

from app.prediction_manager import PredictionManager
from app.results import PollReport

logger = logging.getLogger(__name__)


class PredictionPoller:
    """
    Таймер polling поверх PredictionManager.

    Пока есть незавершённые задачи, опрашивает с интервалом
    POLL_INTERVAL_PROCESSING, иначе - POLL_INTERVAL_IDLE. Перекрытие
    циклов исключает single-flight флаг менеджера.
    """

    POLL_INTERVAL_PROCESSING = 2.0
    POLL_INTERVAL_IDLE = 10.0

    def __init__(
        self,
        manager: PredictionManager,
        interval_processing: Optional[float] = None,
        interval_idle: Optional[float] = None,
    ):
        self._manager = manager
        self.interval_processing = (
            interval_processing
            if interval_processing is not None
            else self.POLL_INTERVAL_PROCESSING
        )
        self.interval_idle = interval_idle if interval_idle is not None else self.POLL_INTERVAL_IDLE
        self._task: Optional[asyncio.Task] = None
        self.last_report: Optional[PollReport] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def current_interval(self) -> float:
        if self._manager.incomplete_outputs:
            return self.interval_processing
        return self.interval_idle

    async def trigger(self) -> PollReport:
        """Выполнить цикл немедленно (ручное обновление)"""
        report = await self._manager.poll_incomplete()
        if not report.skipped:
            self.last_report = report
        return report

    async def _run(self) -> None:
        while True:
            try:
                await self.trigger()
            except Exception as e:
                # Цикл переживает неожиданные ошибки, следующий tick повторит попытку
                logger.error(f"Неожиданная ошибка цикла polling: {e}", exc_info=True)
            await asyncio.sleep(self.current_interval())

    def start(self) -> None:
        """Запустить фоновый polling в текущем event loop"""
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info(
            f"Polling запущен (processing={self.interval_processing}s, idle={self.interval_idle}s)"
        )

    async def stop(self) -> None:
        """Остановить фоновый polling и дождаться завершения задачи"""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Polling остановлен")

    async def wait_until_complete(self, timeout: Optional[float] = None) -> bool:
        """
        Опрашивать, пока не останется незавершённых задач

        Returns:
            True если все задачи завершились, False по таймауту
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout if timeout is not None else None
        while True:
            await self.trigger()
            if not self._manager.incomplete_outputs:
                return True
            if deadline is not None and loop.time() >= deadline:
                return False
            await asyncio.sleep(self.interval_processing)
