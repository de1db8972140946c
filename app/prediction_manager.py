"""
Менеджер жизненного цикла задач генерации.

Создание задач, пакетный polling незавершённых, сверка ответов с реестром,
встраивание результатов и правки размещения с холста.
"""
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Iterable, List, Optional, Tuple, Union

from app.output_registry import DuplicateOutputError, OutputRegistry
from app.prediction_client import PredictionClient, RemoteJob, RemoteServiceError
from app.results import CreateResult, ErrorKind, OperationError, PollReport
from app.session_state import SessionState
from reflux_core.asset_inliner import AssetInliner, is_remote_ref
from reflux_core.errors import ConversionError
from reflux_core.models import BASE_SIZE, Output

logger = logging.getLogger(__name__)

_NOT_INLINED = object()


def _count_remote_refs(result_ref: Any) -> int:
    if isinstance(result_ref, (list, tuple)):
        return sum(1 for ref in result_ref if is_remote_ref(ref))
    return 1 if is_remote_ref(result_ref) else 0


class PredictionManager:
    """
    Владеет состоянием сессии и выполняет все мутации реестра.

    Каждая мутация - синхронный read-modify-write реестра с последующим
    save(). Polling защищён флагом single-flight: пока цикл выполняется,
    новый цикл сразу возвращает PollReport(skipped=True).
    """

    def __init__(
        self,
        state: SessionState,
        client: Optional[PredictionClient] = None,
        inliner: Optional[AssetInliner] = None,
        base_size: float = BASE_SIZE,
    ):
        self._state = state
        self._client = client if client is not None else PredictionClient()
        self._inliner = inliner if inliner is not None else AssetInliner()
        self._base_size = base_size
        self._is_polling = False

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def registry(self) -> OutputRegistry:
        return self._state.registry

    @property
    def outputs(self) -> Tuple[Output, ...]:
        return self.registry.snapshot()

    @property
    def incomplete_outputs(self) -> List[Output]:
        """Незавершённые Output (для polling и индикатора "в работе")"""
        return self.registry.incomplete()

    @property
    def is_polling(self) -> bool:
        return self._is_polling

    def _persist(self, **context) -> Optional[OperationError]:
        """save() без исключений; ошибку записи возвращает как OperationError"""
        if self._state.save():
            return None
        return OperationError(
            ErrorKind.PERSISTENCE,
            f"Не удалось сохранить состояние в {self._state.storage.path}",
            **context,
        )

    def set_credential(self, credential: Optional[str]) -> None:
        self._state.credential = credential
        self._state.save()
        logger.info(f"Токен обновлён: {'***' if credential else 'None'}")

    def reset(self) -> None:
        """Удалить все Output (токен сохраняется)"""
        count = len(self.registry)
        self.registry.clear()
        self._state.save()
        logger.info(f"Реестр очищен, удалено {count} Output")

    def cleanup_outputs(self) -> int:
        """Выбросить Output без ID удалённой задачи"""
        discarded = self.registry.cleanup()
        if discarded:
            self._state.save()
        return discarded

    async def create_output(self, input: dict) -> CreateResult:
        """
        Создать задачу генерации и добавить Output в реестр

        При ошибке сервиса реестр не меняется. Если не удалось записать
        состояние, Output остаётся в реестре, а в результате будет ошибка
        persistence.
        """
        if not isinstance(input, dict):
            return CreateResult(
                error=OperationError(ErrorKind.VALIDATION, "input должен быть объектом")
            )

        try:
            job = await self._client.create(self._state.credential, input)
        except RemoteServiceError as e:
            logger.error(f"Ошибка создания задачи: {e}")
            return CreateResult(error=OperationError(ErrorKind.REMOTE_SERVICE, str(e)))

        logger.info(f"Создана задача {job.id} в статусе {job.status}")
        aspect_ratio = input.get("aspect_ratio", input.get("aspectRatio"))
        output = Output.create(
            remote_job_id=job.id,
            status=job.status,
            input=job.input if job.input is not None else input,
            aspect_ratio=aspect_ratio,
            base_size=self._base_size,
        )
        logger.debug(
            f"Размер на холсте для {aspect_ratio}: "
            f"{output.placement.width}x{output.placement.height}"
        )

        try:
            self.registry.add(output)
        except DuplicateOutputError as e:
            logger.error(str(e))
            return CreateResult(
                remote_job=job,
                error=OperationError(
                    ErrorKind.VALIDATION, str(e), remote_job_id=job.id, output_id=output.id
                ),
            )

        return CreateResult(
            output=output,
            remote_job=job,
            error=self._persist(remote_job_id=job.id, output_id=output.id),
        )

    async def poll_incomplete(self) -> PollReport:
        """
        Один цикл polling: cleanup, дедупликация ID, один пакетный запрос,
        сверка ответа с реестром.
        """
        if self._is_polling:
            logger.debug("Polling уже выполняется, цикл пропущен")
            return PollReport(skipped=True)

        self._is_polling = True
        try:
            return await self._poll_cycle()
        finally:
            self._is_polling = False

    async def _poll_cycle(self) -> PollReport:
        report = PollReport()

        report.discarded = self.registry.cleanup()

        remote_job_ids = self.registry.incomplete_remote_job_ids()
        if remote_job_ids:
            report.requested_ids = remote_job_ids
            await self._poll_and_reconcile(remote_job_ids, report)

        if report.discarded or report.updated_ids:
            error = self._persist()
            if error is not None:
                report.errors.append(error)
        return report

    async def _poll_and_reconcile(self, remote_job_ids: List[str], report: PollReport) -> None:
        logger.debug(f"Polling задач: {remote_job_ids}")
        try:
            jobs = await self._client.poll_batch(self._state.credential, remote_job_ids)
        except RemoteServiceError as e:
            # Ничего не применяем: частичная сверка смешала бы старое и новое
            logger.error(f"Ошибка polling: {e}")
            report.errors.append(OperationError(ErrorKind.REMOTE_SERVICE, str(e)))
            return

        for job in jobs:
            await self._reconcile_job(job, report)

    async def _inline_result(self, job: RemoteJob, report: PollReport) -> Any:
        """Встроить результат задачи; _NOT_INLINED если не удалось ничего"""
        errors: List[ConversionError] = []
        value = await self._inliner.inline(job.result, errors)
        for error in errors:
            report.errors.append(
                OperationError(ErrorKind.CONVERSION, str(error), remote_job_id=job.id)
            )
        if errors and len(errors) >= _count_remote_refs(job.result):
            logger.warning(f"Результат задачи {job.id} не встроен, оставляем прежний")
            return _NOT_INLINED
        return value

    async def _reconcile_job(self, job: RemoteJob, report: PollReport) -> None:
        targets = self.registry.find_by_remote_job_id(job.id)
        if not targets:
            logger.debug(f"Задача {job.id} больше не отслеживается")
            return
        if job.error:
            logger.warning(f"Задача {job.id} ({job.status}): {job.error}")

        # Результат встраивается один раз на задачу и общий для всех её Output
        inlined = _NOT_INLINED
        if job.result is not None and any(o.result is None for o in targets):
            inlined = await self._inline_result(job, report)

        # Перечитываем реестр: за время await Output могли удалить или подвинуть
        for output in self.registry.find_by_remote_job_id(job.id):
            updated = replace(
                output,
                status=job.status,
                input=job.input if job.input is not None else output.input,
            )
            if output.result is None and inlined is not _NOT_INLINED:
                updated = replace(updated, result=inlined)
            if output.status != job.status:
                logger.info(f"Статус {output.id}: {output.status} -> {job.status}")
            if self.registry.replace(updated):
                report.updated_ids.append(output.id)

    def update_placement(
        self,
        output_id: str,
        x: float,
        y: float,
        rotation: float,
        width: Optional[float] = None,
        height: Optional[float] = None,
    ) -> Optional[Output]:
        """
        Обновить позицию Output на холсте

        x, y, rotation перезаписываются всегда, width/height - только если
        переданы (None = оставить как есть, 0 - допустимое значение).

        Returns:
            Обновлённый Output или None если id не найден
        """
        output = self.registry.get(output_id)
        if output is None:
            return None

        changes = {"x": x, "y": y, "rotation": rotation}
        if width is not None:
            changes["width"] = width
        if height is not None:
            changes["height"] = height
        updated = output.with_placement(**changes)
        self.registry.replace(updated)
        self._state.save()
        return updated

    def remove_output(self, output_ids: Union[str, Iterable[str]]) -> int:
        """Удалить один или несколько Output; несуществующие id игнорируются"""
        removed = self.registry.remove(output_ids)
        if removed:
            self._state.save()
        return removed

    async def close(self) -> None:
        await self._inliner.close()
