"""
Точка входа приложения
CLI для создания задач генерации, polling и правки размещения
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from app.config import Settings, settings as default_settings
from app.logging_manager import get_logging_manager
from app.poller import PredictionPoller
from app.prediction_client import PredictionClient, close_prediction_http_client
from app.prediction_manager import PredictionManager
from app.session_state import JsonFileStorage, SessionState
from reflux_core.asset_inliner import AssetInliner

logger = logging.getLogger(__name__)


def build_manager(cfg: Settings) -> PredictionManager:
    """Собрать менеджер по настройкам и загрузить состояние сессии"""
    state = SessionState(JsonFileStorage(cfg.state_path)).load()
    client = PredictionClient(
        base_url=cfg.api_base_url,
        prediction_path=cfg.prediction_path,
        timeout=cfg.request_timeout,
    )
    inliner = AssetInliner(timeout=cfg.asset_timeout)
    return PredictionManager(state, client=client, inliner=inliner, base_size=cfg.base_size)


def _parse_param(raw: str) -> tuple[str, object]:
    key, sep, value = raw.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"Ожидается key=value: {raw}")
    try:
        return key, json.loads(value)
    except ValueError:
        return key, value


def _summary(output) -> dict:
    """Краткое представление Output без тела data URI"""
    data = output.to_dict()
    result = data.pop("result")
    if isinstance(result, str):
        data["result"] = result[:60] + ("..." if len(result) > 60 else "")
    elif isinstance(result, list):
        data["result"] = [f"{str(r)[:60]}..." for r in result]
    else:
        data["result"] = result
    return data


def _print(data) -> None:
    print(json.dumps(data, ensure_ascii=False, indent=2))


async def _run_command(args: argparse.Namespace, manager: PredictionManager, cfg: Settings) -> int:
    if args.command == "token":
        manager.set_credential(args.value)
        _print({"ok": True})
        return 0

    if args.command == "create":
        input_data = {"prompt": args.prompt, "aspect_ratio": args.aspect_ratio}
        input_data.update(dict(args.param or []))
        result = await manager.create_output(input_data)
        _print(result.to_dict())
        return 0 if result.ok else 1

    if args.command == "poll":
        poller = PredictionPoller(
            manager,
            interval_processing=cfg.poll_interval_processing,
            interval_idle=cfg.poll_interval_idle,
        )
        if args.watch:
            completed = await poller.wait_until_complete(timeout=args.timeout)
            report = poller.last_report
            _print({"completed": completed, "report": report.to_dict() if report else None})
            return 0 if completed else 1
        report = await poller.trigger()
        _print(report.to_dict())
        return 0 if report.ok else 1

    if args.command == "list":
        outputs = manager.incomplete_outputs if args.incomplete else manager.outputs
        _print([_summary(o) for o in outputs])
        return 0

    if args.command == "move":
        rotation = args.rotation
        current = manager.registry.get(args.id)
        if rotation is None and current is not None:
            rotation = current.placement.rotation
        updated = manager.update_placement(
            args.id, args.x, args.y, rotation, width=args.width, height=args.height
        )
        if updated is None:
            _print({"ok": False, "error": f"Output {args.id} не найден"})
            return 1
        _print({"ok": True, "placement": updated.placement.to_dict()})
        return 0

    if args.command == "remove":
        _print({"removed": manager.remove_output(args.ids)})
        return 0

    if args.command == "cleanup":
        _print({"discarded": manager.cleanup_outputs()})
        return 0

    if args.command == "reset":
        manager.reset()
        _print({"ok": True})
        return 0

    raise ValueError(f"Неизвестная команда: {args.command}")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="reflux", description="Клиент задач генерации изображений"
    )
    sub = p.add_subparsers(dest="command", required=True)

    token = sub.add_parser("token", help="Сохранить токен сервиса предсказаний")
    token.add_argument("value")

    create = sub.add_parser("create", help="Создать задачу генерации")
    create.add_argument("--prompt", required=True)
    create.add_argument("--aspect-ratio", default="1:1", help="Соотношение сторон W:H")
    create.add_argument(
        "--param",
        action="append",
        type=_parse_param,
        help="Дополнительный параметр input, key=value (значение - JSON или строка)",
    )

    poll = sub.add_parser("poll", help="Опросить незавершённые задачи")
    poll.add_argument("--watch", action="store_true", help="Опрашивать до завершения всех задач")
    poll.add_argument("--timeout", type=float, default=None)

    lst = sub.add_parser("list", help="Показать Output")
    lst.add_argument("--incomplete", action="store_true")

    move = sub.add_parser("move", help="Изменить размещение Output")
    move.add_argument("id")
    move.add_argument("x", type=float)
    move.add_argument("y", type=float)
    move.add_argument("--rotation", type=float, default=None)
    move.add_argument("--width", type=float, default=None)
    move.add_argument("--height", type=float, default=None)

    remove = sub.add_parser("remove", help="Удалить Output")
    remove.add_argument("ids", nargs="+")

    sub.add_parser("cleanup", help="Удалить Output без ID задачи")
    sub.add_parser("reset", help="Удалить все Output")
    return p


async def _amain(args: argparse.Namespace, cfg: Settings) -> int:
    manager = build_manager(cfg)
    try:
        return await _run_command(args, manager, cfg)
    finally:
        await manager.close()
        await close_prediction_http_client()


def main(argv: Optional[List[str]] = None) -> int:
    """Главная функция - точка входа CLI"""
    args = build_parser().parse_args(argv)
    cfg = default_settings
    get_logging_manager().setup(log_level=cfg.log_level, log_dir=cfg.log_dir)
    return asyncio.run(_amain(args, cfg))


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
