"""Общие фикстуры тестов.

HTTP эмулируется через httpx.MockTransport, сеть не нужна. Корень проекта
добавляется в sys.path, чтобы ``import app`` работал без установки пакета.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Callable, List

import httpx
import pytest

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from app.prediction_client import PredictionClient  # noqa: E402
from app.prediction_manager import PredictionManager  # noqa: E402
from app.session_state import JsonFileStorage, SessionState  # noqa: E402
from reflux_core.asset_inliner import AssetInliner  # noqa: E402

BASE_URL = "http://reflux.test"
PNG_BYTES = b"\x89PNG\r\n\x1a\nfake"


class RecordingTransport(httpx.MockTransport):
    """MockTransport, запоминающий все запросы"""

    def __init__(self, handler: Callable):
        self.requests: List[httpx.Request] = []

        async def _handler(request: httpx.Request):
            self.requests.append(request)
            response = handler(request)
            if not isinstance(response, httpx.Response):
                response = await response
            return response

        super().__init__(_handler)


def asset_ok(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, content=PNG_BYTES, headers={"content-type": "image/png"})


@pytest.fixture
def state_path(tmp_path: Path) -> Path:
    return tmp_path / "state.json"


@pytest.fixture
def state(state_path: Path) -> SessionState:
    session = SessionState(JsonFileStorage(state_path)).load()
    session.credential = "r8_test_token"
    return session


@pytest.fixture
def make_client():
    def _make(handler: Callable):
        transport = RecordingTransport(handler)
        http_client = httpx.AsyncClient(transport=transport, base_url=BASE_URL)
        return PredictionClient(base_url=BASE_URL, http_client=http_client), transport

    return _make


@pytest.fixture
def make_inliner():
    def _make(handler: Callable = asset_ok):
        transport = RecordingTransport(handler)
        return AssetInliner(client=httpx.AsyncClient(transport=transport)), transport

    return _make


@pytest.fixture
def make_manager(state, make_client, make_inliner):
    """Фабрика: (manager, api_transport, asset_transport)"""

    def _make(api_handler: Callable, asset_handler: Callable = asset_ok):
        client, api_transport = make_client(api_handler)
        inliner, asset_transport = make_inliner(asset_handler)
        manager = PredictionManager(state, client=client, inliner=inliner)
        return manager, api_transport, asset_transport

    return _make
