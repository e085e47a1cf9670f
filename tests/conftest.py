from __future__ import annotations

import json
from typing import Any, Callable, Union

import httpx
import pytest

from datalens_bridge.config import Settings
from datalens_bridge.gateway import Gateway
from datalens_bridge.services.rpc_service import RpcClient


class Recorder:
    """MockTransport handler that records requests and replays queued responses."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.queue: list[Union[httpx.Response, Exception]] = []

    def reply(self, status_code: int = 200, **kwargs: Any) -> None:
        self.queue.append(httpx.Response(status_code, **kwargs))

    def fail(self, exc: Exception) -> None:
        self.queue.append(exc)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        nxt = self.queue.pop(0) if self.queue else httpx.Response(200, json={})
        if isinstance(nxt, Exception):
            raise nxt
        return nxt

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    def last_json(self) -> Any:
        return json.loads(self.last.content)


@pytest.fixture
def settings() -> Settings:
    return Settings(base_url="https://datalens.test", org_id="org-1", subject_token="iam-token")


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def make_rpc(recorder: Recorder) -> Callable[[Settings], RpcClient]:
    def factory(settings: Settings) -> RpcClient:
        http = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
        return RpcClient(settings, http=http)

    return factory


@pytest.fixture
def rpc(settings: Settings, make_rpc: Callable[[Settings], RpcClient]) -> RpcClient:
    return make_rpc(settings)


@pytest.fixture
def gateway(settings: Settings, rpc: RpcClient) -> Gateway:
    return Gateway(settings, rpc=rpc)
