import pytest
from fastapi.testclient import TestClient

from datalens_bridge.config import Settings
from datalens_bridge.gateway import Gateway
from datalens_bridge.main import create_app


@pytest.fixture
def client(settings, gateway):
    with TestClient(create_app(settings, gateway)) as c:
        yield c


def test_health_ok(client, gateway):
    r = client.get("/health")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "ok"
    assert body["configured"] is True
    assert body["methods"] == len(gateway.catalog.methods)
    assert body["snapshot_date"] == "2026-02-17"


def test_methods_and_schema(client):
    r = client.get("/methods")
    assert r.status_code == 200
    assert r.json()["genericTool"] == "datalens_rpc"

    r = client.get("/methods/getdataset")
    assert r.status_code == 200
    assert r.json()["method"] == "getDataset"

    r = client.get("/methods/nope")
    assert r.status_code == 400
    assert r.json()["error"]["kind"] == "invalid_arguments"


def test_run_tool(client, recorder):
    recorder.reply(200, json={"id": "ds1"})

    r = client.post("/tools/datalens_get_dataset", json={"datasetId": "ds1", "revId": "r1"})

    assert r.status_code == 200
    assert r.json() == {"id": "ds1"}
    assert recorder.last_json() == {"datasetId": "ds1", "rev_id": "r1"}


def test_run_tool_without_body(client, recorder):
    r = client.post("/tools/datalens_list_directory")
    assert r.status_code == 200
    assert recorder.last_json() == {"path": "/"}


def test_run_tool_errors(client, recorder):
    r = client.post("/tools/datalens_get_dataset", json={})
    assert r.status_code == 400
    assert r.json()["error"]["data"]["missing"] == ["dataset_id"]

    r = client.post("/tools/datalens_unknown", json={})
    assert r.status_code == 404

    recorder.reply(500, json={"error": "boom"})
    r = client.post("/tools/datalens_get_dataset", json={"dataset_id": "ds1"})
    assert r.status_code == 502
    assert r.json()["error"]["kind"] == "upstream"
    assert r.json()["error"]["data"]["status"] == 500


def test_unconfigured_gateway(make_rpc, recorder):
    settings = Settings(base_url="https://datalens.test")
    gateway = Gateway(settings, rpc=make_rpc(settings))
    with TestClient(create_app(settings, gateway)) as c:
        assert c.get("/health").json()["configured"] is False
        r = c.post("/tools/datalens_list_directory", json={})
    assert r.status_code == 503
    assert r.json()["error"]["kind"] == "configuration"
    assert recorder.requests == []


def test_generic_rpc_with_unusable_method_name(client, recorder):
    r = client.post("/tools/datalens_rpc", json={"method": "get\nWorkbook"})
    assert r.status_code == 400
    assert r.json()["error"]["data"] == {"method": "get\nWorkbook"}
    assert recorder.requests == []
