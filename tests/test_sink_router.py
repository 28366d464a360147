import httpx
import pytest
from fastapi import FastAPI

from helpers import ScriptedODataServer, body
from shared.clients.odata.tm1.ODataClientTm1 import ODataClientTm1
from shared.clients.sink.http.SinkClientHttp import SinkClientHttp
from sink.routers.SinkRouter import sink_router
from tracker.parsing.CollectionStreamParser import CollectionStreamParser
from tracker.services.TrackerService import TrackerService
from tracker.streaming.RestreamForwarder import RestreamForwarder


@pytest.fixture
def sink_app(helper_config) -> FastAPI:
    app = FastAPI()
    app.include_router(sink_router)
    app.state.logging = helper_config.get_logger()
    app.state.helper_config = helper_config
    return app


@pytest.fixture
async def sink_http(sink_app):
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=sink_app), base_url="http://sink.test") as client:
        yield client


async def test_sink_accepts_a_collection_body(sink_http):
    response = await sink_http.post("/", content=b'{"value":[{"a":1},{"b":[2,3]}]}', headers={"Content-Type": "application/json"})

    assert response.status_code == 200
    assert response.json() == {"status": "accepted", "records": 2}


async def test_sink_rejects_a_truncated_body(sink_http):
    response = await sink_http.post("/", content=b'{"value":[{"a":1},')

    assert response.status_code == 400
    assert response.json()["status"] == "rejected"
    assert response.json()["records"] == 1


async def test_sink_only_accepts_post(sink_http):
    response = await sink_http.get("/")

    assert response.status_code == 405


async def test_sink_healthcheck(sink_http):
    response = await sink_http.get("/healthz")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


async def test_sink_api_key(sink_http, clean_env):
    clean_env.setenv("SINK_SERVER_API_KEY", "k3y")

    denied = await sink_http.post("/", content=b'{"value":[]}')
    allowed = await sink_http.post("/", content=b'{"value":[]}', headers={"X-Api-Key": "k3y"})

    assert denied.status_code == 401
    assert allowed.status_code == 200


async def test_tracker_streams_into_the_sink(helper_config, sink_app):
    records = [{"ID": i, "Cube": "Sales", "Tuple": ["2024", f"M{i}"]} for i in range(40)]
    server = ScriptedODataServer(
        {
            "TransactionLogEntries": body(records[:30], next_link="p2"),
            "p2": body(records[30:], delta_link="d1"),
            "d1": body([]),
        }
    )
    odata_client = ODataClientTm1(helper_config=helper_config)
    await odata_client.boot(transport=httpx.MockTransport(server))
    sink_client = SinkClientHttp(helper_config=helper_config)
    await sink_client.boot(transport=httpx.ASGITransport(app=sink_app))
    forwarder = RestreamForwarder(helper_config=helper_config, sink_client=sink_client, parser=CollectionStreamParser(), buffer_size=64)
    tracker = TrackerService(helper_config=helper_config, odata_client=odata_client, forwarder=forwarder, interval=1)

    async def no_wait() -> bool:
        return True

    tracker._wait = no_wait

    await tracker.do_track_collection()

    assert forwarder.records_forwarded == 40
    assert forwarder.bodies_sent == 2

    await odata_client.close()
    await sink_client.close()
