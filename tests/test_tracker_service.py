import asyncio

import httpx
import pytest

from helpers import RecordingSink, ScriptedODataServer, body
from shared.clients.odata.tm1.ODataClientTm1 import ODataClientTm1
from shared.clients.sink.http.SinkClientHttp import SinkClientHttp
from shared.exceptions.TrackerExceptions import RecordDecodeFailed, UnexpectedStatus
from tracker.parsing.CollectionStreamParser import CollectionStreamParser
from tracker.services.TrackerService import DEFAULT_INTERVAL, TrackerService
from tracker.streaming.RestreamForwarder import RestreamForwarder

COLLECTION = "TransactionLogEntries"
DELTA_T3 = "TransactionLogEntries?deltatoken=T3"


async def _tracker(helper_config, server: ScriptedODataServer, sink: RecordingSink, interval: float | None = 1) -> TrackerService:
    odata_client = ODataClientTm1(helper_config=helper_config)
    await odata_client.boot(transport=httpx.MockTransport(server))
    sink_client = SinkClientHttp(helper_config=helper_config)
    await sink_client.boot(transport=httpx.MockTransport(sink))
    forwarder = RestreamForwarder(helper_config=helper_config, sink_client=sink_client, parser=CollectionStreamParser())
    return TrackerService(helper_config=helper_config, odata_client=odata_client, forwarder=forwarder, interval=interval)


def _record_waits(tracker: TrackerService, events: list, results: list[bool] | None = None) -> None:
    """Replace the interval sleep with a recorder. Each wait pops its outcome from results, default True."""

    async def fake_wait() -> bool:
        events.append(("wait",))
        return results.pop(0) if results else True

    tracker._wait = fake_wait


async def test_next_link_is_followed_without_waiting_and_delta_link_after_waiting(helper_config):
    events: list = []
    server = ScriptedODataServer(
        {
            COLLECTION: body([{"ID": 1}], next_link="p2"),
            "p2": body([{"ID": 2}], delta_link=DELTA_T3),
            DELTA_T3: body([]),
        },
        events,
    )
    sink = RecordingSink()
    tracker = await _tracker(helper_config, server, sink)
    _record_waits(tracker, events)

    await tracker.do_track_collection()

    assert events == [("GET", COLLECTION), ("GET", "p2"), ("wait",), ("GET", DELTA_T3)]
    assert sink.documents == [{"value": [{"ID": 1}]}, {"value": [{"ID": 2}]}]
    assert tracker.polls == 1
    assert tracker.requests == 3


async def test_every_get_requests_change_tracking(helper_config):
    server = ScriptedODataServer({COLLECTION: body([{"ID": 1}], next_link="p2"), "p2": body([])})
    tracker = await _tracker(helper_config, server, RecordingSink())

    await tracker.do_track_collection()

    assert len(server.requests) == 2
    for request in server.requests:
        assert request.method == "GET"
        assert request.headers["Prefer"] == "odata.track-changes"
        assert request.headers["OData-Version"] == "4.0"
        assert request.headers["Accept"] == "application/json"


async def test_next_link_wins_over_delta_link(helper_config):
    events: list = []
    server = ScriptedODataServer(
        {
            COLLECTION: body([{"ID": 1}], next_link="p2", delta_link="ignored"),
            "p2": body([]),
        },
        events,
    )
    tracker = await _tracker(helper_config, server, RecordingSink())
    _record_waits(tracker, events)

    await tracker.do_track_collection()

    assert events == [("GET", COLLECTION), ("GET", "p2")]


async def test_body_without_links_ends_tracking(helper_config):
    events: list = []
    server = ScriptedODataServer({COLLECTION: body([{"ID": 1}])}, events)
    sink = RecordingSink()
    tracker = await _tracker(helper_config, server, sink)
    _record_waits(tracker, events)

    await tracker.do_track_collection()

    assert events == [("GET", COLLECTION)]
    assert sink.documents == [{"value": [{"ID": 1}]}]


async def test_delta_polls_continue_until_the_server_stops_tracking(helper_config):
    events: list = []
    server = ScriptedODataServer(
        {
            COLLECTION: body([{"ID": 1}], delta_link="d1"),
            "d1": body([], delta_link="d2"),
            "d2": body([{"ID": 2}, {"ID": 3}], delta_link="d3"),
            "d3": body([]),
        },
        events,
    )
    sink = RecordingSink()
    tracker = await _tracker(helper_config, server, sink)
    _record_waits(tracker, events)

    await tracker.do_track_collection()

    assert [e for e in events if e[0] == "GET"] == [("GET", COLLECTION), ("GET", "d1"), ("GET", "d2"), ("GET", "d3")]
    assert events.count(("wait",)) == 3
    assert sink.documents == [{"value": [{"ID": 1}]}, {"value": [{"ID": 2}, {"ID": 3}]}]


async def test_stop_during_the_wait_ends_tracking(helper_config):
    events: list = []
    server = ScriptedODataServer({COLLECTION: body([], delta_link="d1")}, events)
    tracker = await _tracker(helper_config, server, RecordingSink())
    _record_waits(tracker, events, results=[False])

    await tracker.do_track_collection()

    assert events == [("GET", COLLECTION), ("wait",)]


async def test_stop_interrupts_the_real_wait(helper_config):
    server = ScriptedODataServer({})
    tracker = await _tracker(helper_config, server, RecordingSink(), interval=60)

    waiting = asyncio.create_task(tracker._wait())
    await asyncio.sleep(0)
    tracker.stop()

    assert await asyncio.wait_for(waiting, timeout=1) is False


async def test_explicit_collection_path_is_used(helper_config):
    server = ScriptedODataServer({"MessageLogEntries": body([])})
    tracker = await _tracker(helper_config, server, RecordingSink())

    await tracker.do_track_collection("MessageLogEntries")

    assert server.events == [("GET", "MessageLogEntries")]


async def test_unexpected_status_is_raised_with_status_and_body(helper_config):
    server = ScriptedODataServer({COLLECTION: httpx.Response(401, text="Not authorized")})
    tracker = await _tracker(helper_config, server, RecordingSink())

    with pytest.raises(UnexpectedStatus) as exc_info:
        await tracker.do_track_collection()

    assert exc_info.value.status_code == 401
    assert exc_info.value.method == "GET"
    assert "Not authorized" in exc_info.value.body


async def test_malformed_record_aborts_tracking(helper_config):
    events: list = []
    server = ScriptedODataServer({COLLECTION: b'{"value":[{"ID":1},"oops"],"@odata.deltaLink":"d1"}'}, events)
    tracker = await _tracker(helper_config, server, RecordingSink())
    _record_waits(tracker, events)

    with pytest.raises(RecordDecodeFailed):
        await tracker.do_track_collection()

    assert events == [("GET", COLLECTION)]


async def test_iterate_follows_next_links_only(helper_config):
    server = ScriptedODataServer(
        {
            COLLECTION: body([{"ID": 1}, {"ID": 2}], next_link="p2"),
            "p2": body([{"ID": 3}], delta_link="never-followed"),
        }
    )
    sink = RecordingSink()
    tracker = await _tracker(helper_config, server, sink)

    total = await tracker.do_iterate_collection()

    assert total == 3
    assert server.events == [("GET", COLLECTION), ("GET", "p2")]
    assert all("Prefer" not in r.headers for r in server.requests)
    assert sink.documents == [{"value": [{"ID": 1}, {"ID": 2}]}, {"value": [{"ID": 3}]}]


async def test_absolute_links_are_requested_as_is(helper_config):
    server = ScriptedODataServer(
        {
            COLLECTION: body([], delta_link="http://tm1.test:8010/api/v1/d1"),
            "d1": body([]),
        }
    )
    tracker = await _tracker(helper_config, server, RecordingSink())
    _record_waits(tracker, [])

    await tracker.do_track_collection()

    assert str(server.requests[1].url) == "http://tm1.test:8010/api/v1/d1"


@pytest.mark.parametrize(
    "env_value, expected",
    [(None, DEFAULT_INTERVAL), ("0", DEFAULT_INTERVAL), ("-3", DEFAULT_INTERVAL), ("2", 2), ("1.5", 1.5)],
)
async def test_interval_from_environment(helper_config, clean_env, env_value, expected):
    if env_value is not None:
        clean_env.setenv("TRACKER_INTERVAL", env_value)

    tracker = await _tracker(helper_config, ScriptedODataServer({}), RecordingSink(), interval=None)

    assert tracker.interval == expected


async def test_explicit_interval_below_minimum_falls_back_to_default(helper_config):
    tracker = await _tracker(helper_config, ScriptedODataServer({}), RecordingSink(), interval=0.2)

    assert tracker.interval == DEFAULT_INTERVAL
