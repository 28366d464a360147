"""Test doubles and builders shared by the test modules."""

import json
from typing import AsyncIterator

import httpx

from shared.models.collection import ParseResult
from tracker.parsing.CollectionStreamParser import AsyncByteReader


async def iter_chunks(data: bytes, size: int) -> AsyncIterator[bytes]:
    for start in range(0, len(data), size):
        yield data[start:start + size]


def byte_reader(data: bytes | str, chunk_size: int = 7) -> AsyncByteReader:
    """An AsyncByteReader delivering data in small chunks, as a network body would arrive."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return AsyncByteReader(iter_chunks(data, chunk_size))


def body(records: list[dict], **links: str) -> bytes:
    """Serialize an OData collection response. Link keywords: next_link, delta_link."""
    doc: dict = {"@odata.context": "$metadata#TransactionLogEntries", "value": records}
    if "next_link" in links:
        doc["@odata.nextLink"] = links["next_link"]
    if "delta_link" in links:
        doc["@odata.deltaLink"] = links["delta_link"]
    return json.dumps(doc).encode("utf-8")


class UnitRecorder:
    """Parse callback keeping every unit it receives."""

    def __init__(self):
        self.units: list[ParseResult] = []

    async def __call__(self, unit: ParseResult) -> None:
        self.units.append(unit)

    @property
    def records(self) -> list[dict]:
        return [u.record for u in self.units if not u.is_final]

    @property
    def finals(self) -> list[ParseResult]:
        return [u for u in self.units if u.is_final]


class RecordingSink:
    """MockTransport handler standing in for the downstream consumer."""

    def __init__(self, status_code: int = 200):
        self.status_code = status_code
        self.requests: list[httpx.Request] = []
        self.bodies: list[bytes] = []

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.bodies.append(await request.aread())
        self.requests.append(request)
        if self.status_code >= 300:
            return httpx.Response(self.status_code, text="sink unavailable")
        return httpx.Response(self.status_code, json={"status": "accepted"})

    @property
    def documents(self) -> list[dict]:
        return [json.loads(b) for b in self.bodies]


class ScriptedODataServer:
    """MockTransport handler answering GETs from a map of "path?query" to response bodies."""

    def __init__(self, responses: dict[str, bytes | httpx.Response], events: list | None = None):
        self.responses = responses
        self.requests: list[httpx.Request] = []
        self.events = events if events is not None else []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = request.url.raw_path.decode("ascii").split("/api/v1/", 1)[-1]
        self.events.append(("GET", key))
        answer = self.responses.get(key)
        if answer is None:
            return httpx.Response(404, text=f"no scripted response for {key}")
        if isinstance(answer, httpx.Response):
            return answer
        return httpx.Response(200, content=answer, headers={"Content-Type": "application/json"})
