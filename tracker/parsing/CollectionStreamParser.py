"""Incremental parser for OData collection responses.

Reads a body of the shape

    { ..., "value": [ {...}, {...} ], ..., "@odata.deltaLink": "..." }

as bytes arrive, hands every element of the collection array to a callback
while the rest of the body is still in flight, and finishes with exactly one
final unit carrying the continuation links. Memory use is bounded by one
element, the body as a whole is never materialized. Non-integer numbers are
kept as Decimal so records pass through without rounding.
"""

from typing import Any, AsyncIterator, Awaitable, Callable

import httpx
import ijson

from shared.exceptions.TrackerExceptions import MalformedStructure, RecordDecodeFailed, TransportInterrupted
from shared.helper.HelperConfig import HelperConfig
from shared.models.collection import ContinuationState, ParseResult, Record

ParseCallback = Callable[[ParseResult], Awaitable[None]]

_CONTAINER_START = ("start_map", "start_array")
_CONTAINER_END = ("end_map", "end_array")


class AsyncByteReader:
    """Exposes an async iterator of byte chunks as a file-like object with an async read(),
    the interface ijson consumes. Read failures surface as TransportInterrupted."""

    def __init__(self, chunks: AsyncIterator[bytes]):
        self._chunks = chunks.__aiter__()
        self._pending = b""
        self._exhausted = False

    @classmethod
    def from_response(cls, response: httpx.Response) -> "AsyncByteReader":
        return cls(response.aiter_bytes())

    async def read(self, size: int = -1) -> bytes:
        while not self._pending and not self._exhausted:
            try:
                self._pending = await self._chunks.__anext__()
            except StopAsyncIteration:
                self._exhausted = True
            except (httpx.TransportError, httpx.StreamError, OSError) as e:
                raise TransportInterrupted(f"reading the response body failed: {e}") from e
        if size is None or size < 0 or size >= len(self._pending):
            data, self._pending = self._pending, b""
        else:
            data, self._pending = self._pending[:size], self._pending[size:]
        return data


class CollectionStreamParser:
    """Single pass parser over the ijson event stream of one response body."""

    def __init__(
        self,
        collection_field: str = "value",
        delta_link_field: str = "@odata.deltaLink",
        next_link_field: str = "@odata.nextLink",
    ):
        self.collection_field = collection_field
        self.delta_link_field = delta_link_field
        self.next_link_field = next_link_field

    @classmethod
    def from_config(cls, helper_config: HelperConfig) -> "CollectionStreamParser":
        """Build a parser with the member names configured in the environment."""
        return cls(
            collection_field=helper_config.get_string_val("TRACKER_COLLECTION_FIELD", default="value"),
            delta_link_field=helper_config.get_string_val("TRACKER_DELTA_LINK_FIELD", default="@odata.deltaLink"),
            next_link_field=helper_config.get_string_val("TRACKER_NEXT_LINK_FIELD", default="@odata.nextLink"),
        )

    ##########################################
    ################# PARSE ##################
    ##########################################

    async def parse(self, stream: Any, callback: ParseCallback) -> ContinuationState:
        """Parse one response body.

        Args:
            stream: File-like object with an async read(size), e.g. an AsyncByteReader.
            callback: Awaited once per record, in source order, then once with the final unit.

        Returns:
            ContinuationState: The links found at the root of the body, as also passed in the final unit.

        Raises:
            MalformedStructure: If the body does not match the collection grammar or ends prematurely.
            RecordDecodeFailed: If an element of the collection is not a decodable JSON object.
            TransportInterrupted: If reading the stream fails.
        """
        events = ijson.basic_parse_async(stream).__aiter__()

        event, _ = await self._next_event(events, "object start delimiter")
        if event != "start_map":
            raise MalformedStructure("object start delimiter not found")

        next_link = ""
        delta_link = ""
        while True:
            event, name = await self._next_event(events, "object end delimiter")
            if event == "end_map":
                break
            if name == self.collection_field:
                await self._read_collection(events, callback)
            elif name == self.delta_link_field:
                delta_link = await self._read_link(events, name)
            elif name == self.next_link_field:
                next_link = await self._read_link(events, name)
            else:
                await self._skip_value(events, name)

        continuation = ContinuationState(next_link=next_link, delta_link=delta_link)
        await callback(ParseResult(is_final=True, continuation=continuation))
        return continuation

    ##########################################
    ############### HELPERS ##################
    ##########################################

    async def _next_event(self, events: AsyncIterator[tuple[str, Any]], expected: str) -> tuple[str, Any]:
        try:
            return await events.__anext__()
        except StopAsyncIteration:
            raise MalformedStructure(f"{expected} not found: unexpected end of body")
        except ijson.JSONError as e:
            raise MalformedStructure(f"{expected} not found: {e}") from e

    async def _read_collection(self, events: AsyncIterator[tuple[str, Any]], callback: ParseCallback) -> int:
        """Deliver every element of the collection array. Returns the number of records."""
        event, _ = await self._next_event(events, "array start delimiter")
        if event != "start_array":
            raise MalformedStructure("array start delimiter not found")

        index = 0
        while True:
            event, _ = await self._next_event(events, "array end delimiter")
            if event == "end_array":
                return index
            if event != "start_map":
                raise RecordDecodeFailed(f"unable to decode record {index}: found {event} where an object is required", index)
            record = await self._read_record(events, index)
            await callback(ParseResult(record=record))
            index += 1

    async def _read_record(self, events: AsyncIterator[tuple[str, Any]], index: int) -> Record:
        """Build one object whose start_map event was already consumed."""
        builder = ijson.ObjectBuilder()
        builder.event("start_map", None)
        depth = 1
        while depth:
            try:
                event, value = await events.__anext__()
            except StopAsyncIteration:
                raise RecordDecodeFailed(f"unable to decode record {index}: unexpected end of body", index)
            except ijson.JSONError as e:
                raise RecordDecodeFailed(f"unable to decode record {index}: {e}", index) from e
            builder.event(event, value)
            if event in _CONTAINER_START:
                depth += 1
            elif event in _CONTAINER_END:
                depth -= 1
        return builder.value

    async def _read_link(self, events: AsyncIterator[tuple[str, Any]], name: str) -> str:
        event, value = await self._next_event(events, f"value of '{name}'")
        if event == "null":
            return ""
        if event != "string":
            raise MalformedStructure(f"'{name}' must be a string, found {event}")
        return value

    async def _skip_value(self, events: AsyncIterator[tuple[str, Any]], name: str) -> None:
        """Skip a member of unknown shape by counting balanced delimiters."""
        event, _ = await self._next_event(events, f"value of '{name}'")
        depth = 1 if event in _CONTAINER_START else 0
        while depth:
            event, _ = await self._next_event(events, f"end of '{name}'")
            if event in _CONTAINER_START:
                depth += 1
            elif event in _CONTAINER_END:
                depth -= 1
