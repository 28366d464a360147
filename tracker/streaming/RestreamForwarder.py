"""Re-streams parsed records to the downstream sink while the inbound body is still being parsed.

Per response body the forwarder opens a StreamBuffer on the first record,
frames the records as {"value":[...]} and posts the buffer to the sink
concurrently. A body without records produces no request at all.
"""

import asyncio
import functools
import json
from decimal import Decimal
from typing import Any

from shared.clients.sink.SinkClientInterface import SinkClientInterface
from shared.exceptions.TrackerExceptions import MalformedStructure
from shared.helper.HelperConfig import HelperConfig
from shared.models.collection import ContinuationState, ParseResult, Record
from tracker.parsing.CollectionStreamParser import CollectionStreamParser
from tracker.streaming.StreamBuffer import DEFAULT_CAPACITY, StreamBuffer

ARRAY_OPEN = b'{"value":['
ARRAY_SEPARATOR = b","
ARRAY_CLOSE = b"]}"


def _encode_value(value: Any) -> str:
    if isinstance(value, dict):
        return "{" + ",".join(json.dumps(k, ensure_ascii=False) + ":" + _encode_value(v) for k, v in value.items()) + "}"
    if isinstance(value, list):
        return "[" + ",".join(_encode_value(v) for v in value) + "]"
    if isinstance(value, Decimal):
        # written back as parsed, no float rounding or overflow
        return str(value)
    return json.dumps(value, ensure_ascii=False)


def encode_record(record: Record) -> bytes:
    """Serialize a parsed record compactly, numbers keep their source precision."""
    return _encode_value(record).encode("utf-8")


class RestreamForwarder:
    """Bridges the parser callbacks of one body to a streamed POST against the sink."""

    def __init__(
        self,
        helper_config: HelperConfig,
        sink_client: SinkClientInterface,
        parser: CollectionStreamParser,
        buffer_size: int | None = None,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._sink = sink_client
        self._parser = parser
        self._buffer_size = buffer_size or helper_config.get_number_val("TRACKER_BUFFER_SIZE", default=DEFAULT_CAPACITY, minimum=1)

        # per body state
        self._buffer: StreamBuffer | None = None
        self._body_records = 0
        self._handoff: asyncio.Future[ContinuationState] | None = None

        # outbound send of the most recent body
        self._send_task: asyncio.Task | None = None

        # Stats
        self.records_forwarded = 0
        self.bodies_sent = 0

    ##########################################
    ################ FORWARD #################
    ##########################################

    async def forward(self, stream: Any) -> ContinuationState:
        """Parse one response body and forward its records.

        The parse runs as its own task, this coroutine only waits for the
        one-shot continuation handoff, which resolves after every record of
        the body was written to the outbound buffer. The outbound request may
        still be draining when it returns, see flush().

        Args:
            stream: File-like object with an async read(size), e.g. an AsyncByteReader.

        Returns:
            ContinuationState: The continuation links of the body.

        Raises:
            MalformedStructure, RecordDecodeFailed, TransportInterrupted: If the parse fails.
        """
        loop = asyncio.get_running_loop()
        handoff = loop.create_future()
        self._handoff = handoff
        self._body_records = 0
        self._buffer = None

        parse_task = asyncio.create_task(self._parser.parse(stream, self._on_unit))
        # the callback may run after the next forward() started, it only touches its own handoff
        parse_task.add_done_callback(functools.partial(self._on_parse_done, handoff))
        try:
            continuation = await handoff
        except BaseException:
            if not parse_task.done():
                parse_task.cancel()
            await self._abandon_body()
            raise
        # the final unit is the last thing the parse does, surface anything it raised after it
        await parse_task
        return continuation

    async def flush(self) -> None:
        """Wait until the outbound request of the last body finished.

        Raises:
            UnexpectedStatus: If the sink rejected the body.
            TransportInterrupted: If the connection to the sink failed.
        """
        task, self._send_task = self._send_task, None
        if task is not None:
            await task

    ##########################################
    ############### CALLBACKS ################
    ##########################################

    async def _on_unit(self, unit: ParseResult) -> None:
        if unit.is_final:
            await self._finish_body(unit.continuation or ContinuationState())
            return

        data = encode_record(unit.record)
        if self._body_records == 0:
            await self._open_body()
        else:
            await self._buffer.write(ARRAY_SEPARATOR)
        await self._buffer.write(data)
        self._body_records += 1
        self.records_forwarded += 1

    async def _open_body(self) -> None:
        """Start the framing and arm the outbound request on the first record of a body."""
        # bodies reach the sink in poll order
        await self.flush()
        self._buffer = StreamBuffer(capacity=self._buffer_size)
        await self._buffer.write(ARRAY_OPEN)
        self._send_task = asyncio.create_task(self._send(self._buffer))

    async def _finish_body(self, continuation: ContinuationState) -> None:
        if self._body_records > 0:
            await self._buffer.write(ARRAY_CLOSE)
            await self._buffer.close()
            self.bodies_sent += 1
            self.logging.info("Forwarded %d record(s) to the sink.", self._body_records, color="green")
        else:
            self.logging.debug("No records in this body, nothing is sent to the sink.")
        if self._handoff is not None and not self._handoff.done():
            self._handoff.set_result(continuation)

    def _on_parse_done(self, handoff: asyncio.Future, task: asyncio.Task) -> None:
        """Resolve the handoff with the parse error if the parse ended without a final unit."""
        if handoff.done():
            return
        if task.cancelled():
            handoff.cancel()
            return
        error = task.exception()
        if error is None:
            error = MalformedStructure("body ended without a final unit")
        handoff.set_exception(error)

    async def _abandon_body(self) -> None:
        """Stop the outbound request of a body whose parse failed, the sink must not receive a partial array."""
        task, self._send_task = self._send_task, None
        self._buffer = None
        if task is None:
            return
        if not task.done():
            task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception as e:
            self.logging.error("Outbound request of the abandoned body failed: %s", e)

    async def _send(self, buffer: StreamBuffer) -> None:
        try:
            await self._sink.do_send_records(buffer)
        except BaseException as e:
            # unblock the writer, it would wait on a full buffer forever
            await buffer.abort(e)
            raise
