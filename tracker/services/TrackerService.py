"""Tracking service.

Reads a change-tracked OData collection, forwards every record to the sink and
then keeps polling the delta link handed out by the server, so that each new
entry of the collection is forwarded exactly once per run and in the order
the server recorded it.
"""

import asyncio

from shared.clients.odata.ODataClientInterface import ODataClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.collection import ContinuationState
from tracker.parsing.CollectionStreamParser import AsyncByteReader
from tracker.streaming.RestreamForwarder import RestreamForwarder

DEFAULT_INTERVAL = 5   # seconds between delta polls
MINIMUM_INTERVAL = 1


class TrackerService:
    """Poll loop over one tracked collection."""

    def __init__(
        self,
        helper_config: HelperConfig,
        odata_client: ODataClientInterface,
        forwarder: RestreamForwarder,
        interval: float | None = None,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._odata = odata_client
        self._forwarder = forwarder
        if interval is None:
            interval = helper_config.get_number_val("TRACKER_INTERVAL", default=DEFAULT_INTERVAL, minimum=MINIMUM_INTERVAL)
        elif interval < MINIMUM_INTERVAL:
            self.logging.warning("Poll interval %ss is below the minimum of %ss, using %ss.", interval, MINIMUM_INTERVAL, DEFAULT_INTERVAL)
            interval = DEFAULT_INTERVAL
        self.interval = interval
        self._stop = asyncio.Event()

        # Stats
        self.polls = 0
        self.requests = 0

    ##########################################
    ############### CORE LOOP ################
    ##########################################

    async def do_track_collection(self, collection_path: str | None = None) -> None:
        """Track a collection until the server stops offering continuation links or stop() is called.

        Next links are followed immediately, they are further windows of the
        same poll. A delta link is followed after the poll interval. A body
        without either ends the loop, the server no longer tracks changes.

        Args:
            collection_path (str | None): Path of the collection. Defaults to the path configured for the client.

        Raises:
            UnexpectedStatus: If the server or the sink answers with a non-2xx status.
            MalformedStructure, RecordDecodeFailed, TransportInterrupted: If a body cannot be processed.
        """
        url = collection_path or self._odata.get_collection_path()
        self.logging.info("Tracking collection %r every %ss...", url, self.interval, color="cyan")

        try:
            while url and not self._stop.is_set():
                continuation = await self._process(url, track_changes=True)

                # only the last window of a poll carries a delta link, a next link always wins
                if continuation.has_next:
                    url = continuation.next_link
                elif continuation.has_delta:
                    self.polls += 1
                    await self._forwarder.flush()
                    if not await self._wait():
                        break
                    url = continuation.delta_link
                else:
                    self.logging.warning("The server is no longer offering deltas, tracking stopped.", color="yellow")
                    break
        finally:
            await self._forwarder.flush()

        self.logging.info(
            "Tracking of %r ended after %d poll(s). Records forwarded: %d",
            collection_path or self._odata.get_collection_path(),
            self.polls,
            self._forwarder.records_forwarded,
        )

    async def do_iterate_collection(self, collection_path: str | None = None) -> int:
        """Read a collection once, following next links only, and forward its records.

        Args:
            collection_path (str | None): Path of the collection. Defaults to the path configured for the client.

        Returns:
            int: The number of records forwarded.
        """
        url = collection_path or self._odata.get_collection_path()
        start = self._forwarder.records_forwarded
        self.logging.info("Reading collection %r...", url)

        try:
            while url and not self._stop.is_set():
                continuation = await self._process(url, track_changes=False)
                url = continuation.next_link
        finally:
            await self._forwarder.flush()

        total = self._forwarder.records_forwarded - start
        self.logging.info("Collection read complete. Records forwarded: %d", total)
        return total

    def stop(self) -> None:
        """Ask the loop to end. Interrupts the wait between polls."""
        self._stop.set()

    ##########################################
    ############### HELPERS ##################
    ##########################################

    async def _process(self, url: str, track_changes: bool) -> ContinuationState:
        """Fetch one response and forward its body. Returns the continuation links of the body."""
        self.requests += 1
        async with self._odata.do_stream_collection(url, track_changes=track_changes) as response:
            return await self._forwarder.forward(AsyncByteReader.from_response(response))

    async def _wait(self) -> bool:
        """Sleep for the poll interval.

        Returns:
            bool: False if stop() was called while waiting.
        """
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=self.interval)
        except asyncio.TimeoutError:
            return True
        return False
