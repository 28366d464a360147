from abc import abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx

from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperConfig import HelperConfig


class ODataClientInterface(ClientInterface):
    """
    Client for an OData v4 service exposing a change-tracked collection.
    """

    ODATA_VERSION = "4.0"
    TRACK_CHANGES_PREFERENCE = "odata.track-changes"

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "odata"

    ################ HEADERS ##################
    def _get_default_headers(self) -> dict:
        """
        Protocol headers sent with every OData request.
        """
        return {
            "OData-Version": self.ODATA_VERSION,
            "Accept": "application/json",
        }

    def get_track_changes_header(self) -> dict:
        """
        Returns the header asking the server to include a delta link in the last page of a response.
        """
        return {"Prefer": self.TRACK_CHANGES_PREFERENCE}

    ################ ENDPOINTS ##################
    @abstractmethod
    def get_collection_path(self) -> str:
        """
        Returns the configured path of the tracked collection, relative to the service root.

        Returns:
            str: E.g. "TransactionLogEntries"
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_version_check(self) -> str:
        """Verify the server is reachable and supports change tracking.

        Returns:
            str: The version reported by the server's healthcheck endpoint.

        Raises:
            UnexpectedStatus: If the healthcheck fails.
        """
        response = await self.do_healthcheck()
        return response.text.strip()

    @asynccontextmanager
    async def do_stream_collection(self, endpoint: str, track_changes: bool = True) -> AsyncIterator[httpx.Response]:
        """Request a collection, or a continuation link, and yield the response with its body unread.

        Args:
            endpoint (str): Collection path, next link or delta link. Relative links are resolved against the service root.
            track_changes (bool): Send the change-tracking preference.

        Raises:
            UnexpectedStatus: If the server answers with a non-2xx status.
            TransportInterrupted: If the connection fails.
        """
        headers = self.get_track_changes_header() if track_changes else None
        async with self.do_stream_request(method="GET", endpoint=endpoint, additional_headers=headers) as response:
            yield response
