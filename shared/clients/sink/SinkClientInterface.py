from abc import abstractmethod
from typing import AsyncIterable

import httpx

from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperConfig import HelperConfig


class SinkClientInterface(ClientInterface):
    """
    Client for the downstream consumer that accepts a JSON array stream.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "sink"

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_records(self) -> str:
        """
        Returns the endpoint path accepting streamed records.

        Returns:
            str: The endpoint path (e.g. "/")
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_send_records(self, stream: AsyncIterable[bytes]) -> httpx.Response:
        """POST a JSON body to the sink while it is still being produced.

        The body is sent with chunked transfer encoding, its size is never known up front.

        Args:
            stream (AsyncIterable[bytes]): The outbound body.

        Returns:
            httpx.Response: The response of the sink.

        Raises:
            UnexpectedStatus: If the sink answers with a non-2xx status.
            TransportInterrupted: If the connection to the sink fails.
        """
        return await self.do_request(
            method="POST",
            endpoint=self._get_endpoint_records(),
            content=stream,
            additional_headers={"Content-Type": "application/json"},
            raise_on_error=True,
        )
