from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import httpx
from httpx._types import QueryParamTypes, RequestContent

from shared.exceptions.TrackerExceptions import TransportInterrupted, UnexpectedStatus
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig

# Number of body characters included in error logs and exceptions
BODY_SNIPPET_LENGTH = 2000


class ClientInterface(ABC):
    def __init__(self, helper_config: HelperConfig):
        self.logging = helper_config.get_logger()
        self._helper_config = helper_config
        self.timeout = helper_config.get_number_val(f"{self.get_client_type().upper()}_TIMEOUT", default=30.0)
        # replaces a process-wide verbose flag: log every request at info level
        self.verbose = helper_config.get_bool_val(f"{self.get_client_type().upper()}_VERBOSE", default=False)

        self._client: httpx.AsyncClient | None = None
        self.validate_full_configuration()

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def validate_full_configuration(self) -> None:
        """
        Validates that all required configuration values for the client are set and valid.

        Raises:
            ValueError: If any required configuration value is missing or invalid.
        """
        for config in self._get_required_config():
            _ = self.get_config_val(raw_key=config.env_key, default=config.default, val_type=config.val_type)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def get_client_type(self) -> str:
        """
        Returns the type of the client in lowercase. E.g. "odata"
        """
        return self._get_client_type().lower()

    @abstractmethod
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "odata"
        """
        pass

    def get_engine_name(self) -> str:
        """
        Returns the name of the engine used by the client. E.g. "tm1"
        """
        return self._get_engine_name().lower()

    @abstractmethod
    def _get_engine_name(self) -> str:
        """
        Returns the name of the engine used by the client. E.g. "tm1"
        """
        pass

    ################ CONFIG ##################
    @abstractmethod
    def _get_required_config(self) -> list[EnvConfig]:
        """
        Returns all required configurations for the client.

        Returns:
            list[EnvConfig]: A list containing the details of each required configuration key.
        """
        pass

    def _get_config_key_name(self, raw_key: str) -> str:
        """
        Returns:
            str: The full configuration key name for the client. E.g. "ODATA_TM1_BASE_URL"
        """
        key_prefix = f"{self.get_client_type().upper()}_{self.get_engine_name().upper()}"
        return f"{key_prefix}_{raw_key.upper()}"

    def get_config_val(self, raw_key: str, default: Any = None, val_type: str = "string") -> Any:
        """
        Retrieves the value of a configuration key for the client.

        Args:
            raw_key (str): The raw configuration key name
            default (Any): The default value to return if the configuration key is not set
            val_type (str): The type of the configuration value ("string", "number", "bool")
        """
        key = self._get_config_key_name(raw_key)
        if val_type == "string":
            return self._helper_config.get_string_val(key, default=default)
        elif val_type == "number":
            return self._helper_config.get_number_val(key, default=default)
        elif val_type == "bool":
            return self._helper_config.get_bool_val(key, default=default)
        else:
            raise ValueError(f"Unsupported config value type '{val_type}' for env key '{raw_key}' in {self.get_client_type().upper()} client '{self.get_engine_name()}'.")

    ################ AUTH ##################
    @abstractmethod
    def _get_auth_header(self) -> dict:
        """
        Returns the authentication header for the client backend server, if credentials are set.

        Returns:
            dict: A dictionary containing the auth data
        """
        pass

    ################ HEADERS ##################
    def _get_default_headers(self) -> dict:
        """
        Returns headers sent with every request of this client. Empty by default.
        """
        return {}

    ################ TRANSPORT ##################
    def _get_verify_ssl(self) -> bool:
        """
        Returns whether TLS certificates of the backend are verified. Defaults to True.
        """
        return True

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_base_url(self) -> str:
        """
        Returns the base URL of the client backend server from env variables

        Returns:
            str: The base URL of the client backend server (e.g. "https://tm1:8010/api/v1/")
        """
        pass

    @abstractmethod
    def _get_endpoint_healthcheck(self) -> str:
        """
        Returns the endpoint path for healthcheck requests.

        Returns:
            str: The endpoint path for healthcheck requests (e.g. "Configuration/ProductVersion/$value")
        """
        pass

    def build_url(self, endpoint: str = "") -> str:
        """
        Resolves an endpoint against the base URL. Absolute URLs, as servers hand out
        in continuation links, are returned unchanged.

        Args:
            endpoint (str): Path relative to the base URL or an absolute URL.

        Returns:
            str: The absolute request URL.
        """
        endpoint = endpoint.strip()
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        endpoint = "/" + endpoint.lstrip("/") if endpoint else ""
        return f"{self._get_base_url().rstrip('/')}{endpoint}"

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_healthcheck(self) -> httpx.Response:
        """Check if the client backend is healthy by sending a test request.

        Returns:
            httpx.Response: The response from the healthcheck request.

        Raises:
            UnexpectedStatus: If the backend does not answer with a 2xx status.
        """
        return await self.do_request(method="GET", endpoint=self._get_endpoint_healthcheck(), raise_on_error=True)

    ##########################################
    ############ CORE REQUESTS ###############
    ##########################################

    async def boot(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        """Initialise the HTTP client. The cookie jar of the client keeps the session alive between requests.

        Args:
            transport (httpx.AsyncBaseTransport | None): Optional transport, e.g. an httpx.MockTransport in tests.
        """
        self._client = httpx.AsyncClient(timeout=self.timeout, verify=self._get_verify_ssl(), transport=transport)

    async def close(self) -> None:
        """Close the HTTP client and any other resources."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _build_request_kwargs(self, endpoint: str, additional_headers: dict | None, params: QueryParamTypes | None) -> dict:
        if self._client is None:
            raise Exception("HTTP client not initialised. Call boot() before making requests.")

        # no default Content-Type, callers sending a body pass it via additional_headers
        headers: dict = {}
        headers.update(self._get_default_headers())
        headers.update(self._get_auth_header())
        if additional_headers:
            headers.update(additional_headers)

        return {
            "url": self.build_url(endpoint),
            "headers": headers,
            "timeout": self.timeout,
            "params": params,
        }

    def _log_request(self, method: str, url: str) -> None:
        if self.verbose:
            self.logging.info("%s %s", method, url)
        else:
            self.logging.debug("%s %s", method, url)

    async def do_request(
        self,
        method: str = "GET",
        content: RequestContent | None = None,
        params: QueryParamTypes | None = None,
        endpoint: str = "",
        additional_headers: dict | None = None,
        raise_on_error: bool = False,
    ) -> httpx.Response:
        """Send an HTTP request to the client backend and read the whole response.

        Args:
            method: HTTP method (GET, POST, …).
            content: Raw bytes, or an (async) iterable of bytes sent as a chunked stream.
            params: URL query parameters.
            endpoint: Path to append to the base URL (leading slash optional) or an absolute URL.
            additional_headers: Extra headers that override the defaults.
            raise_on_error: Raise UnexpectedStatus on a non-2xx status.

        Returns:
            The raw httpx.Response.

        Raises:
            UnexpectedStatus: If raise_on_error is set and the status is not 2xx.
            TransportInterrupted: If the connection fails while sending or receiving.
        """
        kwargs = self._build_request_kwargs(endpoint, additional_headers, params)

        if content is not None:
            kwargs["content"] = content

        self._log_request(method, kwargs["url"])
        try:
            response = await self._client.request(method, **kwargs)
        except httpx.TransportError as e:
            self.logging.error("%s %s was interrupted: %s", method, kwargs["url"], e)
            raise TransportInterrupted(f"{method} {kwargs['url']} was interrupted: {e}") from e

        if raise_on_error:
            self._validate_status(response, method, kwargs["url"], response.text)
        return response

    @asynccontextmanager
    async def do_stream_request(
        self,
        method: str = "GET",
        endpoint: str = "",
        params: QueryParamTypes | None = None,
        additional_headers: dict | None = None,
    ) -> AsyncIterator[httpx.Response]:
        """Send an HTTP request and yield the response before its body is read.

        The status is validated before the response is handed out, the body is
        consumed by the caller within the context.

        Raises:
            UnexpectedStatus: If the status is not 2xx.
            TransportInterrupted: If the connection fails before the response headers arrive.
        """
        kwargs = self._build_request_kwargs(endpoint, additional_headers, params)
        self._log_request(method, kwargs["url"])
        try:
            async with self._client.stream(method, **kwargs) as response:
                if not response.is_success:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    self._validate_status(response, method, kwargs["url"], body)
                yield response
        except httpx.TransportError as e:
            self.logging.error("%s %s was interrupted: %s", method, kwargs["url"], e)
            raise TransportInterrupted(f"{method} {kwargs['url']} was interrupted: {e}") from e

    def _validate_status(self, response: httpx.Response, method: str, url: str, body: str) -> None:
        """Log and raise if the response status is outside the success range.

        Raises:
            UnexpectedStatus: If the status is not 2xx.
        """
        if response.is_success:
            return
        snippet = body[:BODY_SNIPPET_LENGTH]
        self.logging.error(
            "%s %s failed. Server responded with: %d %s\n%s",
            method,
            url,
            response.status_code,
            response.reason_phrase,
            snippet,
        )
        raise UnexpectedStatus(method=method, url=url, status_code=response.status_code, body=snippet)
