from shared.helper.HelperConfig import HelperConfig
from shared.clients.odata.ODataClientInterface import ODataClientInterface


class ODataClientManager:
    """
    Manager class to handle the OData source client based on configuration.
    """

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.client = self._initialize_client()

    def _get_engine_from_env(self) -> str:
        """
        Reads the OData engine from ENV configuration.

        Returns:
            str: The name of the OData engine, capitalized. E.g. "Tm1"
        """
        engine = self.helper_config.get_string_val("ODATA_ENGINE", default="tm1")
        return engine.strip().lower().capitalize()

    def _initialize_client(self) -> ODataClientInterface:
        """
        Initializes the OData client of the configured engine.

        Returns:
            ODataClientInterface: The instantiated client.

        Raises:
            ValueError: If the configured engine is not supported.
        """
        engine = self._get_engine_from_env()
        className = f"ODataClient{engine}"
        try:
            module = __import__(
                f"shared.clients.odata.{engine.lower()}.{className}",
                fromlist=[className],
            )
            client_class = getattr(module, className)
        except (ImportError, AttributeError) as e:
            raise ValueError(f"Unsupported OData engine specified: '{engine}'. Error: {e}")
        self.logging.debug("Instantiated OData client for engine: %s", engine)
        return client_class(helper_config=self.helper_config)

    def get_client(self) -> ODataClientInterface:
        """
        Returns the instantiated OData client.
        """
        return self.client
