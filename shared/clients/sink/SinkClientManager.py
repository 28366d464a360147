from shared.helper.HelperConfig import HelperConfig
from shared.clients.sink.SinkClientInterface import SinkClientInterface


class SinkClientManager:
    """
    Manager class to handle the downstream sink client based on configuration.
    """

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.client = self._initialize_client()

    def _get_engine_from_env(self) -> str:
        """
        Reads the sink engine from ENV configuration.

        Returns:
            str: The name of the sink engine, capitalized. E.g. "Http"
        """
        engine = self.helper_config.get_string_val("SINK_ENGINE", default="http")
        return engine.strip().lower().capitalize()

    def _initialize_client(self) -> SinkClientInterface:
        """
        Initializes the sink client of the configured engine.

        Raises:
            ValueError: If the configured engine is not supported.
        """
        engine = self._get_engine_from_env()
        className = f"SinkClient{engine}"
        try:
            module = __import__(
                f"shared.clients.sink.{engine.lower()}.{className}",
                fromlist=[className],
            )
            client_class = getattr(module, className)
        except (ImportError, AttributeError) as e:
            raise ValueError(f"Unsupported sink engine specified: '{engine}'. Error: {e}")
        self.logging.debug("Instantiated sink client for engine: %s", engine)
        return client_class(helper_config=self.helper_config)

    def get_client(self) -> SinkClientInterface:
        return self.client
