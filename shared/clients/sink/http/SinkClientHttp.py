from shared.clients.sink.SinkClientInterface import SinkClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class SinkClientHttp(SinkClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default="http://localhost:12345", val_type="string")
        self._endpoint = self.get_config_val("ENDPOINT", default="/", val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Http"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default="http://localhost:12345"),
            EnvConfig(env_key="ENDPOINT", val_type="string", default="/"),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._api_key:
            return {"X-Api-Key": self._api_key}
        else:
            return {}

    ################ HEADERS ##################
    def _get_default_headers(self) -> dict:
        return {
            "OData-Version": "4.0",
            "Accept": "application/json",
        }

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/healthz"

    def _get_endpoint_records(self) -> str:
        return self._endpoint
