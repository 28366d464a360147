import base64

from shared.clients.odata.ODataClientInterface import ODataClientInterface
from shared.exceptions.TrackerExceptions import UnsupportedServerVersion
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig

# 10.2.2 FP5 introduced the track-changes preference for message and transaction logs
MINIMUM_TRACKING_VERSION = "10.2.20500"

AUTH_MODES = ["TM1", "CAM"]


class ODataClientTm1(ODataClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default=None, val_type="string")
        self._collection = self.get_config_val("COLLECTION", default="TransactionLogEntries", val_type="string")
        self._auth_mode = helper_config.get_choice_val(self._get_config_key_name("AUTHENTICATION"), AUTH_MODES, default="TM1")
        self._user = self.get_config_val("USER", default="", val_type="string")
        self._password = self.get_config_val("PASSWORD", default="", val_type="string")
        self._cam_namespace = self.get_config_val("CAM_NAMESPACE", default="", val_type="string")
        self._verify_ssl = self.get_config_val("VERIFY_SSL", default=True, val_type="bool")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Tm1"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=None),
            EnvConfig(env_key="COLLECTION", val_type="string", default="TransactionLogEntries"),
            EnvConfig(env_key="USER", val_type="string", default=""),
            EnvConfig(env_key="PASSWORD", val_type="string", default=""),
            EnvConfig(env_key="CAM_NAMESPACE", val_type="string", default=""),
            EnvConfig(env_key="VERIFY_SSL", val_type="bool", default=True),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if not self._user:
            return {}
        if self._auth_mode == "CAM":
            cred = f"{self._user}:{self._password}:{self._cam_namespace}"
            return {"Authorization": "CAMNamespace " + base64.b64encode(cred.encode("utf-8")).decode("ascii")}
        # TM1 authentication maps to basic HTTP authentication
        cred = f"{self._user}:{self._password}"
        return {"Authorization": "Basic " + base64.b64encode(cred.encode("utf-8")).decode("ascii")}

    ################ TRANSPORT ##################
    def _get_verify_ssl(self) -> bool:
        return self._verify_ssl

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "Configuration/ProductVersion/$value"

    def get_collection_path(self) -> str:
        return self._collection

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_version_check(self) -> str:
        """Verify the server supports change tracking.

        Returns:
            str: The product version reported by the server.

        Raises:
            UnexpectedStatus: If the version request fails.
            UnsupportedServerVersion: If the server is older than MINIMUM_TRACKING_VERSION.
        """
        response = await self.do_healthcheck()
        version = response.text.strip()
        # versions are fixed width, e.g. "11.8.02300.4"
        if version[:len(MINIMUM_TRACKING_VERSION)] < MINIMUM_TRACKING_VERSION:
            self.logging.error("The TM1 server version is %s, the tracker requires at least %s.", version, MINIMUM_TRACKING_VERSION)
            raise UnsupportedServerVersion(
                f"TM1 server version {version} does not support change tracking, minimal required version is {MINIMUM_TRACKING_VERSION}."
            )
        self.logging.info("Connected to TM1 server version %s.", version)
        return version
