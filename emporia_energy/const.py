
API_BASE_URL = "https://api.emporiaenergy.com"
AUTH_HEADER = "authtoken"

# Emporia auth (Cognito User Pools), same pool the Emporia app and PyEmVue use.
COGNITO_REGION = "us-east-2"
COGNITO_HOST = f"cognito-idp.{COGNITO_REGION}.amazonaws.com"
COGNITO_USER_POOL_ID = "us-east-2_ghlOXVLi1"
COGNITO_CLIENT_ID = "4qte47jbstod8apnfic0bunmrq"

# Cognito does not always report ExpiresIn; the id token lives an hour.
DEFAULT_TOKEN_LIFETIME_SECONDS = 3600

DEFAULT_REQUEST_TIMEOUT_SECONDS = 30
DEFAULT_UPDATE_INTERVAL_SECONDS = 60
MIN_UPDATE_INTERVAL_SECONDS = 10
DEFAULT_RETRY_DELAY_SECONDS = 60
DEFAULT_CONFIRM_DELAY_SECONDS = 1.0

TOKENS_FILENAME = "emporia-tokens.json"

DEFAULT_MAX_CHARGING_RATE = 32
DEFAULT_USAGE_SCALE = "MINUTE"
DEFAULT_USAGE_UNIT = "KWH"


CONF_USERNAME = "username"
CONF_PASSWORD = "password"
CONF_UPDATE_INTERVAL = "update_interval"
CONF_EXPOSE_OUTLETS = "expose_outlets"
CONF_EXPOSE_CHARGERS = "expose_chargers"
CONF_EXPOSE_ENERGY_MONITORING = "expose_energy_monitoring"
CONF_DEBUG = "debug"
CONF_DEVICES = "devices"
CONF_DEVICE_ID = "device_id"
CONF_NAME = "name"
CONF_HIDE = "hide"
