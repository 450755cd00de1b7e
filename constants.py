"""Constants for the PC controller."""

# Default configuration paths
DEFAULT_CONFIG_FILE = "pccontroller.yaml"
DEFAULT_CONFIG_EXAMPLE_FILE = "pccontroller.yaml.example"
CONFIG_ENV_VAR = "PCCONTROLLER_CONFIG"

# Remote control HTTP paths
TURN_ON_PATH = "/turn-on"
TURN_OFF_PATH = "/turn-off"
IS_ONLINE_PATH = "/is-online"

# Accepted 200 bodies (compared trimmed and lowercased)
ACTION_SUCCESS_BODIES = ("success", "ok", "true")
ONLINE_BODY = "true"

# Timeouts (seconds)
HTTP_REQUEST_TIMEOUT = 10.0
HTTP_RESOURCE_TIMEOUT = 15.0
PROBE_TIMEOUT = 5.0

# Wake-on-LAN
WAKE_PORT = 9
WAKE_SETTLE_DELAY = 3.0
LIMITED_BROADCAST = "255.255.255.255"
MAGIC_PACKET_SYNC = b"\xff" * 6
MAGIC_PACKET_REPEAT = 16

# Reachability
LIVENESS_PORT = 80

# Refresh intervals (seconds)
STATUS_CHECK_INTERVAL = 30
SNAPSHOT_REFRESH_INTERVAL = 30
MAILBOX_POLL_INTERVAL = 1.0
ACTION_FRESHNESS_WINDOW = 5.0
WIDGET_RELOAD_DELAY = 2.0

# Shared store keys
KEY_ACTION = "widgetAction"
KEY_ACTION_TIME = "widgetActionTime"
KEY_SNAPSHOT = "PCControllerWidgetData"

# Shared store settings
DEFAULT_STATE_DIR = "~/.pccontroller"
DEFAULT_STORE_BACKEND = "file"
DEFAULT_STORE_FILE = DEFAULT_STATE_DIR + "/shared.json"
STORE_LOCK_TIMEOUT = 2.0

# Single controller instance
INSTANCE_LOCK_FILE = "pccontroller.pid"

# MQTT settings
MQTT_TOPIC_PREFIX = "pccontroller/shared"
MQTT_DEFAULT_PORT = 1883
MQTT_QOS = 1
MQTT_KEEPALIVE = 60
