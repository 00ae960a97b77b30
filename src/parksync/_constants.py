"""Internal constants shared across the library."""

USER_AGENT = "parksync/0 (aiohttp)"

REST_PATH = "/rest/v1"
REALTIME_PATH = "/realtime/v1/websocket"
REALTIME_VSN = "1.0.0"

DEFAULT_SCHEMA = "public"
DEFAULT_TABLE = "parkingData"

#: Phoenix control topic used for heartbeats.
PHOENIX_TOPIC = "phoenix"
#: Seconds between heartbeats; the server drops sockets silent for ~60s.
DEFAULT_HEARTBEAT_INTERVAL = 25.0

CHANGE_EVENT_NAME = "postgres_changes"
