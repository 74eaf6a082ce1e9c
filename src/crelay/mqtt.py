"""
MQTT client for relay cards (paho-mqtt).

Subscribes to ``crelay/<tag>/ctrl``. Every message carries the same fields
as the HTTP API (``pin=2&status=1``); the resulting relay states (or the
error text) are published to ``crelay/<tag>/status``.
"""

import logging
import uuid
from typing import Optional

from .config import MqttConfig
from .errors import RelayCardNotFound, RelayError
from .protocol import execute, format_status, parse_request
from .session import RelaySession

log = logging.getLogger(__name__)

CLIENT_ID = "crelay"
TOPIC_SUB = "ctrl"
TOPIC_PUB = "status"
KEEPALIVE = 60  # seconds


def topics(tag: str) -> tuple[str, str]:
    """Return the (control, status) topics for a tag."""
    return f"{CLIENT_ID}/{tag}/{TOPIC_SUB}", f"{CLIENT_ID}/{tag}/{TOPIC_PUB}"


class RelayMqttClient:
    """
    Bridges an MQTT broker to a RelaySession.

    The paho network loop runs in its own thread; relay access goes through
    the session lock.
    """

    def __init__(self, session: RelaySession, config: Optional[MqttConfig] = None,
                 client=None):
        self.session = session
        self.config = config or session.config.mqtt
        self.client_id = f"{CLIENT_ID}-{uuid.uuid4()}"
        self.topic_sub, self.topic_pub = topics(self.config.tag)

        if client is None:
            import paho.mqtt.client as mqtt
            client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=self.client_id)
        self.client = client
        self.client.on_connect = self.on_connect
        self.client.on_message = self.on_message
        self.client.on_disconnect = self.on_disconnect

    # --------------------------------------------------------------------------
    # Message handling
    # --------------------------------------------------------------------------

    def handle_message(self, payload: bytes) -> str:
        """Execute a control message and return the status text to publish."""
        request = parse_request(payload)
        try:
            states = execute(self.session, request)
        except RelayCardNotFound:
            return "No relay card detected"
        except (RelayError, ValueError) as e:
            log.warning("MQTT request failed: %s", e)
            return f"ERROR: {e}"
        return format_status(states)

    # --------------------------------------------------------------------------
    # paho callbacks
    # --------------------------------------------------------------------------

    def on_connect(self, client, userdata, flags, reason_code, properties=None):
        if reason_code != 0:
            log.error("MQTT connection to %s failed: %s", self.config.broker, reason_code)
            return
        log.info("Connected to MQTT broker %s:%d", self.config.broker, self.config.port)
        client.subscribe(self.topic_sub, qos=0)
        log.info("Subscribed to topic %s", self.topic_sub)

    def on_disconnect(self, client, userdata, flags, reason_code, properties=None):
        if reason_code != 0:
            log.warning("Disconnected from MQTT broker (%s), reconnecting", reason_code)

    def on_message(self, client, userdata, msg):
        log.debug("%s: %r", msg.topic, msg.payload)
        status = self.handle_message(msg.payload)
        result = client.publish(self.topic_pub, status, qos=0)
        if result.rc != 0:
            log.warning("Unable to publish to %s (rc=%s)", self.topic_pub, result.rc)

    # --------------------------------------------------------------------------
    # Lifecycle
    # --------------------------------------------------------------------------

    def start(self) -> None:
        """Connect in the background and start the network loop thread."""
        log.info("Starting MQTT client %s", self.client_id)
        self.client.connect_async(self.config.broker, self.config.port, keepalive=KEEPALIVE)
        self.client.loop_start()

    def stop(self) -> None:
        self.client.disconnect()
        self.client.loop_stop()
