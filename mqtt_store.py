"""Shared store backed by retained MQTT messages."""

import asyncio
import logging
import threading
from typing import Dict, Mapping, Optional

import paho.mqtt.client as mqtt

from constants import (
    MQTT_DEFAULT_PORT,
    MQTT_KEEPALIVE,
    MQTT_QOS,
    MQTT_TOPIC_PREFIX,
)
from shared_store import SharedStore
from topics import key_for_topic, subscription_pattern, topic_for_key

logger = logging.getLogger(__name__)


class MqttStore(SharedStore):
    """
    Each key is a retained topic under the prefix; an empty retained
    payload deletes it.

    Reads are served from a cache kept current by the paho network thread.
    A claim pops from the cache under the lock and then clears the
    retained topics, so within this process only one claimer wins.
    """

    def __init__(
        self,
        host: str,
        port: Optional[int] = None,
        prefix: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        client: Optional[mqtt.Client] = None,
    ):
        self.host = host
        self.port = int(port or MQTT_DEFAULT_PORT)
        self.prefix = (prefix or MQTT_TOPIC_PREFIX).rstrip("/")
        self.client = client or mqtt.Client(mqtt.CallbackAPIVersion.VERSION2)
        if username:
            self.client.username_pw_set(username, password)

        self.client.on_connect = self._on_connect
        self.client.on_message = self._on_message

        self._cache: Dict[str, str] = {}
        self._lock = threading.Lock()

    async def connect(self):
        """Connect to MQTT broker."""
        try:
            self.client.connect(self.host, self.port, keepalive=MQTT_KEEPALIVE)
            self.client.loop_start()
            logger.info(f"Connected to MQTT broker at {self.host}:{self.port}")
        except Exception as e:
            logger.error(f"Failed to connect to MQTT broker: {e}")
            raise

    async def close(self):
        """Close MQTT connection."""
        try:
            self.client.loop_stop()
        finally:
            self.client.disconnect()

    async def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._cache.get(key)

    async def set_many(self, values: Mapping[str, str]):
        for key, value in values.items():
            with self._lock:
                self._cache[key] = value
            self._publish_retained(key, value)

    async def claim(self, key: str, *companions: str) -> Optional[Dict[str, str]]:
        with self._lock:
            if key not in self._cache:
                return None
            claimed = {key: self._cache.pop(key)}
            for other in companions:
                if other in self._cache:
                    claimed[other] = self._cache.pop(other)
        for claimed_key in claimed:
            self._publish_retained(claimed_key, "")
        # Give the network thread a chance to flush before the next poll.
        await asyncio.sleep(0)
        return claimed

    def _publish_retained(self, key: str, payload: str):
        """Publish a retained message."""
        topic = topic_for_key(self.prefix, key)
        self.client.publish(topic, payload=payload, qos=MQTT_QOS, retain=True)
        logger.debug(f"Published to {topic}: {payload!r}")

    def _on_connect(self, client, userdata, flags, reason_code, properties):
        """Handle MQTT connection."""
        if reason_code == 0:
            logger.info("Connected to MQTT broker successfully")
        else:
            logger.warning(f"Connected to MQTT broker with code {reason_code}")
        pattern = subscription_pattern(self.prefix)
        client.subscribe(pattern, qos=MQTT_QOS)
        logger.info(f"Subscribed to: {pattern}")

    def _on_message(self, client, userdata, msg):
        """Mirror a retained key into the cache."""
        try:
            key = key_for_topic(self.prefix, msg.topic)
            if key is None:
                logger.debug(f"Ignoring malformed topic: {msg.topic}")
                return
            payload = (msg.payload or b"").decode("utf-8", errors="replace")
            with self._lock:
                if payload:
                    self._cache[key] = payload
                else:
                    self._cache.pop(key, None)
        except Exception as e:
            logger.error(f"Error handling MQTT message: {e}", exc_info=True)
