"""Topic utilities for the MQTT-backed shared store."""

from typing import Optional


def topic_for_key(prefix: str, key: str) -> str:
    """Get retained MQTT topic holding a shared store key."""
    return f"{prefix}/{key}"


def key_for_topic(prefix: str, topic: str) -> Optional[str]:
    """Get shared store key for a topic, None if the topic is outside the prefix."""
    head = f"{prefix}/"
    if not topic.startswith(head):
        return None
    key = topic[len(head):]
    if not key or "/" in key:
        return None
    return key


def subscription_pattern(prefix: str) -> str:
    """Get MQTT subscription covering every key under the prefix."""
    return f"{prefix}/+"
