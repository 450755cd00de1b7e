"""Wake-on-LAN magic packet building and sending."""

import asyncio
import logging
from typing import Optional

from constants import (
    LIMITED_BROADCAST,
    MAGIC_PACKET_REPEAT,
    MAGIC_PACKET_SYNC,
    WAKE_PORT,
)
from errors import InvalidAddress, WakeConnectFailed, WakeSendFailed

logger = logging.getLogger(__name__)

_SEPARATORS = (":", "-", " ")
_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")


def parse_physical_address(physical_address: str) -> bytes:
    """Parse "AA:BB:CC:DD:EE:FF" (or '-'/space separated, or bare) into 6 bytes."""
    cleaned = physical_address or ""
    for sep in _SEPARATORS:
        cleaned = cleaned.replace(sep, "")
    if len(cleaned) != 12 or not set(cleaned) <= _HEX_DIGITS:
        raise InvalidAddress(physical_address)
    return bytes.fromhex(cleaned)


def build_magic_packet(physical_address: str) -> bytes:
    """
    Build the 102-byte wake payload: six 0xFF bytes followed by the
    6-byte address repeated sixteen times.
    """
    return MAGIC_PACKET_SYNC + parse_physical_address(physical_address) * MAGIC_PACKET_REPEAT


def broadcast_address_for(ip: str) -> str:
    """
    Guess the subnet broadcast address by replacing the last octet with 255.

    Assumes a /24 network; the real netmask is not known here. Anything
    that is not four dot-separated octets maps to the limited broadcast.
    """
    octets = (ip or "").strip().split(".")
    if len(octets) == 4 and all(o.isascii() and o.isdigit() and 0 <= int(o) <= 255 for o in octets):
        return ".".join(octets[:3] + ["255"])
    return LIMITED_BROADCAST


class _WakeProtocol(asyncio.DatagramProtocol):
    def __init__(self):
        self.error: Optional[Exception] = None

    def error_received(self, exc):
        self.error = exc


async def send_magic_packet(packet: bytes, broadcast_address: str, port: int = WAKE_PORT):
    """Send one UDP datagram with broadcast enabled."""
    loop = asyncio.get_running_loop()
    try:
        transport, protocol = await loop.create_datagram_endpoint(
            _WakeProtocol,
            remote_addr=(broadcast_address, port),
            allow_broadcast=True,
        )
    except OSError as e:
        raise WakeConnectFailed(str(e)) from e

    try:
        transport.sendto(packet)
        # Send errors on a datagram transport surface via error_received.
        await asyncio.sleep(0)
        if protocol.error is not None:
            raise WakeSendFailed(str(protocol.error)) from protocol.error
    except OSError as e:
        raise WakeSendFailed(str(e)) from e
    finally:
        transport.close()
    logger.debug(f"Sent {len(packet)} byte magic packet to {broadcast_address}:{port}")


async def wake(physical_address: str, ip_address: str, port: int = WAKE_PORT) -> str:
    """Build and broadcast the magic packet; returns the broadcast address used."""
    packet = build_magic_packet(physical_address)
    broadcast = broadcast_address_for(ip_address)
    logger.info(f"Sending Wake-on-LAN packet for {physical_address} via {broadcast}:{port}")
    await send_magic_packet(packet, broadcast, port)
    return broadcast
