"""Parser for TrackNet Tabs door and window sensors.

Payload layout (8 bytes), payload description v1.3:

    status (1 byte): bit 0 contact open
    battery (1 byte): remaining capacity (bits 4-7, 0-15), voltage (bits 0-3, (25 + v) / 10 V)
    temperature (1 byte): bits 0-6, t - 32 °C
    time elapsed since trigger (u16 little-endian, min)
    total count (u24 little-endian)
"""

from __future__ import annotations

import logging
from typing import Any

from .base import FieldInfo, Meta, Parser, Reading

_LOGGER = logging.getLogger(__name__)

PAYLOAD_LENGTH = 8

STATUS_CONTACT_BIT_MASK = 0b00000001
TEMPERATURE_BIT_MASK = 0b01111111


def decode_battery(battery: int) -> tuple[float, float]:
    """Split the battery byte into (capacity %, voltage V)."""
    return 100 * ((battery >> 4) / 15), (25 + (battery & 0x0F)) / 10


class TabsDoorWindowParser(Parser):
    """TrackNet Tabs door and window sensor."""

    name = "tabs_doornwindow"

    FIELDS = (
        FieldInfo(field="battery_state", display="Battery state", unit="%"),
        FieldInfo(field="battery_voltage", display="Battery voltage", unit="V"),
        FieldInfo(field="temperature", display="Temperature", unit="°C"),
        FieldInfo(field="contact", display="Contact"),
    )

    def _parse(self, payload: bytes, meta: Meta) -> Reading | list[Any]:
        if len(payload) != PAYLOAD_LENGTH:
            _LOGGER.info("Unhandled payload %s on frame_port %s", payload.hex().upper(), meta.frame_port)
            return []

        battery_state, battery_voltage = decode_battery(payload[1])

        return {
            "battery_state": battery_state,
            "battery_voltage": battery_voltage,
            "temperature": (payload[2] & TEMPERATURE_BIT_MASK) - 32,
            "contact": "open" if payload[0] & STATUS_CONTACT_BIT_MASK else "closed",
            "time_elapsed_since_trigger": int.from_bytes(payload[3:5], byteorder="little"),
            "total_count": int.from_bytes(payload[5:8], byteorder="little"),
        }
