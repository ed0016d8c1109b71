"""Parser for TrackNet Tabs motion sensors.

Same 8 byte layout as the door and window sensor. Status bit 0 reports
occupancy (1 = occupied, 0 = free), the temperature is offset by 15 °C.
"""

from __future__ import annotations

import logging
from typing import Any

from .base import FieldInfo, Meta, Parser, Reading
from .tabs_doornwindow import PAYLOAD_LENGTH, STATUS_CONTACT_BIT_MASK, TEMPERATURE_BIT_MASK, decode_battery

_LOGGER = logging.getLogger(__name__)


class TabsMotionParser(Parser):
    """TrackNet Tabs motion sensor."""

    name = "tabs_motion"

    FIELDS = (
        FieldInfo(field="battery_capacity", display="Battery Capacity", unit="%"),
        FieldInfo(field="battery_voltage", display="Battery voltage", unit="V"),
        FieldInfo(field="temperature", display="Temperature", unit="°C"),
        FieldInfo(field="sensor_status", display="Movement"),
    )

    def _parse(self, payload: bytes, meta: Meta) -> Reading | list[Any]:
        if len(payload) != PAYLOAD_LENGTH:
            _LOGGER.info("Unhandled payload %s on frame_port %s", payload.hex().upper(), meta.frame_port)
            return []

        battery_capacity, battery_voltage = decode_battery(payload[1])

        return {
            "sensor_status": payload[0] & STATUS_CONTACT_BIT_MASK,
            "battery_voltage": battery_voltage,
            "battery_capacity": battery_capacity,
            "temperature": (payload[2] & TEMPERATURE_BIT_MASK) + 15,
            "count": int.from_bytes(payload[5:8], byteorder="little"),
        }
