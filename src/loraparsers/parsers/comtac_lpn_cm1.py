"""Parser for comtac LPN CM-1 condition monitoring sensors.

Payload layout (13 bytes, big-endian):

    status (1 byte)
    min/max temperature threshold (s8 each, °C)
    min/max humidity threshold (s8 each, %)
    send interval (u16, s)
    battery (u16, mV)
    temperature (s16, 1/100 °C)
    humidity (s16, 1/100 %)

Status bits 7-6 and 4-2 flag active thresholds, event transmission and the
booster. Bits 5 and 1 are reserved and always 0.
"""

from __future__ import annotations

import logging
import struct
from typing import Any

from .base import FieldInfo, Meta, Parser, Reading

_LOGGER = logging.getLogger(__name__)

STATUS_RESERVED_BIT_MASK = 0b00100010

_FRAME = struct.Struct(">BbbbbHHhh")


class ComtacLPNCM1Parser(Parser):
    """comtac LPN CM-1 temperature and humidity sensor."""

    name = "comtac_lpn_cm1"

    FIELDS = (
        FieldInfo(field="temperature_c", display="Temperature", unit="°C"),
        FieldInfo(field="humidity_percent", display="Humidity", unit="%"),
        FieldInfo(field="battery_volt", display="Battery", unit="V"),
        FieldInfo(field="send_interval", display="Send interval", unit="s"),
    )

    def _parse(self, payload: bytes, meta: Meta) -> Reading | list[Any]:
        if len(payload) != _FRAME.size or payload[0] & STATUS_RESERVED_BIT_MASK:
            _LOGGER.info("Unhandled payload %s on frame_port %s", payload.hex().upper(), meta.frame_port)
            return []

        (
            _status,
            _min_temperature,
            _max_temperature,
            _min_humidity,
            _max_humidity,
            send_interval,
            battery,
            temperature,
            humidity,
        ) = _FRAME.unpack(payload)

        return {
            "send_interval": send_interval,
            "temperature_c": temperature / 100,
            "humidity_percent": humidity / 100,
            "battery_volt": battery / 1000,
        }
