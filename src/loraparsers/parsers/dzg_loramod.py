"""Parser for DZG LoRaMOD electricity meter modules (frame format v1).

Payload layout (9 bytes):

    header (1 byte): version (bits 6-7), medium (bits 3-5), qualifier (bits 0-2)
    meter id (4 bytes, little-endian)
    register value (4 bytes, little-endian, 1/100 unit)
"""

from __future__ import annotations

import logging
import struct
from typing import Any

from .base import FieldInfo, Meta, Parser, Reading

_LOGGER = logging.getLogger(__name__)

HEADER_MEDIUM_BIT_MASK = 0b00111000
HEADER_MEDIUM_BIT_SHIFT = 3
HEADER_QUALIFIER_BIT_MASK = 0b00000111

_FRAME = struct.Struct("<BII")

MEDIUM_NAMES = {
    1: "temperature",
    2: "electricity",
    3: "gas",
    4: "heat",
    6: "hotwater",
    7: "water",
}


class DZGLoRaMODParser(Parser):
    """DZG LoRaMOD meter reading, frame format v1."""

    name = "dzg_loramod"

    FIELDS = (
        FieldInfo(field="meterid", display="Meter-ID"),
        FieldInfo(field="medium", display="Medium"),
        FieldInfo(field="qualifier", display="Qualifier"),
        FieldInfo(field="register", display="Register"),
    )

    def _parse(self, payload: bytes, meta: Meta) -> Reading | list[Any]:
        if len(payload) != _FRAME.size:
            _LOGGER.info("Unhandled payload %s on frame_port %s", payload.hex().upper(), meta.frame_port)
            return []

        header, meter_id, register_value = _FRAME.unpack(payload)

        medium = (header & HEADER_MEDIUM_BIT_MASK) >> HEADER_MEDIUM_BIT_SHIFT

        return {
            "qualifier": header & HEADER_QUALIFIER_BIT_MASK,
            "meterid": meter_id,
            "medium": MEDIUM_NAMES.get(medium, "unknown"),
            "register": register_value / 100,
        }
