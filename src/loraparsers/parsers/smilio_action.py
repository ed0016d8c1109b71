"""Parser for Smilio Action buttons, firmware 2.0.1.x.

Smilio Action is a panel of 1 to 5 connected buttons. Frames:

    0x02 normal, 0x03 acknowledge, 0x40 pulse: 5 x button counter (u16 big-endian)
    0x01 keep alive: battery idle mV (u16), battery emission mV (u16), 0x64

Pulse frames carry the same counters as normal frames, but the device resets
them after sending.
"""

from __future__ import annotations

import logging
import struct
from typing import Any

from .base import FieldInfo, Meta, Parser, Reading

_LOGGER = logging.getLogger(__name__)

FRAME_KEEP_ALIVE = 0x01
KEEP_ALIVE_TRAILER = 0x64

DATA_FRAME_TYPES = {
    0x02: "normal",
    0x03: "acknowledge",  # SKIPLY magnetic badge detected
    0x40: "pulse",
}

_DATA_FRAME = struct.Struct(">B5H")
_KEEP_ALIVE_FRAME = struct.Struct(">BHHB")


class SmilioActionParser(Parser):
    """Smilio Action button panel."""

    name = "smilio_action"

    FIELDS = (
        FieldInfo(field="battery_idle", display="Battery (Idle Mode)", unit="mV"),
        FieldInfo(field="battery_emission", display="Battery (Emission)", unit="mV"),
        FieldInfo(field="data_frame_type", display="Data Frame Type"),
        FieldInfo(field="button1", display="Button 1"),
        FieldInfo(field="button2", display="Button 2"),
        FieldInfo(field="button3", display="Button 3"),
        FieldInfo(field="button4", display="Button 4"),
        FieldInfo(field="button5", display="Button 5"),
    )

    def _parse(self, payload: bytes, meta: Meta) -> Reading | list[Any]:
        if len(payload) == _DATA_FRAME.size and payload[0] in DATA_FRAME_TYPES:
            frame, *buttons = _DATA_FRAME.unpack(payload)

            return {
                "data_frame_type": DATA_FRAME_TYPES[frame],
                "message_type": "data_frame",
            } | {f"button{index}": count for index, count in enumerate(buttons, 1)}

        if len(payload) == _KEEP_ALIVE_FRAME.size and payload[0] == FRAME_KEEP_ALIVE:
            _frame, battery_idle, battery_emission, trailer = _KEEP_ALIVE_FRAME.unpack(payload)

            if trailer == KEEP_ALIVE_TRAILER:
                return {
                    "message_type": "keep_alive",
                    "battery_idle": battery_idle,
                    "battery_emission": battery_emission,
                }

        _LOGGER.info("Unhandled Payload: %s", payload.hex().upper())
        return []
