"""Parser for the DZG Plugin and Bridge using the LoRaWAN Frame Format 2.0.

Payload structure (all values little-endian):

    FrameHeader (1 byte)
        version (bits 6-7) == 0
        is_encrypted (bit 5) == 0
        has_mac (bit 4) == 0
        is_compressed (bit 3) == 0
        type (bits 0-2): 0 = meter reading, 1 = status
    Frame

Some devices send meter readings on frame port 8 without the frame header.

MeterReadingData
    Header version 1 (1 byte): version (bits 6-7) == 1, medium (bits 3-5), qualifier (bits 0-2)
    Header version 2 (2 bytes): qualifier, then version (bits 6-7) == 2,
        has_timestamp (bit 5), is_compressed (bit 4), medium (bits 0-3)
    meter id (4 bytes)
    tuples of [timestamp (4 bytes) if has_timestamp] + register values (4 bytes each)

StatusData
    reset reason (bits 5-7), node type (bits 3-4), session info (bits 0-2)
    firmware id (4 bytes), uptime ms, time s, last downlink ms (4 bytes each)
    rssi (2 bytes), snr, frame type, is ack, connected devices (1 byte each)
"""

from __future__ import annotations

import logging
import struct
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from .base import FieldInfo, Meta, Parser, Reading, ReadingExtender

_LOGGER = logging.getLogger(__name__)

# =============================================================================
# Frame Constants
# =============================================================================

FRAME_HEADER_FLAGS_BIT_MASK = 0b11111000  # version, is_encrypted, has_mac, is_compressed: all zero
FRAME_HEADER_TYPE_BIT_MASK = 0b00000111

FRAME_TYPE_METER_READING = 0
FRAME_TYPE_STATUS = 1

HEADERLESS_METER_READING_FRAME_PORT = 8

METER_READING_VERSION_BIT_MASK = 0b11000000
METER_READING_VERSION_BIT_SHIFT = 6

METER_READING_V1_MEDIUM_BIT_MASK = 0b00111000
METER_READING_V1_MEDIUM_BIT_SHIFT = 3
METER_READING_V1_QUALIFIER_BIT_MASK = 0b00000111

METER_READING_V2_TIMESTAMP_BIT_MASK = 0b00100000
METER_READING_V2_COMPRESSED_BIT_MASK = 0b00010000
METER_READING_V2_MEDIUM_BIT_MASK = 0b00001111

MEDIUM_ELECTRICITY = 2

QUALIFIER_A_PLUS = 1
QUALIFIER_A_PLUS_A_MINUS = 4

_METER_READING_V1 = struct.Struct("<BII")
_METER_READING_V2_TWO_REGISTERS = struct.Struct("<IIII")
_REGISTER_TUPLE = struct.Struct("<II")
_STATUS = struct.Struct("<B4sIIIHBBBB")

SECONDS_PER_HOUR = 3600

# =============================================================================
# Name Tables
# =============================================================================

MEDIUM_NAMES = {
    1: "temperature_celsius",
    2: "electricity_kwh",
    3: "gas_m3",
    4: "heat_kwh",
    6: "hotwater_m3",
    7: "water_m3",
    8: "heatcostallocator",
}

MEDIUM_NAMES_EXTENDED = {medium: name for medium, name in MEDIUM_NAMES.items() if medium != 8}

QUALIFIER_NAMES = {
    (1, 1): "degreeCelsius",
    (2, 1): "a-plus",
    (2, 2): "a-plus-t1-t2",
    (2, 4): "a-plus-a-minus",
    (2, 5): "a-minus",
    (2, 6): "a-plus-t1-t2-a-minus",
    (3, 1): "volume",
    (4, 1): "energy",
    (6, 1): "tbd",
    (7, 1): "volume",
    (8, 1): "tbd",
}

QUALIFIER_NAMES_EXTENDED = {
    (2, 1): "a-plus",
    (2, 2): "a-plus-t1-t2",
    (2, 4): "a-plus-a-minus",
    (2, 5): "a-minus",
    (2, 6): "a-plus-t1-t2-a-minus",
    (2, 7): "a-plus-a-minus-r1-r2-r3-r4",
    (2, 8): "loadprofile",
}

SESSION_INFO_NAMES = {
    0: "abp",
    1: "joined",
    2: "joinedLinkCheckFailed",
    3: "joinedLinkPeriodicRejoin",
    4: "joinedSessionResumed",
    5: "joinedSessionResumedJoinFailed",
}

NODE_TYPE_NAMES = {
    0: "loramod",
    1: "brige",
}

RESET_REASON_NAMES = {
    0: "general",
    1: "backup",
    2: "wdt",
    3: "soft",
    4: "user",
    7: "slclk",
}


def _qualifier_name(table: dict[tuple[int, int], str], medium: int, qualifier: int) -> str:
    if qualifier == 0:
        return "none"
    return table.get((medium, qualifier), "unknown")


def _utc_now() -> datetime:
    return datetime.now(UTC)


# =============================================================================
# Parser
# =============================================================================


class DZGLoRaMODv2Parser(Parser):
    """DZG Plugin and Bridge, LoRaWAN frame format 2.0.

    Args:
        extend_reading: Hook adding integration specific fields to a reading
        add_power_from_last_reading: Derive ``power``/``power2`` from the
            register difference to the last reading in ``Meta.last_readings``
        clock: Returns the current time, used for the power calculation
    """

    name = "dzg_loramod_v2"

    FIELDS = (
        FieldInfo(field="type", display="Messagetype"),
        FieldInfo(field="medium", display="Medium"),
        FieldInfo(field="meter_id", display="Meter-ID"),
        FieldInfo(field="qualifier", display="Qualifier"),
        FieldInfo(field="register_value", display="Register-Value"),
    )

    def __init__(
        self,
        *,
        extend_reading: ReadingExtender | None = None,
        add_power_from_last_reading: bool = False,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        super().__init__(extend_reading=extend_reading)

        self.add_power_from_last_reading = add_power_from_last_reading

        self.clock = clock

    def _parse(self, payload: bytes, meta: Meta) -> Reading | list[Any]:
        if payload and payload[0] & FRAME_HEADER_FLAGS_BIT_MASK == 0:
            frame_type = payload[0] & FRAME_HEADER_TYPE_BIT_MASK

            if frame_type == FRAME_TYPE_METER_READING:
                return self._parse_meter_reading(payload[1:], meta)

            if frame_type == FRAME_TYPE_STATUS:
                return self._parse_status(payload[1:])

            # Raw serial and IEC 1107 frames
            _LOGGER.info("Unhandled frame type: %d", frame_type)
            return []

        if meta.frame_port == HEADERLESS_METER_READING_FRAME_PORT:
            return self._parse_meter_reading(payload, meta)

        _LOGGER.info(
            "Can not parse frame with payload: %s on frame port: %s", payload.hex().upper(), meta.frame_port
        )
        return []

    # =========================================================================
    # Meter reading
    # =========================================================================

    def _parse_meter_reading(self, frame: bytes, meta: Meta) -> Reading | list[Any]:
        if not frame:
            _LOGGER.info("Unknown MeterReadingData format")
            return []

        version = (frame[0] & METER_READING_VERSION_BIT_MASK) >> METER_READING_VERSION_BIT_SHIFT
        medium = (frame[0] & METER_READING_V1_MEDIUM_BIT_MASK) >> METER_READING_V1_MEDIUM_BIT_SHIFT

        # Header v1 only for electricity, header v2 has its version bits in the second byte
        if version == 1 and medium == MEDIUM_ELECTRICITY and len(frame) == _METER_READING_V1.size:
            return self._parse_meter_reading_v1(frame, meta)

        if len(frame) >= 2 and (frame[1] & METER_READING_VERSION_BIT_MASK) >> METER_READING_VERSION_BIT_SHIFT == 2:
            return self._parse_meter_reading_v2(frame, meta)

        _LOGGER.info("Unknown MeterReadingData format")
        return []

    def _parse_meter_reading_v1(self, frame: bytes, meta: Meta) -> Reading:
        header, meter_id, register_value = _METER_READING_V1.unpack(frame)

        reading: Reading = {
            "type": "meter_reading",
            "header_version": 1,
            "medium": MEDIUM_NAMES[MEDIUM_ELECTRICITY],
            "qualifier": _qualifier_name(
                QUALIFIER_NAMES, MEDIUM_ELECTRICITY, header & METER_READING_V1_QUALIFIER_BIT_MASK
            ),
            "meter_id": meter_id,
            "register_value": register_value / 100,
        }

        return self._add_power(reading, meta, "register_value", "power")

    def _parse_meter_reading_v2(self, frame: bytes, meta: Meta) -> Reading | list[Any]:
        qualifier = frame[0]
        has_timestamp = bool(frame[1] & METER_READING_V2_TIMESTAMP_BIT_MASK)
        is_compressed = bool(frame[1] & METER_READING_V2_COMPRESSED_BIT_MASK)
        medium = frame[1] & METER_READING_V2_MEDIUM_BIT_MASK
        reading_data = frame[2:]

        if medium == MEDIUM_ELECTRICITY and has_timestamp and not is_compressed:
            if qualifier == QUALIFIER_A_PLUS_A_MINUS and len(reading_data) == _METER_READING_V2_TWO_REGISTERS.size:
                meter_id, timestamp, register_value, register2_value = _METER_READING_V2_TWO_REGISTERS.unpack(
                    reading_data
                )

                reading = self._create_meter_reading_v2(medium, qualifier, meter_id) | {
                    "register_value": register_value / 100,
                    "register2_value": register2_value / 100,
                    "timestamp_unix": timestamp,
                    "timestamp": datetime.fromtimestamp(timestamp, UTC),
                }

                reading = self._add_power(reading, meta, "register_value", "power")
                return self._add_power(reading, meta, "register2_value", "power2")

            if (
                qualifier == QUALIFIER_A_PLUS
                and len(reading_data) >= 4
                and (len(reading_data) - 4) % _REGISTER_TUPLE.size == 0
            ):
                meter_id = int.from_bytes(reading_data[:4], byteorder="little")

                reading = self._create_meter_reading_v2(medium, qualifier, meter_id)

                for index, (timestamp, register_value) in enumerate(_REGISTER_TUPLE.iter_unpack(reading_data[4:]), 1):
                    reading[f"register_value_{index}"] = register_value / 100
                    reading[f"timestamp_unix_{index}"] = timestamp  # Device clock, may be wrong
                    reading[f"timestamp_{index}"] = datetime.fromtimestamp(timestamp, UTC)

                return reading

        _LOGGER.info(
            "Not creating meter reading because not matching header %s and reading_data %s",
            (medium, qualifier, int(has_timestamp), int(is_compressed)),
            reading_data.hex().upper(),
        )
        return []

    @staticmethod
    def _create_meter_reading_v2(medium: int, qualifier: int, meter_id: int) -> Reading:
        return {
            "type": "meter_reading",
            "header_version": 2,
            "medium": MEDIUM_NAMES_EXTENDED.get(medium, "unknown"),
            "qualifier": _qualifier_name(QUALIFIER_NAMES_EXTENDED, medium, qualifier),
            "meter_id": meter_id,
        }

    def _add_power(self, reading: Reading, meta: Meta, register_field: str, power_field: str) -> Reading:
        """Add the average power since the last reading of register_field.

        Power is the register difference per hour. Nothing is added when the
        option is off, the field is missing or there is no last reading.
        """
        value = reading.get(register_field)

        if not self.add_power_from_last_reading or value is None:
            return reading

        last_reading = meta.last_readings.get(register_field)

        if last_reading is None or last_reading.data.get(register_field) is None:
            return reading

        hours_since_last_reading = (self.clock() - last_reading.measured_at).total_seconds() / SECONDS_PER_HOUR

        if hours_since_last_reading <= 0:
            _LOGGER.warning("Last reading of %s is not in the past, skipping %s", register_field, power_field)
            return reading

        return reading | {power_field: (value - last_reading.data[register_field]) / hours_since_last_reading}

    # =========================================================================
    # Status
    # =========================================================================

    def _parse_status(self, frame: bytes) -> Reading | list[Any]:
        if len(frame) != _STATUS.size:
            _LOGGER.warning("Unknown StatusData format")
            return []

        (
            first_byte,
            firmware_id,
            uptime_ms,
            time_s,
            last_downlink_ms,
            rssi,
            snr,
            frame_type,
            is_ack,
            connected_devices,
        ) = _STATUS.unpack(frame)

        return {
            "type": "status",
            "reset_reason": RESET_REASON_NAMES.get(first_byte >> 5, "unknown"),
            "node_type": NODE_TYPE_NAMES.get((first_byte >> 3) & 0b11, "unknown"),
            "session_info": SESSION_INFO_NAMES.get(first_byte & 0b111, "unknown"),
            "firmware_id": firmware_id.hex().upper(),
            "uptime_ms": uptime_ms,
            "last_downlink_ms": last_downlink_ms,
            "time_s": time_s,
            "rssi": rssi,
            "snr": snr,
            "frame_type": frame_type,
            "is_ack": is_ack,
            "connected_devices": connected_devices,
        }
