"""Parser for Elvaco CMi4110 heat meter modules.

The CMi4110 sits in a Landis+Gyr UH50 meter and sends the meter's M-Bus data
records over LoRaWAN. Payload layout (all payload styles):

    payload_style (1 byte) + M-Bus data records

The error flag record ``01 FD 17 XX`` some modules append is stripped before the
records are decoded.

Reference: CMi4110 User's Manual v1.3
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import fields as dataclass_fields
from enum import IntFlag
from typing import Any

from loraparsers.exceptions import ContainerDecodeError, RecordContractError
from loraparsers.mbus import Descriptor, RawRecord, decode_records

from .base import FieldInfo, Meta, Parser, Reading

_LOGGER = logging.getLogger(__name__)

ERROR_BLOCK_HEADER = b"\x01\xfd\x17"  # DIF 8 bit, VIF second extension, VIFE error flags

UNKNOWN_DESCRIPTOR_PREFIXES = ("unkown_", "unknown_")

DROPPED_RECORD_KEYS = ("unit", "tariff", "memory_address", "sub_device")

OBIS_HEAT_ENERGY = "6-0:1.0.0"


# =============================================================================
# Error flags
# =============================================================================


class ErrorFlag(IntFlag):
    """Error flags of the UH50 meter (16 bit, big-endian word)."""

    FLOW_MEASUREMENT = 1 << 0
    DISRUPTION_SENSOR_WARM_SIDE = 1 << 1
    DISRUPTION_SENSOR_COLD_SIDE = 1 << 2
    TEMPERATURE_ELECTRONICS = 1 << 3
    SUPPLY_VOLTAGE_LOW = 1 << 4
    SHORT_CIRCUIT_SENSOR_WARM_SIDE = 1 << 5
    SHORT_CIRCUIT_SENSOR_COLD_SIDE = 1 << 6
    INTERNAL_MEMORY = 1 << 7
    EIGHT_HOURS_EXCEEDED = 1 << 8
    ELECTRONICS_ASIC = 1 << 9
    DIRT_HEADS_UP = 1 << 10
    EEPROM_HEADS_UP = 1 << 11
    BIT_12 = 1 << 12
    BIT_13 = 1 << 13
    BIT_14 = 1 << 14
    BIT_15 = 1 << 15


# Message order as reported by the meter: named flags from bit 11 down, then bits 12-15
_ERROR_MESSAGES: tuple[tuple[ErrorFlag, str], ...] = (
    (ErrorFlag.EEPROM_HEADS_UP, "EEPROM-Vorwarnung"),
    (ErrorFlag.DIRT_HEADS_UP, "Verschmutzungs-Vorwarnung der Messstrecke"),
    (ErrorFlag.ELECTRONICS_ASIC, "F9 - Fehler in der Elektronik (ASIC)"),
    (ErrorFlag.EIGHT_HOURS_EXCEEDED, "F8 - F1, F2, F3, F5 oder F6 stehen länger als 8 Stunden an"),
    (ErrorFlag.INTERNAL_MEMORY, "F7 - Störung im internen Speicher (ROM oder EEPROM)"),
    (ErrorFlag.SHORT_CIRCUIT_SENSOR_COLD_SIDE, "F6 - Kurzschluss Termperaturfühler kalte Seite"),
    (ErrorFlag.SHORT_CIRCUIT_SENSOR_WARM_SIDE, "F5 - Kurzschluss Termperaturfühler warme Seite"),
    (ErrorFlag.SUPPLY_VOLTAGE_LOW, "F4 - Versorgungsspannung niedrig"),
    (ErrorFlag.TEMPERATURE_ELECTRONICS, "F3 - Elektronik für Temperaturauswertung defekt"),
    (ErrorFlag.DISRUPTION_SENSOR_COLD_SIDE, "F2 - Unterbrechung Temperaturfühler kalte Seite"),
    (ErrorFlag.DISRUPTION_SENSOR_WARM_SIDE, "F1 - Unterbrechung Temperaturfühler warme Seite"),
    (ErrorFlag.FLOW_MEASUREMENT, "F0 - Fehler bei Durchflussmessung (z.B. Luft im Messrohr)"),
    (ErrorFlag.BIT_12, "Error bit 12 set"),
    (ErrorFlag.BIT_13, "Error bit 13 set"),
    (ErrorFlag.BIT_14, "Error bit 14 set"),
    (ErrorFlag.BIT_15, "Error bit 15 set"),
)


def build_error_string(raw: bytes) -> str:
    """Translate the error flag bytes into diagnostic messages.

    Args:
        raw: Error flags as big-endian word (2 bytes) or low byte only (1 byte)

    Returns:
        Active messages joined by ``;``, empty if no flag is set

    Raises:
        RecordContractError: If raw is not 1 or 2 bytes long
    """
    if len(raw) not in (1, 2):
        raise RecordContractError(f"Error flags must be 1 or 2 bytes, got {len(raw)}")

    flags = ErrorFlag(int.from_bytes(raw, byteorder="big"))

    return ";".join(message for flag, message in _ERROR_MESSAGES if flag in flags)


# =============================================================================
# Record pipeline
# =============================================================================


def filter_unknown_data(records: Iterable[RawRecord]) -> list[RawRecord]:
    """Drop records whose meaning was not interpreted by the record decoder."""
    return [
        record
        for record in records
        if record.data is None or not str(record.data.descriptor).startswith(UNKNOWN_DESCRIPTOR_PREFIXES)
    ]


def merge_data_into_parent(records: Iterable[RawRecord]) -> list[dict[str, Any]]:
    """Flatten each record into one attribute bag.

    Raises:
        RecordContractError: If a record carries no data
    """
    bags: list[dict[str, Any]] = []

    for record in records:
        if record.data is None:
            raise RecordContractError(f"Record without data: {record!r}")

        bag = {item.name: getattr(record, item.name) for item in dataclass_fields(record) if item.name != "data"}
        bag.update({item.name: getattr(record.data, item.name) for item in dataclass_fields(record.data)})

        bags.append(bag)

    return bags


# Reading keys of value and unit per descriptor
_FIELD_NAMES: dict[Descriptor, tuple[str, str]] = {
    descriptor: (descriptor.value, f"{descriptor.value}_unit") for descriptor in Descriptor
}


def _interpret_value(bag: dict[str, Any]) -> dict[str, Any]:
    descriptor = bag.get("descriptor")
    value = bag.get("value")
    unit = bag.get("unit")

    match descriptor:
        case Descriptor.ERROR_CODES:
            if not isinstance(value, str):
                raise RecordContractError(f"Error flags record has no bit field value: {value!r}")

            derived = {
                "error_codes": min(int(value, 16), 1),
                "error": build_error_string(bytes.fromhex(value)),
            }

        case Descriptor.FABRICATION_BLOCK:
            derived = {"fabrication_block": value, "fabrication_block_unit": "MeterID"}

        case Descriptor.ENERGY if unit == "Wh" and (value is None or isinstance(value, int | float)):
            derived = {"energy": round(value / 1000, 3) if value is not None else None, "energy_unit": "kWh"}

        case Descriptor():
            if unit is None:
                raise RecordContractError(f"Record {descriptor} has no unit")

            value_key, unit_key = _FIELD_NAMES[descriptor]
            derived = {value_key: value, unit_key: unit}

        case _:
            raise RecordContractError(f"Record has no descriptor: {bag!r}")

    bag = bag | derived
    del bag["descriptor"], bag["value"]
    return bag


def map_values(bags: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    """Derive the reading fields of every record from its descriptor."""
    return [_interpret_value(bag) for bag in bags]


def merge_field_bags(bags: Iterable[dict[str, Any]]) -> Reading:
    """Merge record bags in order, later records overwrite earlier ones."""
    reading: Reading = {}

    # Last write wins on key collisions, do not switch to first write wins
    for bag in bags:
        reading.update(bag)

    for key in DROPPED_RECORD_KEYS:
        reading.pop(key, None)

    return reading


def _strip_error_block(body: bytes) -> bytes:
    if len(body) >= 4 and body[-4:-1] == ERROR_BLOCK_HEADER:
        return body[:-4]
    return body


def extend_with_obis_energy(reading: Reading) -> Reading:
    """Mirror the heat energy in kWh under its OBIS code."""
    if reading.get("energy_unit") == "kWh" and "energy" in reading:
        return reading | {OBIS_HEAT_ENERGY: reading["energy"]}
    return reading


# =============================================================================
# Parser
# =============================================================================


class ElvacoCMi4110Parser(Parser):
    """Elvaco CMi4110 / CMi4140 M-Bus over LoRaWAN."""

    name = "elvaco_cmi4110"

    FIELDS = (
        FieldInfo(field="payload_style", display="Payload Style"),
        FieldInfo(field="energy", display="Energie", unit="kWh"),
        FieldInfo(field="flow", display="Fluss", unit="m³/h"),
        FieldInfo(field="power", display="Power", unit="W"),
        FieldInfo(field="supply_temperature", display="Vorlauftemperatur", unit="°C"),
        FieldInfo(field="return_temperature", display="Rücklauftemperatur", unit="°C"),
        FieldInfo(field="volume", display="Volumen", unit="m³"),
    )

    default_extend_reading = staticmethod(extend_with_obis_energy)

    def _parse(self, payload: bytes, meta: Meta) -> Reading | list[Any]:
        if not payload:
            _LOGGER.warning("Could not parse empty payload with frame_port %s", meta.frame_port)
            return []

        payload_style = payload[0]

        try:
            records = decode_records(_strip_error_block(payload[1:]))
        except ContainerDecodeError as err:
            _LOGGER.warning(
                "Could not parse payload %s with frame_port %s: %s", payload.hex().upper(), meta.frame_port, err
            )
            return []

        reading = merge_field_bags(map_values(merge_data_into_parent(filter_unknown_data(records))))

        reading["payload_style"] = payload_style

        return reading
