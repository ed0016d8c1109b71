"""Common parser interface.

Every device parser turns one uplink payload into a flat reading. Payloads
that do not match the device layout yield an empty list instead of an
exception, so a head-end can feed any frame to any parser.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar

Reading = dict[str, Any]

ReadingExtender = Callable[[Reading], Reading]


@dataclass(frozen=True, kw_only=True)
class LastReading:
    """A previously stored reading of the same device.

    Attributes:
        measured_at: Time the reading was taken (timezone aware)
        data: Reading fields
    """

    measured_at: datetime
    data: Mapping[str, Any]


@dataclass(frozen=True, kw_only=True)
class Meta:
    """Uplink metadata passed along with a payload.

    Attributes:
        frame_port: LoRaWAN FPort of the uplink
        last_readings: Last stored reading per field name, for parsers that
            derive values from the previous register reading
    """

    frame_port: int | None = None
    last_readings: Mapping[str, LastReading] = field(default_factory=dict)


@dataclass(frozen=True, kw_only=True)
class FieldInfo:
    """Reporting metadata of a reading field."""

    field: str
    display: str
    unit: str | None = None


def identity(reading: Reading) -> Reading:
    return reading


def apply_extension(result: Any, extend_reading: ReadingExtender) -> Any:
    """Run the extension hook over a parse result.

    Handles a single reading, a list of readings and a ``(reading, options)``
    tuple. Anything else is returned unchanged.
    """
    if isinstance(result, list):
        return [apply_extension(item, extend_reading) for item in result]

    if isinstance(result, tuple) and len(result) == 2:
        reading, options = result
        return (apply_extension(reading, extend_reading), options)

    if isinstance(result, dict):
        return extend_reading(result)

    return result


class Parser(ABC):
    """Base class for device payload parsers.

    Subclasses implement ``_parse`` and declare their reporting fields in
    ``FIELDS``. The extension hook runs over every successful result.

    Args:
        extend_reading: Hook adding integration specific fields to a reading
    """

    name: ClassVar[str]

    FIELDS: ClassVar[tuple[FieldInfo, ...]] = ()

    def __init__(self, *, extend_reading: ReadingExtender | None = None) -> None:
        self.extend_reading = extend_reading if extend_reading is not None else self.default_extend_reading

    @staticmethod
    def default_extend_reading(reading: Reading) -> Reading:
        return identity(reading)

    def parse(self, payload: bytes, meta: Meta | None = None) -> Reading | list[Any]:
        """Parse one uplink payload.

        Args:
            payload: Raw payload bytes
            meta: Uplink metadata, defaults to an empty Meta

        Returns:
            The reading, or an empty list if the payload is not understood
        """
        return apply_extension(self._parse(payload, meta if meta is not None else Meta()), self.extend_reading)

    def parse_hex(self, payload_hex: str, meta: Meta | None = None) -> Reading | list[Any]:
        """Parse a hex encoded payload.

        Raises:
            ValueError: If payload_hex is not valid hex
        """
        return self.parse(bytes.fromhex(payload_hex), meta)

    @abstractmethod
    def _parse(self, payload: bytes, meta: Meta) -> Reading | list[Any]: ...

    @classmethod
    def fields(cls) -> tuple[FieldInfo, ...]:
        return cls.FIELDS
