"""Data record decoding.

A variable data block is a sequence of data records. Each record consists of a
DIB (DIF + DIFEs), a VIB (VIF + VIFEs) and the data field:

    DIF [DIFE...] VIF [VIFE...] [ASCII unit] DATA

Special DIFs interrupt the sequence: idle fillers are skipped and a
manufacturer data header turns the rest of the block into one opaque record.

Reference: EN 13757-3:2018, section 6
"""

from __future__ import annotations

from dataclasses import dataclass

from loraparsers.exceptions import ContainerDecodeError

from .data import Data, DataRules, DataType
from .dib import DIB, DataDIB, IdleFillerDIB, ManufacturerDIB
from .value import Descriptor, ValueFunction, ValueUnit
from .vif import VIB


@dataclass(frozen=True, kw_only=True)
class RecordData:
    """Semantic content of a data record.

    Attributes:
        descriptor: Semantic tag of the value
        value: Scaled value, or None for invalid markers and records without data
        unit: Unit string ("" for dimensionless values)
    """

    descriptor: Descriptor
    value: object
    unit: str | None


@dataclass(frozen=True, kw_only=True)
class RawRecord:
    """A decoded data record.

    Attributes:
        data: Semantic content, None only for hand-built records
        function_field: Function field of the DIF
        tariff: Tariff number from the DIFEs
        sub_device: Subunit number from the DIFEs
        memory_address: Storage number from DIF and DIFEs
    """

    data: RecordData | None
    function_field: ValueFunction = ValueFunction.CURRENT_VALUE
    tariff: int = 0
    sub_device: int = 0
    memory_address: int = 0


class _PayloadReader:
    """Sequential reader over a payload, raising when it runs out of bytes."""

    def __init__(self, payload: bytes) -> None:
        self._payload = payload
        self._position = 0

    def __call__(self, size: int) -> bytes:
        if size < 0:
            raise ValueError(f"Cannot read {size} bytes")

        end = self._position + size

        if end > len(self._payload):
            raise ValueError(
                f"Payload ended after {len(self._payload)} bytes, needed {size} more at offset {self._position}"
            )

        chunk = self._payload[self._position : end]
        self._position = end
        return chunk

    def read_remaining(self) -> bytes:
        return self(len(self._payload) - self._position)

    @property
    def exhausted(self) -> bool:
        return self._position >= len(self._payload)


def _decode_data_record(dib: DataDIB, get_next_bytes: _PayloadReader) -> RawRecord:
    vib = VIB.from_bytes(get_next_bytes)

    vib.ascii_unit_from_bytes(get_next_bytes)

    data_type = DataRules(dib.data_support, vib.data_rules)

    if data_type is DataType.NONE:
        value = None
    else:
        value = vib.transform(Data.from_bytes(data_type, get_next_bytes).decoded_value)

    return RawRecord(
        data=RecordData(descriptor=vib.descriptor, value=value, unit=str(vib.value_unit)),
        function_field=dib.value_function,
        tariff=dib.tariff,
        sub_device=dib.subunit,
        memory_address=dib.storage_number,
    )


def decode_records(payload: bytes) -> list[RawRecord]:
    """Decode a variable data block into its data records.

    Args:
        payload: Record bytes, without any link or application layer header

    Returns:
        Records in payload order

    Raises:
        ContainerDecodeError: If the bytes do not form a valid record sequence
    """
    get_next_bytes = _PayloadReader(payload)

    records: list[RawRecord] = []

    try:
        while not get_next_bytes.exhausted:
            dib = DIB.from_bytes(get_next_bytes)

            if isinstance(dib, IdleFillerDIB):
                continue

            if isinstance(dib, ManufacturerDIB):
                records.append(
                    RawRecord(
                        data=RecordData(
                            descriptor=Descriptor.UNKNOWN_MANUFACTURER_DATA,
                            value=get_next_bytes.read_remaining().hex().upper(),
                            unit=str(ValueUnit.NONE),
                        )
                    )
                )
                break

            assert isinstance(dib, DataDIB)

            records.append(_decode_data_record(dib, get_next_bytes))

    except ValueError as err:
        raise ContainerDecodeError(f"Invalid data record block {payload.hex().upper()}: {err}") from err

    return records
