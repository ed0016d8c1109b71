"""Data type definitions and decoding logic for M-Bus data records.

This module implements the M-Bus data type system according to EN 13757-3:2018.
It provides:

Classes:
    - DataType: Enum of the supported M-Bus data types with length and decoder
    - DataRules: Resolution of the concrete DataType from DIF and VIF constraints
    - LVARType: Enum of variable-length data type interpretations
    - Data: Container for decoded M-Bus data with type information

The data type system:
    Fixed-length types (A-J): Each has a specific byte length and decoder
    Variable-length type (LVAR): Length determined by the LVAR byte

    - DIF specifies the candidate types (e.g., B_4, C_4, D_4, F_4 for 32 bit)
    - VIF specifies the allowed type families (e.g., F, I, J for datetime)
    - DataRules picks the first candidate whose family is allowed

Decoded values are plain Python objects (int, float, str, date, datetime, time).
Invalid markers defined by the standard decode to None.

Reference: EN 13757-3:2018
    - Annex A: Data types and encoding
    - Table 4 (page 13): Data type codes
    - Table 5 (page 13): LVAR interpretation
"""

from __future__ import annotations

import struct
from collections.abc import Callable
from datetime import date, datetime, time
from enum import Enum
from typing import Any, NamedTuple, Self

# =============================================================================
# Numeric Data Type Decoders
# =============================================================================


def _decode_type_a(data: bytes) -> int | None:
    """Decode Type A: Unsigned BCD (Binary Coded Decimal).

    Each nibble (4 bits) represents a decimal digit (0-9).
    Bytes are in little-endian order (least significant digit first).

    Special values:
        - Nibbles A-E: Invalid/error marker (returns None)
        - Nibble F in MSB position: Negative number marker

    Reference: EN 13757-3:2018, Annex A, Table A.1

    Args:
        data: Raw bytes in BCD encoding (little-endian)

    Returns:
        Decoded integer (can be negative), or None if invalid BCD digits found
    """
    value = int.from_bytes(data, byteorder="little")

    result = 0
    multiplier = 1

    while value > 0:
        digit = value & 0x0F
        value >>= 4

        if digit > 9:
            if value == 0 and digit == 0x0F:
                result = -result
                break

            return None

        result += digit * multiplier
        multiplier *= 10

    return result


def _decode_type_b(data: bytes) -> int | None:
    """Decode Type B: Signed binary integer (two's complement).

    Bytes are in little-endian order.
    The most negative value for the given bit width is reserved as an invalid marker.

    Reference: EN 13757-3:2018, Annex A, Table A.2

    Args:
        data: Raw bytes in little-endian order

    Returns:
        Decoded signed integer, or None if value is the invalid marker
    """
    value = int.from_bytes(data, byteorder="little", signed=True)

    if value == -(1 << (len(data) * 8 - 1)):
        return None

    return value


def _decode_type_c(data: bytes) -> int | None:
    """Decode Type C: Unsigned binary integer.

    Bytes are in little-endian order.
    The maximum value for the given bit width is reserved as an invalid marker.

    Reference: EN 13757-3:2018, Annex A, Table A.3

    Args:
        data: Raw bytes in little-endian order

    Returns:
        Decoded unsigned integer, or None if value is the invalid marker
    """
    value = int.from_bytes(data, byteorder="little")

    if value == (1 << (len(data) * 8)) - 1:
        return None

    return value


def _decode_type_h(data: bytes) -> float | None:
    """Decode Type H: IEEE 754 floating point (4 bytes, little-endian).

    NaN is reserved as an invalid marker.

    Reference: EN 13757-3:2018, Annex A, Table A.7

    Raises:
        ValueError: If data is not exactly 4 bytes
    """
    if len(data) != 4:
        raise ValueError(f"Invalid data length for float: {len(data)} bytes (expected 4)")

    value: float = struct.unpack("<f", data)[0]

    # NaN is the only value where x != x
    if value != value:
        return None

    return value


# =============================================================================
# Bit Field Data Type Decoder
# =============================================================================


def _decode_type_d(data: bytes) -> str:
    """Decode Type D: Bit field.

    The bit field is reported as an upper-case hex string in big-endian order,
    so the most significant flag bits come first. Bytes ``06 00`` on the wire
    decode to ``"0006"``.

    Reference: EN 13757-3:2018, Annex A, Table A.4

    Args:
        data: Raw bytes (little-endian)

    Returns:
        Hex string of the bit field
    """
    return data[::-1].hex().upper()


# =============================================================================
# Date/Time Data Type Decoders
# =============================================================================


def _decode_type_g(data: bytes) -> date | None:
    """Decode Type G: Date CP16 (2 bytes).

    Year is offset from 2000 (0-99 for years 2000-2099).

    Special values:
        - 0xFFFF: Invalid (returns None)
        - day=0, month=15, year=127: Recurring patterns (returns None)

    Reference: EN 13757-3:2018, Annex A, Table A.6

    Raises:
        ValueError: If data is not 2 bytes or contains invalid date values
    """
    if len(data) != 2:
        raise ValueError(f"Invalid data length for date: {len(data)} bytes (expected 2)")

    if data[0] == 0b11111111 and data[1] == 0b11111111:
        return None

    day = data[0] & 0b00011111  # Bits 0-4
    month = data[1] & 0b00001111  # Bits 8-11
    year = ((data[1] >> 1) & 0b01111000) | (data[0] >> 5)  # Bits 12-15 and 5-7

    if month != 15 and not 1 <= month <= 12:
        raise ValueError(f"Invalid month: {month}")

    if year != 127 and not 0 <= year <= 99:
        raise ValueError(f"Invalid year: {year}")

    if day == 0 or month == 15 or year == 127:
        return None

    return date(2000 + year, month, day)


def _decode_type_f(data: bytes) -> datetime | None:
    """Decode Type F: Date and Time CP32 (4 bytes).

    Year: 1900 + 100*hundred_year + year. Meters that leave the hundred year
    bits at zero report years 0-80 as 2000-2080.

    Special values:
        - IV bit=1: Invalid (returns None)
        - minute=63, hour=31, day=0, month=15, year=127: Recurring patterns (returns None)

    Reference: EN 13757-3:2018, Annex A, Table A.5

    Returns:
        Naive datetime (meter local time), or None

    Raises:
        ValueError: If data is not 4 bytes or contains invalid time/date values
    """
    if len(data) != 4:
        raise ValueError(f"Invalid data length for datetime: {len(data)} bytes (expected 4)")

    if data[0] & 0b10000000:
        return None

    minute = data[0] & 0b00111111  # Bits 0-5
    hour = data[1] & 0b00011111  # Bits 8-12
    hundred_year = (data[1] >> 5) & 0b00000011  # Bits 13-14
    day = data[2] & 0b00011111  # Bits 16-20
    month = data[3] & 0b00001111  # Bits 24-27
    year = ((data[3] >> 1) & 0b01111000) | (data[2] >> 5)  # Bits 21-23 and 28-31

    if minute != 63 and not 0 <= minute <= 59:
        raise ValueError(f"Invalid minute: {minute}")

    if hour != 31 and not 0 <= hour <= 23:
        raise ValueError(f"Invalid hour: {hour}")

    if month != 15 and not 1 <= month <= 12:
        raise ValueError(f"Invalid month: {month}")

    if year != 127 and not 0 <= year <= 99:
        raise ValueError(f"Invalid year: {year}")

    if minute == 63 or hour == 31 or day == 0 or month == 15 or year == 127:
        return None

    full_year = 1900 + 100 * hundred_year + year
    if hundred_year == 0 and year <= 80:
        full_year += 100

    return datetime(full_year, month, day, hour, minute)


def _decode_type_j(data: bytes) -> time | None:
    """Decode Type J: Time CP24 (3 bytes).

    Special values:
        - 0xFFFFFF: Invalid (returns None)
        - second=63, minute=63, hour=31: Recurring patterns (returns None)

    Reference: EN 13757-3:2018, Annex A, Table A.9

    Raises:
        ValueError: If data is not 3 bytes or contains invalid time values
    """
    if len(data) != 3:
        raise ValueError(f"Invalid data length for time: {len(data)} bytes (expected 3)")

    if data[0] == 0b11111111 and data[1] == 0b11111111 and data[2] == 0b11111111:
        return None

    second = data[0]
    minute = data[1]
    hour = data[2]

    if second != 63 and not 0 <= second <= 59:
        raise ValueError(f"Invalid second: {second}")

    if minute != 63 and not 0 <= minute <= 59:
        raise ValueError(f"Invalid minute: {minute}")

    if hour != 31 and not 0 <= hour <= 23:
        raise ValueError(f"Invalid hour: {hour}")

    if second == 63 or minute == 63 or hour == 31:
        return None

    return time(hour, minute, second)


def _decode_type_i(data: bytes) -> datetime | None:
    """Decode Type I: Date and Time CP48 (6 bytes).

    Year offset from 2000. Day of week, week number and summer time
    information are validated but not part of the returned value.

    Special values:
        - IV bit=1: Invalid (returns None)
        - second=63, minute=63, hour=31, day=0, month=0, year=127: Not specified (returns None)

    Reference: EN 13757-3:2018, Annex A, Table A.8

    Raises:
        ValueError: If data is not 6 bytes or contains invalid values
    """
    if len(data) != 6:
        raise ValueError(f"Invalid data length for datetime: {len(data)} bytes (expected 6)")

    if data[1] & 0b10000000:
        return None

    second = data[0] & 0b00111111  # Bits 0-5
    minute = data[1] & 0b00111111  # Bits 8-13
    hour = data[2] & 0b00011111  # Bits 16-20
    day = data[3] & 0b00011111  # Bits 24-28
    year = ((data[4] >> 4) << 3) | (data[3] >> 5)  # Bits 29-31 and 36-39
    month = data[4] & 0b00001111  # Bits 32-35
    week = data[5] & 0b00111111  # Bits 40-45

    if second != 63 and not 0 <= second <= 59:
        raise ValueError(f"Invalid second: {second}")

    if minute != 63 and not 0 <= minute <= 59:
        raise ValueError(f"Invalid minute: {minute}")

    if hour != 31 and not 0 <= hour <= 23:
        raise ValueError(f"Invalid hour: {hour}")

    if month != 0 and not 1 <= month <= 12:
        raise ValueError(f"Invalid month: {month}")

    if year != 127 and not 0 <= year <= 99:
        raise ValueError(f"Invalid year: {year}")

    if week != 0 and not 1 <= week <= 53:
        raise ValueError(f"Invalid week: {week}")

    if second == 63 or minute == 63 or hour == 31 or day == 0 or month == 0 or year == 127:
        return None

    return datetime(2000 + year, month, day, hour, minute, second)


# =============================================================================
# LVAR Decoders
# =============================================================================


def _decode_lvar_text_8859_1(data: bytes) -> str:
    """Decode text string using ISO/IEC 8859-1 (Latin-1) encoding.

    Used for LVAR codes 0x00-0xBF. Bytes are in natural order.

    Reference: EN 13757-3:2018, Table 5 (LVAR range 0x00-0xBF)
    """
    return data.decode("iso-8859-1")


def _decode_lvar_positive_bcd(data: bytes) -> int | None:
    """Decode positive BCD number from LVAR data (codes 0xC0-0xC9).

    Raises:
        ValueError: If BCD value carries the F-nibble sign marker
    """
    bcd_value = _decode_type_a(data)

    if bcd_value is not None and bcd_value < 0:
        raise ValueError(f"Expected positive BCD number, got negative value: {bcd_value}")

    return bcd_value


def _decode_lvar_negative_bcd(data: bytes) -> int | None:
    """Decode negative BCD number from LVAR data (codes 0xD0-0xD9).

    Raises:
        ValueError: If BCD value carries the F-nibble sign marker
    """
    bcd_value = _decode_type_a(data)

    if bcd_value is None:
        return None

    if bcd_value < 0:
        raise ValueError(f"LVAR negative BCD should not have F-nibble sign marker, got BCD value: {bcd_value}")

    return -bcd_value


class _LVARDescriptor(NamedTuple):
    """Descriptor for LVAR-based variable length data interpretation.

    Reference: EN 13757-3:2018, Table 5
    """

    code_range: range  # Range of LVAR codes this descriptor handles
    length_calculator: Callable[[int], int]  # Takes LVAR byte value, returns data length in bytes
    decoder: Callable[[bytes], Any]  # Decoder function for the data bytes


class LVARType(Enum):
    """LVAR-based data types for variable-length data.

    The LVAR byte determines both data type and length of the following data.

    Reference: EN 13757-3:2018, Table 5 (LVAR interpretation)
    """

    # 0x00-0xBF: 8-bit text string (ISO/IEC 8859-1), LVAR = number of characters
    TEXT_STRING = _LVARDescriptor(
        code_range=range(0x00, 0xC0),
        length_calculator=lambda lvar: lvar,
        decoder=_decode_lvar_text_8859_1,
    )

    # 0xC0-0xC9: Positive BCD number, (LVAR - 0xC0) bytes
    POSITIVE_BCD = _LVARDescriptor(
        code_range=range(0xC0, 0xCA),
        length_calculator=lambda lvar: lvar - 0xC0,
        decoder=_decode_lvar_positive_bcd,
    )

    # 0xD0-0xD9: Negative BCD number, (LVAR - 0xD0) bytes
    NEGATIVE_BCD = _LVARDescriptor(
        code_range=range(0xD0, 0xDA),
        length_calculator=lambda lvar: lvar - 0xD0,
        decoder=_decode_lvar_negative_bcd,
    )

    # 0xE0-0xEF: Binary number, (LVAR - 0xE0) bytes
    BINARY_SMALL = _LVARDescriptor(
        code_range=range(0xE0, 0xF0),
        length_calculator=lambda lvar: lvar - 0xE0,
        decoder=_decode_type_c,
    )

    # 0xF0-0xF4: Binary number, 4*(LVAR - 0xEC) bytes
    BINARY_LARGE = _LVARDescriptor(
        code_range=range(0xF0, 0xF5),
        length_calculator=lambda lvar: 4 * (lvar - 0xEC),
        decoder=_decode_type_c,
    )

    # 0xF5: Binary number, 48 bytes
    BINARY_48 = _LVARDescriptor(
        code_range=range(0xF5, 0xF6),
        length_calculator=lambda _: 48,
        decoder=_decode_type_c,
    )

    # 0xF6: Binary number, 64 bytes
    BINARY_64 = _LVARDescriptor(
        code_range=range(0xF6, 0xF7),
        length_calculator=lambda _: 64,
        decoder=_decode_type_c,
    )


# =============================================================================
# Data Types
# =============================================================================


class DataType(Enum):
    """M-Bus data types with byte length and decoder.

    The member value is the type code (family letter and byte length, e.g.
    ``"B_4"``). The family letter is what VIF requirements refer to.

    Reference: EN 13757-3:2018, Annex A, Table 4
    """

    def __new__(cls, value: str, *args: Any) -> Self:
        obj = object.__new__(cls)
        obj._value_ = value
        return obj

    def __init__(self, value: str, decoder: Callable[[bytes], Any] | None = None, length: int | None = None) -> None:
        self._decoder = decoder
        self._length = length

    @property
    def length(self) -> int | None:
        """Byte length for this data type (None for variable length)."""
        return self._length

    @property
    def decoder(self) -> Callable[[bytes], Any] | None:
        """Decoder function for this data type (None for NONE and LVAR)."""
        return self._decoder

    @property
    def family(self) -> str:
        """Type family letter (A, B, C, ...) or LVAR/NONE."""
        return self.value.partition("_")[0]

    NONE = "NONE", None, 0  # No data

    # Type A: Unsigned BCD
    A_1 = "A_1", _decode_type_a, 1
    A_2 = "A_2", _decode_type_a, 2
    A_3 = "A_3", _decode_type_a, 3
    A_4 = "A_4", _decode_type_a, 4
    A_6 = "A_6", _decode_type_a, 6

    # Type B: Signed integer
    B_1 = "B_1", _decode_type_b, 1
    B_2 = "B_2", _decode_type_b, 2
    B_3 = "B_3", _decode_type_b, 3
    B_4 = "B_4", _decode_type_b, 4
    B_6 = "B_6", _decode_type_b, 6
    B_8 = "B_8", _decode_type_b, 8

    # Type C: Unsigned integer
    C_1 = "C_1", _decode_type_c, 1
    C_2 = "C_2", _decode_type_c, 2
    C_3 = "C_3", _decode_type_c, 3
    C_4 = "C_4", _decode_type_c, 4
    C_6 = "C_6", _decode_type_c, 6
    C_8 = "C_8", _decode_type_c, 8

    # Type D: Bit field
    D_1 = "D_1", _decode_type_d, 1
    D_2 = "D_2", _decode_type_d, 2
    D_3 = "D_3", _decode_type_d, 3
    D_4 = "D_4", _decode_type_d, 4
    D_6 = "D_6", _decode_type_d, 6
    D_8 = "D_8", _decode_type_d, 8

    # Type F: Date/Time CP32
    F_4 = "F_4", _decode_type_f, 4

    # Type G: Date CP16
    G_2 = "G_2", _decode_type_g, 2

    # Type H: Floating point IEEE 754
    H_4 = "H_4", _decode_type_h, 4

    # Type I: Date/Time CP48
    I_6 = "I_6", _decode_type_i, 6

    # Type J: Time CP24
    J_3 = "J_3", _decode_type_j, 3

    # LVAR: Variable length, decoder chosen by the LVAR byte
    LVAR = "LVAR"


class DataRules:
    """Data type resolution for matching DIF and VIF specifications.

    DataRules provides a factory mechanism to determine the concrete DataType
    from the DIF candidates and the VIF requirements:
    - DIF specifies candidate types in priority order (e.g., B_4, C_4, D_4, F_4)
    - VIF specifies the allowed type families (e.g., {"F", "I", "J"})
    - DataRules(supports, requires) returns the first allowed candidate

    Example:
        supports = DataRules.Supports.BCDF_4  # DIF: 4-byte data
        requires = DataRules.Requires.TEMPORAL_FIJ  # VIF: datetime
        data_type = DataRules(supports, requires)  # Returns F_4

    Reference: EN 13757-3:2018, Table 4 (DIF/VIF type matching)
    """

    def __new__(cls, supports: Supports, requires: Requires) -> DataType:  # type: ignore[misc]
        if supports is DataRules.Supports.NONE:
            return DataType.NONE

        for data_type in supports.value:
            if data_type.family in requires.value:
                return data_type

        raise ValueError(f"No valid DataType found for {supports.name} and {requires.name}")

    class Supports(Enum):
        """DIF-side candidate types, in priority order.

        Reference: EN 13757-3:2018, Table 4 (DIF data field encoding)
        """

        NONE = ()  # No data

        BCD_1 = (DataType.B_1, DataType.C_1, DataType.D_1)

        BCDG_2 = (DataType.B_2, DataType.C_2, DataType.D_2, DataType.G_2)

        BCDJ_3 = (DataType.B_3, DataType.C_3, DataType.D_3, DataType.J_3)

        BCDF_4 = (DataType.B_4, DataType.C_4, DataType.D_4, DataType.F_4)

        H_4 = (DataType.H_4,)

        BCDI_6 = (DataType.B_6, DataType.C_6, DataType.D_6, DataType.I_6)

        BCD_8 = (DataType.B_8, DataType.C_8, DataType.D_8)

        A_1 = (DataType.A_1,)

        A_2 = (DataType.A_2,)

        A_3 = (DataType.A_3,)

        A_4 = (DataType.A_4,)

        LVAR = (DataType.LVAR,)

        A_6 = (DataType.A_6,)

    class Requires(Enum):
        """VIF-side allowed type families.

        Reference: EN 13757-3:2018, Table 4 and VIF tables
        """

        DEFAULT_ABHLVAR = frozenset({"A", "B", "H", "LVAR"})  # Numeric values

        BOOLEAN_D = frozenset({"D"})  # Bit fields

        TEMPORAL_G = frozenset({"G"})  # Date

        TEMPORAL_FIJ = frozenset({"F", "I", "J"})  # Date and time


# =============================================================================
# Data
# =============================================================================


class Data:
    """Decoded M-Bus data with type information.

    Handles both fixed-length types (A-J) and variable-length LVAR types with
    length calculation, validation, and decoding.

    Attributes:
        data_type: The resolved M-Bus data type
        data_bytes: Raw data bytes (without the LVAR byte)
        decoded_value: The decoded value, or None for invalid markers

    Reference: EN 13757-3:2018, Annex A
    """

    data_type: DataType

    data_bytes: bytes

    decoded_value: Any

    def __init__(self, data_bytes: bytes, data_type: DataType, lvar_type: LVARType | None = None) -> None:
        """Initialize Data with raw bytes and type information.

        Args:
            data_bytes: Raw bytes to decode. For LVAR types, this includes the LVAR byte + actual data.
            data_type: M-Bus data type (from DataType enum)
            lvar_type: LVAR type (required if data_type is DataType.LVAR)

        Raises:
            ValueError: If data length doesn't match the expected length
            ValueError: If lvar_type is missing for DataType.LVAR
        """
        if data_type is DataType.NONE:
            raise ValueError("Data with DataType.NONE is not valid")

        decoder = data_type.decoder

        data_length = data_type.length

        if data_length is None:
            if lvar_type is None:
                raise ValueError(f"lvar_type must be provided for {data_type.name}")

            if not data_bytes:
                raise ValueError("LVAR data must start with the LVAR byte")

            lvar_code = data_bytes[0]

            if lvar_code not in lvar_type.value.code_range:
                raise ValueError(f"LVAR code 0x{lvar_code:02X} is not valid for {lvar_type.name}")

            data_bytes = data_bytes[1:]

            data_length = lvar_type.value.length_calculator(lvar_code)

            decoder = lvar_type.value.decoder

        if len(data_bytes) != data_length:
            raise ValueError(f"Expected {data_length} bytes for {data_type.name}, got {len(data_bytes)} bytes")

        # Fixed-length types carry a decoder, LVAR takes it from lvar_type
        assert decoder is not None

        self.data_type = data_type

        self.data_bytes = data_bytes

        self.decoded_value = decoder(data_bytes)

    @staticmethod
    def from_bytes(data_type: DataType, get_next_bytes: Callable[[int], bytes]) -> Data:
        """Read and decode the data field of a record.

        Args:
            data_type: Resolved data type of the record
            get_next_bytes: Function returning the next n bytes of the payload

        Returns:
            Decoded Data

        Raises:
            ValueError: If the LVAR code is unsupported or the payload ends early
        """
        if data_type is DataType.NONE:
            raise ValueError("Data with DataType.NONE is not valid")

        data_length = data_type.length

        data_bytes = bytearray()

        lvar_type: LVARType | None = None

        if data_length is None:
            lvar_bytes = get_next_bytes(1)

            data_bytes.extend(lvar_bytes)

            lvar_code = lvar_bytes[0]

            for lvar_member in LVARType:
                if lvar_code in lvar_member.value.code_range:
                    lvar_type = lvar_member
                    break
            else:
                raise ValueError(f"Unsupported LVAR code: 0x{lvar_code:02X}")

            data_length = lvar_type.value.length_calculator(lvar_code)

        if data_length > 0:
            data_bytes.extend(get_next_bytes(data_length))

        return Data(bytes(data_bytes), data_type, lvar_type)
