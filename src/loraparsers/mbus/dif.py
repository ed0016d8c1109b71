"""DIF (Data Information Field) type system and interpretation logic.

This module implements the M-Bus DIF/DIFE field interpretation for uplink
(meter to head-end) data records according to EN 13757-3:2018. It provides:

Classes:
    - DIF: Base class for Data Information Field (1 byte header)
    - DataDIF: DIF with data type and function information
    - SpecialDIF: DIF with special functions (manufacturer data, idle filler)
    - DIFE: Base class for Data Information Field Extension
    - DataDIFE: DIFE extending storage number, tariff, and subunit
    - FinalDIFE: Special DIFE (0x00) marking storage number as register number

The DIF/DIFE chain structure:
    DIF (1 byte) + optional DIFEs (0-10 bytes) + optional FinalDIFE (1 byte)

    The extension bit (bit 7) in each field indicates if more DIFE bytes follow.

Reference: EN 13757-3:2018
    - Table 4 (page 13): Data field encoding
    - Table 6 (page 14): Special function codes
    - Table 7 (page 14): Function field encoding
    - Table 8 (page 14): DIFE encoding
"""

from __future__ import annotations

from abc import ABC
from collections.abc import Callable
from dataclasses import dataclass
from enum import Flag, auto
from functools import lru_cache

from .data import DataRules
from .value import ValueFunction

# =============================================================================
# DIF Constants (EN 13757-3:2018)
# =============================================================================


DIF_EXTENSION_BIT_MASK = 0b10000000  # Bit 7: extension bit (more DIFE bytes follow)
DIF_FUNCTION_BIT_MASK = 0b00110000  # Bits 4-5: function

DIF_STORAGE_NUMBER_BIT_MASK = 0b01000000  # Bit 6: LSB of storage number
DIF_STORAGE_NUMBER_BIT_SHIFT = 6
DIF_STORAGE_NUMBER_BIT_LENGTH = 1

DIFE_EXTENSION_BIT_MASK = 0b10000000  # Bit 7: extension bit (more DIFE bytes follow)

DIFE_MAXIMUM_CHAIN_LENGTH = 10  # Maximum number of chained DIFE bytes

DIFE_STORAGE_NUMBER_BIT_MASK = 0b00001111  # Bits 0-3: additional storage number bits
DIFE_STORAGE_NUMBER_BIT_SHIFT = 0
DIFE_STORAGE_NUMBER_BIT_LENGTH = 4

DIFE_TARIFF_BIT_MASK = 0b00110000  # Bits 4-5: tariff
DIFE_TARIFF_BIT_SHIFT = 4
DIFE_TARIFF_BIT_LENGTH = 2

DIFE_SUBUNIT_BIT_MASK = 0b01000000  # Bit 6: subunit
DIFE_SUBUNIT_BIT_SHIFT = 6
DIFE_SUBUNIT_BIT_LENGTH = 1

DIFE_FINAL_CODE = 0b00000000  # Final DIFE: storage number is register number

# =============================================================================
# DIF Type Classification
# =============================================================================


class DIFSpecialFunction(Flag):
    MANUFACTURER_DATA_HEADER = auto()
    MORE_RECORDS_FOLLOW = auto()
    IDLE_FILLER = auto()


# =============================================================================
# DIF Descriptors
# =============================================================================


@dataclass(frozen=True, kw_only=True)
class _AbstractFieldDescriptor(ABC):
    code: int  # DIF byte value
    mask: int  # Bit mask for pattern matching


@dataclass(frozen=True, kw_only=True)
class _DataFieldDescriptor(_AbstractFieldDescriptor):
    mask: int = 0b00001111

    data_support: DataRules.Supports  # Candidate data types for this data field


@dataclass(frozen=True, kw_only=True)
class _SpecialFieldDescriptor(_AbstractFieldDescriptor):
    mask: int = 0b11111111

    function: DIFSpecialFunction


@dataclass(frozen=True, kw_only=True)
class _FunctionDescriptor:
    code: int
    type: ValueFunction


# =============================================================================
# DIF Lookup Tables (EN 13757-3:2018, Table 4 and 6)
# =============================================================================


_FieldTable: tuple[_AbstractFieldDescriptor, ...] = (
    # ==========================================================================
    # Data types (Data Field 0x00 - 0x0E): Table 4
    # Selection for readout (0x08) is a head-end request and not valid in uplinks
    # ==========================================================================
    # No data (0x00)
    _DataFieldDescriptor(
        code=0b00000000,
        data_support=DataRules.Supports.NONE,
    ),
    # 8 bit integer (0x01)
    _DataFieldDescriptor(
        code=0b00000001,
        data_support=DataRules.Supports.BCD_1,
    ),
    # 16 bit integer (0x02)
    _DataFieldDescriptor(
        code=0b00000010,
        data_support=DataRules.Supports.BCDG_2,
    ),
    # 24 bit integer (0x03)
    _DataFieldDescriptor(
        code=0b00000011,
        data_support=DataRules.Supports.BCDJ_3,
    ),
    # 32 bit integer (0x04)
    _DataFieldDescriptor(
        code=0b00000100,
        data_support=DataRules.Supports.BCDF_4,
    ),
    # 32 bit real (0x05)
    _DataFieldDescriptor(
        code=0b00000101,
        data_support=DataRules.Supports.H_4,
    ),
    # 48 bit integer (0x06)
    _DataFieldDescriptor(
        code=0b00000110,
        data_support=DataRules.Supports.BCDI_6,
    ),
    # 64 bit integer (0x07)
    _DataFieldDescriptor(
        code=0b00000111,
        data_support=DataRules.Supports.BCD_8,
    ),
    # 2 digit BCD (0x09)
    _DataFieldDescriptor(
        code=0b00001001,
        data_support=DataRules.Supports.A_1,
    ),
    # 4 digit BCD (0x0A)
    _DataFieldDescriptor(
        code=0b00001010,
        data_support=DataRules.Supports.A_2,
    ),
    # 6 digit BCD (0x0B)
    _DataFieldDescriptor(
        code=0b00001011,
        data_support=DataRules.Supports.A_3,
    ),
    # 8 digit BCD (0x0C)
    _DataFieldDescriptor(
        code=0b00001100,
        data_support=DataRules.Supports.A_4,
    ),
    # Variable length (0x0D)
    _DataFieldDescriptor(
        code=0b00001101,
        data_support=DataRules.Supports.LVAR,
    ),
    # 12 digit BCD (0x0E)
    _DataFieldDescriptor(
        code=0b00001110,
        data_support=DataRules.Supports.A_6,
    ),
    # ==========================================================================
    # Data Field 0x0F: Special functions (Table 6)
    # ==========================================================================
    # 0x0F: Manufacturer specific data follows
    _SpecialFieldDescriptor(
        code=0b00001111,
        function=DIFSpecialFunction.MANUFACTURER_DATA_HEADER,
    ),
    # 0x1F: More records follow in next datagram + manufacturer data
    _SpecialFieldDescriptor(
        code=0b00011111,
        function=DIFSpecialFunction.MANUFACTURER_DATA_HEADER | DIFSpecialFunction.MORE_RECORDS_FOLLOW,
    ),
    # 0x2F: Idle filler (skip this byte)
    _SpecialFieldDescriptor(
        code=0b00101111,
        function=DIFSpecialFunction.IDLE_FILLER,
    ),
)


_FunctionTable: tuple[_FunctionDescriptor, ...] = (
    # ==========================================================================
    # Function codes (DIF bits 4-5): Table 7
    # ==========================================================================
    # Instantaneous value (0b00)
    _FunctionDescriptor(
        code=0b00000000,
        type=ValueFunction.CURRENT_VALUE,
    ),
    # Maximum value (0b01)
    _FunctionDescriptor(
        code=0b00010000,
        type=ValueFunction.MAXIMUM_VALUE,
    ),
    # Minimum value (0b10)
    _FunctionDescriptor(
        code=0b00100000,
        type=ValueFunction.MINIMUM_VALUE,
    ),
    # Value during error state (0b11)
    _FunctionDescriptor(
        code=0b00110000,
        type=ValueFunction.VALUE_DURING_ERROR_STATE,
    ),
)

# =============================================================================
# DIF/DIFE Helper functions
# =============================================================================


@lru_cache(maxsize=32)
def _find_field_descriptor(field_code: int) -> _AbstractFieldDescriptor:
    """Find the matching field descriptor for a DIF field code.

    Looks up the field code in the _FieldTable using bit masking to match
    patterns. Special descriptors match the full byte, data descriptors only
    the data field bits.

    Args:
        field_code: The DIF byte value to look up

    Returns:
        The matching field descriptor (_DataFieldDescriptor or _SpecialFieldDescriptor)

    Raises:
        ValueError: If no matching descriptor is found
    """
    for field_descriptor in _FieldTable:
        if (field_code & field_descriptor.mask) == field_descriptor.code:
            return field_descriptor

    raise ValueError(f"Field descriptor for DIF code 0x{field_code:02X} not found in DIF table")


# =============================================================================
# DIF/DIFE Classes - DIF/DIFE field interpretation
# =============================================================================


class DIF:
    """Base class for Data Information Field (DIF).

    The DIF is the first byte in a DIF/DIFE chain and specifies the data type,
    function, and optionally the first bit of the storage number.

    This class uses a factory pattern (__new__) to automatically instantiate
    the correct subclass (DataDIF or SpecialDIF) based on the field_code.

    Attributes:
        field_code: The DIF byte value (0x00-0xFF)
        chain_position: Position in DIF/DIFE chain (0 for DIF)
        prev_field: Previous field in chain (None for DIF)
        next_field: Next DIFE in chain (None if last_field is True)
        last_field: True if extension bit is 0 (no more DIFE bytes follow)

    Reference: EN 13757-3:2018, section 6.3, Table 4
    """

    field_code: int

    chain_position: int = 0
    prev_field: DIF | DIFE | None = None
    next_field: DIFE | None = None

    last_field: bool = True

    def __new__(cls, field_code: int) -> DIF:
        field_descriptor = _find_field_descriptor(field_code)

        if isinstance(field_descriptor, _DataFieldDescriptor):
            return object.__new__(DataDIF)

        if isinstance(field_descriptor, _SpecialFieldDescriptor):
            return object.__new__(SpecialDIF)

        raise AssertionError(f"Field descriptor type {type(field_descriptor).__name__} not recognized")

    def __init__(self, field_code: int) -> None:
        self.field_code = field_code

    def create_next_dife(self, field_code: int) -> DIFE:
        """Create the next DIFE in the chain.

        Args:
            field_code: The DIFE byte value (0x00-0xFF)

        Returns:
            DIFE instance (DataDIFE or FinalDIFE based on field_code)

        Raises:
            ValueError: If this field is already marked as last_field
        """
        return DIFE(field_code, self)

    @staticmethod
    def from_bytes(get_next_bytes: Callable[[int], bytes]) -> tuple[DIF, *tuple[DIFE, ...]]:
        """Parse a complete DIF/DIFE chain from bytes.

        Reads one DIF byte, then continues reading DIFE bytes as long as the
        extension bit (bit 7) is set in the current field.

        Args:
            get_next_bytes: Function returning the next n bytes of the payload

        Returns:
            Tuple of (DIF, *DIFEs) representing the complete chain

        Raises:
            ValueError: If byte reading fails or field descriptor not found
        """
        dif_bytes = get_next_bytes(1)

        if len(dif_bytes) != 1:
            raise ValueError("Expected exactly one byte for DIF")

        dif: DIF = DIF(dif_bytes[0])

        dife_list: list[DIFE] = []

        current_field: DIF = dif
        while not current_field.last_field:
            dife_bytes = get_next_bytes(1)

            if len(dife_bytes) != 1:
                raise ValueError("Expected exactly one byte for DIFE")

            current_field = current_field.create_next_dife(dife_bytes[0])
            dife_list.append(current_field)

        return (dif, *dife_list)


class DataDIF(DIF):
    """Data Information Field for data records.

    DataDIF encodes:
    - Data type and length (bits 0-3)
    - Function (current, maximum, minimum, error state) (bits 4-5)
    - Storage number LSB (bit 6)
    - Extension bit (bit 7)

    Attributes:
        data_support: Candidate data types for the data field
        value_function: Function field of the record
        storage_number: LSB of storage number (0 or 1 from DIF bit 6)

    Reference: EN 13757-3:2018, Table 4 (page 13)
    """

    data_support: DataRules.Supports

    value_function: ValueFunction

    storage_number: int

    def __init__(self, field_code: int) -> None:
        super().__init__(field_code)

        field_descriptor = _find_field_descriptor(self.field_code)

        # DIF.__new__ guarantees descriptor is _DataFieldDescriptor
        assert isinstance(field_descriptor, _DataFieldDescriptor)

        self.data_support = field_descriptor.data_support

        self.storage_number = (self.field_code & DIF_STORAGE_NUMBER_BIT_MASK) >> DIF_STORAGE_NUMBER_BIT_SHIFT

        self.value_function = self._extract_function()

        self.last_field = self.field_code & DIF_EXTENSION_BIT_MASK == 0

    def _extract_function(self) -> ValueFunction:
        function_code = self.field_code & DIF_FUNCTION_BIT_MASK
        for function_descriptor in _FunctionTable:
            if function_code == function_descriptor.code:
                return function_descriptor.type

        raise AssertionError(f"Function code for DataDIF 0x{self.field_code:02X} not found in function table")


class SpecialDIF(DIF):
    """Data Information Field for special functions.

    - MANUFACTURER_DATA_HEADER (0x0F): Start of manufacturer-specific data
    - MORE_RECORDS_FOLLOW (0x1F): Manufacturer data, continuation in next telegram
    - IDLE_FILLER (0x2F): Padding byte (skip)

    Attributes:
        special_function: The special function type

    Reference: EN 13757-3:2018, Table 6 (page 14)
    """

    special_function: DIFSpecialFunction

    def __init__(self, field_code: int) -> None:
        super().__init__(field_code)

        field_descriptor = _find_field_descriptor(self.field_code)

        # DIF.__new__ guarantees descriptor is _SpecialFieldDescriptor
        assert isinstance(field_descriptor, _SpecialFieldDescriptor)

        self.special_function = field_descriptor.function


class DIFE(DIF):
    """Base class for Data Information Field Extension (DIFE).

    DIFE bytes extend the DIF with additional bits for storage number, tariff,
    and subunit. Up to 10 DIFE bytes can follow a DIF (or 11 with FinalDIFE).

    Reference: EN 13757-3:2018, section 6.3.7, Table 8 (page 14)
    """

    def __new__(cls, field_code: int, prev_field: DIF | DIFE) -> DIFE:  # type: ignore[misc]
        if field_code == DIFE_FINAL_CODE:
            return object.__new__(FinalDIFE)
        return object.__new__(DataDIFE)

    def __init__(self, field_code: int, prev_field: DIF | DIFE) -> None:
        super().__init__(field_code)

        if prev_field.last_field:
            raise ValueError("Cannot extend DIF/DIFE chain past last field")

        if prev_field.next_field is not None:
            raise ValueError("Previous field already has a next field assigned")

        self.prev_field = prev_field
        self.prev_field.next_field = self

        self.chain_position = self.prev_field.chain_position + 1

        self.last_field = self.field_code & DIFE_EXTENSION_BIT_MASK == 0


class DataDIFE(DIFE):
    """DIFE extending storage number, tariff, and subunit.

    - Storage number: 4 bits per DIFE (bits 0-3)
    - Tariff: 2 bits per DIFE (bits 4-5)
    - Subunit: 1 bit per DIFE (bit 6)

    The bits are concatenated based on chain_position to build the full value.

    Reference: EN 13757-3:2018, section 6.3.7, Table 8 (page 14)
    """

    storage_number: int

    subunit: int

    tariff: int

    def __init__(self, field_code: int, prev_field: DIF | DIFE) -> None:
        if prev_field.chain_position >= DIFE_MAXIMUM_CHAIN_LENGTH:
            raise ValueError("Exceeded maximum DIFE chain length")

        super().__init__(field_code, prev_field)

        shift = self.chain_position - 1

        raw_storage = (self.field_code & DIFE_STORAGE_NUMBER_BIT_MASK) >> DIFE_STORAGE_NUMBER_BIT_SHIFT
        self.storage_number = raw_storage << (DIFE_STORAGE_NUMBER_BIT_LENGTH * shift + DIF_STORAGE_NUMBER_BIT_LENGTH)

        raw_subunit = (self.field_code & DIFE_SUBUNIT_BIT_MASK) >> DIFE_SUBUNIT_BIT_SHIFT
        self.subunit = raw_subunit << (DIFE_SUBUNIT_BIT_LENGTH * shift)

        raw_tariff = (self.field_code & DIFE_TARIFF_BIT_MASK) >> DIFE_TARIFF_BIT_SHIFT
        self.tariff = raw_tariff << (DIFE_TARIFF_BIT_LENGTH * shift)


class FinalDIFE(DIFE):
    """Final DIFE (0x00) marking the storage number as OBIS register number.

    FinalDIFE must be the last field in the chain and does not contribute
    bits to storage/tariff/subunit.

    Reference: EN 13757-3:2018, section 6.3.5 (page 14)
    """

    def __init__(self, field_code: int, prev_field: DIF | DIFE) -> None:
        if prev_field.chain_position > DIFE_MAXIMUM_CHAIN_LENGTH:
            raise ValueError("Exceeded maximum DIFE + final DIFE chain length")

        super().__init__(field_code, prev_field)
