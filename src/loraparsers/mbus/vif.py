"""VIF (Value Information Field) type system and interpretation logic.

This module contains the semantic type system for VIF/VIFE codes, including:
- VIF class that represents a single VIF/VIFE byte with chaining support
- Field descriptor metadata structures
- VIF/VIFE tables with mask-based lookup
- VIB (Value Information Block) resolving a complete VIF/VIFE chain into
  descriptor, unit, data rules and value scaling

Every table ends with a catch-all descriptor, so codes the tables do not
interpret still decode into an ``unknown_*`` record and the byte stream stays
in sync.

Reference: EN 13757-3:2018, Tables 10-16
"""

from __future__ import annotations

from abc import ABC
from collections.abc import Callable
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from .data import DataRules
from .value import Descriptor, ValueTransformer, ValueUnit, ValueUnitTransformer

# ============================================================================
# VIF Constants
# ============================================================================


VIFE_MAXIMUM_CHAIN_LENGTH = 10  # Maximum number of chained VIFE bytes

VIF_EXTENSION_BIT_MASK = 0b10000000  # Bit 7: extension bit (more VIFE bytes follow)


# =============================================================================
# VIF Descriptors
# =============================================================================


@dataclass(frozen=True, kw_only=True)
class _AbstractFieldDescriptor(ABC):
    """Base class for VIF/VIFE field descriptors."""

    code: int  # Actual VIF/VIFE code value
    mask: int = 0b01111111  # Bit mask for pattern matching (default: strip extension bit)


@dataclass(frozen=True, kw_only=True)
class _TrueFieldDescriptor(_AbstractFieldDescriptor):
    """Descriptor for VIF/VIFE codes that define the meaning and unit of a value."""

    data_rules: DataRules.Requires = DataRules.Requires.DEFAULT_ABHLVAR

    descriptor: Descriptor

    value_unit: ValueUnit = ValueUnit.NONE

    value_unit_transformer: ValueUnitTransformer | None = None  # Unit encoded in the code bits

    value_transformer: ValueTransformer | None = None


@dataclass(frozen=True, kw_only=True)
class _PlainTextFieldDescriptor(_TrueFieldDescriptor):
    """Descriptor for plain text VIF (code 0x7C).

    The unit is transmitted as ASCII string after the VIF/VIFE chain.
    """


@dataclass(frozen=True, kw_only=True)
class _ManufacturerFieldDescriptor(_AbstractFieldDescriptor):
    """Descriptor for manufacturer-specific VIF/VIFE (code 0x7F/0xFF)."""


@dataclass(frozen=True, kw_only=True)
class _CombinableFieldDescriptor(_AbstractFieldDescriptor):
    """Descriptor for combinable (orthogonal) VIFE codes."""

    value_transformer: ValueTransformer | None = None


@dataclass(frozen=True, kw_only=True)
class _ExtensionFieldDescriptor(_AbstractFieldDescriptor):
    """Descriptor for VIF codes that point to extension tables (0xFB, 0xFD)."""

    mask: int = 0b11111111  # Extension pointers always carry the extension bit

    extension_table: tuple[_AbstractFieldDescriptor, ...]


# =============================================================================
# VIF/VIFE Lookup Tables
# =============================================================================


_CombinableOrthogonalFieldTable: tuple[_AbstractFieldDescriptor, ...] = (
    # E111 0nnn: Multiplicative correction factor 10^(nnn-6)
    _CombinableFieldDescriptor(
        code=0b01110000,
        mask=0b01111000,
        value_transformer=ValueTransformer.MULT_10_POW_NNN_MINUS_6,
    ),
    # E111 1101: Multiplicative correction factor 10^3
    _CombinableFieldDescriptor(
        code=0b01111101,
        value_transformer=ValueTransformer.MULT_10_POW_3,
    ),
    # E111 1111: Manufacturer specific, following VIFEs are opaque
    _ManufacturerFieldDescriptor(
        code=0b01111111,
    ),
    # Any other orthogonal VIFE (time/phase qualifiers, limit values, record errors)
    # leaves value and unit untouched
    _CombinableFieldDescriptor(
        code=0b00000000,
        mask=0b00000000,
    ),
)


_FirstExtensionFieldTable: tuple[_AbstractFieldDescriptor, ...] = (
    # E000 000n: Energy 10^(n-1) MWh
    _TrueFieldDescriptor(
        code=0b00000000,
        mask=0b01111110,
        descriptor=Descriptor.ENERGY,
        value_unit=ValueUnit.WH,
        value_transformer=ValueTransformer.MULT_10_POW_N_PLUS_5,
    ),
    # E000 100n: Energy 10^(n-1) GJ
    _TrueFieldDescriptor(
        code=0b00001000,
        mask=0b01111110,
        descriptor=Descriptor.ENERGY,
        value_unit=ValueUnit.J,
        value_transformer=ValueTransformer.MULT_10_POW_N_PLUS_8,
    ),
    # E001 000n: Volume 10^(n+2) m³
    _TrueFieldDescriptor(
        code=0b00010000,
        mask=0b01111110,
        descriptor=Descriptor.VOLUME,
        value_unit=ValueUnit.M3,
        value_transformer=ValueTransformer.MULT_10_POW_N_PLUS_2,
    ),
    # E001 100n: Mass 10^(n+2) t
    _TrueFieldDescriptor(
        code=0b00011000,
        mask=0b01111110,
        descriptor=Descriptor.MASS,
        value_unit=ValueUnit.KG,
        value_transformer=ValueTransformer.MULT_10_POW_N_PLUS_5,
    ),
    # E010 100n: Power 10^(n-1) MW
    _TrueFieldDescriptor(
        code=0b00101000,
        mask=0b01111110,
        descriptor=Descriptor.POWER,
        value_unit=ValueUnit.W,
        value_transformer=ValueTransformer.MULT_10_POW_N_PLUS_5,
    ),
    # E011 000n: Power 10^(n-1) GJ/h
    _TrueFieldDescriptor(
        code=0b00110000,
        mask=0b01111110,
        descriptor=Descriptor.POWER,
        value_unit=ValueUnit.J_H,
        value_transformer=ValueTransformer.MULT_10_POW_N_PLUS_8,
    ),
    _TrueFieldDescriptor(
        code=0b00000000,
        mask=0b00000000,
        descriptor=Descriptor.UNKNOWN_VIFE,
    ),
)


_SecondExtensionFieldTable: tuple[_AbstractFieldDescriptor, ...] = (
    # ==========================================================================
    # Enhanced Identification (E000 1xxx)
    # ==========================================================================
    _TrueFieldDescriptor(
        code=0b00001001,
        descriptor=Descriptor.DEVICE_TYPE,
    ),
    _TrueFieldDescriptor(
        code=0b00001100,
        descriptor=Descriptor.MODEL_VERSION,
    ),
    _TrueFieldDescriptor(
        code=0b00001101,
        descriptor=Descriptor.HARDWARE_VERSION,
    ),
    _TrueFieldDescriptor(
        code=0b00001110,
        descriptor=Descriptor.FIRMWARE_VERSION,
    ),
    _TrueFieldDescriptor(
        code=0b00001111,
        descriptor=Descriptor.SOFTWARE_VERSION,
    ),
    # ==========================================================================
    # E001 0111: Error flags (binary)
    # ==========================================================================
    _TrueFieldDescriptor(
        code=0b00010111,
        descriptor=Descriptor.ERROR_CODES,
        data_rules=DataRules.Requires.BOOLEAN_D,
    ),
    # ==========================================================================
    # Electrical values
    # ==========================================================================
    # E100 nnnn: 10^(nnnn-9) V
    _TrueFieldDescriptor(
        code=0b01000000,
        mask=0b01110000,
        descriptor=Descriptor.VOLTAGE,
        value_unit=ValueUnit.V,
        value_transformer=ValueTransformer.MULT_10_POW_NNNN_MINUS_9,
    ),
    # E101 nnnn: 10^(nnnn-12) A
    _TrueFieldDescriptor(
        code=0b01010000,
        mask=0b01110000,
        descriptor=Descriptor.CURRENT,
        value_unit=ValueUnit.A,
        value_transformer=ValueTransformer.MULT_10_POW_NNNN_MINUS_12,
    ),
    # E111 0100: Remaining battery lifetime (days)
    _TrueFieldDescriptor(
        code=0b01110100,
        descriptor=Descriptor.REMAINING_BATTERY_LIFETIME,
        value_unit=ValueUnit.DAY,
    ),
    _TrueFieldDescriptor(
        code=0b00000000,
        mask=0b00000000,
        descriptor=Descriptor.UNKNOWN_VIFE,
    ),
)


_PrimaryFieldTable: tuple[_AbstractFieldDescriptor, ...] = (
    # ==========================================================================
    # Cumulative Quantities
    # ==========================================================================
    # E000 0nnn: Energy 10^(nnn-3) Wh (covers 0x00-0x07)
    _TrueFieldDescriptor(
        code=0b00000000,
        mask=0b01111000,
        descriptor=Descriptor.ENERGY,
        value_unit=ValueUnit.WH,
        value_transformer=ValueTransformer.MULT_10_POW_NNN_MINUS_3,
    ),
    # E000 1nnn: Energy 10^(nnn) J (covers 0x08-0x0F)
    _TrueFieldDescriptor(
        code=0b00001000,
        mask=0b01111000,
        descriptor=Descriptor.ENERGY,
        value_unit=ValueUnit.J,
        value_transformer=ValueTransformer.MULT_10_POW_NNN,
    ),
    # E001 0nnn: Volume 10^(nnn-6) m³ (covers 0x10-0x17)
    _TrueFieldDescriptor(
        code=0b00010000,
        mask=0b01111000,
        descriptor=Descriptor.VOLUME,
        value_unit=ValueUnit.M3,
        value_transformer=ValueTransformer.MULT_10_POW_NNN_MINUS_6,
    ),
    # E001 1nnn: Mass 10^(nnn-3) kg (covers 0x18-0x1F)
    _TrueFieldDescriptor(
        code=0b00011000,
        mask=0b01111000,
        descriptor=Descriptor.MASS,
        value_unit=ValueUnit.KG,
        value_transformer=ValueTransformer.MULT_10_POW_NNN_MINUS_3,
    ),
    # ==========================================================================
    # Durations (nn encodes unit: 00=s, 01=min, 10=h, 11=d)
    # ==========================================================================
    # E010 00nn: On time (covers 0x20-0x23)
    _TrueFieldDescriptor(
        code=0b00100000,
        mask=0b01111100,
        descriptor=Descriptor.ON_TIME,
        value_unit_transformer=ValueUnitTransformer.DURATION_NN,
    ),
    # E010 01nn: Operating time (covers 0x24-0x27)
    _TrueFieldDescriptor(
        code=0b00100100,
        mask=0b01111100,
        descriptor=Descriptor.OPERATING_TIME,
        value_unit_transformer=ValueUnitTransformer.DURATION_NN,
    ),
    # ==========================================================================
    # Instantaneous - Power
    # ==========================================================================
    # E010 1nnn: Power 10^(nnn-3) W (covers 0x28-0x2F)
    _TrueFieldDescriptor(
        code=0b00101000,
        mask=0b01111000,
        descriptor=Descriptor.POWER,
        value_unit=ValueUnit.W,
        value_transformer=ValueTransformer.MULT_10_POW_NNN_MINUS_3,
    ),
    # E011 0nnn: Power 10^(nnn) J/h (covers 0x30-0x37)
    _TrueFieldDescriptor(
        code=0b00110000,
        mask=0b01111000,
        descriptor=Descriptor.POWER,
        value_unit=ValueUnit.J_H,
        value_transformer=ValueTransformer.MULT_10_POW_NNN,
    ),
    # ==========================================================================
    # Instantaneous - Flow
    # ==========================================================================
    # E011 1nnn: Volume flow 10^(nnn-6) m³/h (covers 0x38-0x3F)
    _TrueFieldDescriptor(
        code=0b00111000,
        mask=0b01111000,
        descriptor=Descriptor.FLOW,
        value_unit=ValueUnit.M3_H,
        value_transformer=ValueTransformer.MULT_10_POW_NNN_MINUS_6,
    ),
    # E100 0nnn: Volume flow 10^(nnn-7) m³/min (covers 0x40-0x47)
    _TrueFieldDescriptor(
        code=0b01000000,
        mask=0b01111000,
        descriptor=Descriptor.FLOW,
        value_unit=ValueUnit.M3_MIN,
        value_transformer=ValueTransformer.MULT_10_POW_NNN_MINUS_7,
    ),
    # E100 1nnn: Volume flow 10^(nnn-9) m³/s (covers 0x48-0x4F)
    _TrueFieldDescriptor(
        code=0b01001000,
        mask=0b01111000,
        descriptor=Descriptor.FLOW,
        value_unit=ValueUnit.M3_S,
        value_transformer=ValueTransformer.MULT_10_POW_NNN_MINUS_9,
    ),
    # E101 0nnn: Mass flow 10^(nnn-3) kg/h (covers 0x50-0x57)
    _TrueFieldDescriptor(
        code=0b01010000,
        mask=0b01111000,
        descriptor=Descriptor.MASS_FLOW,
        value_unit=ValueUnit.KG_H,
        value_transformer=ValueTransformer.MULT_10_POW_NNN_MINUS_3,
    ),
    # ==========================================================================
    # Instantaneous - Temperature and Pressure
    # ==========================================================================
    # E101 10nn: Flow temperature 10^(nn-3) °C (covers 0x58-0x5B)
    _TrueFieldDescriptor(
        code=0b01011000,
        mask=0b01111100,
        descriptor=Descriptor.SUPPLY_TEMPERATURE,
        value_unit=ValueUnit.CELSIUS,
        value_transformer=ValueTransformer.MULT_10_POW_NN_MINUS_3,
    ),
    # E101 11nn: Return temperature 10^(nn-3) °C (covers 0x5C-0x5F)
    _TrueFieldDescriptor(
        code=0b01011100,
        mask=0b01111100,
        descriptor=Descriptor.RETURN_TEMPERATURE,
        value_unit=ValueUnit.CELSIUS,
        value_transformer=ValueTransformer.MULT_10_POW_NN_MINUS_3,
    ),
    # E110 00nn: Temperature difference 10^(nn-3) K (covers 0x60-0x63)
    _TrueFieldDescriptor(
        code=0b01100000,
        mask=0b01111100,
        descriptor=Descriptor.TEMPERATURE_DIFFERENCE,
        value_unit=ValueUnit.KELVIN,
        value_transformer=ValueTransformer.MULT_10_POW_NN_MINUS_3,
    ),
    # E110 01nn: External temperature 10^(nn-3) °C (covers 0x64-0x67)
    _TrueFieldDescriptor(
        code=0b01100100,
        mask=0b01111100,
        descriptor=Descriptor.EXTERNAL_TEMPERATURE,
        value_unit=ValueUnit.CELSIUS,
        value_transformer=ValueTransformer.MULT_10_POW_NN_MINUS_3,
    ),
    # E110 10nn: Pressure 10^(nn-3) bar (covers 0x68-0x6B)
    _TrueFieldDescriptor(
        code=0b01101000,
        mask=0b01111100,
        descriptor=Descriptor.PRESSURE,
        value_unit=ValueUnit.BAR,
        value_transformer=ValueTransformer.MULT_10_POW_NN_MINUS_3,
    ),
    # ==========================================================================
    # Time points
    # ==========================================================================
    # E110 1100: Date (type G)
    _TrueFieldDescriptor(
        code=0b01101100,
        descriptor=Descriptor.DATE,
        data_rules=DataRules.Requires.TEMPORAL_G,
    ),
    # E110 1101: Date and time (type F, I or J)
    _TrueFieldDescriptor(
        code=0b01101101,
        descriptor=Descriptor.DATETIME,
        data_rules=DataRules.Requires.TEMPORAL_FIJ,
    ),
    # E110 1110: Units for heat cost allocator (dimensionless)
    _TrueFieldDescriptor(
        code=0b01101110,
        descriptor=Descriptor.HCA_UNITS,
    ),
    # E111 00nn: Averaging duration (covers 0x70-0x73)
    _TrueFieldDescriptor(
        code=0b01110000,
        mask=0b01111100,
        descriptor=Descriptor.AVERAGING_DURATION,
        value_unit_transformer=ValueUnitTransformer.DURATION_NN,
    ),
    # E111 01nn: Actuality duration (covers 0x74-0x77)
    _TrueFieldDescriptor(
        code=0b01110100,
        mask=0b01111100,
        descriptor=Descriptor.ACTUALITY_DURATION,
        value_unit_transformer=ValueUnitTransformer.DURATION_NN,
    ),
    # ==========================================================================
    # Identification
    # ==========================================================================
    # E111 1000: Fabrication number
    _TrueFieldDescriptor(
        code=0b01111000,
        descriptor=Descriptor.FABRICATION_BLOCK,
    ),
    # ==========================================================================
    # Special VIFs
    # ==========================================================================
    # E111 1100: Unit in following ASCII string
    _PlainTextFieldDescriptor(
        code=0b01111100,
        descriptor=Descriptor.UNKNOWN_PLAIN_TEXT_VIF,
    ),
    # 1111 1011: First extension table
    _ExtensionFieldDescriptor(
        code=0b11111011,
        extension_table=_FirstExtensionFieldTable,
    ),
    # 1111 1101: Second extension table
    _ExtensionFieldDescriptor(
        code=0b11111101,
        extension_table=_SecondExtensionFieldTable,
    ),
    # E111 1111: Manufacturer specific
    _ManufacturerFieldDescriptor(
        code=0b01111111,
    ),
    # Enhanced identification, bus address and reserved codes are not interpreted
    _TrueFieldDescriptor(
        code=0b00000000,
        mask=0b00000000,
        descriptor=Descriptor.UNKNOWN_VIF,
    ),
)


# =============================================================================
# VIF/VIFE Helper Functions
# =============================================================================


@lru_cache(maxsize=128)
def _find_field_descriptor(
    field_code: int,
    field_table: tuple[_AbstractFieldDescriptor, ...],
) -> _AbstractFieldDescriptor:
    """Find the matching field descriptor for a VIF/VIFE field code.

    Args:
        field_code: The VIF/VIFE byte value (0x00-0xFF)
        field_table: The table to search in

    Returns:
        The first matching field descriptor

    Raises:
        ValueError: If no matching descriptor is found in the table
    """
    for field_descriptor in field_table:
        if (field_code & field_descriptor.mask) == field_descriptor.code:
            return field_descriptor

    raise ValueError(f"VIF/VIFE code 0x{field_code:02X} not found in VIF/VIFE tables")


def _decode_ascii_unit(data: bytes) -> str:
    """Decode reversed ASCII text string (Plain Text VIF format).

    The text is transmitted with the rightmost character first.

    Reference: EN 13757-3:2018, Annex C.2 (Plain text units)

    Raises:
        UnicodeDecodeError: If data contains non-ASCII bytes
    """
    return bytes(reversed(data)).decode("ascii")


# =============================================================================
# VIF/VIFE Classes
# =============================================================================


class VIF:
    """Base class for Value Information Field (VIF).

    The VIF is the first byte in a VIF/VIFE chain and specifies the unit,
    descriptor, and data rules for the associated data value.

    This class uses a factory pattern (__new__) to instantiate the correct
    subclass (TrueVIF, PlainTextVIF, ExtensionVIF or ManufacturerVIF) based on
    the field_code and its descriptor type.

    Attributes:
        field_code: The VIF byte value (0x00-0xFF)
        chain_position: Position in chain (0 for VIF)
        prev_field: Previous field in chain (None for VIF)
        next_field: Next VIFE in chain (None if last_field is True)
        last_field: True if extension bit is 0 (no more VIFE bytes follow)

    Reference: EN 13757-3:2018, section 6.4, Tables 10-16
    """

    field_code: int

    chain_position: int = 0
    prev_field: VIF | VIFE | None = None
    next_field: VIFE | None = None

    last_field: bool

    _next_table: tuple[_AbstractFieldDescriptor, ...] | None = None

    def __new__(cls, field_code: int) -> VIF:
        field_descriptor = _find_field_descriptor(field_code, _PrimaryFieldTable)

        if isinstance(field_descriptor, _PlainTextFieldDescriptor):
            return object.__new__(PlainTextVIF)

        if isinstance(field_descriptor, _TrueFieldDescriptor):
            return object.__new__(TrueVIF)

        if isinstance(field_descriptor, _ExtensionFieldDescriptor):
            return object.__new__(ExtensionVIF)

        if isinstance(field_descriptor, _ManufacturerFieldDescriptor):
            return object.__new__(ManufacturerVIF)

        raise AssertionError(f"Field descriptor type {type(field_descriptor).__name__} not recognized")

    def __init__(self, field_code: int) -> None:
        self.field_code = field_code

        self.last_field = self.field_code & VIF_EXTENSION_BIT_MASK == 0

    def create_next_vife(self, field_code: int) -> VIFE:
        """Create the next VIFE in the chain.

        Args:
            field_code: The VIFE byte value (0x00-0xFF)

        Returns:
            VIFE instance (automatically typed to correct subclass)

        Raises:
            ValueError: If this field is already marked as last_field
        """
        return VIFE(field_code, self)

    @staticmethod
    def from_bytes(get_next_bytes: Callable[[int], bytes]) -> tuple[VIF, *tuple[VIFE, ...]]:
        """Parse a complete VIF/VIFE chain from bytes.

        Reads one VIF byte, then continues reading VIFE bytes as long as the
        extension bit (bit 7) is set in the current field.

        Args:
            get_next_bytes: Function returning the next n bytes of the payload

        Returns:
            Tuple of (VIF, *VIFEs) representing the complete chain

        Raises:
            ValueError: If byte reading fails or the chain is too long
        """
        vif_bytes = get_next_bytes(1)

        if len(vif_bytes) != 1:
            raise ValueError("Expected exactly one byte for VIF")

        vif: VIF = VIF(vif_bytes[0])

        vife: list[VIFE] = []

        current_field: VIF = vif
        while not current_field.last_field:
            vife_bytes = get_next_bytes(1)

            if len(vife_bytes) != 1:
                raise ValueError("Expected exactly one byte for VIFE")

            current_field = current_field.create_next_vife(vife_bytes[0])
            vife.append(current_field)

        return (vif, *vife)


class TrueVIF(VIF):
    """VIF that defines descriptor and unit of the value.

    Attributes:
        descriptor: Semantic tag of the value
        value_unit: Unit of the scaled value
        value_transformer: Optional scaling of the decoded value
        data_rules: Allowed data type families

    Reference: EN 13757-3:2018, Table 10 (Primary VIFs)
    """

    descriptor: Descriptor
    value_unit: str
    value_transformer: ValueTransformer | None
    data_rules: DataRules.Requires

    def __init__(self, field_code: int) -> None:
        super().__init__(field_code)

        field_descriptor = _find_field_descriptor(field_code, _PrimaryFieldTable)

        # VIF.__new__ guarantees descriptor is _TrueFieldDescriptor
        assert isinstance(field_descriptor, _TrueFieldDescriptor)

        _apply_true_field_descriptor(self, field_descriptor)

        self._next_table = _CombinableOrthogonalFieldTable


class PlainTextVIF(TrueVIF):
    """TrueVIF for plain text ASCII unit (code 0x7C).

    The ASCII unit (length byte + reversed text) follows after the complete
    VIF/VIFE chain in the data record.

    Reference: EN 13757-3:2018, Table 10 (code 0x7C)
    """

    def ascii_unit_from_bytes(self, get_next_bytes: Callable[[int], bytes]) -> None:
        """Parse the ASCII unit from the payload.

        Raises:
            ValueError: If the length byte is zero or the payload ends early
            UnicodeDecodeError: If data contains non-ASCII bytes
        """
        ascii_length = get_next_bytes(1)[0]

        if ascii_length == 0:
            raise ValueError("Invalid ASCII length 0, must be 1-255")

        self.value_unit = _decode_ascii_unit(get_next_bytes(ascii_length))


class ExtensionVIF(VIF):
    """VIF that points to an extension table (0xFB, 0xFD).

    Reference: EN 13757-3:2018, Table 10 (codes 0xFB, 0xFD)
    """

    def __init__(self, field_code: int) -> None:
        super().__init__(field_code)

        field_descriptor = _find_field_descriptor(field_code, _PrimaryFieldTable)

        # VIF.__new__ guarantees descriptor is _ExtensionFieldDescriptor
        assert isinstance(field_descriptor, _ExtensionFieldDescriptor)

        # The extension descriptor matches the full byte including the extension bit
        assert self.last_field is False, "ExtensionVIF cannot be the last field"

        self._next_table = field_descriptor.extension_table


class ManufacturerVIF(VIF):
    """VIF for manufacturer-specific data (code 0x7F/0xFF).

    Reference: EN 13757-3:2018, Table 10 (code 0x7F)
    """


class VIFE(VIF):
    """Base class for Value Information Field Extension (VIFE).

    VIFEs can:
    - Define the descriptor after an ExtensionVIF (TrueVIFE)
    - Modify the previous VIF (CombinableVIFE)
    - Mark the rest of the chain manufacturer specific (ManufacturerVIFE)

    Reference: EN 13757-3:2018, section 6.4, Tables 12-16
    """

    def __new__(cls, field_code: int, prev_field: VIF | VIFE) -> VIFE:  # type: ignore[misc]
        if isinstance(prev_field, (ManufacturerVIF, ManufacturerVIFE)):
            return object.__new__(ManufacturerVIFE)

        assert prev_field._next_table is not None, "Previous field has no next table defined"

        field_descriptor = _find_field_descriptor(field_code, prev_field._next_table)

        if isinstance(prev_field, ExtensionVIF):
            if isinstance(field_descriptor, _TrueFieldDescriptor):
                return object.__new__(TrueVIFE)

        else:
            if isinstance(field_descriptor, _CombinableFieldDescriptor):
                return object.__new__(CombinableVIFE)
            elif isinstance(field_descriptor, _ManufacturerFieldDescriptor):
                return object.__new__(ManufacturerVIFE)

        raise AssertionError(
            f"Field descriptor type {type(field_descriptor).__name__} not recognized "
            f"for VIFE after {type(prev_field).__name__}"
        )

    def __init__(self, field_code: int, prev_field: VIF | VIFE) -> None:
        if prev_field.last_field:
            raise ValueError("Cannot extend VIF/VIFE chain past last field")

        if prev_field.next_field is not None:
            raise ValueError("Previous field already has a next field assigned")

        if prev_field.chain_position >= VIFE_MAXIMUM_CHAIN_LENGTH:
            raise ValueError("Exceeded maximum VIFE chain length")

        self.prev_field = prev_field
        self.prev_field.next_field = self

        self.chain_position = self.prev_field.chain_position + 1

        super().__init__(field_code)


class TrueVIFE(VIFE):
    """VIFE with "true VIF" semantics, following an ExtensionVIF.

    Reference: EN 13757-3:2018, Tables 12-13 (First/Second extension tables)
    """

    descriptor: Descriptor
    value_unit: str
    value_transformer: ValueTransformer | None
    data_rules: DataRules.Requires

    def __init__(self, field_code: int, prev_field: VIF | VIFE) -> None:
        super().__init__(field_code, prev_field)

        assert self.prev_field is not None and self.prev_field._next_table is not None

        field_descriptor = _find_field_descriptor(field_code, self.prev_field._next_table)

        # VIFE.__new__ guarantees descriptor is _TrueFieldDescriptor
        assert isinstance(field_descriptor, _TrueFieldDescriptor)

        _apply_true_field_descriptor(self, field_descriptor)

        self._next_table = _CombinableOrthogonalFieldTable


class CombinableVIFE(VIFE):
    """VIFE that modifies the preceding TrueVIF/TrueVIFE.

    Attributes:
        value_transformer: Optional additional scaling of the value

    Reference: EN 13757-3:2018, Table 15 (Combinable orthogonal VIFEs)
    """

    value_transformer: ValueTransformer | None

    def __init__(self, field_code: int, prev_field: VIF | VIFE) -> None:
        super().__init__(field_code, prev_field)

        field_descriptor = _find_field_descriptor(field_code, _CombinableOrthogonalFieldTable)

        # VIFE.__new__ guarantees descriptor is _CombinableFieldDescriptor
        assert isinstance(field_descriptor, _CombinableFieldDescriptor)

        self.value_transformer = field_descriptor.value_transformer

        self._next_table = _CombinableOrthogonalFieldTable


class ManufacturerVIFE(VIFE):
    """VIFE for manufacturer-specific extensions (code 0x7F/0xFF).

    This and all following VIFEs in the chain are manufacturer specific.

    Reference: EN 13757-3:2018, Table 14 (code 0x7F/0xFF)
    """


def _apply_true_field_descriptor(field: TrueVIF | TrueVIFE, field_descriptor: _TrueFieldDescriptor) -> None:
    field.descriptor = field_descriptor.descriptor

    if field_descriptor.value_unit_transformer is not None:
        field.value_unit = field_descriptor.value_unit_transformer(field.field_code)
    else:
        field.value_unit = field_descriptor.value_unit

    field.value_transformer = field_descriptor.value_transformer

    field.data_rules = field_descriptor.data_rules


# =============================================================================
# VIB - Value Information Block
# =============================================================================


class VIB:
    """Value Information Block: a complete VIF/VIFE chain.

    Resolves the chain into the descriptor, unit and data rules of the record
    and applies all value transformations of the chain.

    Attributes:
        descriptor: Semantic tag of the record value
        value_unit: Unit string of the scaled value
        data_rules: Allowed data type families

    Reference: EN 13757-3:2018, section 6.4
    """

    descriptor: Descriptor

    value_unit: str

    data_rules: DataRules.Requires

    _field_chain: tuple[VIF, *tuple[VIFE, ...]]

    def __init__(self, vif: VIF, *vife: VIFE) -> None:
        self._field_chain = (vif, *vife)

        self.data_rules = DataRules.Requires.DEFAULT_ABHLVAR

        if isinstance(vif, ManufacturerVIF):
            self.descriptor = Descriptor.UNKNOWN_MANUFACTURER_VIF
            self.value_unit = ValueUnit.NONE
            return

        true_field = vif if isinstance(vif, TrueVIF) else vife[0]

        # An ExtensionVIF is never last, so a TrueVIFE always follows it
        assert isinstance(true_field, (TrueVIF, TrueVIFE))

        self.descriptor = true_field.descriptor

        self.value_unit = true_field.value_unit

        self.data_rules = true_field.data_rules

    def transform(self, value: Any) -> Any:
        """Apply all value transformers of the chain to a numeric value.

        Non-numeric values (text, dates, bit fields) and None are returned unchanged.
        """
        if value is None or isinstance(value, bool) or not isinstance(value, (int, float)):
            return value

        for field in self._field_chain:
            transformer = getattr(field, "value_transformer", None)

            if transformer is not None:
                value = transformer(value, field.field_code)

        return value

    def ascii_unit_from_bytes(self, get_next_bytes: Callable[[int], bytes]) -> None:
        """Read the plain text unit when the chain starts with a PlainTextVIF."""
        vif = self._field_chain[0]

        if isinstance(vif, PlainTextVIF):
            vif.ascii_unit_from_bytes(get_next_bytes)
            self.value_unit = vif.value_unit

    @staticmethod
    def from_bytes(get_next_bytes: Callable[[int], bytes]) -> VIB:
        """Parse a complete VIB from bytes.

        Args:
            get_next_bytes: Function returning the next n bytes of the payload

        Raises:
            ValueError: If the VIF/VIFE chain is invalid
        """
        return VIB(*VIF.from_bytes(get_next_bytes))
