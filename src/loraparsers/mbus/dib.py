"""DIB (Data Information Block) interpretation logic.

A DIB consists of a DIF and optionally one or more DIFEs. The DIB accumulates
information from the DIF/DIFE chain:
- Storage number: DIF bit 6 + DIFE bits 0-3
- Tariff: DIFE bits 4-5
- Subunit: DIFE bit 6
- Register number flag: set if FinalDIFE (0x00) is present

Classes:
    - DIB: Base class, factory for the concrete subclass
    - DataDIB: DIB for data records
    - SpecialDIB: Base class for special function DIBs
    - ManufacturerDIB: Manufacturer-specific data block
    - IdleFillerDIB: Idle filler (padding) byte

Reference: EN 13757-3:2018
    - Section 6.3: Data Information Block structure
    - Table 6 (page 14): Special function codes
    - Table 8 (page 14): DIFE encoding
"""

from __future__ import annotations

from collections.abc import Callable

from .data import DataRules
from .dif import DIF, DIFE, DataDIF, DataDIFE, DIFSpecialFunction, FinalDIFE, SpecialDIF
from .value import ValueFunction

DIB_MAXIMUM_REGISTER_NUMBER = 125  # Maximum register number when FinalDIFE is present


class DIB:
    """Base class for Data Information Block (DIB).

    This class uses a factory pattern (__new__) to instantiate the correct
    subclass based on the DIF type:
    - DataDIF → DataDIB
    - SpecialDIF → ManufacturerDIB or IdleFillerDIB

    Usage:
        dib = DIB.from_bytes(get_next_bytes)

        if isinstance(dib, DataDIB):
            print(dib.storage_number, dib.value_function)

    Reference: EN 13757-3:2018, section 6.3
    """

    _field_chain: tuple[DIF, *tuple[DIFE, ...]]

    def __new__(cls, dif: DIF, *dife: DIFE) -> DIB:
        if isinstance(dif, DataDIF):
            return object.__new__(DataDIB)

        if isinstance(dif, SpecialDIF):
            if DIFSpecialFunction.MANUFACTURER_DATA_HEADER in dif.special_function:
                return object.__new__(ManufacturerDIB)

            if DIFSpecialFunction.IDLE_FILLER in dif.special_function:
                return object.__new__(IdleFillerDIB)

        raise AssertionError(f"DIF type not recognized: {type(dif).__name__}")

    def __init__(self, dif: DIF, *dife: DIFE) -> None:
        self._field_chain = (dif, *dife)

    @staticmethod
    def from_bytes(get_next_bytes: Callable[[int], bytes]) -> DIB:
        """Parse a complete DIB from bytes.

        Args:
            get_next_bytes: Function returning the next n bytes of the payload

        Returns:
            DataDIB, ManufacturerDIB or IdleFillerDIB

        Raises:
            ValueError: If the DIF/DIFE chain is invalid
        """
        field_chain = DIF.from_bytes(get_next_bytes)

        return DIB(*field_chain)


class DataDIB(DIB):
    """Data Information Block for data records.

    Attributes:
        data_support: Candidate data types from the DIF
        value_function: Function field (current, maximum, minimum, error state)
        register_number: True if FinalDIFE present (storage number is register number)
        storage_number: Accumulated storage number
        subunit: Accumulated subunit number
        tariff: Accumulated tariff number

    Reference: EN 13757-3:2018
        - Section 6.3.3 (page 12): Data information block
        - Section 6.3.5 (page 14): Storage number and register number
    """

    data_support: DataRules.Supports

    value_function: ValueFunction

    register_number: bool = False

    storage_number: int = 0

    subunit: int = 0

    tariff: int = 0

    def __init__(self, dif: DataDIF, *dife: DIFE) -> None:
        super().__init__(dif, *dife)

        self.data_support = dif.data_support

        self.value_function = dif.value_function

        self.storage_number = dif.storage_number

        for field in dife:
            if isinstance(field, DataDIFE):
                self.storage_number += field.storage_number
                self.subunit += field.subunit
                self.tariff += field.tariff
            elif isinstance(field, FinalDIFE):
                if self.storage_number > DIB_MAXIMUM_REGISTER_NUMBER:
                    raise ValueError("Register number (storage number) exceeds maximum allowed value")

                self.register_number = True
            else:
                raise AssertionError(f"Non-data DIFE found in DIF/DIFE chain: {type(field).__name__}")


class SpecialDIB(DIB):
    """Base class for Data Information Blocks with special functions.

    Special DIBs carry no DIFEs and no value information block.

    Reference: EN 13757-3:2018, Table 6 (page 14)
    """

    def __init__(self, dif: SpecialDIF, *dife: DIFE) -> None:
        super().__init__(dif, *dife)

        # SpecialDIF.last_field is always True, so DIFE.__init__ prevents extension
        assert not dife, "SpecialDIB cannot have DIFE fields"


class ManufacturerDIB(SpecialDIB):
    """Start of manufacturer-specific data (0x0F, or 0x1F when more records follow).

    All remaining bytes of the payload belong to the manufacturer block.

    Attributes:
        more_records_follow: True for 0x1F
    """

    more_records_follow: bool

    def __init__(self, dif: SpecialDIF, *dife: DIFE) -> None:
        super().__init__(dif, *dife)

        self.more_records_follow = DIFSpecialFunction.MORE_RECORDS_FOLLOW in dif.special_function


class IdleFillerDIB(SpecialDIB):
    """Idle filler byte (0x2F), skipped by the record decoder."""
