"""M-Bus data record decoding for wireless meter payloads.

This package contains the EN 13757-3 application layer pieces needed to turn
the variable data block of a meter telegram into data records.

Reference: EN 13757-3:2018
"""

from .dib import DIB, DataDIB, IdleFillerDIB, ManufacturerDIB
from .dif import (
    DIF,
    DIFE,
    DataDIF,
    DataDIFE,
    SpecialDIF,
)
from .record import RawRecord, RecordData, decode_records
from .value import Descriptor, ValueFunction, ValueUnit
from .vif import VIB, VIF, VIFE

__all__ = [
    # Records
    "RawRecord",
    "RecordData",
    "decode_records",
    # Value vocabulary
    "Descriptor",
    "ValueFunction",
    "ValueUnit",
    # DIF/DIB classes
    "DIB",
    "DIF",
    "DIFE",
    "DataDIB",
    "DataDIF",
    "DataDIFE",
    "IdleFillerDIB",
    "ManufacturerDIB",
    "SpecialDIF",
    # VIF/VIB classes
    "VIB",
    "VIF",
    "VIFE",
]
