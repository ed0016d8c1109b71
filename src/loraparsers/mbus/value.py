"""M-Bus value vocabulary.

This module contains the enumerations that give decoded data records their
meaning:
- Descriptor: closed set of semantic tags a record can carry
- ValueUnit: unit strings reported alongside record values
- ValueFunction: function field of the DIF (current, maximum, minimum, error state)
- ValueTransformer / ValueUnitTransformer: scaling and unit selection driven by
  the exponent bits of a VIF/VIFE code

Reference: EN 13757-3:2018, Tables 7, 10-14
"""

from __future__ import annotations

from enum import Enum, StrEnum, member


class ValueUnit(StrEnum):
    """Units reported for decoded record values.

    Reference: EN 13757-3:2018, Tables 10-14
    """

    # Energy units
    WH = "Wh"  # Watt-hour
    J = "J"  # Joule

    # Volume and mass units
    M3 = "m³"  # Cubic meter
    KG = "kg"  # Kilogram

    # Power units
    W = "W"  # Watt
    J_H = "J/h"  # Joule per hour

    # Flow units
    M3_H = "m³/h"  # Cubic meter per hour
    M3_MIN = "m³/min"  # Cubic meter per minute
    M3_S = "m³/s"  # Cubic meter per second
    KG_H = "kg/h"  # Kilogram per hour

    # Temperature units
    CELSIUS = "°C"  # Degrees Celsius
    KELVIN = "K"  # Kelvin (temperature difference)

    # Pressure units
    BAR = "bar"  # Bar

    # Duration units
    SECOND = "s"
    MINUTE = "min"
    HOUR = "h"
    DAY = "d"

    # Electrical units
    V = "V"  # Volt
    A = "A"  # Ampere

    # Dimensionless (dates, identifiers, flags)
    NONE = ""


class ValueUnitTransformer(Enum):
    """Unit selection for VIF codes that encode the unit in their low bits.

    Each member takes the VIF/VIFE code and returns the unit.
    """

    # E...nn: 00=s, 01=min, 10=h, 11=d
    DURATION_NN = member(
        lambda code: (ValueUnit.SECOND, ValueUnit.MINUTE, ValueUnit.HOUR, ValueUnit.DAY)[code & 0x03]
    )

    def __call__(self, code: int) -> ValueUnit:
        return self.value(code)


class Descriptor(StrEnum):
    """Semantic tag of a decoded data record.

    The string value is the field name used in readings. Members prefixed with
    ``unknown_`` mark records whose meaning is not interpreted; they are decoded
    so that the byte stream stays in sync and are dropped by the parsers.

    Reference: EN 13757-3:2018, Tables 10, 12, 14
    """

    # Cumulative quantities
    ENERGY = "energy"
    VOLUME = "volume"
    MASS = "mass"

    # Durations
    ON_TIME = "on_time"
    OPERATING_TIME = "operating_time"
    AVERAGING_DURATION = "averaging_duration"
    ACTUALITY_DURATION = "actuality_duration"
    REMAINING_BATTERY_LIFETIME = "remaining_battery_lifetime"

    # Instantaneous quantities
    POWER = "power"
    FLOW = "flow"
    MASS_FLOW = "mass_flow"
    SUPPLY_TEMPERATURE = "supply_temperature"
    RETURN_TEMPERATURE = "return_temperature"
    TEMPERATURE_DIFFERENCE = "temperature_difference"
    EXTERNAL_TEMPERATURE = "external_temperature"
    PRESSURE = "pressure"
    VOLTAGE = "voltage"
    CURRENT = "current"

    # Time points
    DATE = "date"
    DATETIME = "datetime"

    # Heat cost allocator
    HCA_UNITS = "hca_units"

    # Identification
    FABRICATION_BLOCK = "fabrication_block"
    DEVICE_TYPE = "device_type"
    MODEL_VERSION = "model_version"
    HARDWARE_VERSION = "hardware_version"
    FIRMWARE_VERSION = "firmware_version"
    SOFTWARE_VERSION = "software_version"

    # Status
    ERROR_CODES = "error_codes"

    # Not interpreted
    UNKNOWN_VIF = "unknown_vif"
    UNKNOWN_VIFE = "unknown_vife"
    UNKNOWN_PLAIN_TEXT_VIF = "unknown_plain_text_vif"
    UNKNOWN_MANUFACTURER_VIF = "unknown_manufacturer_vif"
    UNKNOWN_MANUFACTURER_DATA = "unknown_manufacturer_data"


class ValueFunction(StrEnum):
    """Function field of a data record (DIF bits 4-5).

    Reference: EN 13757-3:2018, Table 7
    """

    CURRENT_VALUE = "current_value"
    MAXIMUM_VALUE = "maximum_value"
    MINIMUM_VALUE = "minimum_value"
    VALUE_DURING_ERROR_STATE = "value_during_error_state"


def _scale(value: int | float, exponent: int) -> int | float:
    """Scale value by 10^exponent without introducing binary rounding noise.

    Integers stay integers for non-negative exponents. Negative exponents divide,
    so 539705 with exponent -2 gives exactly 5397.05.
    """
    if exponent >= 0:
        return value * 10**exponent
    return value / 10**-exponent


class ValueTransformer(Enum):
    """Value transformation functions for M-Bus VIF/VIFE codes.

    Each member is a function that takes (value, code) and returns the scaled value.
    - value: The decoded numeric value
    - code: The VIF/VIFE code byte containing the exponent bits

    Naming convention:
        MULT_10_POW_{bits}_{offset} = value * 10^((code & mask) + offset)
        MULT_10_POW_{exponent} = value * 10^exponent

    Examples:
        MULT_10_POW_NNN_MINUS_3 → value * 10^((code & 0x07) - 3)
        MULT_10_POW_NN_MINUS_3 → value * 10^((code & 0x03) - 3)
    """

    # === POWER OF 10: nnnn bits (4 bits, mask 0x0F) ===
    MULT_10_POW_NNNN_MINUS_9 = member(lambda value, code: _scale(value, (code & 0x0F) - 9))
    MULT_10_POW_NNNN_MINUS_12 = member(lambda value, code: _scale(value, (code & 0x0F) - 12))

    # === POWER OF 10: nnn bits (3 bits, mask 0x07) ===
    MULT_10_POW_NNN_MINUS_3 = member(lambda value, code: _scale(value, (code & 0x07) - 3))
    MULT_10_POW_NNN = member(lambda value, code: _scale(value, code & 0x07))
    MULT_10_POW_NNN_MINUS_6 = member(lambda value, code: _scale(value, (code & 0x07) - 6))
    MULT_10_POW_NNN_MINUS_7 = member(lambda value, code: _scale(value, (code & 0x07) - 7))
    MULT_10_POW_NNN_MINUS_9 = member(lambda value, code: _scale(value, (code & 0x07) - 9))

    # === POWER OF 10: nn bits (2 bits, mask 0x03) ===
    MULT_10_POW_NN_MINUS_3 = member(lambda value, code: _scale(value, (code & 0x03) - 3))

    # === POWER OF 10: n bit (1 bit, mask 0x01) ===
    MULT_10_POW_N_PLUS_2 = member(lambda value, code: _scale(value, (code & 0x01) + 2))
    MULT_10_POW_N_PLUS_5 = member(lambda value, code: _scale(value, (code & 0x01) + 5))
    MULT_10_POW_N_PLUS_8 = member(lambda value, code: _scale(value, (code & 0x01) + 8))

    # === FIXED FACTORS ===
    MULT_10_POW_3 = member(lambda value, _code: _scale(value, 3))

    def __call__(self, value: int | float, code: int) -> int | float:
        return self.value(value, code)
