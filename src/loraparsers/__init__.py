"""
pyLoRaParsers: Payload parsers for LoRaWAN sensors and meters.

This library turns raw uplink payloads of LoRaWAN devices into flat readings.
The M-Bus data record decoder used by wireless heat meters lives in
``loraparsers.mbus``, the device parsers in ``loraparsers.parsers``.
"""

from __future__ import annotations

from .exceptions import ContainerDecodeError, ParserError, RecordContractError
from .parsers import PARSERS, Meta, Parser, get_parser

__version__ = "0.1.0"

__all__ = [
    "ContainerDecodeError",
    "Meta",
    "PARSERS",
    "Parser",
    "ParserError",
    "RecordContractError",
    "__version__",
    "get_parser",
]
