"""Device payload parsers.

Parsers are registered by name:

    parser = get_parser("elvaco_cmi4110")
    reading = parser.parse_hex("000C0615...", Meta(frame_port=2))
"""

from __future__ import annotations

from typing import Any

from .base import FieldInfo, LastReading, Meta, Parser, Reading, ReadingExtender, apply_extension, identity
from .comtac_lpn_cm1 import ComtacLPNCM1Parser
from .dzg_loramod import DZGLoRaMODParser
from .dzg_loramod_v2 import DZGLoRaMODv2Parser
from .elvaco_cmi4110 import ElvacoCMi4110Parser
from .smilio_action import SmilioActionParser
from .tabs_doornwindow import TabsDoorWindowParser
from .tabs_motion import TabsMotionParser

PARSERS: dict[str, type[Parser]] = {
    parser.name: parser
    for parser in (
        ComtacLPNCM1Parser,
        DZGLoRaMODParser,
        DZGLoRaMODv2Parser,
        ElvacoCMi4110Parser,
        SmilioActionParser,
        TabsDoorWindowParser,
        TabsMotionParser,
    )
}


def get_parser(name: str, **options: Any) -> Parser:
    """Create the parser registered under name.

    Args:
        name: Registry name, e.g. ``"elvaco_cmi4110"``
        **options: Keyword arguments for the parser constructor

    Raises:
        KeyError: If no parser is registered under name
    """
    try:
        parser_class = PARSERS[name]
    except KeyError:
        raise KeyError(f"Unknown parser {name!r}, known parsers: {', '.join(sorted(PARSERS))}") from None

    return parser_class(**options)


__all__ = [
    # Registry
    "PARSERS",
    "get_parser",
    # Parser interface
    "FieldInfo",
    "LastReading",
    "Meta",
    "Parser",
    "Reading",
    "ReadingExtender",
    "apply_extension",
    "identity",
    # Parsers
    "ComtacLPNCM1Parser",
    "DZGLoRaMODParser",
    "DZGLoRaMODv2Parser",
    "ElvacoCMi4110Parser",
    "SmilioActionParser",
    "TabsDoorWindowParser",
    "TabsMotionParser",
]
