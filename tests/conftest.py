"""Shared test fixtures for pyLoRaParsers tests."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

import pytest

from loraparsers.parsers import (
    ComtacLPNCM1Parser,
    DZGLoRaMODParser,
    DZGLoRaMODv2Parser,
    ElvacoCMi4110Parser,
    Meta,
    SmilioActionParser,
    TabsDoorWindowParser,
    TabsMotionParser,
)

FIXED_NOW = datetime(2024, 1, 15, 12, 0, tzinfo=UTC)


@pytest.fixture
def fixed_now() -> datetime:
    """Fixed point in time used as the parser clock."""
    return FIXED_NOW


@pytest.fixture
def fixed_clock(fixed_now: datetime) -> Callable[[], datetime]:
    """Clock returning fixed_now."""
    return lambda: fixed_now


@pytest.fixture
def empty_meta() -> Meta:
    """Uplink metadata without frame port and last readings."""
    return Meta()


@pytest.fixture
def elvaco_parser() -> ElvacoCMi4110Parser:
    return ElvacoCMi4110Parser()


@pytest.fixture
def comtac_parser() -> ComtacLPNCM1Parser:
    return ComtacLPNCM1Parser()


@pytest.fixture
def dzg_parser() -> DZGLoRaMODParser:
    return DZGLoRaMODParser()


@pytest.fixture
def dzg_v2_parser() -> DZGLoRaMODv2Parser:
    return DZGLoRaMODv2Parser()


@pytest.fixture
def dzg_v2_power_parser(fixed_clock: Callable[[], datetime]) -> DZGLoRaMODv2Parser:
    """DZG v2 parser deriving power from the last reading, with a fixed clock."""
    return DZGLoRaMODv2Parser(add_power_from_last_reading=True, clock=fixed_clock)


@pytest.fixture
def smilio_parser() -> SmilioActionParser:
    return SmilioActionParser()


@pytest.fixture
def tabs_door_window_parser() -> TabsDoorWindowParser:
    return TabsDoorWindowParser()


@pytest.fixture
def tabs_motion_parser() -> TabsMotionParser:
    return TabsMotionParser()
