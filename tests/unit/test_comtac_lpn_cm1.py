"""Unit tests for the comtac LPN CM-1 parser."""

import logging

import pytest

from loraparsers.parsers import ComtacLPNCM1Parser

# =============================================================================
# Test Constants
# =============================================================================

# Thresholds 5/30 °C, 20/80 %, send interval 900 s, battery 3000 mV
TEST_SETTINGS = "051E145003840BB8"


@pytest.mark.unit
class TestComtacLPNCM1Parser:
    """Tests for ComtacLPNCM1Parser."""

    @pytest.mark.parametrize(
        ("status", "measurement", "expected_temperature", "expected_humidity"),
        [
            ("00", "08981194", 22.0, 45.0),
            ("C0", "08981194", 22.0, 45.0),  # Threshold flags
            ("00", "FF381194", -2.0, 45.0),  # Negative temperature
            ("1C", "09C40FA0", 25.0, 40.0),  # Event and booster flags
        ],
    )
    def test_measurement(
        self,
        comtac_parser: ComtacLPNCM1Parser,
        status: str,
        measurement: str,
        expected_temperature: float,
        expected_humidity: float,
    ) -> None:
        """Test temperature, humidity, battery and send interval."""
        assert comtac_parser.parse_hex(status + TEST_SETTINGS + measurement) == {
            "send_interval": 900,
            "battery_volt": 3.0,
            "temperature_c": expected_temperature,
            "humidity_percent": expected_humidity,
        }

    @pytest.mark.parametrize(
        "payload",
        [
            "20" + TEST_SETTINGS + "08981194",  # Reserved bit 5
            "02" + TEST_SETTINGS + "08981194",  # Reserved bit 1
            "00" + TEST_SETTINGS + "0898",  # Humidity missing
            "",
        ],
        ids=["reserved_bit_5", "reserved_bit_1", "too_short", "empty"],
    )
    def test_unhandled(self, comtac_parser: ComtacLPNCM1Parser, caplog: pytest.LogCaptureFixture, payload: str) -> None:
        """Test that payloads with reserved bits or wrong length yield no reading."""
        with caplog.at_level(logging.INFO):
            assert comtac_parser.parse_hex(payload) == []

        assert "Unhandled payload" in caplog.text
