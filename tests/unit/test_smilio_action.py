"""Unit tests for the Smilio Action parser."""

import logging

import pytest

from loraparsers.parsers import SmilioActionParser

# =============================================================================
# Test Constants
# =============================================================================

TEST_BUTTON_COUNTERS = "0001001000A000230010"
TEST_KEEP_ALIVE = "010C800C8064"


@pytest.mark.unit
class TestDataFrame:
    """Tests for button counter frames."""

    @pytest.mark.parametrize(
        ("frame", "expected_type"),
        [
            ("02", "normal"),
            ("03", "acknowledge"),
        ],
    )
    def test_button_counters(self, smilio_parser: SmilioActionParser, frame: str, expected_type: str) -> None:
        """Test normal and acknowledge frames."""
        assert smilio_parser.parse_hex(frame + TEST_BUTTON_COUNTERS) == {
            "message_type": "data_frame",
            "data_frame_type": expected_type,
            "button1": 1,
            "button2": 16,
            "button3": 160,
            "button4": 35,
            "button5": 16,
        }

    def test_pulse(self, smilio_parser: SmilioActionParser) -> None:
        """Test a pulse frame."""
        assert smilio_parser.parse_hex("4000010000000100000001") == {
            "message_type": "data_frame",
            "data_frame_type": "pulse",
            "button1": 1,
            "button2": 0,
            "button3": 1,
            "button4": 0,
            "button5": 1,
        }


@pytest.mark.unit
class TestKeepAlive:
    """Tests for keep alive frames."""

    def test_keep_alive(self, smilio_parser: SmilioActionParser) -> None:
        """Test battery voltages of a keep alive frame."""
        assert smilio_parser.parse_hex(TEST_KEEP_ALIVE) == {
            "message_type": "keep_alive",
            "battery_idle": 3200,
            "battery_emission": 3200,
        }


@pytest.mark.unit
class TestUnhandledPayload:
    """Tests for payloads that are not Smilio Action frames."""

    @pytest.mark.parametrize(
        "payload",
        [
            "",
            "05" + TEST_BUTTON_COUNTERS,  # Unknown frame type
            "02" + TEST_BUTTON_COUNTERS[:-2],  # Data frame too short
            "010C800C8065",  # Wrong keep alive trailer
            "020C800C8064",  # Keep alive length with data frame type
        ],
        ids=["empty", "unknown_frame", "short_data_frame", "keep_alive_trailer", "data_frame_type"],
    )
    def test_unhandled(self, smilio_parser: SmilioActionParser, caplog: pytest.LogCaptureFixture, payload: str) -> None:
        """Test that unknown frames are logged and yield no reading."""
        with caplog.at_level(logging.INFO):
            assert smilio_parser.parse_hex(payload) == []

        assert "Unhandled Payload" in caplog.text
