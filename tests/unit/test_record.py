"""Unit tests for data record decoding."""

from datetime import datetime

import pytest

from loraparsers.exceptions import ContainerDecodeError
from loraparsers.mbus.record import RawRecord, RecordData, decode_records
from loraparsers.mbus.value import Descriptor, ValueFunction

# =============================================================================
# Test Constants
# =============================================================================

# DIF 0x04 (32 bit), VIF 0x03 (Wh), value 1000
TEST_RECORD_ENERGY_WH = bytes.fromhex("0403E8030000")

TEST_IDLE_FILLER = bytes.fromhex("2F")


@pytest.mark.unit
class TestDecodeRecords:
    """Tests for decode_records."""

    def test_empty_payload(self) -> None:
        """Test that an empty block has no records."""
        assert decode_records(b"") == []

    def test_single_record(self) -> None:
        """Test decoding one current value record."""
        assert decode_records(TEST_RECORD_ENERGY_WH) == [
            RawRecord(data=RecordData(descriptor=Descriptor.ENERGY, value=1000, unit="Wh")),
        ]

    @pytest.mark.parametrize(
        ("payload", "expected_data"),
        [
            # BCD fabrication number
            ("0C7889478268", RecordData(descriptor=Descriptor.FABRICATION_BLOCK, value=68824789, unit="")),
            # 16 bit error flags as bit field
            ("02FD170600", RecordData(descriptor=Descriptor.ERROR_CODES, value="0006", unit="")),
            # 32 bit date and time
            ("046D32315423", RecordData(descriptor=Descriptor.DATETIME, value=datetime(2018, 3, 20, 17, 50), unit="")),
            # 8 digit BCD volume with 10^-2 m³
            ("0C1405975300", RecordData(descriptor=Descriptor.VOLUME, value=5397.05, unit="m³")),
            # Plain text unit "kWh", 8 bit value
            ("017C0368576B05", RecordData(descriptor=Descriptor.UNKNOWN_PLAIN_TEXT_VIF, value=5, unit="kWh")),
            # Enhanced identification is kept as unknown record
            ("077961576851A5114004", RecordData(descriptor=Descriptor.UNKNOWN_VIF, value=0x044011A551685761, unit="")),
            # No data
            ("0003", RecordData(descriptor=Descriptor.ENERGY, value=None, unit="Wh")),
            # Invalid marker of a 16 bit signed value
            ("025A0080", RecordData(descriptor=Descriptor.SUPPLY_TEMPERATURE, value=None, unit="°C")),
        ],
        ids=[
            "fabrication_number",
            "error_flags",
            "datetime",
            "volume",
            "plain_text_unit",
            "enhanced_identification",
            "no_data",
            "invalid_marker",
        ],
    )
    def test_record_data(self, payload: str, expected_data: RecordData) -> None:
        """Test descriptor, scaled value and unit of single records."""
        (record,) = decode_records(bytes.fromhex(payload))
        assert record.data == expected_data

    def test_record_attributes_from_dib(self) -> None:
        """Test that function, tariff, subunit and storage come from the DIB."""
        # DIF 0xD4: maximum, storage bit set, extension; DIFE 0x50: tariff 1, subunit 1
        (record,) = decode_records(bytes.fromhex("D45003E8030000"))

        assert record.function_field is ValueFunction.MAXIMUM_VALUE
        assert record.tariff == 1
        assert record.sub_device == 1
        assert record.memory_address == 1

    def test_records_in_payload_order(self) -> None:
        """Test that several records are decoded in order."""
        records = decode_records(bytes.fromhex("0C06384612000A5A0503"))

        assert [record.data.descriptor for record in records if record.data] == [
            Descriptor.ENERGY,
            Descriptor.SUPPLY_TEMPERATURE,
        ]

    def test_idle_fillers_are_skipped(self) -> None:
        """Test that idle filler bytes produce no records."""
        payload = TEST_IDLE_FILLER + TEST_RECORD_ENERGY_WH + TEST_IDLE_FILLER * 2

        assert decode_records(payload) == decode_records(TEST_RECORD_ENERGY_WH)

    @pytest.mark.parametrize(
        ("manufacturer_block", "expected_value"),
        [
            ("0F0102AB", "0102AB"),
            ("1F", ""),
        ],
    )
    def test_manufacturer_data_ends_block(self, manufacturer_block: str, expected_value: str) -> None:
        """Test that manufacturer data turns the rest of the block into one record."""
        records = decode_records(TEST_RECORD_ENERGY_WH + bytes.fromhex(manufacturer_block))

        assert len(records) == 2
        assert records[1].data == RecordData(
            descriptor=Descriptor.UNKNOWN_MANUFACTURER_DATA,
            value=expected_value,
            unit="",
        )

    @pytest.mark.parametrize(
        "payload",
        [
            "0403E803",  # Data field cut off
            "84",  # DIFE missing
            "04",  # VIF missing
            "0803E8030000",  # Readout selection is not a valid uplink DIF
            "017C00",  # Plain text unit with length 0
        ],
    )
    def test_invalid_block_raises(self, payload: str) -> None:
        """Test that malformed blocks raise ContainerDecodeError."""
        with pytest.raises(ContainerDecodeError, match="Invalid data record block"):
            decode_records(bytes.fromhex(payload))

    def test_type_mismatch_raises(self) -> None:
        """Test that a 1 byte record with a date VIF raises ContainerDecodeError."""
        with pytest.raises(ContainerDecodeError, match="No valid DataType found"):
            decode_records(bytes.fromhex("016C01"))
