"""Unit tests for DIF/DIFE classes and helper functions."""

from collections.abc import Callable

import pytest

from loraparsers.mbus.data import DataRules
from loraparsers.mbus.dif import (
    DIF,
    DIFE,
    DataDIF,
    DataDIFE,
    DIFSpecialFunction,
    FinalDIFE,
    SpecialDIF,
    _find_field_descriptor,
)
from loraparsers.mbus.value import ValueFunction

# =============================================================================
# Test Constants - Duplicated from src for test isolation
# =============================================================================
# If these values change in production code, tests will fail and alert us

# DIF codes - Data fields
TEST_DIF_NO_DATA = 0x00  # 0b00000000: No data
TEST_DIF_32BIT_INST = 0x04  # 0b00000100: 32-bit integer, instantaneous, no extension
TEST_DIF_32BIT_INST_EXT = 0x84  # 0b10000100: 32-bit integer, instantaneous, with extension bit
TEST_DIF_32BIT_INST_STORAGE1 = 0x44  # 0b01000100: 32-bit integer, storage bit 6 set
TEST_DIF_32BIT_MAX = 0x14  # 0b00010100: 32-bit integer, maximum function
TEST_DIF_32BIT_MIN = 0x24  # 0b00100100: 32-bit integer, minimum function
TEST_DIF_32BIT_ERR = 0x34  # 0b00110100: 32-bit integer, error function
TEST_DIF_BCD8_INST = 0x0C  # 0b00001100: 8 digit BCD, instantaneous
TEST_DIF_BCD6_ERR = 0x3B  # 0b00111011: 6 digit BCD, error function
TEST_DIF_READOUT_SEL = 0x08  # 0b00001000: Readout selection (head-end request only)

# DIF codes - Special functions
TEST_SPECIAL_DIF_MANUFACTURER = 0x0F  # 0b00001111: Manufacturer specific data
TEST_SPECIAL_DIF_MORE_RECORDS = 0x1F  # 0b00011111: Manufacturer data + more records follow
TEST_SPECIAL_DIF_IDLE_FILLER = 0x2F  # 0b00101111: Idle filler (padding)
TEST_SPECIAL_DIF_GLOBAL_READOUT = 0x7F  # 0b01111111: Global readout request (not valid in uplinks)

# DIFE codes
TEST_DIFE_STORAGE_1 = 0x01  # 0b00000001: Storage bits 0-3 = 0001, no extension
TEST_DIFE_STORAGE_1_EXT = 0x81  # 0b10000001: Storage bits 0-3 = 0001, with extension
TEST_DIFE_STORAGE_FULL = 0x0F  # 0b00001111: Storage bits 0-3 = 1111 (all bits set)
TEST_DIFE_TARIFF_FULL = 0x30  # 0b00110000: Tariff bits 4-5 = 11 (value 3)
TEST_DIFE_SUBUNIT_FULL = 0x40  # 0b01000000: Subunit bit 6 = 1
TEST_DIFE_STORAGE_5 = 0x05  # 0b00000101: Storage bits 0-3 = 0101
TEST_FINAL_DIFE = 0x00  # 0b00000000: Final DIFE marking register number

# Chain length limits
TEST_DIFE_MAXIMUM_CHAIN_LENGTH = 10  # Maximum number of chained DIFE bytes


def _reader(data: bytes) -> Callable[[int], bytes]:
    """Create a get_next_bytes function over data."""
    position = 0

    def get_next_bytes(size: int) -> bytes:
        nonlocal position
        chunk = data[position : position + size]
        position += size
        return chunk

    return get_next_bytes


# =============================================================================
# Helper Function Tests
# =============================================================================


@pytest.mark.unit
class TestFindFieldDescriptor:
    """Tests for _find_field_descriptor helper function."""

    def test_find_valid_data_field(self) -> None:
        """Test finding a valid data field descriptor."""
        descriptor = _find_field_descriptor(TEST_DIF_32BIT_INST)
        assert descriptor.code == TEST_DIF_32BIT_INST

    def test_find_special_field(self) -> None:
        """Test finding a special function field descriptor."""
        descriptor = _find_field_descriptor(TEST_SPECIAL_DIF_MANUFACTURER)
        assert descriptor.code == TEST_SPECIAL_DIF_MANUFACTURER

    @pytest.mark.parametrize(
        "dif_code",
        [
            TEST_DIF_READOUT_SEL,
            TEST_SPECIAL_DIF_GLOBAL_READOUT,
        ],
    )
    def test_head_end_codes_raise(self, dif_code: int) -> None:
        """Test that codes only valid from head-end to meter raise ValueError."""
        with pytest.raises(ValueError, match="not found in DIF table"):
            _find_field_descriptor(dif_code)

    def test_lru_cache_works(self) -> None:
        """Test that LRU cache returns same object on repeated calls."""
        desc1 = _find_field_descriptor(TEST_DIF_32BIT_INST)
        desc2 = _find_field_descriptor(TEST_DIF_32BIT_INST)
        assert desc1 is desc2  # Same object from cache


# =============================================================================
# DIF Class Tests
# =============================================================================


@pytest.mark.unit
class TestDIF:
    """Tests for DIF base class."""

    @pytest.mark.parametrize(
        ("dif_code", "expected_type"),
        [
            (TEST_DIF_32BIT_INST, DataDIF),
            (TEST_DIF_NO_DATA, DataDIF),
            (TEST_SPECIAL_DIF_MANUFACTURER, SpecialDIF),
            (TEST_SPECIAL_DIF_IDLE_FILLER, SpecialDIF),
        ],
    )
    def test_factory_creates_correct_type(self, dif_code: int, expected_type: type) -> None:
        """Test that DIF factory creates correct subclass based on DIF code."""
        dif = DIF(dif_code)
        assert isinstance(dif, expected_type)

    def test_chain_position_is_zero(self) -> None:
        """Test that DIF has chain_position=0."""
        dif = DIF(TEST_DIF_32BIT_INST)
        assert dif.chain_position == 0

    def test_prev_field_is_none(self) -> None:
        """Test that DIF has no prev_field."""
        dif = DIF(TEST_DIF_32BIT_INST)
        assert dif.prev_field is None

    def test_create_next_dife(self) -> None:
        """Test creating next DIFE in chain."""
        dif = DIF(TEST_DIF_32BIT_INST_EXT)  # With extension bit
        dife = dif.create_next_dife(TEST_DIFE_STORAGE_1)
        assert isinstance(dife, DataDIFE)
        assert dife.chain_position == 1
        assert dife.prev_field is dif
        assert dif.next_field is dife

    def test_from_bytes_single_dif(self) -> None:
        """Test parsing a DIF without extension."""
        chain = DIF.from_bytes(_reader(bytes([TEST_DIF_BCD8_INST, 0x06])))
        assert len(chain) == 1
        assert isinstance(chain[0], DataDIF)

    def test_from_bytes_with_difes(self) -> None:
        """Test parsing a DIF followed by DIFEs until the extension bit is clear."""
        chain = DIF.from_bytes(_reader(bytes([TEST_DIF_32BIT_INST_EXT, TEST_DIFE_STORAGE_1_EXT, TEST_DIFE_STORAGE_5])))
        assert len(chain) == 3
        assert isinstance(chain[1], DataDIFE)
        assert chain[2].last_field is True

    def test_from_bytes_truncated_raises(self) -> None:
        """Test that a DIF announcing a DIFE at the end of the payload raises ValueError."""
        with pytest.raises(ValueError, match="Expected exactly one byte for DIFE"):
            DIF.from_bytes(_reader(bytes([TEST_DIF_32BIT_INST_EXT])))


# =============================================================================
# DataDIF Class Tests
# =============================================================================


@pytest.mark.unit
class TestDataDIF:
    """Tests for DataDIF class."""

    @pytest.mark.parametrize(
        ("dif_code", "expected_support"),
        [
            (TEST_DIF_NO_DATA, DataRules.Supports.NONE),
            (TEST_DIF_32BIT_INST, DataRules.Supports.BCDF_4),
            (TEST_DIF_BCD8_INST, DataRules.Supports.A_4),
            (TEST_DIF_BCD6_ERR, DataRules.Supports.A_3),
        ],
    )
    def test_data_support_extracted(self, dif_code: int, expected_support: DataRules.Supports) -> None:
        """Test that data_support is extracted from the data field bits."""
        dif = DIF(dif_code)
        assert isinstance(dif, DataDIF)
        assert dif.data_support is expected_support

    @pytest.mark.parametrize(
        ("dif_code", "expected_function"),
        [
            (TEST_DIF_32BIT_INST, ValueFunction.CURRENT_VALUE),
            (TEST_DIF_32BIT_MAX, ValueFunction.MAXIMUM_VALUE),
            (TEST_DIF_32BIT_MIN, ValueFunction.MINIMUM_VALUE),
            (TEST_DIF_32BIT_ERR, ValueFunction.VALUE_DURING_ERROR_STATE),
        ],
    )
    def test_value_function_from_dif(self, dif_code: int, expected_function: ValueFunction) -> None:
        """Test that value_function is correctly extracted from DIF."""
        dif = DIF(dif_code)
        assert isinstance(dif, DataDIF)
        assert dif.value_function == expected_function

    @pytest.mark.parametrize(
        ("dif_code", "expected_storage"),
        [
            (TEST_DIF_32BIT_INST, 0),  # Storage bit 6 = 0
            (TEST_DIF_32BIT_INST_STORAGE1, 1),  # Storage bit 6 = 1
        ],
    )
    def test_storage_number_from_dif_only(self, dif_code: int, expected_storage: int) -> None:
        """Test storage number extraction from DIF alone (no DIFEs)."""
        dif = DIF(dif_code)
        assert isinstance(dif, DataDIF)
        assert dif.storage_number == expected_storage

    @pytest.mark.parametrize(
        ("dif_code", "expected_last_field"),
        [
            (TEST_DIF_32BIT_INST, True),  # No extension bit
            (TEST_DIF_32BIT_INST_EXT, False),  # Extension bit set
        ],
    )
    def test_last_field_detection(self, dif_code: int, expected_last_field: bool) -> None:
        """Test last_field detection based on extension bit."""
        dif = DIF(dif_code)
        assert isinstance(dif, DataDIF)
        assert dif.last_field is expected_last_field


# =============================================================================
# SpecialDIF Class Tests
# =============================================================================


@pytest.mark.unit
class TestSpecialDIF:
    """Tests for SpecialDIF class."""

    @pytest.mark.parametrize(
        ("dif_code", "expected_function"),
        [
            (TEST_SPECIAL_DIF_MANUFACTURER, DIFSpecialFunction.MANUFACTURER_DATA_HEADER),
            (
                TEST_SPECIAL_DIF_MORE_RECORDS,
                DIFSpecialFunction.MANUFACTURER_DATA_HEADER | DIFSpecialFunction.MORE_RECORDS_FOLLOW,
            ),
            (TEST_SPECIAL_DIF_IDLE_FILLER, DIFSpecialFunction.IDLE_FILLER),
        ],
    )
    def test_special_function_extraction(self, dif_code: int, expected_function: DIFSpecialFunction) -> None:
        """Test that special_function is correctly extracted from SpecialDIF codes."""
        dif = DIF(dif_code)
        assert isinstance(dif, SpecialDIF)
        assert dif.special_function == expected_function

    def test_special_dif_is_last_field(self) -> None:
        """Test that special DIFs never announce DIFEs."""
        dif = DIF(TEST_SPECIAL_DIF_MANUFACTURER)
        assert dif.last_field is True

        with pytest.raises(ValueError, match="Cannot extend.*past last field"):
            dif.create_next_dife(TEST_DIFE_STORAGE_1)


# =============================================================================
# DIFE Class Tests
# =============================================================================


@pytest.mark.unit
class TestDIFE:
    """Tests for DIFE base class."""

    @pytest.mark.parametrize(
        ("dife_code", "expected_type"),
        [
            (TEST_DIFE_STORAGE_1, DataDIFE),
            (TEST_FINAL_DIFE, FinalDIFE),
        ],
    )
    def test_factory_creates_correct_type(self, dife_code: int, expected_type: type) -> None:
        """Test that DIFE factory creates FinalDIFE for 0x00 and DataDIFE otherwise."""
        dif = DIF(TEST_DIF_32BIT_INST_EXT)
        dife = dif.create_next_dife(dife_code)
        assert isinstance(dife, expected_type)

    def test_chain_position_increment(self) -> None:
        """Test that chain_position increments correctly."""
        dif = DIF(TEST_DIF_32BIT_INST_EXT)
        dife1 = DIFE(TEST_DIFE_STORAGE_1_EXT, dif)
        dife2 = DIFE(TEST_DIFE_STORAGE_1, dife1)
        assert dife1.chain_position == 1
        assert dife2.chain_position == 2

    def test_cannot_extend_last_field(self) -> None:
        """Test that extending a last_field raises ValueError."""
        dif = DIF(TEST_DIF_32BIT_INST)  # No extension bit
        with pytest.raises(ValueError, match="Cannot extend.*past last field"):
            dif.create_next_dife(TEST_DIFE_STORAGE_1)

    def test_link_dife_already_in_chain_raises(self) -> None:
        """Test that linking a DIFE already in a chain raises ValueError."""
        dif = DIF(TEST_DIF_32BIT_INST_EXT)
        dife1 = DIFE(TEST_DIFE_STORAGE_1_EXT, dif)
        dife2 = DIFE(TEST_DIFE_STORAGE_1, dife1)

        assert dife1.next_field is dife2

        with pytest.raises(ValueError, match="Previous field already has a next field assigned"):
            DIFE(TEST_DIFE_STORAGE_5, dife1)


# =============================================================================
# DataDIFE Class Tests
# =============================================================================


@pytest.mark.unit
class TestDataDIFE:
    """Tests for DataDIFE class."""

    def test_extract_storage_number_position_1(self) -> None:
        """Test storage number extraction at chain position 1."""
        dif = DIF(TEST_DIF_32BIT_INST_EXT)
        dife = DIFE(TEST_DIFE_STORAGE_FULL, dif)
        assert isinstance(dife, DataDIFE)
        # Position 1: raw_bits=15, shift by 1 (DIF storage bit)
        assert dife.storage_number == 30

    def test_extract_storage_number_position_2(self) -> None:
        """Test storage number extraction at chain position 2."""
        dif = DIF(TEST_DIF_32BIT_INST_EXT)
        dife1 = DIFE(TEST_DIFE_STORAGE_1_EXT, dif)
        dife2 = DIFE(TEST_DIFE_STORAGE_FULL, dife1)
        assert isinstance(dife2, DataDIFE)
        # Position 2: raw_bits=15, shift by (4*1 + 1) = 5
        assert dife2.storage_number == 480

    def test_extract_tariff(self) -> None:
        """Test tariff extraction."""
        dif = DIF(TEST_DIF_32BIT_INST_EXT)
        dife = DIFE(TEST_DIFE_TARIFF_FULL, dif)
        assert isinstance(dife, DataDIFE)
        assert dife.tariff == 3

    def test_extract_subunit(self) -> None:
        """Test subunit extraction."""
        dif = DIF(TEST_DIF_32BIT_INST_EXT)
        dife = DIFE(TEST_DIFE_SUBUNIT_FULL, dif)
        assert isinstance(dife, DataDIFE)
        assert dife.subunit == 1

    def test_maximum_chain_length_exceeded(self) -> None:
        """Test that exceeding max chain length raises ValueError."""
        current: DIF = DIF(TEST_DIF_32BIT_INST_EXT)
        for _ in range(TEST_DIFE_MAXIMUM_CHAIN_LENGTH):
            current = current.create_next_dife(TEST_DIFE_STORAGE_1_EXT)

        with pytest.raises(ValueError, match="Exceeded maximum DIFE chain length"):
            current.create_next_dife(TEST_DIFE_STORAGE_1)

    def test_final_dife_after_maximum_chain(self) -> None:
        """Test that a final DIFE is accepted after the maximum number of DIFEs."""
        current: DIF = DIF(TEST_DIF_32BIT_INST_EXT)
        for _ in range(TEST_DIFE_MAXIMUM_CHAIN_LENGTH):
            current = current.create_next_dife(TEST_DIFE_STORAGE_1_EXT)

        final = current.create_next_dife(TEST_FINAL_DIFE)
        assert isinstance(final, FinalDIFE)
        assert final.last_field is True
