"""Tests for RTCM3 frame validation."""

import pytest

from rtklink.rtcm import inspect_frame, is_sourcetable, is_valid_frame

# Message 1005 (reference station ARP), 19-byte payload, CRC not checked
FRAME_1005 = bytes([0xD3, 0x00, 0x13, 0x3E, 0xD0, 0x00]) + bytes(16) + bytes(3)
FRAME_1077 = bytes([0xD3, 0x01, 0x00, 0x43, 0x50]) + bytes(259)


class TestInspectFrame:
    """Tests for inspect_frame function."""

    def test_message_1005(self):
        info = inspect_frame(FRAME_1005)
        assert info.valid is True
        assert info.length == 19
        assert info.message_type == 1005

    def test_ten_bit_length(self):
        info = inspect_frame(FRAME_1077)
        assert info.valid is True
        assert info.length == 256
        assert info.message_type == 1077

    def test_reserved_bits_ignored_in_length(self):
        info = inspect_frame(bytes([0xD3, 0xFC, 0x13, 0x3E, 0xD0, 0x00]))
        assert info.valid is True
        assert info.length == 19

    def test_maximum_length(self):
        info = inspect_frame(bytes([0xD3, 0x03, 0xFF, 0x3E, 0xD0, 0x00]))
        assert info.valid is True
        assert info.length == 1023

    @pytest.mark.parametrize("length_byte", [0x00, 0x02])
    def test_length_below_minimum_invalid(self, length_byte):
        info = inspect_frame(bytes([0xD3, 0x00, length_byte, 0x3E, 0xD0, 0x00]))
        assert info.valid is False
        assert info.message_type is None

    def test_empty_buffer_invalid(self):
        assert inspect_frame(b"").valid is False

    def test_wrong_preamble_invalid(self):
        assert inspect_frame(b"ICY 200 OK\r\n").valid is False

    def test_short_buffer_with_preamble_accepted(self):
        info = inspect_frame(bytes([0xD3, 0x00]))
        assert info.valid is True
        assert info.length is None

    def test_type_unknown_before_six_bytes(self):
        info = inspect_frame(bytes([0xD3, 0x00, 0x13, 0x3E]))
        assert info.valid is True
        assert info.length == 19
        assert info.message_type is None

    def test_is_valid_frame(self):
        assert is_valid_frame(FRAME_1005)
        assert not is_valid_frame(b"$GPGGA")


class TestIsSourcetable:
    """Tests for sourcetable detection."""

    def test_sourcetable_header(self):
        assert is_sourcetable(b"SOURCETABLE 200 OK\r\nServer: NTRIP Caster\r\n")

    def test_stream_record(self):
        assert is_sourcetable(b"STR;MOUNT;Identifier;RTCM 3.2;1005(10);2;GPS;NET;DEU;")

    def test_rtcm_frame_is_not_sourcetable(self):
        assert not is_sourcetable(FRAME_1005)
