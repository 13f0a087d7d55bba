"""Tests for GGA encoding."""

from datetime import datetime, timezone

import pytest

from rtklink.gnss import FixQuality, Position
from rtklink.nmea import FALLBACK_GGA, GgaDefaults, GgaEncoder, is_valid_gga, parse_gga
from rtklink.nmea.encoder import format_coordinate

_NOW = datetime(2024, 3, 1, 9, 27, 50, 123000, tzinfo=timezone.utc)


def _encoder(defaults: GgaDefaults | None = None) -> GgaEncoder:
    return GgaEncoder(defaults, clock=lambda: _NOW)


def _fields(sentence: str) -> list[str]:
    return sentence[1 : sentence.index("*")].split(",")


class TestFormatCoordinate:
    """Tests for degree-minute rendering."""

    def test_latitude(self):
        assert format_coordinate(53.361337, 2) == "5321.6802200"

    def test_longitude_zero_padded(self):
        assert format_coordinate(6.50562, 3) == "00630.3372000"

    def test_sign_ignored(self):
        assert format_coordinate(-6.50562, 3) == format_coordinate(6.50562, 3)

    def test_minutes_carry_into_degrees(self):
        assert format_coordinate(47.99999999999, 2) == "4800.0000000"

    def test_small_minutes_padded(self):
        assert format_coordinate(0.1, 2) == "0006.0000000"


class TestGgaEncoder:
    """Tests for GgaEncoder.encode."""

    def test_sentence_layout(self):
        position = Position(
            latitude=53.361337,
            longitude=-6.50562,
            altitude_meters=61.7,
            fix_quality=FixQuality.RTK_FIXED,
            satellites_used=12,
            hdop=0.6,
            geoid_height_meters=55.2,
        )
        sentence = _encoder().encode(position)
        assert sentence.endswith("\r\n")
        assert is_valid_gga(sentence.strip())
        assert _fields(sentence) == [
            "GPGGA", "092750.123", "5321.6802200", "N", "00630.3372000", "W",
            "4", "12", "0.6", "61.7", "M", "55.2", "M", "", "",
        ]

    def test_decodes_back_to_same_position(self):
        position = Position(latitude=-33.935383, longitude=151.2076, fix_quality=FixQuality.GPS)
        decoded = parse_gga(_encoder().encode(position))
        assert decoded is not None
        assert decoded.latitude_degrees == pytest.approx(-33.935383)
        assert decoded.longitude_degrees == pytest.approx(151.2076)

    def test_missing_values_use_defaults(self):
        sentence = _encoder().encode(Position(latitude=1.0, longitude=2.0))
        fields = _fields(sentence)
        assert fields[6] == "1"
        assert fields[7] == "08"
        assert fields[8] == "1.0"
        assert fields[9] == "0.0"
        assert fields[11] == "0.0"

    def test_zero_values_treated_as_unknown(self):
        position = Position(latitude=1.0, longitude=2.0, satellites_used=0, hdop=0.0)
        fields = _fields(_encoder().encode(position))
        assert fields[6] == "1"
        assert fields[7] == "08"
        assert fields[8] == "1.0"

    def test_custom_defaults(self):
        defaults = GgaDefaults(fix_quality=2, satellites=5, hdop=2.5)
        fields = _fields(_encoder(defaults).encode(Position(latitude=1.0, longitude=2.0)))
        assert fields[6:9] == ["2", "05", "2.5"]

    def test_missing_coordinates_fall_back(self):
        position = Position(latitude=None, longitude=2.0)  # type: ignore[arg-type]
        assert _encoder().encode(position) == FALLBACK_GGA

    def test_non_numeric_coordinates_fall_back(self):
        position = Position(latitude="north", longitude=2.0)  # type: ignore[arg-type]
        assert _encoder().encode(position) == FALLBACK_GGA


class TestIsValidGga:
    """Tests for the caster-side GGA check."""

    def test_fallback_is_valid(self):
        assert is_valid_gga(FALLBACK_GGA.strip())

    def test_gn_talker_accepted(self):
        sentence = "$GNGGA,123519.00,3356.123,S,15112.456,W,4,12,0.5,100.0,M,20.0,M,1.2,0001*5E"
        assert is_valid_gga(sentence)

    def test_other_talker_rejected(self):
        sentence = "$XXGGA,092750.000,5321.6802,N,00630.3372,W,1,8,1.03,61.7,M,55.2,M,,*61"
        assert not is_valid_gga(sentence)

    def test_empty_coordinates_rejected(self):
        assert not is_valid_gga("$GPGGA,092750.000,,,,,0,00,,,,,,,*71")

    def test_bad_checksum_rejected(self):
        assert not is_valid_gga(FALLBACK_GGA.strip()[:-2] + "00")
