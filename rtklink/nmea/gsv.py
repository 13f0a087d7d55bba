"""GSV sentence decoder.

GSV (GNSS Satellites in View) reports elevation, azimuth and signal strength
for every tracked satellite. A receiver tracking more than four satellites
splits the report over several sentences, the "group".

GSV Sentence Format:
    $GPGSV,3,1,11,03,03,111,00,04,15,270,00,06,01,010,00,13,06,292,00*74
           | | |  |  |  |   |  +-- next satellite tuple ...
           | | |  |  |  |   +-- SNR (dB-Hz, empty when not tracked)
           | | |  |  |  +-- Azimuth (degrees, 0-359)
           | | |  |  +-- Elevation (degrees, 0-90)
           | | |  +-- PRN
           | | +-- Satellites in view
           | +-- Message number (1-based)
           +-- Total messages in the group

Each message carries up to four tuples at fields [4+4i .. 7+4i].
A PRN of 0 (or an empty PRN) marks an unused slot and is skipped.
"""

from rtklink.nmea.fields import (
    extract_fields,
    parse_int_field,
)
from rtklink.nmea.types import GSVData, SatelliteInView

_MINIMUM_FIELD_COUNT = 4

_FIRST_SATELLITE_FIELD = 4
_FIELDS_PER_SATELLITE = 4
_MAXIMUM_SATELLITES_PER_MESSAGE = 4


def _extract_satellites(fields: list[str]) -> list[SatelliteInView]:
    """Collect the satellite tuples of one message.

    Tuples that are cut short by the end of the sentence are ignored, since
    some receivers omit trailing values of the last tuple.
    """
    count = min(
        _MAXIMUM_SATELLITES_PER_MESSAGE,
        (len(fields) - _FIRST_SATELLITE_FIELD) // _FIELDS_PER_SATELLITE,
    )

    satellites = []
    for slot in range(count):
        base = _FIRST_SATELLITE_FIELD + slot * _FIELDS_PER_SATELLITE
        if base + 3 >= len(fields):
            continue
        prn = parse_int_field(fields[base])
        if not prn:
            continue
        satellites.append(
            SatelliteInView(
                prn=prn,
                elevation_degrees=parse_int_field(fields[base + 1]),
                azimuth_degrees=parse_int_field(fields[base + 2]),
                snr_dbhz=parse_int_field(fields[base + 3]),
            )
        )
    return satellites


def build_gsv(fields: list[str]) -> GSVData | None:
    """Construct a GSVData object from the fields of a checked sentence.

    Missing message counters default to 1, so a lone malformed message
    still forms a complete single-message group.
    """
    if len(fields) < _MINIMUM_FIELD_COUNT:
        return None

    return GSVData(
        total_messages=parse_int_field(fields[1]) or 1,
        message_number=parse_int_field(fields[2]) or 1,
        satellites_in_view=parse_int_field(fields[3]),
        satellites=_extract_satellites(fields),
    )


def parse_gsv(sentence: str) -> GSVData | None:
    """Parse a single GSV sentence, or return None if it is not one."""
    fields = extract_fields(sentence, "GSV")
    if fields is None:
        return None
    result = build_gsv(fields)
    if result is not None:
        result.raw = sentence.strip()
        result.talker = fields[0][:2]
    return result
