"""GSA sentence decoder.

GSA (GNSS DOP and Active Satellites) lists the satellites used in the current
solution along with the dilution-of-precision values.

GSA Sentence Format:
    $GPGSA,A,3,04,05,,09,12,,,24,,,,,2.5,1.3,2.1*39
           | | |                    | |   |   |
           | | |                    | |   |   +-- VDOP
           | | |                    | |   +-- HDOP
           | | |                    | +-- PDOP
           | | +--------------------+-- Up to 12 PRNs (fields 3-14)
           | +-- Fix type (1 = none, 2 = 2D, 3 = 3D)
           +-- Selection mode (M/A)
"""

from rtklink.nmea.fields import (
    extract_fields,
    field_at,
    parse_float_field,
    parse_int_field,
    parse_string_field,
)
from rtklink.nmea.types import GSAData

_MINIMUM_FIELD_COUNT = 3

_FIRST_PRN_FIELD = 3
_LAST_PRN_FIELD = 14


def _extract_prns(fields: list[str]) -> list[int]:
    prns = []
    for index in range(_FIRST_PRN_FIELD, _LAST_PRN_FIELD + 1):
        prn = parse_int_field(field_at(fields, index).strip())
        if prn is not None:
            prns.append(prn)
    return prns


def build_gsa(fields: list[str]) -> GSAData | None:
    """Construct a GSAData object from the fields of a checked sentence.

    Receivers pad unused PRN slots with empty fields; those are skipped.
    A missing fix type is reported as 1 (no fix).
    """
    if len(fields) < _MINIMUM_FIELD_COUNT:
        return None

    return GSAData(
        mode=parse_string_field(fields[1]),
        fix_type=parse_int_field(fields[2]) or 1,
        satellite_prns=_extract_prns(fields),
        pdop=parse_float_field(field_at(fields, 15)),
        hdop=parse_float_field(field_at(fields, 16)),
        vdop=parse_float_field(field_at(fields, 17)),
    )


def parse_gsa(sentence: str) -> GSAData | None:
    """Parse a single GSA sentence, or return None if it is not one."""
    fields = extract_fields(sentence, "GSA")
    if fields is None:
        return None
    result = build_gsa(fields)
    if result is not None:
        result.raw = sentence.strip()
        result.talker = fields[0][:2]
    return result
