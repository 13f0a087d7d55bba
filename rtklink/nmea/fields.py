"""NMEA field parsing utilities.

NMEA fields are comma-separated and may be empty (consecutive commas indicate
missing data). These utilities handle empty fields gracefully by returning None,
allowing callers to distinguish "no data" from "zero value".
"""

from rtklink.nmea.checksum import check_sentence

# Talker IDs of the constellations receivers commonly report.
# Each 2-character prefix identifies the satellite system:
#   GP = GPS (USA)
#   GN = Multi-GNSS (combined solution)
#   GL = GLONASS (Russia)
#   GA = Galileo (Europe)
#   BD, GB = BeiDou (China)
#   GQ = QZSS (Japan)
#   GI = NavIC (India)
KNOWN_TALKER_IDS = ("GP", "GN", "GL", "GA", "BD", "GB", "GQ", "GI")

# Decimal places kept for converted coordinates (~0.1 m)
COORDINATE_DECIMALS = 6

LATITUDE_DEGREE_DIGITS = 2
LONGITUDE_DEGREE_DIGITS = 3


def split_fields(sentence: str) -> list[str]:
    """Split a checked sentence into its comma-separated fields.

    Field 0 is the sentence identifier (talker + kind), e.g.:
        "$GPGGA,092750.000,5321.6802,N*..." -> ["GPGGA", "092750.000", "5321.6802", "N"]
    """
    return sentence[1 : sentence.index("*")].split(",")


def split_identifier(identifier: str) -> tuple[str, str]:
    """Split a sentence identifier into (talker, kind).

    The talker is always the first two characters, whether or not it is one
    of ``KNOWN_TALKER_IDS``; the remainder is the sentence kind.

    Example:
        >>> split_identifier("GNGGA")
        ('GN', 'GGA')
        >>> split_identifier("PUBX")
        ('PU', 'BX')
    """
    return identifier[:2], identifier[2:]


def extract_fields(sentence: str, kind: str) -> list[str] | None:
    """Check a single sentence and return its fields if it is of ``kind``.

    Used by the standalone ``parse_*`` helpers, which accept one sentence
    (optionally with its line terminator) rather than a stream.
    """
    sentence = sentence.strip()
    if check_sentence(sentence) is not None:
        return None
    fields = split_fields(sentence)
    _, sentence_kind = split_identifier(fields[0])
    if sentence_kind != kind:
        return None
    return fields


def field_at(fields: list[str], index: int) -> str:
    """Return ``fields[index]`` or an empty string if the sentence is short."""
    if index < len(fields):
        return fields[index]
    return ""


def parse_float_field(value: str) -> float | None:
    """Parse a string field to float, returning None if empty or invalid.

    Example:
        >>> parse_float_field("545.4")
        545.4
        >>> parse_float_field("")  # empty field
        None
    """
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def parse_int_field(value: str) -> int | None:
    """Parse a string field to int, returning None if empty or invalid.

    Example:
        >>> parse_int_field("08")
        8
        >>> parse_int_field("")
        None
    """
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def parse_string_field(value: str) -> str | None:
    """Parse a string field, returning None if empty."""
    if not value:
        return None
    return value


def _parse_coordinate_parts(
    value: str, degree_digits: int
) -> tuple[int, float] | None:
    """Parse an NMEA coordinate into degrees and minutes components.

    Latitude uses a fixed 2-digit degree field (DDMM.MMMM) and longitude a
    fixed 3-digit one (DDDMM.MMMM); everything after is decimal minutes.

    Example:
        >>> _parse_coordinate_parts("5321.6802", 2)
        (53, 21.6802)
        >>> _parse_coordinate_parts("00630.3372", 3)
        (6, 30.3372)
    """
    if len(value) <= degree_digits:
        return None
    try:
        degrees = int(value[:degree_digits])
        minutes = float(value[degree_digits:])
    except ValueError:
        return None
    return degrees, minutes


def convert_to_decimal_degrees(
    value: str,
    direction: str,
    degree_digits: int,
) -> float | None:
    """Convert an NMEA coordinate to decimal degrees.

    The conversion is ``degrees + minutes / 60``, rounded to 6 decimals and
    negated for the southern and western hemispheres.

    Args:
        value: Coordinate in DDMM.MMMM or DDDMM.MMMM format
        direction: Hemisphere indicator ("N", "S", "E", or "W")
        degree_digits: Width of the degree field (2 for lat, 3 for lon)

    Returns:
        Decimal degrees, or None if the field is empty or unparseable

    Example:
        >>> convert_to_decimal_degrees("5321.6802", "N", 2)
        53.361337
        >>> convert_to_decimal_degrees("00630.3372", "W", 3)
        -6.50562
    """
    if not value:
        return None

    parts = _parse_coordinate_parts(value, degree_digits)
    if parts is None:
        return None

    degrees, minutes = parts
    decimal_degrees = round(degrees + minutes / 60.0, COORDINATE_DECIMALS)

    if direction in ("S", "W"):
        return -decimal_degrees

    return decimal_degrees


def parse_latitude(value: str, direction: str) -> float | None:
    """Convert a DDMM.MMMM latitude field to decimal degrees."""
    return convert_to_decimal_degrees(value, direction, LATITUDE_DEGREE_DIGITS)


def parse_longitude(value: str, direction: str) -> float | None:
    """Convert a DDDMM.MMMM longitude field to decimal degrees."""
    return convert_to_decimal_degrees(value, direction, LONGITUDE_DEGREE_DIGITS)
