"""NMEA data types for parsed sentences.

Every decoded sentence is one variant of the ``ParsedSentence`` union. The
variant is selected by the 3-letter sentence kind; the talker ID is kept on
the record but does not influence decoding.

Design Decisions:
    1. Optional fields (X | None): NMEA fields may be empty, indicated by
       consecutive commas. Using None distinguishes "no data received" from
       "measured zero".

    2. Separate valid flag: ``valid`` indicates navigation validity, NOT
       parse validity. A record only exists if its sentence passed the
       checksum; a record with valid=False is a well-formed "no fix" report.

    3. Shared metadata (raw, talker, data_rate) is keyword-only so that each
       variant keeps its own positional field order.
"""

from dataclasses import dataclass, field
from typing import ClassVar


@dataclass
class NMEASentence:
    """Metadata shared by every decoded sentence.

    Attributes:
        raw: The sentence text as received, without line terminator.
        talker: Two-character talker ID (e.g. "GP", "GN", "BD").
        data_rate: Sentences per second, derived from the interval since the
            previous decoded sentence. None for the first sentence.
    """

    kind: ClassVar[str] = ""

    raw: str = field(default="", kw_only=True)
    talker: str = field(default="", kw_only=True)
    data_rate: float | None = field(default=None, kw_only=True)


@dataclass
class GGAData(NMEASentence):
    """Parsed GGA (Global Positioning System Fix Data) sentence.

    Attributes:
        utc_time: UTC timestamp in HHMMSS.ss format. None if empty.
        latitude_degrees: Latitude in decimal degrees, positive=North.
        longitude_degrees: Longitude in decimal degrees, positive=East.
        fix_quality: Fix quality indicator (0-8), 0 when empty:
            0 = Invalid, 1 = GPS, 2 = DGPS, 3 = PPS, 4 = RTK Fixed,
            5 = RTK Float, 6 = Dead reckoning, 7 = Manual, 8 = Simulation
        num_satellites: Satellites used in the solution.
        horizontal_dilution_of_precision: HDOP.
        altitude_meters: Altitude above mean sea level.
        geoid_height_meters: Geoid separation above the WGS84 ellipsoid.
        dgps_age_seconds: Age of differential corrections.
        dgps_station_id: Differential reference station ID.
        valid: True only if fix_quality > 0.
    """

    kind: ClassVar[str] = "GGA"

    utc_time: str | None
    latitude_degrees: float | None
    longitude_degrees: float | None
    fix_quality: int
    num_satellites: int | None
    horizontal_dilution_of_precision: float | None
    altitude_meters: float | None
    geoid_height_meters: float | None
    dgps_age_seconds: float | None
    dgps_station_id: str | None
    valid: bool


@dataclass
class GSAData(NMEASentence):
    """Parsed GSA (DOP and Active Satellites) sentence.

    Attributes:
        mode: Selection mode, 'M' = manual, 'A' = automatic 2D/3D.
        fix_type: 1 = no fix, 2 = 2D, 3 = 3D.
        satellite_prns: PRNs used in the solution (blank slots skipped).
        pdop / hdop / vdop: Dilution of precision values.
    """

    kind: ClassVar[str] = "GSA"

    mode: str | None
    fix_type: int
    satellite_prns: list[int]
    pdop: float | None
    hdop: float | None
    vdop: float | None


@dataclass
class SatelliteInView:
    """One satellite tuple of a GSV sentence."""

    prn: int
    elevation_degrees: int | None
    azimuth_degrees: int | None
    snr_dbhz: int | None


@dataclass
class GSVData(NMEASentence):
    """Parsed GSV (Satellites in View) sentence.

    A complete satellite picture is spread over ``total_messages`` sentences;
    each carries up to four ``SatelliteInView`` tuples.
    """

    kind: ClassVar[str] = "GSV"

    total_messages: int
    message_number: int
    satellites_in_view: int | None
    satellites: list[SatelliteInView]

    @property
    def completes_group(self) -> bool:
        """True for the last message of its group."""
        return self.message_number == self.total_messages


@dataclass
class RMCData(NMEASentence):
    """Parsed RMC (Recommended Minimum Navigation Information) sentence.

    Attributes:
        utc_time: UTC time as HH:MM:SS(.ss), None if empty.
        status: 'A' = active (valid), 'V' = void.
        latitude_degrees / longitude_degrees: Decimal degrees.
        speed_knots: Speed over ground.
        course_degrees: Course over ground, true.
        date: ISO date (YYYY-MM-DD), assuming the 21st century.
        magnetic_variation_degrees: Magnetic variation.
        magnetic_variation_direction: 'E' or 'W'.
        mode: FAA mode indicator (A/D/E/N...), NMEA 2.3+.
        valid: True only if status is 'A'.
    """

    kind: ClassVar[str] = "RMC"

    utc_time: str | None
    status: str | None
    latitude_degrees: float | None
    longitude_degrees: float | None
    speed_knots: float | None
    course_degrees: float | None
    date: str | None
    magnetic_variation_degrees: float | None
    magnetic_variation_direction: str | None
    mode: str | None
    valid: bool


@dataclass
class GSTData(NMEASentence):
    """Parsed GST (Pseudorange Error Statistics) sentence.

    All error values are one-sigma, in meters, except the orientation of the
    error ellipse which is in degrees from true north.
    """

    kind: ClassVar[str] = "GST"

    utc_time: str | None
    rms: float | None
    semi_major_error: float | None
    semi_minor_error: float | None
    orientation_degrees: float | None
    latitude_error: float | None
    longitude_error: float | None
    height_error: float | None


@dataclass
class VTGData(NMEASentence):
    """Parsed VTG (Track Made Good and Ground Speed) sentence.

    Attributes:
        track_true_degrees: Track relative to true north. None when
            stationary (no heading without movement).
        track_magnetic_degrees: Track relative to magnetic north.
        speed_knots: Ground speed in knots.
        speed_kilometers_per_hour: Ground speed in km/h.
        speed_meters_per_second: Derived from km/h.
        mode: FAA mode indicator, None on pre-2.3 receivers.
        valid: True only if mode is present and not 'N'.
    """

    kind: ClassVar[str] = "VTG"

    track_true_degrees: float | None
    track_magnetic_degrees: float | None
    speed_knots: float | None
    speed_kilometers_per_hour: float | None
    speed_meters_per_second: float | None
    mode: str | None
    valid: bool


@dataclass
class UnknownSentence(NMEASentence):
    """A checksum-valid sentence of a kind without a dedicated decoder.

    Attributes:
        sentence_type: Identifier with the talker stripped (e.g. "ZDA").
        fields: Data fields, identifier excluded.
    """

    kind: ClassVar[str] = "UNKNOWN"

    sentence_type: str
    fields: list[str]


ParsedSentence = (
    GGAData | GSAData | GSVData | RMCData | GSTData | VTGData | UnknownSentence
)
