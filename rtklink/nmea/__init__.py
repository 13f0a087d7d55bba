"""NMEA 0183 decoding and GGA encoding."""

from rtklink.nmea.checksum import calculate_checksum, validate_checksum
from rtklink.nmea.decoder import SENTENCE_KINDS, SentenceDecoder, SentenceStatistics
from rtklink.nmea.encoder import FALLBACK_GGA, GgaDefaults, GgaEncoder, is_valid_gga
from rtklink.nmea.gga import parse_gga
from rtklink.nmea.gsa import parse_gsa
from rtklink.nmea.gst import parse_gst
from rtklink.nmea.gsv import parse_gsv
from rtklink.nmea.rmc import parse_rmc
from rtklink.nmea.types import (
    GGAData,
    GSAData,
    GSTData,
    GSVData,
    NMEASentence,
    ParsedSentence,
    RMCData,
    SatelliteInView,
    UnknownSentence,
    VTGData,
)
from rtklink.nmea.vtg import parse_vtg

__all__ = [
    "FALLBACK_GGA",
    "GGAData",
    "GSAData",
    "GSTData",
    "GSVData",
    "GgaDefaults",
    "GgaEncoder",
    "NMEASentence",
    "ParsedSentence",
    "RMCData",
    "SENTENCE_KINDS",
    "SatelliteInView",
    "SentenceDecoder",
    "SentenceStatistics",
    "UnknownSentence",
    "VTGData",
    "calculate_checksum",
    "is_valid_gga",
    "parse_gga",
    "parse_gsa",
    "parse_gst",
    "parse_gsv",
    "parse_rmc",
    "parse_vtg",
    "validate_checksum",
]
