"""Streaming NMEA 0183 decoder.

Receivers deliver NMEA as a byte stream whose chunks do not line up with
sentence boundaries. ``SentenceDecoder`` buffers the stream, splits it on
CR, LF or CRLF, and decodes every complete line into one ``ParsedSentence``
variant. The incomplete tail is kept until its terminator arrives.

Decoding Pipeline (per line):
    "$GNGGA,...*5B"
        |
        +-- check_sentence()      reject empty / malformed / bad checksum
        +-- split_fields()        ["GNGGA", "092750.000", ...]
        +-- split_identifier()    ("GN", "GGA")
        +-- _DECODERS["GGA"]      build_gga(fields) -> GGAData
        |                         (unknown kind -> UnknownSentence)
        +-- data_rate, raw, talker attached

A rejected line never aborts the batch; it is logged and skipped.
"""

import logging
import re
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from rtklink.nmea.checksum import check_sentence
from rtklink.nmea.fields import KNOWN_TALKER_IDS, split_fields, split_identifier
from rtklink.nmea.gga import build_gga
from rtklink.nmea.gsa import build_gsa
from rtklink.nmea.gst import build_gst
from rtklink.nmea.gsv import build_gsv
from rtklink.nmea.rmc import build_rmc
from rtklink.nmea.types import ParsedSentence, UnknownSentence
from rtklink.nmea.vtg import build_vtg

logger = logging.getLogger(__name__)

_LINE_TERMINATOR = re.compile(r"\r\n|\r|\n")

_DECODERS: dict[str, Callable[[list[str]], ParsedSentence | None]] = {
    "GGA": build_gga,
    "GSA": build_gsa,
    "GSV": build_gsv,
    "RMC": build_rmc,
    "GST": build_gst,
    "VTG": build_vtg,
}

SENTENCE_KINDS = (*_DECODERS, UnknownSentence.kind)


def _empty_counts() -> dict[str, int]:
    return dict.fromkeys(SENTENCE_KINDS, 0)


@dataclass
class SentenceStatistics:
    """Running per-kind sentence counts.

    Attributes:
        counts: Decoded sentences per kind, including "UNKNOWN".
        rejected: Lines that failed validation or decoding.
        data_rate: Rate attached to the most recent sentence.
        last_sentence_time: Monotonic time of the most recent sentence.
    """

    counts: dict[str, int] = field(default_factory=_empty_counts)
    rejected: int = 0
    data_rate: float | None = None
    last_sentence_time: float | None = None

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    def copy(self) -> "SentenceStatistics":
        return SentenceStatistics(
            counts=dict(self.counts),
            rejected=self.rejected,
            data_rate=self.data_rate,
            last_sentence_time=self.last_sentence_time,
        )


class SentenceDecoder:
    """Buffered decoder turning a raw NMEA stream into typed records.

    Args:
        clock: Monotonic time source in seconds, used for ``data_rate``.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._buffer = ""
        self._statistics = SentenceStatistics()

    @property
    def statistics(self) -> SentenceStatistics:
        return self._statistics

    @property
    def pending(self) -> str:
        """Buffered text still waiting for a line terminator."""
        return self._buffer

    def feed(self, data: bytes | str) -> list[ParsedSentence]:
        """Append a chunk of the stream and decode every completed line.

        Args:
            data: Raw bytes (decoded as UTF-8, undecodable bytes dropped)
                or text.

        Returns:
            Decoded records in stream order. Rejected lines are omitted.
        """
        if isinstance(data, (bytes, bytearray)):
            data = bytes(data).decode("utf-8", errors="ignore")

        lines = _LINE_TERMINATOR.split(self._buffer + data)
        # The last element has not seen its terminator yet
        self._buffer = lines.pop()

        results = []
        for line in lines:
            line = line.strip()
            if not line:
                continue
            sentence = self.decode(line)
            if sentence is not None:
                results.append(sentence)
        return results

    def decode(self, sentence: str) -> ParsedSentence | None:
        """Validate and decode one sentence, without line terminator.

        Returns:
            The typed record, or None if the sentence is rejected.
        """
        reason = check_sentence(sentence)
        if reason is not None:
            logger.debug("Rejected NMEA sentence (%s): %r", reason, sentence)
            self._statistics.rejected += 1
            return None

        fields = split_fields(sentence)
        talker, kind = split_identifier(fields[0])
        if talker not in KNOWN_TALKER_IDS:
            logger.debug("Unrecognised talker %r in %r", talker, sentence)

        decoder = _DECODERS.get(kind)
        if decoder is None:
            result: ParsedSentence | None = UnknownSentence(
                sentence_type=kind, fields=fields[1:]
            )
        else:
            try:
                result = decoder(fields)
            except (ValueError, IndexError):
                logger.warning("Failed to decode %s sentence: %r", kind, sentence)
                self._statistics.rejected += 1
                return None

        if result is None:
            logger.debug("Too few fields in %s sentence: %r", kind, sentence)
            self._statistics.rejected += 1
            return None

        result.raw = sentence
        result.talker = talker
        result.data_rate = self._update_rate()
        self._statistics.counts[result.kind] += 1
        return result

    def _update_rate(self) -> float | None:
        now = self._clock()
        last = self._statistics.last_sentence_time
        rate = None
        if last is not None and now > last:
            rate = 1.0 / (now - last)
        self._statistics.last_sentence_time = now
        self._statistics.data_rate = rate
        return rate

    def reset(self) -> None:
        """Drop buffered text and clear statistics."""
        self._buffer = ""
        self._statistics = SentenceStatistics()
