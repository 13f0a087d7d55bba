"""GNSSReceiver: decoded NMEA applied to position and satellite state.

One call to ``feed`` processes one chunk of the device stream:

    bytes -> SentenceDecoder.feed() -> [ParsedSentence, ...]
                                          |
               GGA/RMC -> PositionStore   |   GSA/GSV -> SatelliteTracker
                                          v
           at most one position_updated and one satellites_updated,
           plus one sentence_statistics per non-empty batch

Notifications are coalesced per batch: ten GGA sentences in one chunk still
produce a single position update carrying the final state.
"""

import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone

from rtklink.events import Channel
from rtklink.gnss.position import PositionStore
from rtklink.gnss.satellites import SatelliteTracker
from rtklink.gnss.types import Position, PositionUpdate, SatelliteRecord
from rtklink.nmea.decoder import SentenceDecoder, SentenceStatistics
from rtklink.nmea.types import GGAData, GSAData, GSVData, ParsedSentence, RMCData

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class GNSSReceiver:
    """Turns the raw receiver stream into position and satellite state.

    Args:
        decoder: Sentence decoder; a fresh one is created when omitted.
        clock: Source of the UTC timestamp attached to position updates.

    Example:
        >>> receiver = GNSSReceiver()
        >>> receiver.position_updated.subscribe(print)
        >>> receiver.feed(b"$GPGGA,092750.000,5321.6802,N,00630.3372,W,1,8,1.03,61.7,M,55.2,M,,*76\\r\\n")
    """

    def __init__(
        self,
        decoder: SentenceDecoder | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.decoder = decoder or SentenceDecoder(clock=time.monotonic)
        self.positions = PositionStore()
        self.tracker = SatelliteTracker()
        self._clock = clock

        self.position_updated: Channel[PositionUpdate] = Channel("position_updated")
        self.satellites_updated: Channel[list[SatelliteRecord]] = Channel(
            "satellites_updated"
        )
        self.sentence_statistics: Channel[SentenceStatistics] = Channel(
            "sentence_statistics"
        )

    @property
    def position(self) -> Position | None:
        position = self.positions.position
        return position.copy() if position is not None else None

    @property
    def satellites(self) -> list[SatelliteRecord]:
        return self.tracker.satellites

    @property
    def statistics(self) -> SentenceStatistics:
        return self.decoder.statistics.copy()

    def feed(self, data: bytes | str) -> list[ParsedSentence]:
        """Decode a chunk of the stream and apply it.

        Returns:
            The sentences decoded from this chunk.
        """
        sentences = self.decoder.feed(data)

        position_changed = False
        satellites_changed = False
        for sentence in sentences:
            if isinstance(sentence, GGAData):
                position_changed |= self.positions.apply_gga(sentence)
            elif isinstance(sentence, RMCData):
                position_changed |= self.positions.apply_rmc(sentence)
            elif isinstance(sentence, GSVData):
                satellites_changed |= self.tracker.apply_gsv(sentence)
            elif isinstance(sentence, GSAData):
                satellites_changed |= self.tracker.apply_gsa(sentence)

        if position_changed:
            self.position_updated.emit(
                PositionUpdate(position=self.position, timestamp=self._clock())
            )
        if satellites_changed:
            self.satellites_updated.emit(self.satellites)
        if sentences:
            self.sentence_statistics.emit(self.statistics)

        return sentences

    def reset(self) -> None:
        """Forget the position, satellites, buffered text and statistics."""
        self.decoder.reset()
        self.positions.reset()
        self.tracker.reset()
        logger.debug("Receiver state reset")
