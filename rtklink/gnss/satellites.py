"""SatelliteTracker: per-satellite state assembled across GSV and GSA.

GSV groups describe every satellite in view; GSA lists the ones used in the
fix. The two arrive independently, so the tracker keeps:

    - an in-progress table, cleared by message 1 of each GSV group
    - the last complete snapshot, published when the group's final message
      (message_number == total_messages) arrives
    - the set of PRNs named by the most recent GSA

A fresh group never inherits satellites from the previous one, since GSV
groups are not required to repeat every satellite of the prior cycle.
"""

from dataclasses import replace

from rtklink.gnss.types import SatelliteRecord
from rtklink.nmea.types import GSAData, GSVData


class SatelliteTracker:
    def __init__(self):
        self._in_progress: dict[int, SatelliteRecord] = {}
        self._snapshot: dict[int, SatelliteRecord] = {}
        self._used_prns: set[int] = set()

    @property
    def satellites(self) -> list[SatelliteRecord]:
        """The last complete satellite table, sorted by PRN."""
        return [replace(self._snapshot[prn]) for prn in sorted(self._snapshot)]

    @property
    def used_prns(self) -> frozenset[int]:
        return frozenset(self._used_prns)

    def apply_gsv(self, gsv: GSVData) -> bool:
        """Add one GSV message to the in-progress table.

        Returns:
            True when the message completed its group and the snapshot was
            replaced.
        """
        if gsv.message_number == 1:
            self._in_progress = {}

        for satellite in gsv.satellites:
            self._in_progress[satellite.prn] = SatelliteRecord(
                prn=satellite.prn,
                elevation_degrees=satellite.elevation_degrees,
                azimuth_degrees=satellite.azimuth_degrees,
                snr_dbhz=satellite.snr_dbhz,
                used=satellite.prn in self._used_prns,
            )

        if not gsv.completes_group:
            return False

        self._snapshot = self._in_progress
        self._in_progress = {}
        return True

    def apply_gsa(self, gsa: GSAData) -> bool:
        """Replace the used set with the PRNs of this GSA.

        Satellites missing from the new list dropped out of the fix, so the
        previous flags are cleared before the new set is applied.

        Returns:
            Always True; every GSA is a satellite change.
        """
        self._used_prns = set(gsa.satellite_prns)
        for table in (self._snapshot, self._in_progress):
            for record in table.values():
                record.used = record.prn in self._used_prns
        return True

    def reset(self) -> None:
        self._in_progress = {}
        self._snapshot = {}
        self._used_prns = set()
