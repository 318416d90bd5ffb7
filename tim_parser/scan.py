"""
Decoded scan record.

LaserScan mirrors the fields of a sensor_msgs/LaserScan message so that a
caller can copy it into whatever message type it publishes.
"""

import numpy as np

from .math_utils import _split_stamp


class LaserScan:
    """
    One decoded telegram.

    ``ranges`` holds one value per published sample, ``inf`` where the
    scanner saw no echo. ``intensities`` has the same length when RSSI data
    was both requested and available, otherwise it is None. ``stamp`` is the
    acquisition time of the first published sample, or None when it could
    not be reconstructed.
    """
    def __init__(self, frame_id=""):
        self.frame_id = str(frame_id)

        # ---------- geometry ----------
        self.angle_min = 0.0        # [rad] angle of the first published sample
        self.angle_max = 0.0        # [rad] angle of the last published sample
        self.angle_increment = 0.0  # [rad] angular distance between samples

        # ---------- timing ----------
        self.scan_time = 0.0        # [s] time of one revolution
        self.time_increment = 0.0   # [s] time between two samples
        self.stamp = None           # [s] time of the first published sample

        # ---------- envelope ----------
        self.range_min = 0.0        # [m]
        self.range_max = 0.0        # [m]

        # ---------- samples ----------
        self.ranges = np.empty(0)   # [m]
        self.intensities = None     # [arb] raw RSSI readings

        # ---------- bookkeeping ----------
        self.number_of_data = 0     # samples in the telegram, before windowing
        self.index_min = 0          # first published sample index
        self.index_max = -1         # last published sample index (inclusive)
        self.rssi_available = False
        self.warnings = []          # degraded-quality reasons, see errors.py

    @property
    def stamp_sec(self):
        return None if self.stamp is None else _split_stamp(self.stamp)[0]

    @property
    def stamp_nanosec(self):
        return None if self.stamp is None else _split_stamp(self.stamp)[1]

    def __len__(self):
        return int(self.ranges.size)

    def __repr__(self):
        return (
            f"LaserScan(frame_id={self.frame_id!r}, samples={len(self)}, "
            f"angle_min={self.angle_min:.6f}, angle_max={self.angle_max:.6f}, stamp={self.stamp})"
        )
