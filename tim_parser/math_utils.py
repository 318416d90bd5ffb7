"""
Math Utilities Module

Unit conversions shared by the telegram decoder: the scanner reports angles
in 1/10000 degree and frequencies in fixed-point hundredths, while the output
uses radians, seconds and meters. Also splits float stamps into the
(seconds, nanoseconds) pair used by message headers.
"""

import numpy as np

ANGLE_SCALE = 10000.0  # [1/deg] raw angle units per degree
RANGE_SCALE = 1000.0  # [1/m] raw range units (mm) per meter


def _raw_angle_to_rad(raw_angle):
    """
    Convert an angle in 1/10000 degree to radians.

    :param raw_angle: Integer angle as sent by the scanner [1/10000 deg].
    :return: Angle in radians.
    """
    # Scale to degrees first, then convert degrees to radians
    return (raw_angle / ANGLE_SCALE) / 180.0 * np.pi


def _scan_time_from_frequency(scanning_freq):
    """
    Period of one revolution from the scanning frequency field.

    :param scanning_freq: Scanning frequency [1/100 Hz].
    :return: scan_time [s], inf for a zero frequency.
    """
    # A stopped mirror has no finite period
    if scanning_freq == 0:
        return np.inf

    # Field is in hundredths of a Hz, so divide by 100 before inverting
    return 1.0 / (scanning_freq / 100.0)


def _time_increment_from_frequency(measurement_freq):
    """
    Time between two samples from the measurement frequency field.

    :param measurement_freq: Measurement frequency [100 Hz].
    :return: time_increment [s], inf for a zero frequency.
    """
    if measurement_freq == 0:
        return np.inf

    # Field is in units of 100 Hz, so multiply by 100 before inverting
    return 1.0 / (measurement_freq * 100.0)


def _ranges_from_raw(raw):
    """
    Convert raw range readings in millimeters to meters.

    A reading of exactly 0 means "no echo" and maps to +inf.

    :param raw: Array-like of unsigned 16 bit readings [mm].
    :return: numpy float array of ranges [m].
    """
    # Convert the readings to a float numpy array
    raw = np.asarray(raw, dtype=float)

    # Start with every sample marked as "no echo"
    ranges = np.full(raw.shape, np.inf)

    # Overwrite the samples that carry a return with their value in meters
    valid = raw != 0.0
    ranges[valid] = raw[valid] / RANGE_SCALE
    return ranges


def _split_stamp(seconds):
    """
    Split a non-negative float time into whole seconds and nanoseconds.

    :param seconds: Time [s], must be >= 0.
    :return: (sec, nanosec) as ints.
    """
    # Whole seconds
    sec = int(np.floor(seconds))

    # Fractional remainder, truncated to nanoseconds
    nanosec = int((seconds - sec) * 1e9)
    return sec, nanosec
