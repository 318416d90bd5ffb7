import numpy as np


class ScanConfig:
    # Output frame, passed through to every scan untouched
    frame_id = "laser"

    # Angle window, in the output convention (0 = straight ahead)
    min_ang = -0.75 * np.pi  # [rad]
    max_ang = 0.75 * np.pi  # [rad]

    # Publish RSSI values when the scanner sends them
    intensity = True

    # Added to the reconstructed stamp to account for USB/Ethernet latency,
    # usually negative
    time_offset = -0.001  # [s]


class ParserConfig:
    # Range envelope reported with every scan (the telegram does not carry it)
    range_min = 0.05  # [m]
    range_max = 10.0  # [m]

    # Some scanners report a wrong measurement frequency; values <= 0 keep the
    # decoded time increment
    time_increment = -1.0  # [s]

    # Minimum spacing between two "inconsistent timing" log messages
    consistency_warn_period = 60.0  # [s]
