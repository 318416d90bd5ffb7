"""
Parser Result Codes and Telegram Errors

A telegram is either rejected outright (one of the TelegramError subclasses
below) or decoded with reduced quality, in which case one of the reason strings
is appended to ``LaserScan.warnings``. Neither case is fatal to the process:
the caller discards rejected telegrams and keeps receiving.
"""

# Return codes of AbstractParser.parse_datagram()
ExitSuccess = 0
ExitError = 1

# Degraded-success reasons
RSSI_MARKER_MISMATCH = "rssi_marker_mismatch"
INTENSITY_UNAVAILABLE = "intensity_unavailable"
NEGATIVE_TIMESTAMP = "negative_timestamp"
INCONSISTENT_TIMING = "inconsistent_timing"
ZERO_FREQUENCY = "zero_frequency"  # scan_time and/or time_increment is inf


class TelegramError(ValueError):
    """Base class for every per-telegram rejection."""


class MalformedTelegram(TelegramError):
    """
    The telegram is too short to hold the fixed header, or a numeric field
    could not be decoded.

    :param message: Human-readable description.
    :param count:   Number of fields found, when the failure is a length check.
    :param field:   Index of the field that failed to decode, if any.
    """
    def __init__(self, message, count=None, field=None):
        super().__init__(message)
        self.count = count
        self.field = field


class UnexpectedReservedByte(TelegramError):
    def __init__(self, value):
        super().__init__(f"Field 15 of received data is not equal to 0 ({value}).")
        self.value = value


class UnexpectedDataContentMarker(TelegramError):
    def __init__(self, value):
        super().__init__(f"Field 20 of received data is not equal to DIST1 ({value}).")
        self.value = value


class SampleCountOutOfRange(TelegramError):
    def __init__(self, number_of_data, maximum):
        super().__init__(f"Data length is outside acceptable range 1-{maximum} ({number_of_data}).")
        self.number_of_data = number_of_data
        self.maximum = maximum


class TruncatedTelegram(TelegramError):
    """
    The telegram holds fewer fields than its declared sample count(s) require.

    :param expected: Minimum number of fields for the declared layout.
    :param actual:   Number of fields actually received.
    :param rssi:     True when the check included the RSSI block.
    """
    def __init__(self, expected, actual, rssi=False):
        block = " with RSSI data" if rssi else ""
        super().__init__(f"Less fields than expected{block} (expected: >= {expected}, actual: {actual}).")
        self.expected = expected
        self.actual = actual
        self.rssi = rssi


class RssiSampleCountMismatch(TelegramError):
    def __init__(self, number_of_rssi_data, number_of_data):
        super().__init__(
            f"Number of RSSI data ({number_of_rssi_data}) is not equal to number of range data ({number_of_data})."
        )
        self.number_of_rssi_data = number_of_rssi_data
        self.number_of_data = number_of_data
