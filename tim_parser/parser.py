"""
TiM551 Scan Telegram Parser

This module turns one LMDscandata telegram (already stripped of its STX/ETX
framing by the transport) into a LaserScan. Decoding runs as a fixed
pipeline over the tokenized fields:

    header check -> length decode -> geometry -> angle window ->
    samples -> stamp reconstruction -> timing consistency check

Rejected telegrams raise a TelegramError subclass from decode(); the
parse_datagram() wrapper logs them and returns ExitError instead, so a caller
can drop the scan and keep receiving. Degraded results (missing RSSI,
negative stamp, inconsistent timing, unexpected RSSI marker) are still
returned and carry a reason in ``LaserScan.warnings``.

The primary entry points are:
    SickTim551Parser.decode()          Decode or raise.
    SickTim551Parser.parse_datagram()  Decode or log, returning an exit code.
"""

import logging
import time

import numpy as np

from .Config import ParserConfig, ScanConfig
from .diagnostics import ThrottledWarning, WarnOnce
from .errors import (
    INCONSISTENT_TIMING,
    INTENSITY_UNAVAILABLE,
    NEGATIVE_TIMESTAMP,
    RSSI_MARKER_MISMATCH,
    ZERO_FREQUENCY,
    ExitError,
    ExitSuccess,
    MalformedTelegram,
    RssiSampleCountMismatch,
    SampleCountOutOfRange,
    TelegramError,
    TruncatedTelegram,
    UnexpectedDataContentMarker,
    UnexpectedReservedByte,
)
from .math_utils import (
    _ranges_from_raw,
    _raw_angle_to_rad,
    _scan_time_from_frequency,
    _time_increment_from_frequency,
)
from .scan import LaserScan
from .telegram import (
    DIST1,
    FIELD_ANGULAR_STEP,
    FIELD_DATA_CONTENTS,
    FIELD_MEASUREMENT_FREQUENCY,
    FIELD_NUMBER_OF_DATA,
    FIELD_RESERVED_BYTE,
    FIELD_SCANNING_FREQUENCY,
    FIELD_STARTING_ANGLE,
    HEADER_FIELDS,
    MAX_NUMBER_OF_DATA,
    MIN_FIELDS,
    MIN_FOOTER_FIELDS,
    RESERVED_BYTE,
    RSSI1,
    RSSI_CONTENTS_OFFSET,
    RSSI_DATA_OFFSET,
    RSSI_HEADER_FIELDS,
    RSSI_NUMBER_OF_DATA_OFFSET,
    datagram_text,
    dec_int,
    field_text,
    hex_i32,
    hex_u16,
    tokenized,
)

log = logging.getLogger(__name__)

# Allowed mismatch between the reported time_increment and
# scan_time * angle_increment / (2 pi)
TIME_INCREMENT_TOLERANCE = 1e-5  # [s]

# Expected field counts of the sibling TiM layouts, shown when a telegram is
# too short for this one
LAYOUT_HINT = (
    "are you using the correct parser? (124 --> sick_tim310_1130000m01, "
    "> 32 --> sick_tim551_2050001, 580 --> sick_tim310s01, 592 --> sick_tim310)"
)


class AbstractParser:
    """
    Common entry point for the TiM telegram layouts.

    Subclasses implement decode(); parse_datagram() turns a rejected telegram
    into an ExitError return code after logging the reason.
    """
    def decode(self, datagram, config=ScanConfig, now=None, length=None):
        raise NotImplementedError

    def parse_datagram(self, datagram, config=ScanConfig, now=None, length=None):
        """
        Decode one telegram without raising on rejected input.

        :param datagram: Telegram payload (bytes, bytearray, memoryview or str).
        :param config:   ScanConfig-compatible decode parameters.
        :param now:      Receive time of the telegram [s]; the parser clock is
                         read when None.
        :param length:   Optional number of leading bytes of ``datagram`` to use.
        :return: (ExitSuccess, LaserScan) or (ExitError, None).
        """
        try:
            scan = self.decode(datagram, config=config, now=now, length=length)
        except TelegramError as exc:
            log.warning("%s Ignoring scan.", exc)
            log.debug("received message was: %s", datagram_text(datagram, length))
            return ExitError, None
        return ExitSuccess, scan


class SickTim551Parser(AbstractParser):
    """
    Parser for the TiM551 (firmware 2050001) telegram layout.

    Holds the caller-owned overrides (range envelope and time increment), the
    clock used to stamp scans, and the state of the two rate-limited
    warnings. Nothing else survives between calls.
    """
    def __init__(self, config=ParserConfig, clock=time.time, consistency_warning=None, intensity_warning=None):
        """
        :param config:              Class or instance with ParserConfig-compatible attributes.
        :param clock:               Zero-argument callable returning the current time [s].
        :param consistency_warning: Optional ThrottledWarning to share the
                                    "inconsistent timing" rate limit with other parsers.
        :param intensity_warning:   Optional WarnOnce to share the "no RSSI data" message
                                    with other parsers, e.g. once per process.
        """
        self.override_range_min = float(getattr(config, "range_min", ParserConfig.range_min))
        self.override_range_max = float(getattr(config, "range_max", ParserConfig.range_max))
        self.override_time_increment = float(getattr(config, "time_increment", ParserConfig.time_increment))
        if self.override_range_min < 0.0:
            raise ValueError("range_min must be >= 0.")
        if self.override_range_max <= self.override_range_min:
            raise ValueError("range_max must be greater than range_min.")

        self.clock = clock
        if consistency_warning is None:
            period = getattr(config, "consistency_warn_period", ParserConfig.consistency_warn_period)
            consistency_warning = ThrottledWarning(log, period, clock=clock)
        self._consistency_warning = consistency_warning
        self._intensity_warning = WarnOnce(log) if intensity_warning is None else intensity_warning

    def set_range_min(self, value):
        self.override_range_min = float(value)

    def set_range_max(self, value):
        self.override_range_max = float(value)

    def set_time_increment(self, value):
        """Force time_increment to ``value`` [s]; pass a value <= 0 to use the decoded one."""
        self.override_time_increment = float(value)

    def decode(self, datagram, config=ScanConfig, now=None, length=None):
        """
        Decode one telegram into a LaserScan.

        :param datagram: Telegram payload (bytes, bytearray, memoryview or str).
                         It is not modified.
        :param config:   ScanConfig-compatible decode parameters.
        :param now:      Time the complete telegram was received [s]. The
                         parser clock is read when None.
        :param length:   Optional number of leading bytes of ``datagram`` to use.
        :return: LaserScan.
        :raises TelegramError: If the telegram is rejected.
        """
        # Overrides may be changed by the caller between calls; read them once.
        range_min = self.override_range_min
        range_max = self.override_range_max
        time_increment_override = self.override_time_increment

        min_ang = float(getattr(config, "min_ang", ScanConfig.min_ang))
        max_ang = float(getattr(config, "max_ang", ScanConfig.max_ang))
        intensity = bool(getattr(config, "intensity", ScanConfig.intensity))
        time_offset = float(getattr(config, "time_offset", ScanConfig.time_offset))

        start_time = float(self.clock() if now is None else now)  # adjusted below

        # The field views are released on the way out, so a rejected telegram
        # does not keep the caller's buffer locked through the traceback.
        with tokenized(datagram, length) as fields:
            self._validate_header(fields)

            scan = LaserScan(frame_id=getattr(config, "frame_id", ScanConfig.frame_id))
            self._decode_lengths(fields, scan)
            log.debug("Number of data: %d", scan.number_of_data)

            self._decode_geometry(fields, scan, time_increment_override)
            self._trim_window(scan, min_ang, max_ang)
            log.debug("index_min: %d, index_max: %d", scan.index_min, scan.index_max)
            self._extract_samples(fields, scan, intensity)

        scan.range_min = range_min
        scan.range_max = range_max

        self._reconstruct_stamp(scan, start_time, time_offset)
        self._check_consistency(scan)
        return scan

    def _validate_header(self, fields):
        # The total field count depends on the scan range and device label,
        # but the header layout is stable.
        count = len(fields)
        if count < MIN_FIELDS:
            log.warning(LAYOUT_HINT)
            raise MalformedTelegram(
                f"received less fields than minimum fields (actual: {count}, minimum: {MIN_FIELDS}).",
                count=count,
            )
        if fields[FIELD_RESERVED_BYTE] != RESERVED_BYTE:
            raise UnexpectedReservedByte(field_text(fields[FIELD_RESERVED_BYTE]))
        if fields[FIELD_DATA_CONTENTS] != DIST1:
            raise UnexpectedDataContentMarker(field_text(fields[FIELD_DATA_CONTENTS]))

    def _decode_lengths(self, fields, scan):
        """
        Read the sample count and the RSSI flag, and check that the telegram is
        long enough for both blocks.

        :param fields: Tokenized telegram.
        :param scan:   LaserScan receiving number_of_data and rssi_available.
        :return: Number of range samples N.
        """
        count = len(fields)
        number_of_data = hex_u16(fields, FIELD_NUMBER_OF_DATA)
        if number_of_data < 1 or number_of_data > MAX_NUMBER_OF_DATA:
            raise SampleCountOutOfRange(number_of_data, MAX_NUMBER_OF_DATA)

        expected = HEADER_FIELDS + number_of_data + 1 + MIN_FOOTER_FIELDS
        if count < expected:
            raise TruncatedTelegram(expected, count)

        rssi_idx = HEADER_FIELDS + number_of_data
        rssi = dec_int(fields, rssi_idx) != 0
        if rssi:
            rssi_count_idx = rssi_idx + RSSI_NUMBER_OF_DATA_OFFSET
            if rssi_count_idx >= count:
                raise TruncatedTelegram(rssi_count_idx + 1, count, rssi=True)
            number_of_rssi_data = hex_u16(fields, rssi_count_idx)
            if number_of_rssi_data != number_of_data:
                raise RssiSampleCountMismatch(number_of_rssi_data, number_of_data)

            # RSSI block = 6 descriptor fields + one reading per sample
            expected = HEADER_FIELDS + number_of_data + 1 + RSSI_HEADER_FIELDS + number_of_rssi_data + MIN_FOOTER_FIELDS
            if count < expected:
                raise TruncatedTelegram(expected, count, rssi=True)

            # The layout is fixed by the counts above, so a wrong marker only
            # gets reported.
            marker = fields[rssi_idx + RSSI_CONTENTS_OFFSET]
            if marker != RSSI1:
                log.warning(
                    "Field %d of received data is not equal to RSSI1 (%s). Unexpected data.",
                    rssi_idx + RSSI_CONTENTS_OFFSET, field_text(marker),
                )
                scan.warnings.append(RSSI_MARKER_MISMATCH)

        scan.number_of_data = number_of_data
        scan.rssi_available = rssi
        return number_of_data

    def _decode_geometry(self, fields, scan, time_increment_override):
        """
        Decode timing and angles of the full (untrimmed) scan.

        scan_time      = 1 / (scanning_freq / 100)
        time_increment = 1 / (measurement_freq * 100), or the override if > 0
        angle_min      = starting_angle - pi/2   (scanner zero is 90 deg off)
        angle_max      = angle_min + (N - 1) * angle_increment

        A zero frequency gives an infinite period; the scan is still
        published, flagged with ``zero_frequency``.
        """
        scanning_freq = hex_u16(fields, FIELD_SCANNING_FREQUENCY)  # [1/100 Hz]
        scan.scan_time = _scan_time_from_frequency(scanning_freq)

        measurement_freq = hex_u16(fields, FIELD_MEASUREMENT_FREQUENCY)  # [100 Hz]
        if time_increment_override > 0.0:
            # Some scanners report an incorrect measurement frequency
            scan.time_increment = time_increment_override
        else:
            scan.time_increment = _time_increment_from_frequency(measurement_freq)

        if not (np.isfinite(scan.scan_time) and np.isfinite(scan.time_increment)):
            log.warning(
                "Scanner reported a zero frequency (scanning: %d, measurement: %d); timing is unusable.",
                scanning_freq, measurement_freq,
            )
            scan.warnings.append(ZERO_FREQUENCY)

        starting_angle = hex_i32(fields, FIELD_STARTING_ANGLE)  # [1/10000 deg]
        scan.angle_min = _raw_angle_to_rad(starting_angle) - np.pi / 2

        angular_step_width = hex_u16(fields, FIELD_ANGULAR_STEP)  # [1/10000 deg]
        scan.angle_increment = _raw_angle_to_rad(angular_step_width)
        scan.angle_max = scan.angle_min + (scan.number_of_data - 1) * scan.angle_increment

    def _trim_window(self, scan, min_ang, max_ang):
        """
        Clip the scan to [min_ang, max_ang] in whole angular steps.

        Sets index_min/index_max (inclusive) into the sample block. A window
        that excludes every sample leaves index_max < index_min.
        """
        number_of_data = scan.number_of_data

        index_min = 0
        while index_min < number_of_data and scan.angle_min + scan.angle_increment < min_ang:
            scan.angle_min += scan.angle_increment
            index_min += 1

        index_max = number_of_data - 1
        while index_max >= 0 and scan.angle_max - scan.angle_increment > max_ang:
            scan.angle_max -= scan.angle_increment
            index_max -= 1

        scan.index_min = index_min
        scan.index_max = index_max

    def _extract_samples(self, fields, scan, intensity):
        """
        Fill ranges (and intensities, if requested and sent) for the window.

        Ranges are sent in mm; 0 means no echo and becomes inf. RSSI values
        are published unscaled.
        """
        window = range(scan.index_min, scan.index_max + 1)

        scan.ranges = _ranges_from_raw([hex_u16(fields, j + HEADER_FIELDS) for j in window])

        if not intensity:
            return
        if scan.rssi_available:
            offset = HEADER_FIELDS + scan.number_of_data + RSSI_DATA_OFFSET
            scan.intensities = np.array([hex_u16(fields, j + offset) for j in window], dtype=float)
        else:
            scan.warnings.append(INTENSITY_UNAVAILABLE)
            self._intensity_warning.warn(
                "Intensity parameter is enabled, but the scanner is not configured to send RSSI values! "
                "Enable RSSI output on the device or disable the intensity parameter."
            )

    def _reconstruct_stamp(self, scan, start_time, time_offset):
        """
        Back-date the receive time to the first published sample.

        The last sample of the scan is assumed to coincide with ``start_time``:

            stamp = start_time - N * time_increment
                    + index_min * time_increment + time_offset

        A negative or non-finite result leaves ``scan.stamp`` unset.
        """
        if not np.isfinite(scan.time_increment):
            # Already flagged by _decode_geometry
            log.warning("Cannot reconstruct the scan time without a finite time_increment.")
            return

        stamp = (
            start_time
            - scan.number_of_data * scan.time_increment  # back to the first scan point
            + scan.index_min * scan.time_increment  # forward to the first published point
            + time_offset  # transport latency, usually negative
        )
        if stamp >= 0.0:
            scan.stamp = stamp
            return
        scan.warnings.append(NEGATIVE_TIMESTAMP)
        log.warning("Reconstructed scan time is negative (%.6f s)! Is the clock source running?", stamp)

    def _check_consistency(self, scan):
        """
        Compare time_increment with scan_time * angle_increment / (2 pi).

        A mismatch is flagged on the scan every time, but logged at most once
        per consistency_warn_period.

        :return: True if the values are consistent, or cannot be compared
                 because a frequency was zero.
        """
        expected_time_increment = scan.scan_time * scan.angle_increment / (2.0 * np.pi)
        if not (np.isfinite(expected_time_increment) and np.isfinite(scan.time_increment)):
            return True
        if abs(expected_time_increment - scan.time_increment) <= TIME_INCREMENT_TOLERANCE:
            return True

        scan.warnings.append(INCONSISTENT_TIMING)
        self._consistency_warning.warn(
            "The time_increment, scan_time and angle_increment values reported by the scanner are inconsistent! "
            "Expected time_increment: %.9f, reported time_increment: %.9f. "
            "Perhaps you should set the parameter time_increment to the expected value. "
            "This message will print every %g seconds.",
            expected_time_increment, scan.time_increment, self._consistency_warning.period,
        )
        return False
