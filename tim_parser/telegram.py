"""
TiM551 Telegram Layout and Tokenizer

This module holds everything that depends on the wire layout of an
LMDscandata telegram from a TiM551 (firmware 2050001): the field offset
table, the space-separated tokenizer, and the decoders for the hexadecimal
and decimal fields.

General message structure (one field per space-separated token):

    - message header   20 fields
    - DIST1 header      6 fields
    - DIST1 data        N fields
    - RSSI included?    1 field
    - RSSI1 header      6 fields (optional)
    - RSSI1 data        N fields (optional)
    - footer         >= 5 fields, depending on the number of spaces in the
                        device label

Header fields:

    0: Type of command (sRA / sSN)
    1: Command (LMDscandata)
    2: Firmware version number
    3: Device number
    4: Serial number
    5 + 6: Device status (0 0 = ok, 0 1 = error)
    7: Telegram counter
    8: Scan counter
    9: Time since startup
    10: Time of transmission
    11 + 12: Input status
    13 + 14: Output status
    15: Reserved byte A (0)
    16: Scanning frequency [1/100 Hz]
    17: Measurement frequency [100 Hz]
    18: Number of encoders
    19: Number of 16 bit channels
    20: Measured data contents (DIST1)
    21: Scaling factor (3F800000, always 1.0, ignored)
    22: Scaling offset (00000000, always 0, ignored)
    23: Starting angle [1/10000 deg], signed 32 bit
    24: Angular step width [1/10000 deg]
    25: Number of data N

RSSI block, relative to the "RSSI included?" field at 26 + N:

    +1: Measured data contents (RSSI1)
    +2: Scaling factor
    +3: Scaling offset
    +4: Starting angle (same as DIST1)
    +5: Angular step width (same as DIST1)
    +6: Number of data (same as DIST1)
    +7 .. +7 + N - 1: RSSI data
"""

from contextlib import contextmanager

from .errors import MalformedTelegram

# ---------- block sizes ----------
HEADER_FIELDS = 26
MIN_FOOTER_FIELDS = 5
RSSI_HEADER_FIELDS = 6
MAX_NUMBER_OF_DATA = 811  # hardware maximum for this firmware
MIN_FIELDS = HEADER_FIELDS + 1 + MIN_FOOTER_FIELDS

# ---------- fixed header fields ----------
FIELD_RESERVED_BYTE = 15
FIELD_SCANNING_FREQUENCY = 16
FIELD_MEASUREMENT_FREQUENCY = 17
FIELD_DATA_CONTENTS = 20
FIELD_STARTING_ANGLE = 23
FIELD_ANGULAR_STEP = 24
FIELD_NUMBER_OF_DATA = 25

# ---------- RSSI block, relative to the "RSSI included?" field ----------
RSSI_CONTENTS_OFFSET = 1
RSSI_NUMBER_OF_DATA_OFFSET = 6
RSSI_DATA_OFFSET = 7

# ---------- sentinel values ----------
RESERVED_BYTE = b"0"
DIST1 = b"DIST1"
RSSI1 = b"RSSI1"

DELIMITER = ord(" ")


def _views(datagram, length=None, errors="strict"):
    """
    Wrap a telegram in byte views, innermost last.

    :param datagram: Telegram payload (bytes, bytearray, memoryview or str).
    :param length:   Optional number of leading bytes to keep.
    :param errors:   How to encode a str: "strict" rejects non-ASCII text,
                     "replace" substitutes "?" (for log output).
    :return: list of memoryviews; the last one covers the telegram.
    :raises MalformedTelegram: If a str holds non-ASCII text under "strict".
    """
    if isinstance(datagram, str):
        try:
            datagram = datagram.encode("ascii", errors=errors)
        except UnicodeEncodeError as exc:
            raise MalformedTelegram(
                f"Telegram contains non-ASCII text at position {exc.start} ({datagram[exc.start:exc.end]!r})."
            ) from None
    base = memoryview(datagram)
    views = [base, base.cast("B")]
    if length is not None:
        views.append(views[-1][:max(int(length), 0)])
    return views


def _release(views):
    # Released views no longer pin the caller's buffer, even when a
    # traceback still references them.
    for view in views:
        view.release()


def _split(buf):
    fields = []
    start = None
    for i, byte in enumerate(buf):
        if byte == DELIMITER:
            if start is not None:
                fields.append(buf[start:i])
                start = None
        elif start is None:
            start = i
    if start is not None:
        fields.append(buf[start:])
    return fields


def tokenize(datagram, length=None):
    """
    Split a telegram on spaces into a list of memoryview slices.

    The buffer is left untouched and no field bytes are copied, so the caller
    can still log the original telegram after a failed parse. Runs of spaces
    never produce empty fields. The returned views keep a bytearray from
    being resized until they are released; use tokenized() to have that done
    automatically.

    :param datagram: Telegram payload (bytes, bytearray, memoryview or str),
                     without the STX/ETX framing.
    :param length:   Optional number of leading bytes to consider.
    :return: Ordered list of non-empty memoryview fields.
    :raises MalformedTelegram: If a str telegram holds non-ASCII text.
    """
    return _split(_views(datagram, length)[-1])


@contextmanager
def tokenized(datagram, length=None):
    """
    Context manager around tokenize() that releases every field view (and
    the views they were cut from) on exit, whether or not the body raised.

        with tokenized(buf) as fields:
            ...
    """
    views = _views(datagram, length)
    fields = _split(views[-1])
    try:
        yield fields
    finally:
        _release(fields)
        _release(reversed(views))


def field_text(field):
    """Return a field as str, for log messages and error attributes."""
    return bytes(field).decode("ascii", errors="replace")


def _parse_int(fields, index, base):
    try:
        return int(bytes(fields[index]), base)
    except ValueError:
        raise MalformedTelegram(
            f"Field {index} of received data is not a valid base {base} number ({field_text(fields[index])}).",
            count=len(fields), field=index,
        ) from None


def hex_u16(fields, index):
    """Decode a hexadecimal field, keeping the low 16 bits."""
    return _parse_int(fields, index, 16) & 0xFFFF


def hex_i32(fields, index):
    """Decode a hexadecimal field as a two's complement 32 bit integer (e.g. FFF92230 -> -450000)."""
    value = _parse_int(fields, index, 16) & 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def dec_int(fields, index):
    return _parse_int(fields, index, 10)


def datagram_text(datagram, length=None):
    """Return the (unmodified) telegram as str, for debug output. Never raises on non-ASCII input."""
    views = _views(datagram, length, errors="replace")
    try:
        return field_text(views[-1])
    finally:
        _release(reversed(views))
