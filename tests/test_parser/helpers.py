"""
Shared test helpers for the telegram parser test suite.

Provides a synthetic TiM551 telegram builder, a fake clock, and plot
embedding for the HTML report.
"""

import base64
import io

# Values seen on a real TiM551 (15 Hz, 0.3333 deg step, 270 deg field of view)
SCANNING_FREQ = 0x5DC      # [1/100 Hz] 15 Hz
MEASUREMENT_FREQ = 0x36    # [100 Hz]
STARTING_ANGLE = -450000   # [1/10000 deg] -45 deg
ANGULAR_STEP = 0x0D05      # [1/10000 deg] 0.3333 deg

DEFAULT_FOOTER = ("0", "0", "0", "0", "0")


def build_fields(
    ranges,
    rssi=None,
    number_of_data=None,
    number_of_rssi_data=None,
    scanning_freq=SCANNING_FREQ,
    measurement_freq=MEASUREMENT_FREQ,
    starting_angle=STARTING_ANGLE,
    angular_step=ANGULAR_STEP,
    reserved="0",
    contents="DIST1",
    rssi_contents="RSSI1",
    rssi_flag=None,
    footer=DEFAULT_FOOTER,
):
    """
    Build the field list of an LMDscandata telegram.

    :param ranges:              Raw range readings [mm], one per sample.
    :param rssi:                Optional raw RSSI readings; adds the RSSI block.
    :param number_of_data:      Declared sample count, defaults to len(ranges).
    :param number_of_rssi_data: Declared RSSI count, defaults to len(rssi).
    :param rssi_flag:           "RSSI included?" field, defaults to "1" or "0".
    :param footer:              Trailing fields after the data blocks.
    :return: list of str fields.
    """
    if number_of_data is None:
        number_of_data = len(ranges)
    start_hex = format(starting_angle & 0xFFFFFFFF, "X")

    fields = [
        "sSN", "LMDscandata", "1", "1", "B96518", "0", "0", "99", "9A", "13C8E59", "13C9CBE",
        "0", "0", "8", "0",
        reserved,
        format(scanning_freq, "X"),
        format(measurement_freq, "X"),
        "0", "1",
        contents,
        "3F800000", "00000000",
        start_hex,
        format(angular_step, "X"),
        format(number_of_data, "X"),
    ]
    fields.extend(format(value, "X") for value in ranges)

    if rssi is None:
        fields.append("0" if rssi_flag is None else rssi_flag)
    else:
        if number_of_rssi_data is None:
            number_of_rssi_data = len(rssi)
        fields.append("1" if rssi_flag is None else rssi_flag)
        fields.extend([rssi_contents, "3F800000", "00000000", start_hex, format(angular_step, "X"),
                       format(number_of_rssi_data, "X")])
        fields.extend(format(value, "X") for value in rssi)

    fields.extend(footer)
    return fields


def build_telegram(ranges, **kwargs):
    """Same as build_fields(), joined into the ASCII telegram bytes."""
    return " ".join(build_fields(ranges, **kwargs)).encode("ascii")


class FakeClock:
    """Manually advanced clock for stamp and rate-limit tests."""
    def __init__(self, t=0.0):
        self.t = float(t)

    def __call__(self):
        return self.t

    def advance(self, dt):
        self.t += float(dt)


def attach_plot_to_html_report(request, fig, name):
    """
    Embed a matplotlib figure into the pytest HTML report as an inline PNG.

    Does nothing when the pytest-html plugin is not loaded.

    :param request: the pytest ``request`` fixture
    :param fig:     a ``matplotlib.figure.Figure`` to embed
    :param name:    a short label shown beside the image in the report
    """
    buf = io.BytesIO()
    fig.savefig(buf, format="png", dpi=160)

    html_plugin = request.config.pluginmanager.getplugin("html")
    if html_plugin is not None and hasattr(html_plugin, "extras"):
        png_b64 = base64.b64encode(buf.getvalue()).decode("ascii")
        extra = getattr(request.node, "extra", [])
        extra.append(html_plugin.extras.png(png_b64, name=name))
        request.node.extra = extra
