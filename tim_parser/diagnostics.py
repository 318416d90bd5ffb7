"""
Rate-limited warning helpers.

Both helpers keep their state on the instance, so whoever owns the instance
owns the "already emitted" bookkeeping. A parser creates its own by default;
passing one instance to several parsers shares it between them.
"""

import time


class WarnOnce:
    """Log a warning the first time warn() is called, and never again."""
    def __init__(self, logger):
        self.logger = logger
        self.emitted = False  # set by the first warn() call

    def warn(self, msg, *args):
        """
        :return: True if the message was logged by this call.
        """
        # Already logged once; stay silent
        if self.emitted:
            return False

        self.emitted = True
        self.logger.warning(msg, *args)
        return True


class ThrottledWarning:
    """
    Log a warning at most once per ``period`` seconds.

    :param logger: Logger that receives the message.
    :param period: Minimum spacing between two emitted messages [s].
    :param clock:  Zero-argument callable returning the current time [s].
    """
    def __init__(self, logger, period, clock=time.time):
        period = float(period)
        if period < 0.0:
            raise ValueError("period must be >= 0.")
        self.logger = logger
        self.period = period
        self.clock = clock
        self.last_emitted = None  # [s] time of the last emitted message

    def warn(self, msg, *args):
        """
        :return: True if the message was logged by this call.
        """
        now = float(self.clock())

        # Suppress the message while the previous one is younger than period
        if self.last_emitted is not None and now - self.last_emitted < self.period:
            return False

        # Restart the quiet interval from this message
        self.last_emitted = now
        self.logger.warning(msg, *args)
        return True
