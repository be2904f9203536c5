# SPDX-License-Identifier: GPL-2.0-only
# This file is part of ntpprobe
# See https://scapy.net/ for more information on the underlying framework

"""
Logging subsystem and basic exception classes.
"""

import logging

# Typing imports
from typing import (
    Any,
    Optional,
)

#############################
#     Logging subsystem     #
#############################

# get ntpprobe's master logger
log_ntpprobe = logging.getLogger("ntpprobe")
# override the level if not already set
if log_ntpprobe.level == logging.NOTSET:
    log_ntpprobe.setLevel(logging.WARNING)
_handler = logging.StreamHandler()
_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
log_ntpprobe.addHandler(_handler)
# logs at runtime (one NTP/NTS exchange)
log_runtime = logging.getLogger("ntpprobe.runtime")
# logs when loading ntpprobe
log_loading = logging.getLogger("ntpprobe.loading")


def warning(x, *args, **kargs):
    # type: (str, *Any, **Any) -> None
    """
    Prints a warning during runtime.
    """
    log_runtime.warning(x, *args, **kargs)


##########################
#     Exceptions         #
##########################

class NTPProbeException(Exception):
    pass


class NTPParseError(NTPProbeException):
    """
    Raised when a datagram cannot be decoded as an NTP message.
    """

    def __init__(self, details):
        # type: (str) -> None
        NTPProbeException.__init__(
            self,
            "Data does not seem to be a valid NTP message: " + details
        )


class NTPUnknownVersionError(NTPParseError):
    def __init__(self, version):
        # type: (int) -> None
        self.version = version
        NTPParseError.__init__(self, "unknown version: %d" % version)


class NTPMeasurementError(NTPProbeException):
    """
    A failed exchange step, carrying the numeric outcome code.
    """

    def __init__(self, message, code, cause=None):
        # type: (str, int, Optional[BaseException]) -> None
        NTPProbeException.__init__(self, message)
        self.message = message
        self.code = code
        self.cause = cause
