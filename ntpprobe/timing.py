# SPDX-License-Identifier: GPL-2.0-only
# This file is part of ntpprobe
# See https://scapy.net/ for more information on the underlying framework

"""
Clock offset and round-trip delay from the four exchange timestamps
(RFC 5905, section 8).
"""

from ntpprobe.timestamp import ntp64_to_seconds

# Typing imports
from typing import (
    Tuple,
)


def offset_rtt(t1, t2, t3, t4):
    # type: (float, float, float, float) -> Tuple[float, float]
    """
    Computes the clock offset and the round-trip delay.

    :param t1: client transmit time
    :param t2: server receive time
    :param t3: server transmit time
    :param t4: client receive time
    :return: (offset, rtt), in seconds
    """
    offset = ((t2 - t1) + (t3 - t4)) / 2
    rtt = (t4 - t1) - (t3 - t2)
    return offset, rtt


def offset_rtt_ntp64(t1, t2, t3, t4):
    # type: (int, int, int, int) -> Tuple[float, float]
    """
    Same as offset_rtt() for raw NTP64 timestamps. The subtraction is done
    on floating seconds.
    """
    return offset_rtt(
        ntp64_to_seconds(t1),
        ntp64_to_seconds(t2),
        ntp64_to_seconds(t3),
        ntp64_to_seconds(t4),
    )
