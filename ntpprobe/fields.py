# SPDX-License-Identifier: GPL-2.0-only
# This file is part of ntpprobe
# See https://scapy.net/ for more information on the underlying framework

"""
Fields for the NTP fixed point formats.

Both fields keep the raw wire integer as their internal value, so that
dissected timestamps can be audited bit for bit; the human view is only
used when displaying a packet.
"""

from scapy.fields import IntField, LongField

from ntpprobe.timestamp import (
    now_to_ntp64,
    ntp64_repr,
    time32_to_seconds,
    time_to_ntp64,
)

# Typing imports
from typing import (
    Any,
    Optional,
)
from scapy.packet import Packet


class NTPTimestampField(LongField):
    """
    64 bits NTP timestamp (32.32 fixed point, seconds since 1900).

    A None value is replaced by the current time when the packet is built.
    """

    def any2i(self, pkt, val):
        # type: (Optional[Packet], Any) -> Optional[int]
        if isinstance(val, float):
            val = time_to_ntp64(val)
        elif hasattr(val, "timetuple"):
            val = time_to_ntp64(val)
        return super(NTPTimestampField, self).any2i(pkt, val)

    def i2m(self, pkt, val):
        # type: (Optional[Packet], Optional[int]) -> int
        if val is None:
            val = now_to_ntp64()
        return super(NTPTimestampField, self).i2m(pkt, val)

    def i2repr(self, pkt, val):
        # type: (Optional[Packet], Optional[int]) -> str
        return ntp64_repr(val)


class NTPShortField(IntField):
    """
    32 bits NTP short format (16.16 fixed point), used for the root delay
    and the root dispersion.
    """

    def i2repr(self, pkt, val):
        # type: (Optional[Packet], Optional[int]) -> str
        if val is None:
            return "--"
        return "%.6fs" % time32_to_seconds(val)
