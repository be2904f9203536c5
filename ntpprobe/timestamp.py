# SPDX-License-Identifier: GPL-2.0-only
# This file is part of ntpprobe
# See https://scapy.net/ for more information on the underlying framework

"""
Conversions between the NTP fixed-point formats, floating seconds and
calendar time.

NTP64 values are plain Python ints: 32 bits of whole seconds since
1900-01-01 followed by 32 bits of binary fraction. The 32 bits "short"
format (root delay, root dispersion) is 16.16 fixed point.
"""

import datetime
import time

# Typing imports
from typing import (
    Optional,
    Union,
)

# seconds between 01-01-1900 and 01-01-1970
NTP_EPOCH_OFFSET = 2208988800

_FRAC = 1 << 32
_MASK32 = 0xFFFFFFFF
_UNIX_EPOCH = datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc)


def now_to_ntp64():
    # type: () -> int
    """Captures the wall clock and encodes it as NTP64."""
    return unix_ns_to_ntp64(time.time_ns())


def unix_ns_to_ntp64(ns):
    # type: (int) -> int
    secs, nanos = divmod(ns, 10**9)
    frac = (nanos << 32) // 10**9
    return ((secs + NTP_EPOCH_OFFSET) & _MASK32) << 32 | frac


def ntp64_to_unix_ns(ntp):
    # type: (int) -> int
    secs = (ntp >> 32) - NTP_EPOCH_OFFSET
    frac = ntp & _MASK32
    # round to the nearest nanosecond
    return secs * 10**9 + ((frac * 10**9 + (1 << 31)) >> 32)


def ntp64_to_seconds(ntp):
    # type: (int) -> float
    """
    Converts an NTP64 value to floating seconds since the NTP epoch.
    """
    return float(ntp >> 32) + float(ntp & _MASK32) / _FRAC


def seconds_to_ntp64(seconds):
    # type: (float) -> int
    """
    Converts floating seconds since the NTP epoch to NTP64.
    """
    whole = int(seconds // 1)
    frac = int((seconds - whole) * _FRAC)
    return (whole & _MASK32) << 32 | (frac & _MASK32)


def time32_to_seconds(val):
    # type: (int) -> float
    """Decodes a 16.16 fixed point value (root delay, root dispersion)."""
    return float(val >> 16) + float(val & 0xFFFF) / 65536.0


def seconds_to_time32(seconds):
    # type: (float) -> int
    whole = int(seconds)
    return (whole & 0xFFFF) << 16 | int((seconds - whole) * 65536) & 0xFFFF


def time_to_ntp64(t):
    # type: (Union[datetime.datetime, float]) -> int
    """
    Encodes a calendar time as NTP64.

    :param t: an aware (or UTC naive) datetime, or a Unix timestamp
    """
    if isinstance(t, datetime.datetime):
        if t.tzinfo is None:
            t = t.replace(tzinfo=datetime.timezone.utc)
        delta = t - _UNIX_EPOCH
        secs = delta.days * 86400 + delta.seconds
        frac = (delta.microseconds << 32) // 10**6
        return ((secs + NTP_EPOCH_OFFSET) & _MASK32) << 32 | frac
    return seconds_to_ntp64(t + NTP_EPOCH_OFFSET)


def ntp64_to_time(ntp):
    # type: (int) -> datetime.datetime
    """
    Decodes an NTP64 value as an aware UTC datetime, rounded to the
    microsecond.
    """
    secs = (ntp >> 32) - NTP_EPOCH_OFFSET
    micros = ((ntp & _MASK32) * 10**6 + (1 << 31)) >> 32
    return _UNIX_EPOCH + datetime.timedelta(seconds=secs,
                                            microseconds=micros)


def ntp64_repr(ntp):
    # type: (Optional[int]) -> str
    if ntp is None:
        return "--"
    if ntp >> 32 < NTP_EPOCH_OFFSET:
        return hex(ntp)
    return ntp64_to_time(ntp).strftime("%a, %d %b %Y %H:%M:%S.%f +0000")
