# SPDX-License-Identifier: GPL-2.0-only
# This file is part of ntpprobe
# See https://scapy.net/ for more information on the underlying framework

"""
Client requests for every NTP version.
"""

from scapy.compat import raw
from scapy.volatile import RandLong

from ntpprobe.error import log_runtime
from ntpprobe.extensions import NTPDraftIdentification, NTP_EXT_DRAFT_ID_LEN
from ntpprobe.layers import (
    NTPv1Header,
    NTPv3Header,
    NTPv4Header,
    NTPv5Draft05Header,
)
from ntpprobe.timestamp import now_to_ntp64

# Typing imports
from typing import (
    Any,
    Optional,
    Tuple,
)

# LI=0 and request code 1 in the first byte of an NTPv1 request
NTPV1_REQUEST_STATUS = 0x01

_DRAFT_MAX_LEN = NTP_EXT_DRAFT_ID_LEN - 4


def build_ntpv1_request(t1=None):
    # type: (Optional[int]) -> Tuple[bytes, int]
    """
    Builds a 48 bytes NTPv1 request. Only the first byte and the transmit
    timestamp are set.

    :param t1: transmit timestamp (NTP64), defaults to now
    :return: the datagram and t1
    """
    if t1 is None:
        t1 = now_to_ntp64()
    return raw(NTPv1Header(status=NTPV1_REQUEST_STATUS, sent=t1)), t1


def build_ntpv3_request(version=3, t1=None):
    # type: (int, Optional[int]) -> Tuple[bytes, int]
    """
    Builds a 48 bytes NTPv2 or NTPv3 client request.
    """
    if version not in (2, 3):
        raise ValueError("NTPv2/v3 request with version %r" % version)
    if t1 is None:
        t1 = now_to_ntp64()
    return raw(NTPv3Header(version=version, sent=t1)), t1


def build_ntpv4_request(t1=None):
    # type: (Optional[int]) -> Tuple[bytes, int]
    if t1 is None:
        t1 = now_to_ntp64()
    return raw(NTPv4Header(sent=t1)), t1


def build_ntpv5_request(draft="", rand=None):
    # type: (Optional[str], Any) -> Tuple[bytes, int]
    """
    Builds an NTPv5 client request. The random client cookie is the only
    non zero field after the first byte; it correlates the response, so the
    timestamps are left to zero.

    :param draft: when set, a Draft Identification extension carrying this
        name is appended
    :param rand: source of the client cookie, anything int() turns into a
        64 bits value (a RandNum, an int...); defaults to RandLong()
    :return: the datagram and the client cookie
    """
    if rand is None:
        rand = RandLong()
    cookie = int(rand) & 0xFFFFFFFFFFFFFFFF
    pkt = NTPv5Draft05Header(client_cookie=cookie)
    if draft:
        name = draft.encode("ascii")
        if len(name) > _DRAFT_MAX_LEN:
            log_runtime.warning("Draft name %r truncated to %d bytes",
                                draft, _DRAFT_MAX_LEN)
            name = name[:_DRAFT_MAX_LEN]
        pkt.extensions = [NTPDraftIdentification(draft=name)]
    return raw(pkt), cookie


def build_request(version, draft="", rand=None):
    # type: (int, Optional[str], Any) -> Tuple[bytes, int, Optional[int]]
    """
    Builds a client request for the given version.

    :return: the datagram, t1 (NTP64) and the client cookie (NTPv5 only)
    """
    if version == 1:
        req, t1 = build_ntpv1_request()
        return req, t1, None
    elif version in (2, 3):
        req, t1 = build_ntpv3_request(version)
        return req, t1, None
    elif version == 4:
        req, t1 = build_ntpv4_request()
        return req, t1, None
    elif version == 5:
        t1 = now_to_ntp64()
        req, cookie = build_ntpv5_request(draft, rand)
        return req, t1, cookie
    raise ValueError("Unsupported NTP version: %r" % version)
