# SPDX-License-Identifier: GPL-2.0-only
# This file is part of ntpprobe
# See https://scapy.net/ for more information on the underlying framework

"""
NTP headers, from NTPv1 to the NTPv5 drafts.
References: RFC 1059, RFC 1119, RFC 1305, RFC 5905, RFC 7822,
draft-ietf-ntp-ntpv5-05, draft-ietf-ntp-ntpv5-06
"""

from enum import Enum

from scapy.config import conf as scapy_conf
from scapy.fields import (
    BitEnumField,
    BitField,
    ByteEnumField,
    ByteField,
    FlagsField,
    IntField,
    ShortField,
    SignedByteField,
    XByteField,
    XIntField,
    XLongField,
)
from scapy.packet import Packet

from ntpprobe.config import conf, DRAFT_NTPV5_05, DRAFT_NTPV5_06
from ntpprobe.error import NTPParseError, warning
from ntpprobe.extensions import NTPExtensionListField
from ntpprobe.fields import NTPShortField, NTPTimestampField

# Typing imports
from typing import (
    Any,
    Optional,
    Tuple,
    Type,
)

NTP_HEADER_LEN = 48
MODE_CLIENT = 3
MODE_SERVER = 4

# RFC 5905 / Section 7.3
_leap_indicator = {
    0: "no warning",
    1: "last minute of the day has 61 seconds",
    2: "last minute of the day has 59 seconds",
    3: "unknown (clock unsynchronized)"
}

# RFC 5905 / Section 7.3
_ntp_modes = {
    0: "reserved",
    1: "symmetric active",
    2: "symmetric passive",
    3: "client",
    4: "server",
    5: "broadcast",
    6: "NTP control message",
    7: "reserved for private use"
}

_ntpv5_timescales = {
    0: "UTC",
    1: "TAI",
    2: "UT1",
    3: "leap-smeared UTC",
}

NTPV5_FLAGS = ["synchronized", "interleaved", "auth_nak"]


def split_livnmode(first_byte):
    # type: (int) -> Tuple[int, int, int]
    """Splits the first header byte into (leap, version, mode)."""
    return (first_byte >> 6) & 0x03, (first_byte >> 3) & 0x07, first_byte & 0x07


def decode_ntpv5_flags(flags):
    # type: (int) -> dict
    return {name: bool(int(flags) & (1 << i))
            for i, name in enumerate(NTPV5_FLAGS)}


class _NTPFixedHeader(Packet):
    """
    Base class of the 48 bytes NTP headers.
    """

    def pre_dissect(self, s):
        # type: (bytes) -> bytes
        """
        Check that the data is long enough to hold the fixed header.
        """
        if len(s) < NTP_HEADER_LEN:
            raise NTPParseError("response too short: %d bytes" % len(s))
        return s

    def mysummary(self):
        # type: () -> str
        return self.name


class NTPv1Header(_NTPFixedHeader):
    """
    NTPv1 header: status byte, request type, then 16 bits precision,
    estimated error and drift rate.
    """
    name = "NTPv1"
    fields_desc = [
        XByteField("status", 0),
        ByteField("type", 0),
        ShortField("precision", 0),
        IntField("est_error", 0),
        IntField("est_drift_rate", 0),
        XIntField("id", 0),
        NTPTimestampField("ref", 0),
        NTPTimestampField("orig", 0),
        NTPTimestampField("recv", 0),
        NTPTimestampField("sent", None),
    ]


class NTPv3Header(_NTPFixedHeader):
    """
    NTPv2 and NTPv3 header (RFC 1119, RFC 1305).
    """

    #########################################################################
    #
    #   0                   1                   2                   3
    #   0 1 2 3 4 5 6 7 8 9 0 1 2 3 4 5 6 7 8 9 0 1 2 3 4 5 6 7 8 9 0 1
    #  +-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+
    #  |LI | VN  |Mode |    Stratum     |     Poll      |  Precision   |
    #  +-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+
    #  |                         Root Delay                            |
    #  +-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+
    #  |                         Root Dispersion                       |
    #  +-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+
    #  |                          Reference ID                         |
    #  +-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+
    #  +                     Reference Timestamp (64)                  +
    #  +                      Origin Timestamp (64)                    +
    #  +                      Receive Timestamp (64)                   +
    #  +                      Transmit Timestamp (64)                  +
    #  +-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+
    #########################################################################

    name = "NTPv3"
    fields_desc = [
        BitEnumField("leap", 0, 2, _leap_indicator),
        BitField("version", 3, 3),
        BitEnumField("mode", MODE_CLIENT, 3, _ntp_modes),
        ByteField("stratum", 0),
        SignedByteField("poll", 0),
        SignedByteField("precision", 0),
        NTPShortField("delay", 0),
        NTPShortField("dispersion", 0),
        XIntField("id", 0),
        NTPTimestampField("ref", 0),
        NTPTimestampField("orig", 0),
        NTPTimestampField("recv", 0),
        NTPTimestampField("sent", None),
    ]


class NTPv4Header(NTPv3Header):
    """
    NTPv4 header (RFC 5905): the NTPv3 layout followed by extension fields.
    """
    name = "NTPv4"
    fields_desc = [
        BitEnumField("leap", 0, 2, _leap_indicator),
        BitField("version", 4, 3),
        BitEnumField("mode", MODE_CLIENT, 3, _ntp_modes),
        ByteField("stratum", 0),
        SignedByteField("poll", 0),
        SignedByteField("precision", 0),
        NTPShortField("delay", 0),
        NTPShortField("dispersion", 0),
        XIntField("id", 0),
        NTPTimestampField("ref", 0),
        NTPTimestampField("orig", 0),
        NTPTimestampField("recv", 0),
        NTPTimestampField("sent", None),
        NTPExtensionListField("extensions", []),
    ]


class NTPv5Draft05Header(_NTPFixedHeader):
    """
    NTPv5 header as laid out by draft-ietf-ntp-ntpv5-05: timescale, era and
    flags come before the root delay and dispersion.
    """
    name = "NTPv5 (draft 05)"
    fields_desc = [
        BitEnumField("leap", 0, 2, _leap_indicator),
        BitField("version", 5, 3),
        BitEnumField("mode", MODE_CLIENT, 3, _ntp_modes),
        ByteField("stratum", 0),
        SignedByteField("poll", 0),
        SignedByteField("precision", 0),
        ByteEnumField("timescale", 0, _ntpv5_timescales),
        ByteField("era", 0),
        FlagsField("flags", 0, 16, NTPV5_FLAGS),
        NTPShortField("delay", 0),
        NTPShortField("dispersion", 0),
        XLongField("server_cookie", 0),
        XLongField("client_cookie", 0),
        NTPTimestampField("recv", 0),
        NTPTimestampField("sent", 0),
        NTPExtensionListField("extensions", []),
    ]


class NTPv5Draft06Header(_NTPFixedHeader):
    """
    NTPv5 header as laid out by draft-ietf-ntp-ntpv5-06: the root delay and
    dispersion moved before timescale, era and flags.
    """
    name = "NTPv5 (draft 06)"
    fields_desc = [
        BitEnumField("leap", 0, 2, _leap_indicator),
        BitField("version", 5, 3),
        BitEnumField("mode", MODE_CLIENT, 3, _ntp_modes),
        ByteField("stratum", 0),
        SignedByteField("poll", 0),
        SignedByteField("precision", 0),
        NTPShortField("delay", 0),
        NTPShortField("dispersion", 0),
        ByteEnumField("timescale", 0, _ntpv5_timescales),
        ByteField("era", 0),
        FlagsField("flags", 0, 16, NTPV5_FLAGS),
        XLongField("server_cookie", 0),
        XLongField("client_cookie", 0),
        NTPTimestampField("recv", 0),
        NTPTimestampField("sent", 0),
        NTPExtensionListField("extensions", []),
    ]


class HeaderLayout(Enum):
    """
    The wire layouts of the 48 bytes NTP header.
    """
    V1 = "ntpv1"
    V2V3 = "ntpv2/3"
    V4 = "ntpv4"
    V5_DRAFT_05 = DRAFT_NTPV5_05
    V5_DRAFT_06 = DRAFT_NTPV5_06

    @property
    def cls(self):
        # type: () -> Type[_NTPFixedHeader]
        return _layout_classes[self]


_layout_classes = {
    HeaderLayout.V1: NTPv1Header,
    HeaderLayout.V2V3: NTPv3Header,
    HeaderLayout.V4: NTPv4Header,
    HeaderLayout.V5_DRAFT_05: NTPv5Draft05Header,
    HeaderLayout.V5_DRAFT_06: NTPv5Draft06Header,
}


def ntpv5_layout(draft=""):
    # type: (Optional[str]) -> HeaderLayout
    """
    Picks the NTPv5 layout from a draft hint. The draft in use is not
    visible on the wire: anything but draft 06 is decoded as draft 05.
    """
    if draft == DRAFT_NTPV5_06:
        return HeaderLayout.V5_DRAFT_06
    if draft and draft not in conf.known_drafts:
        warning("Unsupported NTPv5 draft %r: decoding with the %s header",
                draft, DRAFT_NTPV5_05)
    return HeaderLayout.V5_DRAFT_05


def guess_layout(data, draft=""):
    # type: (bytes, Optional[str]) -> Optional[HeaderLayout]
    """
    Returns the layout matching the version declared by the sender, or None
    when that version is unknown.
    """
    if not data:
        raise NTPParseError("empty datagram")
    _, version, _ = split_livnmode(data[0])
    if version == 1:
        return HeaderLayout.V1
    elif version in (2, 3):
        return HeaderLayout.V2V3
    elif version == 4:
        return HeaderLayout.V4
    elif version == 5:
        return ntpv5_layout(draft)
    return None


class NTP(Packet):
    """
    Base class that allows easier instantiation of an NTP header from
    binary data, whatever its version.
    """

    @classmethod
    def dispatch_hook(cls, _pkt=None, *args, **kargs):
        # type: (Optional[bytes], *Any, **Any) -> Type[Packet]
        """
        Returns the right class for the given data.
        """
        if not _pkt:
            return NTPv4Header
        layout = guess_layout(_pkt, conf.ntpv5_draft)
        if layout is None:
            return scapy_conf.raw_layer
        return layout.cls
