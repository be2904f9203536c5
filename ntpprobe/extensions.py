# SPDX-License-Identifier: GPL-2.0-only
# This file is part of ntpprobe
# See https://scapy.net/ for more information on the underlying framework

"""
NTP extension fields (RFC 7822), shared by the NTPv4 and NTPv5 headers.
"""

import struct

from scapy.fields import (
    FieldLenField,
    PacketListField,
    ShortField,
    StrLenField,
    XShortEnumField,
)
from scapy.packet import Packet

from ntpprobe.error import log_runtime

# Typing imports
from typing import (
    Any,
    Dict,
    List,
    Optional,
    Tuple,
    Type,
)

NTP_EXT_HDR_LEN = 4
NTP_EXT_DRAFT_ID = 0xF5FF
# Draft identifiers are at most 23 bytes long; servers only answered when
# the extension was sent with this exact total length.
NTP_EXT_DRAFT_ID_LEN = 28

_extension_types = {
    0x0104: "Unique Identifier",
    0x0204: "NTS Cookie",
    0x0304: "NTS Cookie Placeholder",
    0x0404: "NTS Authenticator",
    0xF5FF: "Draft Identification",
}


class NTPExtension(Packet):
    """
    Packet handling one NTP extension field.
    """

    #########################################################################
    #
    #     0                   1                   2                   3
    #     0 1 2 3 4 5 6 7 8 9 0 1 2 3 4 5 6 7 8 9 0 1 2 3 4 5 6 7 8 9 0 1
    #    +-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+
    #    |          Field Type           |            Length             |
    #    +-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+
    #    .                            Value                              .
    #    +-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+
    #    |                       Padding (as needed)                     |
    #    +-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+
    #
    # Length covers the 4 bytes header, the value and the padding.
    #########################################################################

    name = "NTP extension"
    fields_desc = [
        XShortEnumField("type", 0, _extension_types),
        FieldLenField("len", None, length_of="value",
                      adjust=lambda pkt, x: x + NTP_EXT_HDR_LEN),
        StrLenField("value", b"",
                    length_from=lambda pkt: pkt.len - NTP_EXT_HDR_LEN),
    ]

    @classmethod
    def dispatch_hook(cls, _pkt=None, *args, **kargs):
        # type: (Optional[bytes], *Any, **Any) -> Type[Packet]
        if _pkt and len(_pkt) >= 2:
            if struct.unpack("!H", _pkt[:2])[0] == NTP_EXT_DRAFT_ID:
                return NTPDraftIdentification
        return cls

    def post_build(self, pkt, pay):
        # type: (bytes, bytes) -> bytes
        # zero-pad to a word boundary
        pad = -len(pkt) % 4
        if pad:
            pkt += b"\x00" * pad
            if self.len is None:
                pkt = pkt[:2] + struct.pack("!H", len(pkt)) + pkt[4:]
        return pkt + pay

    def extract_padding(self, s):
        # type: (bytes) -> Tuple[bytes, Optional[bytes]]
        return b"", s

    def ext_data(self):
        # type: () -> bytes
        """Returns the value bytes (everything after the 4 bytes header)."""
        return self.value or b""

    def to_dict(self):
        # type: () -> Dict[str, Any]
        data = self.ext_data()
        return {
            "type": self.type,
            "length": self.len if self.len is not None else len(self),
            "data": data.hex(),
        }

    def mysummary(self):
        # type: () -> str
        return self.sprintf("NTP extension %type% (%len% bytes)")


class NTPDraftIdentification(NTPExtension):
    """
    NTPv5 Draft Identification extension: the name of the draft the
    client implements, zero padded.
    """

    name = "NTPv5 draft identification"
    fields_desc = [
        XShortEnumField("type", NTP_EXT_DRAFT_ID, _extension_types),
        ShortField("len", NTP_EXT_DRAFT_ID_LEN),
        StrLenField("draft", b"",
                    length_from=lambda pkt: pkt.len - NTP_EXT_HDR_LEN),
    ]

    def post_build(self, pkt, pay):
        # type: (bytes, bytes) -> bytes
        if len(pkt) < self.len:
            pkt += b"\x00" * (self.len - len(pkt))
        return pkt + pay

    def ext_data(self):
        # type: () -> bytes
        return self.draft or b""

    def draft_name(self):
        # type: () -> str
        return self.ext_data().rstrip(b"\x00").decode("ascii", "replace")

    def to_dict(self):
        # type: () -> Dict[str, Any]
        d = super(NTPDraftIdentification, self).to_dict()
        d["draft"] = self.draft_name()
        return d

    def mysummary(self):
        # type: () -> str
        return "NTPv5 draft identification %s" % self.draft_name()


def scan_extensions(s):
    # type: (bytes) -> Tuple[List[NTPExtension], int]
    """
    Walks the extension fields found after a fixed NTP header.

    Scanning stops, without error, when less than 4 bytes remain or when a
    declared length is shorter than the extension header or longer than the
    remaining data. The extensions collected so far are kept.

    :return: the extensions and the number of bytes they cover
    """
    exts = []  # type: List[NTPExtension]
    consumed = 0
    total = len(s)
    while total - consumed >= NTP_EXT_HDR_LEN:
        typ, length = struct.unpack("!HH", s[consumed:consumed + 4])
        if length < NTP_EXT_HDR_LEN or length > total - consumed:
            log_runtime.debug(
                "Malformed extension (type=0x%04x, length=%d, %d bytes "
                "left): stopping", typ, length, total - consumed
            )
            break
        exts.append(NTPExtension(s[consumed:consumed + length]))
        consumed += length
    return exts, consumed


class NTPExtensionListField(PacketListField):
    """
    PacketListField handling the trailing extension fields of an NTPv4 or
    NTPv5 header. Bytes that cannot be scanned are left to the payload.
    """

    def __init__(self, name, default):
        # type: (str, Optional[List[NTPExtension]]) -> None
        super(NTPExtensionListField, self).__init__(name, default,
                                                    NTPExtension)

    def getfield(self, pkt, s):
        # type: (Packet, bytes) -> Tuple[bytes, List[NTPExtension]]
        exts, consumed = scan_extensions(s)
        return s[consumed:], exts
