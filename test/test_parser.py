# SPDX-License-Identifier: GPL-2.0-only
# This file is part of ntpprobe
# See https://scapy.net/ for more information on the underlying framework

import logging
import struct

import pytest
from scapy.compat import raw
from scapy.packet import Raw

from ntpprobe.builder import build_ntpv1_request
from ntpprobe.config import DRAFT_NTPV5_04, DRAFT_NTPV5_05, DRAFT_NTPV5_06
from ntpprobe.error import NTPParseError, NTPUnknownVersionError
from ntpprobe.extensions import NTPDraftIdentification, NTPExtension
from ntpprobe.layers import (
    HeaderLayout,
    MODE_SERVER,
    NTP,
    NTPv3Header,
    NTPv4Header,
    NTPv5Draft05Header,
    NTPv5Draft06Header,
    guess_layout,
)
from ntpprobe.parser import decode_layout, detect_anomaly, parse_response
from ntpprobe.result import AnomalyKind, NO_DRAFT
from ntpprobe.timing import offset_rtt_ntp64

BASE = 0xE9000000 << 32
T1 = BASE
T2 = BASE + (1 << 32) + (1 << 31)
T3 = BASE + (2 << 32)
T4 = BASE + (3 << 32)


def _ntpv4_response(**kargs):
    fields = dict(mode=MODE_SERVER, stratum=2, poll=6, precision=-20,
                  delay=0x00018000, dispersion=0x00004000, id=0xC0000201,
                  ref=BASE, orig=T1, recv=T2, sent=T3)
    fields.update(kargs)
    return raw(NTPv4Header(**fields))


def test_ntpv4_response():
    """
    Decoding of an NTPv4 server response
    """
    res = parse_response(_ntpv4_response(), T1, T4)
    assert res.layout == HeaderLayout.V4.value
    assert res.version == 4
    assert res.leap == 0
    assert res.mode == MODE_SERVER
    assert res.stratum == 2
    assert res.poll == 6
    assert res.precision == -20
    assert res.root_delay == 1.5
    assert res.root_disp == 0.25
    assert res.ref_id == 0xC0000201
    assert res.orig_timestamp == T1
    assert res.recv_timestamp == T2
    assert res.tx_timestamp == T3
    assert res.client_sent_time == T1
    assert res.client_recv_time == T4
    assert (res.offset, res.rtt) == (0.25, 2.5)
    assert res.anomaly is None
    assert res.extensions is None


def test_server_version_selects_decoder():
    """
    The version declared by the server is used, whatever was requested
    """
    data = raw(NTPv3Header(version=4, mode=MODE_SERVER, orig=T1, recv=T2,
                           sent=T3))
    assert guess_layout(data) == HeaderLayout.V4
    assert parse_response(data, T1, T4).layout == "ntpv4"

    data = raw(NTPv3Header(version=2, mode=MODE_SERVER, orig=T1, recv=T2,
                           sent=T3))
    res = parse_response(data, T1, T4)
    assert res.layout == "ntpv2/3"
    assert res.version == 2


@pytest.mark.parametrize("version", [0, 6, 7])
def test_unknown_version(version):
    data = bytes([(version << 3) | MODE_SERVER]) + b"\x00" * 47
    with pytest.raises(NTPUnknownVersionError) as excinfo:
        parse_response(data, T1, T4)
    assert excinfo.value.version == version
    assert "unknown version" in str(excinfo.value)


@pytest.mark.parametrize("first_byte", [0x0c, 0x14, 0x1c, 0x24, 0x2c])
def test_short_response(first_byte):
    """
    Less than 48 bytes is never decoded, whatever the version
    """
    for length in (1, 20, 47):
        data = bytes([first_byte]) + b"\x00" * (length - 1)
        with pytest.raises(NTPParseError):
            parse_response(data, T1, T4)


def test_empty_response():
    with pytest.raises(NTPParseError):
        parse_response(b"", T1, T4)


def test_detect_anomaly():
    """
    Only the first zero timestamp, in orig, recv, tx order, is reported
    """
    assert detect_anomaly(0, 0, 0) == AnomalyKind.ORIG
    assert detect_anomaly(0, 1, 1) == AnomalyKind.ORIG
    assert detect_anomaly(1, 0, 0) == AnomalyKind.RECV
    assert detect_anomaly(1, 1, 0) == AnomalyKind.TX
    assert detect_anomaly(1, 1, 1) is None
    assert detect_anomaly(None, 1, 0) == AnomalyKind.TX
    assert AnomalyKind.ORIG.message == \
        "timestamps are invalid, orig_timestamp (t1) is 0"


def test_response_anomaly():
    res = parse_response(_ntpv4_response(orig=0, recv=0, sent=0), T1, T4)
    assert res.anomaly == AnomalyKind.ORIG
    res = parse_response(_ntpv4_response(sent=0), T1, T4)
    assert res.anomaly == AnomalyKind.TX
    assert res.to_dict()["anomaly"] == \
        "timestamps are invalid, tx_timestamp (t3) is 0"


def test_ntpv1_loopback():
    """
    A v1 request fed back as its own response
    """
    data, t1 = build_ntpv1_request(T1)
    # server receive and transmit timestamps
    data = data[:32] + struct.pack("!QQ", T2, T3)
    res = decode_layout(HeaderLayout.V1, data, t1, T4)
    assert res.layout == "ntpv1"
    assert res.li_status == 0x01
    assert res.recv_timestamp == T2
    assert res.tx_timestamp == T3
    assert (res.offset, res.rtt) == offset_rtt_ntp64(T1, T2, T3, T4)
    assert (res.offset, res.rtt) == (0.25, 2.5)
    # the request carries no origin timestamp
    assert res.anomaly == AnomalyKind.ORIG


def test_ntpv1_response():
    data = bytes([0x0c]) + b"\x00" * 39 + struct.pack("!Q", T3)
    data = data[:32] + struct.pack("!Q", T2) + data[40:]
    res = parse_response(data, T1, T4)
    assert res.version == 1
    assert res.mode == MODE_SERVER
    assert res.stratum is None
    assert "stratum" not in res.to_dict()


def test_ntpv4_extensions():
    """
    Extensions trailing an NTPv4 header
    """
    data = _ntpv4_response() + raw(NTPExtension(type=0x0104,
                                                value=b"uniqueid"))
    res = parse_response(data, T1, T4)
    assert len(res.extensions) == 1
    assert res.extensions[0].ext_data() == b"uniqueid"
    assert res.to_dict()["extensions"] == [
        {"type": 0x0104, "length": 12, "data": b"uniqueid".hex()}
    ]

    # garbage trailing bytes are not an error
    res = parse_response(_ntpv4_response() + b"\x00\x01\xff\xff",
                         T1, T4)
    assert res.extensions == []


def _ntpv5_response(cls, **kargs):
    fields = dict(mode=MODE_SERVER, stratum=1, poll=4, precision=-24,
                  timescale=1, era=0, flags=0x3, delay=0x00008000,
                  dispersion=0x00020000, server_cookie=0xAAAA,
                  client_cookie=0xBBBB, recv=T2, sent=T3)
    fields.update(kargs)
    return raw(cls(**fields))


def test_ntpv5_draft05():
    """
    NTPv5 with the draft 05 layout
    """
    data = _ntpv5_response(NTPv5Draft05Header)
    res = parse_response(data, T1, T4, 0xBBBB, DRAFT_NTPV5_05)
    assert res.layout == DRAFT_NTPV5_05
    assert res.version == 5
    assert res.timescale == 1
    assert res.era == 0
    assert res.flags_raw == 0x3
    assert res.flags_decoded == {"synchronized": True, "interleaved": True,
                                 "auth_nak": False}
    assert res.root_delay == 0.5
    assert res.root_disp == 2.0
    assert res.server_cookie == 0xAAAA
    assert res.client_cookie == 0xBBBB
    assert res.client_cookie_valid is True
    assert res.draft == DRAFT_NTPV5_05
    assert res.orig_timestamp is None
    assert res.anomaly is None
    assert (res.offset, res.rtt) == (0.25, 2.5)


def test_ntpv5_draft06():
    """
    The draft hint picks the layout: draft 06 moves the root delay
    """
    data = _ntpv5_response(NTPv5Draft06Header)
    res = parse_response(data, T1, T4, 0xBBBB, DRAFT_NTPV5_06)
    assert res.layout == DRAFT_NTPV5_06
    assert res.root_delay == 0.5
    assert res.root_disp == 2.0
    assert res.timescale == 1
    assert res.flags_raw == 0x3

    # the same bytes read with the draft 05 layout are misplaced
    res = parse_response(data, T1, T4, 0xBBBB)
    assert res.layout == DRAFT_NTPV5_05
    assert res.root_delay != 0.5
    assert res.draft == NO_DRAFT


def test_ntpv5_cookie_mismatch():
    data = _ntpv5_response(NTPv5Draft05Header, client_cookie=0xCCCC,
                           recv=0)
    res = parse_response(data, T1, T4, 0xBBBB)
    assert res.client_cookie_valid is False
    assert res.anomaly == AnomalyKind.RECV


def test_ntpv5_unknown_draft(caplog):
    """
    Unknown drafts are decoded with the draft 05 layout
    """
    data = _ntpv5_response(NTPv5Draft05Header)
    with caplog.at_level(logging.WARNING, logger="ntpprobe.runtime"):
        res = parse_response(data, T1, T4, 0xBBBB, DRAFT_NTPV5_04)
    assert res.layout == DRAFT_NTPV5_05
    assert res.draft == DRAFT_NTPV5_04
    assert "Unsupported NTPv5 draft" in caplog.text


def test_ntpv5_draft_extension():
    data = _ntpv5_response(NTPv5Draft05Header) + raw(
        NTPDraftIdentification(draft=DRAFT_NTPV5_05.encode()))
    res = parse_response(data, T1, T4, 0xBBBB, DRAFT_NTPV5_05)
    assert len(res.extensions) == 1
    assert res.extensions[0].draft_name() == DRAFT_NTPV5_05


def test_ntp_dispatch():
    """
    NTP() picks the header class from the data
    """
    pkt = NTP(_ntpv4_response())
    assert isinstance(pkt, NTPv4Header)
    assert pkt.stratum == 2
    pkt = NTP(_ntpv5_response(NTPv5Draft05Header))
    assert isinstance(pkt, NTPv5Draft05Header)
    pkt = NTP(bytes([0x34]) + b"\x00" * 47)
    assert isinstance(pkt, Raw)
    assert isinstance(NTP(), NTPv4Header)
