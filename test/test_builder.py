# SPDX-License-Identifier: GPL-2.0-only
# This file is part of ntpprobe
# See https://scapy.net/ for more information on the underlying framework

import struct

import pytest
from scapy.volatile import RandNum

from ntpprobe.builder import (
    build_ntpv1_request,
    build_ntpv3_request,
    build_ntpv4_request,
    build_ntpv5_request,
    build_request,
)
from ntpprobe.config import DRAFT_NTPV5_05

T1 = 0xE9A0B0C012345678
COOKIE = 0x0102030405060708


def test_ntpv1_request():
    """
    NTPv1 request: status byte and transmit timestamp only
    """
    data, t1 = build_ntpv1_request(T1)
    assert t1 == T1
    assert len(data) == 48
    assert data[0] == 0x01
    assert data[1:40] == b"\x00" * 39
    assert data[40:] == struct.pack("!Q", T1)


@pytest.mark.parametrize("version,first_byte", [(2, 0x13), (3, 0x1b)])
def test_ntpv3_request(version, first_byte):
    data, _ = build_ntpv3_request(version, T1)
    assert len(data) == 48
    assert data[0] == first_byte
    assert data[1:40] == b"\x00" * 39
    assert data[40:] == struct.pack("!Q", T1)


def test_ntpv3_request_bad_version():
    with pytest.raises(ValueError):
        build_ntpv3_request(4)


def test_ntpv4_request():
    data, _ = build_ntpv4_request(T1)
    assert len(data) == 48
    assert data[0] == 0x23
    assert data[40:] == struct.pack("!Q", T1)


def test_ntpv4_request_uses_now():
    """
    The transmit timestamp defaults to the current time
    """
    data, t1 = build_ntpv4_request()
    assert data[40:] == struct.pack("!Q", t1)
    assert t1 != 0


def test_ntpv5_request():
    """
    NTPv5 request: the client cookie is the only field set
    """
    data, cookie = build_ntpv5_request(rand=COOKIE)
    assert cookie == COOKIE
    assert len(data) == 48
    assert data[0] == 0x2b
    assert data[1:24] == b"\x00" * 23
    assert data[24:32] == struct.pack("!Q", COOKIE)
    assert data[32:] == b"\x00" * 16


def test_ntpv5_request_random_cookie():
    data, cookie = build_ntpv5_request(rand=RandNum(42, 42))
    assert cookie == 42
    assert data[24:32] == struct.pack("!Q", 42)
    _, cookie = build_ntpv5_request()
    assert 0 <= cookie <= 0xFFFFFFFFFFFFFFFF


def test_ntpv5_request_with_draft():
    """
    A draft name adds a 28 bytes Draft Identification extension
    """
    data, _ = build_ntpv5_request(DRAFT_NTPV5_05, rand=COOKIE)
    assert len(data) == 48 + 28
    ext = data[48:]
    assert ext[:4] == b"\xf5\xff\x00\x1c"
    assert ext[4:27] == DRAFT_NTPV5_05.encode()
    assert ext[27:] == b"\x00"


def test_ntpv5_request_long_draft():
    data, _ = build_ntpv5_request("x" * 40, rand=COOKIE)
    assert len(data) == 48 + 28
    assert data[52:] == b"x" * 24


def test_build_request():
    """
    Dispatch on the requested version
    """
    for version, first_byte in [(1, 0x01), (2, 0x13), (3, 0x1b), (4, 0x23)]:
        data, t1, cookie = build_request(version)
        assert data[0] == first_byte
        assert data[40:] == struct.pack("!Q", t1)
        assert cookie is None
    data, t1, cookie = build_request(5, rand=COOKIE)
    assert data[0] == 0x2b
    assert cookie == COOKIE
    assert t1 != 0
    with pytest.raises(ValueError):
        build_request(6)
