# SPDX-License-Identifier: GPL-2.0-only
# This file is part of ntpprobe
# See https://scapy.net/ for more information on the underlying framework

"""
Decoding of NTP responses.

The version declared by the server in the first byte, not the version
that was requested, selects the header layout.
"""

from ntpprobe.error import NTPUnknownVersionError, log_runtime
from ntpprobe.layers import (
    HeaderLayout,
    NTP_HEADER_LEN,
    decode_ntpv5_flags,
    guess_layout,
    split_livnmode,
)
from ntpprobe.result import AnomalyKind, MeasurementResult, NO_DRAFT
from ntpprobe.timestamp import time32_to_seconds
from ntpprobe.timing import offset_rtt_ntp64

# Typing imports
from typing import (
    Callable,
    Dict,
    Optional,
)
from ntpprobe.layers import _NTPFixedHeader


def detect_anomaly(orig, recv, tx):
    # type: (Optional[int], Optional[int], Optional[int]) -> Optional[AnomalyKind]  # noqa: E501
    """
    Returns the first of the origin, receive and transmit timestamps that
    is exactly zero. None values are timestamps the layout does not carry.
    """
    for kind, val in ((AnomalyKind.ORIG, orig),
                      (AnomalyKind.RECV, recv),
                      (AnomalyKind.TX, tx)):
        if val == 0:
            return kind
    return None


def _first_byte_fields(data):
    # type: (bytes) -> Dict[str, int]
    leap, version, mode = split_livnmode(data[0])
    return {"leap": leap, "version": version, "mode": mode}


def _decode_v1(layout, pkt, data, t1, t4, client_cookie, draft):
    # type: (HeaderLayout, _NTPFixedHeader, bytes, int, int, Optional[int], str) -> MeasurementResult  # noqa: E501
    offset, rtt = offset_rtt_ntp64(t1, pkt.recv, pkt.sent, t4)
    return MeasurementResult(
        rtt=rtt,
        offset=offset,
        layout=layout.value,
        li_status=pkt.status,
        type=pkt.type,
        precision=pkt.precision,
        est_error=pkt.est_error,
        est_drift_rate=pkt.est_drift_rate,
        ref_id=pkt.id,
        ref_timestamp=pkt.ref,
        orig_timestamp=pkt.orig,
        recv_timestamp=pkt.recv,
        tx_timestamp=pkt.sent,
        client_sent_time=t1,
        client_recv_time=t4,
        anomaly=detect_anomaly(pkt.orig, pkt.recv, pkt.sent),
        **_first_byte_fields(data)
    )


def _decode_v3(layout, pkt, data, t1, t4, client_cookie, draft):
    # type: (HeaderLayout, _NTPFixedHeader, bytes, int, int, Optional[int], str) -> MeasurementResult  # noqa: E501
    offset, rtt = offset_rtt_ntp64(t1, pkt.recv, pkt.sent, t4)
    return MeasurementResult(
        rtt=rtt,
        offset=offset,
        layout=layout.value,
        stratum=pkt.stratum,
        poll=pkt.poll,
        precision=pkt.precision,
        root_delay=time32_to_seconds(pkt.delay),
        root_disp=time32_to_seconds(pkt.dispersion),
        ref_id=pkt.id,
        ref_timestamp=pkt.ref,
        orig_timestamp=pkt.orig,
        recv_timestamp=pkt.recv,
        tx_timestamp=pkt.sent,
        client_sent_time=t1,
        client_recv_time=t4,
        anomaly=detect_anomaly(pkt.orig, pkt.recv, pkt.sent),
        **_first_byte_fields(data)
    )


def _decode_v4(layout, pkt, data, t1, t4, client_cookie, draft):
    # type: (HeaderLayout, _NTPFixedHeader, bytes, int, int, Optional[int], str) -> MeasurementResult  # noqa: E501
    res = _decode_v3(layout, pkt, data, t1, t4, client_cookie, draft)
    if len(data) > NTP_HEADER_LEN:
        res.extensions = list(pkt.extensions)
        log_runtime.debug("%d extension(s) in %d trailing bytes",
                          len(res.extensions), len(data) - NTP_HEADER_LEN)
    return res


def _decode_v5(layout, pkt, data, t1, t4, client_cookie, draft):
    # type: (HeaderLayout, _NTPFixedHeader, bytes, int, int, Optional[int], str) -> MeasurementResult  # noqa: E501
    offset, rtt = offset_rtt_ntp64(t1, pkt.recv, pkt.sent, t4)
    flags = int(pkt.flags)
    res = MeasurementResult(
        rtt=rtt,
        offset=offset,
        layout=layout.value,
        stratum=pkt.stratum,
        poll=pkt.poll,
        precision=pkt.precision,
        root_delay=time32_to_seconds(pkt.delay),
        root_disp=time32_to_seconds(pkt.dispersion),
        timescale=pkt.timescale,
        era=pkt.era,
        flags_raw=flags,
        flags_decoded=decode_ntpv5_flags(flags),
        server_cookie=pkt.server_cookie,
        client_cookie=pkt.client_cookie,
        client_cookie_valid=(client_cookie is not None and
                             pkt.client_cookie == client_cookie),
        recv_timestamp=pkt.recv,
        tx_timestamp=pkt.sent,
        client_sent_time=t1,
        client_recv_time=t4,
        draft=draft or NO_DRAFT,
        anomaly=detect_anomaly(None, pkt.recv, pkt.sent),
        **_first_byte_fields(data)
    )
    if len(data) > NTP_HEADER_LEN:
        res.extensions = list(pkt.extensions)
    return res


_decoders = {
    HeaderLayout.V1: _decode_v1,
    HeaderLayout.V2V3: _decode_v3,
    HeaderLayout.V4: _decode_v4,
    HeaderLayout.V5_DRAFT_05: _decode_v5,
    HeaderLayout.V5_DRAFT_06: _decode_v5,
}  # type: Dict[HeaderLayout, Callable[..., MeasurementResult]]


def decode_layout(layout, data, t1, t4, client_cookie=None, draft=""):
    # type: (HeaderLayout, bytes, int, int, Optional[int], Optional[str]) -> MeasurementResult  # noqa: E501
    """
    Decodes data with an explicit header layout.

    :param t1: client transmit time (NTP64)
    :param t4: client receive time (NTP64)
    :param client_cookie: cookie sent in an NTPv5 request
    :raises NTPParseError: if data is shorter than the fixed header
    """
    pkt = layout.cls(data)
    return _decoders[layout](layout, pkt, data, t1, t4, client_cookie,
                             draft or "")


def parse_response(data, t1, t4, client_cookie=None, draft=""):
    # type: (bytes, int, int, Optional[int], Optional[str]) -> MeasurementResult  # noqa: E501
    """
    Decodes a server response according to the version it declares.

    :param draft: NTPv5 draft hint; the draft is not visible on the wire
        and anything but draft 06 is decoded with the draft 05 layout
    :raises NTPUnknownVersionError: if the declared version is not 1 to 5
    :raises NTPParseError: if data is too short for its layout
    """
    layout = guess_layout(data, draft)
    if layout is None:
        raise NTPUnknownVersionError(split_livnmode(data[0])[1])
    return decode_layout(layout, data, t1, t4, client_cookie, draft)
