# SPDX-License-Identifier: GPL-2.0-only
# This file is part of ntpprobe
# See https://scapy.net/ for more information on the underlying framework

"""
Functions to send an NTP request and measure the server's answer.
"""

import socket
import struct
import time
from collections import OrderedDict

from scapy.supersocket import SimpleSocket
from scapy.utils import hexdump

from ntpprobe.builder import build_request
from ntpprobe.config import conf
from ntpprobe.error import (
    NTPMeasurementError,
    NTPParseError,
    log_runtime,
)
from ntpprobe.parser import parse_response
from ntpprobe.result import (
    ErrorOutcome,
    MeasurementReport,
    MeasurementResult,
    NTP_ERR_CONNECT,
    NTP_ERR_PARSE,
    NTP_ERR_RECV,
    NTP_ERR_SEND,
    NTP_OK,
    ScanReport,
)
from ntpprobe.timestamp import now_to_ntp64

# Typing imports
from typing import (
    Any,
    Iterable,
    List,
    Optional,
)

NTP_VERSIONS = (1, 2, 3, 4, 5)


class DebugLog(object):
    """
    Debug trace of one exchange. Lines are mirrored to the runtime logger.
    """

    def __init__(self):
        # type: () -> None
        self.lines = []  # type: List[str]

    def write(self, msg, *args):
        # type: (str, *Any) -> None
        if args:
            msg = msg % args
        log_runtime.debug(msg)
        self.lines.append(msg + "\n")

    def getvalue(self):
        # type: () -> str
        return "".join(self.lines)


def join_host_port(host, port):
    # type: (str, int) -> str
    if ":" in host:
        return "[%s]:%d" % (host, port)
    return "%s:%d" % (host, port)


def _dial(host, port):
    # type: (str, int) -> socket.socket
    """
    Resolves host and returns a UDP socket connected to the first usable
    address.
    """
    err = None  # type: Optional[OSError]
    for family, stype, proto, _, addr in socket.getaddrinfo(
            host, port, 0, socket.SOCK_DGRAM):
        sock = socket.socket(family, stype, proto)
        try:
            sock.connect(addr)
        except OSError as ex:
            sock.close()
            err = ex
            continue
        return sock
    raise err or OSError("no address found for %s" % host)


def _exchange(host, version, timeout, draft, rand, debug):
    # type: (str, int, float, str, Any, DebugLog) -> MeasurementResult
    target = join_host_port(host, conf.port)
    try:
        sock = _dial(host, conf.port)
    except (OSError, UnicodeError) as ex:
        # UnicodeError: host rejected by the IDNA codec
        raise NTPMeasurementError("error connecting: %s" % ex,
                                  NTP_ERR_CONNECT, ex)
    with SimpleSocket(sock) as s:
        debug.write("connected to %s", target)
        req, t1, cookie = build_request(version, draft, rand)
        debug.write("Packet ntpv%d size sent: %d bytes", version, len(req))
        debug.write(hexdump(req, dump=True))
        try:
            s.send(req)
        except OSError as ex:
            raise NTPMeasurementError("could not send request: %s" % ex,
                                      NTP_ERR_SEND, ex)
        try:
            sock.settimeout(timeout)
            _, data, _ = s.recv_raw(conf.bufsize)
        except socket.timeout as ex:
            raise NTPMeasurementError("measurement timeout: %s" % ex,
                                      NTP_ERR_RECV, ex)
        except OSError as ex:
            raise NTPMeasurementError("error reading bytes: %s" % ex,
                                      NTP_ERR_RECV, ex)
        t4 = now_to_ntp64()
        measured_ip = sock.getpeername()[0]

    debug.write("received response: %d bytes", len(data))
    debug.write(hexdump(data, dump=True))
    try:
        result = parse_response(data, t1, t4, cookie, draft)
    except (NTPParseError, struct.error) as ex:
        raise NTPMeasurementError("error parsing response: %s" % ex,
                                  NTP_ERR_PARSE, ex)
    if result.extensions:
        debug.write("extension(s) detected: %d", len(result.extensions))
    result.host = host
    result.target = target
    result.measured_ip = measured_ip
    return result


def measure(host,  # type: str
            version=4,  # type: int
            timeout=None,  # type: Optional[float]
            draft=None,  # type: Optional[str]
            rand=None,  # type: Any
            ):
    # type: (...) -> MeasurementReport
    """
    Performs one NTP exchange with host and measures offset and delay.

    The response is decoded according to the version the server declares,
    which may differ from the requested one.

    :param host: domain name or IP address of the server
    :param version: NTP version of the request, 1 to 5
    :param timeout: read deadline in seconds, counted from the send
    :param draft: NTPv5 draft name, sent in a Draft Identification
        extension and used to pick the header layout
    :param rand: source of the NTPv5 client cookie
    :return: a MeasurementReport. Its code is 0 on success, 1 if the server
        could not be dialed, 2 if the request could not be sent, 3 on
        timeout or read failure and 4 if the response could not be decoded
    :raises ValueError: on a version outside 1..5, a timeout <= 0 or a
        non ASCII draft name
    """
    if version not in NTP_VERSIONS:
        raise ValueError("NTP version must be one of %s" % (NTP_VERSIONS,))
    if timeout is None:
        timeout = conf.timeout
    if timeout <= 0:
        raise ValueError("timeout must be > 0")
    if draft is None:
        draft = conf.ntpv5_draft if version == 5 else ""
    if not draft.isascii():
        raise ValueError("NTPv5 draft name must be ASCII (got %r)" % draft)

    debug = DebugLog()
    try:
        result = _exchange(host, version, timeout, draft, rand, debug)
    except NTPMeasurementError as ex:
        debug.write(ex.message)
        return MeasurementReport(None, ErrorOutcome(ex.message, ex.code),
                                 debug.getvalue(), ex.code)
    return MeasurementReport(result, None, debug.getvalue(), NTP_OK)


def scan_versions(host,  # type: str
                  timeout=None,  # type: Optional[float]
                  draft=None,  # type: Optional[str]
                  delay=None,  # type: Optional[float]
                  ):
    # type: (...) -> ScanReport
    """
    Measures host with every NTP version, one after the other.

    Probes are never run concurrently and are spaced by ``delay`` seconds
    (conf.scan_delay by default). A failing version does not stop the scan.
    """
    if delay is None:
        delay = conf.scan_delay
    reports = OrderedDict()
    for i, version in enumerate(NTP_VERSIONS):
        if i:
            time.sleep(delay)
        log_runtime.info("Trying NTPv%d on %s...", version, host)
        report = measure(host, version, timeout,
                         draft if version == 5 else "")
        log_runtime.info("NTPv%d finished with return code: %d",
                         version, report.code)
        reports["ntpv%d" % version] = report
    return ScanReport(host, reports)


def probe_drafts(host,  # type: str
                 timeout=None,  # type: Optional[float]
                 drafts=None,  # type: Optional[Iterable[str]]
                 delay=None,  # type: Optional[float]
                 ):
    # type: (...) -> ScanReport
    """
    Sends one NTPv5 request per draft name, one after the other, to find
    out which drafts a server answers to. An empty name sends no Draft
    Identification extension; it is reported under "no-draft".
    """
    if drafts is None:
        drafts = conf.probe_drafts
    if delay is None:
        delay = conf.draft_probe_delay
    reports = OrderedDict()
    for i, draft in enumerate(drafts):
        if i:
            time.sleep(delay)
        log_runtime.info("Trying NTPv5 draft %r on %s...", draft, host)
        reports[draft or "no-draft"] = measure(host, 5, timeout, draft)
    return ScanReport(host, reports)
