# SPDX-License-Identifier: GPL-2.0-only
# This file is part of ntpprobe
# See https://scapy.net/ for more information on the underlying framework

"""
Network Time Security (RFC 8915) measurements.

The key exchange and the authenticated NTP query are performed by an
external NTS implementation, reached through a session factory. This
module only drives it and turns what it answers into a MeasurementResult.

A session factory is called as::

    session = session_factory(host, timeout=7.0, ip_family=None,
                              verify=True)

and returns an :class:`NTSSession` implementation. When ``host`` is
an IP address, ``verify`` is False (the certificate cannot be matched to
a name) and the factory is expected to dial ``host`` on conf.nts_ke_port.
"""

import abc
import ipaddress
import socket
import struct
import time

from ntpprobe.config import conf
from ntpprobe.error import NTPMeasurementError, log_runtime
from ntpprobe.layers import MODE_SERVER
from ntpprobe.result import (
    ErrorOutcome,
    MeasurementReport,
    MeasurementResult,
    NTS_ERR_ADDRESS,
    NTS_ERR_INVALID,
    NTS_ERR_KE,
    NTS_ERR_KISS,
    NTS_ERR_TIMEOUT,
    NTS_OK,
    NTS_WRONG_FAMILY,
)
from ntpprobe.sendrecv import DebugLog
from ntpprobe.timestamp import time_to_ntp64
from ntpprobe.timing import offset_rtt_ntp64

# Typing imports
from typing import (
    Any,
    Callable,
    Optional,
    Tuple,
)

KE_REDIRECT_WARNING = ("The measurement succeeded, but KE redirected us to "
                       "another IP")


class NTSResponse(metaclass=abc.ABCMeta):
    """
    Already authenticated and decoded answer of an NTS query.

    The four exchange timestamps may be given as datetimes, Unix
    timestamps (floats) or raw NTP64 integers. Durations are in seconds.
    """
    client_sent_time = None  # type: Any
    server_recv_time = None  # type: Any
    server_sent_time = None  # type: Any
    client_recv_time = None  # type: Any
    version = 4
    leap = 0
    stratum = 0
    poll = 0.0
    precision = 0.0
    root_delay = 0.0
    root_dispersion = 0.0
    reference_id = 0
    kiss_code = ""

    def reference_string(self):
        # type: () -> str
        """
        Reference identifier as text: ASCII for stratum 0 and 1, an IPv4
        address otherwise.
        """
        raw = struct.pack("!I", self.reference_id)
        if self.stratum <= 1:
            return raw.rstrip(b"\x00").decode("ascii", "replace")
        return socket.inet_ntoa(raw)

    @abc.abstractmethod
    def validate(self):
        # type: () -> None
        """Raises an exception if the response violates RFC 5905 rules."""
        pass


class NTSSession(metaclass=abc.ABCMeta):
    """
    Session established by a successful key exchange.
    """
    #: "ip:port" of the NTP server negotiated during the key exchange
    address = ""

    @abc.abstractmethod
    def query(self, timeout):
        # type: (float) -> Optional[NTSResponse]
        pass


def is_ip_address(host):
    # type: (str) -> bool
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


def split_host_port(address):
    # type: (str) -> Tuple[str, str]
    """
    Splits "host:port" or "[ipv6]:port".
    """
    host, sep, port = address.rpartition(":")
    if not sep or not host:
        raise ValueError("missing port in address %r" % address)
    if host.startswith("["):
        if not host.endswith("]"):
            raise ValueError("missing ']' in address %r" % address)
        host = host[1:-1]
    elif ":" in host:
        raise ValueError("too many colons in address %r" % address)
    return host, port


def _to_ntp64(val):
    # type: (Any) -> int
    if isinstance(val, int):
        return val
    return time_to_ntp64(val)


def _nts_exchange(host, timeout, session_factory, ip_family, debug):
    # type: (str, float, Callable[..., NTSSession], Optional[int], DebugLog) -> MeasurementResult  # noqa: E501
    ip_target = is_ip_address(host)
    try:
        session = session_factory(host, timeout=timeout, ip_family=ip_family,
                                  verify=not ip_target)
    except Exception as ex:
        raise NTPMeasurementError(
            "NTS session could not be established: key exchange failure: "
            "%s" % ex, NTS_ERR_KE, ex)
    debug.write("key exchange with %s done, NTP server at %s",
                host, session.address)

    try:
        measured_ip, port = split_host_port(session.address)
    except ValueError as ex:
        raise NTPMeasurementError(
            "Could not deduce NTP host and port: %s" % ex,
            NTS_ERR_ADDRESS, ex)

    # Faults of the NTS implementation must not abort the caller
    try:
        resp = session.query(timeout)
    except Exception as ex:
        raise NTPMeasurementError(
            "KE succeeded, but measurement failed: %s" % ex,
            NTS_ERR_TIMEOUT, ex)
    if resp is None:
        raise NTPMeasurementError(
            "KE succeeded, but measurement failed: no response received",
            NTS_ERR_TIMEOUT)

    try:
        t1 = _to_ntp64(resp.client_sent_time)
        t2 = _to_ntp64(resp.server_recv_time)
        t3 = _to_ntp64(resp.server_sent_time)
        t4 = _to_ntp64(resp.client_recv_time)
        offset, rtt = offset_rtt_ntp64(t1, t2, t3, t4)
        ref_id = resp.reference_string()
        ref_id_raw = "0x%08x" % resp.reference_id
    except Exception as ex:
        raise NTPMeasurementError(
            "KE succeeded, but measurement failed: unusable response: "
            "%s" % ex, NTS_ERR_TIMEOUT, ex)
    result = MeasurementResult(
        version=resp.version,
        leap=resp.leap,
        mode=MODE_SERVER,
        rtt=rtt,
        offset=offset,
        layout="nts",
        stratum=resp.stratum,
        poll=resp.poll,
        precision=resp.precision,
        root_delay=resp.root_delay,
        root_disp=resp.root_dispersion,
        ref_id=ref_id,
        ref_id_raw=ref_id_raw,
        client_sent_time=t1,
        recv_timestamp=t2,
        tx_timestamp=t3,
        client_recv_time=t4,
        kiss_code=resp.kiss_code,
        host=host,
        measured_ip=measured_ip,
        measured_port=port,
    )
    if ip_target and measured_ip != host:
        debug.write("KE redirected %s to %s", host, measured_ip)
        result.warning = KE_REDIRECT_WARNING

    try:
        resp.validate()
    except Exception as ex:
        raise NTPMeasurementError("Invalid NTP response received: %s" % ex,
                                  NTS_ERR_INVALID, ex)
    if resp.kiss_code:
        raise NTPMeasurementError(
            "KE succeeded, but kiss code: %s" % resp.kiss_code,
            NTS_ERR_KISS)
    return result


def _measure_nts_once(host, timeout, session_factory, ip_family):
    # type: (str, float, Callable[..., NTSSession], Optional[int]) -> MeasurementReport  # noqa: E501
    debug = DebugLog()
    try:
        result = _nts_exchange(host, timeout, session_factory, ip_family,
                               debug)
    except NTPMeasurementError as ex:
        debug.write(ex.message)
        return MeasurementReport(None, ErrorOutcome(ex.message, ex.code),
                                 debug.getvalue(), ex.code)
    return MeasurementReport(result, None, debug.getvalue(), NTS_OK)


def measure_nts(host,  # type: str
                timeout,  # type: Optional[float]
                session_factory,  # type: Callable[..., NTSSession]
                ip_family=None,  # type: Optional[int]
                ):
    # type: (...) -> MeasurementReport
    """
    Measures host over NTS.

    With ip_family (4 or 6), host is first measured without preference.
    If that works, the measurement is retried with the wanted family; when
    the retry fails, the first result is returned with code 6.

    :return: a MeasurementReport. Codes 0 and 6 carry a result; 1 means the
        key exchange failed, 2 that the negotiated address is unusable, 3
        that the query failed, 4 that the response is invalid and 5 that
        the server answered with a kiss code
    """
    if timeout is None:
        timeout = conf.timeout
    if timeout <= 0:
        raise ValueError("timeout must be > 0")
    if ip_family not in (None, 4, 6):
        raise ValueError("ip_family must be 4 or 6 (got %r)" % ip_family)

    first = _measure_nts_once(host, timeout, session_factory, None)
    if ip_family is None or not first.ok:
        return first
    time.sleep(conf.nts_family_delay)
    log_runtime.info("Retrying NTS on %s over IPv%d...", host, ip_family)
    retry = _measure_nts_once(host, timeout, session_factory, ip_family)
    if retry.ok:
        return retry
    log_runtime.info("NTS over IPv%d failed: %s", ip_family,
                     retry.error.message if retry.error else "")
    return first._replace(debug=first.debug + retry.debug,
                          code=NTS_WRONG_FAMILY)
