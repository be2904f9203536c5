# SPDX-License-Identifier: GPL-2.0-only
# This file is part of ntpprobe
# See https://scapy.net/ for more information on the underlying framework

"""
Measurement results, error outcomes and their JSON rendering.
"""

import json

from collections import OrderedDict
from dataclasses import dataclass, field, fields
from enum import Enum

from ntpprobe.extensions import NTPExtension

# Typing imports
from typing import (
    Any,
    Dict,
    List,
    NamedTuple,
    Optional,
)

NTP_OK = 0
NTP_ERR_CONNECT = 1
NTP_ERR_SEND = 2
NTP_ERR_RECV = 3
NTP_ERR_PARSE = 4

NTS_OK = 0
NTS_ERR_KE = 1
NTS_ERR_ADDRESS = 2
NTS_ERR_TIMEOUT = 3
NTS_ERR_INVALID = 4
NTS_ERR_KISS = 5
NTS_WRONG_FAMILY = 6

NO_DRAFT = "did not use an extension field for draft"


class AnomalyKind(Enum):
    """
    First wire timestamp found to be exactly zero.
    """
    ORIG = "orig_timestamp"
    RECV = "recv_timestamp"
    TX = "tx_timestamp"

    @property
    def message(self):
        # type: () -> str
        tag = {"orig_timestamp": "t1",
               "recv_timestamp": "t2",
               "tx_timestamp": "t3"}[self.value]
        return "timestamps are invalid, %s (%s) is 0" % (self.value, tag)


@dataclass
class MeasurementResult:
    """
    Normalized record of one successful exchange.

    Raw timestamps and cookies are kept as the 64 bits integers found on
    the wire; delays are floating seconds. Fields a version does not carry
    stay None and are left out of the JSON rendering.
    """
    version: int
    leap: int
    mode: int
    rtt: float
    offset: float
    layout: Optional[str] = None
    # NTPv2 to NTPv5
    stratum: Optional[int] = None
    poll: Optional[int] = None
    precision: Optional[float] = None
    root_delay: Optional[float] = None
    root_disp: Optional[float] = None
    ref_id: Optional[Any] = None
    # NTPv1
    li_status: Optional[int] = None
    type: Optional[int] = None
    est_error: Optional[int] = None
    est_drift_rate: Optional[int] = None
    # timestamps
    ref_timestamp: Optional[int] = None
    orig_timestamp: Optional[int] = None
    recv_timestamp: Optional[int] = None
    tx_timestamp: Optional[int] = None
    client_sent_time: Optional[int] = None
    client_recv_time: Optional[int] = None
    # NTPv5
    timescale: Optional[int] = None
    era: Optional[int] = None
    flags_raw: Optional[int] = None
    flags_decoded: Optional[Dict[str, bool]] = None
    server_cookie: Optional[int] = None
    client_cookie: Optional[int] = None
    client_cookie_valid: Optional[bool] = None
    draft: Optional[str] = None
    extensions: Optional[List[NTPExtension]] = None
    anomaly: Optional[AnomalyKind] = None
    # NTS
    ref_id_raw: Optional[str] = None
    kiss_code: Optional[str] = None
    measured_port: Optional[str] = None
    warning: Optional[str] = None
    # set by the orchestrator
    host: Optional[str] = None
    target: Optional[str] = None
    measured_ip: Optional[str] = None

    def to_dict(self):
        # type: () -> Dict[str, Any]
        d = OrderedDict()  # type: Dict[str, Any]
        for f in fields(self):
            val = getattr(self, f.name)
            if val is None:
                continue
            if f.name == "anomaly":
                val = val.message
            elif f.name == "extensions":
                val = [ext.to_dict() for ext in val]
            d[f.name] = val
        return d

    def to_json(self, indent=2):
        # type: (int) -> str
        return json.dumps(self.to_dict(), indent=indent)

    def summary(self):
        # type: () -> str
        s = "NTPv%d offset=%+.6fs rtt=%.6fs" % (self.version, self.offset,
                                               self.rtt)
        if self.stratum is not None:
            s += " stratum=%d" % self.stratum
        if self.anomaly is not None:
            s += " [%s]" % self.anomaly.message
        return s


class ErrorOutcome(NamedTuple):
    message: str
    code: int

    def to_dict(self):
        # type: () -> Dict[str, Any]
        return {"error": self.message}


class MeasurementReport(NamedTuple):
    """
    Outcome of one exchange: a result or an error, never both, along with
    the debug log of the exchange. Only NTS code 6 comes with a result and
    a non zero code.
    """
    result: Optional[MeasurementResult]
    error: Optional[ErrorOutcome]
    debug: str
    code: int

    @property
    def ok(self):
        # type: () -> bool
        return self.result is not None

    def to_dict(self):
        # type: () -> Dict[str, Any]
        if self.result is not None:
            return self.result.to_dict()
        if self.error is not None:
            return self.error.to_dict()
        return {}

    def to_json(self, indent=2):
        # type: (int) -> str
        return json.dumps(self.to_dict(), indent=indent)


@dataclass
class ScanReport:
    """
    Reports of a sequence of probes, keyed by label ("ntpv1", ...). The
    scan itself always succeeds; each entry keeps its own code.
    """
    host: str
    reports: Dict[str, MeasurementReport] = field(default_factory=OrderedDict)
    code: int = NTP_OK

    def __getitem__(self, label):
        # type: (str) -> MeasurementReport
        return self.reports[label]

    @property
    def debug(self):
        # type: () -> str
        return "".join(r.debug for r in self.reports.values())

    def to_dict(self):
        # type: () -> Dict[str, Any]
        d = OrderedDict()  # type: Dict[str, Any]
        for label, report in self.reports.items():
            d[label] = {
                "type": label,
                "result": report.to_dict(),
                "return_code": report.code,
            }
        return d

    def to_json(self, indent=2):
        # type: (int) -> str
        return json.dumps(self.to_dict(), indent=indent)
