# SPDX-License-Identifier: GPL-2.0-only
# This file is part of ntpprobe
# See https://scapy.net/ for more information on the underlying framework

"""
Implementation of the configuration object.
"""

from scapy.config import ConfClass, Interceptor

from ntpprobe import VERSION
from ntpprobe.error import log_ntpprobe

# Typing imports
from typing import (
    Tuple,
)

DRAFT_NTPV5_05 = "draft-ietf-ntp-ntpv5-05"
DRAFT_NTPV5_06 = "draft-ietf-ntp-ntpv5-06"
DRAFT_NTPV5_04 = "draft-ietf-ntp-ntpv5-04"


def _loglevel_changer(attr, val, old):
    # type: (str, int, int) -> int
    """Handle a change of conf.logLevel"""
    log_ntpprobe.setLevel(val)
    return val


def _positive_changer(attr, val, old):
    # type: (str, float, float) -> float
    if val <= 0:
        raise ValueError("conf.%s must be > 0 (got %r)" % (attr, val))
    return val


class Conf(ConfClass):
    """
    This object contains the configuration of ntpprobe.
    """
    version = VERSION
    #: UDP port of the NTP servers
    port = 123
    #: default read deadline, in seconds, of one exchange
    timeout: float = Interceptor("timeout", 7.0, _positive_changer)
    #: maximum size of a received datagram
    bufsize = 1024
    #: seconds to wait between two probes of scan_versions()
    scan_delay = 0.5
    #: seconds to wait between two probes of probe_drafts()
    draft_probe_delay = 0.25
    #: draft hint used for NTPv5 when none is given
    ntpv5_draft = ""
    #: drafts for which a dedicated NTPv5 header layout exists
    known_drafts: Tuple[str, ...] = (DRAFT_NTPV5_05, DRAFT_NTPV5_06)
    #: draft hints tried, in order, by probe_drafts()
    probe_drafts: Tuple[str, ...] = (
        DRAFT_NTPV5_05,
        "",
        DRAFT_NTPV5_06,
        DRAFT_NTPV5_04,
    )
    #: TCP port of the NTS key exchange, used when targeting an IP address
    nts_ke_port = 4460
    #: seconds to wait before retrying NTS with a preferred IP family
    nts_family_delay = 0.5
    logLevel: int = Interceptor("logLevel", log_ntpprobe.level,
                                _loglevel_changer)


conf = Conf()  # type: Conf
