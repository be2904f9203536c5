# SPDX-License-Identifier: GPL-2.0-only
# This file is part of ntpprobe
# See https://scapy.net/ for more information on the underlying framework

import pytest

from ntpprobe.config import conf


def pytest_addoption(parser):
    parser.addoption("-K", action='append', nargs="*")


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "netaccess: needs to reach public NTP servers")
    try:
        # public servers are only reached on demand, with -K
        KW_KO = config.getoption("-K") or [["netaccess"]]
        KW_KO = [x for x in KW_KO if x]

        if len(config.option.markexpr) and len(KW_KO):
            config.option.markexpr += " and "

        if KW_KO:
            config.option.markexpr += "not " + " and not ".join(
                [x[0] for x in KW_KO])
    except TypeError:
        pass


@pytest.fixture(autouse=True)
def restore_conf():
    """
    Tests may change the global configuration: put it back afterwards.
    """
    saved = (conf.port, conf.timeout, conf.ntpv5_draft, conf.scan_delay,
             conf.draft_probe_delay, conf.nts_family_delay)
    yield
    (conf.port, conf.timeout, conf.ntpv5_draft, conf.scan_delay,
     conf.draft_probe_delay, conf.nts_family_delay) = saved
