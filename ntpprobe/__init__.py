# SPDX-License-Identifier: GPL-2.0-only
# This file is part of ntpprobe
# See https://scapy.net/ for more information on the underlying framework

"""
ntpprobe: measure clock offset and round-trip delay against NTP servers,
for every protocol version from NTPv1 to the NTPv5 drafts.

Usable as a Python library::

    >>> from ntpprobe.all import *
    >>> report = measure("time.example.net", version=4)
"""

import os
from importlib.metadata import version, PackageNotFoundError

__all__ = [
    "VERSION",
    "__version__",
]

_NTPPROBE_PKG_DIR = os.path.dirname(__file__)


def _version():
    # type: () -> str
    """Returns the ntpprobe version from multiple methods

    :return: the ntpprobe version
    """
    # Method 0: from external packaging
    try:
        return os.environ['NTPPROBE_VERSION']
    except KeyError:
        pass

    # Method 1: from the VERSION file, included in sdist and wheels
    version_file = os.path.join(_NTPPROBE_PKG_DIR, 'VERSION')
    try:
        with open(version_file, 'r') as fdsec:
            return fdsec.read().strip()
    except (FileNotFoundError, NotADirectoryError):
        pass

    # Method 2: from the installed distribution metadata
    try:
        return version("ntpprobe")
    except PackageNotFoundError:
        pass

    # all hope is lost
    return '0.0.0'


VERSION = __version__ = _version()
