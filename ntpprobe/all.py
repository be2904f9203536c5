# SPDX-License-Identifier: GPL-2.0-only
# This file is part of ntpprobe
# See https://scapy.net/ for more information on the underlying framework

"""
Aggregate top level objects from all ntpprobe modules.
"""

# flake8: noqa: F403

from ntpprobe.config import *
from ntpprobe.error import *
from ntpprobe.timestamp import *
from ntpprobe.timing import *

from ntpprobe.fields import *
from ntpprobe.extensions import *
from ntpprobe.layers import *

from ntpprobe.builder import *
from ntpprobe.result import *
from ntpprobe.parser import *

from ntpprobe.sendrecv import *
from ntpprobe.nts import *
