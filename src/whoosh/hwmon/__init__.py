"""
Hwmon Access Package for Whoosh

This package provides access to the Linux hardware-monitoring sysfs
interface below /sys/class/hwmon.

Key Components:
- Sysfs: Reads, writes and lists hwmon attributes
- ControlledFan: Owns one pwmN output in manual mode and restores its mode on close
- find_sensors / find_fans: Resolve configured names to concrete hwmon paths

Example Usage:
    >>> from whoosh.hwmon import Sysfs, ControlledFan
    >>>
    >>> sysfs = Sysfs()
    >>> with ControlledFan(sysfs, "/sys/class/hwmon/hwmon2/pwm1") as fan:
    ...     fan.set_speed(128)

Note:
    Writing pwmN_enable requires root access.
"""

from .sysfs import Sysfs, HWMON_ROOT
from .fan import ControlledFan
from .discovery import find_fans, find_sensors, read_hwmon_names

__all__ = [
    'Sysfs',
    'HWMON_ROOT',
    'ControlledFan',
    'find_fans',
    'find_sensors',
    'read_hwmon_names'
]
