"""
Whoosh - hwmon fan control daemon

Reads temperature sensors through the Linux hwmon sysfs interface, maps them
through piecewise-linear curves and drives PWM fan outputs.
"""

import logging

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())
