"""
Error Types Module

This module defines the exceptions raised while discovering hwmon devices,
loading configuration and running the control loop.
"""

from typing import Optional


class WhooshError(Exception):
    """Base exception for recoverable daemon errors"""
    pass


class HwmonNameNotFoundError(WhooshError):
    """Raised when no hwmon device carries the configured name"""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f'The specified hwmon name "{name}" was not found')


class HwmonSensorNotFoundError(WhooshError):
    """Raised when a sensor label or index does not resolve to an input file"""
    pass


class InvalidPointSpecError(WhooshError):
    """Raised when a curve point is not of the form "<int>C/<int>%" """
    pass


class InvalidReadingError(WhooshError):
    """Raised when a temperature file does not hold an integer"""
    pass


class InvalidModeError(WhooshError):
    """Raised when a pwmN_enable file does not hold an integer"""
    pass


class InvalidSpeedError(WhooshError):
    """Raised when a pwmN file does not hold an integer in 0-255"""
    pass


class ConfigParseError(WhooshError):
    """Raised when the configuration document is invalid"""
    pass


class SysfsIOError(WhooshError):
    """Raised when a filesystem operation fails

    Attributes:
        path: Path of the file or directory involved
    """

    def __init__(self, path: str, reason: Optional[str] = None):
        self.path = str(path)
        self.reason = reason
        message = f"An I/O error occurred on {self.path}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class HwmonInconsistencyError(Exception):
    """Raised when the kernel exposes a sensor label without its input.

    Not a WhooshError, so the outer supervisor does not retry it.
    """
    pass
