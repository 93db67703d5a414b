"""
Controlled Fan Module

This module owns a single PWM output. Opening a fan switches its
pwmN_enable attribute to manual control; closing it restores whatever mode
the kernel had before.
"""

import logging
from typing import Optional

from ..errors import InvalidModeError, InvalidSpeedError, SysfsIOError
from .sysfs import Sysfs

logger = logging.getLogger(__name__)

MANUAL_MODE = 1


class ControlledFan:
    """Handle on one pwmN output in manual mode.

    The handle must be closed on every exit path (shutdown, reload, error),
    either with close() or by using it as a context manager.

    Example:
        >>> with ControlledFan(sysfs, "/sys/class/hwmon/hwmon2/pwm1") as fan:
        ...     fan.set_speed(128)
    """

    def __init__(self, sysfs: Sysfs, path_prefix: str):
        """Take manual control of a PWM output

        Args:
            sysfs: Sysfs adapter used for all file access
            path_prefix: Path of the pwmN attribute

        Raises:
            InvalidModeError: If pwmN_enable does not hold an integer
            SysfsIOError: If pwmN_enable cannot be read or written
        """
        self.sysfs = sysfs
        self.path_prefix = str(path_prefix)
        self.enable_path = f"{self.path_prefix}_enable"
        self._closed = False

        mode_string = sysfs.read(self.enable_path)
        try:
            self.initial_mode = int(mode_string.strip())
        except ValueError as e:
            raise InvalidModeError(
                f"Fan mode {mode_string!r} in {self.enable_path} is not a valid integer"
            ) from e
        if self.initial_mode < 0:
            raise InvalidModeError(f"Fan mode {self.initial_mode} in {self.enable_path} is negative")

        sysfs.write(self.enable_path, MANUAL_MODE)
        logger.debug(f"Opened fan {self.path_prefix} (initial mode {self.initial_mode})")

    def get_speed(self) -> int:
        """Read the current PWM duty value

        Returns:
            Speed on the 0-255 scale

        Raises:
            InvalidSpeedError: If the attribute is not an integer in 0-255
            SysfsIOError: If the attribute cannot be read
        """
        speed_string = self.sysfs.read(self.path_prefix)
        try:
            speed = int(speed_string.strip())
        except ValueError as e:
            raise InvalidSpeedError(
                f"Fan speed {speed_string!r} in {self.path_prefix} is not a valid integer"
            ) from e
        if not 0 <= speed <= 255:
            raise InvalidSpeedError(f"Fan speed {speed} in {self.path_prefix} is outside 0-255")
        return speed

    def set_speed(self, speed: int) -> None:
        """Write a new PWM duty value (0-255)"""
        if not 0 <= speed <= 255:
            raise ValueError(f"Invalid speed {speed}, must be 0-255")
        self.sysfs.write(self.path_prefix, speed)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Restore the saved enable mode.

        Failures are logged and never raised. Calling close() more than once
        is a no-op.
        """
        if self._closed:
            return
        self._closed = True
        try:
            self.sysfs.write(self.enable_path, self.initial_mode)
            logger.debug(f"Restored mode {self.initial_mode} on {self.enable_path}")
        except SysfsIOError as e:
            logger.warning(f"Failed to reset fan {self.path_prefix}: {e}")

    def __enter__(self) -> "ControlledFan":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> Optional[bool]:
        self.close()
        return None

    def __repr__(self) -> str:
        return f"ControlledFan({self.path_prefix!r}, initial_mode={self.initial_mode})"
