"""
Sysfs Access Module

This module wraps the few filesystem operations the daemon performs on the
kernel hwmon interface. Nothing is cached: every read goes to sysfs.
"""

import logging
import os
from pathlib import Path
from typing import List, Union

from ..errors import SysfsIOError

logger = logging.getLogger(__name__)

HWMON_ROOT = "/sys/class/hwmon"

PathLike = Union[str, Path]


class Sysfs:
    """Reads and writes files below the hwmon class directory"""

    def __init__(self, root: PathLike = HWMON_ROOT):
        """Initialize sysfs adapter

        Args:
            root: Directory holding the hwmonN device links
        """
        self.root = Path(root)

    def device_path(self, index: int) -> Path:
        """Get the directory of the hwmon device with the given index"""
        return self.root / f"hwmon{index}"

    def list_devices(self) -> List[str]:
        """List the children of the hwmon class directory

        Returns:
            Entry names (e.g. "hwmon0") in directory order

        Raises:
            SysfsIOError: If the directory cannot be listed
        """
        try:
            return os.listdir(self.root)
        except OSError as e:
            raise SysfsIOError(self.root, e.strerror) from e

    def list_dir(self, path: PathLike) -> List[str]:
        """List the file names in a device directory"""
        try:
            return os.listdir(path)
        except OSError as e:
            raise SysfsIOError(path, e.strerror) from e

    def read(self, path: PathLike) -> str:
        """Read a sysfs attribute

        Args:
            path: File to read

        Returns:
            File contents with trailing whitespace removed

        Raises:
            SysfsIOError: If the file cannot be read or is not valid UTF-8
        """
        try:
            with open(path, encoding="utf-8") as f:
                return f.read().rstrip()
        except OSError as e:
            raise SysfsIOError(path, e.strerror) from e
        except UnicodeDecodeError as e:
            raise SysfsIOError(path, f"invalid UTF-8 at byte {e.start}") from e

    def write(self, path: PathLike, value: Union[str, int]) -> None:
        """Write a value followed by a newline to a sysfs attribute

        Raises:
            SysfsIOError: If the file cannot be written
        """
        logger.debug(f"Writing {value!r} to {path}")
        try:
            with open(path, "w") as f:
                f.write(f"{value}\n")
        except OSError as e:
            raise SysfsIOError(path, e.strerror) from e

    def exists(self, path: PathLike) -> bool:
        return os.path.exists(path)
