"""
Hwmon Discovery Module

This module resolves the symbolic sensors and fans of the configuration to
concrete files below /sys/class/hwmon.

Resolution rules:
- A hwmon device is identified by the contents of its "name" attribute.
- A sensor selected by label is the tempN_input whose tempN_label matches.
- A sensor or fan selected by index is tempN_input or pwmN directly.
"""

import logging
import re
from typing import Dict, List, Mapping

from ..config import FanSpec, SensorSpec
from ..errors import HwmonInconsistencyError, HwmonNameNotFoundError, HwmonSensorNotFoundError
from .fan import ControlledFan
from .sysfs import Sysfs

logger = logging.getLogger(__name__)

TEMP_LABEL_RE = re.compile(r"^temp(\d+)_label$")


def read_hwmon_names(sysfs: Sysfs) -> List[str]:
    """Read the name of every hwmon device

    The class directory is counted and hwmon0 .. hwmonK-1 are read in
    order, so list position equals the device index.

    Returns:
        Trimmed device names indexed by hwmon number
    """
    count = len(sysfs.list_devices())
    names = [sysfs.read(sysfs.device_path(i) / "name").strip() for i in range(count)]
    logger.debug(f"Found hwmons: {names}")
    return names


def hwmon_index(hwmon_names: List[str], hwmon_name: str) -> int:
    """Get the index of the first hwmon device with the given name

    Raises:
        HwmonNameNotFoundError: If no device has that name
    """
    try:
        return hwmon_names.index(hwmon_name)
    except ValueError:
        raise HwmonNameNotFoundError(hwmon_name) from None


def find_label_index(sysfs: Sysfs, device: int, label: str) -> int:
    """Find the tempN index whose label matches

    Candidates are scanned in ascending N and the first match wins. Further
    matches are logged, since the kernel gives no ordering guarantee.

    Raises:
        HwmonSensorNotFoundError: If no tempN_label matches
    """
    device_dir = sysfs.device_path(device)
    candidates = []
    for file_name in sysfs.list_dir(device_dir):
        match = TEMP_LABEL_RE.match(file_name)
        if match:
            candidates.append(int(match.group(1)))

    matches = []
    for index in sorted(candidates):
        this_label = sysfs.read(device_dir / f"temp{index}_label").strip()
        logger.debug(f"Found temp sensor temp{index} with label {this_label!r}")
        if this_label == label:
            matches.append(index)

    if not matches:
        raise HwmonSensorNotFoundError(f"No sensor labelled {label!r} on hwmon{device}")
    if len(matches) > 1:
        logger.warning(f"Label {label!r} matches temp{matches} on hwmon{device}, using temp{matches[0]}")
    return matches[0]


def find_sensors(sysfs: Sysfs, sensors: Mapping[str, SensorSpec], hwmon_names: List[str]) -> Dict[str, str]:
    """Resolve sensor specifications to tempN_input paths

    Args:
        sysfs: Sysfs adapter
        sensors: Sensor specifications by name
        hwmon_names: Output of read_hwmon_names()

    Returns:
        Input file path by sensor name, in configuration order

    Raises:
        HwmonNameNotFoundError: If a hwmon name is unknown
        HwmonSensorNotFoundError: If a label or index does not resolve
        HwmonInconsistencyError: If a label exists without its input file
    """
    sensor_paths = {}
    for name, spec in sensors.items():
        device = hwmon_index(hwmon_names, spec.hwmon_name)
        if spec.by_label:
            index = find_label_index(sysfs, device, spec.label)
            path = sysfs.device_path(device) / f"temp{index}_input"
            if not sysfs.exists(path):
                raise HwmonInconsistencyError(f"Sensor {name!r} has label {spec.label!r} but no input {path}")
        else:
            path = sysfs.device_path(device) / f"temp{spec.index}_input"
            if not sysfs.exists(path):
                raise HwmonSensorNotFoundError(f"Sensor {name!r}: {path} does not exist")
        logger.info(f"Sensor {name} -> {path}")
        sensor_paths[name] = str(path)
    return sensor_paths


def close_fans(fans: Mapping[str, ControlledFan]) -> None:
    """Close fan handles, restoring their saved modes"""
    for fan in fans.values():
        fan.close()


def find_fans(sysfs: Sysfs, fans: Mapping[str, FanSpec], hwmon_names: List[str]) -> Dict[str, ControlledFan]:
    """Open a ControlledFan for every configured fan

    If any fan cannot be opened, the fans already opened are closed again
    before the error is raised.

    Returns:
        Open fan handles by fan name, in configuration order
    """
    opened: Dict[str, ControlledFan] = {}
    try:
        for name, spec in fans.items():
            device = hwmon_index(hwmon_names, spec.path.hwmon_name)
            path_prefix = sysfs.device_path(device) / f"pwm{spec.path.index}"
            opened[name] = ControlledFan(sysfs, str(path_prefix))
            logger.info(f"Fan {name} -> {path_prefix}")
    except BaseException:
        close_fans(opened)
        raise
    return opened
