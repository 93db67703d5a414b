"""
Tests for the hwmon sysfs adapter, fan handles and discovery
"""

import logging
from unittest.mock import patch

import pytest

from whoosh.config import FanPath, FanSpec, SensorSpec
from whoosh.errors import (
    HwmonInconsistencyError,
    HwmonNameNotFoundError,
    HwmonSensorNotFoundError,
    InvalidModeError,
    InvalidSpeedError,
    SysfsIOError
)
from whoosh.hwmon.discovery import (
    find_fans,
    find_label_index,
    find_sensors,
    hwmon_index,
    read_hwmon_names
)
from whoosh.hwmon.fan import ControlledFan
from whoosh.hwmon.sysfs import Sysfs

HWMON_NAMES = ["k10temp", "nct6798", "amdgpu"]

# Sysfs adapter

def test_sysfs_read_trims(sysfs, hwmon):
    hwmon.path(0, "temp1_label").write_text("Tctl  \n\n")
    assert sysfs.read(hwmon.path(0, "temp1_label")) == "Tctl"

def test_sysfs_write_appends_newline(sysfs, hwmon):
    sysfs.write(hwmon.path(1, "pwm1"), 128)
    assert hwmon.path(1, "pwm1").read_text() == "128\n"

def test_sysfs_list_devices(sysfs):
    assert sorted(sysfs.list_devices()) == ["hwmon0", "hwmon1", "hwmon2"]

def test_sysfs_errors_carry_path(tmp_path):
    """Test filesystem failures raise SysfsIOError with the path"""
    sysfs = Sysfs(tmp_path / "missing")

    with pytest.raises(SysfsIOError) as exc_info:
        sysfs.list_devices()
    assert exc_info.value.path == str(tmp_path / "missing")

    with pytest.raises(SysfsIOError):
        sysfs.read(tmp_path / "missing" / "name")

    with pytest.raises(SysfsIOError):
        sysfs.write(tmp_path / "missing" / "pwm1", 1)

def test_sysfs_read_invalid_utf8(sysfs, hwmon):
    """Test undecodable attribute contents raise SysfsIOError"""
    hwmon.path(0, "temp1_input").write_bytes(b"\xff\xfe\n")

    with pytest.raises(SysfsIOError) as exc_info:
        sysfs.read(hwmon.path(0, "temp1_input"))
    assert exc_info.value.path == str(hwmon.path(0, "temp1_input"))
    assert "invalid UTF-8" in str(exc_info.value)

# Fan handle

def test_fan_open_sets_manual_mode(sysfs, hwmon):
    """Test opening a fan saves the mode and writes 1"""
    fan = ControlledFan(sysfs, str(hwmon.path(1, "pwm1")))
    assert fan.initial_mode == 2
    assert hwmon.read(1, "pwm1_enable") == "1"
    fan.close()

def test_fan_close_restores_mode(sysfs, hwmon):
    fan = ControlledFan(sysfs, str(hwmon.path(1, "pwm2")))
    fan.close()
    assert fan.closed
    assert hwmon.read(1, "pwm2_enable") == "5"

def test_fan_close_is_idempotent(sysfs, hwmon):
    fan = ControlledFan(sysfs, str(hwmon.path(1, "pwm1")))
    fan.close()
    hwmon.write(1, "pwm1_enable", 1)
    fan.close()
    assert hwmon.read(1, "pwm1_enable") == "1"

def test_fan_context_manager(sysfs, hwmon):
    with ControlledFan(sysfs, str(hwmon.path(1, "pwm1"))) as fan:
        fan.set_speed(200)
        assert hwmon.read(1, "pwm1_enable") == "1"
    assert hwmon.read(1, "pwm1_enable") == "2"
    assert hwmon.read(1, "pwm1") == "200"

def test_fan_context_manager_restores_on_error(sysfs, hwmon):
    with pytest.raises(RuntimeError):
        with ControlledFan(sysfs, str(hwmon.path(1, "pwm1"))):
            raise RuntimeError("boom")
    assert hwmon.read(1, "pwm1_enable") == "2"

def test_fan_speed(sysfs, hwmon):
    """Test reading and writing the PWM value"""
    with ControlledFan(sysfs, str(hwmon.path(1, "pwm1"))) as fan:
        assert fan.get_speed() == 50
        fan.set_speed(127)
        assert hwmon.path(1, "pwm1").read_text() == "127\n"
        assert fan.get_speed() == 127

        with pytest.raises(ValueError, match="Invalid speed"):
            fan.set_speed(256)

def test_fan_invalid_speed(sysfs, hwmon):
    with ControlledFan(sysfs, str(hwmon.path(1, "pwm1"))) as fan:
        hwmon.write(1, "pwm1", "fast")
        with pytest.raises(InvalidSpeedError):
            fan.get_speed()
        hwmon.write(1, "pwm1", 300)
        with pytest.raises(InvalidSpeedError):
            fan.get_speed()

def test_fan_invalid_mode(sysfs, hwmon):
    """Test a non-integer enable mode is rejected without writing"""
    hwmon.write(1, "pwm1_enable", "auto")
    with pytest.raises(InvalidModeError):
        ControlledFan(sysfs, str(hwmon.path(1, "pwm1")))
    assert hwmon.read(1, "pwm1_enable") == "auto"

def test_fan_missing_enable(sysfs, hwmon):
    with pytest.raises(SysfsIOError):
        ControlledFan(sysfs, str(hwmon.path(1, "pwm9")))

def test_fan_close_failure_is_logged(sysfs, hwmon, caplog):
    """Test restore failures are logged and not raised"""
    fan = ControlledFan(sysfs, str(hwmon.path(1, "pwm1")))
    with patch.object(sysfs, "write", side_effect=SysfsIOError("pwm1_enable", "Permission denied")):
        with caplog.at_level(logging.WARNING):
            fan.close()
    assert "Failed to reset fan" in caplog.text
    assert fan.closed

# Discovery

def test_read_hwmon_names(sysfs):
    assert read_hwmon_names(sysfs) == HWMON_NAMES

def test_hwmon_index():
    assert hwmon_index(HWMON_NAMES, "nct6798") == 1
    with pytest.raises(HwmonNameNotFoundError) as exc_info:
        hwmon_index(HWMON_NAMES, "coretemp")
    assert exc_info.value.name == "coretemp"
    assert '"coretemp"' in str(exc_info.value)

def test_find_sensors(sysfs, hwmon):
    """Test resolving sensors by label and by index"""
    sensors = {
        "cpu": SensorSpec("k10temp", label="Tccd1"),
        "gpu": SensorSpec("amdgpu", label="edge"),
        "board": SensorSpec("nct6798", index=2),
    }

    paths = find_sensors(sysfs, sensors, HWMON_NAMES)

    assert paths == {
        "cpu": str(hwmon.path(0, "temp3_input")),
        "gpu": str(hwmon.path(2, "temp1_input")),
        "board": str(hwmon.path(1, "temp2_input")),
    }
    assert list(paths) == ["cpu", "gpu", "board"]

def test_find_sensors_unknown_hwmon(sysfs):
    with pytest.raises(HwmonNameNotFoundError):
        find_sensors(sysfs, {"cpu": SensorSpec("coretemp", label="Package id 0")}, HWMON_NAMES)

def test_find_sensors_unknown_label(sysfs):
    with pytest.raises(HwmonSensorNotFoundError):
        find_sensors(sysfs, {"cpu": SensorSpec("k10temp", label="Tdie")}, HWMON_NAMES)

def test_find_sensors_unknown_index(sysfs):
    with pytest.raises(HwmonSensorNotFoundError):
        find_sensors(sysfs, {"board": SensorSpec("nct6798", index=7)}, HWMON_NAMES)

def test_find_sensors_label_without_input(sysfs, hwmon):
    """Test a label whose input file is missing aborts discovery"""
    hwmon.remove(0, "temp3_input")
    with pytest.raises(HwmonInconsistencyError):
        find_sensors(sysfs, {"cpu": SensorSpec("k10temp", label="Tccd1")}, HWMON_NAMES)

def test_find_sensors_undecodable_label(sysfs, hwmon):
    hwmon.path(0, "temp3_label").write_bytes(b"Tccd\xff\n")
    with pytest.raises(SysfsIOError):
        find_sensors(sysfs, {"cpu": SensorSpec("k10temp", label="Tctl")}, HWMON_NAMES)

def test_find_label_index_first_match_wins(sysfs, hwmon, caplog):
    """Test duplicate labels resolve to the lowest index"""
    hwmon.write(0, "temp10_label", "Tctl")
    hwmon.write(0, "temp10_input", 1000)

    with caplog.at_level(logging.WARNING):
        assert find_label_index(sysfs, 0, "Tctl") == 1
    assert "matches temp[1, 10]" in caplog.text

def test_find_fans(sysfs, hwmon):
    """Test fans are opened in manual mode"""
    fans = {
        "case": FanSpec(FanPath("nct6798", 1), input="cpu", curve="default"),
        "cpu": FanSpec(FanPath("nct6798", 2), input="cpu", curve="default"),
    }

    opened = find_fans(sysfs, fans, HWMON_NAMES)

    assert list(opened) == ["case", "cpu"]
    assert opened["case"].path_prefix == str(hwmon.path(1, "pwm1"))
    assert hwmon.read(1, "pwm1_enable") == "1"
    assert hwmon.read(1, "pwm2_enable") == "1"
    for fan in opened.values():
        fan.close()
    assert hwmon.read(1, "pwm1_enable") == "2"
    assert hwmon.read(1, "pwm2_enable") == "5"

def test_find_fans_failure_closes_opened(sysfs, hwmon):
    """Test fans opened before a failure are restored"""
    fans = {
        "case": FanSpec(FanPath("nct6798", 1), input="cpu", curve="default"),
        "missing": FanSpec(FanPath("nct6798", 3), input="cpu", curve="default"),
    }

    with pytest.raises(SysfsIOError):
        find_fans(sysfs, fans, HWMON_NAMES)
    assert hwmon.read(1, "pwm1_enable") == "2"

def test_find_fans_unknown_hwmon(sysfs):
    fans = {"case": FanSpec(FanPath("it8688", 1), input="cpu", curve="default")}
    with pytest.raises(HwmonNameNotFoundError):
        find_fans(sysfs, fans, HWMON_NAMES)
