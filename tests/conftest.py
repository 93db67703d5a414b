"""
Shared fixtures: a fake /sys/class/hwmon tree under tmp_path
"""

import copy

import pytest
import yaml

from whoosh.hwmon.sysfs import Sysfs

# Devices of the fake hwmon tree, hwmonN in list order
HWMON_DEVICES = [
    {
        "name": "k10temp",
        "temp1_label": "Tctl",
        "temp1_input": 45000,
        "temp3_label": "Tccd1",
        "temp3_input": 40000,
    },
    {
        "name": "nct6798",
        "temp1_input": 40000,
        "temp2_input": 55000,
        "pwm1": 50,
        "pwm1_enable": 2,
        "pwm2": 100,
        "pwm2_enable": 5,
    },
    {
        "name": "amdgpu",
        "temp1_label": "edge",
        "temp1_input": 50000,
    },
]

# Test configuration
TEST_CONFIG = {
    "poll_period": 1000,
    "min_change": 0,
    "max_change": 100,
    "sensors": {
        "cpu": {"hwmon_name": "k10temp", "label": "Tctl"},
        "board_a": {"hwmon_name": "nct6798", "index": 1},
        "board_b": {"hwmon_name": "nct6798", "index": 2},
    },
    "composites": {
        "board": {"inputs": ["board_a", "board_b"], "mode": "max"},
    },
    "curves": {
        "default": ["30C/20%", "60C/80%"],
    },
    "fans": {
        "case": {
            "path": {"hwmon_name": "nct6798", "index": 1},
            "input": "cpu",
            "curve": "default",
        },
    },
}


class FakeHwmon:
    """Helper to read and modify attributes of the fake tree"""

    def __init__(self, root):
        self.root = root

    def path(self, device: int, attr: str):
        return self.root / f"hwmon{device}" / attr

    def read(self, device: int, attr: str) -> str:
        return self.path(device, attr).read_text().strip()

    def write(self, device: int, attr: str, value) -> None:
        self.path(device, attr).write_text(f"{value}\n")

    def remove(self, device: int, attr: str) -> None:
        self.path(device, attr).unlink()


@pytest.fixture
def hwmon_root(tmp_path):
    """Create a fake hwmon class directory"""
    root = tmp_path / "hwmon"
    for index, attrs in enumerate(HWMON_DEVICES):
        device = root / f"hwmon{index}"
        device.mkdir(parents=True)
        for attr, value in attrs.items():
            (device / attr).write_text(f"{value}\n")
    return root


@pytest.fixture
def hwmon(hwmon_root):
    return FakeHwmon(hwmon_root)


@pytest.fixture
def sysfs(hwmon_root):
    return Sysfs(hwmon_root)


@pytest.fixture
def write_config(tmp_path):
    """Write a configuration dict to a YAML file and return its path"""
    def write(config, name="whoosh.yaml"):
        config_file = tmp_path / name
        with open(config_file, "w") as f:
            yaml.dump(config, f, sort_keys=False)
        return str(config_file)
    return write


@pytest.fixture
def mock_config(write_config):
    """Create a temporary config file"""
    return write_config(TEST_CONFIG)


@pytest.fixture
def test_config():
    """Fresh copy of TEST_CONFIG that tests may modify"""
    return copy.deepcopy(TEST_CONFIG)
