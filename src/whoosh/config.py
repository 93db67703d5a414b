"""
Configuration Module

This module loads the daemon configuration document and validates it into
plain dataclasses. TOML documents are read with the standard library reader,
everything else with PyYAML. Both keep mapping order, which matters for
composites: a composite may only use composites declared before it.
"""

import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union
import yaml

from .errors import ConfigParseError, SysfsIOError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "/etc/whoosh.toml"
CONFIG_ENV = "WHOOSH_CONFIG"

COMPOSITE_MODES = ("max", "mean", "meanmax")


def default_config_path() -> str:
    """Get the configuration path, honouring the WHOOSH_CONFIG override"""
    return os.environ.get(CONFIG_ENV) or DEFAULT_CONFIG_PATH


@dataclass(frozen=True)
class SensorSpec:
    """Temperature sensor selected by hwmon name plus label or index"""
    hwmon_name: str
    label: Optional[str] = None
    index: Optional[int] = None

    @property
    def by_label(self) -> bool:
        return self.label is not None


@dataclass(frozen=True)
class CompositeSpec:
    """Synthetic temperature combining other sensors or composites

    Attributes:
        inputs: Sensor or earlier composite names, in order
        mode: "max", "mean" or "meanmax"
        threshold: Milli-degree threshold used by "meanmax"
    """
    inputs: Tuple[str, ...]
    mode: str
    threshold: Optional[int] = None


@dataclass(frozen=True)
class FanPath:
    hwmon_name: str
    index: int


@dataclass(frozen=True)
class FanSpec:
    """PWM output together with the temperature and curve driving it"""
    path: FanPath
    input: str
    curve: str


@dataclass(frozen=True)
class Config:
    """Validated daemon configuration.

    Mapping fields keep the declaration order of the source document.
    """
    poll_period: int
    min_change: int
    max_change: int
    sensors: Dict[str, SensorSpec] = field(default_factory=dict)
    composites: Dict[str, CompositeSpec] = field(default_factory=dict)
    curves: Dict[str, List[str]] = field(default_factory=dict)
    fans: Dict[str, FanSpec] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> "Config":
        """Validate a parsed document

        Raises:
            ConfigParseError: If the document does not match the schema
        """
        if not isinstance(data, dict):
            raise ConfigParseError("Configuration must be a mapping")
        _check_keys("configuration", data,
                    required={"poll_period", "min_change", "max_change"},
                    optional={"sensors", "composites", "curves", "fans"})

        poll_period = _int("poll_period", data["poll_period"])
        if poll_period <= 0:
            raise ConfigParseError(f"poll_period must be positive, got {poll_period}")
        min_change = _percent("min_change", data["min_change"])
        max_change = _percent("max_change", data["max_change"])

        sensors = {name: _sensor(name, spec)
                   for name, spec in _table("sensors", data.get("sensors", {})).items()}
        composites = {name: _composite(name, spec)
                      for name, spec in _table("composites", data.get("composites", {})).items()}
        curves = {name: _curve(name, spec)
                  for name, spec in _table("curves", data.get("curves", {})).items()}
        fans = {name: _fan(name, spec)
                for name, spec in _table("fans", data.get("fans", {})).items()}

        return cls(
            poll_period=poll_period,
            min_change=min_change,
            max_change=max_change,
            sensors=sensors,
            composites=composites,
            curves=curves,
            fans=fans,
        )

    def check_references(self) -> List[str]:
        """Find names that will not resolve at tick time

        Returns:
            Human readable problems; empty if every reference resolves
        """
        problems = []
        known = set(self.sensors)
        for name, composite in self.composites.items():
            for input_name in composite.inputs:
                if input_name not in known:
                    problems.append(
                        f"composite {name!r} input {input_name!r} is not a sensor or an earlier composite"
                    )
            known.add(name)
        for name, fan in self.fans.items():
            if fan.input not in known:
                problems.append(f"fan {name!r} input {fan.input!r} is not a sensor or composite")
            if fan.curve not in self.curves:
                problems.append(f"fan {name!r} curve {fan.curve!r} is not defined")
        return problems


def load_config(path: Union[str, Path, None] = None) -> Config:
    """Load and validate the configuration file

    Args:
        path: Document to read; defaults to default_config_path()

    Returns:
        Validated configuration

    Raises:
        SysfsIOError: If the file cannot be read
        ConfigParseError: If the document is invalid
    """
    path = Path(path or default_config_path())
    logger.info(f"Loading configuration from {path}")
    try:
        with open(path, "rb") as f:
            contents = f.read()
    except OSError as e:
        raise SysfsIOError(path, e.strerror) from e

    try:
        if path.suffix == ".toml":
            data = tomllib.loads(contents.decode("utf-8"))
        else:
            data = yaml.safe_load(contents)
    except (tomllib.TOMLDecodeError, yaml.YAMLError, UnicodeDecodeError) as e:
        raise ConfigParseError(f"The configuration file {path} is not valid: {e}") from e

    return Config.from_dict(data)


def _check_keys(where: str, data: Dict[str, Any], required: set, optional: set = frozenset()) -> None:
    missing = required - set(data)
    if missing:
        raise ConfigParseError(f"{where}: missing key(s) {sorted(missing)}")
    unknown = set(data) - required - set(optional)
    if unknown:
        raise ConfigParseError(f"{where}: unknown key(s) {sorted(unknown)}")


def _table(where: str, value: Any) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise ConfigParseError(f"{where} must be a table")
    return value


def _int(where: str, value: Any) -> int:
    # bool is an int subclass
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigParseError(f"{where} must be an integer, got {value!r}")
    return value


def _str(where: str, value: Any) -> str:
    if not isinstance(value, str):
        raise ConfigParseError(f"{where} must be a string, got {value!r}")
    return value


def _percent(where: str, value: Any) -> int:
    value = _int(where, value)
    if not 0 <= value <= 100:
        raise ConfigParseError(f"Invalid {where} {value}%, must be 0-100")
    return value


def _sensor(name: str, spec: Any) -> SensorSpec:
    where = f"sensors.{name}"
    spec = _table(where, spec)
    if "label" in spec:
        _check_keys(where, spec, required={"hwmon_name", "label"})
        return SensorSpec(hwmon_name=_str(f"{where}.hwmon_name", spec["hwmon_name"]),
                          label=_str(f"{where}.label", spec["label"]))
    _check_keys(where, spec, required={"hwmon_name", "index"})
    index = _int(f"{where}.index", spec["index"])
    if index < 0:
        raise ConfigParseError(f"{where}.index must not be negative")
    return SensorSpec(hwmon_name=_str(f"{where}.hwmon_name", spec["hwmon_name"]), index=index)


def _composite(name: str, spec: Any) -> CompositeSpec:
    where = f"composites.{name}"
    spec = _table(where, spec)
    mode = _str(f"{where}.mode", spec.get("mode"))
    if mode not in COMPOSITE_MODES:
        raise ConfigParseError(f"{where}.mode must be one of {list(COMPOSITE_MODES)}, got {mode!r}")
    if mode == "meanmax":
        _check_keys(where, spec, required={"inputs", "mode", "threshold"})
        threshold = _int(f"{where}.threshold", spec["threshold"])
    else:
        _check_keys(where, spec, required={"inputs", "mode"})
        threshold = None

    inputs = spec["inputs"]
    if not isinstance(inputs, list):
        raise ConfigParseError(f"{where}.inputs must be a list")
    inputs = tuple(_str(f"{where}.inputs", i) for i in inputs)
    return CompositeSpec(inputs=inputs, mode=mode, threshold=threshold)


def _curve(name: str, spec: Any) -> List[str]:
    where = f"curves.{name}"
    if not isinstance(spec, list):
        raise ConfigParseError(f"{where} must be a list of \"<T>C/<P>%\" strings")
    return [_str(where, point) for point in spec]


def _fan(name: str, spec: Any) -> FanSpec:
    where = f"fans.{name}"
    spec = _table(where, spec)
    _check_keys(where, spec, required={"path", "input", "curve"})
    path = _table(f"{where}.path", spec["path"])
    _check_keys(f"{where}.path", path, required={"hwmon_name", "index"})
    index = _int(f"{where}.path.index", path["index"])
    if index < 0:
        raise ConfigParseError(f"{where}.path.index must not be negative")
    return FanSpec(
        path=FanPath(hwmon_name=_str(f"{where}.path.hwmon_name", path["hwmon_name"]), index=index),
        input=_str(f"{where}.input", spec["input"]),
        curve=_str(f"{where}.curve", spec["curve"]),
    )
