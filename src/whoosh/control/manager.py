"""
Fan Control Manager Module

This module provides the control loop: it reads the configured sensors,
evaluates composites, maps temperatures through curves and drives the PWM
outputs with rate-limited updates. It also supervises the loop, handling
stop and reload requests and restarting after transient failures.
"""

import logging
import time
from typing import Callable, Dict, Optional

from ..config import Config, load_config
from ..errors import InvalidReadingError, WhooshError
from ..hwmon.discovery import close_fans, find_fans, find_sensors, read_hwmon_names
from ..hwmon.fan import ControlledFan
from ..hwmon.sysfs import Sysfs
from .composite import evaluate_composites
from .curve import Curve, percent_to_pwm

logger = logging.getLogger(__name__)

# Delay before restarting the control loop after an error
RETRY_MS = 2000


class Flag:
    """Boolean set from a signal handler and polled by the control loop"""

    def __init__(self, value: bool = False):
        self._value = value

    def set(self) -> None:
        self._value = True

    def clear(self) -> None:
        self._value = False

    def is_set(self) -> bool:
        return self._value

    def __repr__(self) -> str:
        return f"Flag({self._value})"


class State:
    """Everything resolved from one configuration.

    Curves are parsed and sensors resolved before any fan is opened, so a
    configuration that fails early never touches pwmN_enable.
    """

    def __init__(self, config: Config, sysfs: Sysfs):
        """Build state from a configuration

        Args:
            config: Validated configuration
            sysfs: Sysfs adapter

        Raises:
            WhooshError: If discovery or curve parsing fails
        """
        logger.info("Loading state")
        self.config = config
        self.sysfs = sysfs

        self.curves: Dict[str, Curve] = {
            name: Curve.from_specs(name, specs) for name, specs in config.curves.items()
        }
        hwmon_names = read_hwmon_names(sysfs)
        self.sensor_paths: Dict[str, str] = find_sensors(sysfs, config.sensors, hwmon_names)
        self.fans: Dict[str, ControlledFan] = find_fans(sysfs, config.fans, hwmon_names)

        self.min_change = percent_to_pwm(config.min_change)
        self.max_change = percent_to_pwm(config.max_change)

        for problem in config.check_references():
            logger.warning(f"Unresolved reference: {problem}")
        logger.info(
            f"State loaded: {len(self.sensor_paths)} sensors, {len(config.composites)} composites, "
            f"{len(self.curves)} curves, {len(self.fans)} fans"
        )

    def close(self) -> None:
        """Release all fans, restoring their saved modes"""
        close_fans(self.fans)
        self.fans = {}

    def read_temperatures(self) -> Dict[str, int]:
        """Read every resolved sensor

        Returns:
            Milli-degree readings by sensor name

        Raises:
            InvalidReadingError: If a reading is not an integer
            SysfsIOError: If a sensor cannot be read
        """
        temps = {}
        for name, path in self.sensor_paths.items():
            raw = self.sysfs.read(path)
            try:
                temp = int(raw.strip())
            except ValueError as e:
                raise InvalidReadingError(f"Sensor {name} reading {raw!r} from {path} is not a valid integer") from e
            logger.debug(f"Sensor {name}: read temperature {temp}")
            temps[name] = temp
        return temps

    def tick(self) -> Dict[str, int]:
        """Run one control iteration: read, compose, lerp, rate-limit, write

        Returns:
            The speed written per fan on this tick (fans left unchanged are absent)

        Raises:
            WhooshError: If a sensor or fan cannot be read or written
        """
        temps = self.read_temperatures()
        evaluate_composites(self.config.composites, temps)

        written = {}
        for name, fan_spec in self.config.fans.items():
            if fan_spec.input not in temps:
                logger.warning(f"Fan {name}: input {fan_spec.input} not found")
                continue
            input_temp = temps[fan_spec.input]
            curve = self.curves.get(fan_spec.curve)
            if curve is None:
                logger.warning(f"Fan {name}: curve {fan_spec.curve} not found")
                continue

            target_speed = curve.lerp(input_temp)
            fan = self.fans[name]
            current_speed = fan.get_speed()
            delta = rate_limit(target_speed - current_speed, self.min_change, self.max_change)
            if delta == 0:
                logger.debug(f"Fan {name}: {input_temp} -> target {target_speed}, "
                             f"current {current_speed}, delta too small - not changing speed")
                continue

            new_speed = current_speed + delta
            logger.debug(f"Fan {name}: {input_temp} -> target {target_speed}, "
                         f"current {current_speed}, changing speed by {delta} to {new_speed}")
            fan.set_speed(new_speed)
            written[name] = new_speed
        return written


def rate_limit(delta: int, min_change: int, max_change: int) -> int:
    """Apply dead-band and slew limits to a speed delta

    Args:
        delta: target - current on the 0-255 scale
        min_change: Deltas with |delta| <= min_change are suppressed
        max_change: Largest step applied in one tick

    Returns:
        Step to apply, 0 if the fan should be left alone
    """
    if abs(delta) <= min_change:
        return 0
    if delta > 0:
        return min(delta, max_change)
    return max(delta, -max_change)


class ControlManager:
    """Supervises the control loop for one configuration file"""

    def __init__(self, config_path: Optional[str] = None, sysfs: Optional[Sysfs] = None,
                 stop: Optional[Flag] = None, reload: Optional[Flag] = None,
                 sleep: Callable[[float], None] = time.sleep):
        """Initialize control manager

        Args:
            config_path: Configuration document, defaults to /etc/whoosh.toml
            sysfs: Sysfs adapter, defaults to /sys/class/hwmon
            stop: Flag requesting shutdown
            reload: Flag requesting a configuration reload
            sleep: Function used to wait between ticks
        """
        self.config_path = config_path
        self.sysfs = sysfs or Sysfs()
        self.stop = stop if stop is not None else Flag()
        self.reload = reload if reload is not None else Flag()
        self.sleep = sleep
        self.state: Optional[State] = None

    def load_config(self) -> Config:
        return load_config(self.config_path)

    def _reload(self) -> None:
        """Swap in a freshly loaded configuration.

        Fans are released before the new state is built so a PWM output
        shared by both configurations is never held twice.
        """
        logger.info("Attempting reload...")
        try:
            new_config = self.load_config()
        except WhooshError as e:
            logger.error(f"Failed to load new config - continuing with old one: {e}")
            return

        old_config = self.state.config
        self.state.close()
        try:
            self.state = State(new_config, self.sysfs)
            logger.info("Reload complete")
        except WhooshError as e:
            logger.error(f"Failed to reload state - loading state from old config: {e}")
            self.state = State(old_config, self.sysfs)

    def run(self) -> None:
        """Run the control loop until stop is set

        Fans are always restored on the way out, including on error.

        Raises:
            WhooshError: If loading or a tick fails
        """
        self.state = State(self.load_config(), self.sysfs)
        try:
            while not self.stop.is_set():
                if self.reload.is_set():
                    try:
                        self._reload()
                    finally:
                        self.reload.clear()

                self.state.tick()
                self.sleep(self.state.config.poll_period / 1000)
        finally:
            self.state.close()

    def run_forever(self, retry_ms: int = RETRY_MS) -> None:
        """Run the control loop, restarting it after recoverable errors

        Returns once stop has been set.
        """
        while not self.stop.is_set():
            try:
                self.run()
                break
            except WhooshError as e:
                logger.error(f"Encountered error in main loop: {e}")
                if self.stop.is_set():
                    break
                logger.info(f"Waiting {retry_ms}ms and reloading")
                self.sleep(retry_ms / 1000)
