"""Fan curve implementation.

Curves map a temperature in milli-degrees Celsius to a PWM duty value on
the kernel's 0-255 scale by linear interpolation between anchor points.
Curve points are written in configuration as "<T>C/<P>%".
"""

from dataclasses import dataclass
from typing import List, Sequence
import bisect
import logging
import re

from ..errors import InvalidPointSpecError

logger = logging.getLogger(__name__)

POINT_SPEC_RE = re.compile(r"([+-]?\d+)C/(\d+)%", re.ASCII)


def div_trunc(numerator: int, denominator: int) -> int:
    """Integer division truncating toward zero"""
    quotient = abs(numerator) // abs(denominator)
    if (numerator < 0) != (denominator < 0):
        return -quotient
    return quotient


def percent_to_pwm(percent: int) -> int:
    """Convert a 0-100 percentage to the 0-255 PWM scale"""
    return percent * 255 // 100


@dataclass(frozen=True)
class Point:
    """Curve anchor point.

    Attributes:
        temp: Temperature in milli-degrees Celsius
        pwm: PWM duty value (0-255)
    """
    temp: int
    pwm: int

    def to_spec(self) -> str:
        """Format the point back into "<T>C/<P>%" notation"""
        percent = -(-self.pwm * 100 // 255)
        return f"{self.temp // 1000}C/{percent}%"


def parse_point(spec: str) -> Point:
    """Parse a "<T>C/<P>%" point specification

    Args:
        spec: Point specification, T in degrees Celsius, P in percent

    Returns:
        Point in milli-degrees and 0-255 PWM units

    Raises:
        InvalidPointSpecError: If the specification is malformed
    """
    if not isinstance(spec, str):
        raise InvalidPointSpecError(f"Curve point {spec!r} is not a string")
    match = POINT_SPEC_RE.fullmatch(spec)
    if not match:
        raise InvalidPointSpecError(f"Curve point {spec!r} is not of the form <int>C/<int>%")
    temp = int(match.group(1))
    percent = int(match.group(2))
    if percent > 100:
        raise InvalidPointSpecError(f"Invalid speed {percent}% in curve point {spec!r}, must be 0-100")
    # linux works in milli degrees celsius and 0-255 fan speed
    return Point(temp=temp * 1000, pwm=percent_to_pwm(percent))


def lerp(temp: int, points: Sequence[Point]) -> int:
    """Get the interpolated PWM value for a temperature

    Below the first point the first point's value is returned, at or above
    the last point the last point's value is returned. In between, integer
    interpolation truncates toward zero.

    Args:
        temp: Temperature in milli-degrees Celsius
        points: Anchor points with strictly increasing temperatures

    Returns:
        PWM duty value (0-255)
    """
    if temp < points[0].temp:
        return points[0].pwm
    if temp >= points[-1].temp:
        return points[-1].pwm

    idx = bisect.bisect_right([p.temp for p in points], temp)
    lower = points[idx - 1]
    upper = points[idx]
    logger.debug(f"Temperature {temp} in window {lower} - {upper}")
    offset = div_trunc((temp - lower.temp) * (upper.pwm - lower.pwm), upper.temp - lower.temp)
    return lower.pwm + offset


class Curve:
    """Piecewise-linear temperature to fan speed mapping"""

    def __init__(self, name: str, points: Sequence[Point]):
        """Initialize with anchor points

        Args:
            name: Curve name from the configuration
            points: Points with strictly increasing temperatures

        Raises:
            InvalidPointSpecError: If the curve is empty or not strictly increasing
        """
        if not points:
            raise InvalidPointSpecError(f"Curve {name!r} must provide at least one point")
        for lower, upper in zip(points, points[1:]):
            if upper.temp <= lower.temp:
                raise InvalidPointSpecError(
                    f"Curve {name!r} temperatures must be strictly increasing "
                    f"({lower.to_spec()} before {upper.to_spec()})"
                )
        self.name = name
        self.points: List[Point] = list(points)

    @classmethod
    def from_specs(cls, name: str, specs: Sequence[str]) -> "Curve":
        """Build a curve from "<T>C/<P>%" strings"""
        points = []
        for spec in specs:
            logger.debug(f"Parsing point spec {spec!r} of curve {name!r}")
            points.append(parse_point(spec))
        return cls(name, points)

    def lerp(self, temp: int) -> int:
        return lerp(temp, self.points)

    def to_specs(self) -> List[str]:
        return [p.to_spec() for p in self.points]

    def __repr__(self) -> str:
        return f"Curve({self.name!r}, {self.to_specs()})"
